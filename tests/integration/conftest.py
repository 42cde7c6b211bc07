"""
Integration tests: real archives, real ``sh`` builds, ``file://`` sources.

Everything collected under this directory gets the ``integration``
marker, so a fast unit run is ``pytest -m "not integration"``.
"""

import shutil

import pytest

_HERE = "integration"


def pytest_collection_modifyitems(items):
    needs_sh = pytest.mark.skipif(shutil.which("sh") is None, reason="no sh on PATH")
    for item in items:
        if _HERE in item.path.parent.parts:
            item.add_marker(pytest.mark.integration)
            item.add_marker(needs_sh)
