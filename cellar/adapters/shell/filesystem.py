"""
Fixture stager — copies acceptance-test fixtures from a directory.

Fixtures are looked up by name (``test.mp3``) under a fixtures root
and copied into the verifier's scratch directory.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from cellar.adapters.base import FixtureStager
from cellar.core.errors import FixtureError
from cellar.core.services.formula.domain.paths import check_relative_path, is_within

logger = logging.getLogger(__name__)


class DirectoryFixtureStager(FixtureStager):
    """Stage fixtures by copying ``<root>/<name>`` to ``<dest>/<name>``."""

    def __init__(self, root: Path | None):
        self._root = root

    @property
    def name(self) -> str:
        return "fixtures-dir"

    def stage(self, names: list[str], dest: Path) -> list[Path]:
        if names and self._root is None:
            raise FixtureError(
                f"Fixtures requested ({', '.join(names)}) but no fixtures directory is configured"
            )

        staged: list[Path] = []
        for fixture in names:
            err = check_relative_path(fixture)
            if err:
                raise FixtureError(f"Invalid fixture name {fixture!r}: {err}")

            src = self._root / fixture
            if not src.is_file() or not is_within(self._root, src):
                raise FixtureError(f"Fixture not found: {fixture} (looked in {self._root})")

            target = dest / fixture
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copyfile(src, target)
            except OSError as e:
                raise FixtureError(f"Cannot stage fixture {fixture}: {e}") from e
            logger.debug("Staged fixture %s → %s", src, target)
            staged.append(target)
        return staged
