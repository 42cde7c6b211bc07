"""
L1 Domain — ``__init__.py`` re-exports the pure formula helpers.

These functions have NO subprocess calls and NO network calls.
Pure input→output.
"""

from cellar.core.services.formula.domain.digest import (  # noqa: F401
    SUPPORTED_ALGORITHMS,
    check_digest,
    digests_match,
    new_hasher,
    split_digest,
)
from cellar.core.services.formula.domain.paths import (  # noqa: F401
    CATEGORIES,
    MANIFEST_PLACEHOLDERS,
    TEST_PLACEHOLDERS,
    Category,
    check_relative_path,
    find_placeholders,
    install_locations,
    is_within,
    render,
)
from cellar.core.services.formula.domain.version import (  # noqa: F401
    Version,
    infer_version_from_url,
)
