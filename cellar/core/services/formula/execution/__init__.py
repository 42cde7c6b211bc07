"""
L4 Execution — ``__init__.py`` re-exports the pipeline stages.

Each stage talks to the host only through the adapters it is given.
"""

from cellar.core.services.formula.execution.archive import extract_archive  # noqa: F401
from cellar.core.services.formula.execution.builder import (  # noqa: F401
    Builder,
    BuildOutcome,
    build_environment,
)
from cellar.core.services.formula.execution.fetcher import Fetcher  # noqa: F401
from cellar.core.services.formula.execution.installer import Installer  # noqa: F401
from cellar.core.services.formula.execution.verifier import (  # noqa: F401
    Verifier,
    VerifyOutcome,
)
from cellar.core.services.formula.execution.workspace import (  # noqa: F401
    SourceTree,
    create_workspace,
    remove_workspace,
)
