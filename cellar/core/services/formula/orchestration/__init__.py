"""
L5 Orchestration — ``__init__.py`` re-exports the pipeline driver.
"""

from cellar.core.services.formula.orchestration.orchestrator import (  # noqa: F401
    Pipeline,
    generate_run_id,
    uninstall,
)
