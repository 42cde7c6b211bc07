"""
L4 Execution — Transient build workspace.

One workspace per pipeline run, laid out as::

    <workspace>/
        download/   fetched archive
        src/        extracted source tree
        home/       HOME for the build
        tmp/        TMPDIR for the build
        backup/     files displaced by a reinstall, until it commits

It is created when fetching starts and removed when the run ends,
whatever the outcome.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

_SUBDIRS = ("download", "src", "home", "tmp", "backup")


def create_workspace(name: str, work_root: Path | None = None) -> Path:
    """Create a fresh, empty workspace directory for ``name``."""
    if work_root is not None:
        work_root.mkdir(parents=True, exist_ok=True)
    path = Path(tempfile.mkdtemp(prefix=f"cellar-{name}-", dir=work_root))
    for sub in _SUBDIRS:
        (path / sub).mkdir()
    logger.debug("Workspace created: %s", path)
    return path


def remove_workspace(path: Path) -> bool:
    """Delete a workspace tree. Returns True if nothing is left behind."""
    if not path.exists():
        return True
    shutil.rmtree(path, ignore_errors=True)
    if path.exists():
        logger.warning("Workspace could not be fully removed: %s", path)
        return False
    logger.debug("Workspace removed: %s", path)
    return True


@dataclass
class SourceTree:
    """Handle to a fetched, verified and extracted source tree.

    ``root`` is where the build runs: the archive's single top-level
    directory when it has one, ``<workspace>/src`` otherwise.
    """

    workspace: Path
    root: Path
    archive: Path
    digest: str

    @property
    def home(self) -> Path:
        return self.workspace / "home"

    @property
    def tmp(self) -> Path:
        return self.workspace / "tmp"

    @property
    def backup(self) -> Path:
        return self.workspace / "backup"

    def cleanup(self) -> bool:
        return remove_workspace(self.workspace)

    def __enter__(self) -> SourceTree:
        return self

    def __exit__(self, *exc_info) -> None:
        self.cleanup()
