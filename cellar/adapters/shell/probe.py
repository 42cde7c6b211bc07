"""
Tool probe — build dependency presence via PATH lookup.
"""

from __future__ import annotations

import shutil

from cellar.adapters.base import ToolProbe


class PathToolProbe(ToolProbe):
    """A tool is available when ``shutil.which`` finds it on PATH."""

    def __init__(self, path: str | None = None):
        self._path = path

    @property
    def name(self) -> str:
        return "path"

    def is_available(self, tool: str) -> bool:
        return shutil.which(tool, path=self._path) is not None
