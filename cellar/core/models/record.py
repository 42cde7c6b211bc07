"""
Installation record — what one successful install wrote.

Serialized to ``<prefix>/.cellar/records/<name>/<version>.json``.
The record is the only thing ``uninstall`` trusts: files not listed
here are never removed.
"""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class InstallationRecord(BaseModel):
    """Absolute destination paths written for one (name, version)."""

    schema_version: int = 1

    name: str
    version: str
    prefix: str
    files: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    installed_at: str = Field(default_factory=_now_iso)

    @property
    def key(self) -> str:
        return f"{self.name}-{self.version}"

    @property
    def identity(self) -> tuple[str, str]:
        return (self.name, self.version)

    def owns(self, path: str) -> bool:
        return path in self.files
