"""
Uninstall and listing use cases — act on installation records.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cellar.core.config.loader import load_settings
from cellar.core.errors import CellarError
from cellar.core.models.record import InstallationRecord
from cellar.core.persistence.audit import AuditWriter
from cellar.core.services.formula.domain.version import Version
from cellar.core.services.formula.execution.installer import Installer
from cellar.core.services.formula.orchestration.orchestrator import uninstall


@dataclass
class UninstallResult:
    """Result of removing an installed package."""

    name: str = ""
    version: str = ""
    removed: list[Path] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        result: dict = {"name": self.name, "version": self.version}
        if self.error:
            result["error"] = self.error
        else:
            result["removed"] = [str(p) for p in self.removed]
        return result


def uninstall_package(
    name: str,
    version: str,
    prefix: Path,
    config_path: Path | None = None,
) -> UninstallResult:
    """Remove (name, version) from ``prefix``."""
    result = UninstallResult(name=name, version=version)
    try:
        settings = load_settings(config_path)
        audit = AuditWriter(Path(settings.audit_log)) if settings.audit_log else None
        result.removed = uninstall(name, version, prefix, audit=audit)
    except CellarError as e:
        result.error = str(e)
    return result


def list_installed(prefix: Path) -> list[InstallationRecord]:
    """Installation records in ``prefix``, sorted by name then version."""
    records = Installer().installed(prefix)
    return sorted(records, key=lambda r: (r.name, Version(r.version)))
