"""
Check use case — load a formula and report whether it is valid.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cellar.core.config.loader import load_manifest
from cellar.core.errors import ManifestError
from cellar.core.models.manifest import Manifest


@dataclass
class FormulaCheckResult:
    """Result of formula validation."""

    valid: bool = False
    manifest: Manifest | None = None
    formula_path: Path | None = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "formula_path": str(self.formula_path) if self.formula_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "name": self.manifest.name if self.manifest else None,
            "version": self.manifest.version if self.manifest else None,
            "install_count": len(self.manifest.install_directives) if self.manifest else 0,
        }


def check_formula(formula_path: Path) -> FormulaCheckResult:
    """Validate a formula file and report issues.

    Args:
        formula_path: Path to the formula YAML.

    Returns:
        FormulaCheckResult with validation status and any issues.
    """
    result = FormulaCheckResult(formula_path=formula_path)

    try:
        manifest = load_manifest(formula_path)
    except ManifestError as e:
        result.errors.extend(e.problems or [str(e)])
        return result

    result.manifest = manifest

    if not manifest.description:
        result.warnings.append("No description.")
    if not manifest.homepage:
        result.warnings.append("No homepage.")
    if manifest.parsed_version.prerelease:
        result.warnings.append(f"{manifest.version} is a pre-release.")
    if manifest.source.algorithm == "sha1":
        result.warnings.append("sha1 digests are weak; prefer sha256.")
    if not manifest.source.url.startswith(("https://", "file://")):
        result.warnings.append(f"Source is not fetched over https: {manifest.source.url}")

    result.valid = True
    return result
