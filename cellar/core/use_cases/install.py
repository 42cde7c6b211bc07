"""
Install use case — load a formula and run it through the pipeline.

The full vertical slice: settings, formula, adapters, pipeline run,
audit entry. Host adapters are used unless the caller injects others.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from cellar.adapters.base import FixtureStager, ProcessRunner, SourceTransport, ToolProbe
from cellar.core.config.loader import load_manifest, load_settings
from cellar.core.errors import CellarError
from cellar.core.models.pipeline import PipelineResult
from cellar.core.models.settings import Settings
from cellar.core.services.formula.orchestration.orchestrator import Pipeline

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
    """Result of installing a formula."""

    pipeline: PipelineResult | None = None
    formula_path: Path | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.pipeline is not None and self.pipeline.ok

    def to_dict(self) -> dict:
        result: dict = {"formula_path": str(self.formula_path) if self.formula_path else None}
        if self.error:
            result["error"] = self.error
            return result
        if self.pipeline:
            result.update(self.pipeline.to_dict())
        return result


def install_formula(
    formula_path: Path,
    prefix: Path,
    config_path: Path | None = None,
    settings: Settings | None = None,
    transport: SourceTransport | None = None,
    runner: ProcessRunner | None = None,
    probe: ToolProbe | None = None,
    fixtures: FixtureStager | None = None,
) -> InstallResult:
    """Install a formula into ``prefix``.

    Args:
        formula_path: Path to the formula YAML.
        prefix: Installation root.
        config_path: Optional explicit cellar.yml.
        settings: Pre-loaded settings (skips config_path).
        transport, runner, probe, fixtures: Adapter overrides.

    Returns:
        InstallResult. Loading problems land in ``error``; stage
        failures land in ``pipeline``.
    """
    result = InstallResult(formula_path=formula_path)

    try:
        if settings is None:
            settings = load_settings(config_path)
        manifest = load_manifest(formula_path)
    except CellarError as e:
        result.error = str(e)
        return result

    pipeline = Pipeline.from_settings(
        manifest,
        prefix,
        settings,
        transport=transport,
        runner=runner,
        probe=probe,
        fixtures=fixtures,
    )
    result.pipeline = pipeline.run()
    return result
