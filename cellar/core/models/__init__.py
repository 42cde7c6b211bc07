"""
Domain models — Pydantic types for the formula pipeline.

All models are re-exported here for convenient access:

    from cellar.core.models import Manifest, InstallationRecord, PipelineState
"""

from cellar.core.models.command import Command, CommandResult
from cellar.core.models.manifest import (
    BuildDirective,
    InstallDirective,
    Manifest,
    SourceSpec,
    TestDirective,
)
from cellar.core.models.pipeline import TRANSITIONS, PipelineResult, PipelineState
from cellar.core.models.record import InstallationRecord
from cellar.core.models.settings import Settings

__all__ = [
    # manifest.py
    "BuildDirective",
    # command.py
    "Command",
    "CommandResult",
    "InstallDirective",
    # record.py
    "InstallationRecord",
    "Manifest",
    # pipeline.py
    "PipelineResult",
    "PipelineState",
    # settings.py
    "Settings",
    "SourceSpec",
    "TRANSITIONS",
    "TestDirective",
]
