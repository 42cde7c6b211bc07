"""
Settings model — runtime knobs for the pipeline.

Loaded from ``cellar.yml`` (see ``cellar.core.config.loader``) and
overridable through ``CELLAR_*`` environment variables. Every field
has a default, so an empty file or no file at all is valid.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class Settings(BaseModel):
    """Pipeline settings."""

    # Where transient workspaces are created (None = system temp dir)
    work_root: str | None = None

    # ── Fetching ─────────────────────────────────────────────────
    fetch_attempts: int = Field(default=3, ge=1)
    fetch_backoff: float = Field(default=0.5, ge=0)       # seconds, first retry
    fetch_max_backoff: float = Field(default=8.0, ge=0)
    fetch_timeout: float = Field(default=60.0, gt=0)      # per request

    # ── Building / verifying ─────────────────────────────────────
    build_timeout: float = Field(default=3600.0, gt=0)
    test_timeout: float = Field(default=300.0, gt=0)

    # ── Collaborators ────────────────────────────────────────────
    fixtures_dir: str | None = None
    audit_log: str | None = None
