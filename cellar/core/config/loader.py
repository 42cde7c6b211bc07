"""
Configuration loader — reads formula files and cellar.yml.

This is the primary entry point for loading configuration. It reads
YAML, validates against Pydantic schemas, and returns typed domain
objects. Formula problems surface as ``ManifestError``; settings
problems as ``ConfigError``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from cellar.core.errors import CellarError, ManifestError
from cellar.core.models.manifest import Manifest
from cellar.core.models.settings import Settings

logger = logging.getLogger(__name__)

# Default settings filename
SETTINGS_FILE = "cellar.yml"

# Environment overrides: CELLAR_FETCH_ATTEMPTS=5 → fetch_attempts
_ENV_PREFIX = "CELLAR_"


class ConfigError(CellarError):
    """Raised when cellar settings are invalid or unreadable."""


def _read_yaml(path: Path, error_cls: type[CellarError]) -> Any:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise error_cls(f"Cannot read {path}: {e}") from e
    try:
        return yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise error_cls(f"Invalid YAML in {path}: {e}") from e


def _format_validation_error(e: ValidationError) -> list[str]:
    problems = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        problems.append(f"{loc}: {err.get('msg', 'invalid')}" if loc else err.get("msg", ""))
    return problems


# ── Formulas ────────────────────────────────────────────────────


def parse_manifest(data: Any, origin: str = "<formula>") -> Manifest:
    """Build and validate a Manifest from already-parsed data.

    The data may wrap everything under a ``formula`` key or be flat.

    Raises:
        ManifestError: If the data does not describe a valid formula.
    """
    if isinstance(data, dict) and isinstance(data.get("formula"), dict):
        data = data["formula"]

    if not isinstance(data, dict):
        raise ManifestError(
            f"Expected a YAML mapping in {origin}, got {type(data).__name__}"
        )

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        problems = _format_validation_error(e)
        raise ManifestError(
            f"Invalid formula in {origin}: " + "; ".join(problems),
            problems=problems,
        ) from e

    manifest.validate()
    return manifest


def load_manifest(path: Path) -> Manifest:
    """Load and validate a formula file.

    Args:
        path: Path to a ``<name>.yml`` formula.

    Returns:
        Validated, immutable Manifest.

    Raises:
        ManifestError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ManifestError(f"Formula file not found: {path}")

    logger.debug("Loading formula from %s", path)
    data = _read_yaml(path, ManifestError)
    manifest = parse_manifest(data, origin=str(path))
    logger.info("Loaded formula '%s' %s", manifest.name, manifest.version)
    return manifest


# ── Settings ────────────────────────────────────────────────────


def find_settings_file(start_dir: Path | None = None) -> Path | None:
    """Search for cellar.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to cellar.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / SETTINGS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def _env_overrides(environ: dict[str, str]) -> dict[str, str]:
    overrides = {}
    for field_name in Settings.model_fields:
        key = _ENV_PREFIX + field_name.upper()
        if key in environ and environ[key] != "":
            overrides[field_name] = environ[key]
    return overrides


def load_settings(
    path: Path | None = None,
    environ: dict[str, str] | None = None,
) -> Settings:
    """Load settings from cellar.yml plus CELLAR_* environment overrides.

    Args:
        path: Explicit settings file. If None, searches upward; a
            missing file means defaults.
        environ: Environment mapping (default: ``os.environ``).

    Raises:
        ConfigError: If the file is unreadable or a value is invalid.
    """
    data: dict[str, Any] = {}

    if path is None:
        path = find_settings_file()
    elif not path.is_file():
        raise ConfigError(f"Settings file not found: {path}")

    if path is not None:
        logger.debug("Loading settings from %s", path)
        loaded = _read_yaml(path, ConfigError)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(
                f"Expected a YAML mapping in {path}, got {type(loaded).__name__}"
            )
        data.update(loaded.get("cellar", loaded) if "cellar" in loaded else loaded)

    data.update(_env_overrides(dict(os.environ if environ is None else environ)))

    try:
        return Settings.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            "Invalid settings: " + "; ".join(_format_validation_error(e))
        ) from e
