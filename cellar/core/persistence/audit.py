"""
Audit ledger — one NDJSON line per install or uninstall.

The ledger answers "what happened to this prefix": which formula ran,
how far it got, which files it wrote and why it stopped. Lines are
only ever appended. A ledger that cannot be written is logged and
otherwise ignored, so the install outcome never depends on it.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from cellar.core.models.pipeline import PipelineResult

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    """What one pipeline run (or uninstall) did."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    run_id: str = ""
    operation: str = "install"     # install | uninstall

    formula: str = ""
    version: str = ""
    prefix: str = ""

    status: str = ""               # done | failed
    failed_stage: str | None = None
    transitions: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)
    duration_ms: int = 0
    errors: list[dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PipelineResult) -> AuditEntry:
        """Summarize a finished install run."""
        return cls(
            run_id=result.run_id,
            operation="install",
            formula=result.name,
            version=result.version,
            prefix=result.prefix,
            status=str(result.state),
            failed_stage=str(result.failed_stage) if result.failed_stage else None,
            transitions=[str(s) for s in result.transitions],
            files=list(result.record.files) if result.record else [],
            duration_ms=result.duration_ms,
            errors=[result.error.details()] if result.error else [],
        )


class AuditWriter:
    """Append-only ledger file, created on first write."""

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line + "\n")
        except OSError as e:
            logger.error("Audit ledger %s not writable, dropping %s entry: %s",
                         self._path, entry.operation, e)
            return
        logger.debug("Audited %s %s-%s (%s)", entry.operation, entry.formula,
                     entry.version, entry.status)

    def _entries(self) -> Iterator[AuditEntry]:
        if not self._path.is_file():
            return
        try:
            lines = self._path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            logger.error("Audit ledger %s not readable: %s", self._path, e)
            return
        for n, raw in enumerate(lines, start=1):
            if not raw.strip():
                continue
            try:
                yield AuditEntry.model_validate(json.loads(raw))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.warning("%s:%d: skipping unreadable entry: %s", self._path, n, e)

    def read_all(self) -> list[AuditEntry]:
        """Every readable entry, oldest first."""
        return list(self._entries())

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        return self.read_all()[-n:]

    def history(self, formula: str, version: str | None = None) -> list[AuditEntry]:
        """Entries for one formula (optionally one version), oldest first."""
        return [
            e for e in self._entries()
            if e.formula == formula and (version is None or e.version == version)
        ]
