"""
Pipeline run models — states, legal transitions, and the run result.

States:
    PENDING → FETCHING → BUILDING → INSTALLING → VERIFYING → DONE
    FAILED is reachable from every non-terminal state.

DONE and FAILED are terminal. A finished run is never resumed; a new
pipeline starts again from PENDING.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from cellar.core.errors import CellarError
from cellar.core.models.record import InstallationRecord


class PipelineState(StrEnum):
    """Pipeline states."""

    PENDING = "pending"
    FETCHING = "fetching"
    BUILDING = "building"
    INSTALLING = "installing"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (PipelineState.DONE, PipelineState.FAILED)


TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.PENDING: frozenset({PipelineState.FETCHING, PipelineState.FAILED}),
    PipelineState.FETCHING: frozenset({PipelineState.BUILDING, PipelineState.FAILED}),
    PipelineState.BUILDING: frozenset({PipelineState.INSTALLING, PipelineState.FAILED}),
    PipelineState.INSTALLING: frozenset({PipelineState.VERIFYING, PipelineState.FAILED}),
    PipelineState.VERIFYING: frozenset({PipelineState.DONE, PipelineState.FAILED}),
    PipelineState.DONE: frozenset(),
    PipelineState.FAILED: frozenset(),
}


@dataclass
class PipelineResult:
    """Result of one pipeline run."""

    run_id: str = ""
    name: str = ""
    version: str = ""
    prefix: str = ""
    state: PipelineState = PipelineState.PENDING
    failed_stage: PipelineState | None = None
    error: CellarError | None = None
    record: InstallationRecord | None = None
    transitions: list[PipelineState] = field(default_factory=lambda: [PipelineState.PENDING])
    duration_ms: int = 0

    @property
    def ok(self) -> bool:
        return self.state == PipelineState.DONE

    def raise_for_error(self) -> None:
        """Re-raise the stage error of a failed run."""
        if self.error is not None:
            raise self.error

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "run_id": self.run_id,
            "name": self.name,
            "version": self.version,
            "prefix": self.prefix,
            "state": str(self.state),
            "transitions": [str(s) for s in self.transitions],
            "duration_ms": self.duration_ms,
        }
        if self.failed_stage is not None:
            result["failed_stage"] = str(self.failed_stage)
        if self.error is not None:
            result["error"] = self.error.details()
        if self.record is not None:
            result["record"] = self.record.model_dump(mode="json")
        return result
