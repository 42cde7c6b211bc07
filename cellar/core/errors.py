"""
Error taxonomy — every failure the pipeline can surface.

Stage errors are raised by the fetcher, builder, installer and
verifier, and caught only by the orchestrator, which records them on
the run result. Each error carries its diagnostics in ``details()``
so callers can show command output or digest mismatches without
parsing messages.

    CellarError
    ├── ManifestError
    ├── FetchError ⊃ NetworkError, IntegrityError, UnsafeArchiveError
    ├── BuildError ⊃ MissingDependencyError, BuildFailedError
    ├── InstallError ⊃ MissingArtifactError, ConflictError, NotInstalledError
    ├── VerifyError ⊃ FixtureError, AcceptanceTestFailedError
    └── PipelineStateError
"""

from __future__ import annotations

from typing import Any


class CellarError(Exception):
    """Base class for all cellar errors."""

    retryable: bool = False

    def details(self) -> dict[str, Any]:
        """Diagnostic fields for logs, audit entries and JSON output."""
        return {"type": type(self).__name__, "message": str(self)}


# ── Manifest ────────────────────────────────────────────────────


class ManifestError(CellarError):
    """Formula data is malformed. Never retried."""

    def __init__(self, message: str, *, problems: list[str] | None = None):
        super().__init__(message)
        self.problems = list(problems or [])

    def details(self) -> dict[str, Any]:
        d = super().details()
        d["problems"] = self.problems
        return d


# ── Fetch ───────────────────────────────────────────────────────


class FetchError(CellarError):
    """The source archive could not be obtained or unpacked."""


class NetworkError(FetchError):
    """Transient transport failure (connection, timeout, 5xx)."""

    def __init__(self, message: str, *, url: str = "", retryable: bool = True):
        super().__init__(message)
        self.url = url
        self.retryable = retryable

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(url=self.url, retryable=self.retryable)
        return d


class IntegrityError(FetchError):
    """Downloaded bytes do not match the declared digest."""

    def __init__(self, *, url: str, algorithm: str, expected: str, actual: str):
        super().__init__(
            f"{algorithm} mismatch for {url}\n"
            f"Expected: {expected}\n"
            f"Got:      {actual}"
        )
        self.url = url
        self.algorithm = algorithm
        self.expected = expected
        self.actual = actual

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(
            url=self.url,
            algorithm=self.algorithm,
            expected=self.expected,
            actual=self.actual,
        )
        return d


class UnsafeArchiveError(FetchError):
    """An archive entry would land outside the extraction directory."""

    def __init__(self, entry: str, reason: str = "escapes the extraction directory"):
        super().__init__(f"Refusing archive entry {entry!r}: {reason}")
        self.entry = entry
        self.reason = reason

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(entry=self.entry, reason=self.reason)
        return d


# ── Build ───────────────────────────────────────────────────────


class BuildError(CellarError):
    """The build stage could not produce artifacts."""


class MissingDependencyError(BuildError):
    """One or more build tools are not available."""

    def __init__(self, missing: list[str]):
        super().__init__(f"Missing build dependencies: {', '.join(missing)}")
        self.missing = list(missing)

    def details(self) -> dict[str, Any]:
        d = super().details()
        d["missing"] = self.missing
        return d


class BuildFailedError(BuildError):
    """The build directive exited non-zero or timed out."""

    def __init__(self, message: str, *, output: str = "", exit_code: int | None = None):
        super().__init__(message)
        self.output = output
        self.exit_code = exit_code

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(output=self.output, exit_code=self.exit_code)
        return d


# ── Install ─────────────────────────────────────────────────────


class InstallError(CellarError):
    """Artifacts could not be placed under the prefix."""


class MissingArtifactError(InstallError):
    """A declared build output does not exist in the source tree."""

    def __init__(self, path: str):
        super().__init__(f"Build artifact not found: {path}")
        self.path = path

    def details(self) -> dict[str, Any]:
        d = super().details()
        d["path"] = self.path
        return d


class ConflictError(InstallError):
    """The destination already belongs to another package version."""

    def __init__(self, path: str, owner: str | None):
        who = owner or "an unmanaged file"
        super().__init__(f"Refusing to overwrite {path} (owned by {who})")
        self.path = path
        self.owner = owner

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(path=self.path, owner=self.owner)
        return d


class NotInstalledError(InstallError):
    """No installation record exists for the requested package."""


# ── Verify ──────────────────────────────────────────────────────


class VerifyError(CellarError):
    """The acceptance test could not confirm the installation."""


class FixtureError(VerifyError):
    """A fixture required by the acceptance test is unavailable."""


class AcceptanceTestFailedError(VerifyError):
    """Test command output did not match, or it exited unexpectedly."""

    def __init__(
        self,
        message: str,
        *,
        output: str = "",
        pattern: str = "",
        exit_code: int | None = None,
    ):
        super().__init__(message)
        self.output = output
        self.pattern = pattern
        self.exit_code = exit_code

    def details(self) -> dict[str, Any]:
        d = super().details()
        d.update(output=self.output, pattern=self.pattern, exit_code=self.exit_code)
        return d


# ── Orchestration ───────────────────────────────────────────────


class PipelineStateError(CellarError):
    """Illegal state transition, or a finished pipeline was re-run."""
