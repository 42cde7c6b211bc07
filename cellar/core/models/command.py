"""
Command and CommandResult models — the process execution contract.

The pipeline describes what to run as a Command; the process runner
adapter returns a CommandResult. Runners report a non-zero exit or a
timeout on the result, they do not raise for them.
"""

from __future__ import annotations

from pydantic import BaseModel


class Command(BaseModel):
    """A program invocation: argv, working directory, environment."""

    argv: list[str]
    cwd: str = "."
    env: dict[str, str] | None = None   # None = inherit the host environment
    timeout: float | None = None        # seconds, None = no limit

    @property
    def display(self) -> str:
        """Shell-quoted command line for logs."""
        import shlex

        return shlex.join(self.argv)


class CommandResult(BaseModel):
    """Outcome of running a Command.

    ``output`` is stdout and stderr combined, in the order the
    process wrote them.
    """

    exit_code: int | None = None
    output: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    error: str | None = None            # the program could not be started

    @property
    def ok(self) -> bool:
        """Whether the command ran and exited 0."""
        return self.exit_code == 0 and not self.timed_out and self.error is None

    @classmethod
    def success(cls, output: str = "", **kwargs) -> CommandResult:
        """Create a zero-exit result."""
        return cls(exit_code=0, output=output, **kwargs)

    @classmethod
    def failure(cls, exit_code: int = 1, output: str = "", **kwargs) -> CommandResult:
        """Create a non-zero-exit result."""
        return cls(exit_code=exit_code, output=output, **kwargs)

    @classmethod
    def timeout(cls, output: str = "", **kwargs) -> CommandResult:
        """Create a timed-out result."""
        return cls(exit_code=None, output=output, timed_out=True, **kwargs)

    def describe(self) -> str:
        """One-line summary used in error messages."""
        if self.error:
            return f"could not start: {self.error}"
        if self.timed_out:
            return "timed out"
        return f"exit {self.exit_code}"
