"""
Mock adapters — test doubles for every pipeline collaborator.

Used by tests (and by dry runs) to exercise the pipeline without
touching the network, the PATH or real processes. Each double keeps
a call log so tests can assert on what the pipeline asked for.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

from cellar.adapters.base import FixtureStager, ProcessRunner, SourceTransport, ToolProbe
from cellar.core.errors import FixtureError, NetworkError
from cellar.core.models.command import Command, CommandResult


class MockTransport(SourceTransport):
    """Serve archive bytes from memory.

    Failures can be queued per URL: each queued error is raised once,
    in order, before the bytes are served.
    """

    def __init__(self, payloads: dict[str, bytes] | None = None):
        self._payloads = dict(payloads or {})
        self._failures: dict[str, list[Exception]] = {}
        self.calls: list[str] = []

    @property
    def name(self) -> str:
        return "mock-http"

    def serve(self, url: str, data: bytes) -> None:
        self._payloads[url] = data

    def fail(self, url: str, error: Exception | None = None, times: int = 1) -> None:
        """Raise ``error`` (default: a retryable NetworkError) ``times`` times."""
        err = error or NetworkError(f"Connection reset fetching {url}", url=url)
        self._failures.setdefault(url, []).extend([err] * times)

    def download(self, url: str, sink: BinaryIO, timeout: float) -> int:
        self.calls.append(url)
        pending = self._failures.get(url)
        if pending:
            raise pending.pop(0)
        if url not in self._payloads:
            raise NetworkError(f"HTTP 404 fetching {url}: Not Found", url=url, retryable=False)
        data = self._payloads[url]
        sink.write(data)
        return len(data)


class StaticToolProbe(ToolProbe):
    """Tools are available iff they are in the given set."""

    def __init__(self, available: set[str] | None = None):
        self._available = set(available or ())
        self.queries: list[str] = []

    @property
    def name(self) -> str:
        return "mock-probe"

    def is_available(self, tool: str) -> bool:
        self.queries.append(tool)
        return tool in self._available


Handler = Callable[[Command], CommandResult]


class MockRunner(ProcessRunner):
    """Dispatch commands to handlers keyed by program basename.

    Handlers receive the Command and may create files under
    ``command.cwd`` to simulate a build. Unregistered programs
    succeed with empty output.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}
        self.call_log: list[Command] = []

    @property
    def name(self) -> str:
        return "mock-runner"

    @property
    def call_count(self) -> int:
        return len(self.call_log)

    def on(self, program: str, handler: Handler) -> None:
        self._handlers[program] = handler

    def respond(self, program: str, result: CommandResult) -> None:
        self._handlers[program] = lambda _cmd: result

    def run(self, command: Command) -> CommandResult:
        self.call_log.append(command)
        program = Path(command.argv[0]).name if command.argv else ""
        handler = self._handlers.get(program)
        if handler is None:
            return CommandResult.success()
        return handler(command)


class InlineFixtureStager(FixtureStager):
    """Stage fixtures from an in-memory name → bytes mapping."""

    def __init__(self, fixtures: dict[str, bytes] | None = None):
        self._fixtures = dict(fixtures or {})

    @property
    def name(self) -> str:
        return "mock-fixtures"

    def stage(self, names: list[str], dest: Path) -> list[Path]:
        staged = []
        for fixture in names:
            if fixture not in self._fixtures:
                raise FixtureError(f"Fixture not found: {fixture}")
            target = dest / fixture
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(self._fixtures[fixture])
            staged.append(target)
        return staged
