"""
Adapter base — the contracts between the pipeline and the host.

The pipeline never opens sockets, spawns processes or looks up tools
directly; it goes through one of these four adapters. Swapping an
adapter (for a test double, a proxy-aware transport, a sandboxed
runner) never touches the pipeline code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import BinaryIO

from cellar.core.models.command import Command, CommandResult


class Adapter(ABC):
    """Common base: every adapter has a name for logs and reprs."""

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'http', 'subprocess')."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


class SourceTransport(Adapter):
    """Retrieves archive bytes from a URL."""

    @abstractmethod
    def download(self, url: str, sink: BinaryIO, timeout: float) -> int:
        """Stream the body of ``url`` into ``sink``.

        Returns:
            Number of bytes written.

        Raises:
            NetworkError: On any transport failure or timeout. Set
                ``retryable=False`` when retrying cannot help.
        """


class ToolProbe(Adapter):
    """Answers "is tool X available in this environment"."""

    @abstractmethod
    def is_available(self, tool: str) -> bool:
        """Whether ``tool`` can be invoked. Never raises."""


class ProcessRunner(Adapter):
    """Runs a command and reports exit status plus combined output."""

    @abstractmethod
    def run(self, command: Command) -> CommandResult:
        """Execute ``command``.

        MUST NOT raise for a non-zero exit, a timeout or a missing
        program; those are reported on the CommandResult.
        """


class FixtureStager(Adapter):
    """Copies named test fixtures into a scratch directory."""

    @abstractmethod
    def stage(self, names: list[str], dest: Path) -> list[Path]:
        """Place each fixture at ``dest/<name>``.

        Returns:
            The staged paths, in the order given.

        Raises:
            FixtureError: If a fixture is unknown or cannot be copied.
        """
