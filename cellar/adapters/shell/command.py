"""
Subprocess runner — the single place where processes are spawned.

Build directives and acceptance tests both run through here. Commands
are executed without a shell; stderr is merged into stdout so the
captured output keeps the order the program wrote it in.
"""

from __future__ import annotations

import logging
import os
import subprocess
import time

from cellar.adapters.base import ProcessRunner
from cellar.core.models.command import Command, CommandResult

logger = logging.getLogger(__name__)

# Keep the tail of very chatty builds; the end is where errors are.
MAX_OUTPUT_CHARS = 64_000


def _decode(data: bytes | str | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode("utf-8", errors="replace")
    return data


def _tail(text: str) -> str:
    return text[-MAX_OUTPUT_CHARS:] if len(text) > MAX_OUTPUT_CHARS else text


class SubprocessRunner(ProcessRunner):
    """Execute commands with ``subprocess.run`` and capture output."""

    @property
    def name(self) -> str:
        return "subprocess"

    def run(self, command: Command) -> CommandResult:
        logger.debug("Executing: %s (cwd=%s)", command.display, command.cwd)
        start = time.monotonic()

        try:
            result = subprocess.run(
                command.argv,
                cwd=command.cwd,
                env=command.env if command.env is not None else os.environ.copy(),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                timeout=command.timeout,
            )
        except subprocess.TimeoutExpired as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.debug("Command timed out after %ss: %s", command.timeout, command.display)
            return CommandResult.timeout(
                output=_tail(_decode(e.output)),
                duration_ms=elapsed_ms,
            )
        except OSError as e:
            # Program missing, not executable, bad cwd
            elapsed_ms = int((time.monotonic() - start) * 1000)
            return CommandResult(error=str(e), duration_ms=elapsed_ms)

        elapsed_ms = int((time.monotonic() - start) * 1000)
        output = _tail(_decode(result.stdout))
        logger.debug("Command exited %d in %dms", result.returncode, elapsed_ms)
        return CommandResult(
            exit_code=result.returncode,
            output=output,
            duration_ms=elapsed_ms,
        )
