"""
L4 Execution — Acceptance test against the installed artifacts.

The test runs in its own scratch directory with its fixtures staged
in. A failure is reported, never rolled back: the installed files stay
in place for inspection.
"""

from __future__ import annotations

import logging
import re
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from cellar.adapters.base import FixtureStager, ProcessRunner
from cellar.core.errors import AcceptanceTestFailedError
from cellar.core.models.command import Command, CommandResult
from cellar.core.models.manifest import Manifest
from cellar.core.services.formula.domain.paths import install_locations

logger = logging.getLogger(__name__)


@dataclass
class VerifyOutcome:
    """A passed acceptance test and the text that matched."""

    command: Command
    result: CommandResult
    matched: str


class Verifier:
    """Run ``test_directive`` and match its output."""

    def __init__(
        self,
        runner: ProcessRunner,
        fixtures: FixtureStager,
        *,
        timeout: float = 300.0,
        work_root: Path | None = None,
    ):
        self._runner = runner
        self._fixtures = fixtures
        self._timeout = timeout
        self._work_root = work_root

    def verify(self, manifest: Manifest, prefix: Path) -> VerifyOutcome:
        """Run the acceptance test for an installed manifest.

        Raises:
            FixtureError: A fixture could not be staged.
            AcceptanceTestFailedError: Pattern mismatch, unexpected exit
                status, timeout, or an unstartable command.
        """
        directive = manifest.test_directive
        prefix = prefix.resolve()
        scratch = Path(tempfile.mkdtemp(prefix=f"cellar-test-{manifest.name}-", dir=self._work_root))
        try:
            self._fixtures.stage(list(directive.fixtures), scratch)

            command = Command(
                argv=manifest.test_argv(install_locations(prefix)),
                cwd=str(scratch),
                timeout=self._timeout,
            )
            logger.info("Testing %s: %s", manifest.key, command.display)
            result = self._runner.run(command)
        finally:
            shutil.rmtree(scratch, ignore_errors=True)

        if result.error is not None or result.timed_out:
            raise AcceptanceTestFailedError(
                f"Acceptance test for {manifest.key} {result.describe()}: {command.display}",
                output=result.output,
                pattern=directive.expected_pattern,
                exit_code=result.exit_code,
            )

        if result.exit_code != directive.expected_exit:
            raise AcceptanceTestFailedError(
                f"Acceptance test for {manifest.key} exited {result.exit_code}, "
                f"expected {directive.expected_exit}",
                output=result.output,
                pattern=directive.expected_pattern,
                exit_code=result.exit_code,
            )

        m = re.search(directive.expected_pattern, result.output, directive.regex_flags)
        if m is None:
            raise AcceptanceTestFailedError(
                f"Acceptance test output for {manifest.key} does not match "
                f"/{directive.expected_pattern}/",
                output=result.output,
                pattern=directive.expected_pattern,
                exit_code=result.exit_code,
            )

        logger.info("Acceptance test passed for %s", manifest.key)
        return VerifyOutcome(command=command, result=result, matched=m.group(0))
