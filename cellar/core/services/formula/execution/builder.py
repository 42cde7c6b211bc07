"""
L4 Execution — Run a formula's build directive.

Build tools are checked up front and all missing ones are reported
together. The build itself runs once: a failed build is deterministic
for the same inputs, so it is never retried.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from cellar.adapters.base import ProcessRunner, ToolProbe
from cellar.core.errors import BuildFailedError, MissingDependencyError
from cellar.core.models.command import Command, CommandResult
from cellar.core.models.manifest import Manifest
from cellar.core.services.formula.execution.workspace import SourceTree

logger = logging.getLogger(__name__)


@dataclass
class BuildOutcome:
    """A successful build: the command that ran and what it printed."""

    command: Command
    result: CommandResult


def build_environment(manifest: Manifest, tree: SourceTree) -> dict[str, str]:
    """Environment for the build: host PATH, private HOME/TMPDIR, overrides."""
    env = {
        "PATH": os.environ.get("PATH", os.defpath),
        "HOME": str(tree.home),
        "TMPDIR": str(tree.tmp),
        "LANG": "C.UTF-8",
        "CELLAR_FORMULA": manifest.name,
        "CELLAR_VERSION": manifest.version,
    }
    env.update(manifest.build_directive.env)
    return env


class Builder:
    """Check build dependencies, then run the build directive."""

    def __init__(self, runner: ProcessRunner, probe: ToolProbe, *, timeout: float = 3600.0):
        self._runner = runner
        self._probe = probe
        self._timeout = timeout

    def check_dependencies(self, manifest: Manifest) -> None:
        """Raise ``MissingDependencyError`` naming every absent tool."""
        missing = sorted(
            tool for tool in manifest.build_dependencies if not self._probe.is_available(tool)
        )
        if missing:
            raise MissingDependencyError(missing)

    def build(self, manifest: Manifest, tree: SourceTree) -> BuildOutcome:
        """Run the build inside ``tree.root``.

        Raises:
            MissingDependencyError: Before anything runs.
            BuildFailedError: Non-zero exit, timeout, or unstartable program.
        """
        self.check_dependencies(manifest)

        command = Command(
            argv=manifest.build_argv(),
            cwd=str(tree.root),
            env=build_environment(manifest, tree),
            timeout=self._timeout,
        )
        logger.info("Building %s: %s", manifest.key, command.display)
        result = self._runner.run(command)

        if not result.ok:
            raise BuildFailedError(
                f"Build of {manifest.key} failed ({result.describe()}): {command.display}",
                output=result.output,
                exit_code=result.exit_code,
            )

        logger.info("Built %s in %dms", manifest.key, result.duration_ms)
        return BuildOutcome(command=command, result=result)
