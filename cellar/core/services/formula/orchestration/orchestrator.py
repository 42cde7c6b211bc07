"""
L5 Orchestration — Drive one formula through the pipeline.

    pending → fetching → building → installing → verifying → done
                                                           ↘ failed

Each ``Pipeline`` runs at most once. Stage errors are caught here and
only here: the run ends in ``failed`` with the stage and the original
error recorded on the result. Anything that is not a ``CellarError``
(``KeyboardInterrupt``, cancellation, programming errors) also ends the
run in ``failed``, then propagates. In every case the workspace is
removed and one audit entry is written.
"""

from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path

from cellar.adapters.base import FixtureStager, ProcessRunner, SourceTransport, ToolProbe
from cellar.core.errors import CellarError, PipelineStateError
from cellar.core.models.manifest import Manifest
from cellar.core.models.pipeline import TRANSITIONS, PipelineResult, PipelineState
from cellar.core.models.settings import Settings
from cellar.core.observability.logging_config import bind_run
from cellar.core.persistence.audit import AuditEntry, AuditWriter
from cellar.core.reliability.locks import PackageLocks, default_locks
from cellar.core.reliability.retry import RetryPolicy
from cellar.core.services.formula.execution.builder import Builder
from cellar.core.services.formula.execution.fetcher import Fetcher
from cellar.core.services.formula.execution.installer import Installer
from cellar.core.services.formula.execution.verifier import Verifier
from cellar.core.services.formula.execution.workspace import SourceTree

logger = logging.getLogger(__name__)


def generate_run_id() -> str:
    """Short unique id for one pipeline run."""
    return f"run-{uuid.uuid4().hex[:12]}"


class Pipeline:
    """One install of one manifest into one prefix.

    Args:
        manifest: Validated formula.
        prefix: Installation root.
        fetcher, builder, installer, verifier: The stages.
        locks: Named-lock registry (default: process-wide).
        audit: Ledger to append the run to (None = no audit).
    """

    def __init__(
        self,
        manifest: Manifest,
        prefix: Path,
        *,
        fetcher: Fetcher,
        builder: Builder,
        installer: Installer,
        verifier: Verifier,
        locks: PackageLocks | None = None,
        audit: AuditWriter | None = None,
    ):
        self.manifest = manifest
        self.prefix = Path(prefix)
        self.fetcher = fetcher
        self.builder = builder
        self.installer = installer
        self.verifier = verifier
        self.locks = locks or default_locks
        self.audit = audit
        self.result = PipelineResult(
            run_id=generate_run_id(),
            name=manifest.name,
            version=manifest.version,
            prefix=str(self.prefix),
        )

    @classmethod
    def from_settings(
        cls,
        manifest: Manifest,
        prefix: Path,
        settings: Settings,
        *,
        transport: SourceTransport | None = None,
        runner: ProcessRunner | None = None,
        probe: ToolProbe | None = None,
        fixtures: FixtureStager | None = None,
        locks: PackageLocks | None = None,
    ) -> Pipeline:
        """Wire a pipeline from settings, using host adapters by default."""
        from cellar.adapters.net.http import UrlTransport
        from cellar.adapters.shell.command import SubprocessRunner
        from cellar.adapters.shell.filesystem import DirectoryFixtureStager
        from cellar.adapters.shell.probe import PathToolProbe

        work_root = Path(settings.work_root) if settings.work_root else None
        runner = runner or SubprocessRunner()
        if fixtures is None:
            fixtures = DirectoryFixtureStager(
                Path(settings.fixtures_dir) if settings.fixtures_dir else None
            )

        return cls(
            manifest,
            prefix,
            fetcher=Fetcher(
                transport or UrlTransport(),
                retry=RetryPolicy(
                    attempts=settings.fetch_attempts,
                    base_delay=settings.fetch_backoff,
                    max_delay=settings.fetch_max_backoff,
                ),
                timeout=settings.fetch_timeout,
                work_root=work_root,
            ),
            builder=Builder(runner, probe or PathToolProbe(), timeout=settings.build_timeout),
            installer=Installer(locks),
            verifier=Verifier(
                runner, fixtures, timeout=settings.test_timeout, work_root=work_root
            ),
            locks=locks,
            audit=AuditWriter(Path(settings.audit_log)) if settings.audit_log else None,
        )

    # ── State ───────────────────────────────────────────────────

    @property
    def state(self) -> PipelineState:
        return self.result.state

    def _advance(self, new: PipelineState) -> None:
        current = self.result.state
        if new not in TRANSITIONS[current]:
            raise PipelineStateError(f"Illegal transition {current} → {new}")
        self.result.state = new
        self.result.transitions.append(new)
        logger.info("%s: %s → %s", self.manifest.key, current, new)

    def _fail(self, error: CellarError | None) -> None:
        stage = self.result.state
        if stage.terminal:
            return
        self.result.failed_stage = stage
        self.result.error = error
        self._advance(PipelineState.FAILED)

    def fresh(self) -> Pipeline:
        """A new pending pipeline with the same inputs."""
        return Pipeline(
            self.manifest,
            self.prefix,
            fetcher=self.fetcher,
            builder=self.builder,
            installer=self.installer,
            verifier=self.verifier,
            locks=self.locks,
            audit=self.audit,
        )

    # ── Run ─────────────────────────────────────────────────────

    def run(self) -> PipelineResult:
        """Run every stage in order.

        Returns:
            The result, in ``done`` or ``failed``. Stage errors are
            recorded on it rather than raised.

        Raises:
            PipelineStateError: This pipeline has already run.
        """
        if self.result.state != PipelineState.PENDING:
            raise PipelineStateError(
                f"Pipeline {self.result.run_id} already ran (state: {self.result.state}); "
                "use fresh() to start again"
            )

        with bind_run(self.result.run_id):
            return self._execute()

    def _execute(self) -> PipelineResult:
        start = time.monotonic()
        tree: SourceTree | None = None
        try:
            self._advance(PipelineState.FETCHING)
            tree = self.fetcher.fetch(self.manifest)

            self._advance(PipelineState.BUILDING)
            self.builder.build(self.manifest, tree)

            with self.locks.hold(self.manifest.name):
                self._advance(PipelineState.INSTALLING)
                self.result.record = self.installer.install(self.manifest, tree, self.prefix)

                self._advance(PipelineState.VERIFYING)
                self.verifier.verify(self.manifest, self.prefix)

            self._advance(PipelineState.DONE)
        except CellarError as e:
            logger.error("%s failed while %s: %s", self.manifest.key, self.result.state, e)
            self._fail(e)
        except BaseException:
            logger.warning("%s interrupted while %s", self.manifest.key, self.result.state)
            self._fail(None)
            raise
        finally:
            if tree is not None:
                tree.cleanup()
            self.result.duration_ms = int((time.monotonic() - start) * 1000)
            self._write_audit()

        return self.result

    def _write_audit(self) -> None:
        if self.audit is None:
            return
        self.audit.write(AuditEntry.from_result(self.result))


def uninstall(
    name: str,
    version: str,
    prefix: Path,
    *,
    installer: Installer | None = None,
    locks: PackageLocks | None = None,
    audit: AuditWriter | None = None,
) -> list[Path]:
    """Remove an installed (name, version) under the package lock.

    Raises:
        NotInstalledError: Nothing recorded for (name, version).
    """
    locks = locks or default_locks
    installer = installer or Installer(locks)
    start = time.monotonic()
    removed: list[Path] = []
    error: CellarError | None = None
    try:
        with locks.hold(name):
            removed = installer.uninstall(name, version, Path(prefix))
        return removed
    except CellarError as e:
        error = e
        raise
    finally:
        if audit is not None:
            audit.write(AuditEntry(
                run_id=generate_run_id(),
                operation="uninstall",
                formula=name,
                version=version,
                prefix=str(prefix),
                status="failed" if error else "done",
                files=[str(p) for p in removed],
                duration_ms=int((time.monotonic() - start) * 1000),
                errors=[error.details()] if error else [],
            ))
