"""
L4 Execution — Install build outputs under a prefix, and remove them.

Installation is all-or-nothing. Every write goes through an
``_InstallTransaction``; if any directive fails (or the process is
interrupted) the transaction removes what it wrote, puts displaced
files back and prunes the directories it created, before the error
propagates. The installation record is saved last, so a record only
ever describes a complete install.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from cellar.core.errors import (
    ConflictError,
    InstallError,
    MissingArtifactError,
    NotInstalledError,
)
from cellar.core.models.manifest import Manifest
from cellar.core.models.record import InstallationRecord
from cellar.core.persistence.record_store import RecordStore
from cellar.core.reliability.locks import PackageLocks, default_locks
from cellar.core.services.formula.domain.paths import is_within
from cellar.core.services.formula.execution.workspace import SourceTree

logger = logging.getLogger(__name__)


class _InstallTransaction:
    """Tracks one install's side effects so they can be undone."""

    def __init__(self, prefix: Path, backup_dir: Path):
        self.prefix = prefix
        self.backup_dir = backup_dir
        self.written: list[Path] = []
        self.created_dirs: list[Path] = []
        self.backups: list[tuple[Path, Path]] = []   # (original, backup)

    def _ensure_parent(self, dest: Path) -> None:
        missing = []
        d = dest.parent
        while d != self.prefix and not d.exists():
            missing.append(d)
            d = d.parent
        for d in reversed(missing):
            d.mkdir()
            self.created_dirs.append(d)

    def displace(self, dest: Path) -> None:
        """Move an existing file aside so a reinstall can replace it."""
        self.backup_dir.mkdir(parents=True, exist_ok=True)
        backup = self.backup_dir / f"{len(self.backups)}-{dest.name}"
        shutil.move(str(dest), str(backup))
        self.backups.append((dest, backup))
        logger.debug("Displaced %s → %s", dest, backup)

    def copy(self, src: Path, dest: Path, mode: int) -> None:
        self._ensure_parent(dest)
        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
        os.close(fd)
        tmp = Path(tmp_name)
        try:
            shutil.copyfile(src, tmp)
            os.chmod(tmp, mode)
            os.replace(tmp, dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        self.written.append(dest)
        logger.debug("Installed %s (%o)", dest, mode)

    def rollback(self) -> None:
        for path in reversed(self.written):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Rollback could not remove %s: %s", path, e)
        for original, backup in reversed(self.backups):
            try:
                shutil.move(str(backup), str(original))
            except OSError as e:
                logger.error("Rollback could not restore %s: %s", original, e)
        for d in reversed(self.created_dirs):
            try:
                d.rmdir()
            except OSError:
                logger.debug("Leaving non-empty directory %s", d)
        logger.info("Rolled back %d installed file(s)", len(self.written))
        self.written.clear()

    def commit(self) -> None:
        for _original, backup in self.backups:
            backup.unlink(missing_ok=True)
        self.backups.clear()


def prefix_lock_name(prefix: Path) -> str:
    """Lock name guarding writes into one (resolved) prefix."""
    return f"prefix:{prefix}"


def _prune_empty_dirs(start: Path, stop: Path) -> None:
    """Remove empty directories from ``start`` upwards, never ``stop``."""
    d = start
    while d != stop and is_within(stop, d):
        try:
            d.rmdir()
        except OSError:
            break
        d = d.parent


class Installer:
    """Copy declared artifacts into category directories under a prefix.

    Installs into one prefix run one at a time (a named lock per resolved
    prefix), so the conflict check and the copies it allows cannot be
    interleaved with another package writing the same destination.
    """

    def __init__(self, locks: PackageLocks | None = None):
        self._locks = locks or default_locks

    def install(self, manifest: Manifest, tree: SourceTree, prefix: Path) -> InstallationRecord:
        """Install every directive of ``manifest`` from ``tree`` into ``prefix``.

        Raises:
            MissingArtifactError: A declared output was not built.
            ConflictError: A destination belongs to another package
                version, or to no package at all.
        """
        prefix.mkdir(parents=True, exist_ok=True)
        prefix = prefix.resolve()
        store = RecordStore(prefix)
        tx = _InstallTransaction(prefix, tree.backup)

        with self._locks.hold(prefix_lock_name(prefix)):
            try:
                try:
                    record = self._apply(manifest, tree, prefix, store, tx)
                except OSError as e:
                    raise InstallError(f"Cannot install {manifest.key}: {e}") from e
            except BaseException:
                tx.rollback()
                raise

        tx.commit()
        logger.info("Installed %s: %d file(s) under %s", manifest.key, len(record.files), prefix)
        return record

    def _apply(
        self,
        manifest: Manifest,
        tree: SourceTree,
        prefix: Path,
        store: RecordStore,
        tx: _InstallTransaction,
    ) -> InstallationRecord:
        for directive in manifest.install_directives:
            rel = manifest.artifact_path(directive)
            src = tree.root / rel
            if not src.is_file() or not is_within(tree.root, src):
                raise MissingArtifactError(rel)

            dest = manifest.destination(directive, prefix)
            if not is_within(prefix, dest):
                raise InstallError(f"Destination {dest} escapes the prefix {prefix}")

            if dest.exists() or dest.is_symlink():
                owner = store.owner_of(dest)
                if owner is None or owner.identity != manifest.identity:
                    raise ConflictError(str(dest), owner.key if owner else None)
                tx.displace(dest)

            tx.copy(src, dest, manifest.category_for(directive).mode)

        record = InstallationRecord(
            name=manifest.name,
            version=manifest.version,
            prefix=str(prefix),
            files=[str(p) for p in tx.written],
            dependencies=list(manifest.dependencies),
        )
        store.save(record)
        return record

    def uninstall(self, name: str, version: str, prefix: Path) -> list[Path]:
        """Remove the files listed in a record, then the record itself.

        Raises:
            NotInstalledError: No record for (name, version) in ``prefix``.
        """
        prefix = prefix.resolve()
        with self._locks.hold(prefix_lock_name(prefix)):
            return self._remove(name, version, prefix, RecordStore(prefix))

    def _remove(self, name: str, version: str, prefix: Path, store: RecordStore) -> list[Path]:
        record = store.load(name, version)
        if record is None:
            raise NotInstalledError(f"{name} {version} is not installed in {prefix}")

        removed: list[Path] = []
        for raw in reversed(record.files):
            path = Path(raw)
            if not is_within(prefix, path):
                logger.warning("Ignoring record entry outside the prefix: %s", path)
                continue
            if path.exists() or path.is_symlink():
                path.unlink()
                removed.append(path)
            else:
                logger.warning("Already gone: %s", path)
            _prune_empty_dirs(path.parent, prefix)

        store.delete(name, version)
        logger.info("Uninstalled %s %s: %d file(s) removed", name, version, len(removed))
        return removed

    def installed(self, prefix: Path) -> list[InstallationRecord]:
        """All installation records in ``prefix``."""
        return RecordStore(prefix.resolve()).all()
