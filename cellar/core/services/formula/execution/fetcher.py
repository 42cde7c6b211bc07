"""
L4 Execution — Fetch, verify and extract a formula's source.

Order matters: the digest is checked before extraction, so an archive
that fails verification is never unpacked, let alone built.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import BinaryIO

from cellar.adapters.base import SourceTransport
from cellar.core.errors import IntegrityError, NetworkError
from cellar.core.models.manifest import Manifest
from cellar.core.reliability.retry import RetryPolicy
from cellar.core.services.formula.domain.digest import digests_match, new_hasher
from cellar.core.services.formula.execution.archive import extract_archive
from cellar.core.services.formula.execution.workspace import (
    SourceTree,
    create_workspace,
    remove_workspace,
)

logger = logging.getLogger(__name__)


class _HashingWriter:
    """File wrapper that hashes everything written through it."""

    def __init__(self, fh: BinaryIO, algorithm: str):
        self._fh = fh
        self.hasher = new_hasher(algorithm)

    def write(self, data: bytes) -> int:
        self.hasher.update(data)
        return self._fh.write(data)


class Fetcher:
    """Download a manifest's archive into a fresh workspace.

    Args:
        transport: Adapter that retrieves URL bodies.
        retry: Policy for transient ``NetworkError`` failures.
        timeout: Per-request timeout in seconds.
        work_root: Parent directory for workspaces (None = system temp).
    """

    def __init__(
        self,
        transport: SourceTransport,
        *,
        retry: RetryPolicy | None = None,
        timeout: float = 60.0,
        work_root: Path | None = None,
    ):
        self._transport = transport
        self._retry = retry or RetryPolicy()
        self._timeout = timeout
        self._work_root = work_root

    def fetch(self, manifest: Manifest) -> SourceTree:
        """Fetch, verify and extract ``manifest.source``.

        Returns:
            SourceTree owning a new workspace. The caller must clean
            it up (it is a context manager).

        Raises:
            NetworkError: Transport failed on every attempt.
            IntegrityError: Digest mismatch. Never retried.
            UnsafeArchiveError: An entry would escape the workspace.
            FetchError: The archive is unreadable.
        """
        workspace = create_workspace(manifest.name, self._work_root)
        try:
            archive = workspace / "download" / manifest.source.archive_name
            actual = self._retry.call(
                lambda: self._download(manifest.source.url, archive, manifest.source.algorithm),
                retry_on=NetworkError,
                label=f"Fetching {manifest.source.url}",
            )

            if not digests_match(manifest.source.digest, actual):
                raise IntegrityError(
                    url=manifest.source.url,
                    algorithm=manifest.source.algorithm,
                    expected=manifest.source.digest.lower(),
                    actual=actual,
                )
            logger.info("Verified %s %s", manifest.source.algorithm, actual)

            root = extract_archive(archive, workspace / "src")
            return SourceTree(workspace=workspace, root=root, archive=archive, digest=actual)
        except BaseException:
            remove_workspace(workspace)
            raise

    def _download(self, url: str, dest: Path, algorithm: str) -> str:
        """One download attempt. Returns the hex digest of what was written."""
        logger.info("Fetching %s", url)
        with open(dest, "wb") as fh:
            writer = _HashingWriter(fh, algorithm)
            size = self._transport.download(url, writer, self._timeout)
        logger.debug("Fetched %d bytes into %s", size, dest)
        return writer.hasher.hexdigest()
