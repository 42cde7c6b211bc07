"""
Package locks — one mutex per package name.

Installs of the same package name (any version) must not interleave.
The orchestrator holds the lock from INSTALLING through VERIFYING, so
a second install of the same name sees either the first one's full
record or nothing at all.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

logger = logging.getLogger(__name__)


class LockTimeout(TimeoutError):
    """A package lock could not be acquired in time."""


class PackageLocks:
    """Registry of named locks, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def _get(self, name: str) -> threading.Lock:
        """Get or create the lock for a package name."""
        with self._guard:
            if name not in self._locks:
                self._locks[name] = threading.Lock()
            return self._locks[name]

    def locked(self, name: str) -> bool:
        return self._get(name).locked()

    @contextmanager
    def hold(self, name: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the lock for ``name`` for the duration of the block.

        Raises:
            LockTimeout: If ``timeout`` elapses before the lock is free.
        """
        lock = self._get(name)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise LockTimeout(f"Timed out waiting for package lock '{name}'")
        logger.debug("Package lock acquired: %s", name)
        try:
            yield
        finally:
            lock.release()
            logger.debug("Package lock released: %s", name)


# Process-wide registry used when a pipeline is not given its own.
default_locks = PackageLocks()
