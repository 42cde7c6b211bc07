"""
L1 Domain — Version tokens (pure).

Parses and orders semver-like version strings and infers a version
from a source URL. No I/O.
"""

from __future__ import annotations

import functools
import re
from urllib.parse import urlparse

_VERSION_RE = re.compile(
    r"^v?(?P<release>\d+(?:\.\d+)*)"
    r"(?:(?P<sep>[-+])(?P<suffix>[0-9A-Za-z]+(?:[.-][0-9A-Za-z]+)*))?$"
)

_ARCHIVE_SUFFIXES = (
    ".tar.gz", ".tar.bz2", ".tar.xz", ".tgz", ".tbz2", ".txz", ".tar", ".zip",
)

_URL_VERSION_RE = re.compile(
    r"(\d+(?:\.\d+)+(?:-(?:rc|alpha|beta|pre)\.?\d*)?)$",
    re.IGNORECASE,
)


def _suffix_key(suffix: str) -> tuple:
    """Ordering key for a pre-release suffix: numbers sort before words."""
    key = []
    for part in re.split(r"[.-]", suffix):
        if part.isdigit():
            key.append((0, int(part), ""))
        else:
            key.append((1, 0, part))
    return tuple(key)


@functools.total_ordering
class Version:
    """An ordered, comparable version token.

    ``1.2`` and ``1.2.0`` compare equal. A ``-`` suffix marks a
    pre-release and sorts before the plain release; a ``+`` suffix is
    build metadata and does not affect ordering.
    """

    __slots__ = ("raw", "release", "prerelease", "build")

    def __init__(self, raw: str):
        m = _VERSION_RE.match(raw.strip()) if isinstance(raw, str) else None
        if m is None:
            raise ValueError(f"Not a well-formed version: {raw!r}")
        self.raw = raw.strip().lstrip("v")
        self.release = tuple(int(x) for x in m.group("release").split("."))
        sep, suffix = m.group("sep"), m.group("suffix")
        self.prerelease = suffix if sep == "-" else ""
        self.build = suffix if sep == "+" else ""

    @classmethod
    def is_valid(cls, raw: str) -> bool:
        return isinstance(raw, str) and _VERSION_RE.match(raw.strip()) is not None

    def _key(self) -> tuple:
        release = list(self.release)
        while len(release) > 1 and release[-1] == 0:
            release.pop()
        if self.prerelease:
            return (tuple(release), 0, _suffix_key(self.prerelease))
        return (tuple(release), 1, ())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, str):
            if not Version.is_valid(other):
                return NotImplemented
            other = Version(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if isinstance(other, str):
            if not Version.is_valid(other):
                return NotImplemented
            other = Version(other)
        if not isinstance(other, Version):
            return NotImplemented
        return self._key() < other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.raw

    def __repr__(self) -> str:
        return f"Version({self.raw!r})"


def infer_version_from_url(url: str) -> str | None:
    """Guess the version from an archive URL.

    Examples::

        https://github.com/zmwangx/metadata/archive/v0.1.0.tar.gz  → "0.1.0"
        https://example.org/dl/tool-2.4.1.zip                      → "2.4.1"

    Returns:
        The version string, or ``None`` if the basename carries none.
    """
    name = urlparse(url).path.rsplit("/", 1)[-1]
    lowered = name.lower()
    for suffix in _ARCHIVE_SUFFIXES:
        if lowered.endswith(suffix):
            name = name[: -len(suffix)]
            break
    m = _URL_VERSION_RE.search(name)
    return m.group(1) if m else None
