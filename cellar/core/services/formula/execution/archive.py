"""
L4 Execution — Safe archive extraction.

Every entry is checked before anything is written: absolute names,
``..`` escapes, links pointing outside the destination, and device
or FIFO entries all abort the extraction with ``UnsafeArchiveError``.
Tar extraction then also runs through tarfile's ``data`` filter.
"""

from __future__ import annotations

import logging
import os
import posixpath
import tarfile
import zipfile
from pathlib import Path

from cellar.core.errors import FetchError, UnsafeArchiveError
from cellar.core.services.formula.domain.paths import is_within

logger = logging.getLogger(__name__)


def _check_name(name: str, dest: Path) -> None:
    if not name:
        raise UnsafeArchiveError(name, "empty entry name")
    if name.startswith(("/", "\\")) or (len(name) > 1 and name[1] == ":"):
        raise UnsafeArchiveError(name, "absolute path")
    if not is_within(dest, dest / name):
        raise UnsafeArchiveError(name)


def _check_tar_member(member: tarfile.TarInfo, dest: Path) -> None:
    _check_name(member.name, dest)

    if member.issym():
        if member.linkname.startswith("/"):
            raise UnsafeArchiveError(member.name, f"absolute symlink target {member.linkname}")
        target = dest / posixpath.dirname(member.name) / member.linkname
        if not is_within(dest, target):
            raise UnsafeArchiveError(member.name, f"symlink target {member.linkname} escapes")
    elif member.islnk():
        if not is_within(dest, dest / member.linkname):
            raise UnsafeArchiveError(member.name, f"hardlink target {member.linkname} escapes")
    elif member.isdev():
        raise UnsafeArchiveError(member.name, "device or FIFO entry")


def _extract_tar(archive: Path, dest: Path) -> int:
    with tarfile.open(archive) as tar:
        members = tar.getmembers()
        for member in members:
            _check_tar_member(member, dest)
        try:
            tar.extractall(dest, members=members, filter="data")
        except tarfile.FilterError as e:
            raise UnsafeArchiveError(e.tarinfo.name, str(e)) from e
    return len(members)


def _extract_zip(archive: Path, dest: Path) -> int:
    with zipfile.ZipFile(archive) as zf:
        infos = zf.infolist()
        for info in infos:
            _check_name(info.filename, dest)
        for info in infos:
            path = Path(zf.extract(info, dest))
            mode = (info.external_attr >> 16) & 0o777
            if mode and not info.is_dir():
                os.chmod(path, mode)
    return len(infos)


def extract_archive(archive: Path, dest: Path) -> Path:
    """Extract ``archive`` into ``dest`` and return the source root.

    The root is the single top-level directory when the archive has
    exactly one (the usual ``project-1.2.3/`` layout), else ``dest``.

    Raises:
        UnsafeArchiveError: If any entry would escape ``dest``.
        FetchError: If the file is not a readable tar or zip archive.
    """
    dest.mkdir(parents=True, exist_ok=True)

    try:
        if zipfile.is_zipfile(archive):
            count = _extract_zip(archive, dest)
        elif tarfile.is_tarfile(archive):
            count = _extract_tar(archive, dest)
        else:
            raise FetchError(f"Unsupported archive format: {archive.name}")
    except (tarfile.TarError, zipfile.BadZipFile, EOFError) as e:
        raise FetchError(f"Corrupt archive {archive.name}: {e}") from e
    except OSError as e:
        raise FetchError(f"Cannot extract {archive.name}: {e}") from e

    logger.debug("Extracted %d entries from %s", count, archive.name)

    entries = list(dest.iterdir())
    if len(entries) == 1 and entries[0].is_dir() and not entries[0].is_symlink():
        return entries[0]
    return dest
