"""
Record store — atomic read/write of installation records.

Records live in ``<prefix>/.cellar/records/<name>/<version>.json``. Name and
version are separate path components, since either may contain ``-``.
Writes are atomic (write to temp file, then rename) so a crash never
leaves a half-written record behind. Unlike the pipeline workspace,
records persist until ``uninstall`` consumes them.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from cellar.core.models.record import InstallationRecord

logger = logging.getLogger(__name__)

# Record directory (relative to the installation prefix)
RECORDS_DIR = ".cellar/records"


class RecordStore:
    """Installation records for one prefix."""

    def __init__(self, prefix: Path):
        self._prefix = prefix
        self._dir = prefix / RECORDS_DIR

    @property
    def directory(self) -> Path:
        return self._dir

    def path_for(self, name: str, version: str) -> Path:
        return self._dir / name / f"{version}.json"

    def load(self, name: str, version: str) -> InstallationRecord | None:
        """Load one record, or None if it doesn't exist or is corrupt."""
        return self._read(self.path_for(name, version))

    def save(self, record: InstallationRecord) -> Path:
        """Write a record atomically (temp file in the same dir, then rename)."""
        path = self.path_for(record.name, record.version)
        path.parent.mkdir(parents=True, exist_ok=True)

        content = json.dumps(record.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n"

        _fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".record_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with open(_fd, "w", encoding="utf-8") as f:
                f.write(content)
            tmp.replace(path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Record saved to %s", path)
        return path

    def delete(self, name: str, version: str) -> bool:
        path = self.path_for(name, version)
        if not path.is_file():
            return False
        path.unlink()
        if not any(path.parent.iterdir()):
            path.parent.rmdir()
        logger.debug("Record deleted: %s", path)
        return True

    def all(self) -> list[InstallationRecord]:
        """Every readable record in the prefix, sorted by name then version file."""
        if not self._dir.is_dir():
            return []
        records = []
        for f in sorted(self._dir.glob("*/*.json")):
            record = self._read(f)
            if record is not None:
                records.append(record)
        return records

    def owner_of(self, path: Path) -> InstallationRecord | None:
        """The record that lists ``path`` among its files, if any."""
        target = str(path)
        for record in self.all():
            if record.owns(target):
                return record
        return None

    def _read(self, path: Path) -> InstallationRecord | None:
        if not path.is_file():
            return None
        try:
            return InstallationRecord.model_validate(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, ValidationError, OSError) as e:
            logger.warning("Skipping unreadable record %s: %s", path, e)
            return None
