"""
Tests for persistence — installation records and the audit ledger.
"""

import json
from pathlib import Path

from cellar.core.models.record import InstallationRecord
from cellar.core.persistence.audit import AuditEntry, AuditWriter
from cellar.core.persistence.record_store import RecordStore


def _record(prefix: Path, version: str = "1.0", files=None) -> InstallationRecord:
    return InstallationRecord(
        name="hello",
        version=version,
        prefix=str(prefix),
        files=files if files is not None else [str(prefix / "bin" / "hello")],
    )


class TestRecordStore:
    def test_round_trip(self, tmp_path):
        store = RecordStore(tmp_path)
        record = _record(tmp_path)
        path = store.save(record)
        assert path == tmp_path / ".cellar" / "records" / "hello" / "1.0.json"
        assert store.load("hello", "1.0") == record

    def test_no_temp_files_left(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record(tmp_path))
        assert [p.name for p in (store.directory / "hello").iterdir()] == ["1.0.json"]

    def test_missing_record(self, tmp_path):
        assert RecordStore(tmp_path).load("hello", "1.0") is None

    def test_corrupt_record_skipped(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record(tmp_path))
        (store.directory / "broken").mkdir()
        (store.directory / "broken" / "1.0.json").write_text("{not json")
        assert [r.key for r in store.all()] == ["hello-1.0"]

    def test_owner_of(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record(tmp_path))
        assert store.owner_of(tmp_path / "bin" / "hello").key == "hello-1.0"
        assert store.owner_of(tmp_path / "bin" / "other") is None

    def test_delete(self, tmp_path):
        store = RecordStore(tmp_path)
        store.save(_record(tmp_path))
        assert store.delete("hello", "1.0")
        assert not store.delete("hello", "1.0")
        assert store.all() == []
        assert not (store.directory / "hello").exists()

    def test_dashed_names_and_versions_do_not_collide(self, tmp_path):
        store = RecordStore(tmp_path)
        first = _record(tmp_path, version="2.0").model_copy(update={"name": "foo-1.0"})
        second = _record(tmp_path, version="1.0-2.0").model_copy(update={"name": "foo"})
        assert store.save(first) != store.save(second)
        assert store.load("foo-1.0", "2.0") == first
        assert store.load("foo", "1.0-2.0") == second
        assert {r.identity for r in store.all()} == {("foo-1.0", "2.0"), ("foo", "1.0-2.0")}

    def test_json_layout(self, tmp_path):
        path = RecordStore(tmp_path).save(_record(tmp_path))
        data = json.loads(path.read_text())
        assert data["schema_version"] == 1
        assert data["files"] == [str(tmp_path / "bin" / "hello")]


class TestAuditWriter:
    def test_append_and_read(self, tmp_path):
        writer = AuditWriter(tmp_path / "logs" / "audit.ndjson")
        writer.write(AuditEntry(run_id="run-1", formula="hello", status="done"))
        writer.write(AuditEntry(run_id="run-2", formula="hello", status="failed",
                                failed_stage="fetching"))
        entries = writer.read_all()
        assert [e.run_id for e in entries] == ["run-1", "run-2"]
        assert entries[1].failed_stage == "fetching"
        assert len(writer.path.read_text().splitlines()) == 2

    def test_read_recent(self, tmp_path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        for i in range(5):
            writer.write(AuditEntry(run_id=f"run-{i}"))
        assert [e.run_id for e in writer.read_recent(2)] == ["run-3", "run-4"]

    def test_corrupt_line_skipped(self, tmp_path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        writer.write(AuditEntry(run_id="ok"))
        with writer.path.open("a") as f:
            f.write("garbage\n")
        assert [e.run_id for e in writer.read_all()] == ["ok"]

    def test_missing_ledger(self, tmp_path):
        assert AuditWriter(tmp_path / "none.ndjson").read_all() == []

    def test_history_filters_by_formula(self, tmp_path):
        writer = AuditWriter(tmp_path / "audit.ndjson")
        writer.write(AuditEntry(run_id="a", formula="hello", version="1.0"))
        writer.write(AuditEntry(run_id="b", formula="other", version="1.0"))
        writer.write(AuditEntry(run_id="c", formula="hello", version="2.0"))
        assert [e.run_id for e in writer.history("hello")] == ["a", "c"]
        assert [e.run_id for e in writer.history("hello", "2.0")] == ["c"]

    def test_from_result(self):
        from cellar.core.errors import IntegrityError
        from cellar.core.models.pipeline import PipelineResult, PipelineState

        result = PipelineResult(
            run_id="run-1", name="hello", version="1.0", prefix="/p",
            state=PipelineState.FAILED, failed_stage=PipelineState.FETCHING,
            error=IntegrityError(url="u", algorithm="sha256", expected="a", actual="b"),
            transitions=[PipelineState.PENDING, PipelineState.FETCHING, PipelineState.FAILED],
        )
        entry = AuditEntry.from_result(result)
        assert entry.status == "failed"
        assert entry.failed_stage == "fetching"
        assert entry.errors[0]["type"] == "IntegrityError"
        assert entry.files == []
