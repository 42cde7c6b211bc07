"""
End-to-end: the bundled ``metadata`` formula, bumped to 0.1.9.

A new release is a data change: the URL and digest are replaced, the
version is inferred from the URL, and every directive that mentions
``{version}`` follows. Network and build are simulated; everything
else (workspace, extraction, install, records, audit) is real.
"""

import copy
from pathlib import Path

import pytest
import yaml

from cellar.adapters.mock import InlineFixtureStager, MockRunner, MockTransport, StaticToolProbe
from cellar.adapters.shell.probe import PathToolProbe
from cellar.core.config.loader import parse_manifest
from cellar.core.errors import IntegrityError
from cellar.core.models.command import Command, CommandResult
from cellar.core.models.pipeline import PipelineState
from cellar.core.models.settings import Settings
from cellar.core.reliability.locks import PackageLocks
from cellar.core.services.formula.execution.builder import Builder
from cellar.core.services.formula.orchestration import Pipeline

URL = "https://github.com/zmwangx/metadata/archive/v0.1.9.tar.gz"

FFPROBE_STYLE_OUTPUT = """\
Filename:               test.mp3
File size:              4.2 KiB
Container format:       MP3 (MPEG audio layer 3)
Duration:               00:00:01.04
#0: Audio, mp3, 44100 Hz, mono
"""


@pytest.fixture
def source_archive(make_tar) -> bytes:
    return make_tar(
        {"Makefile": "release:\n\tcargo build --release\n", "src/main.rs": "fn main() {}\n"},
        top="metadata-0.1.9",
    )


@pytest.fixture
def formula_data(project_root: Path, source_archive: bytes, digest_of) -> dict:
    data = yaml.safe_load((project_root / "formulae" / "metadata.yml").read_text())["formula"]
    data = copy.deepcopy(data)
    data["source"] = {"url": URL, "sha256": digest_of(source_archive)}
    return data


def make_release(cmd: Command) -> CommandResult:
    dist = Path(cmd.cwd) / "dist" / "v0.1.9"
    dist.mkdir(parents=True)
    (dist / "metadata").write_text("#!/bin/sh\n")
    (dist / "metadata.1").write_text(".TH METADATA 1\n")
    return CommandResult.success(output="Finished release [optimized] target(s)\n")


def metadata_binary(cmd: Command) -> CommandResult:
    staged = Path(cmd.cwd) / cmd.argv[1]
    if not staged.is_file():
        return CommandResult.failure(1, output=f"{cmd.argv[1]}: No such file or directory\n")
    return CommandResult.success(output=FFPROBE_STYLE_OUTPUT)


@pytest.fixture
def runner() -> MockRunner:
    r = MockRunner()
    r.on("make", make_release)
    r.on("metadata", metadata_binary)
    return r


@pytest.fixture
def pipeline_for(tmp_path, source_archive, runner):
    work = tmp_path / "work"
    settings = Settings(work_root=str(work), audit_log=str(tmp_path / "audit.ndjson"))

    def _make(manifest, prefix):
        return Pipeline.from_settings(
            manifest,
            prefix,
            settings,
            transport=MockTransport({URL: source_archive}),
            runner=runner,
            probe=StaticToolProbe({"pkg-config", "cargo", "make"}),
            fixtures=InlineFixtureStager({"test.mp3": b"ID3\x03\x00" + b"\xff\xfb" * 64}),
            locks=PackageLocks(),
        )

    _make.work = work  # type: ignore[attr-defined]
    return _make


class TestMetadataRelease:
    def test_reaches_done_with_two_recorded_paths(self, formula_data, pipeline_for, prefix, runner):
        manifest = parse_manifest(formula_data)
        assert manifest.version == "0.1.9"

        result = pipeline_for(manifest, prefix).run()

        assert result.state == PipelineState.DONE, result.error
        files = result.record.files
        assert len(files) == 2
        root = prefix.resolve()
        assert files == [
            str(root / "bin" / "metadata"),
            str(root / "share" / "man" / "man1" / "metadata.1"),
        ]
        assert [c.argv[0] for c in runner.call_log] == ["make", files[0]]
        assert runner.call_log[1].argv[1] == "test.mp3"
        assert list(pipeline_for.work.iterdir()) == []

    def test_altered_digest_fails_at_fetching(self, formula_data, pipeline_for, prefix, runner):
        data = copy.deepcopy(formula_data)
        digest = data["source"]["sha256"]
        data["source"]["sha256"] = digest[:-1] + ("0" if digest[-1] != "0" else "1")

        result = pipeline_for(parse_manifest(data), prefix).run()

        assert result.state == PipelineState.FAILED
        assert result.failed_stage == PipelineState.FETCHING
        assert isinstance(result.error, IntegrityError)
        assert runner.call_count == 0
        assert list(pipeline_for.work.iterdir()) == []
        assert not prefix.exists() or not any(p.is_file() for p in prefix.rglob("*"))

    def test_build_dependencies_are_executables(self, formula_data, tmp_path, runner):
        bin_dir = tmp_path / "toolchain"
        bin_dir.mkdir()
        for tool in ("pkg-config", "rustc", "cargo", "make"):
            exe = bin_dir / tool
            exe.write_text("#!/bin/sh\n")
            exe.chmod(0o755)

        manifest = parse_manifest(formula_data)
        Builder(runner, PathToolProbe(path=str(bin_dir))).check_dependencies(manifest)

    def test_missing_toolchain_reported_in_full(self, formula_data, tmp_path, source_archive, runner):
        manifest = parse_manifest(formula_data)
        pipeline = Pipeline.from_settings(
            manifest,
            tmp_path / "prefix",
            Settings(work_root=str(tmp_path / "work")),
            transport=MockTransport({URL: source_archive}),
            runner=runner,
            probe=StaticToolProbe(),
            fixtures=InlineFixtureStager(),
            locks=PackageLocks(),
        )
        result = pipeline.run()
        assert result.failed_stage == PipelineState.BUILDING
        assert result.error.details()["missing"] == ["cargo", "make", "pkg-config"]
