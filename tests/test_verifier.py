"""
Tests for the verify stage — fixtures, exit status, output matching.
"""

import copy
from pathlib import Path

import pytest

from cellar.adapters.mock import InlineFixtureStager, MockRunner
from cellar.core.config.loader import parse_manifest
from cellar.core.errors import AcceptanceTestFailedError, FixtureError
from cellar.core.models.command import Command, CommandResult
from cellar.core.services.formula.execution.verifier import Verifier


def _echo_fixture(cmd: Command) -> CommandResult:
    """Pretend to be a tool that reports on the file it is given."""
    staged = Path(cmd.cwd) / cmd.argv[1]
    return CommandResult.success(output=f"Hello, {staged.read_text()}")


class TestVerify:
    def test_passes_and_reports_match(self, hello_manifest, fixtures, prefix, work_root):
        runner = MockRunner()
        runner.on("hello", _echo_fixture)
        outcome = Verifier(runner, fixtures, work_root=work_root).verify(hello_manifest, prefix)
        assert outcome.matched == "Hello, world"
        assert outcome.command.argv == [str(prefix.resolve() / "bin" / "hello"), "greeting.txt"]

    def test_scratch_dir_removed(self, hello_manifest, fixtures, prefix, work_root, runner):
        Verifier(runner, fixtures, work_root=work_root).verify(hello_manifest, prefix)
        assert list(work_root.iterdir()) == []

    def test_pattern_mismatch(self, hello_manifest, fixtures, prefix, work_root):
        runner = MockRunner()
        runner.respond("hello", CommandResult.success(output="Goodbye\n"))
        with pytest.raises(AcceptanceTestFailedError) as exc:
            Verifier(runner, fixtures, work_root=work_root).verify(hello_manifest, prefix)
        err = exc.value
        assert err.output == "Goodbye\n"
        assert err.pattern == r"Hello,\s+world"
        assert err.exit_code == 0

    def test_unexpected_exit_status(self, hello_manifest, fixtures, prefix, work_root):
        runner = MockRunner()
        runner.respond("hello", CommandResult.failure(3, output="Hello, world\n"))
        with pytest.raises(AcceptanceTestFailedError, match="exited 3"):
            Verifier(runner, fixtures, work_root=work_root).verify(hello_manifest, prefix)

    def test_expected_non_zero_exit(self, hello_data, fixtures, prefix, work_root):
        data = copy.deepcopy(hello_data)
        data["test"]["expected_exit"] = 1
        runner = MockRunner()
        runner.respond("hello", CommandResult.failure(1, output="Hello, world\n"))
        Verifier(runner, fixtures, work_root=work_root).verify(parse_manifest(data), prefix)

    def test_timeout(self, hello_manifest, fixtures, prefix, work_root):
        runner = MockRunner()
        runner.respond("hello", CommandResult.timeout())
        with pytest.raises(AcceptanceTestFailedError, match="timed out"):
            Verifier(runner, fixtures, work_root=work_root).verify(hello_manifest, prefix)

    def test_multiline_pattern_spans_lines(self, hello_data, fixtures, prefix, work_root):
        data = copy.deepcopy(hello_data)
        data["test"]["expected_pattern"] = r"Filename:\s+greeting.txt.*Format:\s+text"
        output = "Filename:   greeting.txt\nSize: 6 B\nFormat:     text\n"
        runner = MockRunner()
        runner.respond("hello", CommandResult.success(output=output))

        with pytest.raises(AcceptanceTestFailedError):
            Verifier(runner, fixtures, work_root=work_root).verify(parse_manifest(data), prefix)

        data["test"]["multiline"] = True
        Verifier(runner, fixtures, work_root=work_root).verify(parse_manifest(data), prefix)

    def test_missing_fixture(self, hello_manifest, prefix, work_root, runner):
        with pytest.raises(FixtureError, match="greeting.txt"):
            Verifier(runner, InlineFixtureStager(), work_root=work_root).verify(
                hello_manifest, prefix
            )
        assert runner.call_count == 0
        assert list(work_root.iterdir()) == []
