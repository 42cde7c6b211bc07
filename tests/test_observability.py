"""
Tests for observability — logging setup.
"""

import logging

import pytest

from cellar.core.observability.logging_config import (
    RunContextFilter,
    _parse_level,
    bind_run,
    current_run,
    setup_logging,
)


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    def test_console_level(self, restore_root_logger):
        setup_logging(level="INFO")
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1

    def test_file_handler_lowers_effective_level(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "cellar.log"
        setup_logging(level="WARNING", log_file=str(log_file), log_file_level="DEBUG")
        assert restore_root_logger.level == logging.DEBUG

        logging.getLogger("cellar.test").debug("fetched %d bytes", 42)
        for h in restore_root_logger.handlers:
            h.flush()
        assert "fetched 42 bytes" in log_file.read_text()
        for h in restore_root_logger.handlers:
            h.close()

    def test_third_party_quieted(self, restore_root_logger):
        setup_logging(level="INFO", quiet_third_party=True)
        assert logging.getLogger("urllib3").level == logging.WARNING


class TestParseLevel:
    @pytest.mark.parametrize("raw,expected", [
        ("debug", logging.DEBUG),
        ("ERROR", logging.ERROR),
        (None, logging.WARNING),
        ("nonsense", logging.WARNING),
    ])
    def test_levels(self, raw, expected):
        assert _parse_level(raw) == expected


class TestRunContext:
    def test_bind_and_reset(self):
        assert current_run() == "-"
        with bind_run("run-abc"):
            assert current_run() == "run-abc"
        assert current_run() == "-"

    def test_filter_stamps_records(self):
        record = logging.LogRecord("cellar", logging.INFO, __file__, 1, "msg", None, None)
        with bind_run("run-xyz"):
            assert RunContextFilter().filter(record)
        assert record.run_id == "run-xyz"

    def test_run_id_in_log_file(self, restore_root_logger, tmp_path):
        log_file = tmp_path / "cellar.log"
        setup_logging(level="ERROR", log_file=str(log_file), log_file_level="INFO")
        with bind_run("run-123"):
            logging.getLogger("cellar.core").info("fetching")
        for h in restore_root_logger.handlers:
            h.flush()
            h.close()
        assert "run-123" in log_file.read_text()
