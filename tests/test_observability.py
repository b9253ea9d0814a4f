"""
Tests for logging configuration.
"""

import logging
from datetime import UTC, datetime
from pathlib import Path

import pytest

from k8s_diagnostic.core.observability.logging_config import (
    console_formatter,
    open_run_log,
    resolve_level,
    run_log_path,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestResolveLevel:
    def test_debug_wins(self):
        assert resolve_level(debug=True, verbose=True, quiet=True) == "DEBUG"

    def test_verbose_over_quiet(self):
        assert resolve_level(verbose=True, quiet=True) == "INFO"

    def test_quiet(self):
        assert resolve_level(quiet=True, env_level="DEBUG") == "ERROR"

    def test_env_over_config(self):
        assert resolve_level(env_level="info", config_level="ERROR") == "INFO"

    def test_config(self):
        assert resolve_level(config_level="error") == "ERROR"

    def test_default(self):
        assert resolve_level() == "WARNING"


class TestSetupLogging:
    def test_console_level(self):
        setup_logging("INFO")
        root = logging.getLogger()
        assert root.level == logging.INFO
        assert len(root.handlers) == 1

    def test_unknown_level_falls_back(self):
        setup_logging("LOUD")
        assert logging.getLogger().level == logging.WARNING

    def test_file_handler_lowers_root_level(self, tmp_path: Path):
        log_file = tmp_path / "run.log"
        setup_logging("WARNING", log_file=str(log_file))
        logging.getLogger("k8s_diagnostic.test").debug("hello file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert logging.getLogger().level == logging.DEBUG
        assert "hello file" in log_file.read_text()

    def test_console_stays_at_requested_level(self, tmp_path: Path):
        setup_logging("ERROR", log_file=str(tmp_path / "run.log"))
        console = logging.getLogger().handlers[0]
        assert isinstance(console, logging.StreamHandler)
        assert console.level == logging.ERROR

    def test_unopenable_file_keeps_existing_handlers(self, tmp_path: Path):
        setup_logging("INFO")
        before = logging.getLogger().handlers[:]
        with pytest.raises(OSError):
            setup_logging("INFO", log_file=str(tmp_path / "missing" / "run.log"))
        assert logging.getLogger().handlers == before


class TestConsoleFormatter:
    def _render(self, level: int) -> str:
        record = logging.LogRecord("k8s_diagnostic.x", logging.WARNING, __file__, 7, "hello", None, None)
        return console_formatter(level).format(record)

    def test_warning_is_bare_message(self):
        assert self._render(logging.WARNING) == "hello"

    def test_info_names_logger(self):
        assert "[k8s_diagnostic.x] hello" in self._render(logging.INFO)

    def test_debug_adds_line_number(self):
        assert "k8s_diagnostic.x:7  hello" in self._render(logging.DEBUG)


class TestRunLog:
    def test_path(self, tmp_path: Path):
        started = datetime(2026, 3, 1, 9, 5, 0, tzinfo=UTC)
        assert run_log_path(tmp_path, started) == (
            tmp_path / "logs" / "k8s-diagnostic-logs-20260301-090500.log"
        )

    def test_open_creates_directory(self, tmp_path: Path):
        path = open_run_log("WARNING", tmp_path / "results", datetime.now(UTC))
        assert path is not None
        assert path.parent.is_dir()

    def test_unwritable_returns_none(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        assert open_run_log("WARNING", blocker, datetime.now(UTC)) is None
