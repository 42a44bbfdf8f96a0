"""Tests for structured logging."""

import io
import json
import logging
import sys
from datetime import datetime

import pytest

from aw_export_solidtime.output import (
    ColoredConsoleHandler,
    StructuredFormatter,
    get_default_log_file,
    level_style,
    setup_logging,
)


def make_record(msg: str = "Created remote entry e1", **extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="aw_export_solidtime.tracker",
        level=logging.INFO,
        pathname="tracker.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in list(root.handlers):
        if isinstance(handler, (logging.FileHandler, ColoredConsoleHandler)):
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)


class TestStructuredFormatter:
    def test_json_contains_context(self) -> None:
        formatter = StructuredFormatter(use_json=True, run_mode={"subcommand": "run"})
        start = datetime(2025, 1, 6, 9, 0).astimezone()
        data = json.loads(
            formatter.format(make_record(project_id="p1", remote_id="e1", slice_start=start))
        )
        assert data["message"] == "Created remote entry e1"
        assert data["level"] == "INFO"
        assert data["project_id"] == "p1"
        assert data["remote_id"] == "e1"
        assert data["slice_start"] == start.isoformat()
        assert data["run_mode"] == {"subcommand": "run"}
        assert "slice_end" not in data

    def test_human_format(self) -> None:
        formatter = StructuredFormatter()
        start = datetime(2025, 1, 6, 9, 0).astimezone()
        line = formatter.format(make_record("Updated", remote_id="e1", slice_start=start))
        assert "09:00:00-XX:XX:XX" in line
        assert line.endswith("Updated (entry: e1)")

    def test_exception_included(self) -> None:
        formatter = StructuredFormatter(use_json=True)
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record()
            record.exc_info = sys.exc_info()
        data = json.loads(formatter.format(record))
        assert "RuntimeError: boom" in data["exception"]


class TestSetupLogging:
    def test_file_and_console_handlers(self, tmp_path, restore_root_logger) -> None:
        log_file = tmp_path / "test.log"
        setup_logging(
            json_format=True,
            log_level=logging.DEBUG,
            console_log_level=logging.WARNING,
            log_file=log_file,
        )
        assert restore_root_logger.level == logging.DEBUG
        assert len(restore_root_logger.handlers) == 2

        logging.getLogger("aw_export_solidtime.test").debug("hello", extra={"project_id": "p1"})
        for handler in restore_root_logger.handlers:
            handler.flush()
        line = json.loads(log_file.read_text().splitlines()[-1])
        assert line["message"] == "hello"
        assert line["project_id"] == "p1"

    def test_console_only(self, restore_root_logger) -> None:
        setup_logging(log_level=0, console_log_level=logging.INFO)
        assert restore_root_logger.level == logging.INFO
        assert len(restore_root_logger.handlers) == 1

    def test_default_log_file_honours_xdg(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path))
        path = get_default_log_file(json_format=True)
        assert path == tmp_path / "aw-export-solidtime" / "aw-export-solidtime.json.log"
        assert path.parent.is_dir()


class TestColoredConsoleHandler:
    def test_level_styles(self) -> None:
        assert level_style(logging.CRITICAL) == ("red", ["bold"])
        assert level_style(logging.ERROR) == ("red", None)
        assert level_style(logging.WARNING + 5) == ("yellow", None)
        assert level_style(logging.INFO) == (None, None)
        assert level_style(logging.DEBUG) == ("dark_grey", None)
        assert level_style(logging.NOTSET) == (None, None)

    def test_writes_one_line_per_record(self, monkeypatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        stream = io.StringIO()
        handler = ColoredConsoleHandler(stream)
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        warning = make_record("Beat failed")
        warning.levelno, warning.levelname = logging.WARNING, "WARNING"
        handler.emit(warning)
        handler.emit(make_record("Created remote entry e1"))
        assert stream.getvalue() == "WARNING Beat failed\nINFO Created remote entry e1\n"
