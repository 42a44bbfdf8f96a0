"""Logging and output utilities for aw-export-solidtime."""

import json
import logging
import os
import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

from termcolor import colored

from .utils import ts2strtime

# Extra record attributes picked up by StructuredFormatter
CONTEXT_FIELDS = ("project_id", "remote_id", "slice_start", "slice_end")


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs structured logs with the tracker context.
    Can output in JSON format for analysis.
    """

    def __init__(self, use_json: bool = False, run_mode: dict = None) -> None:
        super().__init__()
        self.use_json = use_json
        self.run_mode = run_mode or {}

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if self.run_mode:
            log_data["run_mode"] = self.run_mode

        for key in CONTEXT_FIELDS:
            if hasattr(record, key):
                val = getattr(record, key)
                if isinstance(val, datetime):
                    log_data[key] = val.isoformat()
                elif isinstance(val, timedelta):
                    log_data[key] = f"{val.total_seconds():.1f}s"
                else:
                    log_data[key] = str(val)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.use_json:
            return json.dumps(log_data)
        return self._format_human(log_data, record)

    def _format_human(self, log_data: dict, record: logging.LogRecord) -> str:
        """Format log data in a human-readable way."""
        now = datetime.now().strftime("%H:%M:%S")
        slice_start = getattr(record, "slice_start", None)
        slice_end = getattr(record, "slice_end", None)

        ts_prefix = now
        if slice_start:
            ts_prefix = f"{now} / {ts2strtime(slice_start)}-{ts2strtime(slice_end)}"

        msg = log_data["message"]
        if "remote_id" in log_data:
            msg = f"{msg} (entry: {log_data['remote_id']})"
        if "exception" in log_data:
            msg = f"{msg}\n{log_data['exception']}"

        return f"{ts_prefix}: {msg}"


# (color, attrs) per level; levels between entries use the next lower one
LEVEL_STYLES = (
    (logging.CRITICAL, "red", ["bold"]),
    (logging.ERROR, "red", None),
    (logging.WARNING, "yellow", None),
    (logging.INFO, None, None),
    (logging.DEBUG, "dark_grey", None),
)


def level_style(levelno: int) -> tuple[str | None, list | None]:
    for threshold, color, attrs in LEVEL_STYLES:
        if levelno >= threshold:
            return color, attrs
    return None, None


class ColoredConsoleHandler(logging.StreamHandler):
    """Console handler coloring each line by its level; INFO stays plain."""

    def format(self, record: logging.LogRecord) -> str:
        color, attrs = level_style(record.levelno)
        return colored(super().format(record), color, attrs=attrs)


def get_default_log_file(json_format: bool) -> Path:
    """Return the default log file path in the user's data directory."""
    data_home = os.environ.get("XDG_DATA_HOME")
    data_dir = Path(data_home) if data_home else Path.home() / ".local" / "share"

    log_dir = data_dir / "aw-export-solidtime"
    log_dir.mkdir(parents=True, exist_ok=True)

    json_postfix = ".json" if json_format else ""
    return log_dir / f"aw-export-solidtime{json_postfix}.log"


def setup_logging(
    json_format: bool = False,
    log_level: int = logging.DEBUG,
    console_log_level: int = logging.ERROR,
    log_file: str | Path | None = None,
    run_mode: dict = None,
) -> None:
    """
    Set up the logging system.

    Args:
        json_format: If True, write the log file in JSON format
        log_level: File logging level (0 disables the file log)
        console_log_level: Console logging level (0 disables console logging)
        log_file: Optional file path to write logs to
        run_mode: Optional dict with run mode info (subcommand, dry_run, ...) added to every record
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(min(level for level in (log_level, console_log_level, logging.CRITICAL) if level))

    root_logger.handlers.clear()

    if log_file and log_level:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(log_level)
        file_handler.setFormatter(StructuredFormatter(use_json=json_format, run_mode=run_mode))
        root_logger.addHandler(file_handler)
    if console_log_level:
        console_handler = ColoredConsoleHandler(sys.stdout)
        console_handler.setLevel(console_log_level)
        console_handler.setFormatter(StructuredFormatter(run_mode=run_mode))
        root_logger.addHandler(console_handler)


def user_output(msg: str, color: str = None, attrs: list = None) -> None:
    """Print program output (not logging), optionally colored."""
    print(colored(msg, color, attrs=attrs))
