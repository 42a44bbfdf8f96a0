"""Configuration validation for aw-export-solidtime.

Validates the loaded TOML configuration and warns about potential issues.
Missing required values are reported by Settings.from_config instead, since
some of them may come from the environment or the command line.
"""

import logging
import re
from typing import Any

logger = logging.getLogger(__name__)


class ConfigValidator:
    """Validates configuration dictionaries."""

    KNOWN_TOP_LEVEL = {"solidtime", "tracking", "activity"}

    # Known keys per section with their types and optional ranges
    SECTION_PARAMS = {
        "solidtime": {
            "api_url": {"type": str},
            "api_key": {"type": str},
            "organization_id": {"type": str},
            "project_name": {"type": str},
        },
        "tracking": {
            "beat_timeout_ms": {"type": (int, float), "min": 1},
            "max_time_span_for_open_slice_ms": {"type": (int, float), "min": 0},
            "description": {"type": str},
            "billable": {"type": bool},
        },
        "activity": {
            "editor_clients": {"type": list},
            "editor_apps": {"type": list},
            "excluded_schemes": {"type": list},
            "project_regexp": {"type": str},
            "change_event_throttle_ms": {"type": (int, float), "min": 0},
            "poll_interval": {"type": (int, float), "min": 0.1},
        },
    }

    def __init__(self):
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def validate(self, config: dict[str, Any]) -> tuple[list[str], list[str]]:
        """Validate the configuration.

        Args:
            config: The configuration dictionary to validate

        Returns:
            Tuple of (errors, warnings) lists
        """
        self.errors = []
        self.warnings = []

        self._validate_top_level(config)
        for section in self.SECTION_PARAMS:
            if section in config:
                self._validate_section(section, config[section])

        self._validate_api_url(config.get("solidtime", {}))
        self._validate_timing(config.get("tracking", {}), config.get("activity", {}))
        self._validate_activity(config.get("activity", {}))

        return self.errors, self.warnings

    def _validate_top_level(self, config: dict) -> None:
        for key in config:
            if key not in self.KNOWN_TOP_LEVEL:
                self.warnings.append(f"Unknown top-level config key: '{key}'")

    def _validate_section(self, section: str, values: Any) -> None:
        if not isinstance(values, dict):
            self.errors.append(f"'{section}' section must be a dictionary")
            return

        params = self.SECTION_PARAMS[section]
        for key, value in values.items():
            if key not in params:
                self.warnings.append(f"Unknown parameter: '{section}.{key}'")
                continue

            rule = params[key]
            # bool is an int subclass; only accept it where a bool is expected
            wrong_bool = isinstance(value, bool) and rule["type"] is not bool
            if wrong_bool or not isinstance(value, rule["type"]):
                expected = (
                    " or ".join(t.__name__ for t in rule["type"])
                    if isinstance(rule["type"], tuple)
                    else rule["type"].__name__
                )
                self.errors.append(
                    f"{section}.{key} must be {expected}, got {type(value).__name__}"
                )
                continue

            if "min" in rule and value < rule["min"]:
                self.errors.append(f"{section}.{key} must be >= {rule['min']}, got {value}")
            if "max" in rule and value > rule["max"]:
                self.errors.append(f"{section}.{key} must be <= {rule['max']}, got {value}")

            if rule["type"] is list and not all(isinstance(v, str) for v in value):
                self.errors.append(f"{section}.{key} must be a list of strings")

    def _validate_api_url(self, solidtime: Any) -> None:
        if not isinstance(solidtime, dict):
            return
        api_url = solidtime.get("api_url")
        if isinstance(api_url, str) and api_url:
            if not re.match(r"^https?://", api_url):
                self.errors.append(f"solidtime.api_url must start with http:// or https://, got {api_url}")
            elif api_url.rstrip("/").endswith("/api/v1"):
                self.warnings.append("solidtime.api_url should not include '/api/v1', it is added automatically")

    def _validate_timing(self, tracking: Any, activity: Any) -> None:
        if not isinstance(tracking, dict) or not isinstance(activity, dict):
            return
        beat = tracking.get("beat_timeout_ms")
        span = tracking.get("max_time_span_for_open_slice_ms")
        poll = activity.get("poll_interval")
        numeric = (int, float)
        if isinstance(beat, numeric) and isinstance(span, numeric) and span < beat:
            self.warnings.append(
                "tracking.max_time_span_for_open_slice_ms is shorter than tracking.beat_timeout_ms - "
                "entries will rarely be continued"
            )
        if isinstance(beat, numeric) and isinstance(poll, numeric) and poll * 1000 > beat:
            self.warnings.append(
                "activity.poll_interval is longer than tracking.beat_timeout_ms - beats will be late"
            )

    def _validate_activity(self, activity: Any) -> None:
        if not isinstance(activity, dict):
            return
        pattern = activity.get("project_regexp")
        if isinstance(pattern, str) and pattern:
            try:
                re.compile(pattern)
            except re.error as e:
                self.errors.append(f"activity.project_regexp has invalid regex: {e}")
            if pattern.endswith("|"):
                self.warnings.append("activity.project_regexp ends with '|' which matches empty string")

        clients = activity.get("editor_clients")
        if isinstance(clients, list) and len(clients) == 0:
            self.warnings.append("activity.editor_clients is empty - no activity will ever be seen")


def validate_config(config: dict[str, Any]) -> tuple[list[str], list[str]]:
    """Validate configuration and return errors and warnings.

    Args:
        config: The configuration dictionary to validate

    Returns:
        Tuple of (errors, warnings) lists
    """
    validator = ConfigValidator()
    return validator.validate(config)


def log_validation_results(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        logger.warning(f"Config warning: {warning}")
    for error in errors:
        logger.error(f"Config error: {error}")


def validate_and_warn(config: dict[str, Any]) -> bool:
    """Validate configuration and log warnings/errors.

    Returns:
        True if configuration is valid (no errors), False otherwise
    """
    errors, warnings = validate_config(config)
    log_validation_results(errors, warnings)
    return len(errors) == 0
