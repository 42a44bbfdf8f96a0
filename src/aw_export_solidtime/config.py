import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import toml
from aw_core.config import load_config_toml

APP_NAME = "aw-export-solidtime"

default_config = """
[solidtime]
api_url = "https://app.solidtime.io"
# Personal access token; the SOLIDTIME_API_KEY environment variable takes precedence
api_key = ""
organization_id = ""
# Project to track; created in Solidtime if it does not exist yet
project_name = ""

[tracking]
# Cadence of the sync beat. Activity older than this suppresses the beat.
beat_timeout_ms = 60000
# How long ago an entry may have ended and still be continued
max_time_span_for_open_slice_ms = 900000
description = "Coding time from the editor"
billable = true

[activity]
# ActivityWatch clients whose events count as editing activity
editor_clients = [
    "aw-watcher-vscode",
    "aw-watcher-vim",
    "aw-watcher-jetbrains",
    "aw-watcher-emacs",
    "aw-watcher-sublime",
]
# Window apps that count as "the editor has focus"
editor_apps = [
    "code",
    "code-oss",
    "codium",
    "vscodium",
    "emacs",
    "gvim",
    "nvim-qt",
    "jetbrains-idea",
    "jetbrains-pycharm",
    "sublime_text",
]
# Files with these URI schemes are not real edits (diff views, output panels)
excluded_schemes = [ "git", "gitfs", "output", "vscode" ]
# Regexp matched against the editor's project path; defaults to the project name
project_regexp = ""
change_event_throttle_ms = 1000
# Seconds between two polls of ActivityWatch
poll_interval = 5.0
""".strip()

ENV_OVERRIDES = {
    "SOLIDTIME_API_URL": ("solidtime", "api_url"),
    "SOLIDTIME_API_KEY": ("solidtime", "api_key"),
    "SOLIDTIME_ORGANIZATION_ID": ("solidtime", "organization_id"),
    "SOLIDTIME_PROJECT": ("solidtime", "project_name"),
}

REQUIRED_FIELDS = {
    ("solidtime", "api_url"): "solidtime.api_url",
    ("solidtime", "api_key"): "solidtime.api_key (or SOLIDTIME_API_KEY)",
    ("solidtime", "organization_id"): "solidtime.organization_id",
    ("solidtime", "project_name"): "solidtime.project_name (or --project)",
    ("tracking", "beat_timeout_ms"): "tracking.beat_timeout_ms",
    ("tracking", "max_time_span_for_open_slice_ms"): "tracking.max_time_span_for_open_slice_ms",
}

config = load_config_toml(APP_NAME, default_config)


class ConfigurationError(Exception):
    """Required configuration is missing; the tracker must not start."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            f"Missing required configuration: {', '.join(missing)}. "
            f"Edit the {APP_NAME} config file or pass --config."
        )
        self.missing = missing


def load_custom_config(config_path):
    """Load config from a custom file path."""
    global config
    if config_path:
        config_path = Path(config_path)
        if config_path.exists():
            config = toml.load(config_path)
        else:
            raise FileNotFoundError(f"Config file not found: {config_path}")
    return config


@dataclass(frozen=True)
class Settings:
    """Typed view of the configuration, resolved once at startup."""

    api_url: str
    api_key: str
    organization_id: str
    project_name: str
    beat_timeout: timedelta
    max_time_span_for_open_slice: timedelta
    description: str = "Coding time from the editor"
    billable: bool = True
    editor_clients: list[str] = field(default_factory=list)
    editor_apps: list[str] = field(default_factory=list)
    excluded_schemes: list[str] = field(default_factory=list)
    project_regexp: str | None = None
    change_event_throttle: timedelta = timedelta(seconds=1)
    poll_interval: float = 5.0

    @classmethod
    def from_config(
        cls,
        config: Mapping[str, Any],
        environ: Mapping[str, str] | None = None,
        project_name: str | None = None,
    ) -> "Settings":
        """Build settings from a config mapping.

        Args:
            config: Parsed TOML configuration
            environ: Environment used for overrides (defaults to os.environ)
            project_name: Explicit project name, e.g. from the command line

        Raises:
            ConfigurationError: If any required field is missing or empty
        """
        environ = os.environ if environ is None else environ
        sections: dict[str, dict[str, Any]] = {
            name: dict(config.get(name) or {}) for name in ("solidtime", "tracking", "activity")
        }

        for var, (section, key) in ENV_OVERRIDES.items():
            if environ.get(var):
                sections[section][key] = environ[var]
        if project_name:
            sections["solidtime"]["project_name"] = project_name

        missing = [
            label
            for (section, key), label in REQUIRED_FIELDS.items()
            if not sections[section].get(key)
        ]
        if missing:
            raise ConfigurationError(missing)

        solidtime = sections["solidtime"]
        tracking = sections["tracking"]
        activity = sections["activity"]
        return cls(
            api_url=str(solidtime["api_url"]),
            api_key=str(solidtime["api_key"]),
            organization_id=str(solidtime["organization_id"]),
            project_name=str(solidtime["project_name"]),
            beat_timeout=timedelta(milliseconds=tracking["beat_timeout_ms"]),
            max_time_span_for_open_slice=timedelta(
                milliseconds=tracking["max_time_span_for_open_slice_ms"]
            ),
            description=str(tracking.get("description", "Coding time from the editor")),
            billable=bool(tracking.get("billable", True)),
            editor_clients=[str(c) for c in activity.get("editor_clients", [])],
            editor_apps=[str(a) for a in activity.get("editor_apps", [])],
            excluded_schemes=[str(s) for s in activity.get("excluded_schemes", [])],
            project_regexp=str(activity["project_regexp"]) if activity.get("project_regexp") else None,
            change_event_throttle=timedelta(
                milliseconds=activity.get("change_event_throttle_ms", 1000)
            ),
            poll_interval=float(activity.get("poll_interval", 5.0)),
        )
