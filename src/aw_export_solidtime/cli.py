#!/usr/bin/env python3
"""
Command-line interface for aw-export-solidtime with subcommand structure.

Provides subcommands for the tracking agent and for inspecting the remote state:
run, status, organizations, validate.
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from . import config as config_module
from .activity import ActivityWatchSource, ProjectMatcher
from .agent import Agent
from .bootstrap import BootstrapError, bootstrap
from .config import ENV_OVERRIDES, ConfigurationError, Settings
from .config_validation import validate_and_warn, validate_config
from .notification import ConsoleStatus
from .output import get_default_log_file, setup_logging, user_output
from .reconcile import find_resumable_entry, todays_window
from .solidtime_client import SolidtimeClient
from .time_store import DryRunStore, StoreError
from .tracker import TimeTrackerService
from .utils import now, parse_datetime, ts2strtime

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        description="Track editor sessions from ActivityWatch as Solidtime time entries",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subcommands:
  run            Track activity and sync time entries (default)
  status         Show today's entries and whether the last one would be continued
  organizations  List the organizations the API key has access to
  validate       Validate configuration file

Examples:
  # Track the project configured in the config file
  %(prog)s run

  # Track a specific project without writing anything to Solidtime
  %(prog)s run --project my-repo --dry-run

  # What would happen on restart?
  %(prog)s status --project my-repo
        """,
    )

    parser.add_argument(
        "--config",
        metavar="FILE",
        type=Path,
        help="Path to configuration file (default: uses standard config locations)",
    )
    parser.add_argument(
        "--log-level",
        choices=["NONE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="DEBUG",
        help="Set file logging level (default: DEBUG)",
    )
    parser.add_argument(
        "--console-log-level",
        choices=["NONE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="WARNING",
        help="Set console logging level (default: WARNING)",
    )
    parser.add_argument(
        "--log-file",
        metavar="FILE",
        type=Path,
        help="Log file path (default: ~/.local/share/aw-export-solidtime/aw-export-solidtime.json.log)",
    )
    parser.add_argument(
        "--no-log-json", action="store_true", help="Do not output logs in JSON format"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Subcommand to run")

    # ===== RUN subcommand =====
    run_parser = subparsers.add_parser(
        "run", help="Track activity and sync time entries (default)"
    )
    run_parser.add_argument("--project", metavar="NAME", help="Project to track (overrides config)")
    run_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be written without modifying Solidtime",
    )
    run_parser.add_argument(
        "--once", action="store_true", help="Poll once, flush and exit"
    )
    run_parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output")
    run_parser.add_argument(
        "--quiet",
        "-q",
        action="store_true",
        help="Suppress all console output (for headless/systemd usage)",
    )
    run_parser.add_argument(
        "--test-data",
        metavar="FILE",
        type=Path,
        help="Read ActivityWatch buckets and events from a JSON file instead of the server",
    )

    # ===== STATUS subcommand =====
    status_parser = subparsers.add_parser(
        "status", help="Show today's entries and the reconciliation decision"
    )
    status_parser.add_argument("--project", metavar="NAME", help="Project to inspect (overrides config)")
    status_parser.add_argument(
        "--date",
        metavar="DATETIME",
        help="Reference time instead of now (e.g. 'yesterday 17:00')",
    )

    # ===== ORGANIZATIONS subcommand =====
    subparsers.add_parser("organizations", help="List organizations of the API key's user")

    # ===== VALIDATE subcommand =====
    subparsers.add_parser("validate", help="Validate configuration file")

    return parser


def configure_logging(args: argparse.Namespace, subcommand: str) -> None:
    """Configure logging based on command-line arguments."""
    log_level = getattr(logging, args.log_level, 0)
    console_log_level = getattr(logging, args.console_log_level, 0)

    if getattr(args, "verbose", False):
        console_log_level = logging.DEBUG

    if getattr(args, "quiet", False):
        console_log_level = logging.CRITICAL + 1

    log_file = None
    if args.log_file and log_level > 0:
        log_file = args.log_file
    elif log_level > 0:
        log_file = get_default_log_file(not args.no_log_json)

    run_mode = {
        "subcommand": subcommand,
        "dry_run": getattr(args, "dry_run", False),
        "test_data": getattr(args, "test_data", None) is not None,
        "once": getattr(args, "once", False),
    }

    setup_logging(
        json_format=not args.no_log_json,
        log_level=log_level,
        console_log_level=console_log_level,
        log_file=log_file,
        run_mode=run_mode,
    )


def load_config(args: argparse.Namespace) -> Any:
    if args.config:
        return config_module.load_custom_config(args.config)
    return config_module.config


def load_test_data(path: Path) -> dict:
    with open(path) as f:
        return json.load(f)


def api_credentials(config: Any, environ=None) -> tuple[str, str]:
    """Return (api_url, api_key) from config and environment.

    Raises:
        ConfigurationError: If either is missing
    """
    environ = os.environ if environ is None else environ
    solidtime = dict(config.get("solidtime") or {})
    for var, (section, key) in ENV_OVERRIDES.items():
        if section == "solidtime" and environ.get(var):
            solidtime[key] = environ[var]
    missing = [f"solidtime.{key}" for key in ("api_url", "api_key") if not solidtime.get(key)]
    if missing:
        raise ConfigurationError(missing)
    return str(solidtime["api_url"]), str(solidtime["api_key"])


def validate_run_args(args: argparse.Namespace) -> str | None:
    if args.test_data and not args.test_data.exists():
        return f"Error: Test data file not found: {args.test_data}"
    if args.quiet and args.verbose:
        return "Error: --quiet and --verbose cannot be combined"
    return None


def run_run(args: argparse.Namespace) -> int:
    """Execute the run subcommand."""
    config = load_config(args)
    if not validate_and_warn(config):
        print("Error: invalid configuration, run the 'validate' subcommand for details", file=sys.stderr)
        return 1
    settings = Settings.from_config(config, project_name=args.project)

    client = SolidtimeClient(settings.api_url, settings.api_key)
    tracker_config = bootstrap(settings, client, create_missing_project=not args.dry_run)

    if args.dry_run:
        user_output("=== DRY RUN MODE ===", attrs=["bold"])
        user_output("No changes will be made to Solidtime\n")
        store = DryRunStore(echo=not args.quiet)
    else:
        store = client

    test_data = load_test_data(args.test_data) if args.test_data else None
    source = ActivityWatchSource(
        matcher=ProjectMatcher(settings.project_name, settings.project_regexp),
        editor_clients=settings.editor_clients,
        editor_apps=settings.editor_apps,
        excluded_schemes=settings.excluded_schemes,
        throttle=settings.change_event_throttle,
        test_data=test_data,
    )

    tracker = TimeTrackerService(tracker_config, store, ConsoleStatus(quiet=args.quiet))
    agent = Agent(tracker, source, poll_interval=settings.poll_interval)

    if not args.once and not args.quiet:
        user_output(f"Tracking {settings.project_name} (Ctrl+C to stop)...")
    agent.run(max_ticks=1 if args.once else None)
    return 0


def run_status(args: argparse.Namespace) -> int:
    """Execute the status subcommand."""
    config = load_config(args)
    settings = Settings.from_config(config, project_name=args.project)
    client = SolidtimeClient(settings.api_url, settings.api_key)
    tracker_config = bootstrap(settings, client, create_missing_project=False)

    reference = parse_datetime(args.date) if args.date else now()
    start, end = todays_window(reference)
    entries = sorted(client.list_entries(settings.organization_id, start, end), key=lambda e: e.start)

    print(f"Entries from {start:%Y-%m-%d} (project {settings.project_name} = {tracker_config.project_id}):")
    if not entries:
        print("  (none)")
    for entry in entries:
        marker = "*" if entry.project_id == tracker_config.project_id else " "
        end_str = ts2strtime(entry.end) if entry.end else "running"
        print(f" {marker} {ts2strtime(entry.start)} - {end_str}  {entry.id}  {entry.description or ''}")

    resumable = find_resumable_entry(
        entries, tracker_config.project_id, reference, settings.max_time_span_for_open_slice
    )
    if resumable:
        user_output(f"Would continue entry {resumable.id}", color="green")
    else:
        user_output("Would start a new entry", color="yellow")
    return 0


def run_organizations(args: argparse.Namespace) -> int:
    """Execute the organizations subcommand."""
    api_url, api_key = api_credentials(load_config(args))
    client = SolidtimeClient(api_url, api_key)
    memberships = client.get_current_user_memberships()
    if not memberships:
        print("No organizations found")
    for membership in memberships:
        print(f"{membership.organization_id}  {membership.organization_name}  ({membership.role})")
    return 0


def run_validate(args: argparse.Namespace) -> int:
    """Execute the validate subcommand."""
    config = load_config(args)
    errors, warnings = validate_config(config)
    try:
        Settings.from_config(config)
    except ConfigurationError as e:
        errors.extend(f"missing {field}" for field in e.missing)

    for warning in warnings:
        print(f"  warning: {warning}")
    if errors:
        print("Configuration errors found:")
        for error in errors:
            print(f"  - {error}")
        return 1
    print("Configuration is valid")
    return 0


def main(argv=None) -> int:
    """
    Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    parser = create_parser()
    argv = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv)

    # Default to 'run' if no subcommand specified
    if not args.subcommand:
        args = parser.parse_args(argv + ["run"])
    subcommand = args.subcommand

    if args.config and not args.config.exists():
        print(f"Error: Config file not found: {args.config}", file=sys.stderr)
        return 1

    configure_logging(args, subcommand)

    try:
        if subcommand == "run":
            error = validate_run_args(args)
            if error:
                print(error, file=sys.stderr)
                return 1
            return run_run(args)
        elif subcommand == "status":
            return run_status(args)
        elif subcommand == "organizations":
            return run_organizations(args)
        elif subcommand == "validate":
            return run_validate(args)
        else:
            print(f"Error: Unknown subcommand: {subcommand}", file=sys.stderr)
            return 1

    except KeyboardInterrupt:
        print("\nExiting...")
        return 0
    except (ConfigurationError, BootstrapError, StoreError, ValueError) as e:
        logger.error(str(e))
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
