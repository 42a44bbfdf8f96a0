"""Editor activity and focus signals read from ActivityWatch.

This module isolates all ActivityWatch data access. It turns the editor
watchers' heartbeats into discrete "activity observed" notifications and the
window watcher's current app into "editor focused / not focused". Filtering
and throttling happen here; the tracker only ever sees the result.
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import PurePath
from typing import Any

from aw_client import ActivityWatchClient

from .utils import parse_utc

logger = logging.getLogger(__name__)

# How far back each poll looks, on top of the time since the previous poll.
# Watchers flush heartbeats with some delay.
POLL_LOOKBACK = timedelta(seconds=30)

WINDOW_CLIENT = "aw-watcher-window"

_SCHEME_RE = re.compile(r"^([a-zA-Z][a-zA-Z0-9+.-]+):")


class Throttle:
    """Lets one call through per interval, dropping the rest."""

    def __init__(self, interval: timedelta) -> None:
        self.interval = interval
        self.last_allowed: datetime | None = None

    def __call__(self, now: datetime) -> bool:
        if self.last_allowed is not None and now - self.last_allowed < self.interval:
            return False
        self.last_allowed = now
        return True


def uri_scheme(path: str) -> str | None:
    """Return the URI scheme of an editor file path, if it has one.

    Windows drive letters ("C:\\...") are not schemes.
    """
    match = _SCHEME_RE.match(path)
    return match.group(1).lower() if match else None


class ProjectMatcher:
    """Decides whether an editor event belongs to the tracked project."""

    def __init__(self, project_name: str, project_regexp: str | None = None) -> None:
        self.project_name = project_name
        self.regexp = re.compile(project_regexp) if project_regexp else None

    def __call__(self, project_path: str | None) -> bool:
        if not project_path:
            return False
        if self.regexp:
            return bool(self.regexp.search(project_path))
        return PurePath(project_path.rstrip("/\\")).name == self.project_name


@dataclass
class ActivityUpdate:
    """Result of one poll.

    Attributes:
        activity: Relevant editing activity was seen (after throttling)
        focused: Whether an editor window has focus; None if unknown
    """

    activity: bool = False
    focused: bool | None = None


class ActivityWatchSource:
    """Polls ActivityWatch (or test data) for editor activity and focus.

    Responsible for:
    - Connecting to ActivityWatch and mapping buckets by client
    - Finding editor heartbeats newer than the last poll
    - Filtering out non-file URIs and other projects
    - Throttling activity notifications
    - Reporting whether an editor window is focused
    """

    def __init__(
        self,
        matcher: ProjectMatcher,
        editor_clients: list[str],
        editor_apps: list[str] | None = None,
        excluded_schemes: list[str] | None = None,
        throttle: timedelta = timedelta(seconds=1),
        test_data: dict[str, Any] | None = None,
        client_name: str = "aw-export-solidtime",
    ) -> None:
        """Initialize the source.

        Args:
            matcher: Project filter for editor events
            editor_clients: ActivityWatch clients whose events count as editing
            editor_apps: Window app names that count as editor focus
            excluded_schemes: URI schemes that are not real files
            throttle: Minimum time between two activity notifications
            test_data: Optional {"buckets": ..., "events": ...} dict (avoids AW connection)
            client_name: ActivityWatch client name
        """
        self.matcher = matcher
        self.editor_clients = list(editor_clients)
        self.editor_apps = {a.lower() for a in (editor_apps or [])}
        self.excluded_schemes = {s.lower() for s in (excluded_schemes or [])}
        self.throttle = Throttle(throttle)
        self.last_seen_end: datetime | None = None
        self.last_poll: datetime | None = None

        if test_data:
            self.buckets = test_data.get("buckets", {})
            self.test_data = test_data
            self.aw = None
        else:
            self.aw = ActivityWatchClient(client_name=client_name)
            self.buckets = self.aw.get_buckets()
            self.test_data = None

        self._init_bucket_mappings()

    def _init_bucket_mappings(self) -> None:
        self.bucket_by_client: dict[str, list[str]] = defaultdict(list)
        for bucket_id, bucket in self.buckets.items():
            self.bucket_by_client[bucket.get("client", "")].append(bucket_id)

        self.editor_buckets = [
            bucket_id
            for client in self.editor_clients
            for bucket_id in self.bucket_by_client.get(client, [])
        ]
        if not self.editor_buckets:
            logger.warning(
                f"No editor buckets found for clients {self.editor_clients}, "
                f"editing activity cannot be detected"
            )

    def get_window_bucket(self) -> str | None:
        buckets = self.bucket_by_client.get(WINDOW_CLIENT)
        return buckets[0] if buckets else None

    def get_events(
        self, bucket_id: str, start: datetime | None = None, end: datetime | None = None
    ) -> list[dict]:
        """Fetch events from a bucket as dicts with datetime timestamp and timedelta duration."""
        if self.aw:
            events = self.aw.get_events(bucket_id, start=start, end=end)
            return [
                {"timestamp": e.timestamp, "duration": e.duration, "data": e.data} for e in events
            ]
        return self._get_events_from_test_data(bucket_id, start, end)

    def _get_events_from_test_data(
        self, bucket_id: str, start: datetime | None, end: datetime | None
    ) -> list[dict]:
        events = []
        for raw in self.test_data.get("events", {}).get(bucket_id, []):
            timestamp = parse_utc(raw["timestamp"])
            duration = raw["duration"]
            if not isinstance(duration, timedelta):
                duration = timedelta(seconds=duration)
            if start and timestamp + duration < start:
                continue
            if end and timestamp > end:
                continue
            events.append({"timestamp": timestamp, "duration": duration, "data": raw["data"]})
        return events

    def is_relevant(self, event: dict) -> bool:
        """True if an editor event is a real edit in the tracked project."""
        data = event.get("data", {})
        file = data.get("file") or ""
        scheme = uri_scheme(file)
        if scheme and scheme in self.excluded_schemes:
            return False
        return self.matcher(data.get("project"))

    def _new_activity(self, now: datetime) -> bool:
        """Look for relevant editor events that ended after the previous poll."""
        since = self.last_seen_end or now - POLL_LOOKBACK
        # Query from the previous poll, not from the last match, so the window stays bounded
        fetch_from = max(since, self.last_poll) if self.last_poll else since
        self.last_poll = now
        newest: datetime | None = None
        for bucket_id in self.editor_buckets:
            for event in self.get_events(bucket_id, start=fetch_from - POLL_LOOKBACK, end=now):
                if not self.is_relevant(event):
                    continue
                event_end = event["timestamp"] + event["duration"]
                if event_end > since and (newest is None or event_end > newest):
                    newest = event_end
        if newest is None:
            return False
        self.last_seen_end = newest
        return True

    def _editor_focused(self, now: datetime) -> bool | None:
        bucket_id = self.get_window_bucket()
        if not bucket_id or not self.editor_apps:
            return None
        events = self.get_events(bucket_id, start=now - POLL_LOOKBACK, end=now)
        if not events:
            return None
        latest = max(events, key=lambda e: e["timestamp"])
        app = str(latest.get("data", {}).get("app", "")).lower()
        return app in self.editor_apps

    def poll(self, now: datetime) -> ActivityUpdate:
        """Check ActivityWatch for what happened since the previous poll."""
        activity = self._new_activity(now) and self.throttle(now)
        return ActivityUpdate(activity=activity, focused=self._editor_focused(now))
