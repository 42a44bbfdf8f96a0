"""Decide whether an interval already recorded remotely today can be resumed.

When the tracker (re)starts, the developer may already have an entry for the
tracked project that is still open, or that ended a moment ago. Such an entry
is continued instead of creating a new one.

Only the most recent entry of the whole organization is a candidate. If
anything was tracked on another project after the tracked project's last
entry, a fresh entry is started.
"""

import logging
from datetime import datetime, timedelta

from .models import TimeEntry
from .time_slice import TimeSlice
from .utils import end_of_day, start_of_day, to_local

logger = logging.getLogger(__name__)


def todays_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the (start, end) range used to fetch candidate entries."""
    return start_of_day(now), end_of_day(now)


def is_resumable(entry: TimeEntry, now: datetime, max_time_span: timedelta) -> bool:
    """An entry can be continued if it is still open or ended at most max_time_span ago."""
    if entry.end is None:
        return True
    return entry.end >= now - max_time_span


def find_resumable_entry(
    entries: list[TimeEntry],
    project_id: str,
    now: datetime,
    max_time_span: timedelta,
) -> TimeEntry | None:
    """Find the entry that the current session may continue.

    Args:
        entries: Today's entries of the organization, across all projects
        project_id: The tracked project
        now: Reference time
        max_time_span: How long ago a closed entry may have ended

    Returns:
        The entry to continue, or None if a fresh slice should be started
    """
    if not entries:
        return None

    # sorted() is stable: entries sharing a start keep the backend's order
    # and the one listed last wins.
    ordered = sorted(entries, key=lambda e: e.start)
    last_entry = ordered[-1]

    if last_entry.project_id != project_id:
        logger.debug(
            f"Most recent entry {last_entry.id} belongs to project {last_entry.project_id}, "
            f"not resuming",
            extra={"project_id": project_id},
        )
        return None

    if not is_resumable(last_entry, now, max_time_span):
        logger.debug(
            f"Entry {last_entry.id} ended at {last_entry.end}, too long ago to resume",
            extra={"project_id": project_id, "remote_id": last_entry.id},
        )
        return None

    return last_entry


def slice_from_entry(entry: TimeEntry) -> TimeSlice:
    """Rebuild an open local slice from a remote entry."""
    return TimeSlice(started_at=to_local(entry.start), remote_id=entry.id)
