"""
Shared fixtures for aw-export-solidtime tests.

Provides a controllable clock, a recording status display and a store that
remembers every call, so tracker scenarios can be replayed without a network
or real time passing.
"""

from datetime import datetime, timedelta

import pytest

from aw_export_solidtime.models import NewTimeEntry, TimeEntry, TimeEntryUpdate
from aw_export_solidtime.notification import SpentTimeNotification
from aw_export_solidtime.time_store import DryRunStore, StoreError
from aw_export_solidtime.tracker import TimeTrackerService, TrackerConfig

sleep_counter = 0

# A Monday morning, in whatever the local timezone is
T0 = datetime(2025, 1, 6, 9, 0, 0).astimezone()


@pytest.fixture(autouse=True)  # Applies to all tests automatically
def no_sleep(monkeypatch):
    global sleep_counter
    sleep_counter = 0

    def fake_sleep(seconds):
        global sleep_counter
        sleep_counter += 1
        assert sleep_counter < 200

    from aw_export_solidtime import agent

    monkeypatch.setattr(agent, "sleep", fake_sleep)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingNotification(SpentTimeNotification):
    """Status display that remembers what it was told."""

    def __init__(self) -> None:
        self.updates: list[timedelta] = []
        self.enabled = True
        self.disposed = False

    def update(self, total: timedelta) -> None:
        self.updates.append(total)

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def dispose(self) -> None:
        self.disposed = True


class RecordingStore(DryRunStore):
    """In-memory store that records calls and can be told to fail."""

    def __init__(self, entries: list[TimeEntry] | None = None) -> None:
        super().__init__(entries=entries, echo=False)
        self.calls: list[tuple] = []
        self.fail_list = False
        self.fail_create = False
        self.fail_update = False

    def list_entries(self, org_id: str, start: datetime, end: datetime) -> list[TimeEntry]:
        self.calls.append(("list", org_id, start, end))
        if self.fail_list:
            raise StoreError("connection refused")
        return super().list_entries(org_id, start, end)

    def create_entry(self, org_id: str, entry: NewTimeEntry) -> TimeEntry:
        self.calls.append(("create", org_id, entry))
        if self.fail_create:
            raise StoreError("HTTP 500")
        return super().create_entry(org_id, entry)

    def update_entry(self, org_id: str, entry_id: str, update: TimeEntryUpdate) -> TimeEntry:
        self.calls.append(("update", org_id, entry_id, update))
        if self.fail_update:
            raise StoreError("HTTP 502")
        return super().update_entry(org_id, entry_id, update)

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("create", "update")]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def notification() -> RecordingNotification:
    return RecordingNotification()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
def tracker_config() -> TrackerConfig:
    return TrackerConfig(
        org_id="org-1",
        member_id="member-1",
        project_id="project-a",
        max_time_span_for_open_slice=timedelta(minutes=10),
        beat_timeout=timedelta(minutes=1),
        description="Coding time",
    )


@pytest.fixture
def make_tracker(tracker_config, store, notification, clock):
    """Factory building a tracker wired to the shared fakes.

    The returned tracker exposes the events it emitted as `tracker.events`.
    """

    def _make(autostart: bool = True, **config_changes) -> TimeTrackerService:
        config = tracker_config
        if config_changes:
            config = TrackerConfig(**{**tracker_config.__dict__, **config_changes})
        tracker = TimeTrackerService(config, store, notification, clock=clock, autostart=False)
        tracker.events = []
        tracker.subscribe(lambda event: tracker.events.append(event.value))
        if autostart:
            tracker.resume()
        return tracker

    return _make


def make_entry(
    entry_id: str,
    project_id: str | None,
    start: datetime,
    end: datetime | None = None,
) -> TimeEntry:
    return TimeEntry(id=entry_id, start=start, end=end, project_id=project_id)
