"""Session tracking and synchronization with the remote time-entry store.

TimeTrackerService owns the current TimeSlice and is the only thing that
changes it. Activity notifications open slices, a repeating beat closes the
slice and pushes it to the store, and reconciliation at (re)start decides
whether an entry recorded earlier today is continued.

Everything runs on the caller's thread: the agent loop calls tick() and the
activity hooks in turn, so beats never overlap.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from .models import NewTimeEntry, TimeEntryUpdate
from .notification import SpentTimeNotification
from .reconcile import find_resumable_entry, slice_from_entry, todays_window
from .time_slice import TimeSlice
from .time_store import StoreError, TimeEntryStore
from .utils import Clock, now as local_now, to_local

logger = logging.getLogger(__name__)

DEFAULT_DESCRIPTION = "Coding time from the editor"


class TrackerState(Enum):
    """Lifecycle states of the tracker."""

    STOPPED = "stopped"  # No timer running
    ACTIVE = "active"  # Timer running, slice may be open or closed-but-tracked
    PAUSED = "paused"  # Suspended on purpose, status shown as disabled


class TrackerEvent(Enum):
    """Observation points emitted by the tracker, in emission order."""

    INIT = "init"
    RESUME = "resume"
    PAUSE = "pause"
    STOP = "stop"
    ACTIVITY = "activity"
    CREATE_TIME_ENTRY = "create-time-entry"
    UPDATE_TIME_ENTRY = "update-time-entry"


Observer = Callable[[TrackerEvent], None]


@dataclass(frozen=True)
class TrackerConfig:
    """Immutable inputs of a tracker."""

    org_id: str
    member_id: str
    project_id: str
    max_time_span_for_open_slice: timedelta
    beat_timeout: timedelta
    description: str = DEFAULT_DESCRIPTION
    billable: bool = True

    def __post_init__(self) -> None:
        if self.beat_timeout <= timedelta(0):
            raise ValueError("beat_timeout must be positive")
        if self.max_time_span_for_open_slice < timedelta(0):
            raise ValueError("max_time_span_for_open_slice must not be negative")


class BeatTimer:
    """A single repeating timer polled by the owner's loop.

    poll() reports at most one due tick per call. Ticks missed while the loop
    was busy (or the machine slept) are coalesced into that one.
    """

    def __init__(self, interval: timedelta) -> None:
        self.interval = interval
        self.next_due: datetime | None = None

    @property
    def running(self) -> bool:
        return self.next_due is not None

    def start(self, now: datetime) -> None:
        self.next_due = now + self.interval

    def stop(self) -> None:
        self.next_due = None

    def poll(self, now: datetime) -> bool:
        if self.next_due is None or now < self.next_due:
            return False
        while self.next_due <= now:
            self.next_due += self.interval
        return True


class TimeTrackerService:
    """Tracks working time for one project and keeps the remote store in sync.

    States and transitions:
    - resume() or construction: STOPPED/PAUSED/ACTIVE -> ACTIVE, reconciling
      with the store first
    - on_activity(): ignored while PAUSED, (re)initializes when STOPPED
    - pause(): final beat, ACTIVE -> PAUSED
    - stop(): final beat, ACTIVE -> STOPPED
    - dispose(): stop() and release the notification; terminal
    """

    def __init__(
        self,
        config: TrackerConfig,
        store: TimeEntryStore,
        notification: SpentTimeNotification,
        clock: Clock = local_now,
        autostart: bool = True,
    ) -> None:
        """Create the tracker.

        Args:
            config: Organization, member, project and timing parameters
            store: Remote time-entry store
            notification: Status display, updated after every slice change
            clock: Source of the current time (tests inject a fake one)
            autostart: If True, resume() immediately (reconciles with the store)
        """
        self.config = config
        self.store = store
        self.notification = notification
        self.clock = clock

        self.current_slice: TimeSlice | None = None
        self.last_activity: datetime = clock()
        self.paused = False
        self.disposed = False

        self._timer = BeatTimer(config.beat_timeout)
        self._observers: list[Observer] = []
        self._beating = False
        # End time of the slice as last accepted by the store
        self._last_synced_end: datetime | None = None

        if autostart:
            self.resume()

    # Observers

    def subscribe(self, observer: Observer) -> None:
        self._observers.append(observer)

    def unsubscribe(self, observer: Observer) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _emit(self, event: TrackerEvent) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(f"Observer {observer!r} failed on {event.value}")

    # State

    @property
    def state(self) -> TrackerState:
        if self.paused:
            return TrackerState.PAUSED
        if self._timer.running:
            return TrackerState.ACTIVE
        return TrackerState.STOPPED

    def is_active(self) -> bool:
        """True while the beat timer is running."""
        return self._timer.running

    def total_time_spent(self) -> timedelta:
        if not self.current_slice:
            return timedelta(0)
        return self.current_slice.duration(self.clock())

    def _log_extra(self) -> dict:
        extra = {"project_id": self.config.project_id}
        if self.current_slice:
            extra["slice_start"] = self.current_slice.started_at
            if self.current_slice.ended_at:
                extra["slice_end"] = self.current_slice.ended_at
            if self.current_slice.remote_id:
                extra["remote_id"] = self.current_slice.remote_id
        return extra

    def _set_current_slice(self, time_slice: TimeSlice | None) -> None:
        self.current_slice = time_slice
        self.notification.update(self.total_time_spent())

    # Lifecycle

    def resume(self) -> None:
        """(Re)start tracking.

        Flushes a running session first, then resets, reconciles with the
        store, starts the beat timer and enables the status display.
        """
        if self.disposed:
            logger.warning("resume() called on a disposed tracker, ignoring")
            return
        if self.is_active():
            self._deactivate()
        self._init()
        self.paused = False
        self.notification.enable()
        self._emit(TrackerEvent.RESUME)

    def pause(self) -> None:
        """Flush and suspend; activity is ignored until resume()."""
        if self.paused:
            logger.warning(
                f"Tracker already paused for project {self.config.project_id}",
                extra=self._log_extra(),
            )
            return
        self._deactivate()
        self.paused = True
        self.notification.disable()
        self._emit(TrackerEvent.PAUSE)

    def stop(self) -> None:
        """Flush and stop the timer without marking the tracker paused."""
        if not self.is_active():
            logger.warning(
                f"Tracker already stopped for project {self.config.project_id}",
                extra=self._log_extra(),
            )
            return
        self._deactivate()
        self._emit(TrackerEvent.STOP)

    def dispose(self) -> None:
        """Stop and release the status display. The tracker cannot be used afterwards."""
        if self.disposed:
            return
        if self.is_active():
            self.stop()
        self.notification.dispose()
        self.disposed = True

    def on_activity(self) -> None:
        """Record that the developer did something in the tracked project.

        Never raises; store failures during re-initialization are logged.
        """
        if self.paused or self.disposed:
            return
        if not self.is_active():
            self._init()

        now = self.clock()
        previous_activity = self.last_activity
        self.last_activity = now

        if self.current_slice is not None and self.current_slice.is_open:
            if now - previous_activity > self.config.max_time_span_for_open_slice:
                # Ticks were suppressed while idle; the slice ended with the last activity
                self._set_current_slice(
                    self.current_slice.close(max(previous_activity, self.current_slice.started_at))
                )

        if self.current_slice is None:
            self._begin_slice(now)
        elif not self.current_slice.is_open:
            gap = now - self.current_slice.ended_at
            if gap > self.config.max_time_span_for_open_slice:
                # Too long since the slice was closed: flush whatever is still
                # unsynced, leave its entry as it is and start a new one.
                logger.info(
                    f"Activity after {gap} of inactivity, starting a new slice",
                    extra=self._log_extra(),
                )
                self.beat()
                self._begin_slice(now)
            else:
                self._set_current_slice(self.current_slice.reopen())

        self._emit(TrackerEvent.ACTIVITY)

    def tick(self) -> None:
        """Drive the beat timer; call this regularly from the owning loop."""
        now = self.clock()
        if not self._timer.poll(now):
            return
        if self.last_activity < now - self.config.beat_timeout:
            # Idle: leave the slice untouched until activity resumes
            logger.debug("No recent activity, skipping beat", extra=self._log_extra())
            return
        self.beat()

    # Internals

    def _init(self) -> None:
        self._reset()
        self._restore_last_entry()
        self._timer.start(self.clock())
        self._emit(TrackerEvent.INIT)

    def _reset(self) -> None:
        self._last_synced_end = None
        self.last_activity = self.clock()
        self._set_current_slice(None)

    def _deactivate(self) -> None:
        self._timer.stop()
        self.beat()

    def _begin_slice(self, now: datetime) -> None:
        self._last_synced_end = None
        self._set_current_slice(TimeSlice(started_at=now))
        logger.debug("Started new slice", extra=self._log_extra())

    def _restore_last_entry(self) -> None:
        """Continue today's last entry for the project if reconciliation allows it."""
        now = self.clock()
        start, end = todays_window(now)
        try:
            entries = self.store.list_entries(self.config.org_id, start, end)
        except StoreError as e:
            logger.error(
                f"Could not fetch today's entries, starting fresh: {e}",
                extra=self._log_extra(),
            )
            return

        entry = find_resumable_entry(
            entries, self.config.project_id, now, self.config.max_time_span_for_open_slice
        )
        if entry is None:
            return

        if entry.end is not None:
            # The entry's end is both the last known activity and what the store holds
            self.last_activity = to_local(entry.end)
            self._last_synced_end = self.last_activity
        self._set_current_slice(slice_from_entry(entry))
        logger.info(f"Resuming remote entry {entry.id}", extra=self._log_extra())

    def beat(self) -> None:
        """Close the current slice and write it to the store.

        A slice without remote id is created remotely; one with a remote id is
        updated, but only if its end moved since the last successful write.
        Store failures are logged and leave the slice closed; the next beat
        retries.
        """
        if self._beating:
            logger.debug("Beat already in progress, dropping tick")
            return
        if not self.current_slice:
            return

        self._beating = True
        try:
            if self.current_slice.is_open:
                # A remote start may lie ahead of the local clock
                end = max(self.clock(), self.current_slice.started_at)
                self._set_current_slice(self.current_slice.close(end))

            time_slice = self.current_slice
            if time_slice.remote_id is None:
                self._create_remote_entry(time_slice)
            elif time_slice.ended_at != self._last_synced_end:
                self._update_remote_entry(time_slice)
        except StoreError as e:
            logger.error(
                f"Beat failed for project {self.config.project_id}: {e}",
                extra=self._log_extra(),
            )
        finally:
            self._beating = False

    def _create_remote_entry(self, time_slice: TimeSlice) -> None:
        self._emit(TrackerEvent.CREATE_TIME_ENTRY)
        entry = self.store.create_entry(
            self.config.org_id,
            NewTimeEntry(
                member_id=self.config.member_id,
                project_id=self.config.project_id,
                start=time_slice.started_at,
                end=time_slice.ended_at,
                billable=self.config.billable,
                description=self.config.description,
            ),
        )
        self._last_synced_end = time_slice.ended_at
        self._set_current_slice(self.current_slice.with_remote_id(entry.id))
        logger.info(f"Created remote entry {entry.id}", extra=self._log_extra())

    def _update_remote_entry(self, time_slice: TimeSlice) -> None:
        self._emit(TrackerEvent.UPDATE_TIME_ENTRY)
        self.store.update_entry(
            self.config.org_id,
            time_slice.remote_id,
            TimeEntryUpdate(end=time_slice.ended_at, description=self.config.description),
        )
        self._last_synced_end = time_slice.ended_at
        logger.debug(f"Updated remote entry {time_slice.remote_id}", extra=self._log_extra())
