"""The local record of one contiguous working interval."""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

_UNSET = object()


@dataclass(frozen=True)
class TimeSlice:
    """One working interval, open (no end) or closed, optionally linked to a remote entry.

    Instances are immutable; every change produces a new value.
    """

    started_at: datetime
    ended_at: datetime | None = None
    remote_id: str | None = None

    def __post_init__(self) -> None:
        if self.ended_at is not None and self.ended_at < self.started_at:
            raise ValueError(
                f"Slice cannot end ({self.ended_at}) before it starts ({self.started_at})"
            )

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    @property
    def is_synced(self) -> bool:
        """True once the slice has been persisted remotely at least once."""
        return self.remote_id is not None

    def copy_with(
        self,
        started_at: datetime | None = None,
        ended_at: datetime | None | object = _UNSET,
        remote_id: str | None | object = _UNSET,
    ) -> "TimeSlice":
        """Return a copy with the given fields replaced.

        Unlike started_at, ended_at and remote_id may be explicitly set to None.
        """
        changes = {}
        if started_at is not None:
            changes["started_at"] = started_at
        if ended_at is not _UNSET:
            changes["ended_at"] = ended_at
        if remote_id is not _UNSET:
            changes["remote_id"] = remote_id
        return replace(self, **changes)

    def close(self, at: datetime) -> "TimeSlice":
        return self.copy_with(ended_at=at)

    def reopen(self) -> "TimeSlice":
        return self.copy_with(ended_at=None)

    def with_remote_id(self, remote_id: str) -> "TimeSlice":
        return self.copy_with(remote_id=remote_id)

    def duration(self, now: datetime) -> timedelta:
        """Time covered by the slice; open slices count up to now."""
        end = self.ended_at if self.ended_at is not None else now
        return max(end - self.started_at, timedelta(0))
