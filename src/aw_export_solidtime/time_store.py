"""Abstract interface for the remote time-entry store.

The tracker only ever talks to a TimeEntryStore. SolidtimeClient is the real
implementation; DryRunStore keeps everything in memory.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from .models import NewTimeEntry, TimeEntry, TimeEntryUpdate


class StoreError(Exception):
    """Raised when the remote store cannot be reached or returns garbage."""

    pass


class TimeEntryStore(ABC):
    """Abstract base class for time entry backends."""

    @abstractmethod
    def list_entries(self, org_id: str, start: datetime, end: datetime) -> list[TimeEntry]:
        """List entries of an organization whose start lies in [start, end).

        Args:
            org_id: Organization identifier
            start: Range start
            end: Range end

        Returns:
            Entries of all projects, in the order the backend returns them

        Raises:
            StoreError: On transport, HTTP or decoding failure
        """
        pass

    @abstractmethod
    def create_entry(self, org_id: str, entry: NewTimeEntry) -> TimeEntry:
        """Create a new remote entry.

        Args:
            org_id: Organization identifier
            entry: The entry to create

        Returns:
            The stored entry, carrying its new identifier

        Raises:
            StoreError: On transport, HTTP or decoding failure
        """
        pass

    @abstractmethod
    def update_entry(self, org_id: str, entry_id: str, update: TimeEntryUpdate) -> TimeEntry:
        """Update end and/or description of an existing entry.

        Args:
            org_id: Organization identifier
            entry_id: Identifier returned by create_entry or list_entries
            update: Fields to change

        Returns:
            The updated entry

        Raises:
            StoreError: On transport, HTTP or decoding failure
        """
        pass


class DryRunStore(TimeEntryStore):
    """In-memory implementation for dry-run mode.

    Simulates the remote store without calling any backend. Entries created
    here can be listed again, so restart/reconciliation behaviour can be
    previewed too.
    """

    def __init__(
        self, entries: list[TimeEntry] | None = None, echo: bool = True
    ) -> None:
        """Initialize the dry-run store.

        Args:
            entries: Optional pre-existing entries (e.g. fixtures)
            echo: If True, print what would be sent to the backend
        """
        self.entries: list[TimeEntry] = list(entries or [])
        self.echo = echo
        self._next_id = len(self.entries) + 1

    def _say(self, msg: str) -> None:
        if self.echo:
            print(f"DRY RUN: {msg}")

    def list_entries(self, org_id: str, start: datetime, end: datetime) -> list[TimeEntry]:
        return [e for e in self.entries if start <= e.start < end]

    def create_entry(self, org_id: str, entry: NewTimeEntry) -> TimeEntry:
        stored = TimeEntry(
            id=f"dry-run-{self._next_id}",
            start=entry.start,
            end=entry.end,
            project_id=entry.project_id,
            description=entry.description,
            billable=entry.billable,
            member_id=entry.member_id,
        )
        self._next_id += 1
        self.entries.append(stored)
        self._say(f"Would create entry {stored.id} from {entry.start} to {entry.end}")
        return stored

    def update_entry(self, org_id: str, entry_id: str, update: TimeEntryUpdate) -> TimeEntry:
        for stored in self.entries:
            if stored.id == entry_id:
                if update.end is not None:
                    stored.end = update.end
                if update.description is not None:
                    stored.description = update.description
                self._say(f"Would update entry {entry_id} to end at {update.end}")
                return stored
        raise StoreError(f"No time entry with id {entry_id}")
