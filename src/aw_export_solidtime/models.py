"""Entities exchanged with the Solidtime API.

Only the fields this tool reads or writes are modelled; unknown keys in API
responses are ignored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .utils import format_utc, parse_utc


@dataclass
class TimeEntry:
    """A time entry as stored remotely."""

    id: str
    start: datetime
    end: datetime | None = None
    project_id: str | None = None
    description: str | None = None
    billable: bool = False
    duration: int | None = None
    member_id: str | None = None
    tags: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeEntry":
        end = data.get("end")
        return cls(
            id=str(data["id"]),
            start=parse_utc(data["start"]),
            end=parse_utc(end) if end else None,
            project_id=data.get("project_id"),
            description=data.get("description"),
            billable=bool(data.get("billable", False)),
            duration=data.get("duration"),
            member_id=data.get("member_id"),
            tags=list(data.get("tags") or []),
        )


@dataclass
class NewTimeEntry:
    """Body of a create request."""

    member_id: str
    project_id: str
    start: datetime
    end: datetime | None = None
    billable: bool = True
    description: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "member_id": self.member_id,
            "project_id": self.project_id,
            "start": format_utc(self.start),
            "billable": self.billable,
            "description": self.description,
        }
        if self.end is not None:
            payload["end"] = format_utc(self.end)
        return payload


@dataclass
class TimeEntryUpdate:
    """Body of an update request; fields left as None are not sent."""

    end: datetime | None = None
    description: str | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        if self.end is not None:
            payload["end"] = format_utc(self.end)
        if self.description is not None:
            payload["description"] = self.description
        return payload


@dataclass
class Project:
    id: str
    name: str
    color: str | None = None
    is_billable: bool = False
    is_archived: bool = False
    client_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            color=data.get("color"),
            is_billable=bool(data.get("is_billable", False)),
            is_archived=bool(data.get("is_archived", False)),
            client_id=data.get("client_id"),
        )


@dataclass
class User:
    id: str
    name: str
    email: str | None = None
    timezone: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        return cls(
            id=str(data["id"]),
            name=data["name"],
            email=data.get("email"),
            timezone=data.get("timezone"),
        )


@dataclass
class Member:
    """A user's membership record inside one organization."""

    id: str
    user_id: str
    name: str
    role: str | None = None
    is_placeholder: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Member":
        return cls(
            id=str(data["id"]),
            user_id=str(data["user_id"]),
            name=data["name"],
            role=data.get("role"),
            is_placeholder=bool(data.get("is_placeholder", False)),
        )


@dataclass
class Membership:
    """An organization the current user belongs to."""

    id: str
    organization_id: str
    organization_name: str
    role: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Membership":
        organization = data["organization"]
        return cls(
            id=str(data["id"]),
            organization_id=str(organization["id"]),
            organization_name=organization["name"],
            role=data.get("role"),
        )
