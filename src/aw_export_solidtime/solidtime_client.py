"""Solidtime-specific store implementation.

This is the ONLY place that knows about the Solidtime HTTP API.
All remote interaction goes through this class.
"""

import logging
from datetime import datetime
from typing import Any

import requests

from .models import (
    Member,
    Membership,
    NewTimeEntry,
    Project,
    TimeEntry,
    TimeEntryUpdate,
    User,
)
from .time_store import StoreError, TimeEntryStore
from .utils import format_utc

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class APIError(StoreError):
    """The API answered with a non-2xx status."""

    def __init__(self, status: int, body: Any, url: str) -> None:
        super().__init__(f"HTTP {status} from {url}: {body}")
        self.status = status
        self.body = body
        self.url = url


def build_params(params: dict[str, Any] | None) -> list[tuple[str, str]]:
    """Flatten query parameters; lists become repeated 'key[]' entries, None is dropped."""
    flat: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, list | tuple):
            flat.extend((f"{key}[]", str(item)) for item in value)
        elif isinstance(value, bool):
            flat.append((key, "true" if value else "false"))
        else:
            flat.append((key, str(value)))
    return flat


class SolidtimeClient(TimeEntryStore):
    """Solidtime API backend."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout: float = DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            api_url: Instance URL, e.g. https://app.solidtime.io (without /api/v1)
            api_key: Personal access token
            timeout: Seconds before a request is abandoned
            session: Optional pre-configured session (tests inject a mock here)
        """
        self.base_url = f"{api_url.rstrip('/')}/api/v1"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Accept": "application/json",
            }
        )

    def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a request and return the decoded body.

        Raises:
            APIError: Non-2xx answer
            StoreError: Transport failure
        """
        url = self.base_url + path
        logger.debug(f"{method} {url}")
        try:
            response = self.session.request(
                method,
                url,
                params=build_params(params),
                json=body if method != "GET" else None,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StoreError(f"{method} {url} failed: {e}") from e

        is_json = "application/json" in response.headers.get("content-type", "")
        try:
            parsed = response.json() if is_json else response.text
        except ValueError as e:
            raise StoreError(f"Invalid JSON from {url}: {e}") from e

        if not response.ok:
            raise APIError(response.status_code, parsed, url)
        return parsed

    def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        """Execute a request and unwrap the {'data': ...} envelope."""
        payload = self._request(method, path, **kwargs)
        try:
            return payload["data"]
        except (KeyError, TypeError) as e:
            raise StoreError(f"Unexpected response from {path}: {payload!r}") from e

    @staticmethod
    def _decode(factory, data: Any, path: str):
        try:
            return factory(data)
        except (KeyError, TypeError, ValueError) as e:
            raise StoreError(f"Cannot decode response from {path}: {e}") from e

    # Time entries

    def list_entries(
        self,
        org_id: str,
        start: datetime,
        end: datetime,
        project_ids: list[str] | None = None,
    ) -> list[TimeEntry]:
        path = f"/organizations/{org_id}/time-entries"
        data = self._data(
            "GET",
            path,
            params={
                "start": format_utc(start),
                "end": format_utc(end),
                "project_ids": project_ids,
            },
        )
        return self._decode(lambda d: [TimeEntry.from_dict(e) for e in d], data, path)

    def create_entry(self, org_id: str, entry: NewTimeEntry) -> TimeEntry:
        path = f"/organizations/{org_id}/time-entries"
        data = self._data("POST", path, body=entry.to_payload())
        return self._decode(TimeEntry.from_dict, data, path)

    def update_entry(self, org_id: str, entry_id: str, update: TimeEntryUpdate) -> TimeEntry:
        path = f"/organizations/{org_id}/time-entries/{entry_id}"
        data = self._data("PUT", path, body=update.to_payload())
        return self._decode(TimeEntry.from_dict, data, path)

    # Users, members and projects (used while bootstrapping)

    def get_current_user(self) -> User:
        data = self._data("GET", "/users/me")
        return self._decode(User.from_dict, data, "/users/me")

    def get_current_user_memberships(self) -> list[Membership]:
        path = "/users/me/memberships"
        data = self._data("GET", path)
        return self._decode(lambda d: [Membership.from_dict(m) for m in d], data, path)

    def get_organization_members(self, org_id: str) -> list[Member]:
        path = f"/organizations/{org_id}/members"
        data = self._data("GET", path)
        return self._decode(lambda d: [Member.from_dict(m) for m in d], data, path)

    def get_organization_projects(self, org_id: str) -> list[Project]:
        path = f"/organizations/{org_id}/projects"
        data = self._data("GET", path)
        return self._decode(lambda d: [Project.from_dict(p) for p in d], data, path)

    def create_organization_project(
        self,
        org_id: str,
        name: str,
        member_ids: list[str],
        color: str = "#000000",
        is_billable: bool = False,
        client_id: str | None = None,
    ) -> Project:
        path = f"/organizations/{org_id}/projects"
        data = self._data(
            "POST",
            path,
            body={
                "name": name,
                "color": color,
                "is_billable": is_billable,
                "member_ids": member_ids,
                "client_id": client_id,
            },
        )
        return self._decode(Project.from_dict, data, path)
