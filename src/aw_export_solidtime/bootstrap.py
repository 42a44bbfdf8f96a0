"""Resolve member and project ids before the tracker starts."""

import logging

from .config import Settings
from .models import Member
from .solidtime_client import SolidtimeClient
from .tracker import TrackerConfig

logger = logging.getLogger(__name__)

NEW_PROJECT_COLOR = "#000000"


class BootstrapError(Exception):
    """The remote account is not usable for tracking."""

    pass


def get_current_member(client: SolidtimeClient, org_id: str) -> Member:
    """Return the current user's member record in the organization."""
    user = client.get_current_user()
    members = client.get_organization_members(org_id)
    for member in members:
        if member.user_id == user.id:
            return member
    raise BootstrapError(f"User {user.name} is not a member of organization {org_id}")


def resolve_project_id(
    client: SolidtimeClient,
    org_id: str,
    project_name: str,
    member: Member,
    create_missing: bool = True,
) -> str:
    """Find the project by name, creating it if allowed.

    Returns:
        The project id. With create_missing=False and no such project, the
        project name stands in for the id.
    """
    logger.info(f"Checking if project {project_name} exists")
    for project in client.get_organization_projects(org_id):
        if project.name == project_name:
            return project.id

    if not create_missing:
        logger.warning(f"Project {project_name} does not exist and will not be created")
        return project_name

    logger.info(f"Project {project_name} does not exist, creating it")
    project = client.create_organization_project(
        org_id,
        name=project_name,
        member_ids=[member.id],
        color=NEW_PROJECT_COLOR,
        is_billable=False,
        client_id=None,
    )
    logger.info(f"Project created: {project.id}")
    return project.id


def bootstrap(
    settings: Settings, client: SolidtimeClient, create_missing_project: bool = True
) -> TrackerConfig:
    """Build the tracker configuration from settings and the remote account.

    Raises:
        BootstrapError: If the user is not a member of the organization
        StoreError: If the API cannot be reached
    """
    member = get_current_member(client, settings.organization_id)
    project_id = resolve_project_id(
        client,
        settings.organization_id,
        settings.project_name,
        member,
        create_missing=create_missing_project,
    )
    logger.info(f"Tracking project {settings.project_name}", extra={"project_id": project_id})
    return TrackerConfig(
        org_id=settings.organization_id,
        member_id=member.id,
        project_id=project_id,
        max_time_span_for_open_slice=settings.max_time_span_for_open_slice,
        beat_timeout=settings.beat_timeout,
        description=settings.description,
        billable=settings.billable,
    )
