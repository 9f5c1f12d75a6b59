"""
Hierarchy service — CRUD for the three scope levels.

Organization → Workspace → Project

Transaction policy: public functions call db.session.commit() on success.
Internal helpers use flush() for ID generation within a transaction.

Whoever creates a scope becomes its OWNER member; the organization creator
is also recorded as ``owner_id`` (owner-by-foreign-key).
"""

from __future__ import annotations

import logging
import re
from typing import Any

from sqlalchemy import select

from taskpilot.core.exceptions import ConflictError, NotFoundError, ValidationError
from taskpilot.models import db
from taskpilot.models.organization import (
    Organization,
    OrganizationMember,
    Workspace,
    WorkspaceMember,
)
from taskpilot.models.project import Project, ProjectMember
from taskpilot.services.role_order import TOP_ROLE

logger = logging.getLogger(__name__)

VISIBILITIES = {"PRIVATE", "INTERNAL", "PUBLIC"}
PROJECT_STATUSES = {"PLANNING", "ACTIVE", "ON_HOLD", "COMPLETED"}

_MAX_LEN = {
    "name": 200,
    "slug": 100,
}

_SLUG_CLEAN_RE = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _SLUG_CLEAN_RE.sub("-", value.strip().lower()).strip("-")


def _validate_enum(value: str, allowed: set[str], field_name: str) -> str | None:
    """Return error message if value not in allowed set, else None."""
    if value and value not in allowed:
        return f"Invalid {field_name}: '{value}'. Allowed: {sorted(allowed)}"
    return None


def _validate_length(value: str, max_len: int, field_name: str) -> str | None:
    """Return error message if value exceeds max_len, else None."""
    if value and len(value) > max_len:
        return f"{field_name} exceeds maximum length of {max_len} characters"
    return None


def _name_and_slug(data: dict[str, Any]) -> tuple[str, str]:
    name = (data.get("name") or "").strip()
    if not name:
        raise ValidationError("name is required", details={"name": "required"})
    slug = slugify(data.get("slug") or name)
    if not slug:
        raise ValidationError("slug is invalid", details={"slug": data.get("slug")})
    for field, value in (("name", name), ("slug", slug)):
        err = _validate_length(value, _MAX_LEN[field], field)
        if err:
            raise ValidationError(err, details={field: "too_long"})
    return name, slug


# ═════════════════════════════════════════════════════════════════════════
# Organizations
# ═════════════════════════════════════════════════════════════════════════


def get_organization(org_id: str) -> Organization:
    org = db.session.get(Organization, org_id)
    if org is None:
        raise NotFoundError(resource="Organization", resource_id=org_id)
    return org


def create_organization(data: dict[str, Any], *, owner_id: str) -> Organization:
    """Create an organization owned by ``owner_id``.

    The owner is stored as ``owner_id`` and also receives an OWNER
    membership row.

    Raises:
        ValidationError: name missing or too long.
        ConflictError: slug already taken.
    """
    name, slug = _name_and_slug(data)
    exists = db.session.execute(
        select(Organization.id).where(Organization.slug == slug)
    ).scalar_one_or_none()
    if exists:
        raise ConflictError(resource="Organization", field="slug", value=slug)

    org = Organization(
        name=name,
        slug=slug,
        description=data.get("description"),
        owner_id=owner_id,
    )
    db.session.add(org)
    db.session.flush()  # Get org.id
    db.session.add(OrganizationMember(
        organization_id=org.id, user_id=owner_id, role=TOP_ROLE.value,
    ))
    db.session.commit()
    logger.info("Organization created id=%s slug=%s owner=%s", org.id, slug, owner_id)
    return org


def update_organization(org_id: str, data: dict[str, Any]) -> Organization:
    org = get_organization(org_id)
    if "name" in data or "slug" in data:
        name, slug = _name_and_slug({
            "name": data.get("name", org.name),
            "slug": data.get("slug", org.slug),
        })
        if slug != org.slug:
            taken = db.session.execute(
                select(Organization.id).where(Organization.slug == slug)
            ).scalar_one_or_none()
            if taken:
                raise ConflictError(resource="Organization", field="slug", value=slug)
        org.name, org.slug = name, slug
    if "description" in data:
        org.description = data["description"]
    db.session.commit()
    return org


def delete_organization(org_id: str) -> None:
    org = get_organization(org_id)
    db.session.delete(org)
    db.session.commit()
    logger.info("Organization deleted id=%s", org_id)


# ═════════════════════════════════════════════════════════════════════════
# Workspaces
# ═════════════════════════════════════════════════════════════════════════


def get_workspace(workspace_id: str) -> Workspace:
    ws = db.session.get(Workspace, workspace_id)
    if ws is None:
        raise NotFoundError(resource="Workspace", resource_id=workspace_id)
    return ws


def create_workspace(org_id: str, data: dict[str, Any], *, creator_id: str) -> Workspace:
    """Create a workspace inside an organization; the creator becomes its OWNER."""
    org = get_organization(org_id)
    name, slug = _name_and_slug(data)
    taken = db.session.execute(
        select(Workspace.id).where(
            Workspace.organization_id == org.id, Workspace.slug == slug,
        )
    ).scalar_one_or_none()
    if taken:
        raise ConflictError(resource="Workspace", field="slug", value=slug)

    ws = Workspace(
        organization_id=org.id,
        name=name,
        slug=slug,
        description=data.get("description"),
    )
    db.session.add(ws)
    db.session.flush()
    db.session.add(WorkspaceMember(
        workspace_id=ws.id, user_id=creator_id, role=TOP_ROLE.value,
    ))
    db.session.commit()
    logger.info("Workspace created id=%s org=%s slug=%s", ws.id, org.id, slug)
    return ws


def update_workspace(workspace_id: str, data: dict[str, Any]) -> Workspace:
    ws = get_workspace(workspace_id)
    if "name" in data or "slug" in data:
        name, slug = _name_and_slug({
            "name": data.get("name", ws.name),
            "slug": data.get("slug", ws.slug),
        })
        if slug != ws.slug:
            taken = db.session.execute(
                select(Workspace.id).where(
                    Workspace.organization_id == ws.organization_id,
                    Workspace.slug == slug,
                )
            ).scalar_one_or_none()
            if taken:
                raise ConflictError(resource="Workspace", field="slug", value=slug)
        ws.name, ws.slug = name, slug
    if "description" in data:
        ws.description = data["description"]
    db.session.commit()
    return ws


def delete_workspace(workspace_id: str) -> None:
    ws = get_workspace(workspace_id)
    db.session.delete(ws)
    db.session.commit()
    logger.info("Workspace deleted id=%s", workspace_id)


# ═════════════════════════════════════════════════════════════════════════
# Projects
# ═════════════════════════════════════════════════════════════════════════


def get_project(project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def get_project_by_slug(slug: str) -> Project:
    project = db.session.execute(
        select(Project).where(Project.slug == slug)
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="Project", resource_id=slug)
    return project


def _apply_project_enums(project: Project, data: dict[str, Any]) -> None:
    for field, allowed in (("visibility", VISIBILITIES), ("status", PROJECT_STATUSES)):
        if field not in data:
            continue
        value = (data.get(field) or "").upper()
        err = _validate_enum(value, allowed, field) if value else f"{field} is required"
        if err:
            raise ValidationError(err, details={field: data.get(field)})
        setattr(project, field, value)


def create_project(workspace_id: str, data: dict[str, Any], *, creator_id: str) -> Project:
    """Create a project inside a workspace; the creator becomes its OWNER.

    Project slugs are unique platform-wide because by-slug routes carry no
    workspace context.
    """
    ws = get_workspace(workspace_id)
    name, slug = _name_and_slug(data)
    taken = db.session.execute(
        select(Project.id).where(Project.slug == slug)
    ).scalar_one_or_none()
    if taken:
        raise ConflictError(resource="Project", field="slug", value=slug)

    project = Project(
        workspace_id=ws.id,
        name=name,
        slug=slug,
        description=data.get("description"),
    )
    _apply_project_enums(project, data)
    db.session.add(project)
    db.session.flush()
    db.session.add(ProjectMember(
        project_id=project.id, user_id=creator_id, role=TOP_ROLE.value,
    ))
    db.session.commit()
    logger.info(
        "Project created id=%s workspace=%s slug=%s visibility=%s",
        project.id, ws.id, slug, project.visibility,
    )
    return project


def update_project(project_id: str, data: dict[str, Any]) -> Project:
    project = get_project(project_id)
    if "name" in data or "slug" in data:
        name, slug = _name_and_slug({
            "name": data.get("name", project.name),
            "slug": data.get("slug", project.slug),
        })
        if slug != project.slug:
            taken = db.session.execute(
                select(Project.id).where(Project.slug == slug)
            ).scalar_one_or_none()
            if taken:
                raise ConflictError(resource="Project", field="slug", value=slug)
        project.name, project.slug = name, slug
    if "description" in data:
        project.description = data["description"]
    _apply_project_enums(project, data)
    db.session.commit()
    return project


def delete_project(project_id: str) -> None:
    project = get_project(project_id)
    db.session.delete(project)
    db.session.commit()
    logger.info("Project deleted id=%s", project_id)
