"""
Membership Resolver — the access-control engine's only window on persistence.

Contract (consumed by access_decision and elevated_access):
    lookup(kind, user_id, scope_id)      -> Role | None
    find_project_by_slug(slug)           -> ProjectRef | None
    organization_owner_id(kind, scope_id) -> str | None
    global_role(user_id)                 -> str | None

Organization lookups require both ids to be UUID-shaped; anything else is
answered with "no membership" instead of reaching the database. Workspace
and project lookups are not guarded.

Usage:
    resolver = SqlMembershipResolver()
    role = resolver.lookup(ScopeKind.WORKSPACE, user_id, workspace_id)
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass

from taskpilot.models import db
from taskpilot.models.auth import User
from taskpilot.models.organization import (
    Organization,
    OrganizationMember,
    Workspace,
    WorkspaceMember,
)
from taskpilot.models.project import Project, ProjectMember
from taskpilot.services.role_order import Role, parse_role
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)

PUBLIC_VISIBILITY = "PUBLIC"


def is_uuid(value) -> bool:
    return isinstance(value, str) and UUID_RE.match(value) is not None


@dataclass(frozen=True)
class ProjectRef:
    """Result of a project-by-slug lookup."""

    id: str
    visibility: str

    @property
    def is_public(self) -> bool:
        return (self.visibility or "").upper() == PUBLIC_VISIBILITY


class MembershipResolver(ABC):
    """Base resolver: applies the organization id guard, delegates storage."""

    def lookup(self, kind: ScopeKind, user_id: str, scope_id: str) -> Role | None:
        if kind is ScopeKind.ORGANIZATION and not (is_uuid(user_id) and is_uuid(scope_id)):
            logger.debug(
                "Malformed organization lookup ids user=%r org=%r, treated as no membership",
                user_id, scope_id,
            )
            return None
        raw = self._lookup_role(kind, str(user_id), str(scope_id))
        if raw is None:
            return None
        try:
            return parse_role(raw)
        except ValueError:
            logger.error(
                "Unknown role %r stored for user=%s %s=%s, treated as no membership",
                raw, user_id, kind.value.lower(), scope_id,
            )
            return None

    @abstractmethod
    def _lookup_role(self, kind: ScopeKind, user_id: str, scope_id: str) -> str | None:
        """Return the raw stored role for (kind, user, scope), or None."""

    @abstractmethod
    def find_project_by_slug(self, slug: str) -> ProjectRef | None:
        ...

    @abstractmethod
    def organization_owner_id(self, kind: ScopeKind, scope_id: str) -> str | None:
        """Owner-by-FK of the organization containing the given scope."""

    @abstractmethod
    def global_role(self, user_id: str) -> str | None:
        ...


_MEMBER_TABLES = {
    ScopeKind.ORGANIZATION: (OrganizationMember, "organization_id"),
    ScopeKind.WORKSPACE: (WorkspaceMember, "workspace_id"),
    ScopeKind.PROJECT: (ProjectMember, "project_id"),
}


class SqlMembershipResolver(MembershipResolver):
    """Resolver backed by the membership tables through ``db.session``."""

    def _lookup_role(self, kind: ScopeKind, user_id: str, scope_id: str) -> str | None:
        model, scope_column = _MEMBER_TABLES[kind]
        row = (
            db.session.query(model.role)
            .filter(model.user_id == user_id, getattr(model, scope_column) == scope_id)
            .first()
        )
        return row[0] if row else None

    def find_project_by_slug(self, slug: str) -> ProjectRef | None:
        row = (
            db.session.query(Project.id, Project.visibility)
            .filter(Project.slug == slug)
            .first()
        )
        if row is None:
            return None
        return ProjectRef(id=row[0], visibility=row[1])

    def organization_owner_id(self, kind: ScopeKind, scope_id: str) -> str | None:
        q = db.session.query(Organization.owner_id)
        if kind is ScopeKind.ORGANIZATION:
            q = q.filter(Organization.id == scope_id)
        elif kind is ScopeKind.WORKSPACE:
            q = q.join(Workspace, Workspace.organization_id == Organization.id).filter(
                Workspace.id == scope_id
            )
        else:
            q = (
                q.join(Workspace, Workspace.organization_id == Organization.id)
                .join(Project, Project.workspace_id == Workspace.id)
                .filter(Project.id == scope_id)
            )
        row = q.first()
        return row[0] if row else None

    def global_role(self, user_id: str) -> str | None:
        row = db.session.query(User.role).filter(User.id == str(user_id)).first()
        return row[0] if row else None
