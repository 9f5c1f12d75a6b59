"""
Membership service — add/list/change/remove members at every scope level.

The three membership tables share one shape (user_id, <scope>_id, role),
so every operation takes a ScopeKind and dispatches through ``_SCOPES``.

Organization-level rules:
  - Adding a MANAGER or OWNER also grants that role in every workspace of
    the organization the user is not already a member of.
  - Changing an organization role updates the user's existing workspace
    memberships in that organization.
  - The owner-by-foreign-key can be neither demoted nor removed.
  - Removing an organization member also removes the user's workspace and
    project memberships inside that organization.

Rank ceiling (every level), when the acting user is given:
  - a caller may grant or assign roles up to their own rank at the scope,
    and may not change or remove a member who outranks them;
  - the super-role and the organization owner-by-foreign-key have no ceiling.
  Violations raise PermissionDenied (HTTP 403).

Transaction policy: public functions call db.session.commit() on success.
"""

from __future__ import annotations

import logging

from sqlalchemy import delete, select

from taskpilot.core.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    ValidationError,
)
from taskpilot.models import db
from taskpilot.models.auth import User
from taskpilot.models.organization import (
    Organization,
    OrganizationMember,
    Workspace,
    WorkspaceMember,
)
from taskpilot.models.project import Project, ProjectMember
from taskpilot.services.membership_resolver import MembershipResolver, SqlMembershipResolver
from taskpilot.services.role_order import (
    ELEVATED_ROLE,
    TOP_ROLE,
    has_at_least,
    is_super_role,
    parse_role,
    rank,
)
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

# kind → (scope model, membership model, FK column name on the membership model)
_SCOPES = {
    ScopeKind.ORGANIZATION: (Organization, OrganizationMember, "organization_id"),
    ScopeKind.WORKSPACE: (Workspace, WorkspaceMember, "workspace_id"),
    ScopeKind.PROJECT: (Project, ProjectMember, "project_id"),
}


def _scope(kind: ScopeKind, scope_id: str):
    scope_model, _, _ = _SCOPES[kind]
    scope = db.session.get(scope_model, scope_id)
    if scope is None:
        raise NotFoundError(resource=scope_model.__name__, resource_id=scope_id)
    return scope


def _role(value) -> str:
    try:
        return parse_role(value).value
    except ValueError:
        raise ValidationError(
            f"Invalid role: {value!r}", details={"role": value}
        ) from None


def _member(kind: ScopeKind, scope_id: str, member_id: int):
    _, member_model, fk = _SCOPES[kind]
    member = db.session.get(member_model, member_id)
    if member is None or getattr(member, fk) != scope_id:
        raise NotFoundError(resource=member_model.__name__, resource_id=member_id)
    return member


def _enforce_rank_ceiling(
    kind: ScopeKind,
    scope_id: str,
    acting_user_id: str | None,
    action: str,
    roles,
    resolver: MembershipResolver | None = None,
) -> None:
    """Raise PermissionDenied if any of ``roles`` outranks the acting user here."""
    if acting_user_id is None:
        return
    resolver = resolver or SqlMembershipResolver()
    acting_user_id = str(acting_user_id)

    if is_super_role(resolver.global_role(acting_user_id)):
        return
    owner_id = resolver.organization_owner_id(kind, scope_id)
    if owner_id is not None and str(owner_id) == acting_user_id:
        return

    own_role = resolver.lookup(kind, acting_user_id, scope_id)
    if own_role is None or any(rank(r) > rank(own_role) for r in roles):
        logger.warning(
            "Rank ceiling violated kind=%s scope=%s user=%s action=%s",
            kind.value, scope_id, acting_user_id, action,
        )
        raise PermissionDenied(acting_user_id, action, scope=f"{kind.value} {scope_id}")


def list_members(kind: ScopeKind, scope_id: str) -> list:
    _scope(kind, scope_id)
    _, member_model, fk = _SCOPES[kind]
    stmt = (
        select(member_model)
        .where(getattr(member_model, fk) == scope_id)
        .order_by(member_model.joined_at, member_model.id)
    )
    return list(db.session.execute(stmt).scalars())


def add_member(
    kind: ScopeKind,
    scope_id: str,
    user_id: str,
    role=None,
    *,
    acting_user_id: str | None = None,
    resolver: MembershipResolver | None = None,
):
    """Add ``user_id`` to a scope with ``role`` (default MEMBER).

    Raises:
        NotFoundError: scope or user does not exist.
        ValidationError: unknown role.
        PermissionDenied: ``role`` outranks the acting user at this scope.
        ConflictError: the user is already a member of this scope.
    """
    scope = _scope(kind, scope_id)
    role_value = _role(role or "MEMBER")
    _enforce_rank_ceiling(
        kind, scope_id, acting_user_id, f"grant {role_value}", (role_value,), resolver,
    )
    if not user_id:
        raise ValidationError("user_id is required", details={"user_id": "required"})
    if db.session.get(User, user_id) is None:
        raise NotFoundError(resource="User", resource_id=user_id)

    _, member_model, fk = _SCOPES[kind]
    existing = db.session.execute(
        select(member_model.id).where(
            getattr(member_model, fk) == scope_id, member_model.user_id == user_id,
        )
    ).scalar_one_or_none()
    if existing:
        raise ConflictError(resource=member_model.__name__, field="user_id", value=user_id)

    member = member_model(user_id=user_id, role=role_value, **{fk: scope_id})
    db.session.add(member)

    if kind is ScopeKind.ORGANIZATION and has_at_least(role_value, ELEVATED_ROLE):
        _grant_workspaces(scope, user_id, role_value)

    db.session.commit()
    logger.info(
        "Member added kind=%s scope=%s user=%s role=%s",
        kind.value, scope_id, user_id, role_value,
    )
    return member


def _grant_workspaces(org: Organization, user_id: str, role_value: str) -> None:
    already = set(db.session.execute(
        select(WorkspaceMember.workspace_id)
        .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
        .where(Workspace.organization_id == org.id, WorkspaceMember.user_id == user_id)
    ).scalars())
    for ws_id in db.session.execute(
        select(Workspace.id).where(Workspace.organization_id == org.id)
    ).scalars():
        if ws_id not in already:
            db.session.add(WorkspaceMember(workspace_id=ws_id, user_id=user_id, role=role_value))


def change_member_role(
    kind: ScopeKind,
    scope_id: str,
    member_id: int,
    role,
    *,
    acting_user_id: str | None = None,
    resolver: MembershipResolver | None = None,
):
    scope = _scope(kind, scope_id)
    member = _member(kind, scope_id, member_id)
    role_value = _role(role)
    _enforce_rank_ceiling(
        kind, scope_id, acting_user_id, f"change role to {role_value}",
        (role_value, member.role), resolver,
    )

    if kind is ScopeKind.ORGANIZATION:
        if scope.owner_id == member.user_id and role_value != TOP_ROLE.value:
            raise ValidationError("Cannot change the role of organization owner")
        ws_members = db.session.execute(
            select(WorkspaceMember)
            .join(Workspace, Workspace.id == WorkspaceMember.workspace_id)
            .where(
                Workspace.organization_id == scope.id,
                WorkspaceMember.user_id == member.user_id,
            )
        ).scalars()
        for ws_member in ws_members:
            ws_member.role = role_value

    previous = member.role
    member.role = role_value
    db.session.commit()
    logger.info(
        "Member role changed kind=%s scope=%s user=%s %s→%s",
        kind.value, scope_id, member.user_id, previous, role_value,
    )
    return member


def remove_member(
    kind: ScopeKind,
    scope_id: str,
    member_id: int,
    *,
    acting_user_id: str | None = None,
    resolver: MembershipResolver | None = None,
) -> None:
    scope = _scope(kind, scope_id)
    member = _member(kind, scope_id, member_id)
    _enforce_rank_ceiling(
        kind, scope_id, acting_user_id, "remove member", (member.role,), resolver,
    )
    user_id = member.user_id

    if kind is ScopeKind.ORGANIZATION:
        if scope.owner_id == user_id:
            raise ValidationError("Cannot remove organization owner from organization")
        ws_ids = select(Workspace.id).where(Workspace.organization_id == scope.id)
        project_ids = select(Project.id).where(Project.workspace_id.in_(ws_ids))
        db.session.execute(
            delete(ProjectMember).where(
                ProjectMember.user_id == user_id, ProjectMember.project_id.in_(project_ids),
            )
        )
        db.session.execute(
            delete(WorkspaceMember).where(
                WorkspaceMember.user_id == user_id, WorkspaceMember.workspace_id.in_(ws_ids),
            )
        )

    db.session.delete(member)
    db.session.commit()
    logger.info("Member removed kind=%s scope=%s user=%s", kind.value, scope_id, user_id)
