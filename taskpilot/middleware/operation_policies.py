"""
Operation Access Policies — the declaration surface of the access guard.

Every protected operation is listed here once, keyed by its Flask endpoint
("<blueprint>.<view function>"). A blueprint-level entry supplies defaults;
an endpoint-level entry overrides them key by key (required roles and scope
separately), so the most specific declaration wins.

    required_roles  — any one of them is sufficient (rank comparison)
    scope           — explicit ScopeDescriptor; omitted → inferred from params

Each blueprint declares the path parameter that identifies its scope, so a
stray organizationId in the query string or body cannot redirect the check
to another scope. Inference only applies to endpoints outside these tables.

Both tables are built at import time and exposed read-only.

Reference:
    organizations : members read, managers write, owners delete
    workspaces    : members read, managers write, contributors add projects
    projects      : members read, contributors add tasks, managers write,
                    owners delete; by-slug reads declare the slug locator
"""

from __future__ import annotations

from types import MappingProxyType

from taskpilot.services.role_order import Role
from taskpilot.services.scope_inference import (
    ORGANIZATION_ID_PARAM,
    PROJECT_ID_PARAM,
    SLUG_PARAM,
    WORKSPACE_ID_PARAM,
    OperationPolicy,
    ScopeDescriptor,
    ScopeKind,
)

# ── Role sets ────────────────────────────────────────────────────────────────

ANY_MEMBER = (Role.VIEWER, Role.MEMBER, Role.MANAGER, Role.OWNER)
CONTRIBUTORS = (Role.MEMBER, Role.MANAGER, Role.OWNER)
MANAGERS = (Role.MANAGER, Role.OWNER)
OWNERS = (Role.OWNER,)

UNPROTECTED = ()

# ── Blueprint defaults ───────────────────────────────────────────────────────

BLUEPRINT_POLICIES = MappingProxyType({
    "organizations": OperationPolicy(
        required_roles=ANY_MEMBER,
        scope=ScopeDescriptor(ScopeKind.ORGANIZATION, ORGANIZATION_ID_PARAM),
    ),
    "workspaces": OperationPolicy(
        required_roles=ANY_MEMBER,
        scope=ScopeDescriptor(ScopeKind.WORKSPACE, WORKSPACE_ID_PARAM),
    ),
    "projects": OperationPolicy(
        required_roles=ANY_MEMBER,
        scope=ScopeDescriptor(ScopeKind.PROJECT, PROJECT_ID_PARAM),
    ),
})

# ── Endpoint overrides ───────────────────────────────────────────────────────

OPERATION_POLICIES = MappingProxyType({
    # organizations
    "organizations.create_organization": OperationPolicy(required_roles=UNPROTECTED),
    "organizations.update_organization": OperationPolicy(required_roles=MANAGERS),
    "organizations.delete_organization": OperationPolicy(required_roles=OWNERS),
    "organizations.add_organization_member": OperationPolicy(required_roles=MANAGERS),
    "organizations.update_organization_member": OperationPolicy(required_roles=MANAGERS),
    "organizations.remove_organization_member": OperationPolicy(required_roles=MANAGERS),
    "organizations.create_workspace": OperationPolicy(required_roles=MANAGERS),
    # workspaces
    "workspaces.update_workspace": OperationPolicy(required_roles=MANAGERS),
    "workspaces.delete_workspace": OperationPolicy(required_roles=OWNERS),
    "workspaces.add_workspace_member": OperationPolicy(required_roles=MANAGERS),
    "workspaces.update_workspace_member": OperationPolicy(required_roles=MANAGERS),
    "workspaces.remove_workspace_member": OperationPolicy(required_roles=MANAGERS),
    "workspaces.create_project": OperationPolicy(required_roles=CONTRIBUTORS),
    # projects
    "projects.get_project_by_slug": OperationPolicy(
        scope=ScopeDescriptor(ScopeKind.PROJECT, SLUG_PARAM),
    ),
    "projects.update_project": OperationPolicy(required_roles=MANAGERS),
    "projects.delete_project": OperationPolicy(required_roles=OWNERS),
    "projects.add_project_member": OperationPolicy(required_roles=MANAGERS),
    "projects.update_project_member": OperationPolicy(required_roles=MANAGERS),
    "projects.remove_project_member": OperationPolicy(required_roles=MANAGERS),
    "projects.create_task": OperationPolicy(required_roles=CONTRIBUTORS),
})


def resolve_policy(
    endpoint: str | None,
    *,
    blueprint_policies=BLUEPRINT_POLICIES,
    operation_policies=OPERATION_POLICIES,
) -> OperationPolicy | None:
    """Return the effective policy for an endpoint, or None if nothing is declared."""
    if not endpoint:
        return None
    bp_name = endpoint.rsplit(".", 1)[0] if "." in endpoint else None
    broad = blueprint_policies.get(bp_name) if bp_name else None
    specific = operation_policies.get(endpoint)
    if broad is None:
        return specific
    return broad.overridden_by(specific)
