"""
Elevated-Access Predicate — "may this user see organization-wide data here?"

A user is elevated at a scope when any of these holds:
  - their global role is SUPER_ADMIN
  - they own (organizations.owner_id) the organization containing the scope,
    with or without a membership row
  - their membership role at the scope ranks at or above MANAGER

Analytics and search services call this instead of comparing ranks
themselves; it reads memberships through the same resolver the request
guard uses, so both sides agree on who is elevated.

Usage:
    from taskpilot.services.elevated_access import is_elevated

    if is_elevated(ScopeKind.ORGANIZATION, user_id, org_id):
        q = org_wide_query
    else:
        q = self_scoped_query
"""

from __future__ import annotations

from taskpilot.services.membership_resolver import MembershipResolver, SqlMembershipResolver
from taskpilot.services.role_order import ELEVATED_ROLE, is_super_role, rank
from taskpilot.services.scope_inference import ScopeKind


def is_elevated(
    scope_kind: ScopeKind,
    user_id: str,
    scope_id: str,
    *,
    resolver: MembershipResolver | None = None,
) -> bool:
    resolver = resolver or SqlMembershipResolver()
    user_id = str(user_id)
    scope_id = str(scope_id)

    if is_super_role(resolver.global_role(user_id)):
        return True

    owner_id = resolver.organization_owner_id(scope_kind, scope_id)
    if owner_id is not None and str(owner_id) == user_id:
        return True

    role = resolver.lookup(scope_kind, user_id, scope_id)
    if role is None:
        return False
    return rank(role) >= rank(ELEVATED_ROLE)
