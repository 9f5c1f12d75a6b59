"""
Authorization Decision Procedure — one verdict per request.

Evaluation is deterministic and deny-by-default:

   1. no authenticated user                    → Deny(UNAUTHENTICATED)
   2. global role is SUPER_ADMIN               → Allow
   3. no required roles declared               → Allow
   4. scope neither declared nor inferable     → Deny(SCOPE_NOT_SPECIFIED)
   5. locator value absent                     → Deny(SCOPE_ID_MISSING)
   6. project slug does not resolve            → Deny(NOT_FOUND)
   7. slug-resolved project is PUBLIC          → Allow
   8. membership lookup (resolver)
   9. no membership                            → Deny(NOT_A_MEMBER)
  10. some required role r with rank(member) >= rank(r) → Allow
      otherwise                                → Deny(INSUFFICIENT_ROLE)

Denials are returned as values, never raised; the request layer
(middleware/access_guard.py) turns them into HTTP errors. Nothing is cached
between calls: the verdict is a function of (user, policy, params) and the
membership state the resolver currently sees.

Usage:
    decision = evaluate_access(user, policy, params, resolver=SqlMembershipResolver())
    if not decision.allowed:
        ...  # decision.reason.message
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from taskpilot.services.membership_resolver import MembershipResolver
from taskpilot.services.role_order import Role, is_super_role, rank
from taskpilot.services.scope_inference import (
    OperationPolicy,
    RequestParams,
    ScopeKind,
    resolve_scope,
)


class DenyReason(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    SCOPE_NOT_SPECIFIED = "SCOPE_NOT_SPECIFIED"
    SCOPE_ID_MISSING = "SCOPE_ID_MISSING"
    NOT_FOUND = "NOT_FOUND"
    NOT_A_MEMBER = "NOT_A_MEMBER"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"

    @property
    def message(self) -> str:
        return _DENY_MESSAGES[self]


_DENY_MESSAGES = {
    DenyReason.UNAUTHENTICATED: "Unauthenticated",
    DenyReason.SCOPE_NOT_SPECIFIED: "Scope not specified",
    DenyReason.SCOPE_ID_MISSING: "Scope id missing",
    DenyReason.NOT_FOUND: "Project not found",
    DenyReason.NOT_A_MEMBER: "Not a member of this scope",
    DenyReason.INSUFFICIENT_ROLE: "Insufficient role",
}


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity attached to the request by the JWT middleware."""

    id: str
    global_role: str | None = None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    decision: str
    reason: DenyReason | None = None
    scope_kind: ScopeKind | None = None
    scope_id: str | None = None
    member_role: Role | None = None

    @classmethod
    def allow(cls, decision: str, **scope) -> AccessDecision:
        return cls(allowed=True, decision=decision, **scope)

    @classmethod
    def deny(cls, reason: DenyReason, **scope) -> AccessDecision:
        return cls(allowed=False, decision="deny", reason=reason, **scope)

    @property
    def message(self) -> str | None:
        return self.reason.message if self.reason else None

    def to_dict(self) -> dict:
        return {
            "allowed": self.allowed,
            "decision": self.decision,
            "reason": self.reason.value if self.reason else None,
            "scope_kind": self.scope_kind.value if self.scope_kind else None,
            "scope_id": self.scope_id,
            "member_role": self.member_role.value if self.member_role else None,
        }


def evaluate_access(
    user: AuthenticatedUser | None,
    policy: OperationPolicy | None,
    params: RequestParams,
    *,
    resolver: MembershipResolver,
) -> AccessDecision:
    """Decide whether ``user`` may perform the operation described by ``policy``."""
    if user is None or not user.id:
        return AccessDecision.deny(DenyReason.UNAUTHENTICATED)

    if is_super_role(user.global_role):
        return AccessDecision.allow("allow_superuser")

    required = policy.required_roles if policy is not None else None
    if not required:
        return AccessDecision.allow("allow_unprotected")

    scope = resolve_scope(policy.scope, params)
    if scope is None:
        return AccessDecision.deny(DenyReason.SCOPE_NOT_SPECIFIED)

    raw_id = params.get(scope.locator)
    if raw_id is None:
        return AccessDecision.deny(DenyReason.SCOPE_ID_MISSING, scope_kind=scope.kind)
    scope_id = str(raw_id)

    if scope.is_slug:
        project = resolver.find_project_by_slug(scope_id)
        if project is None:
            return AccessDecision.deny(
                DenyReason.NOT_FOUND, scope_kind=scope.kind, scope_id=scope_id
            )
        scope_id = project.id
        if project.is_public:
            return AccessDecision.allow(
                "allow_public_project", scope_kind=scope.kind, scope_id=scope_id
            )

    member_role = resolver.lookup(scope.kind, str(user.id), scope_id)
    if member_role is None:
        return AccessDecision.deny(
            DenyReason.NOT_A_MEMBER, scope_kind=scope.kind, scope_id=scope_id
        )

    member_rank = rank(member_role)
    if any(member_rank >= rank(r) for r in required):
        return AccessDecision.allow(
            "allow_role_rank",
            scope_kind=scope.kind, scope_id=scope_id, member_role=member_role,
        )
    return AccessDecision.deny(
        DenyReason.INSUFFICIENT_ROLE,
        scope_kind=scope.kind, scope_id=scope_id, member_role=member_role,
    )
