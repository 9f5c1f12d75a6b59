"""
Access Guard — app-level before_request hook that authorizes every API call.

Architecture:
    A single app.before_request hook resolves the current endpoint, looks up
    its effective OperationPolicy (middleware/operation_policies.py), builds
    the typed parameter bag from path/query/body and asks the decision
    procedure for a verdict. Handlers only run after an Allow.

    The verdict is stored on ``g.access_decision`` for handlers that want it.
    A Deny is rendered here, and only here, as a JSON error:

        UNAUTHENTICATED      401  "Unauthenticated"
        SCOPE_NOT_SPECIFIED  400  "Scope not specified"
        SCOPE_ID_MISSING     400  "Scope id missing"
        NOT_FOUND            404  "Project not found"
        NOT_A_MEMBER         403  "Not a member of this scope"
        INSUFFICIENT_ROLE    403  "Insufficient role"

The membership resolver is injected through ``init_access_guard`` and kept
in ``app.extensions``; it defaults to the SQL-backed resolver.
"""

import logging

from flask import Flask, current_app, g, request

from taskpilot.middleware.jwt_auth import current_user
from taskpilot.middleware.operation_policies import (
    BLUEPRINT_POLICIES,
    OPERATION_POLICIES,
    resolve_policy,
)
from taskpilot.services.access_decision import DenyReason, evaluate_access
from taskpilot.services.membership_resolver import MembershipResolver, SqlMembershipResolver
from taskpilot.services.scope_inference import RequestParams
from taskpilot.utils.errors import E, api_error

logger = logging.getLogger(__name__)

EXTENSION_KEY = "taskpilot.membership_resolver"

# Blueprints that never go through the guard:
#   health: monitoring, stays open
SKIP_BLUEPRINTS = {"health"}

_DENY_CODES = {
    DenyReason.UNAUTHENTICATED: E.UNAUTHENTICATED,
    DenyReason.SCOPE_NOT_SPECIFIED: E.SCOPE_NOT_SPECIFIED,
    DenyReason.SCOPE_ID_MISSING: E.SCOPE_ID_MISSING,
    DenyReason.NOT_FOUND: E.NOT_FOUND,
    DenyReason.NOT_A_MEMBER: E.NOT_A_MEMBER,
    DenyReason.INSUFFICIENT_ROLE: E.INSUFFICIENT_ROLE,
}


def get_resolver() -> MembershipResolver:
    return current_app.extensions[EXTENSION_KEY]


def deny_response(decision):
    """Translate a Deny verdict into the standard API error tuple."""
    return api_error(_DENY_CODES[decision.reason], decision.reason.message)


def init_access_guard(app: Flask, resolver: MembershipResolver | None = None):
    """
    Register the access guard. Call once in create_app() after all
    blueprints are registered.
    """
    app.extensions[EXTENSION_KEY] = resolver or SqlMembershipResolver()

    declared = set(OPERATION_POLICIES)
    stale = sorted(ep for ep in declared if ep not in app.view_functions)
    for endpoint in stale:
        logger.warning("Access policy declared for unknown endpoint %s", endpoint)

    @app.before_request
    def _enforce_access():
        if not request.path.startswith("/api/v1/"):
            return None

        endpoint = request.endpoint
        if not endpoint:
            return None  # unrouted → 404/405 handlers

        bp_name = request.blueprint
        if bp_name in SKIP_BLUEPRINTS:
            return None

        policy = resolve_policy(endpoint)
        params = RequestParams.from_flask_request(request)
        user = current_user()
        decision = evaluate_access(user, policy, params, resolver=get_resolver())
        g.access_decision = decision

        if decision.allowed:
            return None

        extra = {
            "user_id": user.id if user else None,
            "scope_kind": decision.scope_kind.value if decision.scope_kind else None,
            "scope_id": decision.scope_id,
            "decision": decision.decision,
            "reason": decision.reason.value,
        }
        if decision.reason is DenyReason.SCOPE_NOT_SPECIFIED:
            logger.error(
                "No scope declared or inferable for protected endpoint %s", endpoint,
                extra=extra,
            )
        else:
            logger.warning(
                "Access denied: endpoint=%s reason=%s", endpoint, decision.reason.value,
                extra=extra,
            )
        return deny_response(decision)

    logger.info(
        "Access guard installed: %d blueprint defaults, %d endpoint policies",
        len(BLUEPRINT_POLICIES), len(OPERATION_POLICIES),
    )
