"""Organization blueprint.

Endpoint groups:
  Organizations      POST /api/v1/organizations
                     GET/PATCH/DELETE /api/v1/organizations/<organizationId>
  Members            GET/POST /api/v1/organizations/<organizationId>/members
                     PATCH/DELETE /api/v1/organizations/<organizationId>/members/<memberId>
  Workspaces         POST /api/v1/organizations/<organizationId>/workspaces
  Analytics          GET /api/v1/organizations/<organizationId>/analytics/task-summary

Access is enforced by the access guard before any handler runs; the
required roles per endpoint live in middleware/operation_policies.py.
Path parameters keep their camelCase names because the guard infers the
scope from them.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from taskpilot.middleware.access_guard import get_resolver
from taskpilot.middleware.jwt_auth import current_user
from taskpilot.services import analytics_service, hierarchy_service, membership_service
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

organizations_bp = Blueprint("organizations", __name__, url_prefix="/api/v1/organizations")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


# ═════════════════════════════════════════════════════════════════════════
# Organizations
# ═════════════════════════════════════════════════════════════════════════


@organizations_bp.route("", methods=["POST"])
def create_organization():
    """Create an organization; the caller becomes its owner.

    Body: {name, slug?, description?}
    """
    org = hierarchy_service.create_organization(_body(), owner_id=current_user().id)
    return jsonify(org.to_dict()), 201


@organizations_bp.route("/<organizationId>", methods=["GET"])
def get_organization(organizationId):  # noqa: N803
    org = hierarchy_service.get_organization(organizationId)
    return jsonify(org.to_dict()), 200


@organizations_bp.route("/<organizationId>", methods=["PATCH"])
def update_organization(organizationId):  # noqa: N803
    org = hierarchy_service.update_organization(organizationId, _body())
    return jsonify(org.to_dict()), 200


@organizations_bp.route("/<organizationId>", methods=["DELETE"])
def delete_organization(organizationId):  # noqa: N803
    hierarchy_service.delete_organization(organizationId)
    return "", 204


# ═════════════════════════════════════════════════════════════════════════
# Members
# ═════════════════════════════════════════════════════════════════════════


@organizations_bp.route("/<organizationId>/members", methods=["GET"])
def list_organization_members(organizationId):  # noqa: N803
    members = membership_service.list_members(ScopeKind.ORGANIZATION, organizationId)
    return jsonify([m.to_dict() for m in members]), 200


@organizations_bp.route("/<organizationId>/members", methods=["POST"])
def add_organization_member(organizationId):  # noqa: N803
    """Body: {user_id, role?}. MANAGER/OWNER roles are also granted in every workspace."""
    data = _body()
    member = membership_service.add_member(
        ScopeKind.ORGANIZATION, organizationId, data.get("user_id"), data.get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 201


@organizations_bp.route("/<organizationId>/members/<int:memberId>", methods=["PATCH"])
def update_organization_member(organizationId, memberId):  # noqa: N803
    member = membership_service.change_member_role(
        ScopeKind.ORGANIZATION, organizationId, memberId, _body().get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 200


@organizations_bp.route("/<organizationId>/members/<int:memberId>", methods=["DELETE"])
def remove_organization_member(organizationId, memberId):  # noqa: N803
    membership_service.remove_member(
        ScopeKind.ORGANIZATION, organizationId, memberId,
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return "", 204


# ═════════════════════════════════════════════════════════════════════════
# Workspaces
# ═════════════════════════════════════════════════════════════════════════


@organizations_bp.route("/<organizationId>/workspaces", methods=["POST"])
def create_workspace(organizationId):  # noqa: N803
    """Body: {name, slug?, description?}"""
    ws = hierarchy_service.create_workspace(
        organizationId, _body(), creator_id=current_user().id,
    )
    return jsonify(ws.to_dict()), 201


# ═════════════════════════════════════════════════════════════════════════
# Analytics
# ═════════════════════════════════════════════════════════════════════════


@organizations_bp.route("/<organizationId>/analytics/task-summary", methods=["GET"])
def organization_task_summary(organizationId):  # noqa: N803
    """Org-wide counts for elevated callers, own tasks for everyone else."""
    summary = analytics_service.organization_task_summary(
        organizationId, current_user().id, resolver=get_resolver(),
    )
    return jsonify(summary), 200
