"""Workspace blueprint.

Endpoint groups:
  Workspaces   GET/PATCH/DELETE /api/v1/workspaces/<workspaceId>
  Members      GET/POST /api/v1/workspaces/<workspaceId>/members
               PATCH/DELETE /api/v1/workspaces/<workspaceId>/members/<memberId>
  Projects     POST /api/v1/workspaces/<workspaceId>/projects
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from taskpilot.middleware.access_guard import get_resolver
from taskpilot.middleware.jwt_auth import current_user
from taskpilot.services import hierarchy_service, membership_service
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

workspaces_bp = Blueprint("workspaces", __name__, url_prefix="/api/v1/workspaces")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@workspaces_bp.route("/<workspaceId>", methods=["GET"])
def get_workspace(workspaceId):  # noqa: N803
    ws = hierarchy_service.get_workspace(workspaceId)
    return jsonify(ws.to_dict()), 200


@workspaces_bp.route("/<workspaceId>", methods=["PATCH"])
def update_workspace(workspaceId):  # noqa: N803
    ws = hierarchy_service.update_workspace(workspaceId, _body())
    return jsonify(ws.to_dict()), 200


@workspaces_bp.route("/<workspaceId>", methods=["DELETE"])
def delete_workspace(workspaceId):  # noqa: N803
    hierarchy_service.delete_workspace(workspaceId)
    return "", 204


# ── Members ──────────────────────────────────────────────────────────────


@workspaces_bp.route("/<workspaceId>/members", methods=["GET"])
def list_workspace_members(workspaceId):  # noqa: N803
    members = membership_service.list_members(ScopeKind.WORKSPACE, workspaceId)
    return jsonify([m.to_dict() for m in members]), 200


@workspaces_bp.route("/<workspaceId>/members", methods=["POST"])
def add_workspace_member(workspaceId):  # noqa: N803
    data = _body()
    member = membership_service.add_member(
        ScopeKind.WORKSPACE, workspaceId, data.get("user_id"), data.get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 201


@workspaces_bp.route("/<workspaceId>/members/<int:memberId>", methods=["PATCH"])
def update_workspace_member(workspaceId, memberId):  # noqa: N803
    member = membership_service.change_member_role(
        ScopeKind.WORKSPACE, workspaceId, memberId, _body().get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 200


@workspaces_bp.route("/<workspaceId>/members/<int:memberId>", methods=["DELETE"])
def remove_workspace_member(workspaceId, memberId):  # noqa: N803
    membership_service.remove_member(
        ScopeKind.WORKSPACE, workspaceId, memberId,
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return "", 204


# ── Projects ─────────────────────────────────────────────────────────────


@workspaces_bp.route("/<workspaceId>/projects", methods=["POST"])
def create_project(workspaceId):  # noqa: N803
    """Body: {name, slug?, description?, visibility?, status?}"""
    project = hierarchy_service.create_project(
        workspaceId, _body(), creator_id=current_user().id,
    )
    return jsonify(project.to_dict()), 201
