"""Project blueprint.

Endpoint groups:
  Projects   GET/PATCH/DELETE /api/v1/projects/<projectId>
             GET /api/v1/projects/by-slug/<slug>
  Members    GET/POST /api/v1/projects/<projectId>/members
             PATCH/DELETE /api/v1/projects/<projectId>/members/<memberId>
  Tasks      GET/POST /api/v1/projects/<projectId>/tasks

The by-slug route declares its scope explicitly (project located by slug),
so PUBLIC projects are readable by any authenticated user there.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from taskpilot.middleware.access_guard import get_resolver
from taskpilot.middleware.jwt_auth import current_user
from taskpilot.services import hierarchy_service, membership_service, task_service
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

projects_bp = Blueprint("projects", __name__, url_prefix="/api/v1/projects")


def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@projects_bp.route("/by-slug/<slug>", methods=["GET"])
def get_project_by_slug(slug):
    project = hierarchy_service.get_project_by_slug(slug)
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<projectId>", methods=["GET"])
def get_project(projectId):  # noqa: N803
    project = hierarchy_service.get_project(projectId)
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<projectId>", methods=["PATCH"])
def update_project(projectId):  # noqa: N803
    project = hierarchy_service.update_project(projectId, _body())
    return jsonify(project.to_dict()), 200


@projects_bp.route("/<projectId>", methods=["DELETE"])
def delete_project(projectId):  # noqa: N803
    hierarchy_service.delete_project(projectId)
    return "", 204


# ── Members ──────────────────────────────────────────────────────────────


@projects_bp.route("/<projectId>/members", methods=["GET"])
def list_project_members(projectId):  # noqa: N803
    members = membership_service.list_members(ScopeKind.PROJECT, projectId)
    return jsonify([m.to_dict() for m in members]), 200


@projects_bp.route("/<projectId>/members", methods=["POST"])
def add_project_member(projectId):  # noqa: N803
    data = _body()
    member = membership_service.add_member(
        ScopeKind.PROJECT, projectId, data.get("user_id"), data.get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 201


@projects_bp.route("/<projectId>/members/<int:memberId>", methods=["PATCH"])
def update_project_member(projectId, memberId):  # noqa: N803
    member = membership_service.change_member_role(
        ScopeKind.PROJECT, projectId, memberId, _body().get("role"),
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return jsonify(member.to_dict()), 200


@projects_bp.route("/<projectId>/members/<int:memberId>", methods=["DELETE"])
def remove_project_member(projectId, memberId):  # noqa: N803
    membership_service.remove_member(
        ScopeKind.PROJECT, projectId, memberId,
        acting_user_id=current_user().id, resolver=get_resolver(),
    )
    return "", 204


# ── Tasks ────────────────────────────────────────────────────────────────


@projects_bp.route("/<projectId>/tasks", methods=["GET"])
def list_tasks(projectId):  # noqa: N803
    """Query params: status (optional filter)."""
    tasks = task_service.list_tasks(projectId, status=request.args.get("status"))
    return jsonify([t.to_dict() for t in tasks]), 200


@projects_bp.route("/<projectId>/tasks", methods=["POST"])
def create_task(projectId):  # noqa: N803
    """Body: {title, status?, assignee_id?, due_date?}"""
    task = task_service.create_task(projectId, _body(), reporter_id=current_user().id)
    return jsonify(task.to_dict()), 201
