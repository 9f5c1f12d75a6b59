"""
Analytics service — organization task summary.

Elevated callers (super-role, organization owner, MANAGER+) see every task in
the organization; everyone else sees only tasks assigned to or reported by
them. The split is decided by ``is_elevated``.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import func, or_, select

from taskpilot.models import db
from taskpilot.models.organization import Workspace
from taskpilot.models.project import Project, Task
from taskpilot.services.elevated_access import is_elevated
from taskpilot.services.hierarchy_service import get_organization
from taskpilot.services.scope_inference import ScopeKind

logger = logging.getLogger(__name__)

DONE_STATUS = "DONE"


def organization_task_summary(org_id: str, user_id: str, *, resolver=None, today: date | None = None) -> dict:
    """Count tasks in an organization, grouped by status.

    Returns:
        {
            "organization_id": ...,
            "view": "organization" | "self",
            "total": int,
            "by_status": {"TODO": n, ...},
            "overdue": int,     # due before today and not DONE
        }
    """
    org = get_organization(org_id)
    elevated = is_elevated(ScopeKind.ORGANIZATION, user_id, org.id, resolver=resolver)
    today = today or date.today()

    filters = [Workspace.organization_id == org.id]
    if not elevated:
        filters.append(or_(Task.assignee_id == user_id, Task.reporter_id == user_id))

    base = (
        select(Task.status, func.count(Task.id))
        .join(Project, Project.id == Task.project_id)
        .join(Workspace, Workspace.id == Project.workspace_id)
        .where(*filters)
        .group_by(Task.status)
    )
    by_status = {status: count for status, count in db.session.execute(base).all()}

    overdue = db.session.execute(
        select(func.count(Task.id))
        .join(Project, Project.id == Task.project_id)
        .join(Workspace, Workspace.id == Project.workspace_id)
        .where(*filters, Task.due_date < today, Task.status != DONE_STATUS)
    ).scalar_one()

    logger.debug(
        "Task summary org=%s user=%s elevated=%s", org.id, user_id, elevated,
        extra={"user_id": user_id, "scope_kind": ScopeKind.ORGANIZATION.value, "scope_id": org.id},
    )
    return {
        "organization_id": org.id,
        "view": "organization" if elevated else "self",
        "total": sum(by_status.values()),
        "by_status": by_status,
        "overdue": overdue,
    }
