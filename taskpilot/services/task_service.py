"""Task service — list/create tasks inside a project."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from sqlalchemy import select

from taskpilot.core.exceptions import NotFoundError, ValidationError
from taskpilot.models import db
from taskpilot.models.auth import User
from taskpilot.models.project import Task
from taskpilot.services.hierarchy_service import get_project

logger = logging.getLogger(__name__)

TASK_STATUSES = {"TODO", "IN_PROGRESS", "DONE"}


def _parse_due_date(value) -> date | None:
    if value in (None, ""):
        return None
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(
            "due_date must be an ISO date (YYYY-MM-DD)", details={"due_date": value}
        ) from None


def list_tasks(project_id: str, *, status: str | None = None) -> list[Task]:
    project = get_project(project_id)
    stmt = select(Task).where(Task.project_id == project.id)
    if status:
        stmt = stmt.where(Task.status == status.upper())
    return list(db.session.execute(stmt.order_by(Task.created_at)).scalars())


def create_task(project_id: str, data: dict[str, Any], *, reporter_id: str) -> Task:
    """Create a task reported by ``reporter_id``.

    Raises:
        ValidationError: title missing, unknown status or malformed due_date.
        NotFoundError: project or assignee does not exist.
    """
    project = get_project(project_id)
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationError("title is required", details={"title": "required"})
    if len(title) > 300:
        raise ValidationError("title exceeds maximum length of 300 characters")

    status = (data.get("status") or "TODO").upper()
    if status not in TASK_STATUSES:
        raise ValidationError(
            f"Invalid status: '{status}'. Allowed: {sorted(TASK_STATUSES)}",
            details={"status": data.get("status")},
        )

    assignee_id = data.get("assignee_id")
    if assignee_id and db.session.get(User, assignee_id) is None:
        raise NotFoundError(resource="User", resource_id=assignee_id)

    task = Task(
        project_id=project.id,
        title=title,
        status=status,
        assignee_id=assignee_id or None,
        reporter_id=reporter_id,
        due_date=_parse_due_date(data.get("due_date")),
    )
    db.session.add(task)
    db.session.commit()
    logger.info("Task created id=%s project=%s", task.id, project.id)
    return task
