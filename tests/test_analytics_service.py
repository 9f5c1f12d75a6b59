"""Organization task summary: org-wide view for elevated callers, self view otherwise."""

from datetime import date

import pytest

from taskpilot.models import db
from taskpilot.models.project import Task
from taskpilot.services import analytics_service, membership_service
from taskpilot.services.scope_inference import ScopeKind

TODAY = date(2026, 3, 1)


@pytest.fixture()
def worker(hierarchy, make_user):
    """Org MEMBER plus three tasks: one assigned to them, one reported by them, one unrelated."""
    worker = make_user()
    membership_service.add_member(ScopeKind.ORGANIZATION, hierarchy["org"].id, worker.id, "MEMBER")
    pid, owner_id = hierarchy["project"].id, hierarchy["owner"].id
    db.session.add_all([
        Task(project_id=pid, title="assigned", status="TODO",
             assignee_id=worker.id, reporter_id=owner_id, due_date=date(2026, 2, 1)),
        Task(project_id=pid, title="reported", status="DONE",
             reporter_id=worker.id, due_date=date(2026, 2, 1)),
        Task(project_id=pid, title="other", status="IN_PROGRESS",
             reporter_id=owner_id, due_date=date(2026, 2, 1)),
    ])
    db.session.commit()
    return worker


def test_owner_sees_whole_organization(hierarchy, worker):
    summary = analytics_service.organization_task_summary(
        hierarchy["org"].id, hierarchy["owner"].id, today=TODAY,
    )
    assert summary["view"] == "organization"
    assert summary["total"] == 3
    assert summary["by_status"] == {"TODO": 1, "DONE": 1, "IN_PROGRESS": 1}
    assert summary["overdue"] == 2


def test_plain_member_sees_only_own_tasks(hierarchy, worker):
    summary = analytics_service.organization_task_summary(hierarchy["org"].id, worker.id, today=TODAY)
    assert summary["view"] == "self"
    assert summary["total"] == 2
    assert summary["by_status"] == {"TODO": 1, "DONE": 1}
    assert summary["overdue"] == 1


def test_promotion_switches_to_org_view(hierarchy, worker):
    member = next(
        m for m in membership_service.list_members(ScopeKind.ORGANIZATION, hierarchy["org"].id)
        if m.user_id == worker.id
    )
    membership_service.change_member_role(ScopeKind.ORGANIZATION, hierarchy["org"].id, member.id, "MANAGER")
    summary = analytics_service.organization_task_summary(hierarchy["org"].id, worker.id, today=TODAY)
    assert summary["view"] == "organization"
    assert summary["total"] == 3


def test_task_summary_route(client, hierarchy, worker, auth_headers):
    res = client.get(
        f"/api/v1/organizations/{hierarchy['org'].id}/analytics/task-summary",
        headers=auth_headers(worker),
    )
    assert res.status_code == 200
    assert res.get_json()["view"] == "self"
