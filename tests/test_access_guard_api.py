"""
Access guard over HTTP: status codes, error envelopes and log records.

Tests cover:
  - Unauthenticated / invalid token → 401
  - Rank checks on organization, workspace and project routes
  - Public project by slug, unknown slug, malformed organization id
  - Super-admin bypass
  - Scope-not-specified and scope-id-missing configuration errors
  - Scope ids in query or body never override the route's own scope
  - Member routes cap granted roles at the caller's rank
"""

import pytest

from taskpilot.middleware import access_guard
from taskpilot.models import db
from taskpilot.models.organization import OrganizationMember, WorkspaceMember
from taskpilot.models.project import Project, ProjectMember
from taskpilot.services import hierarchy_service
from taskpilot.services.role_order import ROLE_ORDER
from taskpilot.services.scope_inference import OperationPolicy, ScopeDescriptor, ScopeKind


def _add(model, user, role, **scope):
    row = model(user_id=user.id, role=role, **scope)
    db.session.add(row)
    db.session.commit()
    return row


def _assert_error(res, status, code, message):
    assert res.status_code == status, res.get_json()
    body = res.get_json()
    assert body["code"] == code
    assert body["error"] == message


# ═══════════════════════════════════════════════════════════════
# Authentication
# ═══════════════════════════════════════════════════════════════

class TestAuthentication:
    def test_missing_token(self, client, hierarchy):
        res = client.get(f"/api/v1/organizations/{hierarchy['org'].id}")
        _assert_error(res, 401, "ERR_UNAUTHENTICATED", "Unauthenticated")

    def test_garbage_token(self, client, hierarchy):
        res = client.get(
            f"/api/v1/organizations/{hierarchy['org'].id}",
            headers={"Authorization": "Bearer not.a.jwt"},
        )
        _assert_error(res, 401, "ERR_UNAUTHENTICATED", "Unauthenticated")

    def test_unprotected_route_still_requires_login(self, client):
        res = client.post("/api/v1/organizations", json={"name": "Nope"})
        _assert_error(res, 401, "ERR_UNAUTHENTICATED", "Unauthenticated")

    def test_health_is_open(self, client):
        assert client.get("/api/v1/health").status_code == 200
        assert client.get("/api/v1/health/live").get_json()["status"] == "healthy"


# ═══════════════════════════════════════════════════════════════
# Organization scope
# ═══════════════════════════════════════════════════════════════

class TestOrganizationScope:
    def test_owner_reads_and_updates(self, client, hierarchy, auth_headers):
        org_id = hierarchy["org"].id
        headers = auth_headers(hierarchy["owner"])
        assert client.get(f"/api/v1/organizations/{org_id}", headers=headers).status_code == 200
        res = client.patch(f"/api/v1/organizations/{org_id}", json={"name": "Acme Inc"}, headers=headers)
        assert res.status_code == 200
        assert res.get_json()["name"] == "Acme Inc"

    def test_member_cannot_update_until_promoted(self, client, hierarchy, make_user, auth_headers):
        org_id = hierarchy["org"].id
        user = make_user()
        member = _add(OrganizationMember, user, "MEMBER", organization_id=org_id)
        headers = auth_headers(user)

        res = client.patch(f"/api/v1/organizations/{org_id}", json={"name": "X"}, headers=headers)
        _assert_error(res, 403, "ERR_INSUFFICIENT_ROLE", "Insufficient role")

        member.role = "MANAGER"
        db.session.commit()
        res = client.patch(f"/api/v1/organizations/{org_id}", json={"name": "X"}, headers=headers)
        assert res.status_code == 200

    def test_manager_cannot_delete(self, client, hierarchy, make_user, auth_headers):
        org_id = hierarchy["org"].id
        user = make_user()
        _add(OrganizationMember, user, "MANAGER", organization_id=org_id)
        res = client.delete(f"/api/v1/organizations/{org_id}", headers=auth_headers(user))
        _assert_error(res, 403, "ERR_INSUFFICIENT_ROLE", "Insufficient role")

    def test_stranger_is_not_a_member(self, client, hierarchy, make_user, auth_headers):
        res = client.get(
            f"/api/v1/organizations/{hierarchy['org'].id}", headers=auth_headers(make_user()),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_malformed_org_id_is_not_a_member(self, client, hierarchy, auth_headers):
        res = client.get("/api/v1/organizations/acme", headers=auth_headers(hierarchy["owner"]))
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_any_user_can_create_an_organization(self, client, make_user, auth_headers):
        user = make_user()
        res = client.post(
            "/api/v1/organizations", json={"name": "New Co"}, headers=auth_headers(user),
        )
        assert res.status_code == 201
        body = res.get_json()
        assert body["slug"] == "new-co"
        assert body["owner_id"] == user.id

    def test_super_admin_bypasses_membership(self, client, hierarchy, make_user, auth_headers):
        admin = make_user(role="SUPER_ADMIN")
        res = client.delete(
            f"/api/v1/organizations/{hierarchy['org'].id}", headers=auth_headers(admin),
        )
        assert res.status_code == 204


# ═══════════════════════════════════════════════════════════════
# Workspace & project scope
# ═══════════════════════════════════════════════════════════════

class TestWorkspaceAndProjectScope:
    def test_workspace_member_can_create_project(self, client, hierarchy, make_user, auth_headers):
        ws_id = hierarchy["workspace"].id
        user = make_user()
        _add(WorkspaceMember, user, "MEMBER", workspace_id=ws_id)
        res = client.post(
            f"/api/v1/workspaces/{ws_id}/projects",
            json={"name": "Mobile", "slug": "mobile"},
            headers=auth_headers(user),
        )
        assert res.status_code == 201
        assert res.get_json()["workspace_id"] == ws_id

    def test_workspace_viewer_cannot_create_project(self, client, hierarchy, make_user, auth_headers):
        ws_id = hierarchy["workspace"].id
        user = make_user()
        _add(WorkspaceMember, user, "VIEWER", workspace_id=ws_id)
        res = client.post(
            f"/api/v1/workspaces/{ws_id}/projects", json={"name": "Mobile"},
            headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_INSUFFICIENT_ROLE", "Insufficient role")

    def test_org_membership_does_not_grant_project_access(self, client, hierarchy, make_user, auth_headers):
        user = make_user()
        _add(OrganizationMember, user, "OWNER", organization_id=hierarchy["org"].id)
        res = client.get(
            f"/api/v1/projects/{hierarchy['project'].id}", headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_project_tasks_by_rank(self, client, hierarchy, make_user, auth_headers):
        project_id = hierarchy["project"].id
        viewer, member = make_user(), make_user()
        _add(ProjectMember, viewer, "VIEWER", project_id=project_id)
        _add(ProjectMember, member, "MEMBER", project_id=project_id)

        res = client.post(
            f"/api/v1/projects/{project_id}/tasks", json={"title": "Write docs"},
            headers=auth_headers(viewer),
        )
        _assert_error(res, 403, "ERR_INSUFFICIENT_ROLE", "Insufficient role")

        res = client.post(
            f"/api/v1/projects/{project_id}/tasks", json={"title": "Write docs"},
            headers=auth_headers(member),
        )
        assert res.status_code == 201
        assert res.get_json()["reporter_id"] == member.id

        res = client.get(f"/api/v1/projects/{project_id}/tasks", headers=auth_headers(viewer))
        assert res.status_code == 200
        assert [t["title"] for t in res.get_json()] == ["Write docs"]


# ═══════════════════════════════════════════════════════════════
# Project by slug
# ═══════════════════════════════════════════════════════════════

class TestProjectBySlug:
    def test_private_project_requires_membership(self, client, hierarchy, make_user, auth_headers):
        res = client.get("/api/v1/projects/by-slug/backend", headers=auth_headers(make_user()))
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_public_project_is_readable_by_any_user(self, client, hierarchy, make_user, auth_headers):
        project = db.session.get(Project, hierarchy["project"].id)
        project.visibility = "PUBLIC"
        db.session.commit()

        res = client.get("/api/v1/projects/by-slug/backend", headers=auth_headers(make_user()))
        assert res.status_code == 200
        assert res.get_json()["id"] == project.id

    def test_public_project_still_needs_login(self, client, hierarchy):
        res = client.get("/api/v1/projects/by-slug/backend")
        _assert_error(res, 401, "ERR_UNAUTHENTICATED", "Unauthenticated")

    def test_unknown_slug(self, client, make_user, auth_headers):
        res = client.get("/api/v1/projects/by-slug/ghost", headers=auth_headers(make_user()))
        _assert_error(res, 404, "ERR_NOT_FOUND", "Project not found")


# ═══════════════════════════════════════════════════════════════
# Configuration errors
# ═══════════════════════════════════════════════════════════════

class TestScopeConfigurationErrors:
    def test_scope_not_specified_is_logged_as_error(
        self, client, make_user, auth_headers, monkeypatch, caplog,
    ):
        monkeypatch.setattr(
            access_guard, "resolve_policy",
            lambda endpoint: OperationPolicy(required_roles=ROLE_ORDER),
        )
        with caplog.at_level("ERROR", logger="taskpilot.middleware.access_guard"):
            res = client.post(
                "/api/v1/organizations", json={"name": "X"}, headers=auth_headers(make_user()),
            )
        _assert_error(res, 400, "ERR_SCOPE_NOT_SPECIFIED", "Scope not specified")
        record = next(r for r in caplog.records if r.levelname == "ERROR")
        assert record.reason == "SCOPE_NOT_SPECIFIED"

    def test_declared_locator_absent(self, client, make_user, auth_headers, monkeypatch):
        monkeypatch.setattr(
            access_guard, "resolve_policy",
            lambda endpoint: OperationPolicy(
                required_roles=ROLE_ORDER, scope=ScopeDescriptor(ScopeKind.PROJECT, "slug"),
            ),
        )
        res = client.post(
            "/api/v1/organizations", json={"name": "X"}, headers=auth_headers(make_user()),
        )
        _assert_error(res, 400, "ERR_SCOPE_ID_MISSING", "Scope id missing")


def test_denials_are_logged_with_scope_fields(client, hierarchy, make_user, auth_headers, caplog):
    user = make_user()
    with caplog.at_level("WARNING", logger="taskpilot.middleware.access_guard"):
        client.get(f"/api/v1/workspaces/{hierarchy['workspace'].id}", headers=auth_headers(user))
    record = next(r for r in caplog.records if r.levelname == "WARNING")
    assert record.user_id == user.id
    assert record.scope_kind == "WORKSPACE"
    assert record.scope_id == hierarchy["workspace"].id
    assert record.reason == "NOT_A_MEMBER"


@pytest.mark.parametrize("path", ["/api/v1/nope", "/api/v1/projects/x/unknown"])
def test_unrouted_paths_are_plain_404(client, path):
    assert client.get(path).status_code == 404


# ═══════════════════════════════════════════════════════════════
# Declared scopes: foreign ids in query/body are ignored
# ═══════════════════════════════════════════════════════════════

class TestDeclaredRouteScope:
    @pytest.fixture()
    def intruder(self, make_user):
        """A user who owns an unrelated organization."""
        user = make_user()
        own_org = hierarchy_service.create_organization({"name": "Elsewhere"}, owner_id=user.id)
        return user, own_org.id

    def test_query_org_id_does_not_unlock_project_delete(
        self, client, hierarchy, intruder, auth_headers,
    ):
        user, own_org_id = intruder
        project_id = hierarchy["project"].id
        res = client.delete(
            f"/api/v1/projects/{project_id}?organizationId={own_org_id}",
            headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")
        res = client.get(f"/api/v1/projects/{project_id}", headers=auth_headers(hierarchy["owner"]))
        assert res.status_code == 200

    def test_body_org_id_does_not_unlock_workspace_membership(
        self, client, hierarchy, intruder, auth_headers,
    ):
        user, own_org_id = intruder
        ws_id = hierarchy["workspace"].id
        res = client.post(
            f"/api/v1/workspaces/{ws_id}/members",
            json={"user_id": user.id, "role": "OWNER", "organizationId": own_org_id},
            headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")
        assert db.session.query(WorkspaceMember).filter_by(user_id=user.id).count() == 0

    def test_query_org_id_does_not_unlock_workspace_update(
        self, client, hierarchy, intruder, auth_headers,
    ):
        user, own_org_id = intruder
        res = client.patch(
            f"/api/v1/workspaces/{hierarchy['workspace'].id}?organizationId={own_org_id}",
            json={"name": "Taken"}, headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_body_org_id_does_not_unlock_task_creation(
        self, client, hierarchy, intruder, auth_headers,
    ):
        user, own_org_id = intruder
        res = client.post(
            f"/api/v1/projects/{hierarchy['project'].id}/tasks",
            json={"title": "Sneaky", "organizationId": own_org_id},
            headers=auth_headers(user),
        )
        _assert_error(res, 403, "ERR_NOT_A_MEMBER", "Not a member of this scope")

    def test_denial_logs_the_route_scope(self, client, hierarchy, intruder, auth_headers, caplog):
        user, own_org_id = intruder
        with caplog.at_level("WARNING", logger="taskpilot.middleware.access_guard"):
            client.delete(
                f"/api/v1/projects/{hierarchy['project'].id}?organizationId={own_org_id}",
                headers=auth_headers(user),
            )
        record = next(r for r in caplog.records if r.levelname == "WARNING")
        assert record.scope_kind == "PROJECT"
        assert record.scope_id == hierarchy["project"].id


# ═══════════════════════════════════════════════════════════════
# Member routes: rank ceiling on granted roles
# ═══════════════════════════════════════════════════════════════

class TestMemberRoleCeiling:
    def test_workspace_manager_cannot_promote_self_to_owner(
        self, client, hierarchy, make_user, auth_headers,
    ):
        ws_id = hierarchy["workspace"].id
        manager = make_user()
        row = _add(WorkspaceMember, manager, "MANAGER", workspace_id=ws_id)
        res = client.patch(
            f"/api/v1/workspaces/{ws_id}/members/{row.id}",
            json={"role": "OWNER"}, headers=auth_headers(manager),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"
        db.session.refresh(row)
        assert row.role == "MANAGER"

    def test_project_manager_cannot_add_owner(self, client, hierarchy, make_user, auth_headers):
        project_id = hierarchy["project"].id
        manager, newcomer = make_user(), make_user()
        _add(ProjectMember, manager, "MANAGER", project_id=project_id)
        headers = auth_headers(manager)

        res = client.post(
            f"/api/v1/projects/{project_id}/members",
            json={"user_id": newcomer.id, "role": "OWNER"}, headers=headers,
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

        res = client.post(
            f"/api/v1/projects/{project_id}/members",
            json={"user_id": newcomer.id, "role": "MANAGER"}, headers=headers,
        )
        assert res.status_code == 201
        assert res.get_json()["role"] == "MANAGER"

    def test_org_manager_cannot_remove_org_owner_member(
        self, client, hierarchy, make_user, auth_headers,
    ):
        org_id = hierarchy["org"].id
        manager, co_owner = make_user(), make_user()
        _add(OrganizationMember, manager, "MANAGER", organization_id=org_id)
        row = _add(OrganizationMember, co_owner, "OWNER", organization_id=org_id)
        res = client.delete(
            f"/api/v1/organizations/{org_id}/members/{row.id}", headers=auth_headers(manager),
        )
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_owner_grants_owner(self, client, hierarchy, make_user, auth_headers):
        ws_id = hierarchy["workspace"].id
        res = client.post(
            f"/api/v1/workspaces/{ws_id}/members",
            json={"user_id": make_user().id, "role": "OWNER"},
            headers=auth_headers(hierarchy["owner"]),
        )
        assert res.status_code == 201
        assert res.get_json()["role"] == "OWNER"
