"""Scope inference priority, parameter lookup order and policy merging."""

import dataclasses

import pytest

from taskpilot.services.role_order import Role
from taskpilot.services.scope_inference import (
    OperationPolicy,
    RequestParams,
    ScopeDescriptor,
    ScopeKind,
    infer_scope,
    resolve_scope,
)


def _params(**path):
    return RequestParams(path=path)


@pytest.mark.parametrize(
    "params, expected",
    [
        ({"organizationId": "o", "workspaceId": "w", "projectId": "p"},
         ScopeDescriptor(ScopeKind.ORGANIZATION, "organizationId")),
        ({"workspaceId": "w", "projectId": "p"},
         ScopeDescriptor(ScopeKind.WORKSPACE, "workspaceId")),
        ({"projectId": "p", "id": "x", "slug": "s"},
         ScopeDescriptor(ScopeKind.PROJECT, "projectId")),
        ({"id": "x", "slug": "s"}, ScopeDescriptor(ScopeKind.PROJECT, "slug")),
        ({"id": "x"}, ScopeDescriptor(ScopeKind.PROJECT, "id")),
    ],
)
def test_inference_priority(params, expected):
    assert infer_scope(_params(**params)) == expected


def test_slug_alone_is_not_inferred():
    assert infer_scope(_params(slug="proj-x")) is None


def test_nothing_inferable():
    assert infer_scope(RequestParams()) is None


def test_empty_values_do_not_count():
    assert infer_scope(_params(organizationId="", workspaceId="w")) == ScopeDescriptor(
        ScopeKind.WORKSPACE, "workspaceId"
    )


def test_inference_reads_query_and_body():
    params = RequestParams(query={"projectId": "p"}, body={"workspaceId": "w"})
    assert infer_scope(params).kind is ScopeKind.WORKSPACE


class TestRequestParams:
    def test_path_beats_query_beats_body(self):
        params = RequestParams(
            path={"id": "from-path"},
            query={"id": "from-query", "slug": "q"},
            body={"id": "from-body", "slug": "b", "extra": 1},
        )
        assert params.get("id") == "from-path"
        assert params.get("slug") == "q"
        assert params.get("extra") == 1
        assert params.get("missing") is None

    def test_empty_string_falls_through(self):
        params = RequestParams(path={"id": ""}, body={"id": "b"})
        assert params.get("id") == "b"
        assert params.has("id")

    def test_from_flask_request(self, app):
        with app.test_request_context(
            "/api/v1/anything?workspaceId=w1", method="POST", json={"projectId": "p1"},
        ):
            from flask import request
            params = RequestParams.from_flask_request(request)
        assert params.get("workspaceId") == "w1"
        assert params.get("projectId") == "p1"

    def test_non_object_json_body_is_ignored(self, app):
        with app.test_request_context("/api/v1/anything", method="POST", json=["id"]):
            from flask import request
            params = RequestParams.from_flask_request(request)
        assert params.body == {}


def test_declared_descriptor_wins_over_inference():
    declared = ScopeDescriptor(ScopeKind.PROJECT, "slug")
    params = _params(organizationId="o", slug="proj")
    assert resolve_scope(declared, params) is declared
    assert resolve_scope(None, params).kind is ScopeKind.ORGANIZATION


class TestOperationPolicy:
    def test_roles_are_coerced(self):
        policy = OperationPolicy(required_roles=["manager", Role.OWNER])
        assert policy.required_roles == (Role.MANAGER, Role.OWNER)

    def test_unknown_role_rejected_at_declaration(self):
        with pytest.raises(ValueError):
            OperationPolicy(required_roles=("ADMIN",))

    def test_specific_overrides_key_by_key(self):
        broad = OperationPolicy(
            required_roles=(Role.VIEWER,), scope=ScopeDescriptor(ScopeKind.WORKSPACE, "workspaceId"),
        )
        specific = OperationPolicy(required_roles=(Role.OWNER,))
        merged = broad.overridden_by(specific)
        assert merged.required_roles == (Role.OWNER,)
        assert merged.scope == broad.scope

    def test_empty_roles_override_means_unprotected(self):
        merged = OperationPolicy(required_roles=(Role.VIEWER,)).overridden_by(
            OperationPolicy(required_roles=())
        )
        assert merged.required_roles == ()

    def test_policy_is_frozen(self):
        policy = OperationPolicy(required_roles=(Role.VIEWER,))
        with pytest.raises(dataclasses.FrozenInstanceError):
            policy.required_roles = ()
