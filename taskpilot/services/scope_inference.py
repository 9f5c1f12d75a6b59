"""
Scope Descriptors & Scope Inference
===================================

Every protected operation declares *which roles* it needs and, optionally,
*where* in the request the scope identifier lives (an explicit
``ScopeDescriptor``).  When no descriptor is declared the scope is inferred
from parameter names.

Inference order (first match wins):
  1. organizationId          → ORGANIZATION, locator "organizationId"
  2. workspaceId             → WORKSPACE,    locator "workspaceId"
  3. projectId               → PROJECT,      locator "projectId"
  4. id AND slug             → PROJECT,      locator "slug"
  5. id                      → PROJECT,      locator "id"
  6. nothing matched         → None (configuration error, not a denial)

Parameter lookup priority is fixed: path > query > body.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any

from taskpilot.services.role_order import Role, parse_role

_EMPTY: Mapping[str, Any] = MappingProxyType({})


class ScopeKind(str, Enum):
    ORGANIZATION = "ORGANIZATION"
    WORKSPACE = "WORKSPACE"
    PROJECT = "PROJECT"


# Request field names that carry scope identifiers.
ORGANIZATION_ID_PARAM = "organizationId"
WORKSPACE_ID_PARAM = "workspaceId"
PROJECT_ID_PARAM = "projectId"
ID_PARAM = "id"
SLUG_PARAM = "slug"


@dataclass(frozen=True)
class ScopeDescriptor:
    """Where the scope identifier lives and at which level."""

    kind: ScopeKind
    locator: str

    @property
    def is_slug(self) -> bool:
        return self.kind is ScopeKind.PROJECT and self.locator == SLUG_PARAM


@dataclass(frozen=True)
class OperationPolicy:
    """Per-operation declaration: required roles and an optional explicit scope.

    ``required_roles=None`` means "not declared at this level" (a broader
    declaration may still apply); an empty tuple means "declared unprotected".
    """

    required_roles: tuple[Role, ...] | None = None
    scope: ScopeDescriptor | None = None

    def __post_init__(self):
        if self.required_roles is not None:
            object.__setattr__(
                self, "required_roles", tuple(parse_role(r) for r in self.required_roles)
            )

    def overridden_by(self, specific: OperationPolicy | None) -> OperationPolicy:
        """Merge a more specific declaration over this one, key by key."""
        if specific is None:
            return self
        return OperationPolicy(
            required_roles=(
                specific.required_roles
                if specific.required_roles is not None
                else self.required_roles
            ),
            scope=specific.scope if specific.scope is not None else self.scope,
        )


def _present(value: Any) -> bool:
    return value is not None and value != ""


@dataclass(frozen=True)
class RequestParams:
    """Typed parameter bag with a fixed lookup order: path > query > body."""

    path: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    query: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    body: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)

    def get(self, name: str) -> Any:
        for source in (self.path, self.query, self.body):
            value = source.get(name)
            if _present(value):
                return value
        return None

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    @classmethod
    def from_flask_request(cls, request) -> RequestParams:
        body = request.get_json(silent=True) if request.is_json else None
        return cls(
            path=dict(request.view_args or {}),
            query=request.args.to_dict(),
            body=body if isinstance(body, dict) else {},
        )


def infer_scope(params: RequestParams) -> ScopeDescriptor | None:
    """Derive a scope descriptor from parameter names, or None."""
    if params.has(ORGANIZATION_ID_PARAM):
        return ScopeDescriptor(ScopeKind.ORGANIZATION, ORGANIZATION_ID_PARAM)
    if params.has(WORKSPACE_ID_PARAM):
        return ScopeDescriptor(ScopeKind.WORKSPACE, WORKSPACE_ID_PARAM)
    if params.has(PROJECT_ID_PARAM):
        return ScopeDescriptor(ScopeKind.PROJECT, PROJECT_ID_PARAM)
    if params.has(ID_PARAM) and params.has(SLUG_PARAM):
        return ScopeDescriptor(ScopeKind.PROJECT, SLUG_PARAM)
    if params.has(ID_PARAM):
        return ScopeDescriptor(ScopeKind.PROJECT, ID_PARAM)
    return None


def resolve_scope(
    declared: ScopeDescriptor | None, params: RequestParams
) -> ScopeDescriptor | None:
    """Declared descriptor if present, else inference."""
    return declared if declared is not None else infer_scope(params)
