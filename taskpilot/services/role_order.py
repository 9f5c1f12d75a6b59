"""
Role Order Table — the closed, totally ordered set of scope roles.

    VIEWER (0) < MEMBER (1) < MANAGER (2) < OWNER (3)

``rank(a) >= rank(b)`` is the only comparison primitive the rest of the
access-control code uses. The platform super-role (SUPER_ADMIN) is a *global*
user role and deliberately not part of this table: it is checked before any
rank comparison happens.

Usage:
    from taskpilot.services.role_order import Role, rank, has_at_least

    if has_at_least(member_role, Role.MANAGER):
        ...
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType


class Role(str, Enum):
    """Scope membership role (organization, workspace and project tables)."""
    VIEWER = "VIEWER"
    MEMBER = "MEMBER"
    MANAGER = "MANAGER"
    OWNER = "OWNER"


class GlobalRole(str, Enum):
    """Platform-wide user role stored on ``users.role``."""
    USER = "USER"
    SUPER_ADMIN = "SUPER_ADMIN"


SUPER_ROLE = GlobalRole.SUPER_ADMIN

# Declared order, lowest privilege first. Index == rank.
ROLE_ORDER: tuple[Role, ...] = (Role.VIEWER, Role.MEMBER, Role.MANAGER, Role.OWNER)

ROLE_RANK = MappingProxyType({role: idx for idx, role in enumerate(ROLE_ORDER)})

# Granted to whoever creates a scope.
TOP_ROLE = ROLE_ORDER[-1]

# Second-highest role: the threshold for "elevated" access.
ELEVATED_ROLE = ROLE_ORDER[-2]


def parse_role(value: Role | str) -> Role:
    """Coerce an enum member or a case-insensitive role name to ``Role``.

    Raises:
        ValueError: if the value does not name a scope role.
    """
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        try:
            return Role(value.strip().upper())
        except ValueError:
            pass
    raise ValueError(
        f"Unknown role {value!r}. Must be one of: {', '.join(r.value for r in ROLE_ORDER)}"
    )


def rank(role: Role | str) -> int:
    """Return the position of ``role`` in the declared order."""
    return ROLE_RANK[parse_role(role)]


def has_at_least(role: Role | str, minimum: Role | str) -> bool:
    return rank(role) >= rank(minimum)


def is_super_role(global_role: GlobalRole | str | None) -> bool:
    if global_role is None:
        return False
    value = global_role.value if isinstance(global_role, GlobalRole) else str(global_role)
    return value.upper() == SUPER_ROLE.value
