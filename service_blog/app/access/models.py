"""
Role and permission models for access control.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional

WILDCARD = "*"


class Role(str, Enum):
    """Closed set of actor roles."""
    GUEST = "guest"
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


def role_name(role: Any) -> Optional[str]:
    """Plain role name for a Role member or string; None for anything else."""
    if isinstance(role, Role):
        return role.value
    if isinstance(role, str):
        return role
    return None


@dataclass(frozen=True)
class RoleHierarchy:
    """Static role levels and permission sets; read-only once built."""
    levels: Mapping[str, int]
    permissions: Mapping[str, FrozenSet[str]]
    default_role: str = Role.GUEST.value

    def __post_init__(self):
        levels = dict(self.levels)
        permissions = {role: frozenset(perms) for role, perms in self.permissions.items()}

        if len(set(levels.values())) != len(levels):
            raise ValueError("Role levels must be strictly ordered")
        if set(levels) != set(permissions):
            raise ValueError("Every role needs both a level and a permission set")
        empty = [role for role, perms in permissions.items() if not perms]
        if empty:
            raise ValueError(f"Roles without permissions: {sorted(empty)}")
        if self.default_role not in levels:
            raise ValueError(f"Default role {self.default_role!r} is not defined")

        object.__setattr__(self, "levels", MappingProxyType(levels))
        object.__setattr__(self, "permissions", MappingProxyType(permissions))

    def __contains__(self, role: Any) -> bool:
        return role_name(role) in self.levels

    def roles(self):
        """Role names from lowest to highest level."""
        return sorted(self.levels, key=self.levels.__getitem__)


DEFAULT_HIERARCHY = RoleHierarchy(
    levels={
        Role.GUEST.value: 1,
        Role.USER.value: 2,
        Role.MODERATOR.value: 3,
        Role.ADMIN.value: 4,
    },
    permissions={
        Role.ADMIN.value: frozenset({WILDCARD}),
        Role.MODERATOR.value: frozenset({
            "read_all_posts",
            "edit_any_post",
            "delete_any_post",
            "manage_users",
            "view_reports",
        }),
        Role.USER.value: frozenset({
            "create_post",
            "edit_own_post",
            "delete_own_post",
            "comment",
            "view_posts",
        }),
        Role.GUEST.value: frozenset({"view_posts"}),
    },
)
