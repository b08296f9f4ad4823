"""
Access control over actor roles and the static role hierarchy.
"""

from typing import Any, List, Optional

from shared.logging import get_logger
from shared.errors import AccessDenied, AuthenticationError, StoreError, UnknownRole
from shared.metrics import MetricsCollector
from ..persistence.repositories import UserRepository
from .models import DEFAULT_HIERARCHY, WILDCARD, RoleHierarchy, role_name


class AccessControl:
    """Answers "may actor X do Y" and "may actor X manage actor Z".

    Actors are resolved to roles through the users table. An absent actor,
    an unknown actor, a role outside the hierarchy and a failed lookup all
    resolve to the default (guest) role.
    """

    def __init__(self, users: UserRepository, hierarchy: RoleHierarchy = DEFAULT_HIERARCHY,
                 metrics: Optional[MetricsCollector] = None):
        self.users = users
        self.hierarchy = hierarchy
        self.metrics = metrics
        self.logger = get_logger("blog.access.control")

    def get_user_role(self, actor_id: Any) -> str:
        """Resolve an actor's role, falling back to the default role."""
        if actor_id is None:
            return self.hierarchy.default_role

        try:
            role = self.users.get_role(actor_id)
        except StoreError as e:
            self.logger.error("Error getting user role", actor_id=str(actor_id), error=str(e))
            return self.hierarchy.default_role

        if role is None:
            return self.hierarchy.default_role
        if role not in self.hierarchy:
            self.logger.warning("Stored role outside hierarchy", actor_id=str(actor_id), role=role)
            return self.hierarchy.default_role
        return role

    def is_valid_role(self, role: Any) -> bool:
        return role in self.hierarchy

    def get_all_roles(self) -> List[str]:
        return self.hierarchy.roles()

    def get_role_permissions(self, role: Any) -> List[str]:
        return sorted(self.hierarchy.permissions.get(role_name(role), ()))

    def role_level(self, role: Any) -> int:
        """Integer level of a role; UnknownRole outside the hierarchy."""
        name = role_name(role)
        if name not in self.hierarchy.levels:
            raise UnknownRole(role)
        return self.hierarchy.levels[name]

    def role_has_permission(self, role: Any, permission: str) -> bool:
        permissions = self.hierarchy.permissions.get(role_name(role))
        if not permissions:
            return False
        return WILDCARD in permissions or permission in permissions

    def has_permission(self, actor_id: Any, permission: str) -> bool:
        allowed = self.role_has_permission(self.get_user_role(actor_id), permission)
        if self.metrics:
            self.metrics.record_access_decision(allowed)
        return allowed

    def require_permission(self, actor_id: Any, permission: str):
        """Raise AccessDenied unless the actor holds ``permission``."""
        if not self.has_permission(actor_id, permission):
            self.logger.warning("Permission denied", actor_id=str(actor_id), permission=permission)
            raise AccessDenied(
                "Access denied. Insufficient permissions.",
                {"permission": permission},
            )

    def role_at_least(self, actor_role: Any, required_role: Any) -> bool:
        """Level comparison; False when either role is outside the hierarchy."""
        if actor_role not in self.hierarchy or required_role not in self.hierarchy:
            return False
        return self.role_level(actor_role) >= self.role_level(required_role)

    def require_role(self, actor_id: Any, required_role: Any):
        """Raise AccessDenied unless the actor's role is at least ``required_role``."""
        allowed = self.role_at_least(self.get_user_role(actor_id), required_role)
        if self.metrics:
            self.metrics.record_access_decision(allowed)
        if not allowed:
            self.logger.warning("Role level denied", actor_id=str(actor_id), required_role=role_name(required_role))
            raise AccessDenied(
                "Access denied. Insufficient role level.",
                {"required_role": role_name(required_role)},
            )

    def require_login(self, actor_id: Any):
        if actor_id is None:
            raise AuthenticationError("Login required")

    def can_manage(self, manager_id: Any, target_id: Any) -> bool:
        """Only strictly higher-level actors manage others; never themselves."""
        if manager_id is None or str(manager_id) == str(target_id):
            return False
        manager_level = self.role_level(self.get_user_role(manager_id))
        target_level = self.role_level(self.get_user_role(target_id))
        return manager_level > target_level

    def can_assign(self, manager_id: Any, new_role: Any) -> bool:
        """Managers only hand out roles strictly below their own level."""
        if manager_id is None or new_role not in self.hierarchy:
            return False
        return self.role_level(self.get_user_role(manager_id)) > self.role_level(new_role)

    def set_role(self, actor_id: Any, new_role: Any) -> bool:
        """Persist a new role; False for roles outside the hierarchy or store failure."""
        if not self.is_valid_role(new_role):
            self.logger.warning("Rejected invalid role", actor_id=str(actor_id), role=str(new_role))
            return False

        try:
            updated = self.users.set_role(actor_id, role_name(new_role))
        except StoreError as e:
            self.logger.error("Error setting user role", actor_id=str(actor_id), error=str(e))
            return False

        self.logger.info("Role changed", actor_id=str(actor_id), role=role_name(new_role), updated=updated)
        return updated
