"""
Access control package.

- models: Role enum and the immutable RoleHierarchy (levels + permission sets).
- control: AccessControl, resolving actors to roles and answering permission,
  role-level and management questions.
"""

from .models import Role, RoleHierarchy, DEFAULT_HIERARCHY
from .control import AccessControl

__all__ = ["Role", "RoleHierarchy", "DEFAULT_HIERARCHY", "AccessControl"]
