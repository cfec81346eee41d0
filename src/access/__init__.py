"""Access — плоская ролевая модель прав."""

from .policy import AccessPolicy, Role, RoleAssignment

__all__ = [
    "AccessPolicy",
    "Role",
    "RoleAssignment",
]
