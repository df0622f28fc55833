"""Models package — import all models so metadata.create_all can discover them."""

from rbac_console.models.menu import Menu, MenuType
from rbac_console.models.permission import Permission, PermissionType, RolePermission
from rbac_console.models.role import Role, RoleMenu, SystemRole, PROTECTED_SYSTEM_ROLES
from rbac_console.models.user import User, UserRole

__all__ = [
    "Menu", "MenuType",
    "Permission", "PermissionType", "RolePermission",
    "Role", "RoleMenu", "SystemRole", "PROTECTED_SYSTEM_ROLES",
    "User", "UserRole",
]
