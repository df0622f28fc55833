"""Permission service — effective-permission resolution, grants and role assignment."""

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from sqlalchemy.orm import Session

from rbac_console.core.exceptions import ResourceNotFoundError, ValidationError
from rbac_console.models.menu import Menu, MenuType
from rbac_console.models.permission import Permission, RolePermission
from rbac_console.models.role import Role, RoleMenu
from rbac_console.models.user import User, UserRole
from rbac_console.schemas.schemas import MenuPermissionNode, MenuTreeNode
from rbac_console.services.common import ErrorCollector, handler_context, parse_uuid, utcnow
from rbac_console.services.menu_tree import build_menu_tree
from rbac_console.services.permission_tree import build_permission_tree

logger = logging.getLogger("rbac_console")


class PermissionService:
    """Resolves what a user may do and manages the grant records behind it."""

    @staticmethod
    def get_user_permission_keys(db: Session, user_id: str) -> Set[str]:
        """Union of permission keys granted through the user's active roles.

        Only active assignments of active roles count, only grants with
        ``is_granted`` set, and only active permissions. A user without
        any such assignment gets an empty set.
        """
        rows = (
            db.query(Permission.permission_key)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .join(Role, Role.id == RolePermission.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .join(User, User.id == UserRole.user_id)
            .filter(
                UserRole.user_id == user_id,
                UserRole.is_active == True,
                User.is_active == True,
                Role.is_active == True,
                RolePermission.is_granted == True,
                Permission.is_active == True,
            )
            .distinct()
            .all()
        )
        return {key for (key,) in rows}

    @staticmethod
    def has_permission(db: Session, user_id: str, permission_key: str) -> bool:
        return permission_key in PermissionService.get_user_permission_keys(db, user_id)

    @staticmethod
    def get_user_roles(db: Session, user_id: str) -> List[Role]:
        """Active roles actively assigned to the user, ordered by name."""
        return (
            db.query(Role)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user_id,
                UserRole.is_active == True,
                Role.is_active == True,
            )
            .order_by(Role.name)
            .all()
        )

    @staticmethod
    def assign_role_to_user(db: Session, user_id: str, role_id: str,
                            assigned_by: Optional[str] = None) -> UserRole:
        """Assign a role to a user, reactivating a previous assignment if present.

        Raises:
            ResourceNotFoundError: If the user or role does not resolve to an active entity.
        """
        with handler_context(db, "assign_role_to_user", f"{user_id}/{role_id}"):
            user = db.query(User).filter(User.id == user_id, User.is_active == True).first()
            if not user:
                raise ResourceNotFoundError.for_entity("User", user_id)
            role = db.query(Role).filter(Role.id == role_id, Role.is_active == True).first()
            if not role:
                raise ResourceNotFoundError.for_entity("Role", role_id)

            assignment = db.query(UserRole).filter(
                UserRole.user_id == user_id, UserRole.role_id == role_id,
            ).first()
            if assignment and assignment.is_active:
                return assignment
            if assignment:
                assignment.is_active = True
                assignment.assigned_by = assigned_by
                assignment.assigned_at = utcnow()
            else:
                assignment = UserRole(
                    user_id=user_id, role_id=role_id, is_active=True,
                    assigned_by=assigned_by, assigned_at=utcnow(),
                )
                db.add(assignment)
            db.commit()
            db.refresh(assignment)
            logger.info("Assigned role '%s' to user %s", role.name, user_id)
            return assignment

    @staticmethod
    def remove_role_from_user(db: Session, user_id: str, role_id: str) -> bool:
        """Deactivate a user's role assignment. Returns False if there was none to remove."""
        with handler_context(db, "remove_role_from_user", f"{user_id}/{role_id}"):
            assignment = db.query(UserRole).filter(
                UserRole.user_id == user_id,
                UserRole.role_id == role_id,
                UserRole.is_active == True,
            ).first()
            if not assignment:
                return False
            assignment.is_active = False
            db.commit()
            logger.info("Removed role %s from user %s", role_id, user_id)
            return True

    @staticmethod
    def _active_role(db: Session, role_id: str) -> Role:
        """Resolve a role id to an active role before any grant is written.

        Raises:
            ValidationError: If the id is not a UUID.
            ResourceNotFoundError: If no active role has the id.
        """
        parsed = parse_uuid(role_id)
        if parsed is None:
            raise ValidationError(["Invalid role ID"])
        role = db.query(Role).filter(Role.id == parsed, Role.is_active == True).first()
        if not role:
            raise ResourceNotFoundError.for_entity("Role", role_id)
        return role

    @staticmethod
    def validate_permission_ids(db: Session, permission_ids: Sequence[str],
                                errors: ErrorCollector) -> List[Permission]:
        """Resolve permission ids to active permissions, recording every bad id in ``errors``."""
        permissions: List[Permission] = []
        seen: Set[str] = set()
        for raw_id in permission_ids:
            permission_id = parse_uuid(raw_id)
            if permission_id is None:
                errors.add(f"Invalid permission ID: {raw_id}")
                continue
            if permission_id in seen:
                continue
            seen.add(permission_id)
            permission = db.query(Permission).filter(
                Permission.id == permission_id, Permission.is_active == True,
            ).first()
            if not permission:
                errors.add(f"Permission not found or inactive: {raw_id}")
                continue
            permissions.append(permission)
        return permissions

    @staticmethod
    def replace_role_permissions(db: Session, role_id: str, permissions: Sequence[Permission],
                                 granted_by: Optional[str] = None) -> int:
        """Replace every grant row of a role without committing. Returns the number of rows removed."""
        removed = db.query(RolePermission).filter(
            RolePermission.role_id == role_id,
        ).delete(synchronize_session=False)
        now = utcnow()
        for permission in permissions:
            db.add(RolePermission(
                role_id=role_id,
                permission_id=permission.id,
                is_granted=True,
                granted_by=granted_by,
                granted_at=now,
            ))
        return removed

    @staticmethod
    def set_role_permissions(db: Session, role_id: str, permission_ids: Sequence[str],
                             granted_by: Optional[str] = None) -> List[str]:
        """Full replace of a role's grants. Returns the granted permission keys."""
        with handler_context(db, "set_role_permissions", role_id):
            role = PermissionService._active_role(db, role_id)

            errors = ErrorCollector()
            permissions = PermissionService.validate_permission_ids(db, permission_ids, errors)
            errors.raise_if_any()

            PermissionService.replace_role_permissions(db, role.id, permissions, granted_by)
            role.updated_at = utcnow()
            db.commit()
            logger.info("Role '%s' now has %d permission grant(s)", role.name, len(permissions))
            return sorted(p.permission_key for p in permissions)

    @staticmethod
    def revoke_permission(db: Session, role_id: str, permission_id: str) -> bool:
        """Revoke a grant by clearing ``is_granted``; the row is kept.

        Returns False when the grant was already revoked.
        """
        with handler_context(db, "revoke_permission", f"{role_id}/{permission_id}"):
            role = PermissionService._active_role(db, role_id)
            parsed_permission_id = parse_uuid(permission_id)
            if parsed_permission_id is None:
                raise ValidationError([f"Invalid permission ID: {permission_id}"])
            grant = db.query(RolePermission).filter(
                RolePermission.role_id == role.id,
                RolePermission.permission_id == parsed_permission_id,
            ).first()
            if not grant:
                raise ResourceNotFoundError(
                    f"Permission '{permission_id}' is not granted to role '{role_id}'"
                )
            if not grant.is_granted:
                return False
            grant.is_granted = False
            grant.updated_at = utcnow()
            db.commit()
            logger.info("Revoked permission %s from role %s", permission_id, role_id)
            return True

    @staticmethod
    def get_permission_tree(db: Session, include_inactive: bool = False,
                            menu_id: Optional[str] = None) -> Tuple[List[MenuPermissionNode], int]:
        """Permission tree plus the number of permissions it contains."""
        query = db.query(Permission).join(Menu, Menu.id == Permission.menu_id)
        if not include_inactive:
            query = query.filter(Permission.is_active == True, Menu.is_active == True)
        if menu_id:
            query = query.filter(Permission.menu_id == menu_id)
        permissions = query.all()
        return build_permission_tree(permissions), len(permissions)

    @staticmethod
    def get_user_menus(db: Session, user_id: str,
                       menu_type: Optional[MenuType] = None) -> List[MenuTreeNode]:
        """Active menus visible to the user's active roles, as a tree.

        Each node lists the keys of the menu's active permissions as
        ``required_permissions``.
        """
        granted = (
            db.query(RoleMenu.menu_id)
            .join(Role, Role.id == RoleMenu.role_id)
            .join(UserRole, UserRole.role_id == Role.id)
            .filter(
                UserRole.user_id == user_id,
                UserRole.is_active == True,
                Role.is_active == True,
                RoleMenu.is_active == True,
            )
            .distinct()
            .all()
        )
        menu_ids = {menu_id for (menu_id,) in granted}
        if not menu_ids:
            return []

        query = db.query(Menu).filter(Menu.id.in_(menu_ids), Menu.is_active == True)
        if menu_type is not None:
            query = query.filter(Menu.menu_type == menu_type)
        menus = query.all()

        required: Dict[str, List[str]] = {
            menu.id: sorted(p.permission_key for p in menu.permissions if p.is_active)
            for menu in menus
        }
        return build_menu_tree(menus, required)


permission_service = PermissionService()
