"""Role service — role CRUD, menu visibility grants and forced deletion."""

import logging
from typing import List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from rbac_console.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from rbac_console.models.menu import Menu
from rbac_console.models.permission import RolePermission
from rbac_console.models.role import Role, RoleMenu
from rbac_console.models.user import UserRole
from rbac_console.schemas.schemas import (
    DeleteRoleResult, MenuSummary, RoleCreate, RoleOut, RoleUpdate, UserSummary,
)
from rbac_console.services.common import ErrorCollector, handler_context, parse_uuid, utcnow
from rbac_console.services.permission_service import permission_service

logger = logging.getLogger("rbac_console")


class RoleService:
    """Handles role management."""

    @staticmethod
    def to_dto(role: Role, include_users: bool = False) -> RoleOut:
        """Project a role with its active menus, granted permission keys and users."""
        menus = sorted(
            (rm.menu for rm in role.role_menus if rm.is_active and rm.menu.is_active),
            key=lambda m: (m.sort_order, m.display_name),
        )
        permission_keys = sorted(
            rp.permission.permission_key
            for rp in role.role_permissions
            if rp.is_granted and rp.permission.is_active
        )
        active_users = [ur.user for ur in role.user_roles if ur.is_active and ur.user.is_active]
        dto = RoleOut(
            id=role.id,
            name=role.name,
            description=role.description or "",
            is_active=role.is_active,
            system_role=role.system_role,
            is_system_role=role.is_system_role,
            created_at=role.created_at,
            updated_at=role.updated_at,
            menus=[MenuSummary.model_validate(m) for m in menus],
            permission_keys=permission_keys,
            user_count=len(active_users),
        )
        if include_users:
            dto.users = [
                UserSummary.model_validate(u)
                for u in sorted(active_users, key=lambda u: u.email)
            ]
        return dto

    @staticmethod
    def list_roles(db: Session, include_inactive: bool = False) -> List[Role]:
        query = db.query(Role)
        if not include_inactive:
            query = query.filter(Role.is_active == True)
        return query.order_by(Role.name).all()

    @staticmethod
    def get_role(db: Session, role_id: str) -> Role:
        """Fetch an active role.

        Raises:
            ResourceNotFoundError: If the id does not resolve to an active role.
        """
        parsed = parse_uuid(role_id)
        role = None
        if parsed:
            role = db.query(Role).filter(Role.id == parsed, Role.is_active == True).first()
        if not role:
            raise ResourceNotFoundError.for_entity("Role", role_id)
        return role

    @staticmethod
    def _name_taken(db: Session, name: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Role.id).filter(func.lower(Role.name) == name.lower())
        if exclude_id:
            query = query.filter(Role.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def _validate_menu_ids(db: Session, menu_ids: Sequence[str], errors: ErrorCollector) -> List[Menu]:
        menus: List[Menu] = []
        seen = set()
        for raw_id in menu_ids:
            menu_id = parse_uuid(raw_id)
            if menu_id is None:
                errors.add(f"Invalid menu ID: {raw_id}")
                continue
            if menu_id in seen:
                continue
            seen.add(menu_id)
            menu = db.query(Menu).filter(Menu.id == menu_id, Menu.is_active == True).first()
            if not menu:
                errors.add(f"Menu not found or inactive: {raw_id}")
                continue
            menus.append(menu)
        return menus

    @staticmethod
    def _grant_menus(db: Session, role_id: str, menus: Sequence[Menu], granted_by: Optional[str]) -> None:
        now = utcnow()
        for menu in menus:
            db.add(RoleMenu(
                role_id=role_id, menu_id=menu.id, is_active=True,
                granted_by=granted_by, granted_at=now,
            ))

    @staticmethod
    def create_role(db: Session, body: RoleCreate, actor_id: Optional[str] = None) -> Role:
        """Create a role with its menu and optional permission grants.

        Raises:
            ValidationError: Listing every violated rule.
        """
        with handler_context(db, "create_role", body.name):
            errors = ErrorCollector()
            if RoleService._name_taken(db, body.name):
                errors.add("Role name already exists")
            menus = RoleService._validate_menu_ids(db, body.menu_ids, errors)
            permissions = permission_service.validate_permission_ids(db, body.permission_ids or [], errors)
            errors.raise_if_any()

            role = Role(name=body.name, description=body.description or "", is_active=body.is_active)
            db.add(role)
            db.flush()

            RoleService._grant_menus(db, role.id, menus, actor_id)
            if body.permission_ids is not None:
                permission_service.replace_role_permissions(db, role.id, permissions, actor_id)

            db.commit()
            db.refresh(role)
            logger.info("Role '%s' created with %d menu(s) by %s", role.name, len(menus), actor_id)
            return role

    @staticmethod
    def update_role(db: Session, role_id: str, body: RoleUpdate, actor_id: Optional[str] = None) -> Role:
        """Update a role; its menu grants (and permission grants, when given) are fully replaced.

        Inactive roles can be updated, which is how they are reactivated.
        """
        with handler_context(db, "update_role", role_id):
            parsed = parse_uuid(role_id)
            if parsed is None:
                raise ValidationError(["Invalid role ID"])
            role = db.query(Role).filter(Role.id == parsed).first()
            if not role:
                raise ResourceNotFoundError.for_entity("Role", role_id)

            errors = ErrorCollector()
            if RoleService._name_taken(db, body.name, exclude_id=role.id):
                errors.add("Role name already exists")
            menus = RoleService._validate_menu_ids(db, body.menu_ids, errors)
            permissions = permission_service.validate_permission_ids(db, body.permission_ids or [], errors)
            errors.raise_if_any()

            role.name = body.name
            role.description = body.description or ""
            role.is_active = body.is_active
            role.updated_at = utcnow()

            db.query(RoleMenu).filter(RoleMenu.role_id == role.id).delete(synchronize_session=False)
            RoleService._grant_menus(db, role.id, menus, actor_id)
            if body.permission_ids is not None:
                permission_service.replace_role_permissions(db, role.id, permissions, actor_id)

            db.commit()
            db.refresh(role)
            logger.info("Role '%s' updated by %s", role.name, actor_id)
            return role

    @staticmethod
    def delete_role(db: Session, role_id: str, force: bool = False,
                    actor_id: Optional[str] = None) -> DeleteRoleResult:
        """Soft-delete a role and remove its menu and permission grants.

        Without ``force`` a role that is a system role or still has active
        user assignments is refused. With ``force`` every user assignment
        of the role is removed and counted.

        Raises:
            ResourceNotFoundError: If the id does not resolve to an active role.
            ResourceConflictError: If the role has dependents and ``force`` is not set.
        """
        with handler_context(db, "delete_role", role_id):
            parsed = parse_uuid(role_id)
            if parsed is None:
                raise ValidationError(["Invalid role ID"])
            role = db.query(Role).filter(Role.id == parsed, Role.is_active == True).first()
            if not role:
                raise ResourceNotFoundError.for_entity("Role", role_id)

            active_users = db.query(UserRole).filter(
                UserRole.role_id == role.id, UserRole.is_active == True,
            ).count()

            if not force:
                errors = []
                if role.is_system_role:
                    errors.append(
                        f"Cannot delete system role '{role.name}'. Use forceDelete=true to override."
                    )
                if active_users:
                    errors.append(
                        f"Cannot delete role '{role.name}' because it has {active_users} associated users. "
                        "Use forceDelete=true to override, or remove users from this role first."
                    )
                if errors:
                    raise ResourceConflictError(errors[0], errors)

            result = DeleteRoleResult(role_id=role.id, role_name=role.name, was_force_deleted=force)
            if force:
                result.affected_users_count = db.query(UserRole).filter(
                    UserRole.role_id == role.id,
                ).delete(synchronize_session=False)
                if role.is_system_role:
                    result.warnings.append(f"System role '{role.name}' was force deleted")
                if result.affected_users_count:
                    result.warnings.append(f"Removed {result.affected_users_count} user assignment(s)")
            result.removed_menu_count = db.query(RoleMenu).filter(
                RoleMenu.role_id == role.id,
            ).delete(synchronize_session=False)
            result.removed_permission_count = db.query(RolePermission).filter(
                RolePermission.role_id == role.id,
            ).delete(synchronize_session=False)
            if result.removed_menu_count:
                result.warnings.append(f"Removed {result.removed_menu_count} menu grant(s)")
            if result.removed_permission_count:
                result.warnings.append(f"Removed {result.removed_permission_count} permission grant(s)")

            role.is_active = False
            role.updated_at = utcnow()
            db.commit()
            logger.info(
                "Role '%s' deleted by %s (force=%s, users=%d, menus=%d, permissions=%d)",
                result.role_name, actor_id, force, result.affected_users_count,
                result.removed_menu_count, result.removed_permission_count,
            )
            return result


role_service = RoleService()
