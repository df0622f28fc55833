"""Menu service — menu CRUD, the parent-cycle guard and forced cascade deletion."""

import logging
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from rbac_console.core.exceptions import ResourceConflictError, ResourceNotFoundError, ValidationError
from rbac_console.models.menu import Menu, MenuType
from rbac_console.models.permission import PermissionType
from rbac_console.models.role import Role, RoleMenu
from rbac_console.schemas.schemas import (
    DeleteMenuResult, MenuCreate, MenuDetail, MenuTreeNode, MenuUpdate, PermissionOut, RoleSummary,
)
from rbac_console.services.common import ErrorCollector, handler_context, parse_uuid, utcnow
from rbac_console.services.menu_tree import (
    build_menu_tree, collect_descendant_ids, creates_cycle, menu_to_node,
)

logger = logging.getLogger("rbac_console")


def _active_permission_keys(menu: Menu) -> List[str]:
    return sorted(p.permission_key for p in menu.permissions if p.is_active)


class MenuService:
    """Handles menu management."""

    @staticmethod
    def list_menus(db: Session, menu_type: Optional[MenuType] = None,
                   include_inactive: bool = False) -> Tuple[List[MenuTreeNode], int]:
        """Menu tree plus the number of menus it was built from."""
        query = db.query(Menu)
        if menu_type is not None:
            query = query.filter(Menu.menu_type == menu_type)
        if not include_inactive:
            query = query.filter(Menu.is_active == True)
        menus = query.all()
        required = {menu.id: _active_permission_keys(menu) for menu in menus}
        return build_menu_tree(menus, required), len(menus)

    @staticmethod
    def get_menu(db: Session, menu_id: str) -> Menu:
        """Fetch an active menu.

        Raises:
            ResourceNotFoundError: If the id does not resolve to an active menu.
        """
        parsed = parse_uuid(menu_id)
        menu = None
        if parsed:
            menu = db.query(Menu).filter(Menu.id == parsed, Menu.is_active == True).first()
        if not menu:
            raise ResourceNotFoundError.for_entity("Menu", menu_id)
        return menu

    @staticmethod
    def to_detail(db: Session, menu: Menu, include_children: bool = True,
                  include_roles: bool = False) -> MenuDetail:
        """Project a menu with its direct active children, permissions and optionally roles."""
        detail = MenuDetail(**menu_to_node(menu, _active_permission_keys(menu)).model_dump())
        if include_children:
            children = (
                db.query(Menu)
                .filter(Menu.parent_menu_id == menu.id, Menu.is_active == True)
                .order_by(Menu.sort_order, Menu.display_name)
                .all()
            )
            detail.children = [menu_to_node(c, _active_permission_keys(c)) for c in children]
        permissions = sorted(
            (p for p in menu.permissions if p.is_active),
            key=lambda p: (PermissionType(p.permission_type).rank, p.display_name),
        )
        detail.permissions = [
            PermissionOut(
                id=p.id,
                menu_id=p.menu_id,
                permission_key=p.permission_key,
                display_name=p.display_name,
                permission_type=PermissionType(p.permission_type).value,
                description=p.description,
                is_active=p.is_active,
                is_system_permission=p.is_system_permission,
            )
            for p in permissions
        ]
        if include_roles:
            roles = (
                db.query(Role)
                .join(RoleMenu, RoleMenu.role_id == Role.id)
                .filter(RoleMenu.menu_id == menu.id, RoleMenu.is_active == True, Role.is_active == True)
                .order_by(Role.name)
                .all()
            )
            detail.roles = [RoleSummary.model_validate(r) for r in roles]
        return detail

    @staticmethod
    def _name_taken(db: Session, name: str, exclude_id: Optional[str] = None) -> bool:
        query = db.query(Menu.id).filter(func.lower(Menu.name) == name.lower())
        if exclude_id:
            query = query.filter(Menu.id != exclude_id)
        return query.first() is not None

    @staticmethod
    def _resolve_parent(db: Session, raw_parent_id: Optional[str], errors: ErrorCollector) -> Optional[str]:
        if raw_parent_id is None:
            return None
        parent_id = parse_uuid(raw_parent_id)
        if parent_id is None:
            errors.add("Invalid parent menu ID")
            return None
        exists = db.query(Menu.id).filter(Menu.id == parent_id, Menu.is_active == True).first()
        if not exists:
            errors.add("Parent menu not found or inactive")
            return None
        return parent_id

    @staticmethod
    def create_menu(db: Session, body: MenuCreate, actor_id: Optional[str] = None) -> Menu:
        """Create a menu.

        Raises:
            ValidationError: Listing every violated rule.
        """
        with handler_context(db, "create_menu", body.name):
            errors = ErrorCollector()
            if MenuService._name_taken(db, body.name):
                errors.add("Menu name already exists")
            parent_id = MenuService._resolve_parent(db, body.parent_menu_id, errors)
            errors.raise_if_any()

            menu = Menu(
                name=body.name,
                display_name=body.display_name,
                description=body.description,
                icon=body.icon,
                route=body.route,
                menu_type=body.menu_type,
                parent_menu_id=parent_id,
                sort_order=body.sort_order,
                is_active=body.is_active,
            )
            db.add(menu)
            db.commit()
            db.refresh(menu)
            logger.info("Menu '%s' created by %s", menu.name, actor_id)
            return menu

    @staticmethod
    def update_menu(db: Session, menu_id: str, body: MenuUpdate, actor_id: Optional[str] = None) -> Menu:
        """Update a menu, rejecting a parent that is the menu itself or one of its descendants."""
        with handler_context(db, "update_menu", menu_id):
            parsed = parse_uuid(menu_id)
            if parsed is None:
                raise ValidationError(["Invalid menu ID"])
            menu = db.query(Menu).filter(Menu.id == parsed).first()
            if not menu:
                raise ResourceNotFoundError.for_entity("Menu", menu_id)

            errors = ErrorCollector()
            if MenuService._name_taken(db, body.name, exclude_id=menu.id):
                errors.add("Menu name already exists")

            parent_id = None
            if body.parent_menu_id is not None:
                proposed = parse_uuid(body.parent_menu_id)
                if proposed is None:
                    errors.add("Invalid parent menu ID")
                elif proposed == menu.id:
                    errors.add("Parent menu would create circular reference")
                else:
                    parent_id = MenuService._resolve_parent(db, proposed, errors)
                    pairs = db.query(Menu.id, Menu.parent_menu_id).all()
                    if parent_id and creates_cycle(menu.id, parent_id, pairs):
                        errors.add("Parent menu would create circular reference")
                        parent_id = None
            errors.raise_if_any()

            menu.name = body.name
            menu.display_name = body.display_name
            menu.description = body.description
            menu.icon = body.icon
            menu.route = body.route
            menu.menu_type = body.menu_type
            menu.parent_menu_id = parent_id
            menu.sort_order = body.sort_order
            menu.is_active = body.is_active
            menu.updated_at = utcnow()
            db.commit()
            db.refresh(menu)
            logger.info("Menu '%s' updated by %s", menu.name, actor_id)
            return menu

    @staticmethod
    def delete_menu(db: Session, menu_id: str, force: bool = False,
                    actor_id: Optional[str] = None) -> DeleteMenuResult:
        """Soft-delete a menu.

        Deleting an unknown or already inactive menu succeeds without
        changing anything. Without ``force`` a menu with active children or
        role assignments is refused. With ``force`` every active descendant
        is deactivated and every role assignment of the menu is removed;
        each cleanup step runs in its own savepoint and a failing step is
        reported as a warning.
        """
        with handler_context(db, "delete_menu", menu_id):
            parsed = parse_uuid(menu_id)
            if parsed is None:
                raise ValidationError(["Invalid menu ID"])
            menu = db.query(Menu).filter(Menu.id == parsed).first()
            if not menu or not menu.is_active:
                logger.info("Menu %s not found or already inactive; nothing to delete", menu_id)
                return DeleteMenuResult(
                    menu_id=parsed,
                    menu_name=menu.name if menu else None,
                    warnings=["Menu not found or already deleted"],
                )

            active_children = db.query(Menu).filter(
                Menu.parent_menu_id == menu.id, Menu.is_active == True,
            ).count()
            active_roles = db.query(RoleMenu).filter(
                RoleMenu.menu_id == menu.id, RoleMenu.is_active == True,
            ).count()

            if not force:
                errors = []
                if active_children:
                    errors.append(
                        f"Cannot delete menu '{menu.name}' because it has {active_children} active "
                        "child menu(s). Use forceDelete=true to override."
                    )
                if active_roles:
                    errors.append(
                        f"Cannot delete menu '{menu.name}' because it is assigned to {active_roles} "
                        "role(s). Use forceDelete=true to override."
                    )
                if errors:
                    raise ResourceConflictError(errors[0], errors)

            result = DeleteMenuResult(menu_id=menu.id, menu_name=menu.name, was_force_deleted=force)
            if force:
                MenuService._cascade_children(db, menu, result)
                MenuService._cascade_role_menus(db, menu, result)

            menu.is_active = False
            menu.updated_at = utcnow()
            db.commit()
            logger.info(
                "Menu '%s' deleted by %s (force=%s, children=%d, role assignments=%d)",
                menu.name, actor_id, force, result.deleted_children_count,
                result.removed_role_assignments_count,
            )
            return result

    @staticmethod
    def _cascade_children(db: Session, menu: Menu, result: DeleteMenuResult) -> None:
        try:
            with db.begin_nested():
                pairs = db.query(Menu.id, Menu.parent_menu_id).all()
                descendants = collect_descendant_ids(menu.id, pairs)
                count = 0
                if descendants:
                    count = db.query(Menu).filter(
                        Menu.id.in_(descendants), Menu.is_active == True,
                    ).update({"is_active": False, "updated_at": utcnow()}, synchronize_session=False)
            result.deleted_children_count = count
            if count:
                result.warnings.append(f"Deleted {count} child menu(s)")
        except SQLAlchemyError as e:
            logger.exception("Failed to deactivate child menus of %s", menu.id)
            result.warnings.append(f"Failed to delete child menus: {e}")

    @staticmethod
    def _cascade_role_menus(db: Session, menu: Menu, result: DeleteMenuResult) -> None:
        try:
            with db.begin_nested():
                count = db.query(RoleMenu).filter(
                    RoleMenu.menu_id == menu.id,
                ).delete(synchronize_session=False)
            result.removed_role_assignments_count = count
            if count:
                result.warnings.append(f"Removed menu from {count} role assignment(s)")
        except SQLAlchemyError as e:
            logger.exception("Failed to remove role assignments of menu %s", menu.id)
            result.warnings.append(f"Failed to remove role assignments: {e}")


menu_service = MenuService()
