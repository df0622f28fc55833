"""Menus API router — menu tree, CRUD and the caller's visible menus."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_console.db.session import get_db
from rbac_console.models.menu import MenuType
from rbac_console.schemas.schemas import (
    ApiResponse, DeleteMenuResult, MenuCreate, MenuData, MenuListData, MenuUpdate, UserMenusData,
)
from rbac_console.services.menu_service import menu_service
from rbac_console.services.permission_service import permission_service
from rbac_console.core.security import get_current_user_id, require_system_view, require_system_manage

router = APIRouter(prefix="/menu", tags=["menus"])


@router.get("", response_model=ApiResponse[MenuListData])
async def list_menus(
    menu_type: Optional[MenuType] = Query(None, alias="menuType"),
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_system_view),
):
    """Menu hierarchy ordered by sort order and display name."""
    tree, total = menu_service.list_menus(db, menu_type, include_inactive)
    return ApiResponse(message="Menus retrieved successfully", data=MenuListData(menus=tree, total_count=total))


@router.get("/user-menus", response_model=ApiResponse[UserMenusData])
async def get_user_menus(
    menu_type: Optional[MenuType] = Query(None, alias="menuType"),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Menus visible to the caller through their roles."""
    menus = permission_service.get_user_menus(db, user_id, menu_type)
    return ApiResponse(message="User menus retrieved successfully", data=UserMenusData(menus=menus))


@router.get("/{menu_id}", response_model=ApiResponse[MenuData])
async def get_menu(
    menu_id: str,
    include_children: bool = Query(True, alias="includeChildren"),
    include_roles: bool = Query(False, alias="includeRoles"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_system_view),
):
    """Get an active menu with its children and permissions."""
    menu = menu_service.get_menu(db, menu_id)
    detail = menu_service.to_detail(db, menu, include_children, include_roles)
    return ApiResponse(message="Menu retrieved successfully", data=MenuData(menu=detail))


@router.post("", response_model=ApiResponse[MenuData], status_code=201)
async def create_menu(
    body: MenuCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_system_manage),
):
    """Create a menu."""
    menu = menu_service.create_menu(db, body, actor_id)
    return ApiResponse(message="Menu created successfully", data=MenuData(menu=menu_service.to_detail(db, menu)))


@router.put("/{menu_id}", response_model=ApiResponse[MenuData])
async def update_menu(
    menu_id: str,
    body: MenuUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_system_manage),
):
    """Update a menu. Re-parenting under itself or a descendant is rejected."""
    menu = menu_service.update_menu(db, menu_id, body, actor_id)
    return ApiResponse(message="Menu updated successfully", data=MenuData(menu=menu_service.to_detail(db, menu)))


@router.delete("/{menu_id}", response_model=ApiResponse[DeleteMenuResult])
async def delete_menu(
    menu_id: str,
    force_delete: bool = Query(False, alias="forceDelete"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_system_manage),
):
    """Delete a menu. ``forceDelete`` also deactivates descendants and removes role assignments."""
    result = menu_service.delete_menu(db, menu_id, force_delete, actor_id)
    message = "Menu deleted successfully"
    if result.warnings:
        message = f"{message} with warnings: {'; '.join(result.warnings)}"
    return ApiResponse(message=message, data=result)
