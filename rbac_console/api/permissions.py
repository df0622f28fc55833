"""Permissions API router — permission tree and the caller's effective permissions."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import ApiResponse, MyPermissionsData, PermissionTreeData, RoleSummary
from rbac_console.services.permission_service import permission_service
from rbac_console.core.security import get_current_user_id, require_permissions_view

router = APIRouter(prefix="/permission", tags=["permissions"])


@router.get("", response_model=ApiResponse[PermissionTreeData])
async def get_permission_tree(
    include_inactive: bool = Query(False, alias="includeInactive"),
    menu_id: Optional[str] = Query(None, alias="menuId"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_permissions_view),
):
    """Permissions grouped as menu -> permission type -> permission."""
    tree, total = permission_service.get_permission_tree(db, include_inactive, menu_id)
    return ApiResponse(
        message="Permissions retrieved successfully",
        data=PermissionTreeData(permission_tree=tree, total_count=total),
    )


@router.get("/me", response_model=ApiResponse[MyPermissionsData])
async def get_my_permissions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    """Effective permission keys and roles of the caller."""
    roles = permission_service.get_user_roles(db, user_id)
    keys = permission_service.get_user_permission_keys(db, user_id)
    return ApiResponse(
        message="User permissions retrieved successfully",
        data=MyPermissionsData(
            user_id=user_id,
            permissions=sorted(keys),
            roles=[RoleSummary.model_validate(r) for r in roles],
        ),
    )
