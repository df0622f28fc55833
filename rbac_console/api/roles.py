"""Roles API router — CRUD, permission grants and forced deletion."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import (
    ApiResponse, DeleteRoleResult, RoleCreate, RoleData, RoleListData,
    RolePermissionsUpdate, RoleUpdate,
)
from rbac_console.services.permission_service import permission_service
from rbac_console.services.role_service import role_service
from rbac_console.core.security import (
    require_roles_view, require_roles_create, require_roles_edit, require_roles_delete,
)

router = APIRouter(prefix="/role", tags=["roles"])


@router.get("", response_model=ApiResponse[RoleListData])
async def list_roles(
    include_inactive: bool = Query(False, alias="includeInactive"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_view),
):
    """List roles ordered by name."""
    roles = role_service.list_roles(db, include_inactive)
    return ApiResponse(
        message="Roles retrieved successfully",
        data=RoleListData(roles=[role_service.to_dto(r) for r in roles], total_count=len(roles)),
    )


@router.get("/{role_id}", response_model=ApiResponse[RoleData])
async def get_role(
    role_id: str,
    include_users: bool = Query(False, alias="includeUsers"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_view),
):
    """Get an active role with its menus and permissions."""
    role = role_service.get_role(db, role_id)
    return ApiResponse(
        message="Role retrieved successfully",
        data=RoleData(role=role_service.to_dto(role, include_users=include_users)),
    )


@router.post("", response_model=ApiResponse[RoleData], status_code=201)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_create),
):
    """Create a role."""
    role = role_service.create_role(db, body, actor_id)
    return ApiResponse(message="Role created successfully", data=RoleData(role=role_service.to_dto(role)))


@router.put("/{role_id}", response_model=ApiResponse[RoleData])
async def update_role(
    role_id: str,
    body: RoleUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_edit),
):
    """Update a role and replace its menu grants."""
    role = role_service.update_role(db, role_id, body, actor_id)
    return ApiResponse(message="Role updated successfully", data=RoleData(role=role_service.to_dto(role)))


@router.delete("/{role_id}", response_model=ApiResponse[DeleteRoleResult])
async def delete_role(
    role_id: str,
    force_delete: bool = Query(False, alias="forceDelete"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_delete),
):
    """Delete a role. ``forceDelete`` also removes its user assignments."""
    result = role_service.delete_role(db, role_id, force_delete, actor_id)
    if result.was_force_deleted:
        message = (
            f"Role '{result.role_name}' was force deleted along with "
            f"{result.affected_users_count} user associations"
        )
    else:
        message = "Role deleted successfully"
    return ApiResponse(message=message, data=result)


@router.put("/{role_id}/permissions", response_model=ApiResponse[RoleData])
async def set_role_permissions(
    role_id: str,
    body: RolePermissionsUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_edit),
):
    """Replace the permissions granted to a role."""
    permission_service.set_role_permissions(db, role_id, body.permission_ids, actor_id)
    role = role_service.get_role(db, role_id)
    return ApiResponse(message="Role permissions updated successfully", data=RoleData(role=role_service.to_dto(role)))


@router.delete("/{role_id}/permissions/{permission_id}", response_model=ApiResponse[RoleData])
async def revoke_role_permission(
    role_id: str,
    permission_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_edit),
):
    """Revoke one permission from a role, keeping the grant record."""
    changed = permission_service.revoke_permission(db, role_id, permission_id)
    role = role_service.get_role(db, role_id)
    message = "Permission revoked successfully" if changed else "Permission was already revoked"
    return ApiResponse(message=message, data=RoleData(role=role_service.to_dto(role)))
