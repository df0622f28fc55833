"""Users API router — paged listing, CRUD and role assignment."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from rbac_console.db.session import get_db
from rbac_console.schemas.schemas import (
    ApiResponse, DeleteUserResult, PaginatedUsers, UserCreate, UserData, UserUpdate,
)
from rbac_console.services.permission_service import permission_service
from rbac_console.services.user_service import user_service
from rbac_console.core.security import (
    require_users_view, require_users_create, require_users_edit, require_users_delete,
)

router = APIRouter(prefix="/user", tags=["users"])


@router.get("", response_model=ApiResponse[PaginatedUsers])
async def list_users(
    page: int = Query(1, ge=1, alias="pageNumber"),
    page_size: Optional[int] = Query(None, ge=1, alias="pageSize"),
    search: Optional[str] = Query(None),
    role: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    sort_by: Optional[str] = Query(None, alias="sortBy"),
    sort_direction: str = Query("asc", alias="sortDirection"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_view),
):
    """List users with search, role and status filters."""
    users, info = user_service.list_users(
        db, page, page_size, search, role, is_active, sort_by, sort_direction,
    )
    return ApiResponse(
        message="Users retrieved successfully",
        data=PaginatedUsers(items=[user_service.to_dto(db, u) for u in users], **info),
    )


@router.get("/{user_id}", response_model=ApiResponse[UserData])
async def get_user(
    user_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_view),
):
    """Get a user with roles and effective permissions."""
    user = user_service.get_user(db, user_id)
    return ApiResponse(message="User retrieved successfully", data=UserData(user=user_service.to_dto(db, user)))


@router.post("", response_model=ApiResponse[UserData], status_code=201)
async def create_user(
    body: UserCreate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_create),
):
    """Create a user."""
    user = user_service.create_user(db, body, actor_id)
    return ApiResponse(message="User created successfully", data=UserData(user=user_service.to_dto(db, user)))


@router.put("/{user_id}", response_model=ApiResponse[UserData])
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_edit),
):
    """Update a user."""
    user = user_service.update_user(db, user_id, body, actor_id)
    return ApiResponse(message="User updated successfully", data=UserData(user=user_service.to_dto(db, user)))


@router.delete("/{user_id}", response_model=ApiResponse[DeleteUserResult])
async def delete_user(
    user_id: str,
    force_delete: bool = Query(False, alias="forceDelete"),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_delete),
):
    """Deactivate a user and their role assignments."""
    result = user_service.delete_user(db, user_id, force_delete, actor_id)
    return ApiResponse(message="User deleted successfully", data=result)


@router.post("/{user_id}/roles/{role_id}", response_model=ApiResponse[UserData])
async def assign_role(
    user_id: str,
    role_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_edit),
):
    """Assign a role to a user."""
    permission_service.assign_role_to_user(db, user_id, role_id, actor_id)
    user = user_service.get_user(db, user_id)
    return ApiResponse(message="Role assigned successfully", data=UserData(user=user_service.to_dto(db, user)))


@router.delete("/{user_id}/roles/{role_id}", response_model=ApiResponse[UserData])
async def remove_role(
    user_id: str,
    role_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_edit),
):
    """Remove a role from a user."""
    removed = permission_service.remove_role_from_user(db, user_id, role_id)
    user = user_service.get_user(db, user_id)
    message = "Role removed successfully" if removed else "User did not have the role"
    return ApiResponse(message=message, data=UserData(user=user_service.to_dto(db, user)))
