"""Pydantic schemas for API request/response serialization.

Every schema serializes with camelCase field names and accepts either
camelCase or snake_case on input.
"""

import re
from datetime import datetime
from typing import Annotated, Generic, List, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from rbac_console.models.menu import MenuType

T = TypeVar("T")

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]+$")


class CamelModel(BaseModel):
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


# ---- Envelope ----
class ApiResponse(CamelModel, Generic[T]):
    success: bool = True
    message: str = ""
    data: Optional[T] = None
    errors: List[str] = []


# ---- Shared summaries ----
class MenuSummary(CamelModel):
    id: str
    name: str
    display_name: str
    icon: Optional[str] = None
    route: Optional[str] = None
    menu_type: MenuType
    parent_menu_id: Optional[str] = None
    sort_order: int = 0


class RoleSummary(CamelModel):
    id: str
    name: str
    is_active: bool = True
    system_role: Optional[int] = None


class UserSummary(CamelModel):
    id: str
    email: str
    display_name: str
    is_active: bool = True


class PermissionOut(CamelModel):
    id: str
    menu_id: str
    permission_key: str
    display_name: str
    permission_type: str
    description: Optional[str] = None
    is_active: bool = True
    is_system_permission: bool = False


# ---- Role ----
class RoleCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: str = Field("", max_length=500)
    is_active: bool = True
    menu_ids: List[str] = []
    permission_ids: Optional[List[str]] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class RoleUpdate(RoleCreate):
    pass


class RolePermissionsUpdate(CamelModel):
    permission_ids: List[str] = []


class RoleOut(CamelModel):
    id: str
    name: str
    description: str = ""
    is_active: bool
    system_role: Optional[int] = None
    is_system_role: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    menus: List[MenuSummary] = []
    permission_keys: List[str] = []
    user_count: int = 0
    users: Optional[List[UserSummary]] = None


class RoleListData(CamelModel):
    roles: List[RoleOut]
    total_count: int


class RoleData(CamelModel):
    role: RoleOut


class DeleteRoleResult(CamelModel):
    role_id: str
    role_name: str
    was_force_deleted: bool = False
    affected_users_count: int = 0
    removed_menu_count: int = 0
    removed_permission_count: int = 0
    warnings: List[str] = []


# ---- Menu ----
class MenuCreate(CamelModel):
    name: str = Field(..., min_length=2, max_length=100)
    display_name: str = Field(..., min_length=2, max_length=150)
    description: Optional[str] = Field(None, max_length=500)
    icon: Optional[str] = Field(None, max_length=100)
    route: Optional[str] = Field(None, max_length=255)
    menu_type: MenuType = MenuType.admin
    parent_menu_id: Optional[str] = None
    sort_order: int = Field(0, ge=0)
    is_active: bool = True

    @field_validator("name", "display_name", mode="before")
    @classmethod
    def strip_names(cls, v):
        return v.strip() if isinstance(v, str) else v

    @field_validator("parent_menu_id", mode="before")
    @classmethod
    def blank_parent_is_root(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class MenuUpdate(MenuCreate):
    pass


class MenuTreeNode(CamelModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    route: Optional[str] = None
    menu_type: MenuType
    parent_menu_id: Optional[str] = None
    parent_menu_name: Optional[str] = None
    sort_order: int = 0
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    required_permissions: List[str] = []
    children: List["MenuTreeNode"] = []


class MenuDetail(MenuTreeNode):
    permissions: List[PermissionOut] = []
    roles: Optional[List[RoleSummary]] = None


class MenuListData(CamelModel):
    menus: List[MenuTreeNode]
    total_count: int


class MenuData(CamelModel):
    menu: MenuDetail


class UserMenusData(CamelModel):
    menus: List[MenuTreeNode]


class DeleteMenuResult(CamelModel):
    menu_id: str
    menu_name: Optional[str] = None
    was_force_deleted: bool = False
    deleted_children_count: int = 0
    removed_role_assignments_count: int = 0
    warnings: List[str] = []


# ---- Permission tree ----
class PermissionNodeData(CamelModel):
    menu_id: str
    menu_name: str
    permission_type: Optional[str] = None
    sort_order: int = 0


class _PermissionNodeBase(CamelModel):
    id: str
    key: str
    label: str
    description: Optional[str] = None
    is_active: bool = True
    is_system_permission: bool = False
    parent_id: Optional[str] = None
    data: Optional[PermissionNodeData] = None


class PermissionLeafNode(_PermissionNodeBase):
    type: Literal["permission"] = "permission"


class PermissionTypeNode(_PermissionNodeBase):
    type: Literal["permission_type"] = "permission_type"
    children: List[PermissionLeafNode] = []


MenuChildNode = Annotated[Union[PermissionTypeNode, PermissionLeafNode], Field(discriminator="type")]


class MenuPermissionNode(_PermissionNodeBase):
    type: Literal["menu"] = "menu"
    icon: Optional[str] = None
    children: List[MenuChildNode] = []


class PermissionTreeData(CamelModel):
    permission_tree: List[MenuPermissionNode]
    total_count: int


class MyPermissionsData(CamelModel):
    user_id: str
    permissions: List[str]
    roles: List[RoleSummary]


# ---- User ----
class _UserFields(CamelModel):
    @field_validator("email", mode="before", check_fields=False)
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            if v and not EMAIL_PATTERN.match(v):
                raise ValueError("Invalid email format")
        return v


class UserCreate(_UserFields):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    display_name: str = Field(..., min_length=2, max_length=100)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    email_confirmed: bool = False
    roles: List[str] = []

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v):
        if not PASSWORD_PATTERN.match(v):
            raise ValueError(
                "Password must contain at least one uppercase letter, one lowercase letter, "
                "one number and one special character"
            )
        return v


class UserUpdate(_UserFields):
    email: str = Field(..., min_length=3, max_length=255)
    display_name: str = Field(..., min_length=2, max_length=100)
    first_name: Optional[str] = Field(None, max_length=50)
    last_name: Optional[str] = Field(None, max_length=50)
    is_active: bool = True
    email_confirmed: Optional[bool] = None
    role_ids: Optional[List[str]] = None


class UserOut(CamelModel):
    id: str
    email: str
    display_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    avatar_url: Optional[str] = None
    email_confirmed: bool = False
    is_active: bool = True
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    roles: List[RoleSummary] = []
    permissions: List[str] = []


class UserData(CamelModel):
    user: UserOut


class PaginatedUsers(CamelModel):
    items: List[UserOut]
    total_count: int
    page_number: int
    page_size: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class DeleteUserResult(CamelModel):
    user_id: str
    email: Optional[str] = None
    was_force_deleted: bool = False
    deactivated_role_count: int = 0
    warnings: List[str] = []
