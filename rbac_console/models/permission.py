"""Permission and RolePermission (grant record) models."""

import enum

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Enum, UniqueConstraint, func
from sqlalchemy.orm import relationship
from rbac_console.db.base import Base, new_id


class PermissionType(str, enum.Enum):
    """Kind of operation a permission grants. Declaration order is display order."""
    VIEW = "View"
    CREATE = "Create"
    EDIT = "Edit"
    DELETE = "Delete"
    EXECUTE = "Execute"
    MANAGE = "Manage"

    @property
    def rank(self) -> int:
        return list(PermissionType).index(self)


class Permission(Base):
    """Atomic named capability (e.g. ``users.view``) owned by a menu."""
    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, default=new_id)
    menu_id = Column(String(36), ForeignKey("menus.id"), nullable=False, index=True)
    permission_type = Column(Enum(PermissionType), nullable=False)
    permission_key = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(150), nullable=False)
    description = Column(String(500), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_system_permission = Column(Boolean, default=False, nullable=False)  # protected from deletion
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    menu = relationship("Menu", back_populates="permissions", lazy="joined")
    role_permissions = relationship("RolePermission", back_populates="permission")


class RolePermission(Base):
    """Grant of a permission to a role. Revoked by clearing ``is_granted``."""
    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    id = Column(String(36), primary_key=True, default=new_id)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    permission_id = Column(String(36), ForeignKey("permissions.id", ondelete="CASCADE"), nullable=False)
    is_granted = Column(Boolean, default=True, nullable=False)
    granted_by = Column(String(36), nullable=True)
    granted_at = Column(DateTime, server_default=func.now(), nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    role = relationship("Role", back_populates="role_permissions")
    permission = relationship("Permission", back_populates="role_permissions", lazy="joined")
