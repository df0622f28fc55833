"""Role and RoleMenu (visibility record) models."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import relationship
from rbac_console.db.base import Base, new_id


class SystemRole(enum.IntEnum):
    """Built-in roles. A role carrying one of these is protected from ordinary deletion."""
    SUPER_ADMIN = 1
    ADMIN = 2
    FINANCE = 3
    ACCOUNTS = 4
    CONTENT_MANAGER = 5
    USER = 6


# Holders of these roles are protected from ordinary user deletion.
PROTECTED_SYSTEM_ROLES = (SystemRole.SUPER_ADMIN, SystemRole.ADMIN)


class Role(Base):
    """Named bundle of menu and permission grants assignable to users."""
    __tablename__ = "roles"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), unique=True, nullable=False, index=True)
    description = Column(String(500), nullable=False, default="")
    is_active = Column(Boolean, default=True, nullable=False)
    system_role = Column(Integer, nullable=True, unique=True)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    user_roles = relationship("UserRole", back_populates="role", lazy="selectin")
    role_menus = relationship("RoleMenu", back_populates="role", lazy="selectin")
    role_permissions = relationship("RolePermission", back_populates="role", lazy="selectin")

    @property
    def is_system_role(self) -> bool:
        return self.system_role is not None


class RoleMenu(Base):
    """Makes a menu visible to the holders of a role."""
    __tablename__ = "role_menus"
    __table_args__ = (UniqueConstraint("role_id", "menu_id", name="uq_role_menu"),)

    id = Column(String(36), primary_key=True, default=new_id)
    role_id = Column(String(36), ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True)
    menu_id = Column(String(36), ForeignKey("menus.id", ondelete="CASCADE"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    granted_by = Column(String(36), nullable=True)
    granted_at = Column(DateTime, server_default=func.now(), nullable=False)

    role = relationship("Role", back_populates="role_menus")
    menu = relationship("Menu", back_populates="role_menus", lazy="joined")
