"""Menu model."""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Enum, func
from sqlalchemy.orm import relationship
from rbac_console.db.base import Base, new_id


class MenuType(str, enum.Enum):
    admin = "admin"      # left navigation of the admin console
    public = "public"    # top navigation of the learner site


class Menu(Base):
    """Navigable UI entry, optionally nested under a parent menu.

    Children are found by reverse lookup on ``parent_menu_id``; no child
    collection is mapped.
    """
    __tablename__ = "menus"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(150), nullable=False)
    description = Column(String(500), nullable=True)
    icon = Column(String(100), nullable=True)
    route = Column(String(255), nullable=True)
    menu_type = Column(Enum(MenuType), default=MenuType.admin, nullable=False)
    parent_menu_id = Column(String(36), ForeignKey("menus.id"), nullable=True, index=True)
    sort_order = Column(Integer, default=0, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

    parent_menu = relationship("Menu", remote_side=[id], lazy="joined")
    permissions = relationship("Permission", back_populates="menu", lazy="selectin")
    role_menus = relationship("RoleMenu", back_populates="menu", lazy="selectin")
