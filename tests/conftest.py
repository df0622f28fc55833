"""Shared fixtures: in-memory database, API client and entity factories."""

from __future__ import annotations

from typing import Iterable, Optional

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import rbac_console.models  # noqa: F401
from rbac_console.core.security import create_access_token, hash_password
from rbac_console.db.base import Base
from rbac_console.db.session import get_db
from rbac_console.main import app
from rbac_console.models import (
    Menu, MenuType, Permission, PermissionType, Role, RoleMenu, RolePermission, User, UserRole,
)

PASSWORD_HASH = hash_password("Passw0rd!")

CONSOLE_KEYS = [
    ("roles.view", PermissionType.VIEW),
    ("roles.create", PermissionType.CREATE),
    ("roles.edit", PermissionType.EDIT),
    ("roles.delete", PermissionType.DELETE),
    ("users.view", PermissionType.VIEW),
    ("users.create", PermissionType.CREATE),
    ("users.edit", PermissionType.EDIT),
    ("users.delete", PermissionType.DELETE),
    ("permissions.view", PermissionType.VIEW),
    ("system.view", PermissionType.VIEW),
    ("system.manage", PermissionType.MANAGE),
]


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT support
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()


@pytest.fixture()
def client(db):
    def _override_get_db():
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class Factory:
    """Creates and commits entities with sensible defaults."""

    def __init__(self, db):
        self.db = db
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def menu(self, name: Optional[str] = None, display_name: Optional[str] = None,
             parent: Optional[Menu] = None, sort_order: int = 0,
             menu_type: MenuType = MenuType.admin, is_active: bool = True) -> Menu:
        n = self._next()
        return self._save(Menu(
            name=name or f"menu-{n}",
            display_name=display_name or f"Menu {n}",
            menu_type=menu_type,
            parent_menu_id=parent.id if parent else None,
            sort_order=sort_order,
            is_active=is_active,
        ))

    def permission(self, key: Optional[str] = None, menu: Optional[Menu] = None,
                   permission_type: PermissionType = PermissionType.VIEW,
                   display_name: Optional[str] = None, is_active: bool = True,
                   is_system_permission: bool = False) -> Permission:
        n = self._next()
        menu = menu or self.menu()
        return self._save(Permission(
            menu_id=menu.id,
            permission_type=permission_type,
            permission_key=key or f"perm.{n}",
            display_name=display_name or f"Permission {n}",
            is_active=is_active,
            is_system_permission=is_system_permission,
        ))

    def role(self, name: Optional[str] = None, is_active: bool = True,
             system_role: Optional[int] = None,
             permissions: Iterable[Permission] = (), menus: Iterable[Menu] = ()) -> Role:
        n = self._next()
        role = self._save(Role(
            name=name or f"Role {n}", description="", is_active=is_active, system_role=system_role,
        ))
        for permission in permissions:
            self.grant(role, permission)
        for menu in menus:
            self.role_menu(role, menu)
        return role

    def user(self, email: Optional[str] = None, roles: Iterable[Role] = (),
             is_active: bool = True) -> User:
        n = self._next()
        user = self._save(User(
            email=email or f"user{n}@example.com",
            display_name=f"User {n}",
            hashed_password=PASSWORD_HASH,
            is_active=is_active,
        ))
        for role in roles:
            self.assign(user, role)
        return user

    def grant(self, role: Role, permission: Permission, is_granted: bool = True) -> RolePermission:
        return self._save(RolePermission(role_id=role.id, permission_id=permission.id, is_granted=is_granted))

    def role_menu(self, role: Role, menu: Menu, is_active: bool = True) -> RoleMenu:
        return self._save(RoleMenu(role_id=role.id, menu_id=menu.id, is_active=is_active))

    def assign(self, user: User, role: Role, is_active: bool = True) -> UserRole:
        return self._save(UserRole(user_id=user.id, role_id=role.id, is_active=is_active))


@pytest.fixture()
def factory(db) -> Factory:
    return Factory(db)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.email)}"}


@pytest.fixture()
def admin_user(factory) -> User:
    """A user whose role holds every permission the console endpoints check."""
    console = factory.menu(name="console", display_name="Console", sort_order=99)
    permissions = [factory.permission(key, console, ptype) for key, ptype in CONSOLE_KEYS]
    role = factory.role(name="SuperAdmin", system_role=1, permissions=permissions, menus=[console])
    return factory.user(email="admin@example.com", roles=[role])


@pytest.fixture()
def admin_headers(admin_user) -> dict:
    return auth_headers(admin_user)
