"""Seed system roles, menus, permissions, grants and the super-admin user.

Every step is idempotent: existing rows (matched by name or key) are left alone.
"""

from sqlalchemy.orm import Session

from rbac_console.core.config import settings
from rbac_console.core.security import hash_password
from rbac_console.models.menu import Menu, MenuType
from rbac_console.models.permission import Permission, PermissionType, RolePermission
from rbac_console.models.role import Role, RoleMenu, SystemRole
from rbac_console.models.user import User, UserRole

ROLES = [
    (SystemRole.SUPER_ADMIN, "SuperAdmin", "Full system access with all permissions"),
    (SystemRole.ADMIN, "Admin", "Administrative access with most permissions"),
    (SystemRole.FINANCE, "Finance", "Financial data access and management"),
    (SystemRole.ACCOUNTS, "Accounts", "Account management and billing"),
    (SystemRole.CONTENT_MANAGER, "ContentManager", "Content creation and management"),
    (SystemRole.USER, "User", "Standard user with basic permissions"),
]

# (name, display name, icon, route, sort order)
ADMIN_MENUS = [
    ("dashboard", "Dashboard", "pi pi-home", "/admin/dashboard", 10),
    ("user-management", "User Management", "pi pi-users", None, 20),
    ("role-management", "Role Management", "pi pi-key", None, 30),
    ("permission-management", "Permissions", "pi pi-shield", None, 40),
    ("content-management", "Content", "pi pi-file-edit", None, 50),
    ("financial-management", "Financials", "pi pi-dollar", None, 60),
    ("system-management", "System", "pi pi-cog", None, 70),
]

# (name, display name, icon, route, parent name, sort order)
ADMIN_CHILD_MENUS = [
    ("users-list", "All Users", "pi pi-list", "/admin/users", "user-management", 10),
    ("users-create", "Add User", "pi pi-plus", "/admin/users/create", "user-management", 20),
    ("users-roles", "User Roles", "pi pi-key", "/admin/users/roles", "user-management", 30),
    ("roles-list", "All Roles", "pi pi-list", "/admin/roles", "role-management", 10),
    ("roles-create", "Create Role", "pi pi-plus", "/admin/roles/create", "role-management", 20),
    ("permissions-list", "All Permissions", "pi pi-list", "/admin/permissions", "permission-management", 10),
    ("permissions-create", "Create Permission", "pi pi-plus", "/admin/permissions/create", "permission-management", 20),
    ("content-vocabulary", "Vocabulary", "pi pi-book", "/admin/content/vocabulary", "content-management", 10),
    ("content-categories", "Categories", "pi pi-tags", "/admin/content/categories", "content-management", 20),
    ("financials-overview", "Overview", "pi pi-chart-bar", "/admin/financials", "financial-management", 10),
    ("financials-subscriptions", "Subscriptions", "pi pi-credit-card", "/admin/financials/subscriptions", "financial-management", 20),
    ("financials-reports", "Reports", "pi pi-chart-line", "/admin/financials/reports", "financial-management", 30),
    ("system-settings", "Settings", "pi pi-sliders-h", "/admin/system/settings", "system-management", 10),
    ("system-logs", "Logs", "pi pi-file", "/admin/system/logs", "system-management", 20),
    ("system-analytics", "Analytics", "pi pi-chart-pie", "/admin/system/analytics", "system-management", 30),
]

PUBLIC_MENUS = [
    ("public-dashboard", "Dashboard", "pi pi-home", "/public/dashboard", 10),
    ("public-vocabulary", "Vocabulary", "pi pi-book", "/public/vocabulary", 20),
    ("public-learning", "Learning", "pi pi-lightbulb", "/public/learning", 30),
]

# (menu name, type, key, display name, description)
PERMISSIONS = [
    ("dashboard", PermissionType.VIEW, "dashboard.view", "View Dashboard", "Access to main dashboard"),
    ("user-management", PermissionType.VIEW, "users.view", "View Users", "View user listings and details"),
    ("user-management", PermissionType.CREATE, "users.create", "Create Users", "Create new users"),
    ("user-management", PermissionType.EDIT, "users.edit", "Edit Users", "Modify user information"),
    ("user-management", PermissionType.DELETE, "users.delete", "Delete Users", "Remove users from system"),
    ("user-management", PermissionType.MANAGE, "users.manage", "Manage Users", "Full user management access"),
    ("role-management", PermissionType.VIEW, "roles.view", "View Roles", "View role listings and details"),
    ("role-management", PermissionType.CREATE, "roles.create", "Create Roles", "Create new roles"),
    ("role-management", PermissionType.EDIT, "roles.edit", "Edit Roles", "Modify role settings"),
    ("role-management", PermissionType.DELETE, "roles.delete", "Delete Roles", "Remove roles from system"),
    ("role-management", PermissionType.MANAGE, "roles.manage", "Manage Roles", "Full role management access"),
    ("permission-management", PermissionType.VIEW, "permissions.view", "View Permissions", "View permission listings"),
    ("permission-management", PermissionType.CREATE, "permissions.create", "Create Permissions", "Create new permissions"),
    ("permission-management", PermissionType.EDIT, "permissions.edit", "Edit Permissions", "Modify permissions"),
    ("permission-management", PermissionType.DELETE, "permissions.delete", "Delete Permissions", "Remove permissions"),
    ("permission-management", PermissionType.MANAGE, "permissions.manage", "Manage Permissions", "Full permission management"),
    ("content-management", PermissionType.VIEW, "content.view", "View Content", "View content items"),
    ("content-management", PermissionType.CREATE, "content.create", "Create Content", "Create new content"),
    ("content-management", PermissionType.EDIT, "content.edit", "Edit Content", "Modify content items"),
    ("content-management", PermissionType.DELETE, "content.delete", "Delete Content", "Remove content items"),
    ("content-management", PermissionType.MANAGE, "content.manage", "Manage Content", "Full content management"),
    ("financial-management", PermissionType.VIEW, "financials.view", "View Financials", "View financial data"),
    ("financial-management", PermissionType.MANAGE, "financials.manage", "Manage Financials", "Full financial management"),
    ("system-management", PermissionType.VIEW, "system.view", "View System", "View system information"),
    ("system-management", PermissionType.MANAGE, "system.manage", "Manage System", "System administration"),
    ("system-management", PermissionType.EXECUTE, "system.logs", "View Logs", "Access system logs"),
    ("system-management", PermissionType.VIEW, "analytics.view", "View Analytics", "Access to analytics and reports"),
    ("financial-management", PermissionType.VIEW, "reports.view", "View Reports", "Access to financial reports"),
    ("public-dashboard", PermissionType.VIEW, "public.dashboard", "View Public Dashboard", "Access to user dashboard"),
    ("public-vocabulary", PermissionType.VIEW, "public.vocabulary", "View Vocabulary", "Access to vocabulary learning"),
    ("public-learning", PermissionType.VIEW, "public.learning", "Access Learning", "Access to learning modules"),
]

# SuperAdmin receives every permission.
ROLE_PERMISSIONS = {
    SystemRole.ADMIN: [
        "dashboard.view", "users.view", "users.create", "users.edit", "users.delete",
        "roles.view", "roles.create", "roles.edit", "permissions.view",
        "content.view", "content.create", "content.edit", "content.delete",
        "system.view", "reports.view",
    ],
    SystemRole.FINANCE: ["dashboard.view", "users.view", "financials.view", "financials.manage", "reports.view"],
    SystemRole.ACCOUNTS: ["dashboard.view", "users.view", "financials.view"],
    SystemRole.CONTENT_MANAGER: [
        "dashboard.view", "users.view", "content.view", "content.create", "content.edit", "content.delete",
    ],
    SystemRole.USER: ["dashboard.view", "public.dashboard", "public.vocabulary", "public.learning"],
}


def seed_roles(db: Session) -> None:
    """Insert the system roles if they don't already exist."""
    for system_role, name, description in ROLES:
        existing = db.query(Role).filter(Role.system_role == int(system_role)).first()
        if not existing:
            db.add(Role(name=name, description=description, system_role=int(system_role), is_active=True))
    db.commit()
    print(f"✅ Seeded {len(ROLES)} roles")


def seed_menus(db: Session) -> None:
    """Insert admin menus, their children and the public menus."""
    def ensure(name, display_name, icon, route, sort_order, menu_type, parent_id=None):
        menu = db.query(Menu).filter(Menu.name == name).first()
        if not menu:
            menu = Menu(
                name=name, display_name=display_name, icon=icon, route=route,
                menu_type=menu_type, parent_menu_id=parent_id, sort_order=sort_order, is_active=True,
            )
            db.add(menu)
            db.flush()
        return menu

    parents = {}
    for name, display_name, icon, route, sort_order in ADMIN_MENUS:
        parents[name] = ensure(name, display_name, icon, route, sort_order, MenuType.admin)
    for name, display_name, icon, route, parent_name, sort_order in ADMIN_CHILD_MENUS:
        ensure(name, display_name, icon, route, sort_order, MenuType.admin, parents[parent_name].id)
    for name, display_name, icon, route, sort_order in PUBLIC_MENUS:
        ensure(name, display_name, icon, route, sort_order, MenuType.public)
    db.commit()
    total = len(ADMIN_MENUS) + len(ADMIN_CHILD_MENUS) + len(PUBLIC_MENUS)
    print(f"✅ Seeded {total} menus")


def seed_permissions(db: Session) -> None:
    """Insert the system permissions, each owned by its menu."""
    menus = {m.name: m for m in db.query(Menu).all()}
    for menu_name, ptype, key, display_name, description in PERMISSIONS:
        menu = menus.get(menu_name)
        if not menu:
            print(f"⚠️  Menu '{menu_name}' not found, skipping permission {key}")
            continue
        if not db.query(Permission).filter(Permission.permission_key == key).first():
            db.add(Permission(
                menu_id=menu.id, permission_type=ptype, permission_key=key,
                display_name=display_name, description=description,
                is_active=True, is_system_permission=True,
            ))
    db.commit()
    print(f"✅ Seeded {len(PERMISSIONS)} permissions")


def _role_keys(system_role: SystemRole, all_keys):
    if system_role == SystemRole.SUPER_ADMIN:
        return list(all_keys)
    return ROLE_PERMISSIONS.get(system_role, [])


def seed_role_permissions(db: Session) -> None:
    """Grant each system role its permission set."""
    permissions = {p.permission_key: p for p in db.query(Permission).all()}
    granted = 0
    for role in db.query(Role).filter(Role.system_role.isnot(None)).all():
        existing = {rp.permission_id for rp in role.role_permissions}
        for key in _role_keys(SystemRole(role.system_role), permissions):
            permission = permissions.get(key)
            if permission and permission.id not in existing:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id, is_granted=True))
                granted += 1
    db.commit()
    print(f"✅ Granted {granted} role permissions")


def seed_role_menus(db: Session) -> None:
    """Make every menu owning a granted permission, and its child menus, visible to the role."""
    menus = db.query(Menu).all()
    children = {}
    for menu in menus:
        if menu.parent_menu_id:
            children.setdefault(menu.parent_menu_id, []).append(menu.id)

    granted = 0
    for role in db.query(Role).filter(Role.system_role.isnot(None)).all():
        menu_ids = set()
        for rp in role.role_permissions:
            if rp.is_granted:
                menu_ids.add(rp.permission.menu_id)
                menu_ids.update(children.get(rp.permission.menu_id, []))
        existing = {rm.menu_id for rm in role.role_menus}
        for menu_id in menu_ids - existing:
            db.add(RoleMenu(role_id=role.id, menu_id=menu_id, is_active=True))
            granted += 1
    db.commit()
    print(f"✅ Granted {granted} role menus")


def seed_super_admin(db: Session) -> None:
    """Create the super-admin user if not already present."""
    super_admin_role = db.query(Role).filter(Role.system_role == int(SystemRole.SUPER_ADMIN)).first()
    if not super_admin_role:
        print("⚠️  SuperAdmin role not found. Run seed_roles first.")
        return

    email = settings.SUPER_ADMIN_EMAIL.lower()
    existing = db.query(User).filter(User.email == email).first()
    if existing:
        print(f"ℹ️  Super admin '{email}' already exists, skipping.")
        return

    admin = User(
        email=email,
        hashed_password=hash_password(settings.SUPER_ADMIN_PASSWORD),
        display_name="System Administrator",
        first_name="System",
        last_name="Administrator",
        email_confirmed=True,
        is_active=True,
    )
    db.add(admin)
    db.flush()
    db.add(UserRole(user_id=admin.id, role_id=super_admin_role.id, is_active=True))
    db.commit()
    print(f"✅ Created super admin: {email}")


def seed_all(db: Session) -> None:
    seed_roles(db)
    seed_menus(db)
    seed_permissions(db)
    seed_role_permissions(db)
    seed_role_menus(db)
    seed_super_admin(db)
