"""Permission tree builder: menu -> permission type -> permission."""

from __future__ import annotations

from rbac_console.models import Menu, MenuType, Permission, PermissionType
from rbac_console.schemas.schemas import MenuPermissionNode, PermissionLeafNode, PermissionTypeNode
from rbac_console.services.permission_tree import build_permission_tree


def make_menu(menu_id: str, sort_order: int = 0) -> Menu:
    return Menu(
        id=menu_id, name=menu_id, display_name=menu_id.title(), icon="pi pi-list",
        menu_type=MenuType.admin, sort_order=sort_order, is_active=True,
    )


def make_permission(menu: Menu, key: str, ptype: PermissionType = PermissionType.VIEW,
                    is_active: bool = True, is_system: bool = False) -> Permission:
    return Permission(
        id=f"p-{key}", menu=menu, menu_id=menu.id, permission_type=ptype, permission_key=key,
        display_name=key.replace(".", " ").title(), is_active=is_active,
        is_system_permission=is_system,
    )


def test_single_permission_of_a_type_is_a_direct_leaf() -> None:
    menu = make_menu("users")
    view = make_permission(menu, "users.view")

    (node,) = build_permission_tree([view])

    assert isinstance(node, MenuPermissionNode)
    assert node.key == "menu_users"
    assert node.label == "Users"
    assert len(node.children) == 1
    leaf = node.children[0]
    assert isinstance(leaf, PermissionLeafNode)
    assert leaf.type == "permission"
    assert leaf.key == "users.view"
    assert leaf.parent_id == "users"
    assert leaf.data.permission_type == "View"


def test_several_permissions_of_a_type_are_wrapped_in_operations_node() -> None:
    menu = make_menu("system")
    view = make_permission(menu, "system.view", is_system=True)
    analytics = make_permission(menu, "analytics.view", is_active=False)

    (node,) = build_permission_tree([view, analytics])

    assert len(node.children) == 1
    group = node.children[0]
    assert isinstance(group, PermissionTypeNode)
    assert group.label == "View Operations"
    assert group.id == "system_View"
    assert group.key == "type_system_View"
    assert group.parent_id == "system"
    assert {leaf.key for leaf in group.children} == {"system.view", "analytics.view"}
    assert all(leaf.parent_id == "system_View" for leaf in group.children)
    assert group.is_active is False
    assert group.is_system_permission is True


def test_type_groups_follow_declaration_order() -> None:
    menu = make_menu("roles")
    permissions = [
        make_permission(menu, "roles.manage", PermissionType.MANAGE),
        make_permission(menu, "roles.create", PermissionType.CREATE),
        make_permission(menu, "roles.view", PermissionType.VIEW),
        make_permission(menu, "roles.list", PermissionType.VIEW),
        make_permission(menu, "roles.run", PermissionType.EXECUTE),
    ]

    (node,) = build_permission_tree(permissions)

    assert [child.label for child in node.children] == [
        "View Operations", "Roles Create", "Roles Run", "Roles Manage",
    ]


def test_menu_nodes_sorted_by_menu_sort_order() -> None:
    later = make_menu("later", sort_order=20)
    first = make_menu("first", sort_order=10)

    tree = build_permission_tree([
        make_permission(later, "later.view"),
        make_permission(first, "first.view"),
    ])

    assert [node.id for node in tree] == ["first", "later"]


def test_serialized_nodes_carry_type_discriminator_and_camel_case() -> None:
    menu = make_menu("content")
    tree = build_permission_tree([
        make_permission(menu, "content.view"),
        make_permission(menu, "content.edit", PermissionType.EDIT),
        make_permission(menu, "content.review", PermissionType.EDIT),
    ])

    dumped = tree[0].model_dump(by_alias=True)

    assert dumped["type"] == "menu"
    assert dumped["isSystemPermission"] is False
    leaf, group = dumped["children"]
    assert leaf["type"] == "permission"
    assert "children" not in leaf
    assert group["type"] == "permission_type"
    assert group["data"]["permissionType"] == "Edit"
    assert [c["type"] for c in group["children"]] == ["permission", "permission"]


def test_empty_input_gives_empty_tree() -> None:
    assert build_permission_tree([]) == []
