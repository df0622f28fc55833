"""Permission tree builder: menu -> permission type -> permission.

A type group with a single permission is attached to the menu node as a
leaf; a group with several permissions is wrapped in a
``"{Type} Operations"`` node.
"""

from typing import Dict, List, Sequence

from rbac_console.models.permission import Permission, PermissionType
from rbac_console.schemas.schemas import (
    MenuPermissionNode, PermissionLeafNode, PermissionNodeData, PermissionTypeNode,
)


def _ordering(permission: Permission):
    return (
        permission.menu.sort_order,
        PermissionType(permission.permission_type).rank,
        permission.display_name,
    )


def _leaf(permission: Permission, parent_id: str) -> PermissionLeafNode:
    menu = permission.menu
    return PermissionLeafNode(
        id=permission.id,
        key=permission.permission_key,
        label=permission.display_name,
        description=permission.description,
        is_active=permission.is_active,
        is_system_permission=permission.is_system_permission,
        parent_id=parent_id,
        data=PermissionNodeData(
            menu_id=menu.id,
            menu_name=menu.name,
            permission_type=PermissionType(permission.permission_type).value,
            sort_order=menu.sort_order,
        ),
    )


def build_permission_tree(permissions: Sequence[Permission]) -> List[MenuPermissionNode]:
    """Group permissions (each with its ``menu`` loaded) into menu nodes ordered by sort order."""
    by_menu: Dict[str, List[Permission]] = {}
    for permission in sorted(permissions, key=_ordering):
        by_menu.setdefault(permission.menu_id, []).append(permission)

    tree: List[MenuPermissionNode] = []
    for menu_id, members in by_menu.items():
        menu = members[0].menu
        menu_node = MenuPermissionNode(
            id=menu.id,
            key=f"menu_{menu.id}",
            label=menu.display_name,
            icon=menu.icon,
            description=menu.description,
            is_active=menu.is_active,
            is_system_permission=False,
            data=PermissionNodeData(menu_id=menu.id, menu_name=menu.name, sort_order=menu.sort_order),
        )

        by_type: Dict[PermissionType, List[Permission]] = {}
        for permission in members:
            by_type.setdefault(PermissionType(permission.permission_type), []).append(permission)

        for ptype, group in by_type.items():
            if len(group) == 1:
                menu_node.children.append(_leaf(group[0], parent_id=menu.id))
                continue
            type_id = f"{menu.id}_{ptype.value}"
            menu_node.children.append(PermissionTypeNode(
                id=type_id,
                key=f"type_{menu.id}_{ptype.value}",
                label=f"{ptype.value} Operations",
                description=f"{ptype.value} permissions for {menu.display_name}",
                is_active=all(p.is_active for p in group),
                is_system_permission=any(p.is_system_permission for p in group),
                parent_id=menu.id,
                data=PermissionNodeData(
                    menu_id=menu.id,
                    menu_name=menu.name,
                    permission_type=ptype.value,
                    sort_order=menu.sort_order,
                ),
                children=[_leaf(p, parent_id=type_id) for p in group],
            ))
        tree.append(menu_node)

    tree.sort(key=lambda node: (node.data.sort_order, node.label))
    return tree
