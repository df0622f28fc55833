"""Menu tree builder and the circular-parent guard.

Menus reference their parent by id; children are never stored. The tree
is assembled from a flat list with an id-indexed lookup, and the guard
walks a reverse-parent index built from ``(id, parent_id)`` pairs.
"""

import logging
from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Set, Tuple

from rbac_console.models.menu import Menu
from rbac_console.schemas.schemas import MenuTreeNode

logger = logging.getLogger("rbac_console")

ParentPair = Tuple[str, Optional[str]]


def _sort_key(node: MenuTreeNode):
    return (node.sort_order, node.display_name)


def menu_to_node(menu: Menu, required_permissions: Optional[List[str]] = None) -> MenuTreeNode:
    node = MenuTreeNode.model_validate(menu)
    node.parent_menu_name = menu.parent_menu.display_name if menu.parent_menu else None
    node.required_permissions = list(required_permissions or [])
    node.children = []
    return node


def build_menu_tree(
    menus: Sequence[Menu],
    required_permissions: Optional[Mapping[str, List[str]]] = None,
) -> List[MenuTreeNode]:
    """Assemble flat menu records into a forest ordered by (sort_order, display_name).

    A record whose parent is not part of ``menus`` (deleted, inactive or of
    another menu type) is promoted to a root and a warning is logged.
    Records that are only reachable through a parent cycle are dropped with
    a warning.
    """
    required_permissions = required_permissions or {}
    nodes: Dict[str, MenuTreeNode] = {}
    for menu in menus:
        nodes[menu.id] = menu_to_node(menu, required_permissions.get(menu.id))

    roots: List[MenuTreeNode] = []
    for menu_id, node in nodes.items():
        parent_id = node.parent_menu_id
        if parent_id is None:
            roots.append(node)
        elif parent_id in nodes:
            nodes[parent_id].children.append(node)
        else:
            logger.warning(
                "Menu '%s' (%s) references parent %s which is not in the result; promoting to root",
                node.name, menu_id, parent_id,
            )
            roots.append(node)

    reachable = sum(1 for _ in walk_tree(roots))
    if reachable < len(nodes):
        logger.warning(
            "Dropped %d menu(s) that are only reachable through a parent cycle",
            len(nodes) - reachable,
        )

    for node in nodes.values():
        node.children.sort(key=_sort_key)
    roots.sort(key=_sort_key)
    return roots


def walk_tree(roots: Iterable[MenuTreeNode]) -> Iterator[MenuTreeNode]:
    """Yield every node of a forest, depth first."""
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def _children_index(parent_pairs: Iterable[ParentPair]) -> Dict[str, List[str]]:
    index: Dict[str, List[str]] = defaultdict(list)
    for menu_id, parent_id in parent_pairs:
        if parent_id is not None:
            index[parent_id].append(menu_id)
    return index


def collect_descendant_ids(menu_id: str, parent_pairs: Iterable[ParentPair]) -> Set[str]:
    """All ids below ``menu_id`` in the hierarchy, excluding ``menu_id`` itself."""
    children = _children_index(parent_pairs)
    seen: Set[str] = set()
    stack = list(children.get(menu_id, []))
    while stack:
        current = stack.pop()
        if current in seen or current == menu_id:
            continue
        seen.add(current)
        stack.extend(children.get(current, []))
    return seen


def creates_cycle(menu_id: str, proposed_parent_id: Optional[str],
                  parent_pairs: Iterable[ParentPair]) -> bool:
    """True when making ``proposed_parent_id`` the parent of ``menu_id`` would form a cycle."""
    if proposed_parent_id is None:
        return False
    if proposed_parent_id == menu_id:
        return True
    return proposed_parent_id in collect_descendant_ids(menu_id, parent_pairs)
