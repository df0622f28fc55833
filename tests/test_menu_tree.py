"""Menu tree builder and circular-parent guard."""

from __future__ import annotations

import logging
import random
import uuid

from rbac_console.models import Menu, MenuType
from rbac_console.services.menu_tree import (
    build_menu_tree, collect_descendant_ids, creates_cycle, walk_tree,
)


def make_menu(menu_id: str, parent_id: str | None = None, sort_order: int = 0,
              display_name: str | None = None) -> Menu:
    return Menu(
        id=menu_id,
        name=f"menu-{menu_id}",
        display_name=display_name or menu_id,
        menu_type=MenuType.admin,
        parent_menu_id=parent_id,
        sort_order=sort_order,
        is_active=True,
    )


def assert_sorted(nodes) -> None:
    keys = [(n.sort_order, n.display_name) for n in nodes]
    assert keys == sorted(keys)


def test_acyclic_forest_keeps_every_node_and_sorts_each_level() -> None:
    rng = random.Random(42)
    menus = []
    for i in range(60):
        parent = rng.choice(menus).id if menus and rng.random() < 0.7 else None
        menus.append(make_menu(str(uuid.uuid4()), parent, rng.randint(0, 5), f"Menu {rng.randint(0, 99)}"))
    rng.shuffle(menus)

    roots = build_menu_tree(menus)

    nodes = list(walk_tree(roots))
    assert len(nodes) == len(menus)
    assert {n.id for n in nodes} == {m.id for m in menus}
    assert_sorted(roots)
    for node in nodes:
        assert_sorted(node.children)


def test_children_ordered_by_sort_order_then_display_name() -> None:
    menus = [
        make_menu("root"),
        make_menu("c", "root", 2, "Alpha"),
        make_menu("b", "root", 1, "Zulu"),
        make_menu("a", "root", 1, "Beta"),
    ]

    (root,) = build_menu_tree(menus)

    assert [c.id for c in root.children] == ["a", "b", "c"]


def test_children_attached_to_parent_and_parent_name_unset_for_transient_records() -> None:
    menus = [make_menu("p", display_name="Parent"), make_menu("k", "p", display_name="Kid")]

    (root,) = build_menu_tree(menus)

    assert root.id == "p"
    assert [c.id for c in root.children] == ["k"]
    assert root.children[0].parent_menu_id == "p"
    assert root.children[0].children == []


def test_orphan_is_promoted_to_root_with_warning(caplog) -> None:
    menus = [make_menu("root", sort_order=1), make_menu("orphan", "missing-parent", sort_order=0)]

    with caplog.at_level(logging.WARNING, logger="rbac_console"):
        roots = build_menu_tree(menus)

    assert [r.id for r in roots] == ["orphan", "root"]
    assert roots[0].parent_menu_id == "missing-parent"
    assert "promoting to root" in caplog.text


def test_orphan_keeps_its_subtree() -> None:
    menus = [make_menu("orphan", "gone"), make_menu("child", "orphan")]

    roots = build_menu_tree(menus)

    assert [r.id for r in roots] == ["orphan"]
    assert [c.id for c in roots[0].children] == ["child"]


def test_nodes_only_on_a_cycle_are_dropped_with_warning(caplog) -> None:
    menus = [make_menu("ok"), make_menu("x", "y"), make_menu("y", "x"), make_menu("self", "self")]

    with caplog.at_level(logging.WARNING, logger="rbac_console"):
        roots = build_menu_tree(menus)

    assert [r.id for r in roots] == ["ok"]
    assert "Dropped 3 menu(s)" in caplog.text


def test_required_permissions_attached_per_menu() -> None:
    menus = [make_menu("a"), make_menu("b", "a")]

    (root,) = build_menu_tree(menus, {"a": ["users.view"], "b": ["users.edit", "users.view"]})

    assert root.required_permissions == ["users.view"]
    assert root.children[0].required_permissions == ["users.edit", "users.view"]


def test_empty_input_gives_empty_forest() -> None:
    assert build_menu_tree([]) == []


PAIRS = [
    ("a", None),
    ("b", "a"),
    ("c", "b"),
    ("d", "a"),
    ("e", None),
]


def test_collect_descendant_ids_walks_all_levels() -> None:
    assert collect_descendant_ids("a", PAIRS) == {"b", "c", "d"}
    assert collect_descendant_ids("b", PAIRS) == {"c"}
    assert collect_descendant_ids("e", PAIRS) == set()


def test_collect_descendant_ids_terminates_on_corrupt_cycle() -> None:
    pairs = [("a", "c"), ("b", "a"), ("c", "b")]

    assert collect_descendant_ids("a", pairs) == {"b", "c"}


def test_parent_equal_to_self_is_a_cycle() -> None:
    assert creates_cycle("a", "a", PAIRS)
    assert creates_cycle("e", "e", PAIRS)


def test_parent_among_descendants_is_a_cycle() -> None:
    assert creates_cycle("a", "b", PAIRS)
    assert creates_cycle("a", "c", PAIRS)


def test_unrelated_or_missing_parent_is_not_a_cycle() -> None:
    assert not creates_cycle("b", "d", PAIRS)
    assert not creates_cycle("a", "e", PAIRS)
    assert not creates_cycle("a", None, PAIRS)
