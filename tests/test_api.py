"""HTTP surface: envelope, authorization and representative endpoints."""

from __future__ import annotations

import uuid

from conftest import auth_headers

from rbac_console.models import RolePermission

API = "/api/v1"


def test_health_is_public(client) -> None:
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_token_is_401_envelope(client) -> None:
    response = client.get(f"{API}/role")

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["errors"] == ["Not authenticated"]


def test_invalid_token_is_401(client) -> None:
    response = client.get(f"{API}/role", headers={"Authorization": "Bearer garbage"})

    assert response.status_code == 401


def test_caller_without_permission_is_403(client, factory) -> None:
    user = factory.user()

    response = client.get(f"{API}/role", headers=auth_headers(user))

    assert response.status_code == 403
    assert "roles.view" in response.json()["message"]


def test_request_id_header_is_set_and_echoed(client) -> None:
    response = client.get("/api/health", headers={"X-Request-Id": "abc-123"})

    assert response.headers["X-Request-Id"] == "abc-123"
    assert "X-Response-Time-Ms" in response.headers


def test_role_round_trip_uses_camel_case(client, factory, admin_headers) -> None:
    a = factory.menu(display_name="A")
    b = factory.menu(display_name="B")

    created = client.post(
        f"{API}/role",
        json={"name": "Editors", "description": "Edit things", "isActive": True, "menuIds": [a.id, b.id]},
        headers=admin_headers,
    )
    assert created.status_code == 201
    role_id = created.json()["data"]["role"]["id"]

    fetched = client.get(f"{API}/role/{role_id}", headers=admin_headers)

    body = fetched.json()
    assert body["success"] is True
    role = body["data"]["role"]
    assert {m["id"] for m in role["menus"]} == {a.id, b.id}
    assert role["isActive"] is True
    assert "isSystemRole" in role


def test_role_list_envelope(client, admin_headers) -> None:
    response = client.get(f"{API}/role", headers=admin_headers)

    body = response.json()
    assert response.status_code == 200
    assert [r["name"] for r in body["data"]["roles"]] == ["SuperAdmin"]
    assert body["data"]["totalCount"] == 1


def test_role_validation_errors_are_listed(client, admin_headers) -> None:
    response = client.post(
        f"{API}/role",
        json={"name": "superadmin", "menuIds": ["bad-id"]},
        headers=admin_headers,
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert set(body["errors"]) == {"Role name already exists", "Invalid menu ID: bad-id"}


def test_request_shape_errors_are_400(client, admin_headers) -> None:
    response = client.post(f"{API}/role", json={"name": "x"}, headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["errors"][0].startswith("name:")


def test_role_delete_conflict_then_force(client, factory, admin_headers) -> None:
    role = factory.role(name="Busy")
    for _ in range(3):
        factory.user(roles=[role])

    refused = client.delete(f"{API}/role/{role.id}", headers=admin_headers)
    assert refused.status_code == 409
    assert "forceDelete=true" in refused.json()["message"]

    forced = client.delete(f"{API}/role/{role.id}", params={"forceDelete": "true"}, headers=admin_headers)
    assert forced.status_code == 200
    body = forced.json()
    assert body["data"]["affectedUsersCount"] == 3
    assert body["message"] == "Role 'Busy' was force deleted along with 3 user associations"


def test_unknown_role_is_404(client, admin_headers) -> None:
    response = client.get(f"{API}/role/{uuid.uuid4()}", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_role_permission_grant_and_revoke(client, factory, admin_headers) -> None:
    permission = factory.permission("reports.view")
    role = factory.role(name="Auditors")

    granted = client.put(
        f"{API}/role/{role.id}/permissions",
        json={"permissionIds": [permission.id]},
        headers=admin_headers,
    )
    assert granted.json()["data"]["role"]["permissionKeys"] == ["reports.view"]

    revoked = client.delete(f"{API}/role/{role.id}/permissions/{permission.id}", headers=admin_headers)
    assert revoked.status_code == 200
    assert revoked.json()["data"]["role"]["permissionKeys"] == []


def test_permission_tree_endpoint(client, admin_headers) -> None:
    response = client.get(f"{API}/permission", headers=admin_headers)

    body = response.json()
    assert response.status_code == 200
    (menu_node,) = body["data"]["permissionTree"]
    assert menu_node["type"] == "menu"
    assert menu_node["key"].startswith("menu_")
    labels = [child["label"] for child in menu_node["children"]]
    assert "View Operations" in labels
    assert body["data"]["totalCount"] == 11


def test_my_permissions(client, admin_user, admin_headers) -> None:
    response = client.get(f"{API}/permission/me", headers=admin_headers)

    data = response.json()["data"]
    assert data["userId"] == admin_user.id
    assert "system.manage" in data["permissions"]
    assert [r["name"] for r in data["roles"]] == ["SuperAdmin"]


def test_menu_circular_update_is_400(client, factory, admin_headers) -> None:
    parent = factory.menu(name="parent", display_name="Parent")
    child = factory.menu(name="child", display_name="Child", parent=parent)

    response = client.put(
        f"{API}/menu/{parent.id}",
        json={"name": "parent", "displayName": "Parent", "parentMenuId": child.id},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert response.json()["errors"] == ["Parent menu would create circular reference"]


def test_menu_delete_is_idempotent(client, factory, admin_headers) -> None:
    menu = factory.menu()

    first = client.delete(f"{API}/menu/{menu.id}", headers=admin_headers)
    second = client.delete(f"{API}/menu/{menu.id}", headers=admin_headers)
    missing = client.delete(f"{API}/menu/{uuid.uuid4()}", headers=admin_headers)

    assert first.status_code == second.status_code == missing.status_code == 200
    assert first.json()["message"] == "Menu deleted successfully"
    assert second.json()["success"] is True


def test_menu_force_delete_reports_warnings(client, factory, admin_headers) -> None:
    root = factory.menu()
    factory.menu(parent=root)

    response = client.delete(f"{API}/menu/{root.id}", params={"forceDelete": True}, headers=admin_headers)

    assert response.json()["message"] == "Menu deleted successfully with warnings: Deleted 1 child menu(s)"


def test_menu_tree_and_user_menus(client, admin_headers) -> None:
    tree = client.get(f"{API}/menu", headers=admin_headers).json()["data"]
    assert [m["name"] for m in tree["menus"]] == ["console"]

    mine = client.get(f"{API}/menu/user-menus", headers=admin_headers).json()["data"]
    (console,) = mine["menus"]
    assert "roles.view" in console["requiredPermissions"]


def test_user_crud_flow(client, factory, admin_headers) -> None:
    role = factory.role(name="Staff")

    created = client.post(
        f"{API}/user",
        json={"email": "New@Example.com", "password": "Str0ng!Pass", "displayName": "New", "roles": ["Staff"]},
        headers=admin_headers,
    )
    assert created.status_code == 201
    user = created.json()["data"]["user"]
    assert user["email"] == "new@example.com"
    assert [r["name"] for r in user["roles"]] == ["Staff"]

    removed = client.delete(f"{API}/user/{user['id']}/roles/{role.id}", headers=admin_headers)
    assert removed.json()["data"]["user"]["roles"] == []

    assigned = client.post(f"{API}/user/{user['id']}/roles/{role.id}", headers=admin_headers)
    assert [r["name"] for r in assigned.json()["data"]["user"]["roles"]] == ["Staff"]

    listing = client.get(f"{API}/user", params={"search": "new@"}, headers=admin_headers).json()["data"]
    assert listing["totalCount"] == 1
    assert listing["items"][0]["id"] == user["id"]

    deleted = client.delete(f"{API}/user/{user['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert client.get(f"{API}/user/{user['id']}", headers=admin_headers).json()["data"]["user"]["isActive"] is False


def test_weak_password_is_400(client, admin_headers) -> None:
    response = client.post(
        f"{API}/user",
        json={"email": "a@example.com", "password": "password", "displayName": "Weak"},
        headers=admin_headers,
    )

    assert response.status_code == 400
    assert any(e.startswith("password:") for e in response.json()["errors"])


def test_request_id_is_generated_when_absent(client) -> None:
    first = client.get("/api/health").headers["X-Request-Id"]
    second = client.get("/api/health").headers["X-Request-Id"]

    assert first and second and first != second


def test_token_of_deactivated_user_is_401(client, factory) -> None:
    user = factory.user(is_active=False)

    response = client.get(f"{API}/permission/me", headers=auth_headers(user))

    assert response.status_code == 401
    assert response.json()["message"] == "User not found or deactivated"


def test_granting_to_inactive_role_is_404_and_writes_nothing(client, db, factory, admin_headers) -> None:
    permission = factory.permission("reports.view")
    role = factory.role(name="Retired", is_active=False)

    response = client.put(
        f"{API}/role/{role.id}/permissions",
        json={"permissionIds": [permission.id]},
        headers=admin_headers,
    )

    assert response.status_code == 404
    assert db.query(RolePermission).filter(RolePermission.role_id == role.id).count() == 0
