"""Tests for voting CRUD and pagination."""

from conftest import auth_headers

BASE = "/api/voting"


async def _create(client, user, title="Feature", **extra):
    resp = await client.post(
        BASE, json={"title": title, "description": "Details", **extra}, headers=auth_headers(user)
    )
    assert resp.status_code == 201
    return resp.json()["voting"]


async def test_create_and_get(client, make_user):
    user = await make_user()

    created = await _create(client, user, title="Custom fonts", level=2)
    resp = await client.get(f"{BASE}/{created['id']}")

    assert resp.status_code == 200
    voting = resp.json()["voting"]
    assert voting["title"] == "Custom fonts"
    assert voting["creator_id"] == user.id
    assert voting["level"] == 2
    assert voting["status"] == "pending"


async def test_get_missing_voting(client):
    resp = await client.get(f"{BASE}/404")
    assert resp.status_code == 404


async def test_list_my_and_all_with_pages(client, make_user):
    alice = await make_user(email="alice@example.com")
    bob = await make_user(email="bob@example.com")
    for i in range(3):
        await _create(client, alice, title=f"A{i}")
    await _create(client, bob, title="B0")

    resp = await client.get(BASE, params={"page": 1, "limit": 2, "userId": alice.id})

    data = resp.json()
    assert data["my"]["totalCount"] == 3
    assert data["my"]["totalPages"] == 2
    assert len(data["my"]["votings"]) == 2
    assert data["all"]["totalCount"] == 4
    assert data["all"]["currentPage"] == 1
    assert data["all"]["votings"][0]["title"] == "B0"
    assert data["all"]["votings"][0]["votes_count"] == 0


async def test_list_without_user_has_empty_my(client, make_user):
    user = await make_user()
    await _create(client, user)

    data = (await client.get(BASE)).json()

    assert data["my"]["totalCount"] == 0
    assert data["all"]["totalCount"] == 1


async def test_owner_can_update_and_delete(client, make_user):
    user = await make_user()
    created = await _create(client, user)

    patched = await client.patch(
        f"{BASE}/{created['id']}", json={"title": "Renamed"}, headers=auth_headers(user)
    )
    assert patched.status_code == 200
    assert patched.json()["voting"]["title"] == "Renamed"
    assert patched.json()["voting"]["description"] == "Details"

    deleted = await client.delete(f"{BASE}/{created['id']}", headers=auth_headers(user))
    assert deleted.status_code == 200
    assert (await client.get(f"{BASE}/{created['id']}")).status_code == 404


async def test_other_user_cannot_modify(client, make_user):
    owner = await make_user(email="owner@example.com")
    intruder = await make_user(email="intruder@example.com")
    created = await _create(client, owner)

    patched = await client.patch(f"{BASE}/{created['id']}", json={"title": "Mine"}, headers=auth_headers(intruder))
    deleted = await client.delete(f"{BASE}/{created['id']}", headers=auth_headers(intruder))

    assert patched.status_code == 403
    assert deleted.status_code == 403


async def test_admin_can_delete_any(client, make_user):
    owner = await make_user(email="owner@example.com")
    admin = await make_user(email="admin@example.com", is_admin=True)
    created = await _create(client, owner)

    resp = await client.delete(f"{BASE}/{created['id']}", headers=auth_headers(admin))

    assert resp.status_code == 200
