"""Tests for the account API routes (api/users.py) via the httpx AsyncClient."""

import uuid

from agentmart.models.user import ROLE_ADMIN, user_owned_agents
from agentmart.tests.conftest import TestSession

_USERS = "/api/v1/users"


def _unique_email() -> str:
    return f"user-{uuid.uuid4().hex[:8]}@test.com"


async def _register(client, *, email: str | None = None, password: str = "testpass123") -> dict:
    resp = await client.post(
        _USERS, json={"name": "Test User", "email": email or _unique_email(), "password": password}
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_register_returns_user_and_token(client):
    body = await _register(client)
    assert body["token"]
    assert body["user"]["role"] == "USER"
    assert body["user"]["owned_agents"] == []
    assert "password_hash" not in body["user"]


async def test_register_duplicate_email(client):
    email = _unique_email()
    await _register(client, email=email)
    resp = await client.post(_USERS, json={"name": "Again", "email": email, "password": "testpass123"})
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Email already in use"


async def test_register_validation(client):
    resp = await client.post(_USERS, json={"name": "Short", "email": _unique_email(), "password": "x"})
    assert resp.status_code == 422


async def test_login(client):
    email = _unique_email()
    await _register(client, email=email, password="right-password")

    resp = await client.post(f"{_USERS}/login", json={"email": email, "password": "right-password"})
    assert resp.status_code == 200
    assert resp.json()["token"]

    resp = await client.post(f"{_USERS}/login", json={"email": email, "password": "wrong-password"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid credentials"


async def test_profile_requires_auth(client):
    resp = await client.get(f"{_USERS}/profile")
    assert resp.status_code == 401

    resp = await client.get(f"{_USERS}/profile", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_profile_and_owned_agents(client, make_user, make_agent, auth_header):
    creator, _ = await make_user()
    buyer, token = await make_user(name="Buyer")
    agent = await make_agent(creator.id, name="Owned")
    async with TestSession() as s:
        await s.execute(user_owned_agents.insert().values(user_id=buyer.id, agent_id=agent.id))
        await s.commit()

    resp = await client.get(f"{_USERS}/profile", headers=auth_header(token))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Buyer"
    assert [a["id"] for a in resp.json()["owned_agents"]] == [agent.id]

    resp = await client.get(f"{_USERS}/profile/agents", headers=auth_header(token))
    assert resp.status_code == 200
    assert [a["name"] for a in resp.json()] == ["Owned"]


async def test_admin_only_listing(client, make_user, auth_header):
    _, user_token = await make_user()
    _, admin_token = await make_user(role=ROLE_ADMIN)

    resp = await client.get(_USERS, headers=auth_header(user_token))
    assert resp.status_code == 403
    assert resp.json()["detail"] == "Access denied. Admin role required."

    resp = await client.get(_USERS, params={"limit": 1}, headers=auth_header(admin_token))
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 2
    assert body["pages"] == 2
    assert len(body["items"]) == 1


async def test_get_and_delete_user_admin(client, make_user, auth_header):
    target, _ = await make_user()
    _, admin_token = await make_user(role=ROLE_ADMIN)

    resp = await client.get(f"{_USERS}/{target.id}", headers=auth_header(admin_token))
    assert resp.status_code == 200

    resp = await client.delete(f"{_USERS}/{target.id}", headers=auth_header(admin_token))
    assert resp.status_code == 200

    resp = await client.get(f"{_USERS}/{target.id}", headers=auth_header(admin_token))
    assert resp.status_code == 404


async def test_patch_self_but_not_role(client, make_user, auth_header):
    user, token = await make_user()

    resp = await client.patch(f"{_USERS}/{user.id}", json={"name": "Renamed"}, headers=auth_header(token))
    assert resp.status_code == 200
    assert resp.json()["name"] == "Renamed"

    resp = await client.patch(f"{_USERS}/{user.id}", json={"role": "ADMIN"}, headers=auth_header(token))
    assert resp.status_code == 403


async def test_patch_other_user_forbidden(client, make_user, auth_header):
    _, token = await make_user()
    other, _ = await make_user()
    resp = await client.patch(f"{_USERS}/{other.id}", json={"name": "x"}, headers=auth_header(token))
    assert resp.status_code == 403


async def test_demoted_admin_loses_access_immediately(client, make_user, auth_header):
    demoted, demoted_token = await make_user(role=ROLE_ADMIN)
    _, admin_token = await make_user(role=ROLE_ADMIN)

    resp = await client.get(_USERS, headers=auth_header(demoted_token))
    assert resp.status_code == 200

    resp = await client.patch(f"{_USERS}/{demoted.id}", json={"role": "USER"}, headers=auth_header(admin_token))
    assert resp.status_code == 200

    # The token still says ADMIN; the stored role wins.
    resp = await client.get(_USERS, headers=auth_header(demoted_token))
    assert resp.status_code == 403


async def test_deleted_user_token_rejected(client, make_user, auth_header):
    target, target_token = await make_user()
    _, admin_token = await make_user(role=ROLE_ADMIN)

    resp = await client.delete(f"{_USERS}/{target.id}", headers=auth_header(admin_token))
    assert resp.status_code == 200

    resp = await client.get(f"{_USERS}/profile", headers=auth_header(target_token))
    assert resp.status_code == 401
