"""Tests for the review API routes (api/reviews.py)."""

from agentmart.models.user import ROLE_ADMIN

_REVIEWS = "/api/v1/reviews"


async def test_review_crud(client, make_user, make_agent, auth_header):
    creator, _ = await make_user()
    author, author_token = await make_user()
    _, other_token = await make_user()
    agent = await make_agent(creator.id)

    resp = await client.post(
        _REVIEWS, json={"agent_id": agent.id, "rating": 4, "comment": "solid"}, headers=auth_header(author_token)
    )
    assert resp.status_code == 201, resp.text
    review = resp.json()
    assert review["user_id"] == author.id

    resp = await client.get(_REVIEWS, params={"agent_id": agent.id})
    assert resp.json()["total"] == 1

    resp = await client.patch(
        f"{_REVIEWS}/{review['id']}", json={"rating": 1}, headers=auth_header(other_token)
    )
    assert resp.status_code == 403

    resp = await client.patch(
        f"{_REVIEWS}/{review['id']}", json={"comment": "great"}, headers=auth_header(author_token)
    )
    assert resp.status_code == 200
    assert resp.json()["comment"] == "great"
    assert resp.json()["rating"] == 4

    resp = await client.delete(f"{_REVIEWS}/{review['id']}", headers=auth_header(author_token))
    assert resp.status_code == 200
    resp = await client.get(f"{_REVIEWS}/{review['id']}")
    assert resp.status_code == 404


async def test_review_validation(client, make_user, make_agent, auth_header):
    creator, token = await make_user()
    agent = await make_agent(creator.id)

    resp = await client.post(_REVIEWS, json={"agent_id": agent.id, "rating": 6}, headers=auth_header(token))
    assert resp.status_code == 422

    resp = await client.post(_REVIEWS, json={"agent_id": "ghost", "rating": 3}, headers=auth_header(token))
    assert resp.status_code == 404

    resp = await client.post(_REVIEWS, json={"agent_id": agent.id, "rating": 3})
    assert resp.status_code == 401


async def test_admin_deletes_any_review(client, make_user, make_agent, auth_header):
    creator, _ = await make_user()
    _, author_token = await make_user()
    _, admin_token = await make_user(role=ROLE_ADMIN)
    agent = await make_agent(creator.id)

    resp = await client.post(_REVIEWS, json={"agent_id": agent.id, "rating": 2}, headers=auth_header(author_token))
    review_id = resp.json()["id"]

    resp = await client.delete(f"{_REVIEWS}/{review_id}", headers=auth_header(admin_token))
    assert resp.status_code == 200
