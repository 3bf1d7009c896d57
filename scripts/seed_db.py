"""Seed a running AgentMart API with demo users, agents and reviews."""
import argparse
import asyncio

import httpx

DEFAULT_BASE_URL = "http://localhost:3000/api/v1"

USERS = [
    {"name": "Ada Builder", "email": "ada@example.com", "password": "demo-password-1"},
    {"name": "Grace Buyer", "email": "grace@example.com", "password": "demo-password-2"},
]

AGENTS = [
    {
        "name": "Summarizer Pro",
        "description": "Condenses long documents into short briefs",
        "category": "NLP",
        "price": 19.99,
    },
    {
        "name": "Invoice Reader",
        "description": "Extracts line items from scanned invoices",
        "category": "COMPUTER_VISION",
        "price": 49.0,
        "subscription_price": 9.99,
    },
    {
        "name": "Churn Forecaster",
        "description": "Weekly churn predictions from product analytics",
        "category": "ANALYTICS",
        "price": 79.5,
    },
    {
        "name": "Support Bot",
        "description": "Answers tier-1 support tickets",
        "category": "BOTS",
        "price": 25.0,
    },
    {
        "name": "Release Helper",
        "description": "Drafts release notes from merged pull requests",
        "category": "WORKFLOW_HELPERS",
        "price": 12.0,
    },
]


async def _token_for(client: httpx.AsyncClient, base_url: str, user: dict) -> str:
    resp = await client.post(f"{base_url}/users", json=user)
    if resp.status_code == 201:
        print(f"  Registered: {user['email']}")
        return resp.json()["token"]
    resp = await client.post(
        f"{base_url}/users/login", json={"email": user["email"], "password": user["password"]}
    )
    resp.raise_for_status()
    print(f"  Logged in: {user['email']}")
    return resp.json()["token"]


async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(timeout=30) as client:
        print("=== Seeding AgentMart ===\n")

        creator_token = await _token_for(client, base_url, USERS[0])
        reviewer_token = await _token_for(client, base_url, USERS[1])
        print()

        agent_ids = []
        for agent in AGENTS:
            resp = await client.post(
                f"{base_url}/agents",
                json=agent,
                headers={"Authorization": f"Bearer {creator_token}"},
            )
            if resp.status_code == 201:
                agent_ids.append(resp.json()["id"])
                print(f"  Agent: {agent['name']} ({agent['category']})")
            else:
                print(f"  Failed to create {agent['name']}: {resp.text}")
        print()

        for rating, agent_id in zip((5, 4, 4, 3, 5), agent_ids):
            resp = await client.post(
                f"{base_url}/reviews",
                json={"agent_id": agent_id, "rating": rating, "comment": "Seeded review"},
                headers={"Authorization": f"Bearer {reviewer_token}"},
            )
            if resp.status_code != 201:
                print(f"  Failed to review {agent_id}: {resp.text}")
        print(f"  Reviewed {len(agent_ids)} agents")

        print("\n=== Seeding complete ===")


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--base-url", default=DEFAULT_BASE_URL)
    args = parser.parse_args()
    asyncio.run(seed(args.base_url))


if __name__ == "__main__":
    main()
