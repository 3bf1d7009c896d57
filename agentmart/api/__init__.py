"""API router registry used by the app factory.

Route modules are imported and ordered here so `agentmart.main` only
handles startup wiring.
"""

from __future__ import annotations

from fastapi import APIRouter

from . import (
    agents,
    checkout,
    health,
    orders,
    payments,
    reviews,
    subscriptions,
    tokens,
    users,
    webhooks,
)

API_PREFIX = "/api/v1"

API_ROUTERS: tuple[APIRouter, ...] = (
    health.router,
    users.router,
    agents.router,
    orders.router,
    payments.router,
    reviews.router,
    subscriptions.router,
    tokens.router,
    checkout.router,
    webhooks.router,
)

__all__ = ["API_PREFIX", "API_ROUTERS"]
