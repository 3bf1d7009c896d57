"""Shared test fixtures for the AgentMart test suite.

Uses an in-memory SQLite database with StaticPool so all sessions share the
same connection (committed data is visible across sessions). Stripe is never
called: routes get a ``FakeCheckoutService`` through dependency overrides.
"""

import json
import uuid
from decimal import Decimal

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from agentmart.core.exceptions import CheckoutSessionError
from agentmart.database import Base, get_db
from agentmart.main import app
from agentmart.models import *  # noqa: ensure all models are loaded for create_all
from agentmart.services.stripe_service import StripeCheckoutService, get_checkout_service


# ---------------------------------------------------------------------------
# In-memory SQLite test engine (shared via StaticPool)
# ---------------------------------------------------------------------------

test_engine = create_async_engine(
    "sqlite+aiosqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
    echo=False,
)
TestSession = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


# ---------------------------------------------------------------------------
# Fake Stripe checkout
# ---------------------------------------------------------------------------

class FakeCheckoutService(StripeCheckoutService):
    """In-memory stand-in for Stripe Checkout.

    Sessions are plain dicts shaped like ``session_to_dict`` output. Webhook
    payloads are accepted when the signature header equals ``VALID_SIGNATURE``.
    """

    VALID_SIGNATURE = "t=1,v1=valid"

    def __init__(self):
        super().__init__(
            secret_key="sk_test_fake",
            frontend_url="http://frontend.test",
            backend_url="http://backend.test",
            webhook_secret="whsec_fake",
        )
        self.sessions: dict[str, dict] = {}
        self.retrieve_calls: list[str] = []

    def add_session(
        self,
        session_id: str,
        user_id: str | None,
        agent_ids: list[str] | None,
        *,
        amount_total: int = 10000,
        payment_status: str = "paid",
        payment_intent: str | None = None,
        metadata: dict | None = None,
    ) -> dict:
        if metadata is None:
            metadata = {}
            if user_id is not None:
                metadata["user_id"] = user_id
            if agent_ids is not None:
                metadata["agent_ids"] = json.dumps(agent_ids)
        session = {
            "id": session_id,
            "url": f"https://checkout.stripe.test/{session_id}",
            "status": "complete" if payment_status == "paid" else "open",
            "payment_status": payment_status,
            "payment_intent": payment_intent or f"pi_{session_id}",
            "amount_total": amount_total,
            "currency": "usd",
            "metadata": metadata,
            "customer_details": None,
        }
        self.sessions[session_id] = session
        return session

    async def create_checkout_session(self, amount, agent_ids, user_id) -> dict:
        if Decimal(str(amount)) <= 0:
            raise ValueError("Amount must be a positive number")
        session_id = f"cs_test_{uuid.uuid4().hex[:12]}"
        return self.add_session(
            session_id,
            user_id,
            list(agent_ids),
            amount_total=int(Decimal(str(amount)) * 100),
            payment_status="unpaid",
        )

    async def retrieve_session(self, session_id: str) -> dict:
        self.retrieve_calls.append(session_id)
        if session_id not in self.sessions:
            raise CheckoutSessionError("Could not retrieve checkout session")
        return dict(self.sessions[session_id])

    def construct_webhook_event(self, payload: bytes, sig_header: str) -> dict | None:
        if sig_header != self.VALID_SIGNATURE:
            return None
        return json.loads(payload)


# ---------------------------------------------------------------------------
# Auto-use: create/drop tables for every test
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
async def db():
    """Yield a fresh AsyncSession for direct service-layer tests."""
    async with TestSession() as session:
        yield session


@pytest.fixture
def checkout() -> FakeCheckoutService:
    return FakeCheckoutService()


@pytest.fixture
async def client(checkout: FakeCheckoutService):
    """httpx AsyncClient wired to the FastAPI app with test DB and fake Stripe."""
    import httpx

    async def _override_get_db():
        async with TestSession() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_checkout_service] = lambda: checkout

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

def _new_id() -> str:
    return str(uuid.uuid4())


@pytest.fixture
def auth_header():
    """Return a callable that builds an Authorization header from a JWT."""
    def _build(token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}
    return _build


@pytest.fixture
def make_user(db: AsyncSession):
    """Factory fixture: create a User and return (user, jwt_token)."""
    from agentmart.core.auth import create_user_token, hash_password
    from agentmart.models.user import ROLE_USER, User

    async def _make(
        name: str = None,
        email: str = None,
        role: str = ROLE_USER,
        password: str = "testpass123",
        token_balance: int = 0,
    ):
        suffix = _new_id()[:8]
        user = User(
            id=_new_id(),
            name=name or f"user-{suffix}",
            email=email or f"user-{suffix}@test.com",
            password_hash=hash_password(password),
            role=role,
            token_balance=token_balance,
        )
        db.add(user)
        await db.commit()
        await db.refresh(user)
        token = create_user_token(user.id, user.email, user.role)
        return user, token

    return _make


@pytest.fixture
def make_agent(db: AsyncSession):
    """Factory fixture: create a catalog Agent owned by ``creator_id``."""
    from agentmart.models.agent import Agent

    async def _make(
        creator_id: str,
        name: str = None,
        price: float = 10.0,
        category: str = "NLP",
        description: str = "Test agent",
        subscription_price: float | None = None,
    ):
        agent = Agent(
            id=_new_id(),
            name=name or f"agent-{_new_id()[:8]}",
            description=description,
            category=category,
            price=Decimal(str(price)),
            subscription_price=Decimal(str(subscription_price)) if subscription_price is not None else None,
            created_by=creator_id,
        )
        db.add(agent)
        await db.commit()
        await db.refresh(agent)
        return agent

    return _make


@pytest.fixture
def make_order(db: AsyncSession):
    """Factory fixture: create an Order for ``user_id``."""
    from agentmart.models.order import ORDER_ONE_TIME, ORDER_PENDING, Order

    async def _make(
        user_id: str,
        agent_id: str | None = None,
        price: float = 10.0,
        payment_status: str = ORDER_PENDING,
        order_type: str = ORDER_ONE_TIME,
        transaction_id: str = None,
    ):
        order = Order(
            id=_new_id(),
            user_id=user_id,
            agent_id=agent_id,
            price=Decimal(str(price)),
            payment_status=payment_status,
            order_type=order_type,
            transaction_id=transaction_id or f"tx_{_new_id()[:12]}",
        )
        db.add(order)
        await db.commit()
        await db.refresh(order)
        return order

    return _make


@pytest.fixture
def make_payment(db: AsyncSession):
    """Factory fixture: create a Payment for an order."""
    from agentmart.models.payment import GATEWAY_STRIPE, PAYMENT_PENDING, Payment

    async def _make(
        order_id: str,
        user_id: str,
        amount: float = 10.0,
        payment_status: str = PAYMENT_PENDING,
        payment_gateway: str = GATEWAY_STRIPE,
        transaction_id: str = None,
    ):
        payment = Payment(
            id=_new_id(),
            order_id=order_id,
            user_id=user_id,
            amount=Decimal(str(amount)),
            payment_status=payment_status,
            payment_gateway=payment_gateway,
            transaction_id=transaction_id or f"pay_{_new_id()[:12]}",
        )
        db.add(payment)
        await db.commit()
        await db.refresh(payment)
        return payment

    return _make
