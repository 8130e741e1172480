"""
Pytest configuration and fixtures for testing
"""
import os

# Test settings must be in place before lander.config caches them
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("YOOKASSA_WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import json
from datetime import datetime, timedelta, UTC

import httpx
import pytest

from lander.app import create_app
from lander.db.session import Database
from lander.models.user import User
from lander.services.auth_service import create_access_token, hash_password
from lander.services.webhook_security import compute_signature

WEBHOOK_SECRET = "test-webhook-secret"


class FakeGateway:
    """In-memory stand-in for YooKassaClient; records every call."""

    def __init__(self):
        self.calls: list[tuple] = []
        self.payment_counter = 0
        self.create_response: dict | None = None
        self.payments: dict[str, dict] = {}
        self.history: list[dict] = []
        self.fail_with: Exception | None = None
        self.resume_response: dict | None = None
        self.on_resume = None

    def _check(self):
        if self.fail_with:
            raise self.fail_with

    async def create_payment(self, amount, return_url, description, metadata):
        self.calls.append(("create_payment", amount, return_url, metadata))
        self._check()
        if self.create_response is not None:
            return self.create_response
        self.payment_counter += 1
        return {
            "id": f"pay_{self.payment_counter}",
            "status": "pending",
            "confirmation": {"type": "redirect", "confirmation_url": f"https://yoomoney.test/{self.payment_counter}"},
            "payment_method": {"id": f"pm_{self.payment_counter}", "saved": False},
        }

    async def get_payment(self, payment_id):
        self.calls.append(("get_payment", payment_id))
        self._check()
        return self.payments.get(payment_id, {"id": payment_id, "status": "pending"})

    async def list_payments(self, limit=50):
        self.calls.append(("list_payments", limit))
        self._check()
        return self.history

    async def delete_payment_method(self, payment_method_id):
        self.calls.append(("delete_payment_method", payment_method_id))
        self._check()
        return {}

    async def resume_subscription(self, payment_method_id, amount, metadata):
        self.calls.append(("resume_subscription", payment_method_id, amount, metadata))
        self._check()
        if self.on_resume:
            await self.on_resume()
        return self.resume_response or {"id": "pay_resume", "status": "succeeded"}

    async def aclose(self):
        pass


@pytest.fixture
async def database(tmp_path):
    """
    Fixture that provides an isolated, file-backed SQLite database for each test.
    """
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def client(database, gateway):
    """API client wired to the test database and the fake gateway (no lifespan)."""
    app = create_app()
    app.state.database = database
    app.state.gateway = gateway
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def make_user(database):
    """Factory creating a user row directly; returns the freshly loaded User."""

    async def _make_user(**overrides) -> User:
        data = {
            "email": f"user{datetime.now(UTC).timestamp()}@example.com",
            "password_hash": await hash_password("secret123"),
            "email_verified": True,
            "subscription_status": "inactive",
        }
        data.update(overrides)
        async with database.session() as session:
            user = User(**data)
            session.add(user)
            await session.commit()
            await session.refresh(user)
            return user

    return _make_user


async def reload_user(database: Database, user_id: int) -> User:
    async with database.session() as session:
        return await session.get(User, user_id)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def signed_webhook(payload: dict) -> tuple[bytes, dict]:
    body = json.dumps(payload).encode()
    return body, {"X-Webhook-Signature": compute_signature(body, WEBHOOK_SECRET), "Content-Type": "application/json"}


def yesterday() -> datetime:
    return datetime.now(UTC) - timedelta(days=1)
