"""Shared fixtures: in-memory MongoDB, a recording Resend transport, and app clients."""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from api.app import create_app
from auth.database import UserDatabase
from auth.email_service import EmailService
from config.settings import Settings

TEST_SECRET = "test-secret-key-that-is-long-enough-for-hs256"
PASSWORD = "password123"


def make_settings(**overrides) -> Settings:
    values = {
        "jwt_secret": TEST_SECRET,
        "node_env": "test",
        "expose_codes": True,
        "bcrypt_rounds": 4,
        "code_resend_cooldown_seconds": 0,
        "resend_api_key": "re_test",
        "database_name": "chatdesk_test",
        "app_base_url": "https://app.example.com",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def run(coro):
    return asyncio.run(coro)


class Outbox:
    """Stands in for the Resend API and records what was sent."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.messages = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.messages.append(
            {
                "url": str(request.url),
                "authorization": request.headers.get("Authorization"),
                **json.loads(request.content),
            }
        )
        return httpx.Response(self.status_code, json={"id": "email_123"})

    def sent_to(self, address: str) -> list[dict]:
        return [m for m in self.messages if address in m["to"]]


class Accounts:
    """Drives signup/verify/signin through the HTTP API."""

    def __init__(self, client: TestClient):
        self.client = client
        self.user_db: UserDatabase = client.app.state.user_db

    def signup(self, email="alice@example.com", username="alice", password=PASSWORD):
        return self.client.post(
            "/api/auth/user/signup",
            json={
                "email": email,
                "username": username,
                "password": password,
                "confirmPassword": password,
            },
        )

    def create_verified_user(self, email="alice@example.com", username="alice", password=PASSWORD):
        response = self.signup(email, username, password)
        assert response.status_code == 200, response.json()
        verified = self.client.post(
            "/api/auth/user/verify", json={"email": email, "code": response.json()["code"]}
        )
        assert verified.status_code == 200, verified.json()
        return verified.json()["data"]

    def signin(self, email="alice@example.com", password=PASSWORD) -> str:
        response = self.client.post(
            "/api/auth/user/signin", json={"email": email, "password": password}
        )
        assert response.status_code == 200, response.json()
        return response.json()["data"]["token"]

    def create_admin(self, email="admin@example.com", username="admin", password=PASSWORD, active=True):
        run(self.user_db.seed_admin(username, email, password))
        if not active:
            run(self.user_db.admins.update_one({"email": email}, {"$set": {"is_active": False}}))


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def email_service(settings, outbox):
    return EmailService.from_settings(settings, transport=httpx.MockTransport(outbox.handler))


@pytest.fixture
async def user_db(settings):
    db = UserDatabase.from_settings(settings, client=AsyncMongoMockClient())
    await db.connect()
    await db.seed_plans()
    yield db
    await db.close()


@pytest.fixture
def make_client(outbox):
    """Build an app client with its own in-memory database; settings can be overridden."""
    clients = []

    def _make(**overrides) -> TestClient:
        app_settings = make_settings(**overrides)
        db = UserDatabase.from_settings(app_settings, client=AsyncMongoMockClient())
        service = EmailService.from_settings(
            app_settings, transport=httpx.MockTransport(outbox.handler)
        )
        test_client = TestClient(create_app(app_settings, user_db=db, email_service=service))
        test_client.__enter__()
        clients.append(test_client)
        run(db.seed_plans())
        return test_client

    yield _make

    for test_client in clients:
        test_client.__exit__(None, None, None)


@pytest.fixture
def client(make_client):
    return make_client()


@pytest.fixture
def accounts(client):
    return Accounts(client)
