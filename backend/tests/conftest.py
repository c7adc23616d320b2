"""
Pytest configuration and fixtures for Pedidos backend tests.

No database or identity provider is needed: routes run against a
MemoryRecordStore and a FakeIdentityProvider through dependency overrides.
"""

from __future__ import annotations

import os

# Set test environment variables before importing config
os.environ["TESTING"] = "true"
os.environ.setdefault("JWT_SECRET", "test-secret-key-for-testing-only")
os.environ.setdefault("COOKIE_SECURE", "false")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from backend import deps  # noqa: E402
from backend.auth import create_jwt  # noqa: E402
from backend.main import app  # noqa: E402
from backend.repos.record_store import MemoryRecordStore  # noqa: E402
from backend.services.identity import AuthSession, IdentityProvider, auth_error  # noqa: E402

OWNER_ID = "owner-ana"
OWNER_EMAIL = "ana@example.com"


class FakeIdentityProvider(IdentityProvider):
    """
    In-memory accounts: email -> (uid, password).

    Mirrors the error codes of the hosted provider for the cases the routes map.
    """

    def __init__(self) -> None:
        self.accounts: dict[str, tuple[str, str]] = {}
        self.reset_requests: list[str] = []
        self.oauth_calls: list[tuple[str, str, str]] = []
        self.offline = False

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._check_online()
        account = self.accounts.get(email)
        if account is None or account[1] != password:
            raise auth_error("auth/invalid-login-credentials")
        return AuthSession(uid=account[0], email=email)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        self._check_online()
        if email in self.accounts:
            raise auth_error("auth/email-already-in-use")
        if len(password) < 6:
            raise auth_error("auth/weak-password")
        uid = f"uid-{len(self.accounts) + 1}"
        self.accounts[email] = (uid, password)
        return AuthSession(uid=uid, email=email)

    async def send_password_reset(self, email: str) -> None:
        self._check_online()
        if email not in self.accounts:
            raise auth_error("auth/user-not-found")
        self.reset_requests.append(email)

    async def sign_in_with_oauth(self, provider_id: str, id_token: str, request_uri: str) -> AuthSession:
        self._check_online()
        self.oauth_calls.append((provider_id, id_token, request_uri))
        return AuthSession(uid=f"oauth-{id_token}", email="oauth@example.com")

    def _check_online(self) -> None:
        if self.offline:
            raise auth_error("auth/network-request-failed")


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def identity():
    return FakeIdentityProvider()


@pytest.fixture
def client(store, identity):
    """TestClient wired to the memory store and fake identity provider."""
    app.dependency_overrides[deps.get_store] = lambda: store
    app.dependency_overrides[deps.get_identity_provider] = lambda: identity
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def session_token():
    return create_jwt(OWNER_ID, OWNER_EMAIL)


@pytest.fixture
def authed_client(client, session_token):
    """TestClient carrying a valid session cookie for OWNER_ID."""
    client.cookies.set("session", session_token)
    return client
