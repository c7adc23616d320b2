"""
Tests for authentication (identity provider sign-in and JWT sessions).
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt
import pytest
from fastapi import HTTPException

from backend import config
from backend.auth import create_jwt, decode_jwt, user_from_session_cookie


class TestJWT:
    """Test JWT creation and validation."""

    def test_round_trip_claims(self):
        token = create_jwt("uid-1", "ana@example.com")

        payload = decode_jwt(token)

        assert payload["sub"] == "uid-1"
        assert payload["email"] == "ana@example.com"
        assert "exp" in payload
        assert "iat" in payload

    def test_decode_expired_jwt(self):
        payload = {
            "sub": "uid-1",
            "exp": datetime.now(UTC) - timedelta(hours=1),
            "iat": datetime.now(UTC) - timedelta(hours=2),
        }
        token = jwt.encode(payload, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)

        with pytest.raises(HTTPException) as exc_info:
            decode_jwt(token)

        assert exc_info.value.status_code == 401
        assert "expiró" in exc_info.value.detail

    def test_decode_invalid_jwt(self):
        with pytest.raises(HTTPException) as exc_info:
            decode_jwt("invalid.token.here")
        assert exc_info.value.status_code == 401

    def test_wrong_secret_rejected(self):
        token = jwt.encode({"sub": "uid-1"}, "another-secret", algorithm="HS256")
        with pytest.raises(HTTPException):
            decode_jwt(token)

    def test_missing_cookie(self):
        with pytest.raises(HTTPException) as exc_info:
            user_from_session_cookie(None)
        assert exc_info.value.status_code == 401

    def test_token_without_subject(self):
        token = jwt.encode(
            {"exp": datetime.now(UTC) + timedelta(hours=1)},
            config.settings.JWT_SECRET,
            algorithm=config.settings.JWT_ALGORITHM,
        )
        with pytest.raises(HTTPException):
            user_from_session_cookie(token)


# ============================================================================
# Routes
# ============================================================================


class TestSignUpAndSignIn:
    def test_sign_up_sets_session_cookie(self, client):
        res = client.post("/auth/sign-up", json={"email": "Ana@Example.com", "password": "secret1"})

        assert res.status_code == 201
        assert res.json()["user"]["email"] == "ana@example.com"
        assert "session" in res.cookies

    def test_sign_in_then_me(self, client, identity):
        identity.accounts["ana@example.com"] = ("uid-ana", "secret1")

        res = client.post("/auth/sign-in", json={"email": "ana@example.com", "password": "secret1"})
        assert res.status_code == 200
        client.cookies.set("session", res.cookies["session"])

        me = client.get("/auth/me")
        assert me.status_code == 200
        assert me.json() == {"uid": "uid-ana", "email": "ana@example.com"}

    def test_wrong_password_is_401_with_localized_message(self, client, identity):
        identity.accounts["ana@example.com"] = ("uid-ana", "secret1")

        res = client.post("/auth/sign-in", json={"email": "ana@example.com", "password": "nope"})

        assert res.status_code == 401
        detail = res.json()["detail"]
        assert detail["code"] == "auth/invalid-login-credentials"
        assert detail["message"] == "Credenciales inválidas. Revisa tu email y contraseña."

    def test_duplicate_sign_up_is_409(self, client, identity):
        identity.accounts["ana@example.com"] = ("uid-ana", "secret1")

        res = client.post("/auth/sign-up", json={"email": "ana@example.com", "password": "secret1"})

        assert res.status_code == 409
        assert res.json()["detail"]["code"] == "auth/email-already-in-use"

    def test_weak_password_is_400(self, client):
        res = client.post("/auth/sign-up", json={"email": "ana@example.com", "password": "123"})
        assert res.status_code == 400
        assert res.json()["detail"]["message"] == "La contraseña debe tener al menos 6 caracteres."

    def test_network_failure_is_503(self, client, identity):
        identity.offline = True
        res = client.post("/auth/sign-in", json={"email": "ana@example.com", "password": "secret1"})
        assert res.status_code == 503

    def test_invalid_email_is_422(self, client):
        res = client.post("/auth/sign-in", json={"email": "not-an-email", "password": "secret1"})
        assert res.status_code == 422


class TestOAuthAndReset:
    def test_oauth_sign_in(self, client, identity):
        res = client.post("/auth/oauth", json={"id_token": "tok-1"})

        assert res.status_code == 200
        assert res.json()["user"]["uid"] == "oauth-tok-1"
        provider_id, id_token, request_uri = identity.oauth_calls[0]
        assert (provider_id, id_token) == ("google.com", "tok-1")
        assert request_uri == config.settings.OAUTH_REQUEST_URI

    def test_reset_password(self, client, identity):
        identity.accounts["ana@example.com"] = ("uid-ana", "secret1")

        res = client.post("/auth/reset-password", json={"email": "ana@example.com"})

        assert res.status_code == 200
        assert identity.reset_requests == ["ana@example.com"]

    def test_reset_password_unknown_email(self, client):
        res = client.post("/auth/reset-password", json={"email": "nadie@example.com"})
        assert res.status_code == 401
        assert res.json()["detail"]["message"] == "No existe una cuenta con ese email."


class TestSession:
    def test_me_requires_session(self, client):
        assert client.get("/auth/me").status_code == 401

    def test_logout_clears_cookie(self, authed_client):
        res = authed_client.post("/auth/logout")
        assert res.status_code == 200
        assert res.json()["message"] == "Sesión cerrada."
        assert 'session=""' in res.headers["set-cookie"] or "session=;" in res.headers["set-cookie"]
