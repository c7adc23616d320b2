"""
Session authentication for Pedidos.

The identity provider verifies credentials once; after that the vendor is
identified by our own signed JWT in an HTTP-only cookie.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import Cookie, HTTPException, Response, status

from backend import config
from backend.models.user import User

SESSION_COOKIE = "session"


def create_jwt(uid: str, email: str) -> str:
    """
    Create a JWT for a vendor session.

    Args:
        uid: identity-provider user id (the owner id of every record)
        email: account email, echoed back by /auth/me

    Returns:
        Signed JWT string
    """
    now = datetime.now(UTC)
    payload = {
        "sub": uid,
        "email": email,
        "exp": now + timedelta(hours=config.settings.JWT_EXPIRY_HOURS),
        "iat": now,
    }
    return jwt.encode(payload, config.settings.JWT_SECRET, algorithm=config.settings.JWT_ALGORITHM)


def decode_jwt(token: str) -> dict:
    """
    Decode and verify a JWT.

    Raises:
        HTTPException: If token is invalid or expired
    """
    try:
        return jwt.decode(token, config.settings.JWT_SECRET, algorithms=[config.settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="La sesión expiró. Inicia sesión nuevamente.",
        ) from e
    except jwt.InvalidTokenError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión inválida. Inicia sesión nuevamente.",
        ) from e


def user_from_session_cookie(session: str | None) -> User:
    """Resolve the session cookie to a User. Used by HTTP routes and the WebSocket."""
    if not session:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No has iniciado sesión.",
        )
    payload = decode_jwt(session)
    uid = payload.get("sub")
    if not uid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Sesión inválida. Inicia sesión nuevamente.",
        )
    return User(uid=uid, email=payload.get("email") or None)


async def get_current_user(session: Annotated[str | None, Cookie()] = None) -> User:
    """FastAPI dependency: the signed-in vendor, or 401."""
    return user_from_session_cookie(session)


def set_session_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value=token,
        httponly=True,
        secure=config.settings.COOKIE_SECURE,
        samesite="lax",
        max_age=config.settings.JWT_EXPIRY_HOURS * 3600,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.set_cookie(
        key=SESSION_COOKIE,
        value="",
        httponly=True,
        secure=config.settings.COOKIE_SECURE,
        samesite="lax",
        max_age=0,
        path="/",
    )
