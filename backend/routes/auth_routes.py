"""Authentication routes: email/password, OAuth, password reset, session."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Response, status

from backend import config
from backend.auth import clear_session_cookie, create_jwt, get_current_user, set_session_cookie
from backend.deps import get_identity_provider
from backend.models.auth import (
    AuthResponse,
    LogoutResponse,
    MessageResponse,
    OAuthRequest,
    ResetPasswordRequest,
    SignInRequest,
)
from backend.models.user import User
from backend.services.errors import AuthError
from backend.services.identity import AuthSession, IdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

RESET_SENT_MESSAGE = "Te enviamos un email para restablecer tu contraseña."

_AUTH_STATUS: dict[str, int] = {
    "auth/invalid-credential": status.HTTP_401_UNAUTHORIZED,
    "auth/invalid-login-credentials": status.HTTP_401_UNAUTHORIZED,
    "auth/wrong-password": status.HTTP_401_UNAUTHORIZED,
    "auth/user-not-found": status.HTTP_401_UNAUTHORIZED,
    "auth/email-already-in-use": status.HTTP_409_CONFLICT,
    "auth/too-many-requests": status.HTTP_429_TOO_MANY_REQUESTS,
    "auth/network-request-failed": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _auth_http_error(error: AuthError) -> HTTPException:
    return HTTPException(
        status_code=_AUTH_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": error.code, "message": error.user_message},
    )


def _start_session(response: Response, session: AuthSession) -> AuthResponse:
    set_session_cookie(response, create_jwt(session.uid, session.email))
    logger.info("auth: session started uid=%s", session.uid)
    return AuthResponse(user=User(uid=session.uid, email=session.email or None))


@router.post("/sign-in", status_code=200)
async def sign_in(
    req: SignInRequest,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthResponse:
    """Email + password sign-in. Sets the session cookie."""
    try:
        session = await provider.sign_in(req.email.lower(), req.password)
    except AuthError as e:
        raise _auth_http_error(e) from e
    return _start_session(response, session)


@router.post("/sign-up", status_code=201)
async def sign_up(
    req: SignInRequest,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthResponse:
    """Create an account and sign in."""
    try:
        session = await provider.sign_up(req.email.lower(), req.password)
    except AuthError as e:
        raise _auth_http_error(e) from e
    return _start_session(response, session)


@router.post("/oauth", status_code=200)
async def oauth_sign_in(
    req: OAuthRequest,
    response: Response,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> AuthResponse:
    """Exchange an OAuth provider ID token for a session."""
    try:
        session = await provider.sign_in_with_oauth(req.provider_id, req.id_token, config.settings.OAUTH_REQUEST_URI)
    except AuthError as e:
        raise _auth_http_error(e) from e
    return _start_session(response, session)


@router.post("/reset-password", status_code=200)
async def reset_password(
    req: ResetPasswordRequest,
    provider: IdentityProvider = Depends(get_identity_provider),
) -> MessageResponse:
    """Send a password-reset email."""
    try:
        await provider.send_password_reset(req.email.lower())
    except AuthError as e:
        raise _auth_http_error(e) from e
    return MessageResponse(message=RESET_SENT_MESSAGE)


@router.get("/me", status_code=200)
async def get_current_user_endpoint(user: User = Depends(get_current_user)) -> User:
    """The signed-in vendor. Requires a valid session cookie."""
    return user


@router.post("/logout", status_code=200)
async def logout_endpoint(response: Response) -> LogoutResponse:
    """Clear the session cookie. Open order streams close with their WebSocket."""
    clear_session_cookie(response)
    return LogoutResponse()
