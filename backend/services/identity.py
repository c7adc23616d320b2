"""
Identity provider boundary.

Sign-in, sign-up, password reset and OAuth sign-in are delegated to a hosted
identity REST API. The provider only proves who the vendor is; the session
itself is our own JWT cookie (backend.auth), so sign-out never calls out.

Provider errors are normalized to `auth/*` codes and raised as AuthError
with the localized message from map_auth_error().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

import httpx

from backend.config import settings
from backend.services.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthSession:
    """A verified identity. `uid` is the owner id for every record."""

    uid: str
    email: str


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------

AUTH_MESSAGES: dict[str, str] = {
    "auth/email-already-in-use": 'Ese email ya está registrado. Inicia sesión o usa "¿Olvidaste tu contraseña?"',
    "auth/invalid-email": "El email no es válido.",
    "auth/weak-password": "La contraseña debe tener al menos 6 caracteres.",
    "auth/network-request-failed": "Error de red. Verifica tu conexión a internet.",
    "auth/too-many-requests": "Demasiados intentos. Intenta de nuevo más tarde.",
    "auth/operation-not-allowed": "El método de autenticación no está habilitado.",
    "auth/invalid-credential": "Credenciales inválidas. Revisa tu email y contraseña.",
    "auth/invalid-login-credentials": "Credenciales inválidas. Revisa tu email y contraseña.",
    "auth/user-not-found": "No existe una cuenta con ese email.",
    "auth/wrong-password": "Contraseña incorrecta.",
}

# REST API error message -> auth/* code
PROVIDER_CODES: dict[str, str] = {
    "EMAIL_EXISTS": "auth/email-already-in-use",
    "INVALID_EMAIL": "auth/invalid-email",
    "MISSING_EMAIL": "auth/invalid-email",
    "WEAK_PASSWORD": "auth/weak-password",
    "EMAIL_NOT_FOUND": "auth/user-not-found",
    "USER_NOT_FOUND": "auth/user-not-found",
    "INVALID_PASSWORD": "auth/wrong-password",
    "INVALID_LOGIN_CREDENTIALS": "auth/invalid-login-credentials",
    "INVALID_IDP_RESPONSE": "auth/invalid-credential",
    "TOO_MANY_ATTEMPTS_TRY_LATER": "auth/too-many-requests",
    "OPERATION_NOT_ALLOWED": "auth/operation-not-allowed",
    "PASSWORD_LOGIN_DISABLED": "auth/operation-not-allowed",
}

NETWORK_ERROR_CODE = "auth/network-request-failed"


def map_auth_error(code: str | None) -> str:
    """Localized message for an auth/* code. Unknown codes are echoed back."""
    if code in AUTH_MESSAGES:
        return AUTH_MESSAGES[code]
    return "Ocurrió un error. " + (f"({code})" if code else "Intenta nuevamente.")


def normalize_provider_error(message: str | None) -> str:
    """
    'WEAK_PASSWORD : Password should be at least 6 characters' -> 'auth/weak-password'.
    Unknown messages become auth/<lower-kebab> so they still show up in the fallback.
    """
    head = (message or "").split(":", 1)[0].strip()
    if not head:
        return "auth/internal-error"
    return PROVIDER_CODES.get(head, "auth/" + head.lower().replace("_", "-"))


def auth_error(code: str) -> AuthError:
    return AuthError(code, map_auth_error(code))


def identity_config_looks_placeholder(api_key: str | None = None, project_id: str | None = None) -> bool:
    """True when the identity provider is obviously not configured yet."""
    api_key = settings.IDENTITY_API_KEY if api_key is None else api_key
    project_id = settings.IDENTITY_PROJECT_ID if project_id is None else project_id
    return not api_key or "XXXXXXXXXXXXXXXX" in api_key or "your-project-id" in (project_id or "")


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class IdentityProvider:
    """Abstract identity provider. Every method raises AuthError on failure."""

    async def sign_in(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    async def sign_up(self, email: str, password: str) -> AuthSession:
        raise NotImplementedError

    async def send_password_reset(self, email: str) -> None:
        raise NotImplementedError

    async def sign_in_with_oauth(self, provider_id: str, id_token: str, request_uri: str) -> AuthSession:
        raise NotImplementedError


class IdentityToolkitProvider(IdentityProvider):
    """httpx client for the hosted identity REST API (accounts:* endpoints)."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.IDENTITY_API_KEY
        self.base_url = (base_url or settings.IDENTITY_BASE_URL).rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=settings.IDENTITY_TIMEOUT_SECONDS)

    async def aclose(self) -> None:
        await self.client.aclose()

    async def sign_in(self, email: str, password: str) -> AuthSession:
        data = await self._post(
            "accounts:signInWithPassword",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return _session(data)

    async def sign_up(self, email: str, password: str) -> AuthSession:
        data = await self._post(
            "accounts:signUp",
            {"email": email, "password": password, "returnSecureToken": True},
        )
        return _session(data)

    async def send_password_reset(self, email: str) -> None:
        await self._post("accounts:sendOobCode", {"requestType": "PASSWORD_RESET", "email": email})

    async def sign_in_with_oauth(self, provider_id: str, id_token: str, request_uri: str) -> AuthSession:
        data = await self._post(
            "accounts:signInWithIdp",
            {
                "postBody": urlencode({"id_token": id_token, "providerId": provider_id}),
                "requestUri": request_uri,
                "returnSecureToken": True,
                "returnIdpCredential": True,
            },
        )
        return _session(data)

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/{endpoint}"
        try:
            res = await self.client.post(url, params={"key": self.api_key}, json=body)
        except httpx.TransportError as e:
            logger.warning("identity: %s request failed: %s", endpoint, e)
            raise auth_error(NETWORK_ERROR_CODE) from e

        try:
            data = res.json()
        except ValueError:
            data = {}

        if res.status_code >= 400:
            message = (data.get("error") or {}).get("message") if isinstance(data, dict) else None
            code = normalize_provider_error(message)
            logger.info("identity: %s rejected (%s): %s", endpoint, res.status_code, code)
            raise auth_error(code)
        return data


def _session(data: dict[str, Any]) -> AuthSession:
    uid = data.get("localId")
    if not uid:
        raise auth_error("auth/internal-error")
    return AuthSession(uid=uid, email=data.get("email") or "")
