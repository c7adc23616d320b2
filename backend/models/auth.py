"""Authentication request/response models."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from backend.models.user import User


class SignInRequest(BaseModel):
    """Email + password, for both sign-in and sign-up."""

    model_config = ConfigDict(extra="forbid")

    email: EmailStr
    password: str = Field(..., min_length=1, max_length=4096)


class OAuthRequest(BaseModel):
    """ID token obtained from an OAuth provider popup (e.g. google.com)."""

    model_config = ConfigDict(extra="forbid")

    provider_id: str = Field("google.com", min_length=1, max_length=100)
    id_token: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: EmailStr


class AuthResponse(BaseModel):
    """Returned after a successful sign-in."""

    user: User


class MessageResponse(BaseModel):
    message: str


class LogoutResponse(BaseModel):
    """Response after logout."""

    message: str = "Sesión cerrada."
