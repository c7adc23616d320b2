"""User model for the signed-in vendor."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr


class User(BaseModel):
    """A vendor, as carried in the session cookie. `uid` owns every record."""

    uid: str
    email: EmailStr | None = None
