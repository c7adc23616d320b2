"""
Pedidos configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode secrets.
"""

from __future__ import annotations

import os


class Settings:
    """Application settings from environment variables."""

    # Database (record store)
    DATABASE_URL: str = os.environ.get("DATABASE_URL", "")
    # Use the in-memory record store instead of Postgres (local dev, tests)
    USE_MEMORY_STORE: bool = os.environ.get("USE_MEMORY_STORE", "").lower() == "true"

    # Session cookies
    JWT_SECRET: str = os.environ.get("JWT_SECRET", "")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRY_HOURS: int = int(os.environ.get("JWT_EXPIRY_HOURS", "24"))
    COOKIE_SECURE: bool = os.environ.get("COOKIE_SECURE", "true").lower() != "false"

    # Identity provider (hosted identity REST API)
    IDENTITY_API_KEY: str = os.environ.get("IDENTITY_API_KEY", "")
    IDENTITY_PROJECT_ID: str = os.environ.get("IDENTITY_PROJECT_ID", "")
    IDENTITY_BASE_URL: str = os.environ.get("IDENTITY_BASE_URL", "https://identitytoolkit.googleapis.com/v1")
    IDENTITY_TIMEOUT_SECONDS: float = float(os.environ.get("IDENTITY_TIMEOUT_SECONDS", "10"))
    # Where OAuth sign-ins say the credential came from
    OAUTH_REQUEST_URI: str = os.environ.get("OAUTH_REQUEST_URI", "http://localhost:8000")

    # Application
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "development")
    TESTING: bool = os.environ.get("TESTING", "").lower() == "true"
    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


# Singleton instance
settings = Settings()

# Validate required settings (skip in test mode)
if not settings.TESTING:
    if not settings.JWT_SECRET:
        raise RuntimeError("JWT_SECRET environment variable is required")
    if not settings.USE_MEMORY_STORE and not settings.DATABASE_URL:
        raise RuntimeError("DATABASE_URL environment variable is required")
