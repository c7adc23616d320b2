"""
Shared FastAPI dependencies: the record store and the identity provider.

main.lifespan installs the configured store (Postgres, or in-memory when
USE_MEMORY_STORE=true / TESTING). Tests override these with
app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Depends

from backend.config import settings
from backend.repos.record_store import MemoryRecordStore, RecordStore
from backend.services.identity import IdentityProvider, IdentityToolkitProvider
from backend.services.orders import OrderService

_store: RecordStore | None = None
_identity: IdentityProvider | None = None


def set_store(store: RecordStore | None) -> None:
    global _store
    _store = store


def set_identity_provider(provider: IdentityProvider | None) -> None:
    global _identity
    _identity = provider


def get_store() -> RecordStore:
    """
    Return the installed record store.

    - installed by lifespan         → that store
    - USE_MEMORY_STORE or TESTING   → a process-wide MemoryRecordStore
    """
    if _store is None:
        if settings.USE_MEMORY_STORE or settings.TESTING:
            set_store(MemoryRecordStore())
        else:
            raise RuntimeError("Record store not initialized. Is the app lifespan running?")
    return _store


def get_identity_provider() -> IdentityProvider:
    if _identity is None:
        set_identity_provider(IdentityToolkitProvider())
    return _identity


def get_order_service(store: RecordStore = Depends(get_store)) -> OrderService:
    return OrderService(store)
