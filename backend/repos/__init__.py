"""
Repository layer for Pedidos.

All SQL lives here and ONLY here. No database access outside this module.
"""

from backend.repos.postgres_store import PostgresRecordStore
from backend.repos.record_store import (
    COLLECTIONS,
    ITEM_COLLECTION,
    PAYMENT_COLLECTION,
    MemoryRecordStore,
    RecordStore,
    StoreError,
    Subscription,
)

__all__ = [
    "RecordStore",
    "MemoryRecordStore",
    "PostgresRecordStore",
    "Subscription",
    "StoreError",
    "COLLECTIONS",
    "ITEM_COLLECTION",
    "PAYMENT_COLLECTION",
]
