"""
Pedidos Kernel: Identity Key Derivation

Deterministic identifiers for customers and records. The record store has no
uniqueness constraints of its own, so "add or update" is an upsert keyed by
these ids: one item record per (owner, customer, product), one payment record
per (owner, customer).

Components are joined with KEY_SEPARATOR. Ids stay unique only while owner
ids, customer keys and product names do not contain the separator
themselves. This is not checked at runtime.
"""

from __future__ import annotations

KEY_SEPARATOR = ":"


def customer_key(raw_name: str | None) -> str:
    """
    Canonical customer key: surrounding whitespace trimmed, lower-cased.

    "  Ana " and "ANA" map to the same key. Empty or whitespace-only input
    yields "" and must be rejected by the caller.
    """
    return str(raw_name or "").strip().lower()


def item_record_id(owner_id: str, customer_key: str, product_name: str) -> str:
    return KEY_SEPARATOR.join((str(owner_id), customer_key, product_name))


def payment_record_id(owner_id: str, customer_key: str) -> str:
    return KEY_SEPARATOR.join((str(owner_id), customer_key))
