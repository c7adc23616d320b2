"""
Pedidos Kernel: Product Catalog

Fixed product name → unit price table. Product names are the join key
between item records and prices; anything not listed here is priced at 0.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal
from types import MappingProxyType

CURRENCY = "S/"

PRODUCTS: Mapping[str, Decimal] = MappingProxyType(
    {
        "manjar": Decimal("1.50"),
        "manjar con pecana": Decimal("2.00"),
        "cubo": Decimal("3.00"),
        "oreo": Decimal("2.00"),
        "oreo manjar": Decimal("2.50"),
    }
)

# Longest first, so "oreo manjar" is tried before "oreo" when matching text
PRODUCT_NAMES: tuple[str, ...] = tuple(sorted(PRODUCTS, key=len, reverse=True))


def calculate_total(items: Mapping[str, int], catalog: Mapping[str, Decimal] = PRODUCTS) -> Decimal:
    """
    Sum quantity × unit price over a product → quantity mapping.

    Unknown products contribute 0. Never raises for a missing price.
    """
    total = Decimal("0")
    for product, quantity in items.items():
        total += catalog.get(product, Decimal("0")) * quantity
    return total


def is_known_product(name: str | None, catalog: Mapping[str, Decimal] = PRODUCTS) -> bool:
    return bool(name) and name in catalog


def format_money(amount: Decimal | int | float) -> str:
    """Format an amount the way the order cards show it: 'S/ 3.00'."""
    return f"{CURRENCY} {Decimal(str(amount)).quantize(Decimal('0.01'))}"
