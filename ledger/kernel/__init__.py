"""
Pedidos Kernel: the pure core.

Components:
  catalog     product → unit price, totals
  identity    customer keys and deterministic record ids
  aggregator  (item records, payment records) → orders  (pure, deterministic)
  prompt      "Name Quantity" → (name, quantity) | error
  query       filter, stable sort and summary over orders
"""

from ledger.kernel.aggregator import aggregate, empty_orders
from ledger.kernel.catalog import PRODUCT_NAMES, PRODUCTS, calculate_total
from ledger.kernel.identity import customer_key, item_record_id, payment_record_id
from ledger.kernel.prompt import parse_prompt
from ledger.kernel.query import describe_items, filter_orders, sort_orders, summarize, view

__all__ = [
    "PRODUCTS",
    "PRODUCT_NAMES",
    "calculate_total",
    "customer_key",
    "item_record_id",
    "payment_record_id",
    "aggregate",
    "empty_orders",
    "parse_prompt",
    "filter_orders",
    "sort_orders",
    "view",
    "summarize",
    "describe_items",
]
