"""
Pydantic models for Pedidos.

All API data shapes defined here. No imports from db, repos, or routes.
"""

from backend.models.auth import (
    AuthResponse,
    LogoutResponse,
    MessageResponse,
    OAuthRequest,
    ResetPasswordRequest,
    SignInRequest,
)
from backend.models.orders import (
    AddOrderRequest,
    AddOrderResponse,
    DeleteOrderResponse,
    OrderResponse,
    OrdersSnapshotMessage,
    OrdersViewResponse,
    PaymentResponse,
    ProductResponse,
    RecordPaymentRequest,
    SortResponse,
    SummaryResponse,
)
from backend.models.user import User

__all__ = [
    # User models
    "User",
    # Auth models
    "SignInRequest",
    "OAuthRequest",
    "ResetPasswordRequest",
    "AuthResponse",
    "MessageResponse",
    "LogoutResponse",
    # Order models
    "AddOrderRequest",
    "AddOrderResponse",
    "RecordPaymentRequest",
    "PaymentResponse",
    "DeleteOrderResponse",
    "ProductResponse",
    "OrderResponse",
    "SummaryResponse",
    "SortResponse",
    "OrdersViewResponse",
    "OrdersSnapshotMessage",
]
