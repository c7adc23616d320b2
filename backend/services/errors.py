"""
Error taxonomy for order tracking.

Every error carries a user-facing message (Spanish, as shown in the app).
Validation errors (InvalidFormat, MissingSelection) are raised before any
write reaches the record store. Store and identity-provider failures are
caught at the call site, logged, and re-raised as WriteFailure /
SubscriptionFailure / AuthError.
"""

from __future__ import annotations


class OrderError(Exception):
    """Base class. `user_message` is safe to show as an inline message."""

    default_message = "Ocurrió un error. Intenta nuevamente."

    def __init__(self, user_message: str | None = None):
        self.user_message = user_message or self.default_message
        super().__init__(self.user_message)


class InvalidFormat(OrderError):
    """Order-entry prompt did not parse as 'Name Quantity'."""

    default_message = "Formato no válido. Usa 'Nombre Cantidad', ej: 'Ana 2'."


class MissingSelection(OrderError):
    """Write attempted without choosing a catalog product."""

    default_message = "Error: Debes seleccionar un producto."


class SubscriptionFailure(OrderError):
    """Item or payment stream reported a terminal error."""

    default_message = "Error al cargar los pedidos."

    def __init__(self, collection: str, user_message: str | None = None):
        self.collection = collection
        super().__init__(user_message)


class WriteFailure(OrderError):
    """An upsert or delete against the record store was rejected."""

    default_message = "No se pudo guardar el pedido."


class AuthError(OrderError):
    """Identity-provider error, already mapped to a localized message."""

    def __init__(self, code: str, user_message: str | None = None):
        self.code = code
        super().__init__(user_message)
