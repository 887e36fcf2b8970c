"""
Base exception hierarchy shared by the cart, order and inventory services.

Two families exist. BusinessRuleError subclasses are expected outcomes
(insufficient stock, empty cart, illegal status change) that callers present
to the user. StorageError wraps infrastructure failures; it always aborts the
enclosing transaction and is never partially applied.
"""

from typing import Any


class ShopError(Exception):
    """Base exception for all shop core errors."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize error code, message and context for API responses."""
        return {
            "code": self.code,
            "message": self.message,
            "details": self.context,
        }


class BusinessRuleError(ShopError):
    """Expected business outcome surfaced to the caller."""


class StorageError(ShopError):
    """Raised when the relational store or session store fails."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message, code="STORAGE_ERROR", **context)
