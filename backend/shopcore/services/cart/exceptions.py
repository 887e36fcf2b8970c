"""Cart errors."""

import uuid
from typing import Optional

from shopcore.core.exceptions import BusinessRuleError


class ProductNotFoundError(BusinessRuleError):
    """Raised when a product/variant pair does not resolve in the catalog."""

    def __init__(self, product_id: uuid.UUID, variant_id: uuid.UUID):
        super().__init__(
            f"Product {product_id} variant {variant_id} not found",
            code="PRODUCT_NOT_FOUND",
            product_id=str(product_id),
            variant_id=str(variant_id),
        )


class InvalidQuantityError(BusinessRuleError):
    """Raised when a cart quantity is not positive."""

    def __init__(self, quantity: int):
        super().__init__(
            "Quantity must be greater than zero",
            code="INVALID_QUANTITY",
            quantity=quantity,
        )


class OutOfStockError(BusinessRuleError):
    """Raised when the requested cart quantity exceeds available stock."""

    def __init__(
        self,
        product_id: uuid.UUID,
        variant_id: uuid.UUID,
        requested: int,
        available: Optional[int],
    ):
        super().__init__(
            "Requested quantity is not in stock",
            code="OUT_OF_STOCK",
            product_id=str(product_id),
            variant_id=str(variant_id),
            requested=requested,
            available=available or 0,
        )
        self.requested = requested
        self.available = available or 0


class CartItemNotFoundError(BusinessRuleError):
    """Raised when a cart line does not exist."""

    def __init__(self, product_id: uuid.UUID, variant_id: uuid.UUID):
        super().__init__(
            "Item is not in the cart",
            code="CART_ITEM_NOT_FOUND",
            product_id=str(product_id),
            variant_id=str(variant_id),
        )
