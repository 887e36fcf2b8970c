"""Mapping of service error codes to HTTP status codes."""

from fastapi import status

from shopcore.core.exceptions import ShopError, StorageError

ERROR_STATUS_CODES: dict[str, int] = {
    "PRODUCT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "VARIANT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "CART_ITEM_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "ORDER_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "OUT_OF_STOCK": status.HTTP_409_CONFLICT,
    "INSUFFICIENT_STOCK": status.HTTP_409_CONFLICT,
    "INVALID_CART_ITEMS": status.HTTP_409_CONFLICT,
    "ILLEGAL_TRANSITION": status.HTTP_409_CONFLICT,
    "EMPTY_CART": status.HTTP_400_BAD_REQUEST,
    "INVALID_PAYMENT_METHOD": status.HTTP_400_BAD_REQUEST,
    "INVALID_ADDRESS": status.HTTP_400_BAD_REQUEST,
    "INVALID_QUANTITY": status.HTTP_422_UNPROCESSABLE_ENTITY,
    "INVALID_STATUS": status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def status_code_for(error: ShopError) -> int:
    """HTTP status for a service error; storage failures are 503."""
    if isinstance(error, StorageError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return ERROR_STATUS_CODES.get(error.code, status.HTTP_400_BAD_REQUEST)
