"""
Order API router: checkout and the customer's own orders.
"""

from uuid import UUID

from fastapi import APIRouter, HTTPException, Query, status

from shopcore.api.deps import Assembler, CurrentIdentity, CurrentUserIdentity, Orders
from shopcore.core.logging import get_logger
from shopcore.schemas.orders import (
    CheckoutRequest,
    OrderListResponse,
    OrderReceiptResponse,
    OrderResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "/checkout",
    response_model=OrderReceiptResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Place order",
    description="Create an order from the current cart and clear the cart",
)
async def checkout(
    request: CheckoutRequest,
    identity: CurrentIdentity,
    assembler: Assembler,
) -> OrderReceiptResponse:
    """
    Place an order from the current cart.

    Raises:
        400 for an empty cart, bad address or payment method; 409 when cart
        items are unavailable or stock ran out
    """
    receipt = await assembler.create_order(
        identity,
        request.shipping_address,
        request.payment_method,
        request.billing_address,
        notes=request.notes,
    )
    return OrderReceiptResponse.from_receipt(receipt)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders",
)
async def list_orders(
    identity: CurrentUserIdentity,
    orders: Orders,
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
) -> OrderListResponse:
    result = await orders.list_orders_for_user(identity.value, page, page_size)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in result.orders],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: UUID,
    identity: CurrentIdentity,
    orders: Orders,
) -> OrderResponse:
    """
    Get one of the current identity's orders.

    Raises:
        404 if the order does not exist or belongs to someone else
    """
    order = await orders.get_order_for_identity(order_id, identity)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ORDER_NOT_FOUND", "message": "Order not found"},
        )
    return OrderResponse.model_validate(order)
