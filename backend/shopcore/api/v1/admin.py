"""
Administration API router: order status changes and inventory.

Every route requires staff access; the administrator is recorded as the
actor of status history and ledger entries.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from shopcore.api.deps import AdminActor, Ledger, Orders, StatusMachine, get_admin_actor
from shopcore.core.logging import get_logger
from shopcore.schemas.inventory import (
    LedgerEntryResponse,
    LedgerPageResponse,
    LowStockResponse,
    ReconciliationResponse,
    StockAdjustmentRequest,
    StockAdjustmentResponse,
)
from shopcore.schemas.orders import (
    AdminOrderResponse,
    StatusTransitionRequest,
    TransitionResponse,
)
from shopcore.services.orders import OrderStatusMachine

logger = get_logger(__name__)

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(get_admin_actor)],
)


@router.get(
    "/orders/{order_id}",
    response_model=AdminOrderResponse,
    summary="Get order with allowed transitions",
)
async def get_order(order_id: UUID, orders: Orders) -> AdminOrderResponse:
    order = await orders.get_order(order_id)
    if order is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": "ORDER_NOT_FOUND", "message": "Order not found"},
        )

    response = AdminOrderResponse.model_validate(order)
    response.allowed_transitions = OrderStatusMachine.allowed_transitions(order.status)
    return response


@router.post(
    "/orders/{order_id}/status",
    response_model=TransitionResponse,
    summary="Change order status",
    description="Move an order to a new status; cancelling or refunding returns its stock",
)
async def change_order_status(
    order_id: UUID,
    request: StatusTransitionRequest,
    actor: AdminActor,
    machine: StatusMachine,
) -> TransitionResponse:
    """
    Change the status of an order.

    Raises:
        404 if the order does not exist, 409 if the transition is not
        allowed, 422 if the status is unknown
    """
    result = await machine.transition(order_id, request.status, request.note, actor)
    return TransitionResponse.from_result(result)


@router.get(
    "/inventory/history",
    response_model=LedgerPageResponse,
    summary="Inventory history",
    description="Ledger entries, most recent first",
)
async def inventory_history(
    ledger: Ledger,
    variant_id: Optional[UUID] = None,
    page: int = Query(1, ge=1),
    page_size: Optional[int] = Query(None, ge=1, le=200),
) -> LedgerPageResponse:
    result = await ledger.history(variant_id, page, page_size)
    return LedgerPageResponse(
        entries=[LedgerEntryResponse.model_validate(entry) for entry in result.entries],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get(
    "/inventory/low-stock",
    response_model=list[LowStockResponse],
    summary="Low stock report",
)
async def low_stock(
    ledger: Ledger,
    limit: int = Query(50, ge=1, le=500),
) -> list[LowStockResponse]:
    report = await ledger.low_stock(limit)
    return [
        LowStockResponse(
            variant_id=item.variant_id,
            product_id=item.product_id,
            product_name=item.product_name,
            variant_label=item.variant_label,
            stock_quantity=item.stock_quantity,
            min_stock_level=item.min_stock_level,
            shortfall=item.shortfall,
        )
        for item in report
    ]


@router.post(
    "/inventory/{variant_id}/adjustments",
    response_model=StockAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Adjust stock",
)
async def adjust_stock(
    variant_id: UUID,
    request: StockAdjustmentRequest,
    actor: AdminActor,
    ledger: Ledger,
) -> StockAdjustmentResponse:
    """
    Apply a manual stock correction.

    Raises:
        404 if the variant does not exist, 409 if a negative correction
        exceeds the stock
    """
    quantity = await ledger.adjust(variant_id, request.delta, actor, note=request.note)
    return StockAdjustmentResponse(variant_id=variant_id, stock_quantity=quantity)


@router.get(
    "/inventory/{variant_id}/reconciliation",
    response_model=ReconciliationResponse,
    summary="Replay ledger",
)
async def reconcile_stock(variant_id: UUID, ledger: Ledger) -> ReconciliationResponse:
    result = await ledger.replay(variant_id)
    return ReconciliationResponse(
        variant_id=result.variant_id,
        ledger_total=result.ledger_total,
        stock_quantity=result.stock_quantity,
        entry_count=result.entry_count,
        is_consistent=result.is_consistent,
    )
