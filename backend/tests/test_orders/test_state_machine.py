"""
Test suite for OrderStatusMachine.

Tests cover the transition table, status history, compensating stock
credits on cancellation and refund, and rollback of the whole transition
when a credit fails.
"""

import uuid

import pytest
from sqlalchemy import func, select

from shopcore.database.models import (
    InventoryLedgerEntry,
    LedgerReason,
    OrderStatus,
    ProductVariant,
)
from shopcore.services.inventory import VariantNotFoundError
from shopcore.services.orders import (
    IllegalTransitionError,
    InvalidStatusError,
    OrderStatusMachine,
    UnknownOrderError,
    validate_order_status_transition,
)


# ============================================================================
# Test Fixtures
# ============================================================================


@pytest.fixture
async def placed_order(assembler, carts, guest, seeded, address):
    """Pending guest order for two medium shirts and one tote."""
    await carts.add_item(guest, seeded.shirt_id, seeded.shirt_medium_id, 2)
    await carts.add_item(guest, seeded.tote_id, seeded.tote_variant_id, 1)
    return await assembler.create_order(guest, address, "online")


async def ledger_reasons(session_factory, reason: LedgerReason) -> int:
    async with session_factory() as session:
        stmt = (
            select(func.count())
            .select_from(InventoryLedgerEntry)
            .where(InventoryLedgerEntry.reason == reason)
        )
        return (await session.execute(stmt)).scalar_one()


# ============================================================================
# Transition Table
# ============================================================================


class TestTransitionTable:
    """Tests for the allowed transition rules."""

    @pytest.mark.parametrize(
        "current,target,expected",
        [
            (OrderStatus.PENDING, OrderStatus.PROCESSING, True),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED, True),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED, True),
            (OrderStatus.PENDING, OrderStatus.DELIVERED, True),
            (OrderStatus.PENDING, OrderStatus.CANCELLED, True),
            (OrderStatus.PROCESSING, OrderStatus.CANCELLED, True),
            (OrderStatus.DELIVERED, OrderStatus.REFUNDED, True),
            (OrderStatus.SHIPPED, OrderStatus.REFUNDED, True),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED, False),
            (OrderStatus.PENDING, OrderStatus.REFUNDED, False),
            (OrderStatus.CANCELLED, OrderStatus.PENDING, False),
            (OrderStatus.REFUNDED, OrderStatus.CANCELLED, False),
            (OrderStatus.PROCESSING, OrderStatus.PROCESSING, False),
        ],
    )
    def test_validate_transition(self, current, target, expected):
        assert validate_order_status_transition(current, target) is expected

    def test_allowed_from_pending(self):
        assert OrderStatusMachine.allowed_transitions("pending") == [
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
            OrderStatus.CANCELLED,
        ]

    @pytest.mark.parametrize("status", [OrderStatus.CANCELLED, OrderStatus.REFUNDED])
    def test_terminal_statuses_allow_nothing(self, status):
        assert OrderStatusMachine.allowed_transitions(status) == []

    def test_allowed_transitions_unknown_status(self):
        with pytest.raises(InvalidStatusError):
            OrderStatusMachine.allowed_transitions("lost")


# ============================================================================
# Transitions
# ============================================================================


class TestTransition:
    """Tests for status changes without stock effects."""

    @pytest.mark.asyncio
    async def test_transition_updates_status_and_history(
        self, machine, orders, placed_order
    ):
        result = await machine.transition(
            placed_order.order_id, OrderStatus.PROCESSING, "Packed", "admin:3"
        )

        assert result.previous_status == OrderStatus.PENDING
        assert result.new_status == OrderStatus.PROCESSING
        assert result.credited_items == 0
        assert result.order_number == placed_order.order_number

        order = await orders.get_order(placed_order.order_id)
        assert order.status == OrderStatus.PROCESSING
        latest = order.status_history[-1]
        assert latest.status == OrderStatus.PROCESSING
        assert latest.note == "Packed"
        assert latest.actor == "admin:3"

    @pytest.mark.asyncio
    async def test_status_given_as_string(self, machine, placed_order):
        result = await machine.transition(placed_order.order_id, " Shipped ")
        assert result.new_status == OrderStatus.SHIPPED

    @pytest.mark.asyncio
    async def test_non_compensating_transition_keeps_stock(
        self, machine, ledger, seeded, placed_order
    ):
        await machine.transition(placed_order.order_id, OrderStatus.DELIVERED)
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 8

    @pytest.mark.asyncio
    async def test_unknown_order(self, machine, seeded):
        with pytest.raises(UnknownOrderError):
            await machine.transition(uuid.uuid4(), OrderStatus.PROCESSING)

    @pytest.mark.asyncio
    async def test_unknown_order_reported_before_invalid_status(self, machine, seeded):
        with pytest.raises(UnknownOrderError):
            await machine.transition(uuid.uuid4(), "lost")

    @pytest.mark.asyncio
    async def test_invalid_status(self, machine, placed_order):
        with pytest.raises(InvalidStatusError):
            await machine.transition(placed_order.order_id, "lost")

    @pytest.mark.asyncio
    async def test_illegal_transition_leaves_order_untouched(
        self, machine, orders, placed_order
    ):
        with pytest.raises(IllegalTransitionError) as exc_info:
            await machine.transition(placed_order.order_id, OrderStatus.REFUNDED)

        assert exc_info.value.current_status == OrderStatus.PENDING
        assert exc_info.value.context["allowed"] == [
            "processing",
            "shipped",
            "delivered",
            "cancelled",
        ]
        order = await orders.get_order(placed_order.order_id)
        assert order.status == OrderStatus.PENDING
        assert len(order.status_history) == 1

    @pytest.mark.asyncio
    async def test_delivered_cannot_be_cancelled(self, machine, placed_order):
        await machine.transition(placed_order.order_id, OrderStatus.DELIVERED)

        with pytest.raises(IllegalTransitionError):
            await machine.transition(placed_order.order_id, OrderStatus.CANCELLED)

    @pytest.mark.asyncio
    async def test_activity_recorded(
        self, machine, activity, activity_records, placed_order
    ):
        await activity.drain()
        activity_records.clear()

        await machine.transition(placed_order.order_id, OrderStatus.PROCESSING, actor="admin:3")
        await activity.drain()

        assert [record.action for record in activity_records] == ["order_status_changed"]
        assert activity_records[0].actor == "admin:3"


# ============================================================================
# Compensating Credits
# ============================================================================


class TestCompensation:
    """Tests for stock returned by cancellation and refund."""

    @pytest.mark.asyncio
    async def test_cancel_returns_stock(
        self, machine, ledger, seeded, placed_order, session_factory
    ):
        result = await machine.transition(
            placed_order.order_id, OrderStatus.CANCELLED, "Customer request", "admin:3"
        )

        assert result.credited_items == 2
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 10
        assert await ledger.available_quantity(seeded.tote_variant_id) == 5
        assert (
            await ledger_reasons(session_factory, LedgerReason.CANCELLATION_RETURN) == 2
        )

    @pytest.mark.asyncio
    async def test_credit_linked_to_order_item(
        self, machine, ledger, seeded, placed_order
    ):
        await machine.transition(placed_order.order_id, OrderStatus.CANCELLED, actor="admin:3")

        entry = (await ledger.history(seeded.shirt_medium_id)).entries[0]
        shirt_item = next(
            item for item in placed_order.items if item.variant_id == seeded.shirt_medium_id
        )
        assert entry.reason == LedgerReason.CANCELLATION_RETURN
        assert entry.delta == 2
        assert entry.order_item_id == shirt_item.order_item_id
        assert entry.actor == "admin:3"

    @pytest.mark.asyncio
    async def test_refund_returns_stock(
        self, machine, ledger, seeded, placed_order, session_factory
    ):
        await machine.transition(placed_order.order_id, OrderStatus.DELIVERED)
        result = await machine.transition(placed_order.order_id, OrderStatus.REFUNDED)

        assert result.credited_items == 2
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 10
        assert await ledger_reasons(session_factory, LedgerReason.REFUND_RETURN) == 2

    @pytest.mark.asyncio
    async def test_second_cancel_does_not_credit_again(
        self, machine, ledger, seeded, placed_order
    ):
        await machine.transition(placed_order.order_id, OrderStatus.CANCELLED)

        with pytest.raises(IllegalTransitionError):
            await machine.transition(placed_order.order_id, OrderStatus.CANCELLED)

        assert await ledger.available_quantity(seeded.shirt_medium_id) == 10

    @pytest.mark.asyncio
    async def test_cancel_credits_deactivated_variant(
        self, machine, ledger, seeded, placed_order, session_factory
    ):
        async with session_factory() as session, session.begin():
            variant = await session.get(ProductVariant, seeded.tote_variant_id)
            variant.is_active = False

        await machine.transition(placed_order.order_id, OrderStatus.CANCELLED)

        replay = await ledger.replay(seeded.tote_variant_id)
        assert replay.stock_quantity == 5
        assert replay.is_consistent

    @pytest.mark.asyncio
    async def test_failed_credit_rolls_back_transition(
        self, machine, ledger, orders, seeded, placed_order, session_factory, monkeypatch
    ):
        real_credit = ledger.credit
        calls = []

        async def credit_then_fail(variant_id, *args, **kwargs):
            calls.append(variant_id)
            if len(calls) == 2:
                raise VariantNotFoundError(variant_id)
            return await real_credit(variant_id, *args, **kwargs)

        monkeypatch.setattr(ledger, "credit", credit_then_fail)

        with pytest.raises(VariantNotFoundError):
            await machine.transition(placed_order.order_id, OrderStatus.CANCELLED)

        order = await orders.get_order(placed_order.order_id)
        assert order.status == OrderStatus.PENDING
        assert len(order.status_history) == 1
        assert await ledger.available_quantity(seeded.shirt_medium_id) == 8
        assert (
            await ledger_reasons(session_factory, LedgerReason.CANCELLATION_RETURN) == 0
        )

    @pytest.mark.asyncio
    async def test_ledger_replays_after_full_lifecycle(
        self, machine, ledger, seeded, placed_order
    ):
        await machine.transition(placed_order.order_id, OrderStatus.SHIPPED)
        await machine.transition(placed_order.order_id, OrderStatus.DELIVERED)
        await machine.transition(placed_order.order_id, OrderStatus.REFUNDED)

        for variant_id in (seeded.shirt_medium_id, seeded.tote_variant_id):
            assert (await ledger.replay(variant_id)).is_consistent
