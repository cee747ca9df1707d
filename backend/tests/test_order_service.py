"""
Tests for the order service — placement, cancellation and status transitions.

Uses the in-memory SQLite session and an in-memory cart.
"""

import os, sys
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from datetime import timedelta
from decimal import Decimal

import pytest

from domain.enums import OrderStatus, PaymentMethod
from domain.errors import ConflictError, NotFoundError, PaymentFailedError, ValidationError
from models import CartLine
from services import order_service
from services.cart_store import SqlCartStore
from services.payment_service import SimulatedGateway
from utils.validators import parse_timestamp


async def _fill_cart(cart, user_id=1, lines=((1, "120.00", 1), (2, "40.00", 2))):
    for product_id, price, quantity in lines:
        await cart.add_item(
            user_id,
            CartLine(product_id=product_id, product_name=f"Item {product_id}",
                     unit_price=Decimal(price), quantity=quantity),
        )


async def _place(db_session, cart, gateway=None, method=PaymentMethod.COD, policy=None):
    return await order_service.place_order(
        db_session, cart, gateway or SimulatedGateway(),
        user_id=1, delivery_address="12 MG Road", pincode="560001",
        payment_method=method, policy=policy,
    )


class TestPlaceOrder:
    """Tests for place_order()."""

    @pytest.mark.asyncio
    async def test_free_delivery_order(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)  # 120 + 2 × 40 = 200
        order = await _place(db_session, memory_cart, policy=policy)

        assert order.status == OrderStatus.PLACED.value
        assert order.subtotal == Decimal("200.00")
        assert order.delivery_fee == Decimal("0.00")
        assert order.total_amount == Decimal("200.00")
        assert order.partner_earning == Decimal("25.00")
        assert len(order.items) == 2
        assert await memory_cart.get(1) == []

    @pytest.mark.asyncio
    async def test_small_order_pays_fee(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart, lines=((1, "99.50", 1),))
        order = await _place(db_session, memory_cart, policy=policy)
        assert order.delivery_fee == Decimal("40.00")
        assert order.total_amount == Decimal("139.50")
        assert order.partner_earning == Decimal("30.00")

    @pytest.mark.asyncio
    async def test_empty_cart_rejected(self, db_session, memory_cart, policy):
        with pytest.raises(ValidationError):
            await _place(db_session, memory_cart, policy=policy)

    @pytest.mark.asyncio
    async def test_online_payment_records_payment_id(self, db_session, memory_cart, policy):
        gateway = SimulatedGateway()
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, gateway, PaymentMethod.ONLINE, policy)
        assert order.payment_id.startswith("pay_sim_")
        assert gateway.checkouts[0].amount == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_cod_skips_payment(self, db_session, memory_cart, policy):
        gateway = SimulatedGateway()
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, gateway, PaymentMethod.COD, policy)
        assert order.payment_id is None
        assert gateway.checkouts == []

    @pytest.mark.asyncio
    async def test_failed_payment_keeps_cart(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        with pytest.raises(PaymentFailedError):
            await _place(
                db_session, memory_cart, SimulatedGateway(fail_with="Payment cancelled by user"),
                PaymentMethod.ONLINE, policy,
            )
        assert len(await memory_cart.get(1)) == 2
        assert await order_service.list_user_orders(db_session, 1) == []

    @pytest.mark.asyncio
    async def test_items_added_during_checkout_stay_in_cart(self, db_session, memory_cart, policy):
        class ShopperGateway(SimulatedGateway):
            async def open_checkout(self, options, on_success, on_failure):
                await memory_cart.add_item(
                    1, CartLine(product_id=99, product_name="Late add", unit_price=Decimal("15"), quantity=1),
                )
                await super().open_checkout(options, on_success, on_failure)

        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, ShopperGateway(), PaymentMethod.ONLINE, policy)

        assert sorted(item.product_id for item in order.items) == [1, 2]
        assert order.subtotal == Decimal("200.00")
        assert [(line.product_id, line.quantity) for line in await memory_cart.get(1)] == [(99, 1)]

    @pytest.mark.asyncio
    async def test_receipt_is_scoped_to_user(self, db_session, memory_cart, policy):
        gateway = SimulatedGateway()
        await _fill_cart(memory_cart)
        await order_service.place_order(
            db_session, memory_cart, gateway,
            user_id=1, delivery_address="12 MG Road", pincode="560001",
            payment_method=PaymentMethod.ONLINE, checkout_ref="web_7f3a9c21d4e8b6a0",
            policy=policy,
        )
        assert gateway.checkouts[0].receipt == "rcpt_1_web_7f3a9c21d4e8b6a0"

    @pytest.mark.asyncio
    async def test_no_transaction_held_while_paying(self, db_session, policy):
        seen = []

        class WatchingGateway(SimulatedGateway):
            async def open_checkout(self, options, on_success, on_failure):
                seen.append(db_session.in_transaction())
                await super().open_checkout(options, on_success, on_failure)

        cart = SqlCartStore(db_session)
        await _fill_cart(cart)
        await cart.commit()

        order = await _place(db_session, cart, WatchingGateway(), PaymentMethod.ONLINE, policy)

        assert seen == [False]
        assert order.payment_id.startswith("pay_sim_")
        assert await SqlCartStore(db_session).get(1) == []


class TestCancelOrder:

    @pytest.mark.asyncio
    async def test_cancel_inside_window_restores_cart(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        placed = parse_timestamp(order.order_time)

        cancelled = await order_service.cancel_order(
            db_session, memory_cart, order.id, now=placed + timedelta(seconds=60), policy=policy,
        )
        assert cancelled.status == OrderStatus.CANCELLED.value
        assert cancelled.cancelled_at is not None
        restored = await memory_cart.get(1)
        assert {line.product_id: line.quantity for line in restored} == {1: 1, 2: 2}

    @pytest.mark.asyncio
    async def test_cancel_after_window_conflicts(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        placed = parse_timestamp(order.order_time)

        with pytest.raises(ConflictError):
            await order_service.cancel_order(
                db_session, memory_cart, order.id, now=placed + timedelta(seconds=121), policy=policy,
            )

    @pytest.mark.asyncio
    async def test_cancel_confirmed_order_conflicts(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        await order_service.update_order_status(db_session, order.id, OrderStatus.CONFIRMED)
        with pytest.raises(ConflictError):
            await order_service.cancel_order(db_session, memory_cart, order.id, policy=policy)

    @pytest.mark.asyncio
    async def test_cancel_unknown_order(self, db_session, memory_cart):
        with pytest.raises(NotFoundError):
            await order_service.cancel_order(db_session, memory_cart, 999)


class TestStatusTransitions:

    @pytest.mark.asyncio
    async def test_delivery_flow_records_partner(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)

        order = await order_service.update_order_status(
            db_session, order.id, OrderStatus.OUT_FOR_DELIVERY, partner_id=7,
        )
        assert order.partner_id == 7
        assert order.assigned_at is not None

        order = await order_service.update_order_status(db_session, order.id, OrderStatus.DELIVERED)
        assert order.delivered_at is not None

        deliveries = await order_service.list_partner_deliveries(db_session, 7)
        assert len(deliveries) == 1
        assert deliveries[0].order_amount == Decimal("200.00")

    @pytest.mark.asyncio
    async def test_terminal_status_rejects_transition(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        await order_service.update_order_status(db_session, order.id, OrderStatus.DELIVERED)
        with pytest.raises(ConflictError):
            await order_service.update_order_status(db_session, order.id, OrderStatus.PACKED)

    @pytest.mark.asyncio
    async def test_out_for_delivery_cannot_be_cancelled(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        await order_service.update_order_status(db_session, order.id, OrderStatus.OUT_FOR_DELIVERY)
        with pytest.raises(ConflictError):
            await order_service.update_order_status(db_session, order.id, OrderStatus.CANCELLED)


class TestOrderResponse:

    @pytest.mark.asyncio
    async def test_response_carries_cancellation_window(self, db_session, memory_cart, policy):
        await _fill_cart(memory_cart)
        order = await _place(db_session, memory_cart, policy=policy)
        placed = parse_timestamp(order.order_time)

        data = order_service.order_to_response(order, placed + timedelta(seconds=30), policy).to_api()
        assert data["canCancel"] is True
        assert data["timeRemainingSeconds"] == 90
        assert data["totalAmount"] == 200.0
        assert data["items"][0]["productId"] == 1
