"""
Order Service — placing, reading, cancelling and advancing orders.

Placement fixes the money at checkout time: subtotal, delivery fee and the
partner's base earning are computed from the cart once and stored on the
order row. Later reads attach the live cancellation window.
"""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db_models import Order, OrderItem
from domain.enums import ORDER_TRANSITIONS, OrderStatus, PaymentMethod
from domain.errors import ConflictError, NotFoundError, ValidationError
from domain.policy import DeliveryPolicy, get_policy
from models import CartLine, Delivery, OrderItemResponse, OrderResponse, PaymentOptions
from services.cancellation_service import can_cancel_order, get_cancellation_window
from services.cart_store import CartStore
from services.delivery_fee_service import calculate_delivery_fee
from services.earnings_service import calculate_partner_earnings
from services.payment_service import PaymentGateway, checkout_receipt, complete_payment
from utils.validators import parse_timestamp, round_money, utc_now

logger = logging.getLogger(__name__)


def _naive_utc(moment: datetime) -> datetime:
    """Orders store naive UTC."""
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def _aware(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    return parse_timestamp(moment)


# ════════════════════════════════════════════════════════════════════
# Placement
# ════════════════════════════════════════════════════════════════════


async def place_order(
    db: AsyncSession,
    cart_store: CartStore,
    gateway: PaymentGateway,
    user_id: int,
    delivery_address: str,
    pincode: str,
    payment_method: PaymentMethod = PaymentMethod.COD,
    *,
    checkout_ref: Optional[str] = None,
    customer: Optional[dict] = None,
    payment_timeout: Optional[float] = None,
    policy: Optional[DeliveryPolicy] = None,
) -> Order:
    """
    Turn the user's cart into a PLACED order.

    ONLINE orders are only written after the payment completes; a failed,
    dismissed or timed-out payment leaves the cart untouched. Only the
    ordered lines leave the cart, so items added while the checkout was
    open stay there.

    Raises:
        ValidationError: empty cart or blank address
        PaymentFailedError / PaymentGatewayError / PaymentTimeoutError
    """
    policy = get_policy(policy)
    if not delivery_address or not delivery_address.strip():
        raise ValidationError("Delivery address is required", field="deliveryAddress")

    lines: List[CartLine] = await cart_store.get(user_id)
    if not lines:
        raise ValidationError("Cart is empty", field="cart")

    subtotal = round_money(sum((line.line_total for line in lines), Decimal("0")))
    fee = calculate_delivery_fee(subtotal, policy)
    earning = calculate_partner_earnings(subtotal, policy=policy)

    payment_id = None
    if PaymentMethod(payment_method) == PaymentMethod.ONLINE:
        customer = customer or {}
        # no connection is held while the customer is in the checkout widget
        if db.in_transaction():
            await db.rollback()
        result = await complete_payment(
            gateway,
            PaymentOptions(
                amount=fee.total_amount,
                receipt=checkout_receipt(user_id, checkout_ref),
                customer_name=customer.get("name"),
                customer_email=customer.get("email"),
                customer_phone=customer.get("phone"),
                description=f"Grocito order ({len(lines)} items)",
            ),
            timeout=payment_timeout,
        )
        payment_id = result.payment_id

    order = Order(
        user_id=user_id,
        status=OrderStatus.PLACED.value,
        order_time=_naive_utc(utc_now()),
        delivery_address=delivery_address.strip(),
        pincode=pincode,
        subtotal=fee.order_amount,
        delivery_fee=fee.delivery_fee,
        total_amount=fee.total_amount,
        partner_earning=earning.base_earnings,
        payment_method=PaymentMethod(payment_method).value,
        payment_id=payment_id,
        items=[
            OrderItem(
                product_id=line.product_id,
                product_name=line.product_name,
                unit_price=line.unit_price,
                quantity=line.quantity,
            )
            for line in lines
        ],
    )
    db.add(order)
    await db.flush()

    try:
        await cart_store.remove_items(user_id, lines)
    except Exception as e:
        logger.warning(f"Order {order.id} placed but its items were not removed from user {user_id}'s cart: {e}")

    await db.commit()
    await db.refresh(order)

    logger.info(
        f"📦 Order {order.id} placed by user {user_id}: subtotal ₹{fee.order_amount}, "
        f"fee ₹{fee.delivery_fee}, total ₹{fee.total_amount} ({order.payment_method})"
    )
    return order


# ════════════════════════════════════════════════════════════════════
# Reads
# ════════════════════════════════════════════════════════════════════


async def get_order(db: AsyncSession, order_id: int) -> Order:
    """Raises NotFoundError for an unknown id."""
    res = await db.execute(select(Order).where(Order.id == order_id))
    order = res.scalar_one_or_none()
    if order is None:
        raise NotFoundError("Order", str(order_id))
    return order


async def list_user_orders(
    db: AsyncSession, user_id: int, limit: int = 50, offset: int = 0,
) -> List[Order]:
    res = await db.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .order_by(Order.order_time.desc(), Order.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(res.scalars().all())


async def count_user_orders(db: AsyncSession, user_id: int) -> int:
    res = await db.execute(select(func.count(Order.id)).where(Order.user_id == user_id))
    return res.scalar_one()


def order_to_response(
    order: Order, now: Any = None, policy: Optional[DeliveryPolicy] = None,
) -> OrderResponse:
    """Serialize an order row together with its current cancellation window."""
    window = get_cancellation_window(order, now, policy)
    return OrderResponse(
        id=order.id,
        user_id=order.user_id,
        status=order.status,
        order_time=_aware(order.order_time),
        delivery_address=order.delivery_address,
        pincode=order.pincode,
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        total_amount=order.total_amount,
        partner_earning=order.partner_earning,
        payment_method=order.payment_method,
        payment_id=order.payment_id,
        partner_id=order.partner_id,
        delivered_at=_aware(order.delivered_at),
        cancelled_at=_aware(order.cancelled_at),
        items=[
            OrderItemResponse(
                product_id=item.product_id,
                product_name=item.product_name,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
            for item in order.items
        ],
        can_cancel=window.can_cancel,
        time_remaining_seconds=window.time_remaining_seconds,
    )


# ════════════════════════════════════════════════════════════════════
# Transitions
# ════════════════════════════════════════════════════════════════════


async def cancel_order(
    db: AsyncSession,
    cart_store: CartStore,
    order_id: int,
    now: Any = None,
    policy: Optional[DeliveryPolicy] = None,
) -> Order:
    """
    Customer cancellation inside the window. Items go back into the cart.

    Raises:
        NotFoundError: unknown order
        ConflictError: not PLACED any more, or the window has passed
    """
    order = await get_order(db, order_id)
    moment = utc_now() if now is None else parse_timestamp(now, field="now")

    if not can_cancel_order(order, moment, policy):
        raise ConflictError(
            f"Order {order_id} can no longer be cancelled",
            details={"status": order.status},
        )

    order.status = OrderStatus.CANCELLED.value
    order.cancelled_at = _naive_utc(moment)
    await db.flush()

    for item in order.items:
        try:
            await cart_store.add_item(
                order.user_id,
                CartLine(
                    product_id=item.product_id,
                    product_name=item.product_name,
                    unit_price=item.unit_price,
                    quantity=item.quantity,
                ),
            )
        except Exception as e:
            logger.error(f"Could not restore product {item.product_id} of order {order_id} to cart: {e}")

    await db.commit()
    await db.refresh(order)
    logger.info(f"❌ Order {order_id} cancelled by user {order.user_id}")
    return order


async def update_order_status(
    db: AsyncSession,
    order_id: int,
    new_status: OrderStatus,
    partner_id: Optional[int] = None,
    now: Any = None,
) -> Order:
    """
    Advance an order along the status state machine.

    Raises:
        NotFoundError: unknown order
        ConflictError: transition not allowed from the current status
    """
    order = await get_order(db, order_id)
    new_status = OrderStatus(new_status)
    current = OrderStatus(order.status)

    if new_status not in ORDER_TRANSITIONS.get(current, frozenset()):
        raise ConflictError(
            f"Cannot move order {order_id} from {current.value} to {new_status.value}",
            details={"from": current.value, "to": new_status.value},
        )

    moment = _naive_utc(utc_now() if now is None else parse_timestamp(now, field="now"))

    if partner_id is not None and order.partner_id != partner_id:
        order.partner_id = partner_id
        order.assigned_at = moment
    if new_status == OrderStatus.DELIVERED:
        order.delivered_at = moment
    elif new_status == OrderStatus.CANCELLED:
        order.cancelled_at = moment
    order.status = new_status.value

    await db.commit()
    await db.refresh(order)
    logger.info(f"🚚 Order {order_id}: {current.value} → {new_status.value}")
    return order


async def list_partner_deliveries(db: AsyncSession, partner_id: int) -> List[Delivery]:
    """A partner's delivered orders, shaped for the earnings aggregator."""
    res = await db.execute(
        select(Order)
        .where(Order.partner_id == partner_id, Order.status == OrderStatus.DELIVERED.value)
        .order_by(Order.delivered_at)
    )
    return [
        Delivery(
            order_id=order.id,
            order_amount=order.subtotal,
            delivered_at=_aware(order.delivered_at or order.order_time),
        )
        for order in res.scalars().all()
    ]
