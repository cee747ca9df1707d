"""
SQLAlchemy ORM models for the Grocito delivery service.

Tables:
    orders       — customer orders with the fee and partner earning fixed at placement
    order_items  — product lines of an order (restored to the cart on cancel)
    cart_items   — server-side carts (SqlCartStore)

Timestamps are stored as naive UTC.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey,
    UniqueConstraint, Index,
)
from sqlalchemy.orm import relationship

from database import Base
from domain.enums import OrderStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Order(Base):
    """A customer order. Money columns hold rupees with 2 decimal places."""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.PLACED.value)
    order_time = Column(DateTime, nullable=False, default=_utcnow, index=True)
    delivery_address = Column(String(500), nullable=False)
    pincode = Column(String(10), nullable=False, index=True)

    subtotal = Column(Numeric(10, 2), nullable=False)
    delivery_fee = Column(Numeric(10, 2), nullable=False)
    total_amount = Column(Numeric(10, 2), nullable=False)
    partner_earning = Column(Numeric(10, 2), nullable=False)  # base earning, bonuses excluded

    payment_method = Column(String(10), nullable=False, default="COD")  # "COD" | "ONLINE"
    payment_id = Column(String(64), nullable=True)

    partner_id = Column(Integer, nullable=True, index=True)
    assigned_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    # Relationships
    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        # Partner earnings: delivered orders per partner
        Index("ix_orders_partner_status", "partner_id", "status"),
    )


class OrderItem(Base):
    """One product line of an order, priced at placement time."""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(200), nullable=False, default="")
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)

    # Relationships
    order = relationship("Order", back_populates="items")


class CartItem(Base):
    """A product line in a customer's server-side cart."""
    __tablename__ = "cart_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, nullable=False, index=True)
    product_id = Column(Integer, nullable=False)
    product_name = Column(String(200), nullable=False, default="")
    unit_price = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_cart_user_product"),
    )
