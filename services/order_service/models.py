import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from shared.config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_order_id() -> str:
    return uuid.uuid4().hex


class OrderStatus(str, enum.Enum):
    PENDING_PREFERENCE = "pending_preference"
    PENDING_PAYMENT = "pending_payment"
    PAID = "paid"
    FAILED = "failed"
    SHIPPED = "shipped"


# Statuses in which the order still holds reserved stock that no payment has claimed
RESERVED_STATUSES = (OrderStatus.PENDING_PREFERENCE.value, OrderStatus.PENDING_PAYMENT.value)


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(32), primary_key=True, default=new_order_id)

    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(64), nullable=True)

    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(String(32), nullable=False, default=OrderStatus.PENDING_PAYMENT.value, index=True)

    payment_method = Column(String(32), nullable=False, default="mercadopago")
    external_preference_id = Column(String(128), nullable=True)
    external_payment_id = Column(String(64), nullable=True, index=True)
    external_payment_status = Column(String(32), nullable=True, default="pending")
    paid_at = Column(DateTime(timezone=True), nullable=True)

    shipping_method = Column(String(64), nullable=False, default="Por definir")
    shipping_cost = Column(Numeric(12, 2), nullable=False, default=0)
    tracking_number = Column(String(128), nullable=True)

    referral_code = Column(String(64), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    shipped_at = Column(DateTime(timezone=True), nullable=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.position",
        cascade="all, delete-orphan",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(32), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    product_id = Column(String(128), nullable=False)
    name = Column(String(255), nullable=False)
    presentation = Column(String(255), nullable=True)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    line_total = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="items")


class Employee(Base):
    """Referring sales agent. Provisioned out-of-band; only read here."""

    __tablename__ = "employees"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    referral_code = Column(String(64), nullable=False, unique=True, index=True)
