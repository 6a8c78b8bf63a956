"""
Applies gateway payment notifications to orders.

Delivery is at-least-once and unordered, so the handler never trusts the
notification body beyond the payment id: the authoritative status and the
order id (external_reference) come from the gateway itself. All writes for
one notification (status, mirrored payment fields, stock release) share a
transaction and are conditioned on the order status observed in it.
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import GatewayError
from shared.observability import ecomm_payment_notifications_total
from services.inventory_service.repository import InventoryRepository
from services.order_service.models import Order, OrderStatus, RESERVED_STATUSES
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService

from .gateway import PaymentGateway
from .schemas import PaymentInfo

logger = structlog.get_logger(__name__)

PAID = OrderStatus.PAID.value
FAILED = OrderStatus.FAILED.value
PENDING_PAYMENT = OrderStatus.PENDING_PAYMENT.value
SHIPPED = OrderStatus.SHIPPED.value

# Statuses reached through a specific approved payment
SETTLED_STATUSES = (PAID, SHIPPED)

GATEWAY_STATUS_MAP = {
    "approved": PAID,
    "rejected": FAILED,
    "cancelled": FAILED,
    "refunded": FAILED,
    "charged_back": FAILED,
    "in_process": PENDING_PAYMENT,
    "pending": PENDING_PAYMENT,
}


@dataclass
class PaymentNotification:
    topic: Optional[str] = None
    body_type: Optional[str] = None
    payment_id: Optional[str] = None
    order_id_hint: Optional[str] = None

    @classmethod
    def from_request(cls, query: Mapping[str, str], body: Any) -> "PaymentNotification":
        body = body if isinstance(body, dict) else {}
        data = body.get("data") if isinstance(body.get("data"), dict) else {}

        # Webhooks carry data.id in the body; legacy IPN only sends ?topic=payment&id=...
        payment_id = data.get("id") or query.get("data.id") or query.get("id")

        return cls(
            topic=query.get("topic") or query.get("type"),
            body_type=body.get("type") if isinstance(body.get("type"), str) else None,
            payment_id=str(payment_id) if payment_id else None,
            order_id_hint=query.get("orderId") or None,
        )

    @property
    def is_payment_event(self) -> bool:
        return self.topic == "payment" or self.body_type == "payment"


def resolve_target_status(current_status: str, gateway_status: Optional[str]) -> Optional[str]:
    """
    Order status a gateway status should move the order to, or None when
    only the raw gateway status is mirrored.
    """
    target = GATEWAY_STATUS_MAP.get(gateway_status or "")
    if target is None:
        return None
    if current_status == SHIPPED:
        return None
    # No backward moves once the payment outcome is settled
    if target == PENDING_PAYMENT and current_status in (PAID, FAILED):
        return None
    return target


class _LostRace(Exception):
    pass


class ReconciliationService:

    @staticmethod
    async def handle_notification(
        db: AsyncSession, gateway: PaymentGateway, notification: PaymentNotification
    ) -> str:
        """
        Never raises: every outcome is logged and returned as a label, since
        the gateway retries anything that is not acknowledged.
        """
        try:
            outcome = await ReconciliationService._process(db, gateway, notification)
        except Exception:
            logger.exception(
                "notification_failed",
                payment_id=notification.payment_id,
                order_id_hint=notification.order_id_hint,
            )
            outcome = "error"
        ecomm_payment_notifications_total.labels(outcome=outcome).inc()
        return outcome

    @staticmethod
    async def _process(db: AsyncSession, gateway: PaymentGateway, notification: PaymentNotification) -> str:
        if not notification.is_payment_event:
            logger.info("notification_ignored", topic=notification.topic, type=notification.body_type)
            return "ignored"
        if not notification.payment_id:
            logger.info("notification_ignored", reason="missing payment id")
            return "ignored"

        try:
            payment = await gateway.get_payment(notification.payment_id)
        except GatewayError as e:
            # Not acknowledged as processed: the gateway will redeliver
            logger.warning("notification_payment_lookup_failed", payment_id=notification.payment_id, error=e.message)
            return "gateway_error"

        order_id = payment.external_reference
        if not order_id:
            if not notification.order_id_hint:
                logger.error("notification_order_unresolved", payment_id=payment.payment_id)
                return "order_not_found"
            logger.warning(
                "notification_using_order_hint",
                payment_id=payment.payment_id,
                order_id=notification.order_id_hint,
            )
            order_id = notification.order_id_hint

        try:
            return await ReconciliationService._apply(db, order_id, payment)
        except _LostRace:
            logger.warning("notification_lost_race", order_id=order_id, payment_id=payment.payment_id)
            return "conflict"

    @staticmethod
    async def _apply(db: AsyncSession, order_id: str, payment: PaymentInfo) -> str:
        async with db.begin():
            order = await OrderRepository.get(db, order_id, for_update=True)
            if order is None:
                logger.error("notification_order_not_found", order_id=order_id, payment_id=payment.payment_id)
                return "order_not_found"

            previous_status = order.status
            target = resolve_target_status(previous_status, payment.status)
            new_status = target or previous_status

            if (
                new_status == previous_status
                and order.external_payment_status == payment.status
                and order.external_payment_id == payment.payment_id
            ):
                logger.info("notification_already_applied", order_id=order_id, status=previous_status)
                return "duplicate"

            if (
                previous_status in SETTLED_STATUSES
                and order.external_payment_id
                and payment.payment_id != order.external_payment_id
            ):
                # Only the payment that settled the order may change it (refund, chargeback)
                logger.warning(
                    "notification_other_payment_ignored",
                    order_id=order_id,
                    status=previous_status,
                    payment_id=payment.payment_id,
                    settled_by=order.external_payment_id,
                    gateway_status=payment.status,
                )
                return "stale"

            if target is None and payment.status in GATEWAY_STATUS_MAP:
                # Late delivery of an earlier state; mirroring it would misreport the payment
                logger.warning(
                    "notification_transition_refused",
                    order_id=order_id,
                    status=previous_status,
                    gateway_status=payment.status,
                )
                return "stale"

            values = {
                "external_payment_id": payment.payment_id,
                "external_payment_status": payment.status,
            }
            if new_status != previous_status:
                values["status"] = new_status
                if new_status == PAID:
                    values["paid_at"] = datetime.now(timezone.utc)

            if not await OrderRepository.transition(db, order_id, previous_status, values):
                raise _LostRace()

            if new_status == FAILED and previous_status in RESERVED_STATUSES:
                await OrderService.restock(db, order, reason="payment_failed")
            elif new_status == PAID and previous_status == FAILED:
                await ReconciliationService._reclaim_stock(db, order)

        logger.info(
            "notification_applied",
            order_id=order_id,
            payment_id=payment.payment_id,
            gateway_status=payment.status,
            previous_status=previous_status,
            status=new_status,
        )
        return "applied"

    @staticmethod
    async def _reclaim_stock(db: AsyncSession, order: Order) -> None:
        """
        A payment approved after the order already failed: its stock was
        released, so take it again. Anything no longer available is left for
        manual review rather than driving stock negative.
        """
        for item in order.items:
            if not await InventoryRepository.reserve(db, item.product_id, item.quantity):
                logger.critical(
                    "paid_order_stock_unavailable",
                    order_id=order.id,
                    product_id=item.product_id,
                    requested=item.quantity,
                    action="manual review required",
                )
