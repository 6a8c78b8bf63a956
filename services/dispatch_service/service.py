from datetime import datetime, timedelta, timezone
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import NotFound, StateConflict
from services.order_service.models import Order, OrderStatus
from services.order_service.repository import OrderRepository
from services.order_service.schemas import OrderResponse
from services.order_service.service import OrderService

from .schemas import DispatchQueue

logger = structlog.get_logger(__name__)


class DispatchService:

    @staticmethod
    async def list_orders(db: AsyncSession, queue: DispatchQueue) -> list[OrderResponse]:
        if queue == DispatchQueue.PENDING:
            rows = await OrderRepository.list_with_agent(db, OrderStatus.PAID.value, Order.paid_at)
        else:
            rows = await OrderRepository.list_with_agent(db, OrderStatus.SHIPPED.value, Order.shipped_at)
        return [OrderResponse.from_order(order, agent_name) for order, agent_name in rows]

    @staticmethod
    async def _move(db: AsyncSession, order_id: str, from_status: str, values: dict, verb: str, by: str) -> OrderResponse:
        async with db.begin():
            moved = await OrderRepository.transition(db, order_id, from_status, values)
            if not moved:
                order = await OrderRepository.get(db, order_id)
                if order is None:
                    raise NotFound("Order not found")
                raise StateConflict(
                    f"Order cannot be {verb}: expected status '{from_status}', found '{order.status}'",
                    current_status=order.status,
                )
            row = await OrderRepository.get_with_agent(db, order_id)
        order, agent_name = row
        logger.info("order_dispatch_updated", order_id=order_id, status=order.status, by=by)
        return OrderResponse.from_order(order, agent_name)

    @staticmethod
    async def dispatch(db: AsyncSession, order_id: str, tracking_number: Optional[str], by: str) -> OrderResponse:
        values = {
            "status": OrderStatus.SHIPPED.value,
            "shipped_at": datetime.now(timezone.utc),
            "tracking_number": tracking_number or None,
        }
        return await DispatchService._move(db, order_id, OrderStatus.PAID.value, values, "shipped", by)

    @staticmethod
    async def unship(db: AsyncSession, order_id: str, by: str) -> OrderResponse:
        values = {
            "status": OrderStatus.PAID.value,
            "shipped_at": None,
            "tracking_number": None,
        }
        return await DispatchService._move(db, order_id, OrderStatus.SHIPPED.value, values, "unshipped", by)


class ReservationSweeper:

    @staticmethod
    async def expire_stale_reservations(db: AsyncSession, older_than_minutes: int) -> list[str]:
        """
        Releases stock held by orders that never got a payment attached, e.g.
        when the process died between reserving and reaching the gateway.
        """
        cutoff = datetime.now(timezone.utc) - timedelta(minutes=older_than_minutes)
        async with db.begin():
            candidates = await OrderRepository.find_stale_reservations(db, cutoff)

        expired = []
        for order_id in candidates:
            try:
                if await OrderService.cancel_reservation(db, order_id, reason="reservation_expired"):
                    expired.append(order_id)
            except Exception:
                logger.critical(
                    "reservation_expiry_failed",
                    order_id=order_id,
                    action="manual review required",
                    exc_info=True,
                )
        logger.info("reservations_expired", count=len(expired), older_than_minutes=older_than_minutes)
        return expired
