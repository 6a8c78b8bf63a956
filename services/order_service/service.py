from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.errors import InvalidInput, NotFound
from shared.observability import ecomm_stock_released_units_total
from services.inventory_service.repository import InventoryRepository

from .models import Order, OrderItem, OrderStatus, RESERVED_STATUSES, new_order_id
from .repository import OrderRepository
from .schemas import OrderCreate, OrderStatusResponse

logger = structlog.get_logger(__name__)

CENTS = Decimal("0.01")


class OrderService:

    @staticmethod
    def build_order(data: OrderCreate) -> Order:
        """Builds an unsaved order, recomputing every total server-side."""
        items = []
        computed_total = Decimal("0")
        for position, item in enumerate(data.items):
            line_total = (item.unit_price * item.quantity).quantize(CENTS)
            computed_total += line_total
            items.append(OrderItem(
                position=position,
                product_id=item.product_id,
                name=item.name,
                presentation=item.presentation,
                quantity=item.quantity,
                unit_price=item.unit_price,
                line_total=line_total,
            ))

        if data.total_amount.quantize(CENTS) != computed_total:
            raise InvalidInput(
                f"totalAmount {data.total_amount} does not match the sum of line items {computed_total}"
            )

        return Order(
            id=new_order_id(),
            customer_name=data.customer_details.name,
            customer_email=data.customer_details.email,
            customer_phone=data.customer_details.phone,
            total_amount=computed_total,
            status=OrderStatus.PENDING_PAYMENT.value,
            referral_code=data.referral_code or None,
            items=items,
        )

    @staticmethod
    async def get_status(db: AsyncSession, order_id: str) -> OrderStatusResponse:
        order = await OrderRepository.get(db, order_id)
        if not order:
            raise NotFound("Order not found")
        return OrderStatusResponse(
            id=order.id,
            status=order.status,
            total_amount=order.total_amount,
            payment_status=order.external_payment_status,
            paid_at=order.paid_at,
        )

    @staticmethod
    async def restock(db: AsyncSession, order: Order, reason: str) -> None:
        """Returns every line item of `order` to inventory. Caller owns the transaction."""
        for item in order.items:
            await InventoryRepository.release(db, item.product_id, item.quantity)
            ecomm_stock_released_units_total.labels(reason=reason).inc(item.quantity)
        logger.info("stock_released", order_id=order.id, reason=reason, items=len(order.items))

    @staticmethod
    async def cancel_reservation(db: AsyncSession, order_id: str, reason: str) -> bool:
        """
        Moves a still-reserved order to `failed` and restores its stock, in one
        transaction. Running it again, or after the order was paid, is a no-op.
        """
        async with db.begin():
            order = await OrderRepository.get(db, order_id, for_update=True)
            if order is None:
                return False
            moved = await OrderRepository.transition(
                db, order_id, RESERVED_STATUSES, {"status": OrderStatus.FAILED.value}
            )
            if not moved:
                logger.info("reservation_already_settled", order_id=order_id, status=order.status)
                return False
            await OrderService.restock(db, order, reason)
        return True
