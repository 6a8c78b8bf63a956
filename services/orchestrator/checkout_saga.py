"""
Checkout as a saga:

    reserve_stock            (store transaction)   <- release_reservation
    create_checkout_session  (external, no rollback possible)
    attach_session           (store write)

The gateway cannot join the store transaction, so a failure after
reserve_stock is undone by release_reservation instead.
"""
import structlog

from shared.errors import InsufficientStock
from services.inventory_service.repository import InventoryRepository
from services.order_service.repository import OrderRepository
from services.order_service.service import OrderService
from services.payment_service.schemas import (
    BackUrls,
    CheckoutItem,
    CheckoutSessionRequest,
    Payer,
    clamp,
)

from .saga import SagaOrchestrator

logger = structlog.get_logger(__name__)


# --- ACTIONS ---

class _Shortage(Exception):
    def __init__(self, item):
        self.item = item


async def reserve_stock(ctx: dict):
    db, order = ctx["db"], ctx["order"]
    try:
        async with db.begin():
            for item in order.items:
                if not await InventoryRepository.reserve(db, item.product_id, item.quantity):
                    # Raising inside the transaction rolls back every earlier decrement
                    raise _Shortage(item)
            await OrderRepository.add(db, order)
    except _Shortage as shortage:
        item = shortage.item
        # Read after the rollback so earlier lines of the same product are not subtracted
        async with db.begin():
            available = await InventoryRepository.get_stock(db, item.product_id)
        raise InsufficientStock(item.product_id, available, item.quantity) from None
    ctx["order_id"] = order.id
    logger.info("stock_reserved", order_id=order.id, items=len(order.items))


def build_session_request(order, settings) -> CheckoutSessionRequest:
    order_id = order.id
    return CheckoutSessionRequest(
        items=[
            CheckoutItem(
                id=clamp(item.product_id),
                title=clamp(item.name),
                description=clamp(item.presentation),
                quantity=item.quantity,
                unit_price=item.unit_price,
                currency_id=settings.currency_id,
            )
            for item in order.items
        ],
        payer=Payer(name=order.customer_name, email=order.customer_email, phone=order.customer_phone or ""),
        back_urls=BackUrls(
            success=f"{settings.frontend_url}/payment-success?order_id={order_id}",
            failure=f"{settings.frontend_url}/payment-failure?order_id={order_id}",
            pending=f"{settings.frontend_url}/payment-pending?order_id={order_id}",
        ),
        notification_url=f"{settings.backend_url}/payment-notifications?source_news=webhooks&orderId={order_id}",
        external_reference=order_id,
        auto_return=settings.auto_return or None,
    )


async def create_checkout_session(ctx: dict):
    gateway, order, settings = ctx["gateway"], ctx["order"], ctx["settings"]
    session = await gateway.create_session(build_session_request(order, settings))
    ctx["session"] = session
    logger.info("checkout_session_created", order_id=order.id, session_id=session.session_id)


async def attach_session(ctx: dict):
    db, order_id, session = ctx["db"], ctx["order_id"], ctx["session"]
    async with db.begin():
        await OrderRepository.set_preference_id(db, order_id, session.session_id)


# --- COMPENSATIONS (Rollbacks) ---

async def release_reservation(ctx: dict):
    order_id = ctx.get("order_id")
    if order_id:
        await OrderService.cancel_reservation(ctx["db"], order_id, reason="checkout_compensation")


# --- BUILDER FACTORY ---

def build_checkout_saga() -> SagaOrchestrator:
    saga = SagaOrchestrator("checkout")
    saga.add_step("reserve_stock", reserve_stock, release_reservation)
    saga.add_step("create_checkout_session", create_checkout_session, None)  # External, cannot be undone
    saga.add_step("attach_session", attach_session, None)
    return saga
