import time

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.settings import Settings
from shared.errors import GatewayError, InsufficientStock, InternalError, OrderError
from shared.observability import ecomm_checkout_duration_seconds, ecomm_checkout_total
from services.order_service.schemas import CheckoutResponse, OrderCreate
from services.order_service.service import OrderService
from services.payment_service.gateway import PaymentGateway

from .checkout_saga import build_checkout_saga

logger = structlog.get_logger(__name__)


class CheckoutService:

    @staticmethod
    async def create_order(
        db: AsyncSession,
        gateway: PaymentGateway,
        settings: Settings,
        data: OrderCreate,
    ) -> CheckoutResponse:
        """
        Reserves stock, stores the order and opens a gateway checkout session.
        Returns the hosted-checkout URL; on any failure after the reservation
        the stock is put back before the error propagates.
        """
        started = time.perf_counter()
        order = OrderService.build_order(data)

        ctx = {"db": db, "gateway": gateway, "settings": settings, "order": order}
        saga = build_checkout_saga()
        try:
            await saga.execute(ctx)
        except InsufficientStock as e:
            ecomm_checkout_total.labels(status="insufficient_stock").inc()
            logger.info("checkout_rejected", product_id=e.product_id, available=e.available, requested=e.requested)
            raise
        except GatewayError as e:
            ecomm_checkout_total.labels(status="gateway_error").inc()
            logger.error("checkout_gateway_failed", order_id=ctx.get("order_id"), error=e.message)
            raise
        except OrderError:
            ecomm_checkout_total.labels(status="failed").inc()
            raise
        except Exception as e:
            ecomm_checkout_total.labels(status="failed").inc()
            logger.exception("checkout_failed", order_id=ctx.get("order_id"))
            raise InternalError() from e
        finally:
            ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)

        ecomm_checkout_total.labels(status="success").inc()
        logger.info("checkout_completed", order_id=ctx["order_id"], total_amount=str(order.total_amount))
        return CheckoutResponse(redirect_url=ctx["session"].redirect_url)
