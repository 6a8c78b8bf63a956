from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.config.settings import Settings, get_settings
from shared.security import checkout_key, limit_from_key, limiter
from services.orchestrator.service import CheckoutService
from services.payment_service.gateway import PaymentGateway, get_gateway

from .schemas import CheckoutResponse, OrderCreate, OrderStatusResponse
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.post(
    "",
    response_model=CheckoutResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Reserve stock, create the order and return the hosted checkout URL",
)
@limiter.limit(limit_from_key, key_func=checkout_key)
async def create_order(
    request: Request,                      # REQUIRED: slowapi needs this to check IP/Headers
    payload: OrderCreate,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    return await CheckoutService.create_order(db, gateway, settings, payload)


@router.get("/{order_id}", response_model=OrderStatusResponse)
async def get_order_status(order_id: str, db: AsyncSession = Depends(get_db)):
    return await OrderService.get_status(db, order_id)
