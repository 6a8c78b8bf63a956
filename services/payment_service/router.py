from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db

from .gateway import PaymentGateway, get_gateway
from .reconciliation import PaymentNotification, ReconciliationService

router = APIRouter(tags=["Payments"])


# The gateway retries on anything but 2xx, so this always acknowledges
@router.post("/payment-notifications", status_code=200)
async def payment_notification(
    request: Request,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    try:
        body = await request.json()
    except ValueError:
        body = None
    notification = PaymentNotification.from_request(request.query_params, body)
    await ReconciliationService.handle_notification(db, gateway, notification)
    return {"status": "received"}
