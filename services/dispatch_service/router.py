from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.config.settings import Settings, get_settings
from shared.security import CurrentDispatcher, get_current_dispatcher
from services.order_service.schemas import OrderResponse

from .schemas import DispatchQueue, ExpireReservationsRequest, ExpireReservationsResponse, ShipRequest
from .service import DispatchService, ReservationSweeper

# Every dispatch route requires a dispatcher token
router = APIRouter(
    prefix="/dispatch",
    tags=["Dispatch"],
    dependencies=[Depends(get_current_dispatcher)],
)


@router.get("/orders", response_model=list[OrderResponse])
async def list_orders(
    status: DispatchQueue = Query(default=DispatchQueue.PENDING),
    db: AsyncSession = Depends(get_db),
):
    return await DispatchService.list_orders(db, status)


@router.patch("/orders/{order_id}/ship", response_model=OrderResponse)
async def ship_order(
    order_id: str,
    payload: Optional[ShipRequest] = None,
    db: AsyncSession = Depends(get_db),
    dispatcher: CurrentDispatcher = Depends(get_current_dispatcher),
):
    return await DispatchService.dispatch(db, order_id, payload.tracking_number if payload else None, dispatcher.username)


@router.patch("/orders/{order_id}/unship", response_model=OrderResponse)
async def unship_order(
    order_id: str,
    db: AsyncSession = Depends(get_db),
    dispatcher: CurrentDispatcher = Depends(get_current_dispatcher),
):
    return await DispatchService.unship(db, order_id, dispatcher.username)


@router.post("/reservations/expire", response_model=ExpireReservationsResponse)
async def expire_reservations(
    payload: Optional[ExpireReservationsRequest] = None,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    minutes = (payload and payload.older_than_minutes) or settings.reservation_ttl_minutes
    expired = await ReservationSweeper.expire_stale_reservations(db, minutes)
    return ExpireReservationsResponse(expired_order_ids=expired)
