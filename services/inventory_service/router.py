from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db
from shared.security import CurrentDispatcher, get_current_dispatcher

from .schemas import StockLookupRequest, StockResponse, StockUpdate
from .service import InventoryService

router = APIRouter(prefix="/inventory", tags=["Inventory"])


@router.post("/stock-lookup", response_model=dict[str, int])
async def stock_lookup(payload: StockLookupRequest, db: AsyncSession = Depends(get_db)):
    return await InventoryService.lookup(db, payload.product_ids)


@router.put("/{product_id}/stock", response_model=StockResponse)
async def update_stock(
    product_id: str,
    payload: StockUpdate,
    db: AsyncSession = Depends(get_db),
    dispatcher: CurrentDispatcher = Depends(get_current_dispatcher),
):
    return await InventoryService.set_stock(db, product_id, payload.new_stock, dispatcher.username)
