import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from .repository import InventoryRepository
from .schemas import StockResponse

logger = structlog.get_logger(__name__)


class InventoryService:

    @staticmethod
    async def lookup(db: AsyncSession, product_ids: list[str]) -> dict[str, int]:
        # Duplicate ids collapse into one key; order of first appearance is kept
        unique_ids = list(dict.fromkeys(product_ids))
        return await InventoryRepository.get_stock_many(db, unique_ids)

    @staticmethod
    async def set_stock(db: AsyncSession, product_id: str, new_stock: int, changed_by: str) -> StockResponse:
        async with db.begin():
            await InventoryRepository.set_stock(db, product_id, new_stock)
        logger.info("stock_set", product_id=product_id, stock=new_stock, changed_by=changed_by)
        return StockResponse(product_id=product_id, stock=new_stock)
