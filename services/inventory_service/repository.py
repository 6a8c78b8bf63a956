"""
Inventory ledger. Every stock movement is a single conditional statement
against the row; there is no read-then-write anywhere in this module.
None of these methods commit: the caller owns the transaction.
"""
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from .models import InventoryItem


def _upsert_insert(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert
    if dialect == "sqlite":
        return sqlite_insert
    raise RuntimeError(f"Unsupported database dialect for inventory upserts: {dialect}")


class InventoryRepository:

    @staticmethod
    async def get_stock(db: AsyncSession, product_id: str) -> int:
        result = await db.execute(
            select(InventoryItem.stock).where(InventoryItem.product_id == product_id)
        )
        stock = result.scalar_one_or_none()
        return stock if stock is not None else 0

    @staticmethod
    async def get_stock_many(db: AsyncSession, product_ids: list[str]) -> dict[str, int]:
        if not product_ids:
            return {}
        result = await db.execute(
            select(InventoryItem.product_id, InventoryItem.stock)
            .where(InventoryItem.product_id.in_(product_ids))
        )
        found = {row.product_id: row.stock for row in result}
        return {pid: found.get(pid, 0) for pid in product_ids}

    @staticmethod
    async def reserve(db: AsyncSession, product_id: str, quantity: int) -> bool:
        """Decrements stock iff stock >= quantity. False means insufficient stock."""
        stmt = (
            update(InventoryItem)
            .where(InventoryItem.product_id == product_id)
            .where(InventoryItem.stock >= quantity)
            .values(
                stock=InventoryItem.stock - quantity,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def release(db: AsyncSession, product_id: str, quantity: int) -> None:
        """Increments stock, creating the record when it does not exist yet."""
        now = datetime.now(timezone.utc)
        insert = _upsert_insert(db)
        stmt = insert(InventoryItem).values(product_id=product_id, stock=quantity, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[InventoryItem.product_id],
            set_={"stock": InventoryItem.stock + quantity, "updated_at": now},
        )
        await db.execute(stmt)

    @staticmethod
    async def set_stock(db: AsyncSession, product_id: str, new_stock: int) -> None:
        now = datetime.now(timezone.utc)
        insert = _upsert_insert(db)
        stmt = insert(InventoryItem).values(product_id=product_id, stock=new_stock, updated_at=now)
        stmt = stmt.on_conflict_do_update(
            index_elements=[InventoryItem.product_id],
            set_={"stock": new_stock, "updated_at": now},
        )
        await db.execute(stmt)
