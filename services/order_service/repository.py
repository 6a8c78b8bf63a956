from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Employee, Order, RESERVED_STATUSES


class OrderRepository:

    @staticmethod
    async def add(db: AsyncSession, order: Order) -> Order:
        db.add(order)
        await db.flush()
        return order

    @staticmethod
    async def get(db: AsyncSession, order_id: str, for_update: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def get_with_agent(db: AsyncSession, order_id: str) -> Optional[tuple[Order, Optional[str]]]:
        stmt = (
            select(Order, Employee.name)
            .outerjoin(Employee, Employee.referral_code == Order.referral_code)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    @staticmethod
    async def list_with_agent(db: AsyncSession, status: str, newest_first_by) -> list[tuple[Order, Optional[str]]]:
        stmt = (
            select(Order, Employee.name)
            .outerjoin(Employee, Employee.referral_code == Order.referral_code)
            .where(Order.status == status)
            .order_by(newest_first_by.desc(), Order.created_at.desc())
        )
        result = await db.execute(stmt)
        return [(row[0], row[1]) for row in result.all()]

    @staticmethod
    async def transition(db: AsyncSession, order_id: str, from_statuses, values: dict) -> bool:
        """
        Compare-and-swap on status: applies `values` only while the order is
        still in one of `from_statuses`. Returns whether the row was updated.
        """
        if isinstance(from_statuses, str):
            from_statuses = (from_statuses,)
        values = {**values, "updated_at": datetime.now(timezone.utc)}
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .where(Order.status.in_(from_statuses))
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def set_preference_id(db: AsyncSession, order_id: str, preference_id: str) -> None:
        stmt = (
            update(Order)
            .where(Order.id == order_id)
            .values(external_preference_id=preference_id, updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)

    @staticmethod
    async def find_stale_reservations(db: AsyncSession, created_before: datetime) -> list[str]:
        stmt = (
            select(Order.id)
            .where(Order.status.in_(RESERVED_STATUSES))
            .where(Order.external_payment_id.is_(None))
            .where(Order.created_at < created_before)
            .order_by(Order.created_at)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())
