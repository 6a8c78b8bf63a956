from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import Dispatcher


class DispatcherRepository:

    @staticmethod
    async def create(db: AsyncSession, dispatcher: Dispatcher) -> Dispatcher:
        db.add(dispatcher)
        await db.commit()
        await db.refresh(dispatcher)
        return dispatcher

    @staticmethod
    async def get_by_username(db: AsyncSession, username: str) -> Optional[Dispatcher]:
        result = await db.execute(select(Dispatcher).where(Dispatcher.username == username))
        return result.scalars().first()
