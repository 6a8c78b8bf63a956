"""
Store handle. The engine is no longer created at import time: the app
lifespan builds a Database, calls connect() before serving and close() on
shutdown, and keeps it on app.state for the get_db dependency.
"""
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Database:
    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.engine = create_async_engine(url, echo=echo)
        self.session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def connect(self, create_tables: bool = True) -> None:
        # IMPORTANT: models must be imported before this so they register with Base
        async with self.engine.begin() as conn:
            if create_tables:
                await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self.engine.dispose()

    def session(self) -> AsyncSession:
        return self.session_factory()


async def get_db(request: Request):
    database: Database = request.app.state.db
    async with database.session() as session:
        yield session
