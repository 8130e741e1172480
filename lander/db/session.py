"""Async database client and FastAPI dependency.

Supports both PostgreSQL (production) and SQLite (local dev, tests).
The client is constructed explicitly at startup and handed around through
``app.state``; nothing here opens a connection at import time.
"""

from collections.abc import AsyncGenerator
from pathlib import Path

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


class Database:
    """Owns the engine and session factory for one process."""

    def __init__(self, url: str, echo: bool = False):
        if url.startswith("sqlite"):
            # Ensure parent dir exists for the .db file
            db_path = url.split("///")[-1]
            if db_path and db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_async_engine(url, echo=echo, connect_args={"check_same_thread": False})
        else:
            self.engine = create_async_engine(url, echo=echo, pool_pre_ping=True)

        self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    def session(self) -> AsyncSession:
        return self.session_factory()

    async def create_all(self) -> None:
        """Create tables directly (SQLite dev mode and tests); PostgreSQL uses Alembic."""
        from lander.models import Base

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency that yields an async database session."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
