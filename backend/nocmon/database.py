# backend/nocmon/database.py
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import Settings, settings

logger = logging.getLogger(__name__)

# 1. MAIN STORE (sensor tables, electrical, fire/smoke, users)
BaseMain = declarative_base()

# 2. ACCESS-CONTROL STORE (access_logs, users, doors)
BaseAccess = declarative_base()


class DatabaseUnavailable(RuntimeError):
    """The main pool could not be established after all retries."""


def create_pool(url: str, pool_size: int) -> AsyncEngine:
    kwargs = {}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=pool_size,
            max_overflow=0,  # hard upper bound, callers queue for a free connection
        )
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,  # reconnect transparently after a dropped link
        **kwargs,
    )


class DatabasePools:
    """
    Both connection pools, built once at startup and handed to every
    component that talks to a store.
    """

    def __init__(self, main_url: str, access_url: str,
                 main_pool_size: int = 10, access_pool_size: int = 5):
        self.main = create_pool(main_url, main_pool_size)
        self.access = create_pool(access_url, access_pool_size)

    @classmethod
    def from_settings(cls, cfg: Settings = settings) -> "DatabasePools":
        return cls(
            cfg.MAIN_DB_URL,
            cfg.ACCESS_DB_URL,
            main_pool_size=cfg.DB_POOL_SIZE,
            access_pool_size=cfg.ACCESS_DB_POOL_SIZE,
        )

    async def connect(self, retries: int = 5, delay: float = 5.0) -> None:
        """Check out one connection from the main pool, retrying on failure."""
        for attempt in range(1, retries + 1):
            try:
                async with self.main.connect() as conn:
                    await conn.execute(text("SELECT 1"))
                logger.info("✓ Database connection successful")
                return
            except (SQLAlchemyError, OSError) as e:
                logger.error(f"Database connection attempt {attempt} failed: {e}")
                if attempt < retries:
                    logger.info(f"Retrying in {delay:g} seconds...")
                    await asyncio.sleep(delay)

        raise DatabaseUnavailable(f"Failed to connect to database after {retries} attempts")

    @asynccontextmanager
    async def main_connection(self) -> AsyncIterator[AsyncConnection]:
        async with self.main.connect() as conn:
            yield conn

    @asynccontextmanager
    async def access_connection(self) -> AsyncIterator[AsyncConnection]:
        async with self.access.connect() as conn:
            yield conn

    async def dispose(self) -> None:
        await self.main.dispose()
        await self.access.dispose()
