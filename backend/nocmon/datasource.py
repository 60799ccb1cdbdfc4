# backend/nocmon/datasource.py
"""
Read access to the two stores.

Every call checks a connection out of the injected pools, reads, and gives
it back; nothing is cached. Transient failures are retried a fixed number
of times before they reach the caller as FetchError.
"""
import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from sqlalchemy import desc, select, text
from sqlalchemy.exc import InterfaceError, OperationalError, SQLAlchemyError

from .config import settings
from .database import DatabasePools
from .models.access import AccessLog, AccessUser, Door

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

# Connection-level problems worth another attempt
TRANSIENT_ERRORS = (OperationalError, InterfaceError, OSError, asyncio.TimeoutError)

T = TypeVar("T")


class FetchError(Exception):
    """A read failed on every attempt."""


def serialize_value(value: Any) -> Any:
    """Make a column value JSON friendly (timestamps as local-time strings)."""
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


def serialize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    return {key: serialize_value(val) for key, val in row.items()}


class DataSource:
    def __init__(self, pools: DatabasePools,
                 retries: int = settings.QUERY_RETRIES,
                 retry_delay: float = settings.QUERY_RETRY_DELAY):
        self.pools = pools
        self.retries = max(1, retries)
        self.retry_delay = retry_delay

    async def _with_retry(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        for attempt in range(1, self.retries + 1):
            try:
                return await operation()
            except TRANSIENT_ERRORS as e:
                logger.error(f"Error fetching {description} (attempt {attempt}): {e}")
                if attempt == self.retries:
                    raise FetchError(f"Failed to fetch {description}: {e}") from e
                await asyncio.sleep(self.retry_delay)
        raise FetchError(f"Failed to fetch {description}")

    # ------------------------------------------------------------------
    # Main store
    # ------------------------------------------------------------------
    async def latest(self, model) -> Optional[Dict[str, Any]]:
        """Newest row of a telemetry table, or None when the table is empty."""
        stmt = select(model).order_by(desc(model.id)).limit(1)

        async def run():
            async with self.pools.main_connection() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().first()
            return serialize_row(dict(row)) if row is not None else None

        return await self._with_retry(f"latest {model.__tablename__}", run)

    async def series(self, model, since: datetime, columns: Sequence[str],
                     serialize: bool = True) -> List[Dict[str, Any]]:
        """
        Rows with waktu >= since in ascending time order, each shaped as
        {"timestamp": ..., <column>: ...}.
        """
        stmt = (
            select(model.waktu.label("timestamp"), *[getattr(model, c) for c in columns])
            .where(model.waktu >= since)
            .order_by(model.waktu.asc())
        )

        async def run():
            async with self.pools.main_connection() as conn:
                result = await conn.execute(stmt)
                rows = [dict(r) for r in result.mappings().all()]
            return [serialize_row(r) for r in rows] if serialize else rows

        return await self._with_retry(f"{model.__tablename__} series", run)

    async def last_before(self, model, before: datetime, columns: Sequence[str],
                          serialize: bool = True) -> Optional[Dict[str, Any]]:
        """The most recent row strictly older than `before`, same shape as series()."""
        stmt = (
            select(model.waktu.label("timestamp"), *[getattr(model, c) for c in columns])
            .where(model.waktu < before)
            .order_by(model.waktu.desc())
            .limit(1)
        )

        async def run():
            async with self.pools.main_connection() as conn:
                result = await conn.execute(stmt)
                row = result.mappings().first()
            if row is None:
                return None
            return serialize_row(dict(row)) if serialize else dict(row)

        return await self._with_retry(f"{model.__tablename__} prior reading", run)

    async def value_series(self, model, since: datetime, column: str) -> List[Dict[str, Any]]:
        """Single-metric series shaped as {"timestamp", "value"}."""
        rows = await self.series(model, since, [column])
        return [{"timestamp": r["timestamp"], "value": r[column]} for r in rows]

    async def ping(self) -> bool:
        try:
            async with self.pools.main_connection() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Database connection failed: {e}")
            return False

    # ------------------------------------------------------------------
    # Access-control store
    # ------------------------------------------------------------------
    async def access_logs(self, limit: int = settings.ACCESS_LOG_LIMIT) -> List[Dict[str, Any]]:
        """Most recent door events, newest first, joined with user and door names."""
        stmt = (
            select(
                AccessLog.access_time,
                AccessLog.access_granted,
                AccessUser.username,
                Door.door_name,
            )
            .select_from(AccessLog)
            .outerjoin(AccessUser, AccessLog.user_id == AccessUser.user_id)
            .outerjoin(Door, AccessLog.door_id == Door.door_id)
            .order_by(desc(AccessLog.access_time))
            .limit(limit)
        )

        async def run():
            async with self.pools.access_connection() as conn:
                result = await conn.execute(stmt)
                rows = [dict(r) for r in result.mappings().all()]
            for row in rows:
                row["access_granted"] = bool(row["access_granted"])
            return [serialize_row(r) for r in rows]

        return await self._with_retry("access logs", run)
