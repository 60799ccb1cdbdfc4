# backend/nocmon/crud.py
from typing import Any, Mapping, Optional

from sqlalchemy import select

from .database import DatabasePools
from .models.telemetry import User

async def get_user_by_username(pools: DatabasePools, username: str) -> Optional[Mapping[str, Any]]:
    async with pools.main_connection() as conn:
        result = await conn.execute(
            select(User.id, User.username, User.password).where(User.username == username)
        )
        return result.mappings().first()
