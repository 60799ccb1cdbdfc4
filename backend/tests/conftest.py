"""
Pytest configuration and fixtures for NOC Monitor tests.
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta
from pathlib import Path
from types import SimpleNamespace

import pytest

# Add backend/ to path for imports
BACKEND_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(BACKEND_ROOT))

# Must be set before nocmon.config is imported
os.environ["LOG_FILE"] = ""
os.environ["SECRET_KEY"] = "test-secret"
os.environ["BROADCAST_INTERVAL_SECONDS"] = "3600"
os.environ["QUERY_RETRY_DELAY"] = "0"
os.environ["DB_CONNECT_DELAY"] = "0"

from sqlalchemy import insert  # noqa: E402

from nocmon.database import BaseAccess, BaseMain, DatabasePools  # noqa: E402
from nocmon.history import local_now  # noqa: E402


async def _with_pools(factory, fn):
    pools = factory()
    try:
        return await fn(pools)
    finally:
        await pools.dispose()


async def _insert(pools, model, rows):
    engine = pools.access if model.metadata is BaseAccess.metadata else pools.main
    async with engine.begin() as conn:
        await conn.execute(insert(model), rows)


@pytest.fixture
def db(tmp_path):
    """
    Two empty SQLite stores with the production schema.

    db.factory() builds a fresh DatabasePools; db.run(fn) runs `await fn(pools)`
    on a private event loop and disposes the pools afterwards.
    """
    main_url = f"sqlite+aiosqlite:///{tmp_path / 'main.db'}"
    access_url = f"sqlite+aiosqlite:///{tmp_path / 'access.db'}"

    def factory():
        return DatabasePools(main_url, access_url)

    async def create_schema(pools):
        async with pools.main.begin() as conn:
            await conn.run_sync(BaseMain.metadata.create_all)
        async with pools.access.begin() as conn:
            await conn.run_sync(BaseAccess.metadata.create_all)

    def run(fn):
        return asyncio.run(_with_pools(factory, fn))

    def seed(model, rows):
        run(lambda pools: _insert(pools, model, rows))

    run(create_schema)
    return SimpleNamespace(factory=factory, run=run, seed=seed, main_url=main_url, access_url=access_url)


@pytest.fixture
def now():
    """Current local time truncated to the second."""
    return local_now().replace(microsecond=0)


@pytest.fixture
def ago(now):
    def _ago(**delta) -> datetime:
        return now - timedelta(**delta)
    return _ago
