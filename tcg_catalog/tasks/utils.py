"""
Shared utilities for Celery tasks.

Provides common functions for database session management and async execution.
"""
import asyncio
from typing import Any, Coroutine

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tcg_catalog.core.config import settings


def create_task_session_maker(database_url: str | None = None):
    """
    Create a new async engine and session maker for the current event loop.

    Each task creates its own engine to avoid connection pool conflicts
    between event loops.

    Returns:
        Tuple of (async_sessionmaker, engine). The engine should be disposed
        after use to free resources.
    """
    url = database_url or settings.database_url_computed
    engine_kwargs: dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if url.startswith("postgresql+asyncpg"):
        engine_kwargs.update(
            # One connection per card worker plus headroom for job updates
            pool_size=max(5, settings.etl_concurrency * 2),
            max_overflow=10,
            connect_args={
                "server_settings": {
                    "statement_timeout": "60000",  # 60 second query timeout for tasks
                    "idle_in_transaction_session_timeout": "300000",  # 5 min - auto-terminate idle transactions
                    "application_name": "tcg_catalog_worker",
                },
                "command_timeout": 60,  # asyncpg command timeout (in seconds)
            },
        )

    engine = create_async_engine(url, **engine_kwargs)
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    ), engine


def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """
    Run async function in sync context (for Celery tasks).

    Uses asyncio.run(), which creates a fresh event loop per task and closes
    it afterwards.
    """
    return asyncio.run(coro)
