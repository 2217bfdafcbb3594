"""
Transaction boundary for catalog writes.

A card import touches the card, its prints and every SKU; all of it must
land together or not at all.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


@asynccontextmanager
async def atomic(db: AsyncSession, operation: str = "transaction") -> AsyncGenerator[AsyncSession, None]:
    """
    Commit everything done in the block, or roll all of it back.

    Usage:
        async with atomic(session, "card import"):
            session.add(card)
            session.add(print_)

    Args:
        db: SQLAlchemy async session
        operation: Label used in the rollback log line

    Raises:
        Exception: Re-raises whatever the block raised, after rollback
    """
    try:
        yield db
        await db.commit()
    except IntegrityError as e:
        # Unique-key races are expected under concurrency; callers decide
        await db.rollback()
        logger.info("Transaction rolled back on constraint conflict", operation=operation, error=str(e.orig))
        raise
    except Exception as e:
        await db.rollback()
        logger.error("Transaction rolled back", operation=operation, error=str(e), exc_info=True)
        raise
