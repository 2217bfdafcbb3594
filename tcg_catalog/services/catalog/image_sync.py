"""
Image sync: re-dispatch image work for prints that never got it.

Picks up prints whose image dispatch is still pending (for example after a
run with skip_images) or failed, and queues one image task per print.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry
from tcg_catalog.core.errors import ETLError, ETLErrorType
from tcg_catalog.models.card import Card
from tcg_catalog.models.printing import ImageProcessingStatus, Print
from tcg_catalog.services.catalog.images import (
    ImageDispatcher,
    ImageTask,
    dispatch_image_tasks,
    record_image_status,
)
from tcg_catalog.services.catalog.results import ImageSyncResult

logger = structlog.get_logger()

RESYNC_STATUSES = [ImageProcessingStatus.PENDING.value, ImageProcessingStatus.FAILED.value]


class ImageSyncService:
    """Scans a game's prints and dispatches image tasks in batches."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        dispatcher: ImageDispatcher,
        breakers: CircuitBreakerRegistry,
        batch_size: int = 100,
        batch_delay_ms: int = 0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session_maker = session_maker
        self.dispatcher = dispatcher
        self.breakers = breakers
        self.batch_size = batch_size
        self.batch_delay_ms = batch_delay_ms
        self.sleep = sleep

    async def sync_images(
        self,
        game_code: str,
        force_reprocess: bool = False,
        limit: Optional[int] = None,
    ) -> ImageSyncResult:
        """
        Dispatch image tasks for a game's prints.

        Args:
            game_code: Game whose prints are scanned.
            force_reprocess: Dispatch every print, whatever its status.
            limit: Maximum number of prints to scan.
        """
        result = ImageSyncResult()
        last_id = 0

        while limit is None or result.total_prints < limit:
            size = self.batch_size if limit is None else min(self.batch_size, limit - result.total_prints)
            rows = await self._next_batch(game_code, last_id, size, force_reprocess)
            if not rows:
                break
            last_id = rows[-1][0]
            result.total_prints += len(rows)

            tasks: list[ImageTask] = []
            no_image: list[int] = []
            for print_id, images in rows:
                task = ImageTask.for_print(print_id, images)
                if task is None:
                    no_image.append(print_id)
                else:
                    tasks.append(task)

            queued, failed = await dispatch_image_tasks(tasks, self.dispatcher, self.breakers, game_code)
            await record_image_status(self.session_maker, queued, failed, skipped=no_image)

            result.queued += len(queued)
            result.failed += len(failed)
            result.skipped += len(no_image)
            for print_id, message in failed.items():
                if len(result.errors) < 100:
                    result.errors.append(
                        ETLError.of(ETLErrorType.IMAGE_ERROR, message, {"print_id": print_id})
                    )

            logger.info(
                "Image sync batch dispatched",
                game_code=game_code,
                queued=len(queued),
                failed=len(failed),
                skipped=len(no_image),
            )
            if len(rows) < size:
                break
            if self.batch_delay_ms:
                await self.sleep(self.batch_delay_ms / 1000)

        logger.info(
            "Image sync completed",
            game_code=game_code,
            total=result.total_prints,
            queued=result.queued,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result

    async def _next_batch(
        self,
        game_code: str,
        after_id: int,
        size: int,
        force_reprocess: bool,
    ) -> list[tuple[int, Optional[dict[str, str]]]]:
        query = (
            select(Print.id, Print.images)
            .join(Card, Card.id == Print.card_id)
            .where(Card.game_code == game_code, Print.id > after_id)
            .order_by(Print.id)
            .limit(size)
        )
        if not force_reprocess:
            query = query.where(Print.image_processing_status.in_(RESYNC_STATUSES))

        async with self.session_maker() as session:
            rows = await session.execute(query)
            return [(row.id, row.images) for row in rows]
