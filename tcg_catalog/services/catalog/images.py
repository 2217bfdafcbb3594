"""
Image selection and post-commit image task dispatch.

Each print gets at most one image task: the URL of the best available tier.
Dispatch happens only after the card transaction has committed.
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry, FaultType
from tcg_catalog.core.config import settings
from tcg_catalog.core.constants import IMAGE_PRIORITY, IMAGE_TYPES
from tcg_catalog.core.errors import ImageDispatchError
from tcg_catalog.db.transaction import atomic
from tcg_catalog.models.printing import ImageProcessingStatus, Print

logger = structlog.get_logger()

IMAGE_TASK_NAME = "tcg_catalog.images.process_print_image"


def select_best_image(images: dict[str, str] | None) -> Optional[tuple[str, str]]:
    """
    Pick the highest-priority image tier present.

    Returns:
        (image_type, url), or None when no selectable tier has a URL.
    """
    if not images:
        return None
    for image_type in IMAGE_PRIORITY:
        url = images.get(image_type)
        if url:
            return image_type, url
    return None


def represented_image_types(images: dict[str, str] | None) -> list[str]:
    """Known image tiers present on a print, in priority order."""
    if not images:
        return []
    return [t for t in IMAGE_TYPES if images.get(t)]


@dataclass(frozen=True)
class ImageTask:
    """Payload of one image processing message."""
    print_id: int
    selected_image_url: str
    selected_image_type: str
    image_types_represented: tuple[str, ...]

    @classmethod
    def for_print(cls, print_id: int, images: dict[str, str] | None) -> Optional["ImageTask"]:
        best = select_best_image(images)
        if best is None:
            return None
        image_type, url = best
        return cls(
            print_id=print_id,
            selected_image_url=url,
            selected_image_type=image_type,
            image_types_represented=tuple(represented_image_types(images)),
        )

    def to_payload(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["image_types_represented"] = list(self.image_types_represented)
        return payload


class ImageDispatcher(ABC):
    """Hands image tasks to whatever processes them."""

    @abstractmethod
    async def dispatch(self, task: ImageTask) -> None:
        """
        Enqueue one image task.

        Raises:
            ImageDispatchError: If the task could not be enqueued.
        """
        pass


class CeleryImageDispatcher(ImageDispatcher):
    """Sends image tasks to the image-processing Celery queue by task name."""

    def __init__(self, celery_app=None, queue: str | None = None, task_name: str = IMAGE_TASK_NAME):
        if celery_app is None:
            from tcg_catalog.tasks.celery_app import celery_app
        self.celery_app = celery_app
        self.queue = queue or settings.image_queue_name
        self.task_name = task_name

    async def dispatch(self, task: ImageTask) -> None:
        try:
            # send_task blocks on the broker connection
            await asyncio.to_thread(
                self.celery_app.send_task,
                self.task_name,
                kwargs=task.to_payload(),
                queue=self.queue,
            )
        except Exception as e:
            raise ImageDispatchError(
                f"Failed to queue image task for print {task.print_id}: {e}"
            ) from e

        logger.debug(
            "Image task queued",
            print_id=task.print_id,
            image_type=task.selected_image_type,
            queue=self.queue,
        )


async def dispatch_image_tasks(
    tasks: list[ImageTask],
    dispatcher: ImageDispatcher,
    breakers: CircuitBreakerRegistry,
    scope: str,
) -> tuple[list[int], dict[int, str]]:
    """
    Dispatch image tasks through the image processing breaker.

    Returns:
        (queued print ids, {failed print id: error message}).
    """
    queued: list[int] = []
    failed: dict[int, str] = {}

    for task in tasks:
        if not breakers.admit(scope, FaultType.IMAGE_PROCESSING):
            failed[task.print_id] = "Image dispatch skipped: image processing circuit open"
            continue
        try:
            await dispatcher.dispatch(task)
        except ImageDispatchError as e:
            breakers.record_failure(scope, FaultType.IMAGE_PROCESSING, e)
            failed[task.print_id] = str(e)
            logger.warning("Image dispatch failed", print_id=task.print_id, error=str(e))
        else:
            breakers.record_success(scope, FaultType.IMAGE_PROCESSING)
            queued.append(task.print_id)

    return queued, failed


async def record_image_status(
    session_maker: async_sessionmaker[AsyncSession],
    queued: list[int],
    failed: dict[int, str],
    skipped: list[int] | None = None,
) -> None:
    """
    Write image dispatch outcomes onto print rows.

    Best effort: the catalog data is already committed, so a failure here is
    logged and otherwise ignored.
    """
    if not queued and not failed and not skipped:
        return
    try:
        async with session_maker() as session:
            async with atomic(session, "image status"):
                if queued:
                    await session.execute(
                        update(Print)
                        .where(Print.id.in_(queued))
                        .values(
                            image_processing_status=ImageProcessingStatus.QUEUED.value,
                            image_processing_error=None,
                            image_queued_at=datetime.now(timezone.utc),
                        )
                    )
                if skipped:
                    await session.execute(
                        update(Print)
                        .where(Print.id.in_(skipped))
                        .values(image_processing_status=ImageProcessingStatus.SKIPPED.value)
                    )
                for print_id, message in failed.items():
                    await session.execute(
                        update(Print)
                        .where(Print.id == print_id)
                        .values(
                            image_processing_status=ImageProcessingStatus.FAILED.value,
                            image_processing_error=message[:2000],
                        )
                    )
    except SQLAlchemyError as e:
        logger.warning(
            "Failed to record image dispatch status",
            queued=len(queued),
            failed=len(failed),
            error=str(e),
        )
