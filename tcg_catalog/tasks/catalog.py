"""
Celery tasks for catalog ETL runs.

Each task runs one async ETL entry point on a fresh event loop with its own
engine. The breaker registry is module level, so breaker state is shared by
every task a worker process runs and resets when the worker restarts.
"""
from typing import Any, Optional

import structlog
from celery import shared_task

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry
from tcg_catalog.core.config import settings
from tcg_catalog.core.logging import clear_job_context, setup_logging
from tcg_catalog.services.catalog.service import ETLService
from tcg_catalog.tasks.error_handlers import TaskWithDLQ
from tcg_catalog.tasks.utils import create_task_session_maker, run_async

logger = structlog.get_logger()

_breakers = CircuitBreakerRegistry()


def get_worker_breakers() -> CircuitBreakerRegistry:
    return _breakers


@shared_task(
    name="tcg_catalog.etl.run_catalog_etl",
    base=TaskWithDLQ,
    bind=True,
    max_retries=2,
    default_retry_delay=600,
)
def run_catalog_etl(
    self,
    game_code: str,
    job_type: str = "full_sync",
    limit: Optional[int] = None,
    triggered_by: str = "manual",
) -> dict[str, Any]:
    """
    Run one ETL job for a game.

    Fetch failures are retried by Celery; each retry is a new job row.

    Returns:
        Job summary (status, counters, duration).
    """
    setup_logging()
    try:
        return run_async(_run_catalog_etl_async(game_code, job_type, limit, triggered_by))
    except Exception as e:
        logger.exception("Catalog ETL task failed", game_code=game_code, job_type=job_type, error=str(e))
        raise self.retry(exc=e)


async def _run_catalog_etl_async(
    game_code: str,
    job_type: str,
    limit: Optional[int],
    triggered_by: str,
) -> dict[str, Any]:
    session_maker, engine = create_task_session_maker()
    try:
        service = ETLService(session_maker, breakers=get_worker_breakers())
        result = await service.start_job(game_code, job_type, triggered_by=triggered_by, limit=limit)
        return result.to_dict()
    finally:
        clear_job_context()
        await engine.dispose()


@shared_task(name="tcg_catalog.etl.sync_scheduled_games")
def sync_scheduled_games() -> dict[str, Any]:
    """
    Queue an incremental sync for every scheduled game.

    Runs daily via celery beat.
    """
    setup_logging()
    queued = []
    for game_code in settings.etl_scheduled_games:
        run_catalog_etl.delay(game_code, "incremental_sync", triggered_by="schedule")
        queued.append(game_code)
    logger.info("Scheduled catalog syncs queued", games=queued)
    return {"queued": queued}


@shared_task(
    name="tcg_catalog.etl.sync_images",
    base=TaskWithDLQ,
    bind=True,
    max_retries=1,
    default_retry_delay=300,
)
def sync_images(self, game_code: Optional[str] = None) -> dict[str, Any]:
    """Run image sync jobs for one game, or for every scheduled game."""
    setup_logging()
    try:
        return run_async(_sync_images_async(game_code))
    except Exception as e:
        logger.exception("Image sync task failed", game_code=game_code, error=str(e))
        raise self.retry(exc=e)


async def _sync_images_async(game_code: Optional[str]) -> dict[str, Any]:
    session_maker, engine = create_task_session_maker()
    try:
        service = ETLService(session_maker, breakers=get_worker_breakers())
        games = [game_code] if game_code else None
        results = await service.sync_all_images(games)
        return {"jobs": [r.to_dict() for r in results]}
    finally:
        clear_job_context()
        await engine.dispose()


@shared_task(name="tcg_catalog.etl.cancel_job")
def cancel_etl_job(job_id: int) -> dict[str, Any]:
    """Flag a job for cancellation; its worker stops at the next batch boundary."""
    return run_async(_cancel_etl_job_async(job_id))


async def _cancel_etl_job_async(job_id: int) -> dict[str, Any]:
    session_maker, engine = create_task_session_maker()
    try:
        service = ETLService(session_maker, breakers=get_worker_breakers())
        requested = await service.cancel_job(job_id)
        return {"job_id": job_id, "cancel_requested": requested}
    finally:
        await engine.dispose()
