"""
ETL service: drives one ingestion run from job creation to finalization.

    create job -> game-level breaker -> adapter fetch -> batches -> finalize

The game-level breaker guards job start: a game whose runs keep dying is not
fetched again until the breaker lets a trial run through.
"""
import asyncio
import time
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry, FaultType
from tcg_catalog.core.config import settings
from tcg_catalog.core.errors import ETLError, ETLErrorType, ETLException
from tcg_catalog.core.logging import bind_job_context
from tcg_catalog.models.etl_job import ETLJobStatus, ETLJobType
from tcg_catalog.services.catalog.batch import run_batch
from tcg_catalog.services.catalog.context import ETLConfig, JobContext
from tcg_catalog.services.catalog.image_sync import ImageSyncService
from tcg_catalog.services.catalog.images import CeleryImageDispatcher, ImageDispatcher
from tcg_catalog.services.catalog.jobs import JobManager
from tcg_catalog.services.catalog.results import BatchImportResult, ETLResult, ImageSyncResult
from tcg_catalog.services.ingestion.base import SourceAdapter
from tcg_catalog.services.ingestion.registry import get_adapter_for_game

logger = structlog.get_logger()


class ETLService:
    """
    Runs ETL jobs for one process.

    The breaker registry lives as long as the service, so breaker state
    carries across the jobs it runs.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        image_dispatcher: Optional[ImageDispatcher] = None,
        breakers: Optional[CircuitBreakerRegistry] = None,
        config: Optional[ETLConfig] = None,
        adapter_factory: Callable[[str], SourceAdapter] = get_adapter_for_game,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.session_maker = session_maker
        self.image_dispatcher = image_dispatcher or CeleryImageDispatcher()
        self.breakers = breakers or CircuitBreakerRegistry()
        self.config = config
        self.adapter_factory = adapter_factory
        self.sleep = sleep
        self.jobs = JobManager(session_maker)
        self._running: dict[int, JobContext] = {}

    async def start_job(
        self,
        game_code: str,
        job_type: ETLJobType | str = ETLJobType.FULL_SYNC,
        triggered_by: str = "manual",
        limit: Optional[int] = None,
    ) -> ETLResult:
        """
        Run one ETL job to completion.

        Returns:
            ETLResult with the job's terminal status.

        Raises:
            Exception: Whatever the adapter raised when fetching failed. The
                job is marked failed before the exception propagates.
        """
        game_code = game_code.upper()
        job_type = ETLJobType(job_type)
        config = self.config or ETLConfig.from_settings()
        started = time.monotonic()

        job = await self.jobs.create_job(game_code, job_type, config, triggered_by)
        bind_job_context(job.id, game_code, job_type.value)

        if not self.breakers.admit(game_code, FaultType.GAME_LEVEL):
            error = ETLError.of(
                ETLErrorType.API_ERROR,
                f"Circuit breaker open for {game_code}, job not started",
                {"fault_type": FaultType.GAME_LEVEL.value},
            )
            await self.jobs.fail_job(job.id, error, circuit_breaker_open=True)
            logger.warning("ETL job refused by game circuit breaker", job_id=job.id)
            return ETLResult(
                job_id=job.id,
                game_code=game_code,
                job_type=job_type.value,
                status=ETLJobStatus.FAILED,
                error=error,
                circuit_breaker_open=True,
                duration_ms=self._elapsed(started),
            )

        if job_type == ETLJobType.IMAGE_SYNC:
            return await self._run_image_sync(job.id, game_code, config, started)

        cards = await self._fetch(job.id, game_code, job_type, limit, started)
        await self.jobs.set_total(job.id, len(cards))
        logger.info("Fetched cards for ETL job", job_id=job.id, cards=len(cards))

        ctx = JobContext(
            job_id=job.id,
            game_code=game_code,
            job_type=job_type.value,
            config=config,
            session_maker=self.session_maker,
            breakers=self.breakers,
            image_dispatcher=self.image_dispatcher,
            job_manager=self.jobs,
            sleep=self.sleep,
        )
        self._running[job.id] = ctx
        try:
            batch = await run_batch(cards, ctx)
        except Exception as e:
            error = ETLError.of(ETLErrorType.DATABASE_ERROR, f"ETL run aborted: {e}")
            await self.jobs.fail_job(job.id, error, duration_ms=self._elapsed(started))
            self.breakers.record_failure(game_code, FaultType.GAME_LEVEL, e)
            raise
        finally:
            self._running.pop(job.id, None)

        status = await self.jobs.complete_job(job.id, batch, self._elapsed(started))
        if status == ETLJobStatus.FAILED:
            self.breakers.record_failure(game_code, FaultType.GAME_LEVEL, "All cards failed")
        else:
            self.breakers.record_success(game_code, FaultType.GAME_LEVEL)

        return ETLResult(
            job_id=job.id,
            game_code=game_code,
            job_type=job_type.value,
            status=status,
            batch=batch,
            duration_ms=self._elapsed(started),
        )

    async def _fetch(
        self,
        job_id: int,
        game_code: str,
        job_type: ETLJobType,
        limit: Optional[int],
        started: float,
    ) -> list:
        adapter: Optional[SourceAdapter] = None
        try:
            adapter = self.adapter_factory(game_code)
            return await adapter.fetch_cards(game_code, job_type.value, limit)
        except Exception as e:
            if isinstance(e, ETLException):
                error = e.to_error({"game_code": game_code})
            else:
                error = ETLError.of(
                    ETLErrorType.API_ERROR,
                    f"Failed to fetch cards for {game_code}: {e}",
                    {"game_code": game_code, "error_class": type(e).__name__},
                )
            await self.jobs.fail_job(job_id, error, duration_ms=self._elapsed(started))
            self.breakers.record_failure(game_code, FaultType.GAME_LEVEL, e)
            raise
        finally:
            if adapter is not None:
                await adapter.close()

    async def _run_image_sync(
        self,
        job_id: int,
        game_code: str,
        config: ETLConfig,
        started: float,
    ) -> ETLResult:
        image_sync = ImageSyncService(
            self.session_maker,
            self.image_dispatcher,
            self.breakers,
            batch_size=config.batch_size,
            batch_delay_ms=config.rate_limit_delay_ms,
            sleep=self.sleep,
        )
        sync = await image_sync.sync_images(game_code, force_reprocess=config.force_update)
        batch = self._image_sync_batch(sync)
        await self.jobs.set_total(job_id, sync.total_prints)
        status = await self.jobs.complete_job(job_id, batch, self._elapsed(started))
        if status == ETLJobStatus.FAILED:
            self.breakers.record_failure(game_code, FaultType.GAME_LEVEL, "All image dispatches failed")
        else:
            self.breakers.record_success(game_code, FaultType.GAME_LEVEL)

        return ETLResult(
            job_id=job_id,
            game_code=game_code,
            job_type=ETLJobType.IMAGE_SYNC.value,
            status=status,
            batch=batch,
            duration_ms=self._elapsed(started),
            details={"images_failed": sync.failed, "images_skipped": sync.skipped},
        )

    @staticmethod
    def _image_sync_batch(sync: ImageSyncResult) -> BatchImportResult:
        """Express an image sync pass in the job's record counters."""
        return BatchImportResult(
            total_cards=sync.total_prints,
            processed_cards=sync.total_prints,
            successful_cards=sync.queued + sync.skipped,
            failed_cards=sync.failed,
            skipped_cards=sync.skipped,
            images_queued=sync.queued,
            errors=list(sync.errors),
        )

    async def cancel_job(self, job_id: int) -> bool:
        """Request cancellation; a run in this process stops at the next batch."""
        requested = await self.jobs.cancel_job(job_id)
        ctx = self._running.get(job_id)
        if ctx is not None:
            ctx.cancel_event.set()
        return requested

    async def sync_game(
        self,
        game_code: str,
        job_type: ETLJobType | str = ETLJobType.INCREMENTAL_SYNC,
        limit: Optional[int] = None,
    ) -> ETLResult:
        return await self.start_job(game_code, job_type, triggered_by="schedule", limit=limit)

    async def sync_all_images(self, game_codes: Optional[list[str]] = None) -> list[ETLResult]:
        """Run an image sync job for each game, one after another."""
        results = []
        for game_code in game_codes or settings.etl_scheduled_games:
            results.append(
                await self.start_job(game_code, ETLJobType.IMAGE_SYNC, triggered_by="schedule")
            )
        return results

    @staticmethod
    def _elapsed(started: float) -> int:
        return int((time.monotonic() - started) * 1000)
