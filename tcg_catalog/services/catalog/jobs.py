"""
ETL job lifecycle.

pending -> running -> completed | partial | failed | cancelled, plus
pending -> failed / cancelled for runs that die or are cancelled before the
first progress write. Every write is a conditional UPDATE, so terminal rows
are never rewritten and progress never moves backwards.
"""
from datetime import datetime, timezone
from typing import Any, Optional

import structlog
from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcg_catalog.core.errors import ETLError
from tcg_catalog.db.transaction import atomic
from tcg_catalog.models.etl_job import (
    ETLJob,
    ETLJobStatus,
    ETLJobType,
)
from tcg_catalog.services.catalog.context import ETLConfig
from tcg_catalog.services.catalog.results import BatchImportResult

logger = structlog.get_logger()

_OPEN_STATUSES = [ETLJobStatus.PENDING.value, ETLJobStatus.RUNNING.value]


def _elapsed_ms(start: Optional[datetime], end: datetime) -> Optional[int]:
    if start is None:
        return None
    # SQLite hands back naive datetimes
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    return max(0, int((end - start).total_seconds() * 1000))


def status_for_result(result: BatchImportResult) -> ETLJobStatus:
    """Terminal status implied by a finished run's card counts."""
    if result.cancelled:
        return ETLJobStatus.CANCELLED
    if result.all_failed:
        return ETLJobStatus.FAILED
    if result.failed_cards:
        return ETLJobStatus.PARTIAL
    return ETLJobStatus.COMPLETED


def _result_values(result: BatchImportResult) -> dict[str, Any]:
    return {
        "successful_records": result.successful_cards,
        "failed_records": result.failed_cards,
        "skipped_records": result.skipped_cards,
        "cards_created": result.cards_created,
        "cards_updated": result.cards_updated,
        "cards_skipped": result.skipped_cards,
        "prints_created": result.prints_created,
        "prints_updated": result.prints_updated,
        "skus_generated": result.skus_generated,
        "images_queued": result.images_queued,
        "errors": [e.to_dict() for e in result.errors] or None,
    }


class JobManager:
    """
    Owns every write to ETL job rows.

    Usage:
        jobs = JobManager(session_maker)
        job = await jobs.create_job("MTG", ETLJobType.FULL_SYNC, config)
        await jobs.update_progress(job.id, 100, 1000)
        await jobs.complete_job(job.id, batch_result)
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker

    async def create_job(
        self,
        game_code: str,
        job_type: ETLJobType | str,
        config: ETLConfig | dict[str, Any] | None = None,
        triggered_by: str = "manual",
    ) -> ETLJob:
        if isinstance(config, ETLConfig):
            config = config.to_dict()

        async with self.session_maker() as session:
            async with atomic(session, "create job"):
                job = ETLJob(
                    game_code=game_code,
                    job_type=ETLJobType(job_type).value,
                    status=ETLJobStatus.PENDING.value,
                    triggered_by=triggered_by,
                    config=config,
                )
                session.add(job)
                await session.flush()

        logger.info("ETL job created", job_id=job.id, game_code=game_code, job_type=job.job_type)
        return job

    async def get_job(self, job_id: int) -> Optional[ETLJob]:
        async with self.session_maker() as session:
            return await session.get(ETLJob, job_id)

    async def _update(self, job_id: int, *conditions, **values) -> bool:
        async with self.session_maker() as session:
            async with atomic(session, "update job"):
                result = await session.execute(
                    update(ETLJob)
                    .where(ETLJob.id == job_id, *conditions)
                    .values(**values)
                    .execution_options(synchronize_session=False)
                )
        return result.rowcount > 0

    async def set_total(self, job_id: int, total: int) -> bool:
        """Record the number of cards fetched. Never lowers the total."""
        return await self._update(
            job_id,
            ETLJob.status.in_(_OPEN_STATUSES),
            ETLJob.total_records <= total,
            total_records=total,
        )

    async def update_progress(self, job_id: int, processed: int, total: Optional[int] = None) -> bool:
        """
        Record processed cards. The first call moves the job to running.

        Stale or repeated values are ignored, so callers may report out of
        order. Returns True if the row changed.
        """
        values: dict[str, Any] = {
            "processed_records": processed,
            "status": ETLJobStatus.RUNNING.value,
            "started_at": func.coalesce(ETLJob.started_at, datetime.now(timezone.utc)),
        }
        if total is not None:
            values["total_records"] = case(
                (ETLJob.total_records < total, total),
                else_=ETLJob.total_records,
            )
            values["progress_percent"] = round(processed / total * 100, 2) if total else 100.0

        return await self._update(
            job_id,
            ETLJob.status.in_(_OPEN_STATUSES),
            ETLJob.processed_records <= processed,
            **values,
        )

    async def complete_job(
        self,
        job_id: int,
        result: BatchImportResult,
        duration_ms: Optional[int] = None,
    ) -> ETLJobStatus:
        """
        Finalize a finished run.

        completed when no card failed, partial when some did, failed when all
        did. A cancelled result is routed to mark_cancelled.
        """
        if result.cancelled:
            return await self.mark_cancelled(job_id, result, duration_ms)

        status = status_for_result(result)
        values = _result_values(result)
        if status == ETLJobStatus.FAILED:
            first = result.errors[0].message if result.errors else "All cards failed"
            values["error_message"] = f"All {result.failed_cards} cards failed. First error: {first}"

        finished = await self._finish(job_id, status, values, duration_ms, processed=result.processed_cards)
        if finished is None:
            return await self._current_status(job_id)

        logger.info(
            "ETL job finished",
            job_id=job_id,
            status=status.value,
            successful=result.successful_cards,
            failed=result.failed_cards,
            skipped=result.skipped_cards,
            duration_ms=finished,
        )
        return status

    async def fail_job(
        self,
        job_id: int,
        error: ETLError | str,
        circuit_breaker_open: bool = False,
        result: Optional[BatchImportResult] = None,
        duration_ms: Optional[int] = None,
    ) -> bool:
        """Mark the job failed with an error message. No-op on terminal jobs."""
        message = error.message if isinstance(error, ETLError) else str(error)
        values: dict[str, Any] = _result_values(result) if result is not None else {}
        values["error_message"] = message
        values["circuit_breaker_open"] = circuit_breaker_open
        if isinstance(error, ETLError):
            errors = list(values.get("errors") or [])
            values["errors"] = [error.to_dict()] + errors

        finished = await self._finish(
            job_id,
            ETLJobStatus.FAILED,
            values,
            duration_ms,
            processed=result.processed_cards if result is not None else None,
        )
        if finished is None:
            return False
        logger.error("ETL job failed", job_id=job_id, error=message, circuit_breaker_open=circuit_breaker_open)
        return True

    async def cancel_job(self, job_id: int) -> bool:
        """Request cancellation. The running coordinator stops between batches."""
        requested = await self._update(
            job_id,
            ETLJob.status.in_(_OPEN_STATUSES),
            cancel_requested=True,
        )
        if requested:
            logger.info("ETL job cancellation requested", job_id=job_id)
        return requested

    async def is_cancel_requested(self, job_id: int) -> bool:
        async with self.session_maker() as session:
            flag = await session.scalar(
                select(ETLJob.cancel_requested).where(ETLJob.id == job_id)
            )
        return bool(flag)

    async def mark_cancelled(
        self,
        job_id: int,
        result: Optional[BatchImportResult] = None,
        duration_ms: Optional[int] = None,
    ) -> ETLJobStatus:
        values = _result_values(result) if result is not None else {}
        finished = await self._finish(
            job_id,
            ETLJobStatus.CANCELLED,
            values,
            duration_ms,
            processed=result.processed_cards if result is not None else None,
        )
        if finished is None:
            return await self._current_status(job_id)
        logger.info("ETL job cancelled", job_id=job_id)
        return ETLJobStatus.CANCELLED

    async def _finish(
        self,
        job_id: int,
        status: ETLJobStatus,
        values: dict[str, Any],
        duration_ms: Optional[int],
        processed: Optional[int] = None,
    ) -> Optional[int]:
        """
        Move an open job to a terminal status.

        Returns the recorded duration in milliseconds, or None if the job was
        missing or already terminal.
        """
        job = await self.get_job(job_id)
        if job is None:
            logger.warning("ETL job not found", job_id=job_id)
            return None
        if job.is_terminal:
            logger.warning("ETL job already finished", job_id=job_id, status=job.status)
            return None

        now = datetime.now(timezone.utc)
        if duration_ms is None:
            duration_ms = _elapsed_ms(job.started_at or job.created_at, now) or 0

        values = dict(values)
        values.update(status=status.value, completed_at=now, duration_ms=duration_ms)
        if processed is not None:
            values["processed_records"] = case(
                (ETLJob.processed_records < processed, processed),
                else_=ETLJob.processed_records,
            )
            if job.total_records:
                values["progress_percent"] = round(
                    max(processed, job.processed_records) / job.total_records * 100, 2
                )

        changed = await self._update(
            job_id,
            ETLJob.status.in_(_OPEN_STATUSES),
            **values,
        )
        return duration_ms if changed else None

    async def _current_status(self, job_id: int) -> ETLJobStatus:
        job = await self.get_job(job_id)
        if job is None:
            raise ValueError(f"Unknown ETL job: {job_id}")
        return ETLJobStatus(job.status)
