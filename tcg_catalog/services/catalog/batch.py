"""
Batch coordination: chunking, bounded concurrency, progress and cancellation.
"""
import asyncio
import time

import structlog
from sqlalchemy.exc import SQLAlchemyError

from tcg_catalog.services.catalog.context import JobContext
from tcg_catalog.services.catalog.results import BatchImportResult, CardImportResult
from tcg_catalog.services.catalog.retry import import_with_retry
from tcg_catalog.services.ingestion.base import UniversalCard

logger = structlog.get_logger()

# Bound on representative errors kept for a whole run
MAX_RUN_ERRORS = 100


def chunk_cards(cards: list[UniversalCard], batch_size: int) -> list[list[UniversalCard]]:
    return [cards[i:i + batch_size] for i in range(0, len(cards), batch_size)]


async def is_cancelled(ctx: JobContext) -> bool:
    """Check the in-process cancel flag, then the job row."""
    if ctx.cancel_event.is_set():
        return True
    if ctx.job_manager is not None and ctx.job_id is not None:
        if await ctx.job_manager.is_cancel_requested(ctx.job_id):
            ctx.cancel_event.set()
            return True
    return False


async def run_batch(cards: list[UniversalCard], ctx: JobContext) -> BatchImportResult:
    """
    Import cards in chunks of batch_size with at most concurrency workers.

    Failing cards never stop the run. Cancellation is honored between chunks:
    cards already started finish, no new chunk starts.
    """
    config = ctx.config
    started = time.monotonic()
    total = len(cards)
    result = BatchImportResult(total_cards=total)
    if not cards:
        return result

    semaphore = asyncio.Semaphore(config.concurrency)
    chunks = chunk_cards(cards, config.batch_size)

    for index, chunk in enumerate(chunks):
        if await is_cancelled(ctx):
            result.cancelled = True
            logger.info(
                "ETL run cancelled between batches",
                batch=index + 1,
                batches=len(chunks),
                processed=ctx.processed,
            )
            break

        chunk_result = await _run_chunk(chunk, ctx, semaphore)
        result.merge(chunk_result, MAX_RUN_ERRORS)

        logger.info(
            "Batch completed",
            batch=index + 1,
            batches=len(chunks),
            successful=chunk_result.successful_cards,
            failed=chunk_result.failed_cards,
            skipped=chunk_result.skipped_cards,
            processed=ctx.processed,
            total=total,
        )
        await _report_progress(ctx, total)

        if config.rate_limit_delay_ms and index < len(chunks) - 1:
            await ctx.sleep(config.rate_limit_delay_ms / 1000)

    result.duration_ms = int((time.monotonic() - started) * 1000)
    return result


async def _run_chunk(
    chunk: list[UniversalCard],
    ctx: JobContext,
    semaphore: asyncio.Semaphore,
) -> BatchImportResult:
    chunk_result = BatchImportResult()

    async def worker(card: UniversalCard) -> CardImportResult:
        async with semaphore:
            card_result = await import_with_retry(card, ctx)
        ctx.advance()
        return card_result

    # Aggregate in completion order
    for next_done in asyncio.as_completed([worker(card) for card in chunk]):
        chunk_result.add(await next_done, ctx.config.max_errors_per_batch)
    return chunk_result


async def _report_progress(ctx: JobContext, total: int) -> None:
    if ctx.job_manager is None or ctx.job_id is None:
        return
    try:
        await ctx.job_manager.update_progress(ctx.job_id, ctx.processed, total)
    except SQLAlchemyError as e:
        logger.warning("Failed to update job progress", job_id=ctx.job_id, error=str(e))
