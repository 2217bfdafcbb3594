"""
Retry orchestration around the card importer.

Retries are gated by the circuit breaker for the kind of failure the card
last hit, so a card failing on an unhealthy database stops retrying as soon
as the database breaker opens.
"""
import random
from typing import Callable, Optional

import structlog

from tcg_catalog.core.circuit_breaker import FaultType, fault_type_for_error
from tcg_catalog.core.errors import ETLError
from tcg_catalog.services.catalog.context import ETLConfig, JobContext
from tcg_catalog.services.catalog.importer import import_card
from tcg_catalog.services.catalog.results import CardImportResult
from tcg_catalog.services.ingestion.base import UniversalCard

logger = structlog.get_logger()


def compute_backoff_delay(
    retry_number: int,
    config: ETLConfig,
    rand: Callable[[], float] = random.random,
) -> float:
    """
    Delay in seconds before the given retry (1-based).

    base * 2 ** (retry_number - 1), plus up to one base delay of jitter,
    capped at the configured maximum.
    """
    delay_ms = config.retry_base_delay_ms * 2 ** (retry_number - 1)
    if config.retry_jitter:
        delay_ms += rand() * config.retry_base_delay_ms
    return min(delay_ms, config.retry_max_delay_ms) / 1000


async def import_with_retry(
    card: UniversalCard,
    ctx: JobContext,
    max_retries: Optional[int] = None,
) -> CardImportResult:
    """
    Import a card, retrying retryable failures with exponential backoff.

    The first attempt is always admitted. Each later attempt must be admitted
    by the breaker for the previous failure's fault type; a denial ends the
    loop without using up a retry.
    """
    if max_retries is None:
        max_retries = ctx.config.max_retries
    scope = ctx.game_code
    retries = 0
    admitted_by: Optional[FaultType] = None

    while True:
        result = await import_card(card, ctx)

        if result.success:
            ctx.breakers.record_success(scope, FaultType.DATABASE)
            if admitted_by is not None and admitted_by != FaultType.DATABASE:
                ctx.breakers.record_success(scope, admitted_by)
            if retries:
                logger.info("Card import succeeded after retry", card_name=result.card_name, retries=retries)
            result.retry_count = retries
            return result

        error = result.error
        fault_type = fault_type_for_error(error.type if error else None)
        ctx.breakers.record_failure(scope, fault_type, error.message if error else None)

        if error is None or not error.retryable:
            result.retry_count = retries
            return result

        if retries >= max_retries:
            logger.warning(
                "Card import failed after max retries",
                card_name=result.card_name,
                retries=retries,
                error_type=error.type.value,
                error=error.message,
            )
            result.retry_count = retries
            return result

        if not ctx.breakers.admit(scope, fault_type):
            logger.warning(
                "Card retry denied by open circuit",
                card_name=result.card_name,
                fault_type=fault_type.value,
                retries=retries,
            )
            denied = CardImportResult.failed(
                result.card_name,
                ETLError.of(
                    error.type,
                    f"Retry of {result.card_name} skipped: {fault_type.value} circuit open",
                    {
                        "circuit_breaker_open": True,
                        "fault_type": fault_type.value,
                        "last_error": error.message,
                    },
                ),
                oracle_hash=result.oracle_hash,
            )
            denied.retry_count = retries
            return denied

        delay = compute_backoff_delay(retries + 1, ctx.config)
        logger.debug(
            "Retrying card import",
            card_name=result.card_name,
            retry=retries + 1,
            delay_seconds=round(delay, 3),
            error_type=error.type.value,
        )
        await ctx.sleep(delay)

        admitted_by = fault_type
        retries += 1
