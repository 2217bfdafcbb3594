"""
End-to-end tests for ETL job runs.

Runs the full pipeline (adapter fetch, batches, importer, job finalization)
against a SQLite catalog with the mock adapter.
"""
import pytest
from sqlalchemy import select

from tcg_catalog.core.circuit_breaker import BreakerConfig, CircuitBreakerRegistry, FaultType
from tcg_catalog.core.errors import SourceFetchError
from tcg_catalog.models import Card, CatalogSKU, ETLJob, ETLJobStatus, ETLJobType, Print
from tcg_catalog.services.catalog.context import JobContext
from tcg_catalog.services.catalog.service import ETLService
from tcg_catalog.services.ingestion.adapters.mock import MockSourceAdapter


@pytest.fixture
def adapter():
    return MockSourceAdapter(card_count=12)


@pytest.fixture
def make_service(session_maker, dispatcher, breakers, sleep, fast_config, adapter):
    def _make(adapter_override=None, breakers_override=None, **config) -> ETLService:
        config.setdefault("batch_size", 5)
        source = adapter_override or adapter
        return ETLService(
            session_maker,
            image_dispatcher=dispatcher,
            breakers=breakers_override or breakers,
            config=fast_config(**config),
            adapter_factory=lambda game_code: source,
            sleep=sleep,
        )
    return _make


async def _job(session_maker, job_id) -> ETLJob:
    async with session_maker() as session:
        return await session.get(ETLJob, job_id)


class TestStartJob:

    @pytest.mark.asyncio
    async def test_full_sync_imports_every_card(self, make_service, session_maker, count_rows, dispatcher):
        service = make_service()
        result = await service.start_job("mtg", ETLJobType.FULL_SYNC)

        assert result.status == ETLJobStatus.COMPLETED
        assert result.success
        assert result.game_code == "MTG"
        assert result.batch.cards_created == 12
        assert await count_rows(Card) == 12
        assert await count_rows(Print) == 12
        assert len(dispatcher.tasks) == 12

        job = await _job(session_maker, result.job_id)
        assert job.status == "completed"
        assert job.total_records == 12
        assert job.processed_records == 12
        assert job.successful_records == 12
        assert job.progress_percent == 100.0
        assert job.started_at is not None
        assert job.completed_at is not None

    @pytest.mark.asyncio
    async def test_rerun_skips_everything(self, make_service, session_maker, count_rows):
        service = make_service()
        await service.start_job("MTG", "full_sync")
        skus = await count_rows(CatalogSKU)

        result = await service.start_job("MTG", "incremental_sync")

        assert result.status == ETLJobStatus.COMPLETED
        assert result.batch.skipped_cards == 12
        assert result.batch.cards_created == 0
        assert await count_rows(CatalogSKU) == skus

        job = await _job(session_maker, result.job_id)
        assert job.cards_skipped == 12

    @pytest.mark.asyncio
    async def test_lightning_bolt(self, make_service, make_card, session_maker):
        service = make_service(adapter_override=MockSourceAdapter(cards=[make_card()]))
        result = await service.start_job("MTG", "card_sync")

        assert result.status == ETLJobStatus.COMPLETED
        async with session_maker() as session:
            skus = list(await session.scalars(select(CatalogSKU.sku).order_by(CatalogSKU.id)))
        assert skus == [
            "MTG-LEA-161-EN-NM-NORMAL",
            "MTG-LEA-161-EN-LP-NORMAL",
            "MTG-LEA-161-EN-MP-NORMAL",
            "MTG-LEA-161-EN-HP-NORMAL",
            "MTG-LEA-161-EN-DMG-NORMAL",
        ]

    @pytest.mark.asyncio
    async def test_some_failures_make_a_partial_job(self, make_service, make_card, session_maker):
        cards = [make_card(), make_card(name="Broken", primary_type="")]
        service = make_service(adapter_override=MockSourceAdapter(cards=cards))

        result = await service.start_job("MTG", "full_sync")

        assert result.status == ETLJobStatus.PARTIAL
        assert result.batch.failed_cards == 1
        job = await _job(session_maker, result.job_id)
        assert job.failed_records == 1
        assert job.errors[0]["type"] == "validation_error"

    @pytest.mark.asyncio
    async def test_all_failures_fail_the_job(self, make_service, make_card, breakers):
        cards = [make_card(name="Broken", primary_type="")]
        service = make_service(adapter_override=MockSourceAdapter(cards=cards))

        result = await service.start_job("MTG", "full_sync")

        assert result.status == ETLJobStatus.FAILED
        assert breakers.get("MTG", FaultType.GAME_LEVEL).consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_fetch_failure_fails_job_and_raises(self, make_service, session_maker, breakers):
        failing = MockSourceAdapter(fail_with=SourceFetchError("Scryfall fetch failed: 503"))
        service = make_service(adapter_override=failing)

        with pytest.raises(SourceFetchError):
            await service.start_job("MTG", "full_sync")

        async with session_maker() as session:
            job = await session.scalar(select(ETLJob).order_by(ETLJob.id.desc()))
        assert job.status == "failed"
        assert "503" in job.error_message
        assert breakers.get("MTG", FaultType.GAME_LEVEL).consecutive_failures == 1

    @pytest.mark.asyncio
    async def test_open_game_breaker_refuses_job(self, make_service, session_maker, adapter):
        configs = {
            fault_type: BreakerConfig(threshold=1, reset_timeout=300.0, max_half_open_attempts=1)
            for fault_type in FaultType
        }
        breakers = CircuitBreakerRegistry(configs)
        breakers.record_failure("MTG", FaultType.GAME_LEVEL, "previous run died")
        service = make_service(breakers_override=breakers)

        result = await service.start_job("MTG", "full_sync")

        assert result.status == ETLJobStatus.FAILED
        assert result.circuit_breaker_open
        assert adapter.fetch_calls == []
        job = await _job(session_maker, result.job_id)
        assert job.status == "failed"
        assert job.circuit_breaker_open

    @pytest.mark.asyncio
    async def test_unknown_game_fails_job(self, session_maker, dispatcher, breakers, fast_config):
        service = ETLService(session_maker, image_dispatcher=dispatcher, breakers=breakers, config=fast_config())

        with pytest.raises(ValueError, match="Unknown game"):
            await service.start_job("HEARTHSTONE", "full_sync")

        async with session_maker() as session:
            job = await session.scalar(select(ETLJob))
        assert job.status == "failed"
        assert job.game_code == "HEARTHSTONE"

    @pytest.mark.asyncio
    async def test_limit_is_passed_to_adapter(self, make_service, adapter):
        service = make_service()
        result = await service.start_job("MTG", "full_sync", limit=3)

        assert adapter.fetch_calls == [("MTG", "full_sync", 3)]
        assert result.batch.total_cards == 3


class TestImageSyncJob:

    @pytest.mark.asyncio
    async def test_image_sync_dispatches_pending_prints(self, make_service, session_maker, dispatcher):
        await make_service(skip_images=True).start_job("MTG", "full_sync")
        assert dispatcher.tasks == []

        result = await make_service().start_job("MTG", ETLJobType.IMAGE_SYNC)

        assert result.status == ETLJobStatus.COMPLETED
        assert result.batch.images_queued == 12
        assert len(dispatcher.tasks) == 12
        job = await _job(session_maker, result.job_id)
        assert job.job_type == "image_sync"
        assert job.images_queued == 12

    @pytest.mark.asyncio
    async def test_sync_all_images(self, make_service):
        service = make_service()
        results = await service.sync_all_images(["MTG"])
        assert len(results) == 1
        assert results[0].job_type == "image_sync"


class TestCancel:

    @pytest.mark.asyncio
    async def test_cancel_signals_running_job(self, make_service, session_maker, dispatcher, breakers, fast_config):
        service = make_service()
        job = await service.jobs.create_job("MTG", "full_sync")
        ctx = JobContext(
            game_code="MTG",
            job_type="full_sync",
            config=fast_config(),
            session_maker=session_maker,
            breakers=breakers,
            image_dispatcher=dispatcher,
            job_id=job.id,
        )
        service._running[job.id] = ctx

        assert await service.cancel_job(job.id)
        assert ctx.cancel_event.is_set()
        assert (await _job(session_maker, job.id)).cancel_requested


class TestDatabaseRetries:

    @pytest.mark.asyncio
    async def test_persistent_database_failure_makes_a_partial_job(
        self, make_service, make_card, make_print, session_maker, sleep, monkeypatch
    ):
        from sqlalchemy.exc import OperationalError

        from tcg_catalog.services.catalog import importer

        real_upsert = importer._upsert_print
        attempts = 0

        async def failing_upsert(session, card_id, set_id, print_):
            nonlocal attempts
            if print_.collector_number == "161":
                attempts += 1
                raise OperationalError("INSERT INTO prints", {}, Exception("could not serialize access"))
            return await real_upsert(session, card_id, set_id, print_)

        monkeypatch.setattr(importer, "_upsert_print", failing_upsert)
        cards = [
            make_card(),
            make_card(
                name="Dark Ritual",
                oracle_text="Add {B}{B}{B}.",
                mana_cost="{B}",
                colors=["B"],
                prints=[make_print(collector_number="98")],
            ),
        ]
        service = make_service(adapter_override=MockSourceAdapter(cards=cards), max_retries=2)

        result = await service.start_job("MTG", "full_sync")

        assert result.status == ETLJobStatus.PARTIAL
        assert attempts == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]
        assert result.batch.failed_cards == 1
        assert result.batch.retried_cards == 1
        assert result.batch.errors[0].type.value == "database_error"

        async with session_maker() as session:
            names = list(await session.scalars(select(Card.name)))
        assert names == ["Dark Ritual"]
