"""
Pytest configuration and fixtures.

Provides fixtures for:
- A file-backed SQLite catalog database, created fresh per test
- A recording image dispatcher standing in for the Celery queue
- Job contexts with fast retry settings and a recorded sleep
- Canonical card builders
"""
from typing import Optional
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry
from tcg_catalog.core.errors import ImageDispatchError
from tcg_catalog.db.base import Base
from tcg_catalog.services.catalog.context import ETLConfig, JobContext
from tcg_catalog.services.catalog.images import ImageDispatcher, ImageTask
from tcg_catalog.services.ingestion.base import UniversalCard, UniversalPrint

# Importing the models registers their tables on Base.metadata
import tcg_catalog.models  # noqa: F401


class RecordingImageDispatcher(ImageDispatcher):
    """Collects dispatched image tasks instead of sending them."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.tasks: list[ImageTask] = []

    async def dispatch(self, task: ImageTask) -> None:
        if self.fail:
            raise ImageDispatchError(f"Image queue unavailable for print {task.print_id}")
        self.tasks.append(task)


def build_print(
    set_code: str = "LEA",
    collector_number: str = "161",
    set_name: str = "Limited Edition Alpha",
    artist: Optional[str] = "Christopher Rush",
    foil: bool = False,
    images: Optional[dict[str, str]] = None,
    **fields,
) -> UniversalPrint:
    if images is None:
        images = {
            "normal": f"https://img.example.com/{set_code}/{collector_number}/normal.jpg",
            "large": f"https://img.example.com/{set_code}/{collector_number}/large.jpg",
        }
    return UniversalPrint(
        set_code=set_code,
        set_name=set_name,
        collector_number=collector_number,
        artist=artist,
        rarity="Common",
        is_foil_available=foil,
        images=images,
        **fields,
    )


def build_card(
    name: str = "Lightning Bolt",
    primary_type: str = "Instant",
    oracle_text: Optional[str] = "Lightning Bolt deals 3 damage to any target.",
    prints: Optional[list[UniversalPrint]] = None,
    **fields,
) -> UniversalCard:
    fields.setdefault("mana_cost", "{R}")
    fields.setdefault("mana_value", 1.0)
    fields.setdefault("colors", ["R"])
    return UniversalCard(
        oracle_id=f"oracle-{name.lower().replace(' ', '-')}",
        name=name,
        primary_type=primary_type,
        oracle_text=oracle_text,
        prints=prints if prints is not None else [build_print()],
        **fields,
    )


@pytest.fixture
def make_print():
    return build_print


@pytest.fixture
def make_card():
    return build_card


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'catalog.db'}",
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_maker(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def count_rows(session_maker):
    """Count the rows of a model's table."""
    async def _count(model) -> int:
        async with session_maker() as session:
            return await session.scalar(select(func.count()).select_from(model))
    return _count


@pytest.fixture
def dispatcher() -> RecordingImageDispatcher:
    return RecordingImageDispatcher()


@pytest.fixture
def breakers() -> CircuitBreakerRegistry:
    return CircuitBreakerRegistry()


@pytest.fixture
def sleep() -> AsyncMock:
    """Stands in for asyncio.sleep so backoff and rate limits cost nothing."""
    return AsyncMock()


@pytest.fixture
def fast_config():
    def _config(**overrides) -> ETLConfig:
        values = dict(concurrency=1, rate_limit_delay_ms=0, retry_jitter=False, max_retries=2)
        values.update(overrides)
        return ETLConfig(**values)
    return _config


@pytest.fixture
def make_context(session_maker, breakers, dispatcher, sleep, fast_config):
    """Build a JobContext for direct importer and batch tests."""
    def _make(**overrides) -> JobContext:
        return JobContext(
            game_code="MTG",
            job_type="full_sync",
            config=fast_config(**overrides),
            session_maker=session_maker,
            breakers=breakers,
            image_dispatcher=dispatcher,
            sleep=sleep,
        )
    return _make
