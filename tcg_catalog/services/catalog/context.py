"""
Per-run configuration and the job context threaded through every ETL call.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tcg_catalog.core.circuit_breaker import CircuitBreakerRegistry
from tcg_catalog.core.config import settings

if TYPE_CHECKING:
    from tcg_catalog.services.catalog.images import ImageDispatcher
    from tcg_catalog.services.catalog.jobs import JobManager


@dataclass
class ETLConfig:
    """Knobs for one ETL run. Snapshotted onto the job row at creation."""
    batch_size: int = 100
    rate_limit_delay_ms: int = 1000
    concurrency: int = 2
    max_retries: int = 5
    retry_base_delay_ms: int = 1000
    retry_max_delay_ms: int = 30000
    retry_jitter: bool = True
    skip_images: bool = False
    force_update: bool = False
    backfill_new_prints: bool = True
    max_errors_per_batch: int = 10

    def __post_init__(self):
        if self.batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    @classmethod
    def from_settings(cls, **overrides: Any) -> "ETLConfig":
        """Build a config from application settings, with per-run overrides."""
        values = dict(
            batch_size=settings.etl_batch_size,
            rate_limit_delay_ms=settings.etl_rate_limit_delay_ms,
            concurrency=settings.etl_concurrency,
            max_retries=settings.etl_max_retries,
            retry_base_delay_ms=settings.etl_retry_base_delay_ms,
            retry_max_delay_ms=settings.etl_retry_max_delay_ms,
            retry_jitter=settings.etl_retry_jitter,
            skip_images=settings.etl_skip_images,
            force_update=settings.etl_force_update,
            backfill_new_prints=settings.etl_backfill_new_prints,
            max_errors_per_batch=settings.etl_max_errors_per_batch,
        )
        values.update(overrides)
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class _HashLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


@dataclass
class JobContext:
    """
    Everything one ETL run needs, passed explicitly to every stage.

    Holds the shared breaker registry, the per-oracle-hash locks that
    serialize same-card imports, and the processed-card counter that progress
    reports are read from.
    """
    game_code: str
    job_type: str
    config: ETLConfig
    session_maker: async_sessionmaker[AsyncSession]
    breakers: CircuitBreakerRegistry
    image_dispatcher: "ImageDispatcher"
    job_id: Optional[int] = None
    job_manager: Optional["JobManager"] = None
    cancel_event: asyncio.Event = field(default_factory=asyncio.Event)
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep

    processed: int = field(default=0, init=False)
    _hash_locks: dict[str, "_HashLock"] = field(default_factory=dict, init=False, repr=False)

    @asynccontextmanager
    async def hash_lock(self, oracle_hash: str) -> AsyncIterator[None]:
        """
        Hold the lock for one oracle hash.

        The entry is dropped once nobody holds or waits on it, so a run keeps
        locks only for cards currently in flight.
        """
        entry = self._hash_locks.get(oracle_hash)
        if entry is None:
            entry = self._hash_locks[oracle_hash] = _HashLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._hash_locks[oracle_hash]

    @property
    def active_hash_locks(self) -> int:
        return len(self._hash_locks)

    def advance(self, count: int = 1) -> int:
        """Add to the processed counter and return the new value."""
        self.processed += count
        return self.processed
