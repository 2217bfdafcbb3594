"""ETL job model for tracking catalog ingestion runs."""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from sqlalchemy import Boolean, DateTime, Float, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from tcg_catalog.db.base import Base


class ETLJobType(str, Enum):
    """Kinds of ingestion run."""
    FULL_SYNC = "full_sync"
    INCREMENTAL_SYNC = "incremental_sync"
    SET_SYNC = "set_sync"
    CARD_SYNC = "card_sync"
    IMAGE_SYNC = "image_sync"


class ETLJobStatus(str, Enum):
    """ETL job status."""
    PENDING = "pending"      # Created, no progress reported yet
    RUNNING = "running"      # First batch progress written
    COMPLETED = "completed"  # Every card succeeded or skipped
    PARTIAL = "partial"      # Some cards failed
    FAILED = "failed"        # Every card failed, or the run died
    CANCELLED = "cancelled"  # Stopped between batches on request


TERMINAL_JOB_STATUSES = frozenset({
    ETLJobStatus.COMPLETED,
    ETLJobStatus.PARTIAL,
    ETLJobStatus.FAILED,
    ETLJobStatus.CANCELLED,
})


class ETLJob(Base):
    """One ingestion run for one game. Never deleted by the pipeline."""

    __tablename__ = "etl_jobs"

    game_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    job_type: Mapped[ETLJobType] = mapped_column(String(30), nullable=False)
    status: Mapped[ETLJobStatus] = mapped_column(
        String(20),
        default=ETLJobStatus.PENDING.value,
        nullable=False,
        index=True
    )
    triggered_by: Mapped[str] = mapped_column(String(50), default="manual", nullable=False)

    # Progress
    total_records: Mapped[int] = mapped_column(default=0, nullable=False)
    processed_records: Mapped[int] = mapped_column(default=0, nullable=False)
    progress_percent: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)

    # Outcome statistics
    successful_records: Mapped[int] = mapped_column(default=0, nullable=False)
    failed_records: Mapped[int] = mapped_column(default=0, nullable=False)
    skipped_records: Mapped[int] = mapped_column(default=0, nullable=False)
    cards_created: Mapped[int] = mapped_column(default=0, nullable=False)
    cards_updated: Mapped[int] = mapped_column(default=0, nullable=False)
    cards_skipped: Mapped[int] = mapped_column(default=0, nullable=False)
    prints_created: Mapped[int] = mapped_column(default=0, nullable=False)
    prints_updated: Mapped[int] = mapped_column(default=0, nullable=False)
    skus_generated: Mapped[int] = mapped_column(default=0, nullable=False)
    images_queued: Mapped[int] = mapped_column(default=0, nullable=False)

    # Error details
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    errors: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSON, nullable=True)

    # Run configuration snapshot
    config: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    # Control flags
    cancel_requested: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    circuit_breaker_open: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Timestamps
    started_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )
    duration_ms: Mapped[Optional[int]] = mapped_column(nullable=True)

    __table_args__ = (
        Index("ix_etl_jobs_game_status", "game_code", "status"),
        Index("ix_etl_jobs_created", "created_at"),
    )

    @property
    def is_terminal(self) -> bool:
        return ETLJobStatus(self.status) in TERMINAL_JOB_STATUSES

    def __repr__(self) -> str:
        return f"<ETLJob id={self.id} game={self.game_code} status={self.status}>"
