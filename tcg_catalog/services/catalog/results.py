"""
Result types for card, batch, job and image sync runs.
"""
from dataclasses import dataclass, field
from typing import Any, Optional

from tcg_catalog.core.errors import ETLError
from tcg_catalog.models.etl_job import ETLJobStatus


@dataclass
class CardImportResult:
    """Outcome of importing one card."""
    success: bool
    card_name: str
    oracle_hash: Optional[str] = None
    card_id: Optional[int] = None
    card_created: bool = False
    card_updated: bool = False
    skipped: bool = False
    prints_created: int = 0
    prints_updated: int = 0
    skus_generated: int = 0
    images_queued: int = 0
    retry_count: int = 0
    error: Optional[ETLError] = None

    @classmethod
    def failed(cls, card_name: str, error: ETLError, oracle_hash: str | None = None) -> "CardImportResult":
        return cls(success=False, card_name=card_name, oracle_hash=oracle_hash, error=error)

    @classmethod
    def skip(cls, card_name: str, oracle_hash: str, card_id: int | None = None) -> "CardImportResult":
        return cls(success=True, card_name=card_name, oracle_hash=oracle_hash, card_id=card_id, skipped=True)


@dataclass
class BatchImportResult:
    """
    Aggregate of many card results.

    successful_cards includes skipped cards; skipped_cards is the subset that
    changed nothing.
    """
    total_cards: int = 0
    processed_cards: int = 0
    successful_cards: int = 0
    failed_cards: int = 0
    skipped_cards: int = 0
    retried_cards: int = 0
    cards_created: int = 0
    cards_updated: int = 0
    prints_created: int = 0
    prints_updated: int = 0
    skus_generated: int = 0
    images_queued: int = 0
    errors: list[ETLError] = field(default_factory=list)
    cancelled: bool = False
    duration_ms: int = 0

    def add(self, result: CardImportResult, max_errors: int | None = None) -> None:
        self.processed_cards += 1
        if result.retry_count:
            self.retried_cards += 1

        if not result.success:
            self.failed_cards += 1
            if result.error is not None and (max_errors is None or len(self.errors) < max_errors):
                self.errors.append(result.error)
            return

        self.successful_cards += 1
        if result.skipped:
            self.skipped_cards += 1
        if result.card_created:
            self.cards_created += 1
        if result.card_updated:
            self.cards_updated += 1
        self.prints_created += result.prints_created
        self.prints_updated += result.prints_updated
        self.skus_generated += result.skus_generated
        self.images_queued += result.images_queued

    def merge(self, other: "BatchImportResult", max_errors: int | None = None) -> None:
        """Fold another batch into this one."""
        for name in (
            "total_cards", "processed_cards", "successful_cards", "failed_cards",
            "skipped_cards", "retried_cards", "cards_created", "cards_updated",
            "prints_created", "prints_updated", "skus_generated", "images_queued",
            "duration_ms",
        ):
            setattr(self, name, getattr(self, name) + getattr(other, name))
        room = None if max_errors is None else max(0, max_errors - len(self.errors))
        self.errors.extend(other.errors if room is None else other.errors[:room])
        self.cancelled = self.cancelled or other.cancelled

    @property
    def all_failed(self) -> bool:
        return self.processed_cards > 0 and self.failed_cards == self.processed_cards


@dataclass
class ETLResult:
    """Outcome of one ETL job."""
    job_id: int
    game_code: str
    job_type: str
    status: ETLJobStatus
    batch: Optional[BatchImportResult] = None
    error: Optional[ETLError] = None
    circuit_breaker_open: bool = False
    duration_ms: int = 0
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.status == ETLJobStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Summary returned by the Celery tasks."""
        summary: dict[str, Any] = {
            "job_id": self.job_id,
            "game_code": self.game_code,
            "job_type": self.job_type,
            "status": self.status.value,
            "duration_ms": self.duration_ms,
            "circuit_breaker_open": self.circuit_breaker_open,
        }
        if self.batch is not None:
            summary.update(
                total=self.batch.total_cards,
                successful=self.batch.successful_cards,
                failed=self.batch.failed_cards,
                skipped=self.batch.skipped_cards,
                cards_created=self.batch.cards_created,
                prints_created=self.batch.prints_created,
                skus_generated=self.batch.skus_generated,
                images_queued=self.batch.images_queued,
            )
        if self.error is not None:
            summary["error"] = self.error.to_dict()
        summary.update(self.details)
        return summary


@dataclass
class ImageSyncResult:
    """Outcome of an image sync pass over a game's prints."""
    total_prints: int = 0
    queued: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[ETLError] = field(default_factory=list)
