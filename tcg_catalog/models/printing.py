"""Print model: one physical printing of a card."""
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tcg_catalog.db.base import Base

if TYPE_CHECKING:
    from tcg_catalog.models.card import Card
    from tcg_catalog.models.card_set import CardSet
    from tcg_catalog.models.catalog_sku import CatalogSKU


class ImageProcessingStatus(str, Enum):
    """Lifecycle of a print's image pipeline work."""
    PENDING = "pending"        # Stored, nothing dispatched yet
    QUEUED = "queued"          # Task handed to the image queue
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"          # Dispatch or processing failed
    SKIPPED = "skipped"        # Print has no usable image


class Print(Base):
    """A printing of a card, unique by print hash."""

    __tablename__ = "prints"

    card_id: Mapped[int] = mapped_column(
        ForeignKey("cards.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    set_id: Mapped[int] = mapped_column(
        ForeignKey("card_sets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True
    )
    print_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    # Print identity
    set_code: Mapped[str] = mapped_column(String(20), nullable=False)
    collector_number: Mapped[str] = mapped_column(String(20), nullable=False)
    rarity: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    artist: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    language: Mapped[str] = mapped_column(String(10), default="EN", nullable=False)
    finish: Mapped[str] = mapped_column(String(20), default="NORMAL", nullable=False)

    # Flags
    is_foil_available: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_alternate_art: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_promo: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_first_edition: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Media and market data (stored as JSON)
    images: Mapped[Optional[dict[str, str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    format_legality: Mapped[Optional[dict[str, str]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    prices: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON(none_as_null=True), nullable=True)
    external_ids: Mapped[Optional[dict[str, str]]] = mapped_column(JSON(none_as_null=True), nullable=True)

    # Image pipeline bookkeeping
    image_processing_status: Mapped[ImageProcessingStatus] = mapped_column(
        String(20),
        default=ImageProcessingStatus.PENDING.value,
        nullable=False,
        index=True
    )
    image_processing_error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_queued_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    # Relationships
    card: Mapped["Card"] = relationship("Card", back_populates="prints")
    card_set: Mapped["CardSet"] = relationship("CardSet", back_populates="prints")
    skus: Mapped[list["CatalogSKU"]] = relationship(
        "CatalogSKU", back_populates="print_", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_prints_set_collector", "set_code", "collector_number"),
    )

    def __repr__(self) -> str:
        return f"<Print {self.set_code} #{self.collector_number}>"
