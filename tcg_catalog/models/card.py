"""
Card model: one row per oracle identity, shared by every printing.
"""
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import DateTime, Index, JSON, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tcg_catalog.db.base import Base

if TYPE_CHECKING:
    from tcg_catalog.models.printing import Print


class Card(Base):
    """
    A game-agnostic card identity.

    Uniqueness is the oracle hash, a fingerprint of the card's rules content.
    Game-specific fields (mana cost, HP, attribute, ...) live in the opaque
    game_fields bag.
    """

    __tablename__ = "cards"

    game_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    oracle_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    oracle_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)

    # Card identity
    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    normalized_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    primary_type: Mapped[str] = mapped_column(String(100), nullable=False)
    subtypes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    supertypes: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    keywords: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    # Text
    oracle_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    flavor_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Opaque per-game data
    game_fields: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    extended_attributes: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    last_synced_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=True
    )

    # Relationships
    prints: Mapped[list["Print"]] = relationship(
        "Print", back_populates="card", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_cards_game_name", "game_code", "normalized_name"),
    )

    def __repr__(self) -> str:
        return f"<Card {self.name} ({self.game_code})>"
