"""
Card set model, created on first reference by an imported print.
"""
from datetime import date
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Date, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tcg_catalog.db.base import Base

if TYPE_CHECKING:
    from tcg_catalog.models.printing import Print


class CardSet(Base):
    """A set (expansion) of one game."""

    __tablename__ = "card_sets"

    game_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    set_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    release_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    prints: Mapped[list["Print"]] = relationship("Print", back_populates="card_set")

    __table_args__ = (
        UniqueConstraint("game_code", "code", name="uq_card_sets_game_code"),
    )

    def __repr__(self) -> str:
        return f"<CardSet {self.game_code}:{self.code}>"
