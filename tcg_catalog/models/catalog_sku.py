"""
Catalog SKU model: one sellable variant of a print.
"""
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tcg_catalog.core.sku import SKUComponents
from tcg_catalog.db.base import Base

if TYPE_CHECKING:
    from tcg_catalog.models.printing import Print


class CatalogSKU(Base):
    """
    A print x language x condition x finish (x grade) variant.

    The SKU string is unique; the components are stored denormalized for
    filtering.
    """

    __tablename__ = "catalog_skus"

    print_id: Mapped[int] = mapped_column(
        ForeignKey("prints.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    sku: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    game_code: Mapped[str] = mapped_column(String(20), nullable=False)
    set_code: Mapped[str] = mapped_column(String(20), nullable=False)
    collector_number: Mapped[str] = mapped_column(String(20), nullable=False)
    language_code: Mapped[str] = mapped_column(String(10), nullable=False)
    condition_code: Mapped[str] = mapped_column(String(10), nullable=False)
    finish_code: Mapped[str] = mapped_column(String(20), nullable=False)

    # Grading
    is_graded: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    grading_company: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    grade_value: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)

    print_: Mapped["Print"] = relationship("Print", back_populates="skus")

    __table_args__ = (
        Index("ix_catalog_skus_game_set", "game_code", "set_code"),
    )

    @classmethod
    def from_components(cls, print_id: int, sku: str, components: SKUComponents) -> "CatalogSKU":
        return cls(
            print_id=print_id,
            sku=sku,
            game_code=components.game_code,
            set_code=components.set_code,
            collector_number=components.collector_number,
            language_code=components.language_code,
            condition_code=components.condition_code,
            finish_code=components.finish_code,
            is_graded=components.is_graded,
            grading_company=components.grading_company,
            grade_value=components.grade_value,
        )

    def __repr__(self) -> str:
        return f"<CatalogSKU {self.sku}>"
