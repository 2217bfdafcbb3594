"""
SQLAlchemy models for the TCG catalog.
"""
from tcg_catalog.models.card import Card
from tcg_catalog.models.card_set import CardSet
from tcg_catalog.models.printing import Print, ImageProcessingStatus
from tcg_catalog.models.catalog_sku import CatalogSKU
from tcg_catalog.models.etl_job import ETLJob, ETLJobStatus, ETLJobType, TERMINAL_JOB_STATUSES

__all__ = [
    "Card",
    "CardSet",
    "Print",
    "ImageProcessingStatus",
    "CatalogSKU",
    "ETLJob",
    "ETLJobStatus",
    "ETLJobType",
    "TERMINAL_JOB_STATUSES",
]
