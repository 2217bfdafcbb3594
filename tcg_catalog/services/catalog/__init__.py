"""
Catalog ETL: import, retry, batching, job lifecycle and image dispatch.
"""
from tcg_catalog.services.catalog.context import ETLConfig, JobContext
from tcg_catalog.services.catalog.images import (
    CeleryImageDispatcher,
    ImageDispatcher,
    ImageTask,
    select_best_image,
)
from tcg_catalog.services.catalog.importer import import_card
from tcg_catalog.services.catalog.retry import import_with_retry
from tcg_catalog.services.catalog.batch import run_batch
from tcg_catalog.services.catalog.jobs import JobManager
from tcg_catalog.services.catalog.image_sync import ImageSyncService
from tcg_catalog.services.catalog.results import (
    BatchImportResult,
    CardImportResult,
    ETLResult,
    ImageSyncResult,
)
from tcg_catalog.services.catalog.service import ETLService

__all__ = [
    "ETLConfig",
    "JobContext",
    "CeleryImageDispatcher",
    "ImageDispatcher",
    "ImageTask",
    "select_best_image",
    "import_card",
    "import_with_retry",
    "run_batch",
    "JobManager",
    "ImageSyncService",
    "BatchImportResult",
    "CardImportResult",
    "ETLResult",
    "ImageSyncResult",
    "ETLService",
]
