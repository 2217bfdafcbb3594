"""
Celery tasks for background catalog ETL.

Includes:
- ETL runs: full, incremental, set and card syncs per game
- Image sync: re-dispatching pending or failed print images
- Dead letter queue for tasks that fail permanently
"""
from tcg_catalog.tasks.celery_app import celery_app
from tcg_catalog.tasks.catalog import (
    cancel_etl_job,
    run_catalog_etl,
    sync_images,
    sync_scheduled_games,
)

__all__ = [
    "celery_app",
    "cancel_etl_job",
    "run_catalog_etl",
    "sync_images",
    "sync_scheduled_games",
]
