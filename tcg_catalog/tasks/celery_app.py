"""
Celery application configuration.

Catalog ETL schedule:
- Incremental sync of scheduled games: Daily at 2 AM
- Image sync of scheduled games: Every 6 hours
"""
from celery import Celery
from celery.schedules import crontab

from tcg_catalog.core.config import settings

celery_app = Celery(
    "tcg_catalog",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "tcg_catalog.tasks.catalog",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Result settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    # ETL runs are long and hold a DB pool; one at a time per worker process
    worker_prefetch_multiplier=1,
    worker_concurrency=2,

    beat_schedule={
        # Incremental catalog sync: pull cards changed in the last week
        "catalog-incremental-sync": {
            "task": "tcg_catalog.etl.sync_scheduled_games",
            "schedule": crontab(hour=2, minute=0),  # Daily at 2 AM
        },

        # Image sync: re-dispatch pending or failed print images
        "catalog-image-sync": {
            "task": "tcg_catalog.etl.sync_images",
            "schedule": crontab(minute=15, hour="*/6"),  # Every 6 hours
        },
    },

    # Task routing
    task_routes={
        "tcg_catalog.etl.*": {"queue": "etl"},
        "tcg_catalog.images.*": {"queue": settings.image_queue_name},
    },

    # Default queue
    task_default_queue="default",
)
