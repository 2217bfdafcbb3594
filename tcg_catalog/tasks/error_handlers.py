"""
Celery task error handling with a Redis dead letter queue.

ETL tasks that still fail after their own retries are kept in a capped Redis
list so the run can be inspected and resubmitted by hand.
"""
import json
from datetime import datetime, timezone
from typing import Any, Optional

import redis
import structlog
from celery import Task

from tcg_catalog.core.config import settings

logger = structlog.get_logger()

# Redis key for dead letter queue
DLQ_KEY = "tcg_catalog:etl:dead_letter_queue"
# Maximum number of failures to keep in the DLQ
DLQ_MAX_SIZE = 1000


class DeadLetterQueue:
    """
    Newest-first Redis list of permanently failed task invocations.

    Usage:
        dlq = DeadLetterQueue()
        for entry in dlq.entries(limit=10):
            print(entry["task_name"], entry["error"])
        dlq.retry(task_id="...")
    """

    def __init__(self, client: Optional[redis.Redis] = None, key: str = DLQ_KEY, max_size: int = DLQ_MAX_SIZE):
        self.client = client or redis.from_url(settings.redis_url)
        self.key = key
        self.max_size = max_size

    def push(self, entry: dict[str, Any]) -> None:
        self.client.lpush(self.key, json.dumps(entry, default=str))
        # Keep only the most recent failures
        self.client.ltrim(self.key, 0, self.max_size - 1)

    def entries(self, limit: int = 100, offset: int = 0) -> list[dict[str, Any]]:
        raw = self.client.lrange(self.key, offset, offset + limit - 1)
        return [json.loads(e) for e in raw]

    def count(self) -> int:
        return self.client.llen(self.key)

    def retry(self, index: Optional[int] = None, task_id: Optional[str] = None, celery_app=None) -> bool:
        """
        Resubmit one entry, chosen by list index (0 = newest) or task id.

        Returns:
            True if the task was resubmitted and removed from the queue.
        """
        if (index is None) == (task_id is None):
            raise ValueError("Pass exactly one of index or task_id")

        if celery_app is None:
            from tcg_catalog.tasks.celery_app import celery_app

        raw = self._find(index, task_id)
        if raw is None:
            logger.warning("DLQ entry not found", index=index, task_id=task_id)
            return False

        entry = json.loads(raw)
        task = celery_app.tasks.get(entry["task_name"])
        if task is None:
            logger.error("Task not found for DLQ retry", task_name=entry["task_name"])
            return False

        task.apply_async(args=entry["args"], kwargs=entry["kwargs"])
        self.client.lrem(self.key, 1, raw)
        logger.info("DLQ entry retried", task_id=entry["task_id"], task_name=entry["task_name"])
        return True

    def _find(self, index: Optional[int], task_id: Optional[str]):
        if index is not None:
            return self.client.lindex(self.key, index)
        for raw in self.client.lrange(self.key, 0, self.max_size - 1):
            if json.loads(raw).get("task_id") == task_id:
                return raw
        return None

    def clear(self) -> int:
        """
        Clear all entries.

        Returns:
            Number of removed entries
        """
        count = self.client.llen(self.key)
        self.client.delete(self.key)
        logger.info("DLQ cleared", count=count)
        return count


def build_dlq_entry(task_name: str, task_id: str, args, kwargs, exc: BaseException, einfo=None) -> dict[str, Any]:
    kwargs = dict(kwargs or {})
    return {
        "task_id": task_id,
        "task_name": task_name,
        "args": list(args) if args else [],
        "kwargs": kwargs,
        "game_code": kwargs.get("game_code") or (args[0] if args else None),
        "error": str(exc),
        "error_class": type(exc).__name__,
        "traceback": str(einfo) if einfo else None,
        "failed_at": datetime.now(timezone.utc).isoformat(),
    }


class TaskWithDLQ(Task):
    """
    Base task class that sends failed tasks to the dead letter queue.

    Usage:
        @celery_app.task(base=TaskWithDLQ, bind=True, max_retries=2)
        def my_task(self):
            ...
    """

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """Called when task fails after all retries."""
        logger.error(
            "Task failed permanently",
            task_id=task_id,
            task_name=self.name,
            args=args,
            kwargs=kwargs,
            error=str(exc),
        )

        try:
            DeadLetterQueue().push(build_dlq_entry(self.name, task_id, args, kwargs, exc, einfo))
            logger.info("Task added to DLQ", task_id=task_id, task_name=self.name)
        except redis.RedisError as e:
            logger.error("Failed to add task to DLQ", error=str(e), task_id=task_id)

        super().on_failure(exc, task_id, args, kwargs, einfo)
