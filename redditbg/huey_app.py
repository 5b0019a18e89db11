"""redditbg - Huey task queue configuration.

Huey setup with a SQLite backend, so queued refreshes survive restarts.

How to run:
1. Start the control API (optional):
   uvicorn services.control_api.main:app

2. Start the Huey consumer (runs the hourly refresh and queued ones):
   huey_consumer.py redditbg.huey_app.huey
"""

from __future__ import annotations

import logging
from pathlib import Path

from huey import SqliteHuey, crontab

from redditbg.config import HUEY_DB_PATH, QUEUE_DIR, REFRESH_CRON_MINUTE

logger = logging.getLogger(__name__)


def _ensure_queue_dir() -> None:
    """Ensure the queue directory exists."""
    Path(QUEUE_DIR).mkdir(parents=True, exist_ok=True)


_ensure_queue_dir()

huey = SqliteHuey(
    name="redditbg",
    filename=str(HUEY_DB_PATH),
    immediate=False,
)


def _run_refresh(trigger: str) -> dict:
    # Import here to avoid circular imports
    from redditbg.orchestrator import refresh_tick

    logger.info("Refresh started (%s)", trigger)
    result = refresh_tick()
    logger.info("Refresh completed (%s): ok=%s", trigger, result.get("ok"))
    return result


@huey.on_startup()
def configure_logging() -> None:
    """Install the file/console logging handlers in consumer workers."""
    from redditbg.log import setup_logging

    setup_logging()


@huey.periodic_task(crontab(minute=REFRESH_CRON_MINUTE))
def hourly_refresh_task() -> dict:
    """Refresh the background at the top of every hour."""
    return _run_refresh("hourly")


@huey.task()
def refresh_task() -> dict:
    """Refresh the background on demand."""
    return _run_refresh("on demand")


def enqueue_refresh() -> None:
    """Enqueue an on-demand refresh.

    Non-blocking: the task is persisted in SQLite and processed when the
    consumer runs.
    """
    logger.info("Enqueueing refresh")
    refresh_task()
