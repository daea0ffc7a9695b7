"""APScheduler job for the scheduled IRL gathering push run.

The interval job and the cron endpoint both go through ``run_locked`` so that
at most one processor run is active in this process.
"""

from __future__ import annotations

import logging
import time
import uuid
from datetime import datetime
from typing import Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from gathering_push.core.settings import settings
from gathering_push.db import SessionLocal
from gathering_push.scheduler.lock import acquire_run_lock, release_run_lock
from gathering_push.schemas.push_trigger import RunSummary
from gathering_push.services.push_processor import GatheringPushProcessor

logger = logging.getLogger(__name__)

JOB_ID = "irl_gathering_push"

# Module-level scheduler instance (singleton)
scheduler = BackgroundScheduler()


def run_locked(db: Session, trigger: str = "scheduler", now: Optional[datetime] = None) -> Optional[RunSummary]:
    """Run the processor under the run lock.

    Returns None without doing anything when another run holds the lock.
    """
    run_id = uuid.uuid4()
    if not acquire_run_lock(run_id):
        logger.warning(f"[IRL push job] run already in progress, skipping trigger={trigger}")
        return None

    start = time.monotonic()
    try:
        logger.info(f"[IRL push job] run {run_id} started trigger={trigger}")
        summary = GatheringPushProcessor(db).run(now=now)
        logger.info(
            f"[IRL push job] run {run_id} completed in {time.monotonic() - start:.2f}s "
            f"created={summary.created} updated={summary.updated} failed={summary.failed}"
        )
        return summary
    finally:
        release_run_lock()


def _push_job() -> None:
    """Wrapper that APScheduler calls on each interval tick."""
    db = SessionLocal()
    try:
        run_locked(db, trigger="scheduler")
    except Exception:
        logger.exception("[IRL push job] scheduled run failed")
    finally:
        db.close()


def start_scheduler() -> None:
    scheduler.add_job(
        _push_job,
        IntervalTrigger(minutes=settings.push_job_interval_minutes),
        id=JOB_ID,
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.start()
    logger.info(f"[IRL push job] scheduler started; interval_minutes={settings.push_job_interval_minutes}")


def shutdown_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("[IRL push job] scheduler stopped")


def is_scheduler_running() -> bool:
    return scheduler.running
