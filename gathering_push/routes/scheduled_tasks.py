"""Scheduled tasks endpoint for cron jobs (Cloud Scheduler).

Lets an external cron drive the IRL gathering push run instead of, or in
addition to, the in-process scheduler. Both share the same run lock.
"""

from fastapi import APIRouter, Depends, HTTPException, Header
from sqlalchemy.orm import Session
from typing import Optional
import logging

from gathering_push.core.settings import settings
from gathering_push.db import get_db
from gathering_push.scheduler.jobs import run_locked
from gathering_push.schemas.push_trigger import RunSummary

logger = logging.getLogger(__name__)
router = APIRouter()


def verify_cron_secret(x_cron_secret: Optional[str] = Header(None)):
    """Verify the cron secret header for scheduled job authentication."""
    if x_cron_secret != settings.cron_secret:
        raise HTTPException(status_code=403, detail="Invalid cron secret")
    return True


@router.post("/irl-gathering-push", response_model=RunSummary)
def trigger_irl_gathering_push(
    db: Session = Depends(get_db),
    _verified: bool = Depends(verify_cron_secret)
):
    """Process pending IRL gathering push candidates once.

    Example Cloud Scheduler config:
    - Schedule: */15 * * * *
    - Target: POST https://api.example.com/scheduled/irl-gathering-push
    - Headers: X-Cron-Secret: <your-secret>
    """
    summary = run_locked(db, trigger="cron")
    if summary is None:
        raise HTTPException(status_code=409, detail="IRL gathering push run already in progress")
    return summary
