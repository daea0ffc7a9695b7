"""Operator override: publish a gathering push on demand."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from gathering_push.db import get_db
from gathering_push.services import audit
from gathering_push.services.auth import Operator, require_admin
from gathering_push.services.push_candidates import PushCandidateService
from gathering_push.services.push_processor import GatheringPushProcessor
from gathering_push.schemas.push_trigger import TriggerRequest, TriggerResult

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/admin/irl-gathering-push", tags=["IRL Gathering Push"])


@router.post("/trigger", response_model=TriggerResult)
def trigger_push(
    request: TriggerRequest,
    db: Session = Depends(get_db),
    operator: Operator = Depends(require_admin),
):
    """Publish (or refresh and re-surface) the notification for one gathering.

    Window and threshold gating do not apply. Skips come back as
    ``ok=false`` with a reason instead of an error status.
    """
    result = GatheringPushProcessor(db).trigger(request.gathering_uid, request.rule_kind)
    audit.log_manual_trigger(
        operator.uid,
        request.rule_kind.value,
        request.gathering_uid,
        result.action,
        result.reason.value if result.reason else None,
    )
    return result


@router.post("/candidates/{candidate_id}/suppress")
def suppress_candidate(
    candidate_id: str,
    db: Session = Depends(get_db),
    operator: Operator = Depends(require_admin),
):
    candidate = PushCandidateService(db).suppress_candidate(candidate_id)
    logger.info(f"Candidate {candidate.id} suppressed by {operator.uid}")
    return {
        "id": candidate.id,
        "rule_kind": candidate.rule_kind.value,
        "event_uid": candidate.event_uid,
        "status": candidate.status.value,
    }
