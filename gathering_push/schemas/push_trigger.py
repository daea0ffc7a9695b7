"""Request/response models for the manual trigger and the scheduled run."""

from pydantic import BaseModel, Field
from typing import Optional, List, Literal, Dict, Any
from enum import Enum

from gathering_push.models.push_candidate import RuleKind


class SkipReason(str, Enum):
    no_active_config = "no_active_config"
    config_disabled = "config_disabled"
    no_events_in_window = "no_events_in_window"
    no_candidates = "no_candidates"
    window_miss = "window_miss"
    thresholds_not_met = "thresholds_not_met"
    publish_failed = "publish_failed"


class TriggerRequest(BaseModel):
    gathering_uid: str = Field(..., min_length=1, description="Gathering (location) uid")
    rule_kind: RuleKind = Field(..., description="UPCOMING or REMINDER")

    model_config = {
        "json_schema_extra": {
            "example": {"gathering_uid": "irl-loc-kyiv", "rule_kind": "UPCOMING"}
        }
    }


class CandidateCounts(BaseModel):
    total: int
    processed: int


class EventDates(BaseModel):
    start: Optional[str] = None
    end: Optional[str] = None


class EventCounts(BaseModel):
    total: int
    qualified: int
    event_uids: List[str]
    dates: EventDates


class AttendeeCounts(BaseModel):
    total: int
    top_attendees: int


class TriggerResult(BaseModel):
    """Outcome of a manual trigger. ``ok`` is False only for skips."""
    ok: bool
    action: Literal["created", "updated", "skipped"]
    rule_kind: RuleKind
    gathering_uid: str
    reason: Optional[SkipReason] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    notification_id: Optional[str] = None
    payload_version: Optional[int] = None
    candidates: Optional[CandidateCounts] = None
    events: Optional[EventCounts] = None
    attendees: Optional[AttendeeCounts] = None
    updated_at: Optional[str] = None

    @classmethod
    def skipped(cls, rule_kind: RuleKind, gathering_uid: str, reason: SkipReason, **details):
        return cls(
            ok=False,
            action="skipped",
            rule_kind=rule_kind,
            gathering_uid=gathering_uid,
            reason=reason,
            details=details,
        )


class RunSummary(BaseModel):
    """Counters for one scheduled processor run."""
    skipped_reason: Optional[SkipReason] = None
    groups: int = 0
    created: int = 0
    updated: int = 0
    window_miss: int = 0
    thresholds_not_met: int = 0
    failed: int = 0
