"""Push candidate model: one row per (rule kind, event) that currently qualifies."""

from sqlalchemy import Column, String, Integer, Boolean, DateTime, UniqueConstraint, Index, Enum as SQLEnum
from datetime import datetime, UTC
from gathering_push.db import Base
import uuid
import enum


class RuleKind(str, enum.Enum):
    UPCOMING = "UPCOMING"  # events ending soon
    REMINDER = "REMINDER"  # events starting soon


class CandidateStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    SUPPRESSED = "SUPPRESSED"


def _now():
    return datetime.now(UTC).replace(tzinfo=None)


class GatheringPushCandidate(Base):
    """Marks that an event qualifies for a push rule and awaits processing.

    Status is derived from ``processed_at`` and ``is_suppressed``:
    suppressed wins, then processed, otherwise pending.
    """
    __tablename__ = "irl_gathering_push_candidates"
    __table_args__ = (
        UniqueConstraint("rule_kind", "event_uid", name="uq_irl_push_candidates_rule_kind_event"),
        Index("ix_irl_push_candidates_pending", "processed_at", "is_suppressed"),
        Index("ix_irl_push_candidates_group", "rule_kind", "gathering_uid"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    rule_kind = Column(SQLEnum(RuleKind, name="irlgatheringpushrulekind"), nullable=False)
    gathering_uid = Column(String, nullable=False)
    event_uid = Column(String, nullable=False, index=True)
    event_start_date = Column(DateTime, nullable=False)
    event_end_date = Column(DateTime, nullable=False)
    attendee_count = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime, nullable=True)
    is_suppressed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    @property
    def status(self) -> CandidateStatus:
        if self.is_suppressed:
            return CandidateStatus.SUPPRESSED
        if self.processed_at is not None:
            return CandidateStatus.PROCESSED
        return CandidateStatus.PENDING

    def mark_pending(self):
        self.processed_at = None
        self.is_suppressed = False

    def __repr__(self):
        return f"<GatheringPushCandidate {self.rule_kind.value} event={self.event_uid} status={self.status.value}>"
