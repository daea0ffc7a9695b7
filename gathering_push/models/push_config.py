from sqlalchemy import Column, String, Integer, Boolean, DateTime, Index, text
from datetime import datetime, UTC
from gathering_push.db import Base
import uuid


def _now():
    return datetime.now(UTC).replace(tzinfo=None)


class GatheringPushConfig(Base):
    """Tunable thresholds for IRL gathering pushes.

    Exactly one row is active at a time. Rows are never deleted; switching
    config means activating another row (see PushConfigService.activate).
    """
    __tablename__ = "irl_gathering_push_configs"
    __table_args__ = (
        # At most one active row, enforced by the database where partial indexes exist.
        Index(
            "uq_irl_gathering_push_configs_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    enabled = Column(Boolean, default=True, nullable=False)
    min_attendees_per_event = Column(Integer, default=5, nullable=False)
    upcoming_window_days = Column(Integer, default=7, nullable=False)
    reminder_days_before = Column(Integer, default=1, nullable=False)
    total_events_threshold = Column(Integer, default=5, nullable=False)
    qualified_events_threshold = Column(Integer, default=2, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    updated_by = Column(String, nullable=True)  # operator uid
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    def __repr__(self):
        return f"<GatheringPushConfig id={self.id} active={self.is_active} enabled={self.enabled}>"
