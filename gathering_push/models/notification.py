from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Text, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, UTC
from gathering_push.db import Base
import uuid


def _now():
    return datetime.now(UTC).replace(tzinfo=None)


class PushNotificationCategory:
    IRL_GATHERING = "IRL_GATHERING"


class PushNotification(Base):
    __tablename__ = "push_notifications"

    # use a callable for default so new UUIDs are generated per-row
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    category = Column(String, nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    # "metadata" is reserved on declarative classes, so the attribute is named payload
    payload = Column("metadata", JSON, nullable=True)
    recipient_uid = Column(String, nullable=True, index=True)  # null for public notifications
    is_public = Column(Boolean, default=False, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    is_sent = Column(Boolean, default=False, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=_now, nullable=False)
    updated_at = Column(DateTime, default=_now, onupdate=_now, nullable=False)

    read_statuses = relationship(
        "PushNotificationReadStatus", back_populates="notification", cascade="all, delete-orphan"
    )


class PushNotificationReadStatus(Base):
    """Per-member read mark for public notifications."""
    __tablename__ = "push_notification_read_statuses"
    __table_args__ = (
        UniqueConstraint("notification_id", "member_uid", name="uq_push_read_status_notification_member"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    notification_id = Column(String, ForeignKey("push_notifications.id", ondelete="CASCADE"), nullable=False, index=True)
    member_uid = Column(String, nullable=False)
    read_at = Column(DateTime, default=_now, nullable=False)

    notification = relationship("PushNotification", back_populates="read_statuses")
