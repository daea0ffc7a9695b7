"""Read-only views of the gathering/event directory.

These tables are owned by the event directory service; the push pipeline only
queries them. They are declared here so the ORM can join against them and so
tests can seed data.
"""

from sqlalchemy import Column, String, Boolean, DateTime, Text, ForeignKey, UniqueConstraint
from datetime import datetime, UTC
from gathering_push.db import Base
import uuid


class Gathering(Base):
    """An IRL location hosting one or more time-bounded events."""
    __tablename__ = "irl_gatherings"

    uid = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    location = Column(String, nullable=False)  # display name, e.g. "Kyiv"
    description = Column(Text, nullable=True)
    country = Column(String, nullable=True)
    timezone = Column(String, nullable=True)
    latitude = Column(String, nullable=True)
    longitude = Column(String, nullable=True)
    flag = Column(String, nullable=True)
    icon = Column(String, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)


class Event(Base):
    __tablename__ = "irl_events"

    uid = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    gathering_uid = Column(String, ForeignKey("irl_gatherings.uid"), nullable=True, index=True)
    slug = Column(String, nullable=False)
    name = Column(String, nullable=False)
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False, index=True)
    logo_url = Column(String, nullable=True)
    is_deleted = Column(Boolean, default=False, nullable=False)


class Member(Base):
    __tablename__ = "members"

    uid = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    image_url = Column(String, nullable=True)


class EventGuest(Base):
    """One member attending one event."""
    __tablename__ = "irl_event_guests"
    __table_args__ = (
        UniqueConstraint("event_uid", "member_uid", name="uq_irl_event_guests_event_member"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    event_uid = Column(String, ForeignKey("irl_events.uid", ondelete="CASCADE"), nullable=False, index=True)
    member_uid = Column(String, ForeignKey("members.uid", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC).replace(tzinfo=None), nullable=False)
