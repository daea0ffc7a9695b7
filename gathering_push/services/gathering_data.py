"""Queries against the event directory (events, gatherings, attendance).

The push pipeline never writes these tables; everything here is read-only.
"""

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, NamedTuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from gathering_push.models.event import Event, EventGuest, Gathering, Member


class AttendeeRank(NamedTuple):
    member_uid: str
    events_count: int
    display_name: Optional[str]
    image_url: Optional[str]


def load_events(db: Session, event_uids: Iterable[str]) -> List[Event]:
    uids = list(event_uids)
    if not uids:
        return []
    return (
        db.query(Event)
        .filter(Event.uid.in_(uids), Event.is_deleted.is_(False))
        .order_by(Event.start_date.asc())
        .all()
    )


def get_gathering(db: Session, gathering_uid: str) -> Optional[Gathering]:
    return (
        db.query(Gathering)
        .filter(Gathering.uid == gathering_uid, Gathering.is_deleted.is_(False))
        .first()
    )


def existing_gathering_uids(db: Session, gathering_uids: Iterable[str]) -> Set[str]:
    uids = {u for u in gathering_uids if u}
    if not uids:
        return set()
    rows = (
        db.query(Gathering.uid)
        .filter(Gathering.uid.in_(uids), Gathering.is_deleted.is_(False))
        .all()
    )
    return {r[0] for r in rows}


def count_attendees_by_event(db: Session, event_uids: Iterable[str]) -> Dict[str, int]:
    uids = list(event_uids)
    if not uids:
        return {}
    rows = (
        db.query(EventGuest.event_uid, func.count(EventGuest.id))
        .filter(EventGuest.event_uid.in_(uids))
        .group_by(EventGuest.event_uid)
        .all()
    )
    return {event_uid: count for event_uid, count in rows}


def _window_query(db: Session, gathering_uid: str, start: datetime, end: datetime):
    return db.query(Event).filter(
        Event.gathering_uid == gathering_uid,
        Event.is_deleted.is_(False),
        Event.end_date >= start,
        Event.end_date <= end,
    )


def events_in_window(db: Session, gathering_uid: str, start: datetime, end: datetime) -> List[Event]:
    """Non-deleted events at a gathering whose end date falls in [start, end]."""
    return _window_query(db, gathering_uid, start, end).order_by(Event.start_date.asc()).all()


def count_events_in_window(db: Session, gathering_uid: str, start: datetime, end: datetime) -> int:
    return _window_query(db, gathering_uid, start, end).count()


def count_upcoming_events(db: Session, gathering_uid: str, now: datetime) -> int:
    """Full upcoming schedule of a gathering (not limited to any window)."""
    return (
        db.query(Event)
        .filter(
            Event.gathering_uid == gathering_uid,
            Event.is_deleted.is_(False),
            Event.end_date >= now,
        )
        .count()
    )


def unique_attendee_count(db: Session, event_uids: Iterable[str]) -> int:
    uids = list(event_uids)
    if not uids:
        return 0
    return (
        db.query(func.count(func.distinct(EventGuest.member_uid)))
        .filter(EventGuest.event_uid.in_(uids))
        .scalar()
        or 0
    )


def top_attendees(db: Session, event_uids: Iterable[str], limit: int) -> List[AttendeeRank]:
    """Members attending the most distinct events among ``event_uids``."""
    uids = list(event_uids)
    if not uids or limit <= 0:
        return []
    events_count = func.count(func.distinct(EventGuest.event_uid)).label("events_count")
    rows = (
        db.query(EventGuest.member_uid, events_count, Member.name, Member.image_url)
        .outerjoin(Member, Member.uid == EventGuest.member_uid)
        .filter(EventGuest.event_uid.in_(uids))
        .group_by(EventGuest.member_uid, Member.name, Member.image_url)
        .order_by(events_count.desc(), EventGuest.member_uid.asc())
        .limit(limit)
        .all()
    )
    return [
        AttendeeRank(member_uid=member_uid, events_count=count, display_name=name, image_url=image_url)
        for member_uid, count, name, image_url in rows
    ]
