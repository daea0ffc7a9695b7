"""Builds the versioned metadata payload and the user-facing copy of a push."""

import logging
import math
from datetime import datetime
from typing import Iterable, Optional, Protocol, Tuple

from sqlalchemy.orm import Session

from gathering_push.models.push_candidate import RuleKind
from gathering_push.schemas.push_payload import (
    PAYLOAD_VERSION,
    TOP_ATTENDEES_LIMIT,
    AttendeesBlock,
    DateRange,
    EventsBlock,
    EventSummary,
    GatheringPayload,
    GatheringPayloadV1,
    LocationInfo,
    TopAttendee,
    UiBlock,
)
from gathering_push.services import gathering_data
from gathering_push.utils.datetime import db_now, ensure_aware_utc, iso_utc, to_naive_utc

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


class EventCountRow(Protocol):
    event_uid: str
    attendee_count: int


class PushPayloadBuilder:
    """Aggregates gathering, event and attendee data for one (rule kind, gathering)."""

    def __init__(self, db: Session):
        self.db = db

    def build(
        self,
        rule_kind: RuleKind,
        gathering_uid: str,
        rows: Iterable[EventCountRow],
        now: Optional[datetime] = None,
    ) -> GatheringPayload:
        now = to_naive_utc(now) if now else db_now()
        rows = list(rows)
        attendee_count_by_event = {r.event_uid: r.attendee_count for r in rows}
        requested_uids = list(dict.fromkeys(r.event_uid for r in rows if r.event_uid))
        logger.info(
            f"[payload] building: rule_kind={rule_kind.value} gathering={gathering_uid} events={len(requested_uids)}"
        )

        gathering = gathering_data.get_gathering(self.db, gathering_uid)
        location = None
        if gathering:
            location = LocationInfo(
                id=gathering.uid,
                name=gathering.location,
                description=gathering.description,
                country=gathering.country,
                timezone=gathering.timezone,
                latitude=gathering.latitude,
                longitude=gathering.longitude,
                flag=gathering.flag,
                icon=gathering.icon,
            )
        else:
            logger.warning(f"[payload] gathering {gathering_uid} not found; payload has no location")

        events = gathering_data.load_events(self.db, requested_uids)
        items = [
            EventSummary(
                uid=ev.uid,
                slug=ev.slug,
                name=ev.name,
                start_date=iso_utc(ev.start_date),
                end_date=iso_utc(ev.end_date),
                attendee_count=attendee_count_by_event.get(ev.uid, 0),
                logo_url=ev.logo_url,
            )
            for ev in events
        ]
        event_uids = [ev.uid for ev in events]

        dates = DateRange(
            start=iso_utc(min(ev.start_date for ev in events)) if events else None,
            end=iso_utc(max(ev.end_date for ev in events)) if events else None,
        )

        top = [
            TopAttendee(
                member_uid=rank.member_uid,
                display_name=rank.display_name,
                image_url=rank.image_url,
                events_count=rank.events_count,
            )
            for rank in gathering_data.top_attendees(self.db, event_uids, TOP_ATTENDEES_LIMIT)
        ]

        payload = GatheringPayloadV1(
            version=PAYLOAD_VERSION,
            rule_kind=rule_kind,
            gathering_uid=gathering_uid,
            location=location,
            events=EventsBlock(
                total=gathering_data.count_upcoming_events(self.db, gathering_uid, now),
                qualified=len(items),
                event_uids=event_uids,
                dates=dates,
                items=items,
            ),
            attendees=AttendeesBlock(
                total=gathering_data.unique_attendee_count(self.db, event_uids),
                top_attendees=top,
            ),
            ui=UiBlock(location_uid=gathering_uid, event_slugs=[i.slug for i in items]),
        )
        logger.info(
            f"[payload] computed: events_total={payload.events.total} qualified={payload.events.qualified} "
            f"unique_attendees={payload.attendees.total} top_attendees={len(top)}"
        )
        return payload


def _parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return ensure_aware_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def days_until(start_iso: Optional[str], now: Optional[datetime] = None) -> Optional[int]:
    start = _parse_iso(start_iso)
    if start is None:
        return None
    now = ensure_aware_utc(now) if now else ensure_aware_utc(db_now())
    days = math.ceil((start - now).total_seconds() / SECONDS_PER_DAY)
    return max(0, days)


def human_days(days: Optional[int]) -> str:
    if days is None:
        return "soon"
    if days == 0:
        return "today"
    if days == 1:
        return "1 day"
    return f"{days} days"


def _short_date(value: Optional[str]) -> Optional[str]:
    dt = _parse_iso(value)
    return f"{dt:%b} {dt.day}" if dt else None


def _location_name(payload: GatheringPayload) -> str:
    if payload.location and payload.location.name:
        return payload.location.name
    return payload.gathering_uid or "this location"


def render_title_and_description(payload: GatheringPayload, now: Optional[datetime] = None) -> Tuple[str, str]:
    """Derive the notification copy from the payload alone (no queries)."""
    name = _location_name(payload)

    if payload.rule_kind == RuleKind.REMINDER:
        days = days_until(payload.events.dates.start, now)
        return (
            f"Reminder: IRL gathering in {name}",
            f"Reminder: IRL gathering in {name} starts in {human_days(days)}.",
        )

    total = payload.events.total
    noun = "event" if total == 1 else "events"
    starting = _short_date(payload.events.dates.start)
    description = f"{total} {noun} happening in {name}"
    description += f" starting {starting}" if starting else " soon"
    return f"IRL gathering in {name}", description


def summarize(payload: GatheringPayload) -> dict:
    """Compact view used for logs and trigger responses."""
    return {
        "events_total": payload.events.total,
        "events_qualified": payload.events.qualified,
        "event_uids": list(payload.events.event_uids),
        "dates": {"start": payload.events.dates.start, "end": payload.events.dates.end},
        "attendees_total": payload.attendees.total,
        "top_attendees": len(payload.attendees.top_attendees),
    }
