"""Versioned schema of the metadata stored on IRL gathering notifications.

The ``version`` field is the discriminant: it is part of the dedup key, and it
tells the reader which model to parse a stored payload with. Bump
``PAYLOAD_VERSION`` and register a new model in ``PAYLOAD_SCHEMAS`` whenever
the shape changes; older payloads keep parsing with their own model.
"""

from __future__ import annotations

import logging
from typing import Any, Literal, Optional, List

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from gathering_push.models.push_candidate import RuleKind

logger = logging.getLogger(__name__)

PAYLOAD_VERSION = 1
TOP_ATTENDEES_LIMIT = 6


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LocationInfo(_CamelModel):
    id: str
    name: str
    description: Optional[str] = None
    country: Optional[str] = None
    timezone: Optional[str] = None
    latitude: Optional[str] = None
    longitude: Optional[str] = None
    flag: Optional[str] = None
    icon: Optional[str] = None


class EventSummary(_CamelModel):
    uid: str
    slug: str
    name: str
    start_date: str
    end_date: str
    attendee_count: int
    logo_url: Optional[str] = None


class DateRange(_CamelModel):
    start: Optional[str] = None
    end: Optional[str] = None


class EventsBlock(_CamelModel):
    total: int  # upcoming events at the gathering, not limited to this payload
    qualified: int
    event_uids: List[str]
    dates: DateRange
    items: List[EventSummary]


class TopAttendee(_CamelModel):
    member_uid: str
    display_name: Optional[str] = None
    image_url: Optional[str] = None
    events_count: int


class AttendeesBlock(_CamelModel):
    total: int
    top_attendees: List[TopAttendee]


class UiBlock(_CamelModel):
    location_uid: str
    event_slugs: List[str]


class GatheringPayloadV1(_CamelModel):
    version: Literal[1] = 1
    rule_kind: RuleKind
    gathering_uid: str
    location: Optional[LocationInfo] = None
    events: EventsBlock
    attendees: AttendeesBlock
    ui: UiBlock

    def to_metadata(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


GatheringPayload = GatheringPayloadV1

PAYLOAD_SCHEMAS = {
    1: GatheringPayloadV1,
}


def parse_stored_payload(raw: Any) -> Optional[GatheringPayload]:
    """Parse notification metadata into its versioned model.

    Returns None for anything that is not a known, well-formed payload.
    """
    if not isinstance(raw, dict):
        return None
    schema = PAYLOAD_SCHEMAS.get(raw.get("version"))
    if schema is None:
        logger.warning("Unknown IRL push payload version: %r", raw.get("version"))
        return None
    try:
        return schema.model_validate(raw)
    except ValidationError as e:
        logger.warning("Stored IRL push payload failed validation: %s", e.error_count())
        return None
