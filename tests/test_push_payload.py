"""Tests for the IRL gathering payload builder and notification copy."""

from datetime import datetime, timedelta

from gathering_push.models.push_candidate import RuleKind
from gathering_push.schemas.push_payload import PAYLOAD_VERSION, parse_stored_payload
from gathering_push.services.push_candidates import EventCount
from gathering_push.services.push_payload import (
    PushPayloadBuilder,
    days_until,
    human_days,
    render_title_and_description,
)
from gathering_push.utils.datetime import iso_utc

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _rows(*events, counts=None):
    counts = counts or {}
    return [EventCount(ev.uid, counts.get(ev.uid, 5)) for ev in events]


class TestPushPayloadBuilder:

    def test_aggregates_location_events_and_attendees(
        self, db_session, make_gathering, make_event, add_guests
    ):
        g = make_gathering(location="Lisbon", flag="PT")
        e2 = make_event(g, start=NOW + timedelta(days=2), uid="event-b")
        e1 = make_event(g, start=NOW + timedelta(days=1), uid="event-a")
        make_event(g, start=NOW + timedelta(days=30), uid="event-later")
        make_event(g, start=NOW - timedelta(days=5), uid="event-past")
        add_guests(e1, member_uids=["m-shared", "m-one"])
        add_guests(e2, member_uids=["m-shared", "m-two", "m-three"])

        payload = PushPayloadBuilder(db_session).build(
            RuleKind.UPCOMING, g.uid, _rows(e2, e1, counts={"event-a": 2, "event-b": 3}), now=NOW
        )

        assert payload.version == PAYLOAD_VERSION
        assert payload.rule_kind == RuleKind.UPCOMING
        assert payload.location.name == "Lisbon"
        assert payload.location.flag == "PT"
        # full upcoming schedule, not just the payload events
        assert payload.events.total == 3
        assert payload.events.qualified == 2
        assert payload.events.event_uids == ["event-a", "event-b"]
        assert [i.attendee_count for i in payload.events.items] == [2, 3]
        assert payload.events.dates.start == iso_utc(e1.start_date)
        assert payload.events.dates.end == iso_utc(e2.end_date)
        assert payload.attendees.total == 4
        assert payload.attendees.top_attendees[0].member_uid == "m-shared"
        assert payload.attendees.top_attendees[0].events_count == 2
        assert [a.member_uid for a in payload.attendees.top_attendees[1:]] == ["m-one", "m-three", "m-two"]
        assert payload.ui.location_uid == g.uid
        assert payload.ui.event_slugs == ["event-a", "event-b"]

    def test_metadata_uses_camel_case_keys(self, db_session, make_gathering, make_event):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=1), attendees=2)

        metadata = PushPayloadBuilder(db_session).build(RuleKind.REMINDER, g.uid, _rows(ev), now=NOW).to_metadata()

        assert metadata["version"] == 1
        assert metadata["ruleKind"] == "REMINDER"
        assert metadata["gatheringUid"] == g.uid
        assert metadata["events"]["eventUids"] == [ev.uid]
        assert "attendeeCount" in metadata["events"]["items"][0]
        assert "topAttendees" in metadata["attendees"]
        assert metadata["ui"]["eventSlugs"] == [ev.slug]

        parsed = parse_stored_payload(metadata)
        assert parsed is not None
        assert parsed.events.event_uids == [ev.uid]

    def test_top_attendees_capped_at_six(self, db_session, make_gathering, make_event):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=1), attendees=8)

        payload = PushPayloadBuilder(db_session).build(RuleKind.UPCOMING, g.uid, _rows(ev), now=NOW)

        assert payload.attendees.total == 8
        assert len(payload.attendees.top_attendees) == 6

    def test_missing_gathering_yields_null_location(self, db_session, make_gathering, make_event):
        g = make_gathering(is_deleted=True)
        ev = make_event(g, start=NOW + timedelta(days=1), attendees=1)

        payload = PushPayloadBuilder(db_session).build(RuleKind.UPCOMING, g.uid, _rows(ev), now=NOW)

        assert payload.location is None
        title, _ = render_title_and_description(payload, now=NOW)
        assert title == f"IRL gathering in {g.uid}"


class TestTitleAndDescription:

    def test_upcoming_copy(self, db_session, make_gathering, make_event):
        g = make_gathering(location="Lisbon")
        e1 = make_event(g, start=NOW + timedelta(days=1))
        e2 = make_event(g, start=NOW + timedelta(days=2))
        make_event(g, start=NOW + timedelta(days=3))

        payload = PushPayloadBuilder(db_session).build(RuleKind.UPCOMING, g.uid, _rows(e1, e2), now=NOW)
        title, description = render_title_and_description(payload, now=NOW)

        assert title == "IRL gathering in Lisbon"
        assert description == "3 events happening in Lisbon starting Oct 20"

    def test_upcoming_copy_single_event(self, db_session, make_gathering, make_event):
        g = make_gathering(location="Lisbon")
        ev = make_event(g, start=NOW + timedelta(days=1))

        payload = PushPayloadBuilder(db_session).build(RuleKind.UPCOMING, g.uid, _rows(ev), now=NOW)
        _, description = render_title_and_description(payload, now=NOW)

        assert description == "1 event happening in Lisbon starting Oct 20"

    def test_reminder_copy(self, db_session, make_gathering, make_event):
        g = make_gathering(location="Berlin")
        ev = make_event(g, start=NOW + timedelta(hours=36))

        payload = PushPayloadBuilder(db_session).build(RuleKind.REMINDER, g.uid, _rows(ev), now=NOW)
        title, description = render_title_and_description(payload, now=NOW)

        assert title == "Reminder: IRL gathering in Berlin"
        assert description == "Reminder: IRL gathering in Berlin starts in 2 days."

    def test_days_until_and_human_days(self):
        assert days_until(iso_utc(NOW - timedelta(hours=1)), NOW) == 0
        assert days_until(iso_utc(NOW + timedelta(hours=2)), NOW) == 1
        assert days_until(None, NOW) is None
        assert human_days(0) == "today"
        assert human_days(1) == "1 day"
        assert human_days(4) == "4 days"
        assert human_days(None) == "soon"


class TestParseStoredPayload:

    def test_rejects_non_payloads(self):
        assert parse_stored_payload("not a dict") is None
        assert parse_stored_payload(None) is None

    def test_rejects_unknown_version(self):
        assert parse_stored_payload({"version": 99, "ruleKind": "UPCOMING"}) is None

    def test_rejects_schema_mismatch(self):
        assert parse_stored_payload({"version": 1, "ruleKind": "UPCOMING", "gatheringUid": "g"}) is None
