"""Tests for the scheduled run and manual trigger of IRL gathering pushes."""

from datetime import datetime, timedelta

import pytest
from unittest.mock import patch

from gathering_push.models.notification import PushNotification, PushNotificationReadStatus
from gathering_push.models.push_candidate import GatheringPushCandidate, RuleKind, CandidateStatus
from gathering_push.schemas.push_trigger import SkipReason
from gathering_push.services.push_candidates import PushCandidateService
from gathering_push.services.push_notification import PushNotificationStore
from gathering_push.services.push_processor import GatheringPushProcessor

NOW = datetime(2026, 10, 19, 12, 0, 0)


def _notifications(db):
    return db.query(PushNotification).order_by(PushNotification.created_at.asc()).all()


def _pending(db):
    return (
        db.query(GatheringPushCandidate)
        .filter(GatheringPushCandidate.processed_at.is_(None), GatheringPushCandidate.is_suppressed.is_(False))
        .all()
    )


@pytest.fixture
def lenient_config(make_config):
    """Config from the end-to-end example: every qualifying group publishes."""
    return make_config(
        min_attendees_per_event=3,
        upcoming_window_days=7,
        reminder_days_before=2,
        total_events_threshold=1,
        qualified_events_threshold=1,
    )


class TestScheduledRun:

    def test_end_to_end_single_event(self, db_session, lenient_config, make_gathering, make_event):
        g = make_gathering()
        end = NOW + timedelta(days=3)
        ev = make_event(g, start=end - timedelta(hours=4), end=end, attendees=5)

        refresh = PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)
        assert refresh.upserted == 1

        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.groups == 1
        assert summary.created == 1
        notifications = _notifications(db_session)
        assert len(notifications) == 1
        n = notifications[0]
        assert n.category == "IRL_GATHERING"
        assert n.is_public is True
        assert n.is_sent is True
        assert n.payload["ruleKind"] == "UPCOMING"
        assert n.payload["gatheringUid"] == g.uid
        assert n.payload["version"] == 1
        assert _pending(db_session) == []

        first_payload = dict(n.payload)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)
        again = GatheringPushProcessor(db_session).run(now=NOW)

        assert again.groups == 0
        assert again.created == 0
        assert len(_notifications(db_session)) == 1
        db_session.refresh(n)
        assert n.payload == first_payload

    def test_changed_data_updates_existing_record(
        self, db_session, lenient_config, make_gathering, make_event, add_guests
    ):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        service = PushCandidateService(db_session)
        service.refresh_candidates([ev.uid], now=NOW)
        GatheringPushProcessor(db_session).run(now=NOW)
        n = _notifications(db_session)[0]
        n.is_read = True
        db_session.commit()
        created_at = n.created_at

        add_guests(ev, member_uids=["late-arrival"])
        service.refresh_candidates([ev.uid], now=NOW)
        summary = GatheringPushProcessor(db_session).run(now=NOW + timedelta(hours=1))

        assert summary.updated == 1
        assert summary.created == 0
        notifications = _notifications(db_session)
        assert len(notifications) == 1
        db_session.refresh(n)
        assert n.payload["attendees"]["total"] == 6
        # the scheduled path never bumps
        assert n.is_read is True
        assert n.created_at == created_at

    def test_reminder_and_upcoming_publish_separately(
        self, db_session, lenient_config, make_gathering, make_event
    ):
        g = make_gathering(location="Berlin")
        ev = make_event(g, start=NOW + timedelta(hours=12), attendees=5)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)

        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.created == 2
        titles = sorted(n.title for n in _notifications(db_session))
        assert titles == ["IRL gathering in Berlin", "Reminder: IRL gathering in Berlin"]

    def test_window_miss_marks_group_processed(self, db_session, lenient_config, make_gathering, make_event):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)

        summary = GatheringPushProcessor(db_session).run(now=NOW + timedelta(days=4))

        assert summary.window_miss == 1
        assert summary.created == 0
        assert _notifications(db_session) == []
        assert _pending(db_session) == []
        c = db_session.query(GatheringPushCandidate).one()
        assert c.status == CandidateStatus.PROCESSED

    def test_thresholds_not_met_leaves_group_pending(self, db_session, make_config, make_gathering, make_event):
        make_config(total_events_threshold=5, qualified_events_threshold=2)
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)

        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.thresholds_not_met == 1
        assert _notifications(db_session) == []
        assert len(_pending(db_session)) == 1

    def test_thresholds_met_at_boundary(self, db_session, make_config, make_gathering, make_event):
        make_config(total_events_threshold=2, qualified_events_threshold=2)
        g = make_gathering()
        e1 = make_event(g, start=NOW + timedelta(days=2), attendees=5)
        e2 = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        PushCandidateService(db_session).refresh_candidates([e1.uid, e2.uid], now=NOW)

        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.created == 1
        n = _notifications(db_session)[0]
        assert n.payload["events"]["qualified"] == 2

    def test_failed_group_is_isolated(self, db_session, lenient_config, make_gathering, make_event):
        bad = make_gathering(location="Broken")
        good = make_gathering(location="Fine")
        e_bad = make_event(bad, start=NOW + timedelta(days=2, hours=6), attendees=5)
        e_good = make_event(good, start=NOW + timedelta(days=3), attendees=5)
        PushCandidateService(db_session).refresh_candidates([e_bad.uid, e_good.uid], now=NOW)

        real_publish = GatheringPushProcessor._publish

        def flaky(self, command, now):
            if command.gathering_uid == bad.uid:
                raise RuntimeError("store unavailable")
            return real_publish(self, command, now)

        with patch.object(GatheringPushProcessor, "_publish", new=flaky):
            summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.failed == 1
        assert summary.created == 1
        notifications = _notifications(db_session)
        assert [n.payload["gatheringUid"] for n in notifications] == [good.uid]
        pending = _pending(db_session)
        assert [c.gathering_uid for c in pending] == [bad.uid]

    def test_update_keeps_previously_published_events(
        self, db_session, lenient_config, make_gathering, make_event
    ):
        g = make_gathering()
        first = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        service = PushCandidateService(db_session)
        service.refresh_candidates([first.uid], now=NOW)
        GatheringPushProcessor(db_session).run(now=NOW)

        second = make_event(g, start=NOW + timedelta(days=4), attendees=4)
        service.refresh_candidates([second.uid], now=NOW)
        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.updated == 1
        n = _notifications(db_session)[0]
        assert n.payload["events"]["eventUids"] == [first.uid, second.uid]
        assert n.payload["attendees"]["total"] == 9

    def test_no_active_config(self, db_session):
        summary = GatheringPushProcessor(db_session).run(now=NOW)
        assert summary.skipped_reason == SkipReason.no_active_config

    def test_disabled_config(self, db_session, make_config):
        make_config(enabled=False)
        summary = GatheringPushProcessor(db_session).run(now=NOW)
        assert summary.skipped_reason == SkipReason.config_disabled


class TestManualTrigger:

    def test_skips_without_config(self, db_session, make_gathering):
        g = make_gathering()
        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)
        assert result.ok is False
        assert result.action == "skipped"
        assert result.reason == SkipReason.no_active_config

    def test_skips_when_disabled(self, db_session, make_config, make_gathering):
        make_config(enabled=False)
        g = make_gathering()
        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)
        assert result.reason == SkipReason.config_disabled

    def test_skips_without_events_in_window(self, db_session, make_config, make_gathering, make_event):
        make_config()
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=10), attendees=10)

        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.reason == SkipReason.no_events_in_window
        assert "window_end" in result.details

    def test_skips_without_candidates(self, db_session, make_config, make_gathering, make_event):
        make_config(min_attendees_per_event=5)
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=2), attendees=2)

        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.reason == SkipReason.no_candidates
        assert _notifications(db_session) == []

    def test_reminder_without_reminder_candidates(self, db_session, make_config, make_gathering, make_event):
        make_config()
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=3), attendees=5)

        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.REMINDER, now=NOW)

        assert result.reason == SkipReason.no_candidates

    def test_bypasses_gating(self, db_session, make_config, make_gathering, make_event):
        # the scheduled path would stop at thresholds_not_met with this config
        make_config(total_events_threshold=5, qualified_events_threshold=2)
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)
        assert GatheringPushProcessor(db_session).run(now=NOW).thresholds_not_met == 1

        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.ok is True
        assert result.action == "created"
        assert result.notification_id
        assert result.payload_version == 1
        assert result.candidates.total == 1
        assert result.candidates.processed == 1
        assert result.events.qualified == 1
        assert result.events.event_uids == [ev.uid]
        assert result.attendees.total == 5
        assert result.attendees.top_attendees == 5
        assert _pending(db_session) == []

    def test_second_trigger_updates_and_bumps(self, db_session, make_config, make_gathering, make_event):
        make_config()
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=3), attendees=5)
        first = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)
        n = db_session.query(PushNotification).filter(PushNotification.id == first.notification_id).one()
        n.is_read = True
        db_session.add(PushNotificationReadStatus(notification_id=n.id, member_uid="reader-1"))
        db_session.commit()

        later = NOW + timedelta(hours=2)
        second = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=later)

        assert second.action == "updated"
        assert second.notification_id == first.notification_id
        assert len(_notifications(db_session)) == 1
        db_session.refresh(n)
        assert n.is_read is False
        assert n.is_sent is True
        assert n.sent_at == later
        assert n.created_at == later
        assert db_session.query(PushNotificationReadStatus).count() == 0

    def test_trigger_then_run_does_not_duplicate(self, db_session, lenient_config, make_gathering, make_event):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=3), attendees=5)
        GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        PushCandidateService(db_session).refresh_candidates([ev.uid], force_rule_kind=RuleKind.UPCOMING, now=NOW)
        summary = GatheringPushProcessor(db_session).run(now=NOW)

        assert summary.updated == 1
        assert summary.created == 0
        assert len(_notifications(db_session)) == 1

    def test_trigger_leaves_other_rule_kind_processed(
        self, db_session, lenient_config, make_gathering, make_event
    ):
        g = make_gathering()
        ev = make_event(g, start=NOW + timedelta(days=1), attendees=5)
        PushCandidateService(db_session).refresh_candidates([ev.uid], now=NOW)
        assert GatheringPushProcessor(db_session).run(now=NOW).created == 2

        result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.action == "updated"
        reminder = (
            db_session.query(GatheringPushCandidate)
            .filter(GatheringPushCandidate.rule_kind == RuleKind.REMINDER)
            .one()
        )
        assert reminder.status == CandidateStatus.PROCESSED
        again = GatheringPushProcessor(db_session).run(now=NOW)
        assert again.groups == 0
        assert again.updated == 0

    def test_store_failure_is_a_structured_outcome(self, db_session, make_config, make_gathering, make_event):
        make_config()
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=3), attendees=5)

        with patch.object(PushNotificationStore, "create", side_effect=RuntimeError("store down")):
            result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.ok is False
        assert result.action == "skipped"
        assert result.reason == SkipReason.publish_failed
        assert result.details == {"step": "publish", "error": "RuntimeError"}
        assert _notifications(db_session) == []
        assert len(_pending(db_session)) == 1

    def test_refresh_failure_is_a_structured_outcome(self, db_session, make_config, make_gathering, make_event):
        make_config()
        g = make_gathering()
        make_event(g, start=NOW + timedelta(days=3), attendees=5)

        with patch.object(PushCandidateService, "refresh_candidates", side_effect=RuntimeError("db gone")):
            result = GatheringPushProcessor(db_session).trigger(g.uid, RuleKind.UPCOMING, now=NOW)

        assert result.ok is False
        assert result.reason == SkipReason.publish_failed
        assert result.details["step"] == "candidate refresh"
        assert _notifications(db_session) == []
