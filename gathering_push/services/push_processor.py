"""Publishes IRL gathering notifications from pending candidates.

Two producers feed one publish path:

- ``run()``: the scheduled job. Applies window and threshold gating to every
  pending (rule kind, gathering) group.
- ``trigger()``: the operator override for one (gathering, rule kind). Forces
  a fresh candidate pass and skips gating.

Both end in ``_publish``, which looks up the existing notification by its
dedup key (category, ruleKind, gatheringUid, version) and updates it in place
or creates it. A given (rule kind, gathering) therefore has at most one record
per payload version.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Literal, Optional, Tuple

from sqlalchemy.orm import Session

from gathering_push.models.notification import PushNotification, PushNotificationCategory
from gathering_push.models.push_candidate import GatheringPushCandidate, RuleKind
from gathering_push.models.push_config import GatheringPushConfig
from gathering_push.scheduler.lock import key_lock
from gathering_push.schemas.push_payload import PAYLOAD_VERSION, GatheringPayload
from gathering_push.schemas.push_trigger import (
    AttendeeCounts,
    CandidateCounts,
    EventCounts,
    EventDates,
    RunSummary,
    SkipReason,
    TriggerResult,
)
from gathering_push.services import audit, gathering_data
from gathering_push.services.push_candidates import EventCount, PushCandidateService, merge_published_rows
from gathering_push.services.push_config import PushConfigService
from gathering_push.services.push_notification import PushNotificationStore
from gathering_push.services.push_payload import PushPayloadBuilder, render_title_and_description, summarize
from gathering_push.utils.datetime import db_now, days_from, iso_utc, to_naive_utc

logger = logging.getLogger(__name__)

Source = Literal["job", "admin"]


@dataclass
class PublishCommand:
    """Request to publish (create or refresh) the notification of one group."""
    rule_kind: RuleKind
    gathering_uid: str
    candidates: List[GatheringPushCandidate]
    source: Source
    bump: bool = False


@dataclass
class PublishOutcome:
    action: Literal["created", "updated"]
    notification: PushNotification
    payload: GatheringPayload


def _log_ctx(ctx: Dict[str, object]) -> str:
    return " ".join(f"{k}={v}" for k, v in ctx.items())


def _log_decision(message: str, **ctx):
    logger.info(f"[IRL push] {message} | {_log_ctx(ctx)}")


def group_candidates(
    candidates: List[GatheringPushCandidate],
) -> Dict[Tuple[RuleKind, str], List[GatheringPushCandidate]]:
    """Group by (rule kind, gathering), keeping input order inside each group."""
    groups: Dict[Tuple[RuleKind, str], List[GatheringPushCandidate]] = {}
    for c in candidates:
        groups.setdefault((c.rule_kind, c.gathering_uid), []).append(c)
    return groups


def matches_window(
    rule_kind: RuleKind,
    candidates: List[GatheringPushCandidate],
    cfg: GatheringPushConfig,
    now: datetime,
) -> bool:
    """Earliest relevant date of the group lies within [now, now + window].

    UPCOMING looks at end dates with the upcoming window; REMINDER looks at
    start dates with the reminder window.
    """
    if rule_kind == RuleKind.UPCOMING:
        dates = [c.event_end_date for c in candidates if c.event_end_date]
        window_end = days_from(now, cfg.upcoming_window_days)
    else:
        dates = [c.event_start_date for c in candidates if c.event_start_date]
        window_end = days_from(now, cfg.reminder_days_before)

    if not dates:
        logger.info(f"[IRL push job] window check: rule_kind={rule_kind.value} earliest=<none> -> false")
        return False

    earliest = min(dates)
    ok = now <= earliest <= window_end
    logger.info(
        f"[IRL push job] window check: rule_kind={rule_kind.value} earliest={earliest.isoformat()} "
        f"window=[{now.isoformat()}..{window_end.isoformat()}] -> {ok}"
    )
    return ok


class GatheringPushProcessor:
    def __init__(
        self,
        db: Session,
        config_service: Optional[PushConfigService] = None,
        candidate_service: Optional[PushCandidateService] = None,
    ):
        self.db = db
        self.config_service = config_service or PushConfigService(db)
        self.candidate_service = candidate_service or PushCandidateService(db, self.config_service)
        self.payload_builder = PushPayloadBuilder(db)

    # Scheduled path

    def run(self, now: Optional[datetime] = None) -> RunSummary:
        """Process every pending candidate group once."""
        cfg = self.config_service.get_active_or_none()
        if not cfg:
            return RunSummary(skipped_reason=SkipReason.no_active_config)
        if not cfg.enabled:
            logger.info(f"[IRL push job] config {cfg.id} disabled -> nothing to do")
            return RunSummary(skipped_reason=SkipReason.config_disabled)

        now = to_naive_utc(now) if now else db_now()
        candidates = (
            self.db.query(GatheringPushCandidate)
            .filter(
                GatheringPushCandidate.processed_at.is_(None),
                GatheringPushCandidate.is_suppressed.is_(False),
            )
            .order_by(GatheringPushCandidate.event_start_date.asc())
            .all()
        )
        groups = group_candidates(candidates)
        summary = RunSummary(groups=len(groups))
        logger.info(f"[IRL push job] started: pending_candidates={len(candidates)} groups={len(groups)}")

        for (rule_kind, gathering_uid), group in groups.items():
            try:
                self._process_group(cfg, rule_kind, gathering_uid, group, now, summary)
            except Exception:
                self.db.rollback()
                summary.failed += 1
                logger.exception(
                    f"[IRL push job] group failed; left pending for next run "
                    f"rule_kind={rule_kind.value} gathering={gathering_uid}"
                )

        logger.info(f"[IRL push job] finished: {summary.model_dump()}")
        return summary

    def _process_group(
        self,
        cfg: GatheringPushConfig,
        rule_kind: RuleKind,
        gathering_uid: str,
        group: List[GatheringPushCandidate],
        now: datetime,
        summary: RunSummary,
    ) -> None:
        if not matches_window(rule_kind, group, cfg, now):
            self._mark_processed(group, now)
            self.db.commit()
            summary.window_miss += 1
            _log_decision(
                "group skipped (window_miss)",
                source="job", rule_kind=rule_kind.value, gathering=gathering_uid, candidates=len(group),
            )
            return

        total_in_window = gathering_data.count_events_in_window(
            self.db, gathering_uid, now, days_from(now, cfg.upcoming_window_days)
        )
        qualified = len({c.event_uid for c in group})
        if total_in_window < cfg.total_events_threshold or qualified < cfg.qualified_events_threshold:
            summary.thresholds_not_met += 1
            _log_decision(
                "group skipped (thresholds_not_met)",
                source="job",
                rule_kind=rule_kind.value,
                gathering=gathering_uid,
                total_events_in_window=total_in_window,
                total_events_threshold=cfg.total_events_threshold,
                qualified_events=qualified,
                qualified_events_threshold=cfg.qualified_events_threshold,
            )
            return

        outcome = self._publish(PublishCommand(rule_kind, gathering_uid, group, source="job"), now)
        if outcome.action == "created":
            summary.created += 1
        else:
            summary.updated += 1

    # Manual path

    def trigger(self, gathering_uid: str, rule_kind: RuleKind, now: Optional[datetime] = None) -> TriggerResult:
        """Publish for one gathering and rule kind right away, bypassing gating."""
        cfg = self.config_service.get_active_or_none()
        if not cfg:
            _log_decision("trigger skipped (no_active_config)", source="admin", rule_kind=rule_kind.value, gathering=gathering_uid)
            return TriggerResult.skipped(rule_kind, gathering_uid, SkipReason.no_active_config)
        if not cfg.enabled:
            _log_decision("trigger skipped (config_disabled)", source="admin", rule_kind=rule_kind.value, gathering=gathering_uid)
            return TriggerResult.skipped(rule_kind, gathering_uid, SkipReason.config_disabled, config_id=cfg.id)

        now = to_naive_utc(now) if now else db_now()
        window_end = days_from(now, cfg.upcoming_window_days)
        events = gathering_data.events_in_window(self.db, gathering_uid, now, window_end)
        _log_decision(
            "trigger started",
            source="admin", rule_kind=rule_kind.value, gathering=gathering_uid, events=len(events),
            window_end=window_end.isoformat(),
        )
        if not events:
            return TriggerResult.skipped(
                rule_kind, gathering_uid, SkipReason.no_events_in_window, window_end=iso_utc(window_end)
            )

        # Fresh attendee counts; processed rows of this rule kind come back as pending so they can be re-sent.
        try:
            self.candidate_service.refresh_candidates(
                [ev.uid for ev in events], force_rule_kind=rule_kind, now=now
            )
        except Exception as e:
            return self._trigger_failed(rule_kind, gathering_uid, "candidate refresh", e)

        candidates = (
            self.db.query(GatheringPushCandidate)
            .filter(
                GatheringPushCandidate.gathering_uid == gathering_uid,
                GatheringPushCandidate.rule_kind == rule_kind,
                GatheringPushCandidate.processed_at.is_(None),
                GatheringPushCandidate.is_suppressed.is_(False),
            )
            .order_by(GatheringPushCandidate.event_start_date.asc())
            .all()
        )
        if not candidates:
            _log_decision("trigger skipped (no_candidates)", source="admin", rule_kind=rule_kind.value, gathering=gathering_uid)
            return TriggerResult.skipped(rule_kind, gathering_uid, SkipReason.no_candidates, events_in_window=len(events))

        _log_decision(
            "group gating bypassed (admin trigger)",
            source="admin", rule_kind=rule_kind.value, gathering=gathering_uid, candidates=len(candidates),
        )
        try:
            outcome = self._publish(
                PublishCommand(rule_kind, gathering_uid, candidates, source="admin", bump=True), now
            )
        except Exception as e:
            return self._trigger_failed(rule_kind, gathering_uid, "publish", e)

        info = summarize(outcome.payload)
        return TriggerResult(
            ok=True,
            action=outcome.action,
            rule_kind=rule_kind,
            gathering_uid=gathering_uid,
            notification_id=outcome.notification.id,
            payload_version=outcome.payload.version,
            candidates=CandidateCounts(total=len(candidates), processed=len(candidates)),
            events=EventCounts(
                total=info["events_total"],
                qualified=info["events_qualified"],
                event_uids=info["event_uids"],
                dates=EventDates(**info["dates"]),
            ),
            attendees=AttendeeCounts(total=info["attendees_total"], top_attendees=info["top_attendees"]),
            updated_at=iso_utc(now),
        )

    def _trigger_failed(self, rule_kind: RuleKind, gathering_uid: str, step: str, error: Exception) -> TriggerResult:
        self.db.rollback()
        logger.exception(
            f"[IRL push] trigger failed during {step}; candidates left as they were "
            f"rule_kind={rule_kind.value} gathering={gathering_uid}"
        )
        return TriggerResult.skipped(
            rule_kind, gathering_uid, SkipReason.publish_failed, step=step, error=type(error).__name__
        )

    # Shared publish path

    def _publish(self, command: PublishCommand, now: datetime) -> PublishOutcome:
        """Create or refresh the notification for one group, then mark its candidates processed."""
        with key_lock(command.rule_kind.value, command.gathering_uid):
            existing = PushNotificationStore.find_by_dedup_key(
                self.db,
                PushNotificationCategory.IRL_GATHERING,
                command.rule_kind,
                command.gathering_uid,
                PAYLOAD_VERSION,
            )
            # An update keeps the events already published alongside the new group.
            rows = merge_published_rows(
                self.db, existing, [EventCount(c.event_uid, c.attendee_count) for c in command.candidates]
            )
            payload = self.payload_builder.build(command.rule_kind, command.gathering_uid, rows, now=now)
            title, description = render_title_and_description(payload, now=now)
            metadata = payload.to_metadata()

            if existing:
                notification = PushNotificationStore.update(self.db, existing, title, description, metadata)
                if command.bump:
                    PushNotificationStore.bump(self.db, notification, now=now)
                action = "updated"
            else:
                notification = PushNotificationStore.create(
                    self.db,
                    PushNotificationCategory.IRL_GATHERING,
                    title,
                    description,
                    metadata,
                    is_public=True,
                    now=now,
                )
                action = "created"

            self._mark_processed(command.candidates, now)
            self.db.commit()

        audit.log_push_stored(
            source=command.source,
            action=action,
            notification_id=notification.id,
            rule_kind=command.rule_kind.value,
            gathering_uid=command.gathering_uid,
            payload_version=payload.version,
            events_total=payload.events.total,
            attendees_total=payload.attendees.total,
            bumped=bool(existing and command.bump),
        )
        return PublishOutcome(action=action, notification=notification, payload=payload)

    def _mark_processed(self, candidates: List[GatheringPushCandidate], now: datetime) -> None:
        for c in candidates:
            c.processed_at = now
        self.db.flush()
        logger.info(f"[IRL push job] marked candidates processed: {len(candidates)}")
