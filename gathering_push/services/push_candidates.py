"""Candidate generation for IRL gathering pushes.

Called by attendance-affecting writes elsewhere with the event uids they
touched. Recomputes, per event and rule kind, whether the event qualifies and
upserts or deletes the matching candidate row.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Dict, Iterable, List, NamedTuple, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from gathering_push.exceptions import NotFoundException
from gathering_push.models.event import Event
from gathering_push.models.notification import PushNotification, PushNotificationCategory
from gathering_push.models.push_candidate import GatheringPushCandidate, RuleKind, CandidateStatus
from gathering_push.models.push_config import GatheringPushConfig
from gathering_push.scheduler.lock import key_lock
from gathering_push.schemas.push_payload import PAYLOAD_VERSION, parse_stored_payload
from gathering_push.services import gathering_data
from gathering_push.services.push_config import PushConfigService
from gathering_push.services.push_notification import PushNotificationStore
from gathering_push.services.push_payload import PushPayloadBuilder, render_title_and_description
from gathering_push.utils.datetime import db_now, days_from, to_naive_utc

logger = logging.getLogger(__name__)


@dataclass
class RefreshSummary:
    events_requested: int = 0
    events_found: int = 0
    upserted: int = 0
    reset: int = 0
    unchanged: int = 0
    deleted: int = 0
    notifications_refreshed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class EventCount(NamedTuple):
    event_uid: str
    attendee_count: int


def qualifying_rule_kinds(
    event: Event,
    attendee_count: int,
    gathering_exists: bool,
    cfg: GatheringPushConfig,
    now: datetime,
) -> Set[RuleKind]:
    """Rule kinds the event currently qualifies for."""
    if not gathering_exists:
        return set()
    if event.end_date < now:
        return set()
    if attendee_count < cfg.min_attendees_per_event:
        return set()

    kinds = set()
    if event.end_date <= days_from(now, cfg.upcoming_window_days):
        kinds.add(RuleKind.UPCOMING)
    if now <= event.start_date <= days_from(now, cfg.reminder_days_before):
        kinds.add(RuleKind.REMINDER)
    return kinds


def _normalize(event_ids: Optional[Iterable[str]]) -> List[str]:
    return list(dict.fromkeys(e for e in (event_ids or []) if e))


def merge_published_rows(
    db: Session,
    notification: Optional[PushNotification],
    rows: Iterable[EventCount],
) -> List[EventCount]:
    """Events a notification covers: those in its stored payload plus ``rows``.

    Counts given in ``rows`` win; stored-only events get a fresh attendee count.
    """
    stored_uids: List[str] = []
    if notification is not None:
        stored = parse_stored_payload(notification.payload)
        if stored is None:
            logger.warning(
                f"[candidates] notification {notification.id} has malformed metadata; "
                f"rebuilding from current candidates"
            )
        else:
            stored_uids = list(stored.events.event_uids)

    current = {r.event_uid: r.attendee_count for r in rows}
    counts = gathering_data.count_attendees_by_event(db, [u for u in stored_uids if u not in current])
    return [
        EventCount(uid, current[uid] if uid in current else counts.get(uid, 0))
        for uid in dict.fromkeys(stored_uids + list(current))
    ]


class PushCandidateService:
    """Keeps the candidate table in line with current event and attendance data."""

    def __init__(self, db: Session, config_service: Optional[PushConfigService] = None):
        self.db = db
        self.config_service = config_service or PushConfigService(db)

    def _enabled_config(self) -> Optional[GatheringPushConfig]:
        cfg = self.config_service.get_active_or_none()
        if not cfg:
            logger.warning("[candidates] active config not found -> skipping refresh")
            return None
        if not cfg.enabled:
            logger.info(f"[candidates] config.enabled=false (id={cfg.id}) -> skipping refresh")
            return None
        return cfg

    def refresh_candidates(
        self,
        event_ids: Iterable[str],
        force_rule_kind: Optional[RuleKind] = None,
        now: Optional[datetime] = None,
    ) -> RefreshSummary:
        """Upsert/delete candidates for the given events.

        Unchanged qualifying rows are left alone, so repeated calls on the same
        data are no-ops. ``force_rule_kind`` puts already processed rows of that
        one rule kind back to pending even when nothing changed (manual trigger
        path); rows of the other kind keep their state.
        """
        uids = _normalize(event_ids)
        summary = RefreshSummary(events_requested=len(uids))
        if not uids:
            logger.info("[candidates] no event ids after normalization -> nothing to do")
            return summary

        cfg = self._enabled_config()
        if not cfg:
            return summary

        now = to_naive_utc(now) if now else db_now()
        try:
            self._apply(cfg, uids, force_rule_kind, now, summary)
            self.db.commit()
        except IntegrityError:
            # A concurrent refresh inserted one of our rows first; the retry sees it.
            self.db.rollback()
            logger.warning("[candidates] unique conflict during refresh, retrying once")
            summary = RefreshSummary(events_requested=len(uids))
            self._apply(cfg, uids, force_rule_kind, now, summary)
            self.db.commit()

        logger.info(
            f"[candidates] done; requested={summary.events_requested} found={summary.events_found} "
            f"upserted={summary.upserted} reset={summary.reset} unchanged={summary.unchanged} deleted={summary.deleted}"
        )
        return summary

    def _apply(
        self,
        cfg: GatheringPushConfig,
        uids: List[str],
        force_rule_kind: Optional[RuleKind],
        now: datetime,
        summary: RefreshSummary,
    ) -> None:
        events = gathering_data.load_events(self.db, uids)
        summary.events_found = len(events)
        if len(events) != len(uids):
            found = {ev.uid for ev in events}
            missing = [u for u in uids if u not in found]
            logger.warning(f"[candidates] missing/deleted events; count={len(missing)} uids={','.join(missing)}")

        counts = gathering_data.count_attendees_by_event(self.db, [ev.uid for ev in events])
        gatherings = gathering_data.existing_gathering_uids(self.db, [ev.gathering_uid for ev in events])

        existing: Dict[Tuple[RuleKind, str], GatheringPushCandidate] = {
            (c.rule_kind, c.event_uid): c
            for c in self.db.query(GatheringPushCandidate)
            .filter(GatheringPushCandidate.event_uid.in_([ev.uid for ev in events]))
            .all()
        }

        for ev in events:
            attendee_count = counts.get(ev.uid, 0)
            kinds = qualifying_rule_kinds(ev, attendee_count, ev.gathering_uid in gatherings, cfg, now)
            logger.debug(
                f"[candidates] evaluate event={ev.uid} gathering={ev.gathering_uid} "
                f"attendees={attendee_count} qualifies={sorted(k.value for k in kinds)}"
            )

            for kind in RuleKind:
                current = existing.get((kind, ev.uid))
                if kind not in kinds:
                    if current is not None:
                        self.db.delete(current)
                        summary.deleted += 1
                    continue

                if current is None:
                    self.db.add(
                        GatheringPushCandidate(
                            rule_kind=kind,
                            gathering_uid=ev.gathering_uid,
                            event_uid=ev.uid,
                            event_start_date=ev.start_date,
                            event_end_date=ev.end_date,
                            attendee_count=attendee_count,
                            processed_at=None,
                            is_suppressed=False,
                        )
                    )
                    summary.upserted += 1
                elif self._has_changed(current, ev, attendee_count):
                    current.gathering_uid = ev.gathering_uid
                    current.event_start_date = ev.start_date
                    current.event_end_date = ev.end_date
                    current.attendee_count = attendee_count
                    current.mark_pending()
                    summary.reset += 1
                elif kind == force_rule_kind and current.status == CandidateStatus.PROCESSED:
                    current.processed_at = None
                    summary.reset += 1
                else:
                    summary.unchanged += 1

        self.db.flush()

    @staticmethod
    def _has_changed(candidate: GatheringPushCandidate, ev: Event, attendee_count: int) -> bool:
        return (
            candidate.gathering_uid != ev.gathering_uid
            or candidate.event_start_date != ev.start_date
            or candidate.event_end_date != ev.end_date
            or candidate.attendee_count != attendee_count
        )

    def refresh_candidates_and_update_notifications(
        self,
        event_ids: Iterable[str],
        now: Optional[datetime] = None,
    ) -> RefreshSummary:
        """Refresh candidates, then refresh already-published notifications they touch.

        Published notifications are updated in place (title, description,
        metadata); nothing new is created and read state is kept.
        """
        now = to_naive_utc(now) if now else db_now()
        uids = _normalize(event_ids)
        summary = self.refresh_candidates(uids, now=now)
        if not uids or not self._enabled_config():
            return summary

        gathering_uids = {
            ev.gathering_uid for ev in self.db.query(Event).filter(Event.uid.in_(uids)).all() if ev.gathering_uid
        }
        for gathering_uid in sorted(gathering_uids):
            for kind in RuleKind:
                if self._refresh_published(kind, gathering_uid, now):
                    summary.notifications_refreshed += 1
        return summary

    def refresh_notifications_for_gathering(self, gathering_uid: str, now: Optional[datetime] = None) -> int:
        """Refresh published notifications of both rule kinds for one gathering."""
        if not gathering_uid or not self._enabled_config():
            return 0
        now = to_naive_utc(now) if now else db_now()
        return sum(1 for kind in RuleKind if self._refresh_published(kind, gathering_uid, now))

    def _refresh_published(self, rule_kind: RuleKind, gathering_uid: str, now: datetime) -> bool:
        with key_lock(rule_kind.value, gathering_uid):
            try:
                return self._rebuild_published(rule_kind, gathering_uid, now)
            except Exception:
                self.db.rollback()
                logger.exception(
                    f"[candidates] failed to refresh notification rule_kind={rule_kind.value} gathering={gathering_uid}"
                )
                return False

    def _rebuild_published(self, rule_kind: RuleKind, gathering_uid: str, now: datetime) -> bool:
        notification = PushNotificationStore.find_by_dedup_key(
            self.db, PushNotificationCategory.IRL_GATHERING, rule_kind, gathering_uid, PAYLOAD_VERSION
        )
        if not notification:
            return False

        candidate_uids = [
            c.event_uid
            for c in self.db.query(GatheringPushCandidate)
            .filter(
                GatheringPushCandidate.rule_kind == rule_kind,
                GatheringPushCandidate.gathering_uid == gathering_uid,
                GatheringPushCandidate.is_suppressed.is_(False),
            )
            .order_by(GatheringPushCandidate.event_start_date.asc())
            .all()
        ]
        counts = gathering_data.count_attendees_by_event(self.db, candidate_uids)
        rows = merge_published_rows(
            self.db, notification, [EventCount(uid, counts.get(uid, 0)) for uid in candidate_uids]
        )
        if not rows:
            logger.info(f"[candidates] notification {notification.id} has no events to refresh from; left as is")
            return False

        payload = PushPayloadBuilder(self.db).build(rule_kind, gathering_uid, rows, now=now)
        title, description = render_title_and_description(payload, now=now)
        PushNotificationStore.update(self.db, notification, title, description, payload.to_metadata())
        self.db.commit()
        logger.info(
            f"[candidates] refreshed notification {notification.id} rule_kind={rule_kind.value} "
            f"gathering={gathering_uid} events={len(payload.events.event_uids)}"
        )
        return True

    def suppress_candidate(self, candidate_id: str) -> GatheringPushCandidate:
        candidate = self.db.query(GatheringPushCandidate).filter(GatheringPushCandidate.id == candidate_id).first()
        if not candidate:
            raise NotFoundException(f"Candidate not found: {candidate_id}")
        candidate.is_suppressed = True
        self.db.commit()
        self.db.refresh(candidate)
        logger.info(f"[candidates] suppressed candidate {candidate.id} ({candidate.rule_kind.value} {candidate.event_uid})")
        return candidate
