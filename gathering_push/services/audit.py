"""Audit logging helpers for push pipeline decisions.

Standard single-line logs so they are easy to index.
"""
from __future__ import annotations
import logging
from typing import Optional, Any

from gathering_push.utils.datetime import utc_now

_logger = logging.getLogger("gathering_push.audit")


def _emit(event: str, actor: Optional[str] = None, **data: Any):
    payload = {"ts": utc_now().isoformat(), "event": event}
    if actor:
        payload["actor"] = actor
    payload.update(data)
    parts = [f"{k}={repr(v)}" for k, v in payload.items()]
    _logger.info("AUDIT " + " ".join(parts))

# Public convenience wrappers

def log_config_activated(config_id: str, actor: Optional[str], created: bool):
    _emit("push_config.activate", actor=actor, config_id=config_id, created=created)

def log_config_updated(config_id: str, actor: Optional[str], fields: list[str]):
    _emit("push_config.update", actor=actor, config_id=config_id, fields=fields)

def log_push_stored(source: str, action: str, notification_id: str, rule_kind: str, gathering_uid: str,
                    payload_version: int, events_total: int, attendees_total: int, bumped: bool):
    _emit(
        "irl_push.store",
        source=source,
        action=action,
        notification_id=notification_id,
        rule_kind=rule_kind,
        gathering_uid=gathering_uid,
        payload_version=payload_version,
        events_total=events_total,
        attendees_total=attendees_total,
        bumped=bumped,
    )

def log_manual_trigger(actor: Optional[str], rule_kind: str, gathering_uid: str, action: str, reason: Optional[str]):
    _emit("irl_push.trigger", actor=actor, rule_kind=rule_kind, gathering_uid=gathering_uid, action=action, reason=reason)
