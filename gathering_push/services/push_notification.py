"""Notification store used by the IRL gathering push pipeline.

Records are written to the shared push_notifications table. Delivery to
devices is handled by the notification service that owns that table; here a
stored record counts as published. Methods flush but never commit: the caller
commits the notification write together with its candidate bookkeeping.
"""

import logging
from datetime import datetime
from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from gathering_push.models.notification import PushNotification, PushNotificationReadStatus
from gathering_push.models.push_candidate import RuleKind
from gathering_push.utils.datetime import db_now

logger = logging.getLogger(__name__)


class PushNotificationStore:
    """Create/update/lookup of notification records."""

    @staticmethod
    def create(
        db: Session,
        category: str,
        title: str,
        description: Optional[str],
        metadata: Dict[str, Any],
        is_public: bool = True,
        now: Optional[datetime] = None,
    ) -> PushNotification:
        now = now or db_now()
        notification = PushNotification(
            category=category,
            title=title,
            description=description,
            payload=metadata,
            is_public=is_public,
            is_read=False,
            is_sent=True,
            sent_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(notification)
        db.flush()
        logger.info(f"Push notification stored: {notification.id} - {category}")
        return notification

    @staticmethod
    def update(
        db: Session,
        notification: PushNotification,
        title: str,
        description: Optional[str],
        metadata: Dict[str, Any],
    ) -> PushNotification:
        notification.title = title
        notification.description = description
        notification.payload = metadata
        db.flush()
        return notification

    @staticmethod
    def find_by_dedup_key(
        db: Session,
        category: str,
        rule_kind: RuleKind,
        gathering_uid: str,
        version: int,
    ) -> Optional[PushNotification]:
        """Existing record for (category, ruleKind, gatheringUid, version), oldest first."""
        return (
            db.query(PushNotification)
            .filter(
                PushNotification.category == category,
                PushNotification.payload["ruleKind"].as_string() == rule_kind.value,
                PushNotification.payload["gatheringUid"].as_string() == gathering_uid,
                PushNotification.payload["version"].as_integer() == version,
            )
            .order_by(PushNotification.created_at.asc())
            .first()
        )

    @staticmethod
    def clear_read_statuses(db: Session, notification_id: str) -> int:
        deleted = (
            db.query(PushNotificationReadStatus)
            .filter(PushNotificationReadStatus.notification_id == notification_id)
            .delete(synchronize_session="fetch")
        )
        if deleted:
            logger.info(f"Cleared {deleted} read statuses for notification {notification_id}")
        return deleted

    @staticmethod
    def bump(db: Session, notification: PushNotification, now: Optional[datetime] = None) -> PushNotification:
        """Make an existing record surface again as new and unread."""
        now = now or db_now()
        PushNotificationStore.clear_read_statuses(db, notification.id)
        notification.is_read = False
        notification.is_sent = True
        notification.sent_at = now
        notification.created_at = now
        db.flush()
        return notification
