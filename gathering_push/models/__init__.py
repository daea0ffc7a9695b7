from gathering_push.models.event import Gathering, Event, Member, EventGuest
from gathering_push.models.push_config import GatheringPushConfig
from gathering_push.models.push_candidate import GatheringPushCandidate, RuleKind, CandidateStatus
from gathering_push.models.notification import (
    PushNotification,
    PushNotificationReadStatus,
    PushNotificationCategory,
)

__all__ = [
    "Gathering",
    "Event",
    "Member",
    "EventGuest",
    "GatheringPushConfig",
    "GatheringPushCandidate",
    "RuleKind",
    "CandidateStatus",
    "PushNotification",
    "PushNotificationReadStatus",
    "PushNotificationCategory",
]
