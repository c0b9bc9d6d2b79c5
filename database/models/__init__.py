from .base import Base, JSONType, UTCDateTime
from .subscription import PushSubscription
from .notification import NotificationQueueItem, DeadLetterItem, QUEUE_STATUSES
from .rate_limit import RateLimitCounter, LoginAttempt
from .settings import DeliveryConfig, PLACEHOLDER_SHARED_SECRET, PLACEHOLDER_GATEWAY_KEY

__all__ = [
    'Base',
    'JSONType',
    'UTCDateTime',
    'PushSubscription',
    'NotificationQueueItem',
    'DeadLetterItem',
    'QUEUE_STATUSES',
    'RateLimitCounter',
    'LoginAttempt',
    'DeliveryConfig',
    'PLACEHOLDER_SHARED_SECRET',
    'PLACEHOLDER_GATEWAY_KEY',
]
