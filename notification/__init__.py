"""
Notification Module

Push notification delivery for show events: capture, recipient
resolution, dispatch with timeout, retry with backoff, dead-lettering
and producer rate limiting.

Usage:
    from notification import EventCapture, RecipientResolver, PeriodicProcessor

    # Wire everything from config
    from core.app_context import AppContext
    context = AppContext.build(load_config())
    context.notification_service.capture.entry_scored(scored, class_info, entries)

    # Drain due retries (what the scheduler calls)
    context.processor.process_due()
"""

from notification.events import (
    NotificationCategory,
    NotificationPriority,
    NotificationEvent,
    EventSubject,
    EntrySnapshot,
    ClassSnapshot,
    AnnouncementSnapshot,
)

from notification.message_builder import (
    NotificationPayload,
    NotificationMessageBuilder,
)

from notification.capture import (
    EventCapture,
    upcoming_entries,
)

from notification.resolver import (
    RecipientResolver,
    RecipientSubscription,
    NotificationPreferences,
    Delivery,
)

from notification.dispatcher import (
    Dispatcher,
    DispatchResult,
    DispatchStatus,
    DeliveryCredentials,
    PushTransport,
    HttpPushTransport,
    TransportResponse,
)

from notification.retry_queue import (
    RetryQueue,
    backoff_delay,
    BACKOFF_SCHEDULE,
)

from notification.processor import (
    PeriodicProcessor,
    ProcessingResult,
)

from notification.dead_letter import DeadLetterService

from notification.rate_limit import (
    AnnouncementRateLimiter,
    LoginRateLimiter,
    DatabaseCounterStore,
    RedisCounterStore,
    RateLimitDecision,
    device_fingerprint,
)

from notification.subscriptions import SubscriptionService

from notification.service import (
    NotificationService,
    PublishResult,
    process_delivery_task,
)

from notification.exceptions import (
    NotificationError,
    DeliveryConfigError,
    RateLimitExceeded,
    DeadLetterNotFound,
    DeadLetterAlreadyAcknowledged,
    SubscriptionNotFound,
)

__all__ = [
    # Events
    'NotificationCategory',
    'NotificationPriority',
    'NotificationEvent',
    'EventSubject',
    'EntrySnapshot',
    'ClassSnapshot',
    'AnnouncementSnapshot',
    'NotificationPayload',
    'NotificationMessageBuilder',
    'EventCapture',
    'upcoming_entries',
    # Resolution
    'RecipientResolver',
    'RecipientSubscription',
    'NotificationPreferences',
    'Delivery',
    # Dispatch
    'Dispatcher',
    'DispatchResult',
    'DispatchStatus',
    'DeliveryCredentials',
    'PushTransport',
    'HttpPushTransport',
    'TransportResponse',
    # Retry
    'RetryQueue',
    'backoff_delay',
    'BACKOFF_SCHEDULE',
    'PeriodicProcessor',
    'ProcessingResult',
    'DeadLetterService',
    # Rate limiting
    'AnnouncementRateLimiter',
    'LoginRateLimiter',
    'DatabaseCounterStore',
    'RedisCounterStore',
    'RateLimitDecision',
    'device_fingerprint',
    # Subscriptions
    'SubscriptionService',
    # Service
    'NotificationService',
    'PublishResult',
    'process_delivery_task',
    # Errors
    'NotificationError',
    'DeliveryConfigError',
    'RateLimitExceeded',
    'DeadLetterNotFound',
    'DeadLetterAlreadyAcknowledged',
    'SubscriptionNotFound',
]
