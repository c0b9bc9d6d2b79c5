"""
Exceptions raised by the notification subsystem.
"""

from typing import Optional


class NotificationError(Exception):
    """Base class for notification subsystem errors."""
    pass


class DeliveryConfigError(NotificationError):
    """
    Gateway credentials are missing or still hold placeholder values.

    Not retryable: the dispatch is aborted and no queue item is created.
    """
    pass


class RateLimitExceeded(NotificationError):
    """A producer went over its fixed-window limit."""

    def __init__(self, message: str, retry_after_seconds: int, limit: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.retry_after_seconds = retry_after_seconds
        self.limit = limit


class DeadLetterNotFound(NotificationError):
    pass


class DeadLetterAlreadyAcknowledged(NotificationError):
    pass


class SubscriptionNotFound(NotificationError):
    pass
