#!/usr/bin/env python3
"""
Retry Queue - failed deliveries waiting for another attempt.

State machine per item:

    pending -> retrying -> succeeded
                        -> pending (retry_count + 1, next_retry_at pushed out)
                        -> failed  (non-retryable, e.g. subscription gone)
                        -> dead-letter (retry budget exhausted)

A failure observed at retry count k is rescheduled after backoff_delay(k).
The first (inline) failure creates the item at retry count 1, one minute
out. When the incremented count reaches max_retries the item is moved to
the dead-letter store instead, so retry_count < max_retries holds for
every pending or retrying row.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence, Union

from sqlalchemy.orm import Session

from core.utils import utcnow, ensure_utc
from database.models import NotificationQueueItem, DeadLetterItem
from database.repositories import QueueRepository, DeadLetterRepository

logger = logging.getLogger(__name__)

BACKOFF_SCHEDULE = (
    timedelta(minutes=1),
    timedelta(minutes=5),
    timedelta(minutes=15),
    timedelta(hours=1),
    timedelta(hours=6),
)
DEFAULT_MAX_RETRIES = 5


def backoff_delay(retry_count: int, schedule: Sequence[timedelta] = BACKOFF_SCHEDULE) -> timedelta:
    """Delay before the next attempt for a failure at (0-indexed) retry count k."""
    if retry_count < 0:
        raise ValueError("retry_count must be non-negative")
    return schedule[min(retry_count, len(schedule) - 1)]


def schedule_from_seconds(seconds: Sequence[int]) -> Sequence[timedelta]:
    return tuple(timedelta(seconds=s) for s in seconds)


class RetryQueue:
    """Queue transitions for one Session; the caller owns commit/rollback."""

    def __init__(
        self,
        db: Session,
        max_retries: int = DEFAULT_MAX_RETRIES,
        schedule: Sequence[timedelta] = BACKOFF_SCHEDULE
    ):
        # The first failure is stored at retry count 1, which must stay below the budget
        if max_retries < 2:
            raise ValueError("max_retries must be at least 2")
        self.db = db
        self.max_retries = max_retries
        self.schedule = schedule
        self.queue = QueueRepository(db)
        self.dead_letters = DeadLetterRepository(db)

    def enqueue_failure(
        self,
        tenant_id: str,
        notification_type: str,
        payload: Dict[str, Any],
        error: str,
        source_entry_id: Optional[str] = None,
        source_announcement_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> NotificationQueueItem:
        """Record a failed first attempt (k = 0) as a pending item."""
        now = now or utcnow()
        item = self.queue.create(
            tenant_id=tenant_id,
            notification_type=notification_type,
            payload=payload,
            retry_count=1,
            max_retries=self.max_retries,
            next_retry_at=now + backoff_delay(0, self.schedule),
            error=error,
            source_entry_id=source_entry_id,
            source_announcement_id=source_announcement_id,
            now=now,
        )
        logger.info(f"Queued {notification_type} for retry as {item.id}: {error}")
        return item

    def claim(self, item_id: Any, now: Optional[datetime] = None) -> Optional[NotificationQueueItem]:
        """Take exclusive ownership of a pending item, or None if someone else has it."""
        if not self.queue.claim(item_id, now):
            return None
        item = self.queue.get_by_id(item_id)
        if item is not None:
            self.db.refresh(item)
        return item

    def record_success(self, item: NotificationQueueItem, now: Optional[datetime] = None) -> NotificationQueueItem:
        now = now or utcnow()
        item.status = 'succeeded'
        item.completed_at = now
        item.claimed_at = None
        item.updated_at = now
        self.db.flush()
        logger.info(f"Queue item {item.id} delivered on retry {item.retry_count}")
        return item

    def record_failure(
        self,
        item: NotificationQueueItem,
        error: str,
        now: Optional[datetime] = None
    ) -> Union[NotificationQueueItem, DeadLetterItem]:
        """Reschedule with backoff, or dead-letter once the retry budget is spent."""
        now = now or utcnow()
        attempt_index = item.retry_count
        new_count = attempt_index + 1

        item.retry_count = new_count
        item.last_error = error
        item.last_error_at = now
        item.claimed_at = None
        item.updated_at = now

        if new_count >= item.max_retries:
            item.status = 'failed'
            self.db.flush()
            dead_letter = self.dead_letters.move_from_queue(item, final_error=error, now=now)
            logger.warning(
                f"Queue item {dead_letter.original_queue_id} exhausted {new_count}/{dead_letter.max_retries} "
                f"retries, moved to dead letter {dead_letter.id}: {error}"
            )
            return dead_letter

        next_retry_at = now + backoff_delay(attempt_index, self.schedule)
        current = ensure_utc(item.next_retry_at)
        if current is not None and current > next_retry_at:
            next_retry_at = current
        item.next_retry_at = next_retry_at
        item.status = 'pending'
        self.db.flush()
        logger.info(
            f"Queue item {item.id} failed (retry {new_count}/{item.max_retries}), "
            f"next attempt at {next_retry_at.isoformat()}: {error}"
        )
        return item

    def record_terminal_failure(self, item: NotificationQueueItem, error: str, now: Optional[datetime] = None) -> NotificationQueueItem:
        """Close an item that can never succeed (e.g. subscription gone)."""
        now = now or utcnow()
        item.status = 'failed'
        item.last_error = error
        item.last_error_at = now
        item.completed_at = now
        item.claimed_at = None
        item.updated_at = now
        self.db.flush()
        logger.info(f"Queue item {item.id} closed without retry: {error}")
        return item

    def release(self, item: NotificationQueueItem, now: Optional[datetime] = None) -> NotificationQueueItem:
        """Hand a claimed item back untouched when the attempt never happened."""
        item.status = 'pending'
        item.claimed_at = None
        item.updated_at = now or utcnow()
        self.db.flush()
        return item
