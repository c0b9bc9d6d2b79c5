#!/usr/bin/env python3
"""
Notification Service - wires capture, resolution, dispatch and retry together.

Control flow:
    EventCapture -> publish(event) -> RecipientResolver -> Dispatcher (first attempt)
        -> on failure RetryQueue -> PeriodicProcessor -> on exhaustion dead letter

First attempts run inline by default. With use_async_queue they are
enqueued on the RQ 'notifications' queue instead; if Redis cannot be
reached the service falls back to inline mode.

Usage:
    from core.app_context import AppContext

    context = AppContext.build(load_config())
    service = context.notification_service

    service.capture.entry_scored(scored_entry, class_info, class_entries)
    service.submit_announcement(announcement)   # may raise RateLimitExceeded
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from redis import Redis
from rq import Queue
from sqlalchemy.exc import SQLAlchemyError

from core.utils import utcnow
from database.database import SessionFactory, SessionLocal, db_session_scope
from database.repositories import SubscriptionRepository
from notification.capture import EventCapture, DEFAULT_LOOKAHEAD
from notification.dispatcher import Dispatcher, DispatchStatus
from notification.events import AnnouncementSnapshot, NotificationEvent
from notification.exceptions import DeliveryConfigError
from notification.rate_limit import AnnouncementRateLimiter
from notification.resolver import Delivery, RecipientResolver, RecipientSubscription
from notification.retry_queue import BACKOFF_SCHEDULE, DEFAULT_MAX_RETRIES, RetryQueue

logger = logging.getLogger(__name__)

OUTCOME_DELIVERED = 'delivered'
OUTCOME_QUEUED = 'queued'
OUTCOME_CLOSED = 'closed'
OUTCOME_SKIPPED = 'skipped'
OUTCOME_ENQUEUED_ASYNC = 'enqueued_async'
OUTCOME_ERROR = 'error'


@dataclass
class PublishResult:
    resolved: int = 0
    delivered: int = 0
    queued_for_retry: int = 0
    enqueued_async: int = 0
    closed: int = 0
    skipped: int = 0
    errors: int = 0

    def record(self, outcome: str) -> None:
        if outcome == OUTCOME_DELIVERED:
            self.delivered += 1
        elif outcome == OUTCOME_QUEUED:
            self.queued_for_retry += 1
        elif outcome == OUTCOME_ENQUEUED_ASYNC:
            self.enqueued_async += 1
        elif outcome == OUTCOME_CLOSED:
            self.closed += 1
        elif outcome == OUTCOME_SKIPPED:
            self.skipped += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


class NotificationService:
    """
    Main notification service.

    This service coordinates:
    1. Recipient resolution against the subscription store
    2. The first delivery attempt (inline or via RQ)
    3. Handing failed attempts to the retry queue
    4. Announcement rate limiting ahead of capture
    """

    def __init__(
        self,
        dispatcher: Dispatcher,
        session_factory: Optional[SessionFactory] = None,
        announcement_limiter: Optional[AnnouncementRateLimiter] = None,
        redis_url: Optional[str] = None,
        use_async_queue: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        schedule: Sequence[timedelta] = BACKOFF_SCHEDULE,
        lookahead: int = DEFAULT_LOOKAHEAD
    ):
        """
        Initialize notification service.

        Args:
            dispatcher: Dispatcher used for first attempts
            session_factory: Session factory for subscription reads and queue writes
            announcement_limiter: Limiter consulted before announcements are captured
            redis_url: Redis connection URL (async mode only)
            use_async_queue: Whether to run first attempts on the RQ queue
            max_retries: Retry budget for queued items
            schedule: Backoff schedule for queued items
            lookahead: How many upcoming entries an up-soon event covers
        """
        self.dispatcher = dispatcher
        self.session_factory = session_factory or SessionLocal
        self.announcement_limiter = announcement_limiter
        self.max_retries = max_retries
        self.schedule = schedule
        self.resolver = RecipientResolver()
        self.capture = EventCapture(self.publish, lookahead=lookahead)
        self.redis_url = redis_url or 'redis://localhost:6379/0'

        if not use_async_queue:
            logger.info("Async queue disabled via config. Using sync mode.")
            self.redis_conn = None
            self.queue = None
            self.async_mode = False
        else:
            try:
                self.redis_conn = Redis.from_url(self.redis_url)
                # Validate connection with ping before using
                self.redis_conn.ping()
                self.queue = Queue('notifications', connection=self.redis_conn)
                self.async_mode = True
                logger.info("Notification service connected to Redis")
            except Exception as e:
                logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")
                self.redis_conn = None
                self.queue = None
                self.async_mode = False

    def load_subscriptions(self, tenant_id: str) -> List[RecipientSubscription]:
        """Active subscriptions for the tenant; a lookup failure counts as nobody."""
        try:
            with db_session_scope(self.session_factory) as session:
                rows = SubscriptionRepository(session).list_active_for_tenant(tenant_id)
                return [RecipientSubscription.from_model(row) for row in rows]
        except SQLAlchemyError as e:
            logger.error(f"Subscription lookup failed for {tenant_id}, resolving to zero recipients: {e}")
            return []

    def publish(self, event: NotificationEvent) -> PublishResult:
        """
        Resolve an event and make the first delivery attempt for each recipient.

        Never raises: per-delivery problems are logged and counted.
        """
        result = PublishResult()
        deliveries = self.resolver.resolve(event, self.load_subscriptions(event.tenant_id))
        result.resolved = len(deliveries)

        for delivery in deliveries:
            try:
                if self.async_mode:
                    self.queue.enqueue(
                        process_delivery_task,
                        delivery.to_dict(),
                        job_timeout='5m',
                        result_ttl=86400
                    )
                    result.record(OUTCOME_ENQUEUED_ASYNC)
                else:
                    result.record(self.deliver(delivery))
            except Exception as e:
                logger.error(f"Failed to hand off {delivery.category} delivery: {e}", exc_info=True)
                result.record(OUTCOME_ERROR)

        if deliveries:
            logger.info(f"Published {event.category.value} for {event.tenant_id}: {result.to_dict()}")
        return result

    def deliver(self, delivery: Delivery, now: Optional[datetime] = None) -> str:
        """
        First delivery attempt for one recipient.

        Returns:
            Outcome: delivered, queued (for retry), closed (subscription gone) or skipped
            (configuration error, nothing queued).
        """
        body = delivery.to_request_body()
        try:
            dispatch = self.dispatcher.dispatch(body)
        except DeliveryConfigError as e:
            logger.warning(f"Not sending {delivery.category} for {delivery.tenant_id}: {e}")
            return OUTCOME_SKIPPED

        now = now or utcnow()
        with db_session_scope(self.session_factory) as session:
            subscriptions = SubscriptionRepository(session)

            if dispatch.status == DispatchStatus.DELIVERED:
                subscriptions.touch_last_used(delivery.endpoint, now)
                return OUTCOME_DELIVERED

            if dispatch.status == DispatchStatus.GONE:
                subscriptions.deactivate(delivery.endpoint)
                logger.info(f"Subscription {delivery.subscription_id} expired at the push service, deactivated")
                return OUTCOME_CLOSED

            RetryQueue(session, self.max_retries, self.schedule).enqueue_failure(
                tenant_id=delivery.tenant_id,
                notification_type=delivery.category,
                payload=body,
                error=dispatch.error,
                source_entry_id=delivery.source_entry_id,
                source_announcement_id=delivery.source_announcement_id,
                now=now,
            )
            return OUTCOME_QUEUED

    def submit_announcement(
        self,
        announcement: AnnouncementSnapshot,
        now: Optional[datetime] = None
    ) -> Optional[NotificationEvent]:
        """
        Rate-limit then capture a newly created announcement.

        Raises:
            RateLimitExceeded: the tenant is over its hourly announcement budget;
                nothing is captured or dispatched.
        """
        if self.announcement_limiter is not None:
            self.announcement_limiter.acquire(announcement.tenant_id, now)
        return self.capture.announcement_created(announcement)

    def get_queue_status(self) -> Dict[str, Any]:
        """Get RQ first-attempt queue status."""
        if not self.async_mode:
            return {'status': 'sync_mode', 'queue_length': 0, 'redis_connected': False}

        try:
            return {
                'status': 'active',
                'queue_length': len(self.queue),
                'redis_connected': self.redis_conn.ping()
            }
        except Exception as e:
            return {'status': 'error', 'error': str(e), 'queue_length': 0, 'redis_connected': False}


# Worker task - must be at module level for RQ
def process_delivery_task(delivery_data: Dict[str, Any]) -> str:
    """
    First delivery attempt (called by RQ worker).

    Builds an inline-mode service from config so the attempt, and any
    retry-queue hand-off, happen inside the worker process.
    """
    from core.app_context import AppContext
    from core.config_loader import load_config

    delivery = Delivery.from_dict(delivery_data)
    context = AppContext.build(load_config(), force_sync=True)
    outcome = context.notification_service.deliver(delivery)
    logger.info(f"RQ delivery {delivery.notification_id} -> {outcome}")
    return outcome
