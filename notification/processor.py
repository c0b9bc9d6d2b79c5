#!/usr/bin/env python3
"""
Periodic Processor - drains due retry items.

Invoked by an external scheduler (cron, the worker's serve loop, or the
admin "process now" endpoint). Each run:

1. Checks that gateway credentials are usable; otherwise logs and exits.
2. Releases claims left behind by crashed runs.
3. Selects up to batch_size pending items whose next_retry_at has elapsed,
   oldest-due first.
4. Claims and redispatches each one on a small thread pool. Every item
   gets its own session; the claim is committed before the network call.
5. Purges succeeded/failed items past the retention window.

A run never raises: failures are logged and reported in the result so the
next tick can try again.

Usage:
    processor = PeriodicProcessor(SessionLocal, dispatcher)
    result = processor.process_due()
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, asdict
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from core.utils import utcnow
from database.database import SessionFactory, db_session_scope
from database.models import DeadLetterItem
from database.repositories import QueueRepository, SubscriptionRepository
from notification.dispatcher import Dispatcher, DispatchResult, DispatchStatus
from notification.exceptions import DeliveryConfigError
from notification.retry_queue import BACKOFF_SCHEDULE, DEFAULT_MAX_RETRIES, RetryQueue

logger = logging.getLogger(__name__)

OUTCOME_SUCCEEDED = 'succeeded'
OUTCOME_RETRIED = 'retried'
OUTCOME_DEAD_LETTERED = 'dead_lettered'
OUTCOME_CLOSED = 'closed'
OUTCOME_SKIPPED = 'skipped'
OUTCOME_ERROR = 'error'


@dataclass
class ProcessingResult:
    processed: int = 0
    succeeded: int = 0
    retried: int = 0
    dead_lettered: int = 0
    closed: int = 0
    skipped: int = 0
    errors: int = 0
    released_claims: int = 0
    purged: int = 0
    aborted: bool = False
    error: Optional[str] = None

    def record(self, outcome: str) -> None:
        if outcome == OUTCOME_SKIPPED:
            self.skipped += 1
            return
        self.processed += 1
        if outcome == OUTCOME_SUCCEEDED:
            self.succeeded += 1
        elif outcome == OUTCOME_RETRIED:
            self.retried += 1
        elif outcome == OUTCOME_DEAD_LETTERED:
            self.dead_lettered += 1
        elif outcome == OUTCOME_CLOSED:
            self.closed += 1
        else:
            self.errors += 1

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class PeriodicProcessor:
    def __init__(
        self,
        session_factory: SessionFactory,
        dispatcher: Dispatcher,
        batch_size: int = 50,
        max_workers: int = 4,
        max_retries: int = DEFAULT_MAX_RETRIES,
        schedule: Sequence[timedelta] = BACKOFF_SCHEDULE,
        claim_timeout: timedelta = timedelta(minutes=10),
        retention: timedelta = timedelta(hours=24)
    ):
        self.session_factory = session_factory
        self.dispatcher = dispatcher
        self.batch_size = batch_size
        self.max_workers = max(1, max_workers)
        self.max_retries = max_retries
        self.schedule = schedule
        self.claim_timeout = claim_timeout
        self.retention = retention

    def process_due(self, now: Optional[datetime] = None) -> ProcessingResult:
        """Run one batch. Safe to call repeatedly and concurrently."""
        now = now or utcnow()
        result = ProcessingResult()

        try:
            self.dispatcher.check_credentials()
        except (DeliveryConfigError, SQLAlchemyError) as e:
            logger.warning(f"Skipping queue processing run: {e}")
            result.aborted = True
            result.error = str(e)
            return result

        try:
            with db_session_scope(self.session_factory) as session:
                queue = QueueRepository(session)
                result.released_claims = queue.reset_stale_claims(now - self.claim_timeout)
                due_ids = queue.get_due_ids(self.batch_size, now)
        except SQLAlchemyError as e:
            logger.error(f"Could not load due queue items: {e}")
            result.aborted = True
            result.error = str(e)
            return result

        if due_ids:
            logger.info(f"Processing {len(due_ids)} due notification(s)")
            workers = min(self.max_workers, len(due_ids))
            with ThreadPoolExecutor(max_workers=workers) as pool:
                futures = {pool.submit(self._process_item, item_id, now): item_id for item_id in due_ids}
                for future, item_id in futures.items():
                    try:
                        result.record(future.result())
                    except Exception as e:
                        logger.error(f"Failed to process queue item {item_id}: {e}", exc_info=True)
                        result.record(OUTCOME_ERROR)

        try:
            with db_session_scope(self.session_factory) as session:
                result.purged = QueueRepository(session).purge_completed(now - self.retention)
        except SQLAlchemyError as e:
            logger.error(f"Could not purge completed queue items: {e}")

        logger.info(
            f"Queue run complete: {result.succeeded} succeeded, {result.retried} rescheduled, "
            f"{result.dead_lettered} dead-lettered, {result.skipped} skipped"
        )
        return result

    def _process_item(self, item_id: Any, now: datetime) -> str:
        # Claim in its own transaction so other runs see 'retrying' before we call out
        with db_session_scope(self.session_factory) as session:
            retry_queue = RetryQueue(session, self.max_retries, self.schedule)
            item = retry_queue.claim(item_id, now)
            if item is None:
                logger.debug(f"Queue item {item_id} already claimed, skipping")
                return OUTCOME_SKIPPED
            body = dict(item.payload)

        try:
            dispatch = self.dispatcher.dispatch(body)
        except DeliveryConfigError as e:
            logger.warning(f"Releasing queue item {item_id}: {e}")
            with db_session_scope(self.session_factory) as session:
                retry_queue = RetryQueue(session, self.max_retries, self.schedule)
                retry_queue.release(retry_queue.queue.get_by_id(item_id), now)
            return OUTCOME_SKIPPED
        except Exception as e:
            # The claim is held; spend a retry rather than leave it for stale-claim recovery
            logger.error(f"Dispatch of queue item {item_id} raised: {e}", exc_info=True)
            dispatch = DispatchResult(DispatchStatus.FAILED, error=f"Dispatch error: {type(e).__name__}: {e}")

        endpoint = (body.get('subscription') or {}).get('endpoint')
        with db_session_scope(self.session_factory) as session:
            retry_queue = RetryQueue(session, self.max_retries, self.schedule)
            subscriptions = SubscriptionRepository(session)
            item = retry_queue.queue.get_by_id(item_id)

            if dispatch.status == DispatchStatus.DELIVERED:
                retry_queue.record_success(item, now)
                if endpoint:
                    subscriptions.touch_last_used(endpoint, now)
                return OUTCOME_SUCCEEDED

            if dispatch.status == DispatchStatus.GONE:
                if endpoint:
                    subscriptions.deactivate(endpoint)
                retry_queue.record_terminal_failure(item, dispatch.error, now)
                return OUTCOME_CLOSED

            outcome = retry_queue.record_failure(item, dispatch.error, now)
            if isinstance(outcome, DeadLetterItem):
                return OUTCOME_DEAD_LETTERED
            return OUTCOME_RETRIED
