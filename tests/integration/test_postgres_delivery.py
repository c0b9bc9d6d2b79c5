#!/usr/bin/env python3
"""
Integration tests that require PostgreSQL.

Covers the parts SQLite cannot: concurrent claims across processor runs,
JSONB payloads and the ON CONFLICT counter upsert.

Run with:
  uv run python -m pytest tests/integration/test_postgres_delivery.py -v -m db

Or with external database:
  TEST_DATABASE_URL=postgresql://... uv run python -m pytest tests/integration -v -m db
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest

from core.app_context import AppContext
from core.config_loader import AppConfig
from database.database import db_session_scope
from database.repositories import DeadLetterRepository, QueueRepository, SubscriptionRepository
from notification.dispatcher import Dispatcher, store_credentials_provider
from notification.exceptions import RateLimitExceeded
from notification.processor import PeriodicProcessor
from notification.rate_limit import AnnouncementRateLimiter, DatabaseCounterStore
from notification.retry_queue import RetryQueue
from tests.mocks.push_mocks import FakePushTransport, make_announcement

NOW = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)

pytestmark = pytest.mark.db


def enqueue_many(factory, count):
    ids = []
    with db_session_scope(factory) as session:
        retry_queue = RetryQueue(session)
        for i in range(count):
            item = retry_queue.enqueue_failure(
                "show-1", "announcement",
                {"title": f"Announcement {i}", "subscription": {"endpoint": f"https://push/{i}"}},
                "Timeout after 5000ms", now=NOW,
            )
            ids.append(item.id)
    return ids


def test_concurrent_runs_dispatch_each_item_once(pg_session_factory):
    ids = enqueue_many(pg_session_factory, 40)
    transport = FakePushTransport()
    dispatcher = Dispatcher(transport, store_credentials_provider(pg_session_factory))
    processors = [
        PeriodicProcessor(pg_session_factory, dispatcher, batch_size=100, max_workers=4)
        for _ in range(3)
    ]

    start = threading.Barrier(len(processors))

    def run(processor):
        start.wait()
        return processor.process_due(NOW + timedelta(minutes=1))

    with ThreadPoolExecutor(max_workers=len(processors)) as pool:
        results = list(pool.map(run, processors))

    assert sum(r.succeeded for r in results) == len(ids)
    dispatched = [call["body"]["title"] for call in transport.calls]
    assert len(dispatched) == len(set(dispatched)) == len(ids)

    with db_session_scope(pg_session_factory) as session:
        counts = QueueRepository(session).counts_by_status("show-1")
    assert counts["succeeded"] == len(ids)


def test_dead_letter_move_is_atomic(pg_session_factory):
    [item_id] = enqueue_many(pg_session_factory, 1)
    with db_session_scope(pg_session_factory) as session:
        retry_queue = RetryQueue(session)
        item = retry_queue.queue.get_by_id(item_id)
        item.retry_count = 4
        session.flush()
        retry_queue.record_failure(item, "HTTP 503: unavailable", NOW)

    with db_session_scope(pg_session_factory) as session:
        assert QueueRepository(session).get_by_id(item_id) is None
        dead_letter = DeadLetterRepository(session).get_by_queue_id(item_id)
        assert dead_letter.retry_count == 5
        assert dead_letter.payload["title"] == "Announcement 0"


def test_announcement_counter_upsert(pg_session_factory):
    limiter = AnnouncementRateLimiter(DatabaseCounterStore(pg_session_factory), limit=10)
    for _ in range(10):
        limiter.acquire("show-1", NOW)
    with pytest.raises(RateLimitExceeded):
        limiter.acquire("show-1", NOW + timedelta(minutes=59))
    assert limiter.acquire("show-1", NOW + timedelta(hours=1)).count == 1


def test_end_to_end_announcement(pg_session_factory):
    transport = FakePushTransport()
    context = AppContext.build(AppConfig(), session_factory=pg_session_factory, transport=transport)
    with db_session_scope(pg_session_factory) as session:
        SubscriptionRepository(session).upsert("show-1", "r", "https://push/r", {"auth": "a"}, {})

    context.notification_service.submit_announcement(make_announcement(), NOW)

    assert len(transport.calls) == 1
    assert transport.calls[0]["body"]["title"] == "Lunch break"
