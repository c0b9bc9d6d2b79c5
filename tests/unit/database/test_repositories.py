#!/usr/bin/env python3
"""
Repository tests against SQLite.

Usage:
    uv run python -m pytest tests/unit/database/test_repositories.py -v
"""

import unittest
from datetime import datetime, timedelta, timezone

from database.models import PLACEHOLDER_GATEWAY_KEY, PLACEHOLDER_SHARED_SECRET
from database.repositories import (
    DeliveryConfigRepository,
    QueueRepository,
    RateLimitRepository,
    SubscriptionRepository,
)
from database.uow import notification_uow
from tests import make_session_factory

NOW = datetime(2026, 3, 14, 9, 0, tzinfo=timezone.utc)


class RepositoryTestCase(unittest.TestCase):

    def setUp(self):
        self.factory = make_session_factory(seed_credentials=False)
        self.session = self.factory()

    def tearDown(self):
        self.session.close()


class TestSubscriptionRepository(RepositoryTestCase):

    def setUp(self):
        super().setUp()
        self.repo = SubscriptionRepository(self.session)

    def add(self, endpoint="https://push/1", tenant_id="show-1"):
        return self.repo.upsert(
            tenant_id=tenant_id,
            recipient_id="exhibitor-1",
            endpoint=endpoint,
            keys={"p256dh": "k", "auth": "a"},
            preferences={"dogs_ahead": 3},
        )

    def test_upsert_reactivates_existing_endpoint(self):
        first = self.add()
        self.assertTrue(self.repo.deactivate("https://push/1"))
        self.assertFalse(self.repo.deactivate("https://push/1"))

        second = self.add()

        self.assertEqual(first.id, second.id)
        self.session.refresh(second)
        self.assertTrue(second.is_active)

    def test_active_listing_scoped_to_tenant(self):
        self.add("https://push/1")
        self.add("https://push/2")
        self.add("https://push/3", tenant_id="show-2")
        self.repo.deactivate("https://push/2")

        active = self.repo.list_active_for_tenant("show-1")

        self.assertEqual([s.endpoint for s in active], ["https://push/1"])
        self.assertEqual(self.repo.count_active(), 2)

    def test_deactivate_stale(self):
        used = self.add("https://push/used")
        unused = self.add("https://push/unused")
        recent = self.add("https://push/recent")
        used.created_at = NOW - timedelta(days=200)
        unused.created_at = NOW - timedelta(days=100)
        self.session.flush()
        self.repo.touch_last_used("https://push/used", NOW - timedelta(days=91))
        self.repo.touch_last_used("https://push/recent", NOW - timedelta(days=1))

        deactivated = self.repo.deactivate_stale(90, NOW)

        self.assertEqual(deactivated, 2)
        self.assertEqual(
            [s.endpoint for s in self.repo.list_active_for_tenant("show-1")],
            ["https://push/recent"]
        )
        self.assertIsNotNone(recent)

    def test_resubscribe_after_stale_cleanup_survives_next_cleanup(self):
        self.add()
        self.repo.touch_last_used("https://push/1", NOW - timedelta(days=100))
        self.assertEqual(self.repo.deactivate_stale(90, NOW), 1)

        self.repo.upsert(
            tenant_id="show-1",
            recipient_id="exhibitor-1",
            endpoint="https://push/1",
            keys={"p256dh": "k", "auth": "a"},
            preferences={"dogs_ahead": 3},
            now=NOW,
        )

        self.assertEqual(self.repo.deactivate_stale(90, NOW), 0)
        subscription = self.repo.get_by_endpoint("https://push/1")
        self.session.refresh(subscription)
        self.assertTrue(subscription.is_active)
        self.assertEqual(subscription.last_used_at, NOW)


class TestQueueRepository(RepositoryTestCase):

    def setUp(self):
        super().setUp()
        self.repo = QueueRepository(self.session)

    def create(self, next_retry_at, status="pending"):
        item = self.repo.create(
            tenant_id="show-1",
            notification_type="announcement",
            payload={"title": "x"},
            retry_count=1,
            max_retries=5,
            next_retry_at=next_retry_at,
            error="HTTP 500",
            now=NOW,
        )
        item.status = status
        self.session.flush()
        return item

    def test_due_ids_ordered_and_filtered(self):
        late = self.create(NOW + timedelta(minutes=5))
        early = self.create(NOW - timedelta(minutes=5))
        self.create(NOW - timedelta(minutes=1), status="retrying")
        self.create(NOW + timedelta(hours=1))

        self.assertEqual(self.repo.get_due_ids(10, NOW + timedelta(minutes=5)), [early.id, late.id])
        self.assertEqual(self.repo.get_due_ids(1, NOW + timedelta(minutes=5)), [early.id])

    def test_claim_only_once(self):
        item = self.create(NOW)
        self.assertTrue(self.repo.claim(item.id, NOW))
        self.assertFalse(self.repo.claim(item.id, NOW))

    def test_reset_stale_claims(self):
        item = self.create(NOW)
        self.repo.claim(item.id, NOW)

        self.assertEqual(self.repo.reset_stale_claims(NOW - timedelta(minutes=1)), 0)
        self.assertEqual(self.repo.reset_stale_claims(NOW + timedelta(minutes=1)), 1)
        self.session.refresh(item)
        self.assertEqual(item.status, "pending")
        self.assertEqual(item.retry_count, 1)

    def test_counts_by_status(self):
        self.create(NOW)
        self.create(NOW)
        self.create(NOW, status="failed")
        counts = self.repo.counts_by_status("show-1")
        self.assertEqual(counts, {"pending": 2, "retrying": 0, "succeeded": 0, "failed": 1})
        self.assertEqual(self.repo.counts_by_status("show-2")["pending"], 0)


class TestRateLimitRepository(RepositoryTestCase):

    def test_increment_counter_is_cumulative(self):
        repo = RateLimitRepository(self.session)
        self.assertEqual(repo.increment_counter("announcement", "show-1", NOW), 1)
        self.assertEqual(repo.increment_counter("announcement", "show-1", NOW), 2)
        self.assertEqual(repo.increment_counter("announcement", "show-1", NOW + timedelta(hours=1)), 1)
        self.assertEqual(repo.get_counter("announcement", "show-1", NOW), 2)
        self.assertEqual(repo.get_counter("announcement", "show-2", NOW), 0)

    def test_prune_counters(self):
        repo = RateLimitRepository(self.session)
        repo.increment_counter("announcement", "show-1", NOW - timedelta(days=8))
        repo.increment_counter("announcement", "show-1", NOW)
        self.assertEqual(repo.prune_counters(NOW - timedelta(days=7)), 1)

    def test_recent_failures(self):
        repo = RateLimitRepository(self.session)
        repo.record_login_attempt("10.0.0.1", "fp", False, now=NOW - timedelta(minutes=20))
        repo.record_login_attempt("10.0.0.1", "fp", False, now=NOW - timedelta(minutes=2))
        repo.record_login_attempt("10.0.0.1", "fp", True, now=NOW - timedelta(minutes=1))

        count, latest = repo.recent_failures("10.0.0.1", "fp", NOW - timedelta(minutes=15))

        self.assertEqual(count, 1)
        self.assertEqual(latest, NOW - timedelta(minutes=2))


class TestDeliveryConfigRepository(RepositoryTestCase):

    def test_seeded_with_placeholders(self):
        row = DeliveryConfigRepository(self.session).get()
        self.assertEqual(row.shared_secret, PLACEHOLDER_SHARED_SECRET)
        self.assertEqual(row.gateway_key, PLACEHOLDER_GATEWAY_KEY)
        self.assertEqual(row.updated_by, "init_db")

    def test_ensure_row_idempotent(self):
        repo = DeliveryConfigRepository(self.session)
        first = repo.ensure_row()
        second = repo.ensure_row()
        self.assertIs(first, second)


class TestNotificationUnitOfWork(unittest.TestCase):

    def test_rolls_back_on_error(self):
        factory = make_session_factory()
        with self.assertRaises(RuntimeError):
            with notification_uow(factory) as repos:
                repos.rate_limits.increment_counter("announcement", "show-1", NOW)
                raise RuntimeError("boom")

        with notification_uow(factory) as repos:
            self.assertEqual(repos.rate_limits.get_counter("announcement", "show-1", NOW), 0)


if __name__ == "__main__":
    unittest.main()
