#!/usr/bin/env python3
"""
Fixed-window rate limiting for event producers.

Two limiters share the same window arithmetic:

- AnnouncementRateLimiter caps announcement creation per tenant
  (default 10 per clock hour). Counters live in a CounterStore: the
  database (atomic upsert-and-increment) or Redis (INCR + EXPIRE).
- LoginRateLimiter caps failed authentication attempts per
  (address, device fingerprint) pair (default 10 per 15 minutes) and
  blocks the pair for 15 minutes after the latest failure.

Exceeding a limit is a synchronous rejection carrying a retry-after hint
and a human-readable message, never a silent drop.

Usage:
    limiter = AnnouncementRateLimiter(DatabaseCounterStore(SessionLocal))
    limiter.acquire("show-license-key")   # raises RateLimitExceeded on the 11th call in an hour
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from redis import Redis

from core.utils import DeviceFingerprinter, minutes_until, pluralize, truncate_to_window, utcnow
from database.database import SessionFactory, db_session_scope
from database.repositories import RateLimitRepository
from notification.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

ANNOUNCEMENT_SCOPE = 'announcement'


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    count: int
    retry_after_seconds: int = 0
    message: Optional[str] = None

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    @property
    def remaining_minutes(self) -> int:
        if self.retry_after_seconds <= 0:
            return 0
        return max(1, -(-self.retry_after_seconds // 60))

    def raise_if_rejected(self) -> "RateLimitDecision":
        if not self.allowed:
            raise RateLimitExceeded(self.message, self.retry_after_seconds, self.limit)
        return self


class CounterStore(ABC):
    """Atomic per-(scope, tenant, window) counters."""

    @abstractmethod
    def increment(self, scope: str, tenant_id: str, window_start: datetime, window: timedelta) -> int:
        """Add one and return the new count for the window."""
        pass

    @abstractmethod
    def current(self, scope: str, tenant_id: str, window_start: datetime) -> int:
        pass


class DatabaseCounterStore(CounterStore):
    """Counters as rows, one per (scope, tenant, bucket), bumped with ON CONFLICT DO UPDATE."""

    def __init__(self, session_factory: Optional[SessionFactory] = None):
        self.session_factory = session_factory

    def increment(self, scope: str, tenant_id: str, window_start: datetime, window: timedelta) -> int:
        with db_session_scope(self.session_factory) as session:
            return RateLimitRepository(session).increment_counter(scope, tenant_id, window_start)

    def current(self, scope: str, tenant_id: str, window_start: datetime) -> int:
        with db_session_scope(self.session_factory) as session:
            return RateLimitRepository(session).get_counter(scope, tenant_id, window_start)


class RedisCounterStore(CounterStore):
    """Counters as Redis keys that expire shortly after their window closes."""

    KEY_PREFIX = "ratelimit:"

    def __init__(self, redis_url: str = 'redis://localhost:6379/0', redis: Optional[Redis] = None):
        self.redis_url = redis_url
        self._redis = redis

    def _get_redis(self) -> Redis:
        """Get Redis connection (lazy init)."""
        if self._redis is None:
            self._redis = Redis.from_url(self.redis_url)
        return self._redis

    def _key(self, scope: str, tenant_id: str, window_start: datetime) -> str:
        return f"{self.KEY_PREFIX}{scope}:{tenant_id}:{int(window_start.timestamp())}"

    def increment(self, scope: str, tenant_id: str, window_start: datetime, window: timedelta) -> int:
        key = self._key(scope, tenant_id, window_start)
        pipe = self._get_redis().pipeline()
        pipe.incr(key)
        pipe.expire(key, int(window.total_seconds()) + 60)  # +60s buffer
        count, _ = pipe.execute()
        return int(count)

    def current(self, scope: str, tenant_id: str, window_start: datetime) -> int:
        value = self._get_redis().get(self._key(scope, tenant_id, window_start))
        return int(value) if value else 0


class AnnouncementRateLimiter:
    """At most `limit` announcements per tenant per fixed window."""

    def __init__(self, store: CounterStore, limit: int = 10, window: timedelta = timedelta(hours=1)):
        self.store = store
        self.limit = limit
        self.window = window

    def _rejection_message(self, retry_after_seconds: int) -> str:
        minutes = max(1, -(-retry_after_seconds // 60))
        return (
            f"Rate limit exceeded. Maximum {self.limit} announcements per hour. "
            f"Try again in {pluralize(minutes, 'minute')}."
        )

    def check(self, tenant_id: str, now: Optional[datetime] = None) -> RateLimitDecision:
        """Peek at the current window without consuming a slot."""
        now = now or utcnow()
        window_start = truncate_to_window(now, self.window)
        count = self.store.current(ANNOUNCEMENT_SCOPE, tenant_id, window_start)
        if count < self.limit:
            return RateLimitDecision(True, self.limit, count)
        retry_after = int((window_start + self.window - now).total_seconds())
        return RateLimitDecision(False, self.limit, count, retry_after, self._rejection_message(retry_after))

    def acquire(self, tenant_id: str, now: Optional[datetime] = None) -> RateLimitDecision:
        """
        Consume one slot for the tenant.

        Raises:
            RateLimitExceeded: the tenant already used every slot in this window.
        """
        now = now or utcnow()
        window_start = truncate_to_window(now, self.window)
        count = self.store.increment(ANNOUNCEMENT_SCOPE, tenant_id, window_start, self.window)
        if count <= self.limit:
            return RateLimitDecision(True, self.limit, count)

        retry_after = max(1, int((window_start + self.window - now).total_seconds()))
        logger.warning(f"Announcement rate limit hit for {tenant_id}: {count}/{self.limit} this window")
        return RateLimitDecision(
            False, self.limit, count, retry_after, self._rejection_message(retry_after)
        ).raise_if_rejected()


def device_fingerprint(
    user_agent: Optional[str],
    accept_language: Optional[str] = None,
    screen_resolution: Optional[str] = None,
    timezone_name: Optional[str] = None
) -> Optional[str]:
    return DeviceFingerprinter.calculate(user_agent, accept_language, screen_resolution, timezone_name)


class LoginRateLimiter:
    """
    Failed-attempt limiter keyed by (address, device fingerprint).

    Keying on the fingerprint keeps one noisy device from locking out
    everybody behind the same show-site network address. Without a
    fingerprint the address alone is used.
    """

    def __init__(
        self,
        session_factory: Optional[SessionFactory] = None,
        max_failures: int = 10,
        window: timedelta = timedelta(minutes=15),
        block: timedelta = timedelta(minutes=15)
    ):
        self.session_factory = session_factory
        self.max_failures = max_failures
        self.window = window
        self.block = block

    def check(
        self,
        ip_address: str,
        fingerprint: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> RateLimitDecision:
        now = now or utcnow()
        with db_session_scope(self.session_factory) as session:
            failures, latest = RateLimitRepository(session).recent_failures(
                ip_address, fingerprint, now - self.window
            )

        if failures < self.max_failures or latest is None:
            return RateLimitDecision(True, self.max_failures, failures)

        blocked_until = latest + self.block
        if blocked_until <= now:
            return RateLimitDecision(True, self.max_failures, failures)

        retry_after = int((blocked_until - now).total_seconds())
        minutes = minutes_until(blocked_until, now)
        return RateLimitDecision(
            False,
            self.max_failures,
            failures,
            max(1, retry_after),
            f"Too many failed attempts. Please try again in {pluralize(minutes, 'minute')}.",
        )

    def record_attempt(
        self,
        ip_address: str,
        fingerprint: Optional[str],
        success: bool,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> RateLimitDecision:
        """Record one attempt and return the decision for the next one."""
        now = now or utcnow()
        with db_session_scope(self.session_factory) as session:
            RateLimitRepository(session).record_login_attempt(ip_address, fingerprint, success, tenant_id, now)
        if not success:
            logger.info(f"Failed login attempt from {ip_address} (device {fingerprint or 'unknown'})")
        return self.check(ip_address, fingerprint, now)

    def status(self, ip_address: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Recent attempts for the admin view."""
        with db_session_scope(self.session_factory) as session:
            attempts = RateLimitRepository(session).list_attempts(ip_address, limit)
            return [
                {
                    'ip_address': a.ip_address,
                    'device_fingerprint': a.device_fingerprint,
                    'tenant_id': a.tenant_id,
                    'success': a.success,
                    'attempted_at': a.attempted_at.isoformat(),
                }
                for a in attempts
            ]

    def clear(self, ip_address: str, fingerprint: Optional[str] = None) -> int:
        with db_session_scope(self.session_factory) as session:
            cleared = RateLimitRepository(session).clear_login_attempts(ip_address, fingerprint)
        logger.info(f"Cleared {cleared} login attempt(s) for {ip_address}")
        return cleared
