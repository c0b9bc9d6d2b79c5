from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from core.config_loader import AppConfig
from database.database import SessionFactory
from notification.dispatcher import Dispatcher, HttpPushTransport, PushTransport, store_credentials_provider
from notification.processor import PeriodicProcessor
from notification.rate_limit import (
    AnnouncementRateLimiter,
    CounterStore,
    DatabaseCounterStore,
    LoginRateLimiter,
    RedisCounterStore,
)
from notification.retry_queue import schedule_from_seconds
from notification.service import NotificationService


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    This eliminates duplicate wiring code and provides a single source
    of truth for service instantiation. DB access goes through the
    session factory; every unit of work opens its own session.
    """
    config: AppConfig
    session_factory: SessionFactory
    dispatcher: Dispatcher
    notification_service: NotificationService
    processor: PeriodicProcessor
    announcement_limiter: AnnouncementRateLimiter
    login_limiter: LoginRateLimiter

    @classmethod
    def build(
        cls,
        config: AppConfig,
        session_factory: Optional[SessionFactory] = None,
        transport: Optional[PushTransport] = None,
        force_sync: bool = False
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            session_factory: Session factory (defaults to database.database.SessionLocal)
            transport: Push transport override (defaults to HTTP against gateway_url)
            force_sync: Ignore use_async_queue (used inside RQ workers)

        Returns:
            Fully wired AppContext instance
        """
        if session_factory is None:
            from database.database import SessionLocal
            session_factory = SessionLocal

        notification_config = config.notifications
        schedule = schedule_from_seconds(notification_config.backoff_schedule_seconds)

        dispatcher = Dispatcher(
            transport or HttpPushTransport(notification_config.gateway_url),
            store_credentials_provider(session_factory),
            timeout_ms=notification_config.timeout_ms,
        )

        announcement_limiter = AnnouncementRateLimiter(
            cls._build_counter_store(config, session_factory),
            limit=config.rate_limits.announcements_per_hour,
        )

        notification_service = NotificationService(
            dispatcher=dispatcher,
            session_factory=session_factory,
            announcement_limiter=announcement_limiter,
            redis_url=notification_config.redis_url,
            use_async_queue=notification_config.use_async_queue and not force_sync,
            max_retries=notification_config.max_retries,
            schedule=schedule,
            lookahead=notification_config.up_soon_lookahead,
        )

        processor = PeriodicProcessor(
            session_factory,
            dispatcher,
            batch_size=notification_config.batch_size,
            max_workers=notification_config.worker_count,
            max_retries=notification_config.max_retries,
            schedule=schedule,
            claim_timeout=timedelta(minutes=notification_config.claim_timeout_minutes),
            retention=timedelta(hours=notification_config.succeeded_retention_hours),
        )

        login_limiter = LoginRateLimiter(
            session_factory,
            max_failures=config.rate_limits.login_max_failures,
            window=timedelta(minutes=config.rate_limits.login_window_minutes),
            block=timedelta(minutes=config.rate_limits.login_block_minutes),
        )

        return cls(
            config=config,
            session_factory=session_factory,
            dispatcher=dispatcher,
            notification_service=notification_service,
            processor=processor,
            announcement_limiter=announcement_limiter,
            login_limiter=login_limiter,
        )

    @staticmethod
    def _build_counter_store(config: AppConfig, session_factory: SessionFactory) -> CounterStore:
        """Build the announcement counter store from configuration."""
        if config.rate_limits.backend == 'redis':
            redis_url = config.notifications.redis_url or 'redis://localhost:6379/0'
            return RedisCounterStore(redis_url)
        return DatabaseCounterStore(session_factory)
