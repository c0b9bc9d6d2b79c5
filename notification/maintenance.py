"""
Scheduled cleanup jobs (weekly by default).
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from core.config_loader import AppConfig
from core.utils import utcnow
from database.database import SessionFactory
from database.uow import notification_uow

logger = logging.getLogger(__name__)

LOGIN_ATTEMPT_RETENTION = timedelta(days=1)


def run_cleanup(
    session_factory: Optional[SessionFactory] = None,
    config: Optional[AppConfig] = None,
    now: Optional[datetime] = None
) -> Dict[str, int]:
    """
    Deactivate stale subscriptions and prune aged queue items, counters and login attempts.

    Returns:
        Number of rows touched per job.
    """
    config = config or AppConfig()
    now = now or utcnow()

    with notification_uow(session_factory) as repos:
        deactivated = repos.subscriptions.deactivate_stale(config.subscriptions.stale_after_days, now)
        purged = repos.queue.purge_completed(
            now - timedelta(hours=config.notifications.succeeded_retention_hours)
        )
        counters = repos.rate_limits.prune_counters(
            now - timedelta(days=config.rate_limits.bucket_retention_days)
        )
        attempts = repos.rate_limits.prune_login_attempts(now - LOGIN_ATTEMPT_RETENTION)

    summary = {
        'deactivated_subscriptions': deactivated,
        'purged_queue_items': purged,
        'pruned_rate_limit_buckets': counters,
        'pruned_login_attempts': attempts,
    }
    logger.info(f"Cleanup complete: {summary}")
    return summary
