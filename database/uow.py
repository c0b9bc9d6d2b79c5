import contextlib
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from database.database import SessionFactory, db_session_scope
from database.repositories import (
    SubscriptionRepository,
    QueueRepository,
    DeadLetterRepository,
    RateLimitRepository,
    DeliveryConfigRepository,
)

logger = logging.getLogger(__name__)


@dataclass
class NotificationRepositories:
    """Repositories sharing one Session (one transaction)."""
    session: Session
    subscriptions: SubscriptionRepository
    queue: QueueRepository
    dead_letters: DeadLetterRepository
    rate_limits: RateLimitRepository
    delivery_config: DeliveryConfigRepository

    @classmethod
    def bind(cls, session: Session) -> "NotificationRepositories":
        return cls(
            session=session,
            subscriptions=SubscriptionRepository(session),
            queue=QueueRepository(session),
            dead_letters=DeadLetterRepository(session),
            rate_limits=RateLimitRepository(session),
            delivery_config=DeliveryConfigRepository(session),
        )


@contextlib.contextmanager
def notification_uow(session_factory: Optional[SessionFactory] = None):
    """Per-unit-of-work transaction scope.

    Yields NotificationRepositories bound to a fresh Session. Commits on
    success, rolls back on exception, always closes.

    Usage:
        with notification_uow() as repos:
            item = repos.queue.get_by_id(item_id)
            # perform operations...
        # commit happens automatically on successful exit
    """
    with db_session_scope(session_factory) as session:
        yield NotificationRepositories.bind(session)
