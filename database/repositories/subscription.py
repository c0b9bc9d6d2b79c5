import logging
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta

from sqlalchemy import select, update, func, or_, and_

from database.models import PushSubscription
from database.repositories.base import BaseRepository
from core.utils import utcnow

logger = logging.getLogger(__name__)


class SubscriptionRepository(BaseRepository):
    def get_by_endpoint(self, endpoint: str) -> Optional[PushSubscription]:
        stmt = select(PushSubscription).where(PushSubscription.endpoint == endpoint)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_active_for_tenant(self, tenant_id: str) -> List[PushSubscription]:
        stmt = (
            select(PushSubscription)
            .where(
                PushSubscription.tenant_id == tenant_id,
                PushSubscription.is_active.is_(True)
            )
            .order_by(PushSubscription.created_at, PushSubscription.id)
        )
        return list(self.db.execute(stmt).scalars().all())

    def upsert(
        self,
        tenant_id: str,
        recipient_id: str,
        endpoint: str,
        keys: Dict[str, Any],
        preferences: Dict[str, Any],
        role: str = 'exhibitor',
        user_agent: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> PushSubscription:
        """Create the subscription, or re-point and reactivate the existing one for this endpoint.

        Opting in again counts as use, so a reactivated endpoint restarts its
        staleness window instead of being dropped by the next cleanup.
        """
        now = now or utcnow()
        existing = self.get_by_endpoint(endpoint)
        if existing:
            existing.tenant_id = tenant_id
            existing.recipient_id = recipient_id
            existing.role = role
            existing.keys = keys
            existing.preferences = preferences
            existing.user_agent = user_agent
            existing.is_active = True
            existing.last_used_at = now
            existing.updated_at = now
            self.db.flush()
            return existing

        subscription = PushSubscription(
            tenant_id=tenant_id,
            recipient_id=recipient_id,
            role=role,
            endpoint=endpoint,
            keys=keys,
            preferences=preferences,
            user_agent=user_agent,
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        self.db.add(subscription)
        self.db.flush()
        return subscription

    def update_preferences(self, endpoint: str, preferences: Dict[str, Any]) -> Optional[PushSubscription]:
        subscription = self.get_by_endpoint(endpoint)
        if subscription is None:
            return None
        subscription.preferences = preferences
        subscription.updated_at = utcnow()
        self.db.flush()
        return subscription

    def deactivate(self, endpoint: str) -> bool:
        result = self.db.execute(
            update(PushSubscription)
            .where(
                PushSubscription.endpoint == endpoint,
                PushSubscription.is_active.is_(True)
            )
            .values(is_active=False, updated_at=utcnow())
        )
        return result.rowcount > 0

    def touch_last_used(self, endpoint: str, now: Optional[datetime] = None) -> None:
        self.db.execute(
            update(PushSubscription)
            .where(PushSubscription.endpoint == endpoint)
            .values(last_used_at=now or utcnow())
        )

    def deactivate_stale(self, stale_after_days: int = 90, now: Optional[datetime] = None) -> int:
        """Soft-delete subscriptions unused for the staleness window.

        Subscriptions that never delivered anything age from created_at.
        """
        threshold = (now or utcnow()) - timedelta(days=stale_after_days)
        result = self.db.execute(
            update(PushSubscription)
            .where(
                and_(
                    PushSubscription.is_active.is_(True),
                    or_(
                        PushSubscription.last_used_at < threshold,
                        and_(
                            PushSubscription.last_used_at.is_(None),
                            PushSubscription.created_at < threshold
                        )
                    )
                )
            )
            .values(is_active=False, updated_at=now or utcnow())
        )
        return result.rowcount

    def count_active(self, tenant_id: Optional[str] = None) -> int:
        stmt = select(func.count()).select_from(PushSubscription).where(PushSubscription.is_active.is_(True))
        if tenant_id:
            stmt = stmt.where(PushSubscription.tenant_id == tenant_id)
        return self.db.execute(stmt).scalar_one()
