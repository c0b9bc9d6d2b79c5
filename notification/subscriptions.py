"""
Subscription store operations: opt-in, opt-out and preference updates.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import PushSubscription
from database.repositories import SubscriptionRepository
from notification.exceptions import SubscriptionNotFound
from notification.resolver import NotificationPreferences, RecipientSubscription

logger = logging.getLogger(__name__)


class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = SubscriptionRepository(db)

    def subscribe(
        self,
        tenant_id: str,
        recipient_id: str,
        endpoint: str,
        keys: Dict[str, Any],
        preferences: Optional[Dict[str, Any]] = None,
        role: str = 'exhibitor',
        user_agent: Optional[str] = None
    ) -> PushSubscription:
        """Register (or re-activate) a push endpoint. Preferences are normalized before storage."""
        normalized = NotificationPreferences(**(preferences or {})).to_dict()
        subscription = self.repo.upsert(
            tenant_id=tenant_id,
            recipient_id=recipient_id,
            endpoint=endpoint,
            keys=keys,
            preferences=normalized,
            role=role,
            user_agent=user_agent,
        )
        logger.info(f"Subscription {subscription.id} active for {recipient_id} in {tenant_id}")
        return subscription

    def unsubscribe(self, endpoint: str) -> None:
        if self.repo.get_by_endpoint(endpoint) is None:
            raise SubscriptionNotFound("Subscription not found")
        self.repo.deactivate(endpoint)
        logger.info("Subscription deactivated by recipient")

    def update_preferences(self, endpoint: str, preferences: Dict[str, Any]) -> PushSubscription:
        subscription = self.repo.get_by_endpoint(endpoint)
        if subscription is None:
            raise SubscriptionNotFound("Subscription not found")
        merged = dict(subscription.preferences or {})
        merged.update(preferences)
        return self.repo.update_preferences(endpoint, NotificationPreferences(**merged).to_dict())

    def active_for_tenant(self, tenant_id: str) -> List[RecipientSubscription]:
        return [RecipientSubscription.from_model(row) for row in self.repo.list_active_for_tenant(tenant_id)]
