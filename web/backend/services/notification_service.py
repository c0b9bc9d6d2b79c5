#!/usr/bin/env python3
"""
Notification service wrapper for the web application.
"""

import logging
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session

from core.app_context import AppContext
from notification import DeadLetterService, SubscriptionService
from notification.credentials import describe_config, rotate_secrets
from notification.dead_letter import dead_letter_to_dict
from notification.maintenance import run_cleanup

logger = logging.getLogger(__name__)


class NotificationServiceWrapper:
    """Request-scoped facade over the notification subsystem.

    Reads and operator writes go through the request's session; capture,
    dispatch and processing use the context's own units of work.
    """

    def __init__(self, db: Session, context: AppContext):
        self.db = db
        self.context = context
        self.dead_letters = DeadLetterService(db)
        self.subscriptions = SubscriptionService(db)

    @property
    def capture(self):
        return self.context.notification_service.capture

    def queue_overview(self, tenant_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Retry queue counts and first-attempt queue status.

        Args:
            tenant_id: Restrict counts to one show, or all shows when None.

        Returns:
            Dict with 'counts' and 'async_queue'.
        """
        return {
            'counts': self.dead_letters.queue_overview(tenant_id),
            'async_queue': self.context.notification_service.get_queue_status(),
        }

    def failed_notifications(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        return self.dead_letters.failed_notifications(tenant_id, limit)

    def list_dead_letters(
        self,
        tenant_id: Optional[str] = None,
        include_acknowledged: bool = False,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        items = self.dead_letters.list_for_tenant(tenant_id, include_acknowledged, limit)
        return [dead_letter_to_dict(item) for item in items]

    def acknowledge(self, item_id: Any, operator_id: str, note: Optional[str] = None) -> Dict[str, Any]:
        item = self.dead_letters.acknowledge(item_id, operator_id, note)
        self.db.flush()
        return dead_letter_to_dict(item)

    def process_now(self) -> Dict[str, Any]:
        return self.context.processor.process_due().to_dict()

    def cleanup(self) -> Dict[str, int]:
        return run_cleanup(self.context.session_factory, self.context.config)

    def delivery_config(self) -> Dict[str, Any]:
        return describe_config(self.context.session_factory)

    def rotate_secrets(self, shared_secret: str, gateway_key: str, updated_by: str) -> Dict[str, Any]:
        return rotate_secrets(shared_secret, gateway_key, updated_by, self.context.session_factory)
