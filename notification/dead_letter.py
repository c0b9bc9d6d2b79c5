"""
Dead-letter review and the operator-facing queue overview.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from database.models import DeadLetterItem
from database.repositories import QueueRepository, DeadLetterRepository
from notification.exceptions import DeadLetterNotFound, DeadLetterAlreadyAcknowledged

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def dead_letter_to_dict(item: DeadLetterItem) -> Dict[str, Any]:
    payload = item.payload or {}
    return {
        'id': str(item.id),
        'original_queue_id': str(item.original_queue_id),
        'tenant_id': item.tenant_id,
        'notification_type': item.notification_type,
        'title': payload.get('title'),
        'retry_count': item.retry_count,
        'max_retries': item.max_retries,
        'final_error': item.final_error,
        'failed_at': _iso(item.failed_at),
        'original_created_at': _iso(item.original_created_at),
        'acknowledged': item.acknowledged,
        'acknowledged_at': _iso(item.acknowledged_at),
        'acknowledged_by': item.acknowledged_by,
        'acknowledgment_note': item.acknowledgment_note,
    }


class DeadLetterService:
    def __init__(self, db: Session):
        self.db = db
        self.dead_letters = DeadLetterRepository(db)
        self.queue = QueueRepository(db)

    def list_for_tenant(
        self,
        tenant_id: Optional[str] = None,
        include_acknowledged: bool = False,
        limit: int = 100
    ) -> List[DeadLetterItem]:
        return self.dead_letters.list_for_tenant(tenant_id, include_acknowledged, limit)

    def acknowledge(
        self,
        item_id: Any,
        operator_id: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> DeadLetterItem:
        """
        Mark a dead-letter item as reviewed.

        Args:
            item_id: Dead-letter item id.
            operator_id: Who reviewed it.
            note: Optional free-text resolution note.

        Raises:
            DeadLetterNotFound: no such item.
            DeadLetterAlreadyAcknowledged: the item was already closed.
        """
        item = self.dead_letters.get_by_id(item_id)
        if item is None:
            raise DeadLetterNotFound(f"Dead letter item {item_id} not found")
        if item.acknowledged:
            raise DeadLetterAlreadyAcknowledged(
                f"Dead letter item {item_id} already acknowledged by {item.acknowledged_by}"
            )
        self.dead_letters.acknowledge(item, operator_id, note, now)
        logger.info(f"Dead letter {item_id} acknowledged by {operator_id}")
        return item

    def queue_overview(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        """Queued, failed and dead-lettered counts for the admin view."""
        counts = self.queue.counts_by_status(tenant_id)
        counts['dead_lettered'] = self.dead_letters.count_unacknowledged(tenant_id)
        return counts

    def failed_notifications(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Queue items carrying an error plus dead-letter items, newest first."""
        rows = []
        for item in self.queue.list_with_errors(tenant_id, limit):
            rows.append({
                'source': 'queue',
                'id': str(item.id),
                'tenant_id': item.tenant_id,
                'notification_type': item.notification_type,
                'title': (item.payload or {}).get('title'),
                'status': item.status,
                'retry_count': item.retry_count,
                'max_retries': item.max_retries,
                'error': item.last_error,
                'failed_at': _iso(item.last_error_at),
                'next_retry_at': _iso(item.next_retry_at),
            })
        for item in self.dead_letters.list_for_tenant(tenant_id, include_acknowledged=False, limit=limit):
            rows.append({
                'source': 'dead_letter',
                'id': str(item.id),
                'tenant_id': item.tenant_id,
                'notification_type': item.notification_type,
                'title': (item.payload or {}).get('title'),
                'status': 'dead_letter',
                'retry_count': item.retry_count,
                'max_retries': item.max_retries,
                'error': item.final_error,
                'failed_at': _iso(item.failed_at),
                'next_retry_at': None,
            })
        rows.sort(key=lambda r: r['failed_at'] or '', reverse=True)
        return rows[:limit]
