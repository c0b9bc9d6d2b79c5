import logging
from typing import List, Optional, Any
from datetime import datetime

from sqlalchemy import select, func

from database.models import NotificationQueueItem, DeadLetterItem
from database.repositories.base import BaseRepository
from core.utils import utcnow

logger = logging.getLogger(__name__)


class DeadLetterRepository(BaseRepository):
    def get_by_id(self, item_id: Any) -> Optional[DeadLetterItem]:
        stmt = select(DeadLetterItem).where(DeadLetterItem.id == item_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_queue_id(self, queue_id: Any) -> Optional[DeadLetterItem]:
        stmt = select(DeadLetterItem).where(DeadLetterItem.original_queue_id == queue_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def move_from_queue(
        self,
        item: NotificationQueueItem,
        final_error: Optional[str],
        now: Optional[datetime] = None
    ) -> DeadLetterItem:
        """Copy a queue item into the dead-letter store and delete it, in the caller's transaction.

        original_queue_id is unique, so a second move of the same item fails
        the transaction instead of creating a duplicate.
        """
        now = now or utcnow()
        dead_letter = DeadLetterItem(
            original_queue_id=item.id,
            tenant_id=item.tenant_id,
            notification_type=item.notification_type,
            payload=item.payload,
            retry_count=item.retry_count,
            max_retries=item.max_retries,
            source_entry_id=item.source_entry_id,
            source_announcement_id=item.source_announcement_id,
            final_error=final_error,
            original_created_at=item.created_at,
            failed_at=now,
            acknowledged=False,
        )
        self.db.add(dead_letter)
        self.db.delete(item)
        self.db.flush()
        return dead_letter

    def list_for_tenant(
        self,
        tenant_id: Optional[str] = None,
        include_acknowledged: bool = False,
        limit: int = 100
    ) -> List[DeadLetterItem]:
        stmt = select(DeadLetterItem).order_by(DeadLetterItem.failed_at.desc()).limit(limit)
        if tenant_id:
            stmt = stmt.where(DeadLetterItem.tenant_id == tenant_id)
        if not include_acknowledged:
            stmt = stmt.where(DeadLetterItem.acknowledged.is_(False))
        return list(self.db.execute(stmt).scalars().all())

    def acknowledge(
        self,
        item: DeadLetterItem,
        operator_id: str,
        note: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> DeadLetterItem:
        item.acknowledged = True
        item.acknowledged_by = operator_id
        item.acknowledged_at = now or utcnow()
        item.acknowledgment_note = note
        self.db.flush()
        return item

    def count_unacknowledged(self, tenant_id: Optional[str] = None) -> int:
        stmt = (
            select(func.count())
            .select_from(DeadLetterItem)
            .where(DeadLetterItem.acknowledged.is_(False))
        )
        if tenant_id:
            stmt = stmt.where(DeadLetterItem.tenant_id == tenant_id)
        return self.db.execute(stmt).scalar_one()
