import logging
from typing import List, Optional, Dict, Any
from datetime import datetime

from sqlalchemy import select, update, delete, func, and_

from database.models import NotificationQueueItem
from database.repositories.base import BaseRepository
from core.utils import utcnow

logger = logging.getLogger(__name__)


class QueueRepository(BaseRepository):
    def get_by_id(self, item_id: Any) -> Optional[NotificationQueueItem]:
        stmt = select(NotificationQueueItem).where(NotificationQueueItem.id == item_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create(
        self,
        tenant_id: str,
        notification_type: str,
        payload: Dict[str, Any],
        retry_count: int,
        max_retries: int,
        next_retry_at: datetime,
        error: Optional[str] = None,
        source_entry_id: Optional[str] = None,
        source_announcement_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> NotificationQueueItem:
        now = now or utcnow()
        item = NotificationQueueItem(
            tenant_id=tenant_id,
            notification_type=notification_type,
            payload=payload,
            retry_count=retry_count,
            max_retries=max_retries,
            next_retry_at=next_retry_at,
            status='pending',
            last_error=error,
            last_error_at=now if error else None,
            source_entry_id=source_entry_id,
            source_announcement_id=source_announcement_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(item)
        self.db.flush()
        return item

    def get_due_ids(self, limit: int = 50, now: Optional[datetime] = None) -> List[Any]:
        """Pending items whose next_retry_at has elapsed, oldest-due first."""
        now = now or utcnow()
        stmt = (
            select(NotificationQueueItem.id)
            .where(
                NotificationQueueItem.status == 'pending',
                NotificationQueueItem.next_retry_at <= now
            )
            .order_by(NotificationQueueItem.next_retry_at, NotificationQueueItem.created_at)
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def claim(self, item_id: Any, now: Optional[datetime] = None) -> bool:
        """Flip pending -> retrying. Only one caller can win for a given item."""
        now = now or utcnow()
        result = self.db.execute(
            update(NotificationQueueItem)
            .where(
                NotificationQueueItem.id == item_id,
                NotificationQueueItem.status == 'pending'
            )
            .values(status='retrying', claimed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def reset_stale_claims(self, claimed_before: datetime) -> int:
        """Return items stuck in retrying (crashed worker) to pending without spending a retry."""
        result = self.db.execute(
            update(NotificationQueueItem)
            .where(
                and_(
                    NotificationQueueItem.status == 'retrying',
                    NotificationQueueItem.claimed_at < claimed_before
                )
            )
            .values(status='pending', claimed_at=None)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount:
            logger.warning(f"Released {result.rowcount} stale queue claims")
        return result.rowcount

    def purge_completed(self, completed_before: datetime) -> int:
        """Delete succeeded/failed items past the retention window."""
        result = self.db.execute(
            delete(NotificationQueueItem)
            .where(
                NotificationQueueItem.status.in_(('succeeded', 'failed')),
                NotificationQueueItem.completed_at < completed_before
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def delete(self, item: NotificationQueueItem) -> None:
        self.db.delete(item)
        self.db.flush()

    def counts_by_status(self, tenant_id: Optional[str] = None) -> Dict[str, int]:
        stmt = select(NotificationQueueItem.status, func.count()).group_by(NotificationQueueItem.status)
        if tenant_id:
            stmt = stmt.where(NotificationQueueItem.tenant_id == tenant_id)
        counts = {'pending': 0, 'retrying': 0, 'succeeded': 0, 'failed': 0}
        for status, count in self.db.execute(stmt).all():
            counts[status] = count
        return counts

    def list_with_errors(self, tenant_id: Optional[str] = None, limit: int = 100) -> List[NotificationQueueItem]:
        stmt = (
            select(NotificationQueueItem)
            .where(NotificationQueueItem.last_error.isnot(None))
            .order_by(NotificationQueueItem.last_error_at.desc())
            .limit(limit)
        )
        if tenant_id:
            stmt = stmt.where(NotificationQueueItem.tenant_id == tenant_id)
        return list(self.db.execute(stmt).scalars().all())
