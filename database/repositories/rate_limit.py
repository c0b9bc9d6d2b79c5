import logging
from typing import List, Optional, Tuple
from datetime import datetime

from sqlalchemy import select, delete, func

from database.models import RateLimitCounter, LoginAttempt
from database.repositories.base import BaseRepository
from core.utils import utcnow, ensure_utc

logger = logging.getLogger(__name__)


class RateLimitRepository(BaseRepository):
    def increment_counter(
        self,
        scope: str,
        tenant_id: str,
        bucket_start: datetime,
        now: Optional[datetime] = None
    ) -> int:
        """Atomically add one to the (scope, tenant, bucket) counter and return the new value."""
        now = now or utcnow()
        stmt = self.upsert_insert(RateLimitCounter).values(
            scope=scope,
            tenant_id=tenant_id,
            bucket_start=bucket_start,
            count=1,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=['scope', 'tenant_id', 'bucket_start'],
            set_={
                'count': RateLimitCounter.count + 1,
                'updated_at': now,
            }
        ).returning(RateLimitCounter.count)
        return self.db.execute(stmt).scalar_one()

    def get_counter(self, scope: str, tenant_id: str, bucket_start: datetime) -> int:
        stmt = select(RateLimitCounter.count).where(
            RateLimitCounter.scope == scope,
            RateLimitCounter.tenant_id == tenant_id,
            RateLimitCounter.bucket_start == bucket_start
        )
        return self.db.execute(stmt).scalar_one_or_none() or 0

    def prune_counters(self, older_than: datetime) -> int:
        result = self.db.execute(
            delete(RateLimitCounter)
            .where(RateLimitCounter.bucket_start < older_than)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    def record_login_attempt(
        self,
        ip_address: str,
        device_fingerprint: Optional[str],
        success: bool,
        tenant_id: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> LoginAttempt:
        attempt = LoginAttempt(
            ip_address=ip_address,
            device_fingerprint=device_fingerprint,
            tenant_id=tenant_id,
            success=success,
            attempted_at=now or utcnow(),
        )
        self.db.add(attempt)
        self.db.flush()
        return attempt

    def recent_failures(
        self,
        ip_address: str,
        device_fingerprint: Optional[str],
        since: datetime
    ) -> Tuple[int, Optional[datetime]]:
        """Count failed attempts since a moment and return the latest one.

        Without a fingerprint every failure from the address counts.
        """
        stmt = select(func.count(), func.max(LoginAttempt.attempted_at)).where(
            LoginAttempt.ip_address == ip_address,
            LoginAttempt.success.is_(False),
            LoginAttempt.attempted_at > since
        )
        if device_fingerprint:
            stmt = stmt.where(LoginAttempt.device_fingerprint == device_fingerprint)
        count, latest = self.db.execute(stmt).one()
        return count, ensure_utc(latest)

    def list_attempts(self, ip_address: Optional[str] = None, limit: int = 100) -> List[LoginAttempt]:
        stmt = select(LoginAttempt).order_by(LoginAttempt.attempted_at.desc()).limit(limit)
        if ip_address:
            stmt = stmt.where(LoginAttempt.ip_address == ip_address)
        return list(self.db.execute(stmt).scalars().all())

    def clear_login_attempts(self, ip_address: str, device_fingerprint: Optional[str] = None) -> int:
        stmt = delete(LoginAttempt).where(LoginAttempt.ip_address == ip_address)
        if device_fingerprint:
            stmt = stmt.where(LoginAttempt.device_fingerprint == device_fingerprint)
        result = self.db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount

    def prune_login_attempts(self, older_than: datetime) -> int:
        result = self.db.execute(
            delete(LoginAttempt)
            .where(LoginAttempt.attempted_at < older_than)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
