import logging
from typing import Optional
from datetime import datetime

from sqlalchemy import select

from database.models import DeliveryConfig
from database.repositories.base import BaseRepository
from core.utils import utcnow

logger = logging.getLogger(__name__)


class DeliveryConfigRepository(BaseRepository):
    CONFIG_ROW_ID = 1

    def get(self) -> Optional[DeliveryConfig]:
        stmt = select(DeliveryConfig).where(DeliveryConfig.id == self.CONFIG_ROW_ID)
        return self.db.execute(stmt).scalar_one_or_none()

    def ensure_row(self) -> DeliveryConfig:
        """Seed the single config row with placeholder secrets if it does not exist yet."""
        row = self.get()
        if row is None:
            row = DeliveryConfig(id=self.CONFIG_ROW_ID, updated_by='init_db')
            self.db.add(row)
            self.db.flush()
            logger.info("Seeded push notification config with placeholder secrets")
        return row

    def update_secrets(
        self,
        shared_secret: str,
        gateway_key: str,
        updated_by: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> DeliveryConfig:
        row = self.ensure_row()
        row.shared_secret = shared_secret
        row.gateway_key = gateway_key
        row.updated_by = updated_by
        row.updated_at = now or utcnow()
        self.db.flush()
        return row
