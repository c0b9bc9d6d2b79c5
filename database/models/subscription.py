import uuid

from sqlalchemy import Column, Text, Boolean, Uuid, Index

from .base import Base, JSONType, UTCDateTime, utcnow


class PushSubscription(Base):
    """
    One recipient's push endpoint plus notification preferences.

    Rows are never hard-deleted inline: unsubscribe, stale cleanup and
    gateway 410 responses all flip is_active to False and keep the row.
    """
    __tablename__ = 'push_subscriptions'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Who
    tenant_id = Column(Text, nullable=False)  # show license key
    recipient_id = Column(Text, nullable=False)
    role = Column(Text, nullable=False, default='exhibitor')  # exhibitor, steward, judge, admin

    # Where (opaque Web Push target)
    endpoint = Column(Text, nullable=False, unique=True)
    keys = Column(JSONType, nullable=False, default=dict)  # {"p256dh": ..., "auth": ...}
    user_agent = Column(Text)

    # What
    preferences = Column(JSONType, nullable=False, default=dict)

    is_active = Column(Boolean, nullable=False, default=True)
    last_used_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('idx_push_subscriptions_tenant_active', 'tenant_id', 'is_active'),
        Index('idx_push_subscriptions_last_used', 'last_used_at'),
    )

    def __repr__(self):
        return f"<PushSubscription {self.id} tenant={self.tenant_id} active={self.is_active}>"
