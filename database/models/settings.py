from sqlalchemy import Column, Integer, Text, CheckConstraint

from .base import Base, UTCDateTime, utcnow

PLACEHOLDER_SHARED_SECRET = 'REPLACE_ME_WITH_SECURE_SECRET'
PLACEHOLDER_GATEWAY_KEY = 'REPLACE_ME_WITH_ANON_KEY'


class DeliveryConfig(Base):
    """
    Single-row store for the push gateway credentials.

    Rotated through an administrative function; the dispatcher reads it on
    every call so a rotation takes effect without a restart.
    """
    __tablename__ = 'push_notification_config'

    id = Column(Integer, primary_key=True, default=1)
    shared_secret = Column(Text, nullable=False, default=PLACEHOLDER_SHARED_SECRET)
    gateway_key = Column(Text, nullable=False, default=PLACEHOLDER_GATEWAY_KEY)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)
    updated_by = Column(Text)

    __table_args__ = (
        CheckConstraint('id = 1', name='ck_push_config_single_row'),
    )
