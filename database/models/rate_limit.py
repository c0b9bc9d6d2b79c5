from sqlalchemy import Column, Text, Boolean, Integer, BigInteger, Index, UniqueConstraint

from .base import Base, UTCDateTime, utcnow


class RateLimitCounter(Base):
    """
    Fixed-window counter, one row per (scope, tenant, bucket).

    Incremented with an atomic upsert; old buckets simply age out of the
    query window and are pruned by the cleanup job.
    """
    __tablename__ = 'rate_limit_counters'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    scope = Column(Text, nullable=False)  # e.g. 'announcement'
    tenant_id = Column(Text, nullable=False)
    bucket_start = Column(UTCDateTime, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        UniqueConstraint('scope', 'tenant_id', 'bucket_start', name='uq_rate_limit_bucket'),
        Index('idx_rate_limit_bucket_start', 'bucket_start'),
    )


class LoginAttempt(Base):
    """
    One authentication attempt, keyed by network address and device fingerprint.
    """
    __tablename__ = 'login_attempts'

    id = Column(BigInteger().with_variant(Integer, 'sqlite'), primary_key=True, autoincrement=True)
    ip_address = Column(Text, nullable=False)
    device_fingerprint = Column(Text)  # NULL when the client sent no usable signals
    tenant_id = Column(Text)
    success = Column(Boolean, nullable=False, default=False)
    attempted_at = Column(UTCDateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index('idx_login_attempts_ip_time', 'ip_address', 'attempted_at'),
        Index('idx_login_attempts_device', 'ip_address', 'device_fingerprint', 'attempted_at'),
    )
