import uuid

from sqlalchemy import Column, Text, Boolean, Integer, Uuid, Index, CheckConstraint

from .base import Base, JSONType, UTCDateTime, utcnow

QUEUE_STATUSES = ('pending', 'retrying', 'succeeded', 'failed')


class NotificationQueueItem(Base):
    """
    A delivery that failed its first attempt and is waiting for a retry.

    The status column doubles as an advisory lock: the processor flips
    pending -> retrying with a conditional UPDATE before it dispatches,
    so only one run can own an item at a time.
    """
    __tablename__ = 'push_notification_queue'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    tenant_id = Column(Text, nullable=False)
    notification_type = Column(Text, nullable=False)  # announcement, up_soon, come_to_gate, class_started

    # Full gateway request body (payload + target subscription)
    payload = Column(JSONType, nullable=False)

    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=5)
    next_retry_at = Column(UTCDateTime, nullable=False, default=utcnow)
    status = Column(Text, nullable=False, default='pending')

    last_error = Column(Text)
    last_error_at = Column(UTCDateTime)

    # Correlation back to the domain row that produced the event
    source_entry_id = Column(Text)
    source_announcement_id = Column(Text)

    claimed_at = Column(UTCDateTime)
    completed_at = Column(UTCDateTime)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'retrying', 'succeeded', 'failed')",
            name='ck_push_queue_status'
        ),
        # Due items are selected by status and next_retry_at
        Index('idx_push_queue_due', 'status', 'next_retry_at'),
        Index('idx_push_queue_tenant', 'tenant_id', 'status'),
    )

    def __repr__(self):
        return f"<NotificationQueueItem {self.id} {self.status} retry={self.retry_count}/{self.max_retries}>"


class DeadLetterItem(Base):
    """
    Terminal quarantine for notifications that exhausted their retries.

    Never retried and never auto-deleted; acknowledgment is the only mutation.
    """
    __tablename__ = 'push_notification_dead_letter'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    original_queue_id = Column(Uuid(as_uuid=True), nullable=False, unique=True)

    tenant_id = Column(Text, nullable=False)
    notification_type = Column(Text, nullable=False)
    payload = Column(JSONType, nullable=False)
    retry_count = Column(Integer, nullable=False)
    max_retries = Column(Integer, nullable=False)
    source_entry_id = Column(Text)
    source_announcement_id = Column(Text)

    final_error = Column(Text)
    original_created_at = Column(UTCDateTime)
    failed_at = Column(UTCDateTime, nullable=False, default=utcnow)

    # Operator review
    acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_at = Column(UTCDateTime)
    acknowledged_by = Column(Text)
    acknowledgment_note = Column(Text)

    __table_args__ = (
        Index('idx_push_dead_letter_tenant', 'tenant_id', 'acknowledged'),
        Index('idx_push_dead_letter_failed_at', 'failed_at'),
    )

    def __repr__(self):
        return f"<DeadLetterItem {self.id} tenant={self.tenant_id} acknowledged={self.acknowledged}>"
