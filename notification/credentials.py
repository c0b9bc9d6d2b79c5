"""
Delivery credential store: rotation and masked read-back.

The values themselves are only ever read by the dispatcher; everything
operator-facing sees masked previews.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from database.database import SessionFactory, db_session_scope
from database.models import PLACEHOLDER_GATEWAY_KEY, PLACEHOLDER_SHARED_SECRET
from database.repositories import DeliveryConfigRepository
from notification.dispatcher import DeliveryCredentials
from notification.exceptions import DeliveryConfigError

logger = logging.getLogger(__name__)

MIN_SECRET_LENGTH = 16


def mask_secret(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    if value in (PLACEHOLDER_SHARED_SECRET, PLACEHOLDER_GATEWAY_KEY):
        return value
    return f"{value[:4]}...{value[-4:]}" if len(value) > 8 else "****"


def rotate_secrets(
    shared_secret: str,
    gateway_key: str,
    updated_by: str,
    session_factory: Optional[SessionFactory] = None,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Replace both gateway credentials in one transaction.

    Raises:
        DeliveryConfigError: a value is empty, a placeholder or too short.
    """
    shared_secret = (shared_secret or "").strip()
    gateway_key = (gateway_key or "").strip()
    DeliveryCredentials(shared_secret=shared_secret, gateway_key=gateway_key).validate()
    if len(shared_secret) < MIN_SECRET_LENGTH:
        raise DeliveryConfigError(f"Shared secret must be at least {MIN_SECRET_LENGTH} characters")

    with db_session_scope(session_factory) as session:
        row = DeliveryConfigRepository(session).update_secrets(shared_secret, gateway_key, updated_by, now)
        summary = _describe(row)

    logger.info(f"Push notification secrets rotated by {updated_by}")
    return summary


def describe_config(session_factory: Optional[SessionFactory] = None) -> Dict[str, Any]:
    with db_session_scope(session_factory) as session:
        row = DeliveryConfigRepository(session).get()
        if row is None:
            return {'configured': False, 'shared_secret': None, 'gateway_key': None,
                    'updated_at': None, 'updated_by': None}
        return _describe(row)


def _describe(row) -> Dict[str, Any]:
    try:
        DeliveryCredentials(shared_secret=row.shared_secret, gateway_key=row.gateway_key).validate()
        configured = True
    except DeliveryConfigError:
        configured = False
    return {
        'configured': configured,
        'shared_secret': mask_secret(row.shared_secret),
        'gateway_key': mask_secret(row.gateway_key),
        'updated_at': row.updated_at.isoformat() if row.updated_at else None,
        'updated_by': row.updated_by,
    }
