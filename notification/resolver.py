#!/usr/bin/env python3
"""
Recipient Resolver - maps one notification event to zero or more deliveries.

Resolution is a pure function of (event, subscription snapshot): no I/O,
no clock, so running it twice on the same inputs yields the same
deliveries, down to their notification ids.
"""

import json
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, ConfigDict, field_validator

from notification.events import NotificationEvent
from notification.message_builder import NotificationPayload

logger = logging.getLogger(__name__)

DEFAULT_DOGS_AHEAD = 3
MIN_DOGS_AHEAD = 1
MAX_DOGS_AHEAD = 5


class NotificationPreferences(BaseModel):
    """A recipient's per-category switches, up-soon threshold and favorites."""
    model_config = ConfigDict(extra='ignore', frozen=True)

    announcements: bool = True
    up_soon: bool = True
    results: bool = True
    come_to_gate: bool = True
    dogs_ahead: int = DEFAULT_DOGS_AHEAD
    favorite_armbands: FrozenSet[int] = frozenset()

    @field_validator('dogs_ahead', mode='before')
    @classmethod
    def _clamp_dogs_ahead(cls, value: Any) -> int:
        try:
            value = int(value)
        except (TypeError, ValueError):
            return DEFAULT_DOGS_AHEAD
        return max(MIN_DOGS_AHEAD, min(MAX_DOGS_AHEAD, value))

    @field_validator('favorite_armbands', mode='before')
    @classmethod
    def _parse_armbands(cls, value: Any) -> FrozenSet[int]:
        if not value:
            return frozenset()
        armbands = set()
        for item in value:
            try:
                armbands.add(int(item))
            except (TypeError, ValueError):
                logger.debug(f"Ignoring non-numeric favorite armband {item!r}")
        return frozenset(armbands)

    def is_enabled(self, preference_key: str) -> bool:
        return bool(getattr(self, preference_key, False))

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump()
        data['favorite_armbands'] = sorted(self.favorite_armbands)
        return data


@dataclass(frozen=True)
class RecipientSubscription:
    """Read-only view of a push subscription used during resolution."""
    id: str
    tenant_id: str
    endpoint: str
    keys: Dict[str, Any]
    preferences: NotificationPreferences
    is_active: bool = True
    recipient_id: Optional[str] = None

    @classmethod
    def from_model(cls, row) -> "RecipientSubscription":
        return cls(
            id=str(row.id),
            tenant_id=row.tenant_id,
            endpoint=row.endpoint,
            keys=dict(row.keys or {}),
            preferences=NotificationPreferences(**(row.preferences or {})),
            is_active=bool(row.is_active),
            recipient_id=row.recipient_id,
        )


@dataclass(frozen=True)
class Delivery:
    """One (subscription, payload) pair ready for the dispatcher."""
    tenant_id: str
    category: str
    endpoint: str
    keys: Dict[str, Any]
    payload: NotificationPayload
    subscription_id: Optional[str] = None
    source_entry_id: Optional[str] = None
    source_announcement_id: Optional[str] = None

    @property
    def notification_id(self) -> str:
        """Stable id recipients can deduplicate at-least-once deliveries on."""
        fingerprint = json.dumps(
            {'endpoint': self.endpoint, 'payload': self.payload.model_dump(mode='json')},
            sort_keys=True,
            default=str,
        )
        return str(uuid.uuid5(uuid.NAMESPACE_URL, fingerprint))

    def to_request_body(self) -> Dict[str, Any]:
        body = self.payload.model_dump(mode='json')
        body['notification_id'] = self.notification_id
        body['subscription'] = {'endpoint': self.endpoint, 'keys': self.keys}
        return body

    def to_dict(self) -> Dict[str, Any]:
        """Serializable form, used for RQ job arguments."""
        return {
            'tenant_id': self.tenant_id,
            'category': self.category,
            'endpoint': self.endpoint,
            'keys': self.keys,
            'payload': self.payload.model_dump(mode='json'),
            'subscription_id': self.subscription_id,
            'source_entry_id': self.source_entry_id,
            'source_announcement_id': self.source_announcement_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Delivery":
        return cls(
            tenant_id=data['tenant_id'],
            category=data['category'],
            endpoint=data['endpoint'],
            keys=data.get('keys') or {},
            payload=NotificationPayload(**data['payload']),
            subscription_id=data.get('subscription_id'),
            source_entry_id=data.get('source_entry_id'),
            source_announcement_id=data.get('source_announcement_id'),
        )


class RecipientResolver:
    """
    Applies tenant, active flag, category preference, favorites and the
    positions-away threshold, in that order. No match yields an empty list.
    """

    def resolve(
        self,
        event: NotificationEvent,
        subscriptions: Iterable[RecipientSubscription]
    ) -> List[Delivery]:
        subscriptions = list(subscriptions)
        preference_key = event.category.preference_key
        deliveries: List[Delivery] = []

        for subject in event.subjects:
            for subscription in subscriptions:
                if not subscription.is_active or subscription.tenant_id != event.tenant_id:
                    continue

                preferences = subscription.preferences
                if not preferences.is_enabled(preference_key):
                    continue
                if subject.armbands and not (subject.armbands & preferences.favorite_armbands):
                    continue
                if subject.positions_away is not None and subject.positions_away > preferences.dogs_ahead:
                    continue

                deliveries.append(Delivery(
                    tenant_id=event.tenant_id,
                    category=event.category.value,
                    endpoint=subscription.endpoint,
                    keys=subscription.keys,
                    payload=subject.payload,
                    subscription_id=subscription.id,
                    source_entry_id=subject.source_entry_id,
                    source_announcement_id=event.source_announcement_id,
                ))

        logger.debug(f"Resolved {len(deliveries)} deliveries for {event.category.value} in {event.tenant_id}")
        return deliveries
