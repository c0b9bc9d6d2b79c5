#!/usr/bin/env python3
"""
Tests for recipient resolution and subscription preferences.

Usage:
    uv run python -m pytest tests/unit/notification/test_resolver.py -v
"""

import unittest

from notification.capture import build_announcement_event, build_gate_call_event, build_up_soon_event
from notification.events import NotificationCategory, NotificationEvent
from notification.resolver import (
    Delivery,
    NotificationPreferences,
    RecipientResolver,
    RecipientSubscription,
)
from tests.mocks.push_mocks import make_announcement, make_class, make_entry


def subscription(
    sub_id: str = "sub-1",
    tenant_id: str = "show-1",
    favorites=(),
    dogs_ahead: int = 3,
    is_active: bool = True,
    **flags
) -> RecipientSubscription:
    preferences = NotificationPreferences(
        favorite_armbands=list(favorites), dogs_ahead=dogs_ahead, **flags
    )
    return RecipientSubscription(
        id=sub_id,
        tenant_id=tenant_id,
        endpoint=f"https://push.example.com/{sub_id}",
        keys={"p256dh": "key", "auth": "auth"},
        preferences=preferences,
        is_active=is_active,
    )


class TestNotificationPreferences(unittest.TestCase):

    def test_defaults(self):
        prefs = NotificationPreferences()
        self.assertTrue(prefs.announcements)
        self.assertTrue(prefs.up_soon)
        self.assertTrue(prefs.come_to_gate)
        self.assertEqual(prefs.dogs_ahead, 3)
        self.assertEqual(prefs.favorite_armbands, frozenset())

    def test_dogs_ahead_clamped(self):
        self.assertEqual(NotificationPreferences(dogs_ahead=0).dogs_ahead, 1)
        self.assertEqual(NotificationPreferences(dogs_ahead=9).dogs_ahead, 5)
        self.assertEqual(NotificationPreferences(dogs_ahead="4").dogs_ahead, 4)
        self.assertEqual(NotificationPreferences(dogs_ahead="lots").dogs_ahead, 3)

    def test_favorites_parsed_and_unknown_keys_ignored(self):
        prefs = NotificationPreferences(favorite_armbands=["12", 40, "x"], sound=True)
        self.assertEqual(prefs.favorite_armbands, frozenset({12, 40}))
        self.assertEqual(prefs.to_dict()["favorite_armbands"], [12, 40])
        self.assertNotIn("sound", prefs.to_dict())


class TestRecipientResolver(unittest.TestCase):

    def setUp(self):
        self.resolver = RecipientResolver()
        self.class_info = make_class()
        self.entries = [make_entry(10 + i, order=i + 1) for i in range(6)]

    def up_soon_event(self) -> NotificationEvent:
        # entry 10 just ran; 11, 12, 13, 14, 15 are 1..5 positions away
        return build_up_soon_event(self.entries[0], self.class_info, self.entries)

    def test_favorite_within_threshold_receives_one_payload(self):
        deliveries = self.resolver.resolve(self.up_soon_event(), [subscription(favorites=[12])])

        self.assertEqual(len(deliveries), 1)
        payload = deliveries[0].payload
        self.assertEqual(payload.type, "up_soon")
        self.assertEqual(payload.armband_number, 12)
        self.assertEqual(payload.class_id, "class-c")
        self.assertEqual(payload.positions_away, 2)

    def test_favorite_beyond_threshold_excluded(self):
        deliveries = self.resolver.resolve(
            self.up_soon_event(), [subscription(favorites=[15], dogs_ahead=3)]
        )
        self.assertEqual(deliveries, [])

    def test_threshold_boundary_is_inclusive(self):
        deliveries = self.resolver.resolve(
            self.up_soon_event(), [subscription(favorites=[13], dogs_ahead=3)]
        )
        self.assertEqual(len(deliveries), 1)

    def test_non_favorites_excluded(self):
        deliveries = self.resolver.resolve(self.up_soon_event(), [subscription(favorites=[99])])
        self.assertEqual(deliveries, [])

    def test_disabled_category_excluded(self):
        deliveries = self.resolver.resolve(
            self.up_soon_event(), [subscription(favorites=[12], up_soon=False)]
        )
        self.assertEqual(deliveries, [])

    def test_other_tenant_and_inactive_excluded(self):
        subs = [
            subscription("other-show", tenant_id="show-2", favorites=[12]),
            subscription("inactive", favorites=[12], is_active=False),
        ]
        self.assertEqual(self.resolver.resolve(self.up_soon_event(), subs), [])

    def test_announcement_reaches_every_opted_in_subscription(self):
        event = build_announcement_event(make_announcement())
        subs = [
            subscription("a"),
            subscription("b", favorites=[1]),
            subscription("c", announcements=False),
        ]
        deliveries = self.resolver.resolve(event, subs)
        self.assertEqual({d.subscription_id for d in deliveries}, {"a", "b"})
        self.assertTrue(all(d.source_announcement_id == "ann-1" for d in deliveries))

    def test_gate_call_uses_come_to_gate_flag(self):
        entry = make_entry(12, order=3, status="come-to-gate")
        event = build_gate_call_event("checked-in", entry, self.class_info)
        subs = [
            subscription("on", favorites=[12]),
            subscription("off", favorites=[12], come_to_gate=False),
        ]
        deliveries = self.resolver.resolve(event, subs)
        self.assertEqual([d.subscription_id for d in deliveries], ["on"])
        self.assertEqual(deliveries[0].category, NotificationCategory.COME_TO_GATE.value)

    def test_empty_event_resolves_to_nothing(self):
        event = NotificationEvent(category=NotificationCategory.UP_SOON, tenant_id="show-1")
        self.assertEqual(self.resolver.resolve(event, [subscription(favorites=[12])]), [])

    def test_resolution_is_repeatable(self):
        subs = [subscription("a", favorites=[11, 12]), subscription("b", favorites=[13])]
        event = self.up_soon_event()
        first = self.resolver.resolve(event, subs)
        second = self.resolver.resolve(event, subs)
        self.assertEqual(first, second)
        self.assertEqual([d.notification_id for d in first], [d.notification_id for d in second])


class TestDelivery(unittest.TestCase):

    def test_request_body_carries_subscription_and_id(self):
        event = build_announcement_event(make_announcement())
        delivery = RecipientResolver().resolve(event, [subscription()])[0]
        body = delivery.to_request_body()

        self.assertEqual(body["type"], "announcement")
        self.assertEqual(body["title"], "Lunch break")
        self.assertEqual(body["subscription"]["endpoint"], "https://push.example.com/sub-1")
        self.assertEqual(body["notification_id"], delivery.notification_id)

    def test_dict_form_survives_rq_serialization(self):
        event = build_announcement_event(make_announcement())
        delivery = RecipientResolver().resolve(event, [subscription()])[0]
        restored = Delivery.from_dict(delivery.to_dict())
        self.assertEqual(restored.notification_id, delivery.notification_id)
        self.assertEqual(restored.to_request_body(), delivery.to_request_body())


if __name__ == "__main__":
    unittest.main()
