#!/usr/bin/env python3
"""
Tests for event capture: which transitions produce which events.

Usage:
    uv run python -m pytest tests/unit/notification/test_capture.py -v
"""

import unittest
from unittest.mock import Mock

from notification.capture import EventCapture, upcoming_entries
from notification.events import NotificationCategory
from tests.mocks.push_mocks import make_announcement, make_class, make_entry


class TestUpcomingEntries(unittest.TestCase):

    def test_next_unscored_entries_in_run_order(self):
        entries = [
            make_entry(14, order=5),
            make_entry(10, order=1, scored=True),
            make_entry(12, order=3),
            make_entry(11, order=2, scored=True),
            make_entry(13, order=4),
        ]
        upcoming = upcoming_entries(entries[1], entries)
        self.assertEqual([e.armband_number for e in upcoming], [12, 13, 14])

    def test_armband_used_when_no_exhibitor_order(self):
        entries = [make_entry(30), make_entry(10), make_entry(20)]
        upcoming = upcoming_entries(entries[1], entries)
        self.assertEqual([e.armband_number for e in upcoming], [20, 30])

    def test_lookahead_limits_result(self):
        entries = [make_entry(n, order=n) for n in range(1, 10)]
        upcoming = upcoming_entries(entries[0], entries, lookahead=3)
        self.assertEqual([e.armband_number for e in upcoming], [2, 3, 4])

    def test_paired_class_merged_into_one_run_order(self):
        class_a = [make_entry(1, order=1, class_id="a"), make_entry(3, order=3, class_id="a")]
        class_b = [make_entry(2, order=2, class_id="b"), make_entry(4, order=4, class_id="b")]
        upcoming = upcoming_entries(class_a[0], class_a, class_b)
        self.assertEqual([e.armband_number for e in upcoming], [2, 3, 4])

    def test_tied_run_order_keeps_supplied_order(self):
        entries = [make_entry(1, order=1), make_entry(7, order=2), make_entry(5, order=2)]
        upcoming = upcoming_entries(entries[0], entries)
        self.assertEqual([e.armband_number for e in upcoming], [7, 5])


class TestEventCapture(unittest.TestCase):

    def setUp(self):
        self.publish = Mock()
        self.capture = EventCapture(self.publish)
        self.class_info = make_class()

    def test_entry_scored_publishes_up_soon(self):
        entries = [make_entry(10 + i, order=i + 1) for i in range(4)]
        event = self.capture.entry_scored(entries[0], self.class_info, entries)

        self.publish.assert_called_once_with(event)
        self.assertEqual(event.category, NotificationCategory.UP_SOON)
        self.assertEqual([s.positions_away for s in event.subjects], [1, 2, 3])
        self.assertEqual(event.subjects[1].armbands, frozenset({12}))
        self.assertEqual(
            event.subjects[1].payload.body,
            "Dog 12 (#12) is 2 dogs away in Container Novice A"
        )
        self.assertEqual(event.subjects[0].payload.body, "Dog 11 (#11) is 1 dog away in Container Novice A")
        self.assertEqual(event.subjects[0].payload.url, "/class/class-c/entries")

    def test_rescoring_does_not_publish(self):
        entries = [make_entry(10, order=1), make_entry(11, order=2)]
        event = self.capture.entry_scored(entries[0], self.class_info, entries, previously_scored=True)
        self.assertIsNone(event)
        self.publish.assert_not_called()

    def test_last_entry_scored_publishes_nothing(self):
        entries = [make_entry(10, order=1, scored=True), make_entry(11, order=2)]
        self.assertIsNone(self.capture.entry_scored(entries[1], self.class_info, entries))
        self.publish.assert_not_called()

    def test_offline_scoring_suppresses_up_soon(self):
        entries = [make_entry(10, order=1), make_entry(11, order=2)]
        class_info = make_class(class_status="offline-scoring")
        self.assertIsNone(self.capture.entry_scored(entries[0], class_info, entries))
        self.publish.assert_not_called()

    def test_paired_entry_named_after_its_own_class(self):
        class_a = make_class("a", paired_class_id="b", section="A")
        class_b = make_class("b", paired_class_id="a", section="B")
        a_entries = [make_entry(1, order=1, class_id="a")]
        b_entries = [make_entry(2, order=2, class_id="b")]
        event = self.capture.entry_scored(a_entries[0], class_a, a_entries, b_entries, class_b)
        self.assertEqual(event.subjects[0].payload.class_id, "b")
        self.assertIn("Container Novice B", event.subjects[0].payload.body)

    def test_gate_call_on_transition_into_come_to_gate(self):
        entry = make_entry(12, order=3, status="come-to-gate", name="Bella")
        event = self.capture.entry_status_changed("checked-in", entry, self.class_info)

        self.assertEqual(event.category, NotificationCategory.COME_TO_GATE)
        payload = event.subjects[0].payload
        self.assertEqual(payload.title, "🔔 Come to Gate!")
        self.assertEqual(payload.priority, "high")
        self.assertEqual(payload.body, "Armband #12 (Bella) - Please proceed to the ring gate")

    def test_gate_call_not_repeated(self):
        entry = make_entry(12, status="come-to-gate")
        self.assertIsNone(self.capture.entry_status_changed("come-to-gate", entry, self.class_info))
        self.assertIsNone(
            self.capture.entry_status_changed("checked-in", make_entry(12, status="in-ring"), self.class_info)
        )
        self.publish.assert_not_called()

    def test_class_started_targets_all_armbands(self):
        entries = [make_entry(1), make_entry(2)]
        event = self.capture.class_status_changed("setup", make_class(class_status="briefing"), entries)

        self.assertEqual(event.category, NotificationCategory.CLASS_STARTED)
        self.assertEqual(event.subjects[0].armbands, frozenset({1, 2}))
        self.assertEqual(event.subjects[0].payload.title, "Your Class is Starting!")

    def test_class_status_unchanged_or_inactive_ignored(self):
        entries = [make_entry(1)]
        self.assertIsNone(
            self.capture.class_status_changed("in_progress", make_class(class_status="in_progress"), entries)
        )
        self.assertIsNone(
            self.capture.class_status_changed("in_progress", make_class(class_status="completed"), entries)
        )
        self.publish.assert_not_called()

    def test_announcement_created(self):
        event = self.capture.announcement_created(make_announcement(priority="urgent"))
        self.assertEqual(event.category, NotificationCategory.ANNOUNCEMENT)
        self.assertEqual(event.source_announcement_id, "ann-1")
        self.assertEqual(event.subjects[0].payload.priority, "urgent")
        self.assertEqual(event.subjects[0].payload.url, "/announcements")

    def test_publish_failure_never_reaches_caller(self):
        self.publish.side_effect = RuntimeError("database is down")
        with self.assertLogs("notification.capture", level="ERROR"):
            event = self.capture.announcement_created(make_announcement())
        self.assertIsNone(event)


if __name__ == "__main__":
    unittest.main()
