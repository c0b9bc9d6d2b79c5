#!/usr/bin/env python3
"""
Event Capture - turns domain state transitions into notification events.

Called synchronously right after the domain write. Capture never raises
back into the caller: any failure is logged and swallowed so the
transition that triggered it is never blocked or rolled back.

Usage:
    from notification.capture import EventCapture

    capture = EventCapture(publish=service.publish)
    capture.entry_scored(scored_entry, class_info, class_entries)
    capture.entry_status_changed('checked-in', entry, class_info)
"""

import logging
from typing import Callable, Iterable, List, Optional, Sequence, Any

from notification.events import (
    AnnouncementSnapshot,
    ClassSnapshot,
    EntrySnapshot,
    EventSubject,
    NotificationCategory,
    NotificationEvent,
)
from notification.message_builder import NotificationMessageBuilder

logger = logging.getLogger(__name__)

GATE_CALL_STATUS = 'come-to-gate'
CLASS_ACTIVE_STATUSES = ('briefing', 'in_progress')
OFFLINE_SCORING_STATUS = 'offline-scoring'
DEFAULT_LOOKAHEAD = 5


def upcoming_entries(
    scored: EntrySnapshot,
    class_entries: Iterable[EntrySnapshot],
    paired_entries: Iterable[EntrySnapshot] = (),
    lookahead: int = DEFAULT_LOOKAHEAD
) -> List[EntrySnapshot]:
    """
    Next unscored entries after the scored one, in run order.

    Paired classes run as one queue, so their entries are merged into a
    single combined run order. Entries sharing a run order value keep the
    order they were supplied in.
    """
    combined = list(class_entries) + list(paired_entries)
    candidates = [
        e for e in combined
        if e.entry_id != scored.entry_id
        and not e.is_scored
        and e.run_order > scored.run_order
    ]
    candidates.sort(key=lambda e: e.run_order)
    return candidates[:lookahead]


def build_up_soon_event(
    scored: EntrySnapshot,
    class_info: ClassSnapshot,
    class_entries: Sequence[EntrySnapshot],
    paired_entries: Sequence[EntrySnapshot] = (),
    paired_class: Optional[ClassSnapshot] = None,
    lookahead: int = DEFAULT_LOOKAHEAD
) -> Optional[NotificationEvent]:
    if class_info.class_status == OFFLINE_SCORING_STATUS:
        logger.info(f"Skipping up_soon for class {class_info.class_id}: offline scoring")
        return None

    upcoming = upcoming_entries(scored, class_entries, paired_entries, lookahead)
    if not upcoming:
        return None

    subjects = []
    for positions_away, entry in enumerate(upcoming, start=1):
        owning_class = class_info
        if paired_class is not None and entry.class_id == paired_class.class_id:
            owning_class = paired_class
        payload = NotificationMessageBuilder.up_soon(
            class_info.tenant_id, entry, owning_class.display_name, positions_away
        )
        subjects.append(EventSubject(
            payload=payload,
            armbands=frozenset([entry.armband_number]),
            positions_away=positions_away,
            source_entry_id=entry.entry_id,
        ))

    return NotificationEvent(
        category=NotificationCategory.UP_SOON,
        tenant_id=class_info.tenant_id,
        subjects=tuple(subjects),
    )


def build_gate_call_event(
    old_status: Optional[str],
    entry: EntrySnapshot,
    class_info: ClassSnapshot
) -> Optional[NotificationEvent]:
    # Re-entering come-to-gate is a no-op
    if entry.entry_status != GATE_CALL_STATUS or old_status == GATE_CALL_STATUS:
        return None

    payload = NotificationMessageBuilder.come_to_gate(class_info.tenant_id, entry, class_info.display_name)
    return NotificationEvent(
        category=NotificationCategory.COME_TO_GATE,
        tenant_id=class_info.tenant_id,
        subjects=(EventSubject(
            payload=payload,
            armbands=frozenset([entry.armband_number]),
            source_entry_id=entry.entry_id,
        ),),
    )


def build_class_started_event(
    old_status: Optional[str],
    class_info: ClassSnapshot,
    class_entries: Sequence[EntrySnapshot]
) -> Optional[NotificationEvent]:
    if class_info.class_status not in CLASS_ACTIVE_STATUSES:
        return None
    if old_status == class_info.class_status:
        return None

    armbands = frozenset(e.armband_number for e in class_entries)
    if not armbands:
        return None

    payload = NotificationMessageBuilder.class_started(
        class_info.tenant_id, class_info.class_id, class_info.display_name, class_info.class_status
    )
    return NotificationEvent(
        category=NotificationCategory.CLASS_STARTED,
        tenant_id=class_info.tenant_id,
        subjects=(EventSubject(payload=payload, armbands=armbands),),
    )


def build_announcement_event(announcement: AnnouncementSnapshot) -> NotificationEvent:
    return NotificationEvent(
        category=NotificationCategory.ANNOUNCEMENT,
        tenant_id=announcement.tenant_id,
        subjects=(EventSubject(payload=NotificationMessageBuilder.announcement(announcement)),),
        source_announcement_id=announcement.announcement_id,
    )


class EventCapture:
    """
    Entry point the domain side calls after each state transition.

    Each handler returns the captured event (or None when the transition
    is not notification-worthy or capture failed).
    """

    def __init__(self, publish: Callable[[NotificationEvent], Any], lookahead: int = DEFAULT_LOOKAHEAD):
        self._publish = publish
        self.lookahead = lookahead

    def entry_scored(
        self,
        scored: EntrySnapshot,
        class_info: ClassSnapshot,
        class_entries: Sequence[EntrySnapshot],
        paired_entries: Sequence[EntrySnapshot] = (),
        paired_class: Optional[ClassSnapshot] = None,
        previously_scored: bool = False
    ) -> Optional[NotificationEvent]:
        if previously_scored:
            return None
        return self._capture(
            'entry_scored',
            lambda: build_up_soon_event(
                scored, class_info, class_entries, paired_entries, paired_class, self.lookahead
            ),
        )

    def entry_status_changed(
        self,
        old_status: Optional[str],
        entry: EntrySnapshot,
        class_info: ClassSnapshot
    ) -> Optional[NotificationEvent]:
        return self._capture('entry_status_changed', lambda: build_gate_call_event(old_status, entry, class_info))

    def class_status_changed(
        self,
        old_status: Optional[str],
        class_info: ClassSnapshot,
        class_entries: Sequence[EntrySnapshot]
    ) -> Optional[NotificationEvent]:
        return self._capture(
            'class_status_changed',
            lambda: build_class_started_event(old_status, class_info, class_entries),
        )

    def announcement_created(self, announcement: AnnouncementSnapshot) -> Optional[NotificationEvent]:
        return self._capture('announcement_created', lambda: build_announcement_event(announcement))

    def _capture(self, transition: str, build: Callable[[], Optional[NotificationEvent]]) -> Optional[NotificationEvent]:
        try:
            event = build()
            if event is None:
                return None
            self._publish(event)
            return event
        except Exception:
            logger.exception(f"Notification capture failed for {transition}; transition is unaffected")
            return None
