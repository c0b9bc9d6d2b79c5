"""
Notification event types and the domain snapshots they are built from.

The subsystem never reads or writes domain tables directly: the domain
side hands over snapshots carrying just enough denormalized context
(names, run order, armbands) to render a payload.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, FrozenSet

from notification.message_builder import NotificationPayload


class NotificationCategory(str, Enum):
    """Notification categories, valued as their wire 'type'."""
    ANNOUNCEMENT = "announcement"
    UP_SOON = "up_soon"
    COME_TO_GATE = "come_to_gate"
    CLASS_STARTED = "class_started"

    @property
    def preference_key(self) -> str:
        """Preference flag a recipient must have enabled to receive this category."""
        return _PREFERENCE_KEYS[self]


# Class-start alerts ride on the up_soon flag, same as the ring-side app.
_PREFERENCE_KEYS = {
    NotificationCategory.ANNOUNCEMENT: "announcements",
    NotificationCategory.UP_SOON: "up_soon",
    NotificationCategory.COME_TO_GATE: "come_to_gate",
    NotificationCategory.CLASS_STARTED: "up_soon",
}


class NotificationPriority(Enum):
    """Priority levels for notifications."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


@dataclass(frozen=True)
class EntrySnapshot:
    """One dog's entry in a class."""
    entry_id: str
    class_id: str
    armband_number: int
    call_name: str
    exhibitor_order: int = 0
    is_scored: bool = False
    entry_status: Optional[str] = None
    handler_name: Optional[str] = None

    @property
    def run_order(self) -> int:
        """Exhibitor order when set, otherwise the armband number."""
        return self.exhibitor_order or self.armband_number


@dataclass(frozen=True)
class ClassSnapshot:
    class_id: str
    tenant_id: str
    element: str
    level: str
    section: Optional[str] = None
    class_status: Optional[str] = None
    paired_class_id: Optional[str] = None

    @property
    def display_name(self) -> str:
        name = f"{self.element} {self.level}"
        if self.section and self.section != "-":
            name = f"{name} {self.section}"
        return name


@dataclass(frozen=True)
class AnnouncementSnapshot:
    announcement_id: str
    tenant_id: str
    title: str
    content: str
    priority: str = NotificationPriority.NORMAL.value
    author_name: Optional[str] = None


@dataclass(frozen=True)
class EventSubject:
    """
    One rendered payload plus the rules for who may receive it.

    armbands: when non-empty, the recipient must favorite at least one of them.
    positions_away: when set, it must be within the recipient's dogs_ahead threshold.
    """
    payload: NotificationPayload
    armbands: FrozenSet[int] = frozenset()
    positions_away: Optional[int] = None
    source_entry_id: Optional[str] = None


@dataclass(frozen=True)
class NotificationEvent:
    category: NotificationCategory
    tenant_id: str
    subjects: Tuple[EventSubject, ...] = field(default_factory=tuple)
    source_announcement_id: Optional[str] = None
