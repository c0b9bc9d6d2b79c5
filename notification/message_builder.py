from typing import Optional
from pydantic import BaseModel, ConfigDict

from core.utils import pluralize


class NotificationPayload(BaseModel):
    """
    Gateway payload. Category-specific fields (armband_number, class_id, ...)
    ride along as extra top-level keys.
    """
    model_config = ConfigDict(extra='allow')

    type: str
    tenant_id: str
    title: str
    body: str
    url: str
    priority: str = "normal"


class NotificationMessageBuilder:
    @staticmethod
    def class_entries_url(class_id: str) -> str:
        return f"/class/{class_id}/entries"

    @staticmethod
    def up_soon(
        tenant_id: str,
        entry,
        class_name: str,
        positions_away: int
    ) -> NotificationPayload:
        """Build the "You're Up Soon!" payload for one upcoming entry."""
        return NotificationPayload(
            type="up_soon",
            tenant_id=tenant_id,
            title="You're Up Soon!",
            body=f"{entry.call_name} (#{entry.armband_number}) is {pluralize(positions_away, 'dog')} away in {class_name}",
            url=NotificationMessageBuilder.class_entries_url(entry.class_id),
            armband_number=entry.armband_number,
            dog_name=entry.call_name,
            handler=entry.handler_name,
            class_id=entry.class_id,
            entry_id=entry.entry_id,
            positions_away=positions_away,
        )

    @staticmethod
    def come_to_gate(tenant_id: str, entry, class_name: str) -> NotificationPayload:
        return NotificationPayload(
            type="come_to_gate",
            tenant_id=tenant_id,
            title="🔔 Come to Gate!",
            body=f"Armband #{entry.armband_number} ({entry.call_name}) - Please proceed to the ring gate",
            url=NotificationMessageBuilder.class_entries_url(entry.class_id),
            priority="high",
            armband_number=entry.armband_number,
            dog_name=entry.call_name,
            class_id=entry.class_id,
            class_name=class_name,
            entry_id=entry.entry_id,
        )

    @staticmethod
    def class_started(tenant_id: str, class_id: str, class_name: str, class_status: Optional[str]) -> NotificationPayload:
        return NotificationPayload(
            type="class_started",
            tenant_id=tenant_id,
            title="Your Class is Starting!",
            body=f"{class_name} - Get to the ring for briefing",
            url=NotificationMessageBuilder.class_entries_url(class_id),
            class_id=class_id,
            class_name=class_name,
            class_status=class_status,
        )

    @staticmethod
    def announcement(announcement) -> NotificationPayload:
        return NotificationPayload(
            type="announcement",
            tenant_id=announcement.tenant_id,
            title=announcement.title,
            body=announcement.content,
            url="/announcements",
            priority=announcement.priority,
            announcement_id=announcement.announcement_id,
        )
