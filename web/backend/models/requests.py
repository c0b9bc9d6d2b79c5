#!/usr/bin/env python3
"""
Request models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional

from notification.events import AnnouncementSnapshot, ClassSnapshot, EntrySnapshot


class EntryModel(BaseModel):
    """One dog's entry as the scoring side sees it."""
    entry_id: str
    class_id: str
    armband_number: int = Field(..., ge=0, description="Armband number shown on the dog")
    call_name: str = Field(..., description="Dog's call name")
    exhibitor_order: int = Field(default=0, ge=0, description="Run order; 0 falls back to the armband")
    is_scored: bool = False
    entry_status: Optional[str] = None
    handler_name: Optional[str] = None

    def to_snapshot(self) -> EntrySnapshot:
        return EntrySnapshot(**self.model_dump())


class ClassModel(BaseModel):
    """Class context for a transition."""
    class_id: str
    tenant_id: str = Field(..., description="Show license key")
    element: str
    level: str
    section: Optional[str] = None
    class_status: Optional[str] = None
    paired_class_id: Optional[str] = None

    def to_snapshot(self) -> ClassSnapshot:
        return ClassSnapshot(**self.model_dump())


class EntryScoredRequest(BaseModel):
    """An entry moved from unscored to scored."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "scored": {"entry_id": "e-10", "class_id": "c-1", "armband_number": 10,
                           "call_name": "Rex", "exhibitor_order": 1, "is_scored": True},
                "class_info": {"class_id": "c-1", "tenant_id": "show-1", "element": "Container",
                               "level": "Novice", "section": "A", "class_status": "in_progress"},
                "class_entries": [
                    {"entry_id": "e-12", "class_id": "c-1", "armband_number": 12,
                     "call_name": "Bella", "exhibitor_order": 3}
                ]
            }
        }
    )

    scored: EntryModel
    class_info: ClassModel
    class_entries: List[EntryModel] = Field(default_factory=list)
    paired_entries: List[EntryModel] = Field(default_factory=list)
    paired_class: Optional[ClassModel] = None
    previously_scored: bool = False


class EntryStatusRequest(BaseModel):
    """An entry's check-in status changed."""
    old_status: Optional[str] = None
    entry: EntryModel
    class_info: ClassModel


class ClassStatusRequest(BaseModel):
    """A class's status changed."""
    old_status: Optional[str] = None
    class_info: ClassModel
    class_entries: List[EntryModel] = Field(default_factory=list)


class AnnouncementRequest(BaseModel):
    """A newly created show announcement."""
    announcement_id: str
    tenant_id: str
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    priority: str = Field(default="normal", description="Priority: low, normal, high, urgent")
    author_name: Optional[str] = None

    def to_snapshot(self) -> AnnouncementSnapshot:
        return AnnouncementSnapshot(**self.model_dump())


class SubscribeRequest(BaseModel):
    """Register a browser push endpoint."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "tenant_id": "show-1",
                "recipient_id": "exhibitor-42",
                "endpoint": "https://push.example.com/send/abc123",
                "keys": {"p256dh": "BNc...", "auth": "tBH..."},
                "preferences": {"announcements": True, "up_soon": True,
                                "dogs_ahead": 3, "favorite_armbands": [12, 40]}
            }
        }
    )

    tenant_id: str
    recipient_id: str
    endpoint: str = Field(..., min_length=1, description="Push service endpoint URL")
    keys: Dict[str, Any] = Field(default_factory=dict, description="Browser encryption keys")
    preferences: Dict[str, Any] = Field(default_factory=dict)
    role: str = Field(default="exhibitor")
    user_agent: Optional[str] = None


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1)


class PreferencesUpdate(BaseModel):
    """Partial preference update; unspecified keys keep their stored values."""
    endpoint: str = Field(..., min_length=1)
    preferences: Dict[str, Any]


class LoginAttemptRequest(BaseModel):
    """Outcome of one authentication attempt."""
    success: bool
    tenant_id: Optional[str] = None
    screen_resolution: Optional[str] = Field(None, description="Client-reported screen size, e.g. 1170x2532")
    timezone: Optional[str] = Field(None, description="Client-reported IANA timezone")


class AcknowledgeRequest(BaseModel):
    """Operator review of a dead-letter item."""
    operator_id: str = Field(..., min_length=1)
    note: Optional[str] = None


class SecretsUpdate(BaseModel):
    """Rotate the push gateway credentials."""
    shared_secret: str = Field(..., description="Trigger secret shared with the push gateway")
    gateway_key: str = Field(..., description="Gateway API key")
    updated_by: str = Field(..., min_length=1)
