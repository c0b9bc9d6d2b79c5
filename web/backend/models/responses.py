#!/usr/bin/env python3
"""
Response models for API endpoints.
"""

from pydantic import BaseModel, ConfigDict
from typing import List, Optional, Dict, Any


class EventCaptureResponse(BaseModel):
    """Result of handing a transition to capture."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "captured": True,
                "category": "up_soon",
                "subjects": 2
            }
        }
    )

    success: bool
    captured: bool
    category: Optional[str] = None
    subjects: int = 0


class SubscriptionResponse(BaseModel):
    success: bool
    subscription_id: str
    is_active: bool
    preferences: Dict[str, Any]


class MessageResponse(BaseModel):
    success: bool
    message: str


class LoginCheckResponse(BaseModel):
    """Whether the caller may attempt to authenticate."""
    allowed: bool
    failures: int
    limit: int
    retry_after_seconds: int = 0
    remaining_minutes: int = 0
    message: Optional[str] = None


class QueueOverviewResponse(BaseModel):
    """Retry queue counts plus the first-attempt queue state."""
    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "success": True,
                "counts": {"pending": 3, "retrying": 0, "succeeded": 12, "failed": 1, "dead_lettered": 2},
                "async_queue": {"status": "sync_mode", "queue_length": 0, "redis_connected": False}
            }
        }
    )

    success: bool
    counts: Dict[str, int]
    async_queue: Dict[str, Any]


class FailedNotificationsResponse(BaseModel):
    success: bool
    count: int
    items: List[Dict[str, Any]]


class DeadLetterListResponse(BaseModel):
    success: bool
    count: int
    items: List[Dict[str, Any]]


class DeadLetterResponse(BaseModel):
    success: bool
    item: Dict[str, Any]


class ProcessingResponse(BaseModel):
    """Outcome of one processor run."""
    success: bool
    result: Dict[str, Any]


class CleanupResponse(BaseModel):
    success: bool
    result: Dict[str, int]


class DeliveryConfigResponse(BaseModel):
    """Masked view of the stored gateway credentials."""
    configured: bool
    shared_secret: Optional[str] = None
    gateway_key: Optional[str] = None
    updated_at: Optional[str] = None
    updated_by: Optional[str] = None


class LoginAttemptsResponse(BaseModel):
    success: bool
    count: int
    attempts: List[Dict[str, Any]]
