#!/usr/bin/env python3
"""
Event endpoints - the domain side reports state transitions here.

Capture failures never fail the request: the transition has already
happened on the domain side, so a notification problem is logged and the
response reports captured=false.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from ..dependencies import get_app_context
from ..models.requests import (
    AnnouncementRequest,
    ClassStatusRequest,
    EntryScoredRequest,
    EntryStatusRequest,
)
from ..models.responses import EventCaptureResponse
from core.app_context import AppContext
from notification import NotificationEvent

router = APIRouter(prefix="/api/events", tags=["events"])


def _captured(event: Optional[NotificationEvent]) -> EventCaptureResponse:
    if event is None:
        return EventCaptureResponse(success=True, captured=False)
    return EventCaptureResponse(
        success=True,
        captured=True,
        category=event.category.value,
        subjects=len(event.subjects)
    )


@router.post("/entry-scored", response_model=EventCaptureResponse)
def entry_scored(
    request: EntryScoredRequest,
    context: AppContext = Depends(get_app_context)
):
    """
    An entry was scored: notify favorites among the next dogs to run.
    """
    event = context.notification_service.capture.entry_scored(
        request.scored.to_snapshot(),
        request.class_info.to_snapshot(),
        [entry.to_snapshot() for entry in request.class_entries],
        paired_entries=[entry.to_snapshot() for entry in request.paired_entries],
        paired_class=request.paired_class.to_snapshot() if request.paired_class else None,
        previously_scored=request.previously_scored,
    )
    return _captured(event)


@router.post("/entry-status", response_model=EventCaptureResponse)
def entry_status_changed(
    request: EntryStatusRequest,
    context: AppContext = Depends(get_app_context)
):
    """
    An entry's check-in status changed; 'come-to-gate' triggers a gate call.
    """
    event = context.notification_service.capture.entry_status_changed(
        request.old_status,
        request.entry.to_snapshot(),
        request.class_info.to_snapshot(),
    )
    return _captured(event)


@router.post("/class-status", response_model=EventCaptureResponse)
def class_status_changed(
    request: ClassStatusRequest,
    context: AppContext = Depends(get_app_context)
):
    event = context.notification_service.capture.class_status_changed(
        request.old_status,
        request.class_info.to_snapshot(),
        [entry.to_snapshot() for entry in request.class_entries],
    )
    return _captured(event)


@router.post("/announcements", response_model=EventCaptureResponse)
def announcement_created(
    request: AnnouncementRequest,
    context: AppContext = Depends(get_app_context)
):
    """
    A new announcement was posted.

    Subject to the per-show hourly limit: over the limit the request is
    rejected with 429 and a Retry-After header, and nothing is sent.
    """
    event = context.notification_service.submit_announcement(request.to_snapshot())
    return _captured(event)
