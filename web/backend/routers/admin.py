#!/usr/bin/env python3
"""
Admin endpoints - queue overview, dead-letter review, manual runs and
credential rotation.
"""

import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from sqlalchemy.orm import Session

from ..dependencies import get_app_context, get_db
from ..services.notification_service import NotificationServiceWrapper
from ..models.requests import AcknowledgeRequest, SecretsUpdate
from ..models.responses import (
    CleanupResponse,
    DeadLetterListResponse,
    DeadLetterResponse,
    DeliveryConfigResponse,
    FailedNotificationsResponse,
    LoginAttemptsResponse,
    MessageResponse,
    ProcessingResponse,
    QueueOverviewResponse,
)
from core.app_context import AppContext

logger = logging.getLogger(__name__)

limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def add_rate_limit_handlers(app):
    """Add rate limit exception handlers to the FastAPI app."""
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": str(exc)}
    )


def get_notification_service(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_app_context)
) -> NotificationServiceWrapper:
    """Dependency to get notification service."""
    return NotificationServiceWrapper(db, context)


@router.get("/queue-status", response_model=QueueOverviewResponse)
def get_queue_status(
    tenant_id: Optional[str] = Query(None, description="Show license key"),
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """
    Counts of queued, retrying, succeeded, failed and dead-lettered notifications.
    """
    overview = service.queue_overview(tenant_id)
    return QueueOverviewResponse(success=True, **overview)


@router.get("/failed", response_model=FailedNotificationsResponse)
def get_failed_notifications(
    tenant_id: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """Queue items carrying an error plus unacknowledged dead letters, newest first."""
    items = service.failed_notifications(tenant_id, limit)
    return FailedNotificationsResponse(success=True, count=len(items), items=items)


@router.get("/dead-letters", response_model=DeadLetterListResponse)
def list_dead_letters(
    tenant_id: Optional[str] = Query(None),
    include_acknowledged: bool = Query(False),
    limit: int = Query(100, ge=1, le=500),
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    items = service.list_dead_letters(tenant_id, include_acknowledged, limit)
    return DeadLetterListResponse(success=True, count=len(items), items=items)


@router.post("/dead-letters/{item_id}/acknowledge", response_model=DeadLetterResponse)
def acknowledge_dead_letter(
    item_id: uuid.UUID,
    request: AcknowledgeRequest,
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """
    Mark a dead-letter item as reviewed.

    404 when the item does not exist, 409 when it was already acknowledged.
    """
    item = service.acknowledge(item_id, request.operator_id, request.note)
    return DeadLetterResponse(success=True, item=item)


@router.post("/process-now", response_model=ProcessingResponse)
@limiter.limit("6/minute")
def process_now(
    request: Request,
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """
    Drain due retry items immediately instead of waiting for the scheduler.
    """
    result = service.process_now()
    return ProcessingResponse(success=not result.get('aborted', False), result=result)


@router.post("/cleanup", response_model=CleanupResponse)
@limiter.limit("2/minute")
def run_cleanup(
    request: Request,
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    return CleanupResponse(success=True, result=service.cleanup())


@router.get("/delivery-config", response_model=DeliveryConfigResponse)
def get_delivery_config(
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """Masked gateway credentials and whether they are usable."""
    return DeliveryConfigResponse(**service.delivery_config())


@router.put("/delivery-config", response_model=DeliveryConfigResponse)
@limiter.limit("5/minute")
def rotate_delivery_config(
    request: Request,
    body: SecretsUpdate,
    service: NotificationServiceWrapper = Depends(get_notification_service)
):
    """
    Rotate both gateway credentials at once.

    Placeholder or too-short values are rejected with 400.
    """
    summary = service.rotate_secrets(body.shared_secret, body.gateway_key, body.updated_by)
    return DeliveryConfigResponse(**summary)


@router.get("/login-attempts", response_model=LoginAttemptsResponse)
def list_login_attempts(
    ip_address: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    context: AppContext = Depends(get_app_context)
):
    attempts = context.login_limiter.status(ip_address, limit)
    return LoginAttemptsResponse(success=True, count=len(attempts), attempts=attempts)


@router.delete("/login-attempts", response_model=MessageResponse)
def clear_login_attempts(
    ip_address: str = Query(..., min_length=1),
    fingerprint: Optional[str] = Query(None),
    context: AppContext = Depends(get_app_context)
):
    """Lift a block early, e.g. after a steward verifies the exhibitor in person."""
    cleared = context.login_limiter.clear(ip_address, fingerprint)
    return MessageResponse(success=True, message=f"Cleared {cleared} attempt(s) for {ip_address}")
