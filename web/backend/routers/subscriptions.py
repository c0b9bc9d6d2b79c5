#!/usr/bin/env python3
"""
Subscription endpoints - browsers opt in and out of push notifications.
"""

import urllib.parse

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..dependencies import get_db
from ..exceptions import InvalidPushEndpointException
from ..models.requests import PreferencesUpdate, SubscribeRequest, UnsubscribeRequest
from ..models.responses import MessageResponse, SubscriptionResponse
from notification import SubscriptionService

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency to get subscription service."""
    return SubscriptionService(db)


def _require_push_endpoint(endpoint: str) -> str:
    parsed = urllib.parse.urlparse(endpoint)
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        raise InvalidPushEndpointException(f"Push endpoint must be an absolute http(s) URL: {endpoint}")
    return endpoint


@router.post("", response_model=SubscriptionResponse)
def subscribe(
    request: SubscribeRequest,
    service: SubscriptionService = Depends(get_subscription_service)
):
    """
    Register a push endpoint, or re-activate and update an existing one.
    """
    subscription = service.subscribe(
        tenant_id=request.tenant_id,
        recipient_id=request.recipient_id,
        endpoint=_require_push_endpoint(request.endpoint),
        keys=request.keys,
        preferences=request.preferences,
        role=request.role,
        user_agent=request.user_agent,
    )
    return SubscriptionResponse(
        success=True,
        subscription_id=str(subscription.id),
        is_active=subscription.is_active,
        preferences=subscription.preferences,
    )


@router.delete("", response_model=MessageResponse)
def unsubscribe(
    request: UnsubscribeRequest,
    service: SubscriptionService = Depends(get_subscription_service)
):
    service.unsubscribe(request.endpoint)
    return MessageResponse(success=True, message="Subscription deactivated")


@router.patch("/preferences", response_model=SubscriptionResponse)
def update_preferences(
    request: PreferencesUpdate,
    service: SubscriptionService = Depends(get_subscription_service)
):
    """
    Merge preference changes into the stored set.

    Out-of-range dogs_ahead values are normalized rather than rejected.
    """
    subscription = service.update_preferences(request.endpoint, request.preferences)
    return SubscriptionResponse(
        success=True,
        subscription_id=str(subscription.id),
        is_active=subscription.is_active,
        preferences=subscription.preferences,
    )
