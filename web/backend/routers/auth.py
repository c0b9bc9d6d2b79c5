#!/usr/bin/env python3
"""
Authentication attempt limiting.

The login page calls /check before submitting a passcode and reports the
outcome afterwards. Attempts are keyed on the client address plus a device
fingerprint so one device at a busy show site cannot lock out everyone
sharing its network.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from slowapi.util import get_remote_address

from ..dependencies import get_app_context
from ..models.requests import LoginAttemptRequest
from ..models.responses import LoginCheckResponse
from core.app_context import AppContext
from notification import RateLimitDecision, device_fingerprint

router = APIRouter(prefix="/api/auth/attempts", tags=["auth"])


def _fingerprint(
    request: Request,
    screen_resolution: Optional[str] = None,
    timezone_name: Optional[str] = None
) -> Optional[str]:
    return device_fingerprint(
        request.headers.get("user-agent"),
        request.headers.get("accept-language"),
        screen_resolution,
        timezone_name,
    )


def _decision_response(decision: RateLimitDecision):
    body = LoginCheckResponse(
        allowed=decision.allowed,
        failures=decision.count,
        limit=decision.limit,
        retry_after_seconds=decision.retry_after_seconds,
        remaining_minutes=decision.remaining_minutes,
        message=decision.message,
    )
    if decision.allowed:
        return body
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(decision.retry_after_seconds)},
        content=body.model_dump(),
    )


@router.get("/check", response_model=LoginCheckResponse)
def check_attempt(
    request: Request,
    screen_resolution: Optional[str] = None,
    timezone: Optional[str] = None,
    context: AppContext = Depends(get_app_context)
):
    """
    May this client try to authenticate right now?

    Returns 429 with the remaining block time when it may not.
    """
    decision = context.login_limiter.check(
        get_remote_address(request),
        _fingerprint(request, screen_resolution, timezone),
    )
    return _decision_response(decision)


@router.post("", response_model=LoginCheckResponse)
def record_attempt(
    request: Request,
    body: LoginAttemptRequest,
    context: AppContext = Depends(get_app_context)
):
    """Record one attempt and return whether the next one is allowed."""
    decision = context.login_limiter.record_attempt(
        get_remote_address(request),
        _fingerprint(request, body.screen_resolution, body.timezone),
        body.success,
        tenant_id=body.tenant_id,
    )
    return _decision_response(decision)
