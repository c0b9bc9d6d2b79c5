#!/usr/bin/env python3
"""
Custom exceptions and error handlers for the web application.
"""

import logging
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

from notification.exceptions import (
    NotificationError,
    DeliveryConfigError,
    RateLimitExceeded,
    DeadLetterNotFound,
    DeadLetterAlreadyAcknowledged,
    SubscriptionNotFound,
)

logger = logging.getLogger(__name__)


class ServiceException(Exception):
    """Base exception for service layer errors."""
    pass


class InvalidPushEndpointException(ServiceException):
    """Raised when a subscription endpoint is not an absolute http(s) URL."""
    pass


def _status_for(exc: Exception) -> int:
    if isinstance(exc, (DeadLetterNotFound, SubscriptionNotFound)):
        return 404
    if isinstance(exc, DeadLetterAlreadyAcknowledged):
        return 409
    if isinstance(exc, (DeliveryConfigError, InvalidPushEndpointException)):
        return 400
    return 500


async def service_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle service layer and notification subsystem exceptions.

    Args:
        request: The FastAPI request.
        exc: The service or notification exception.

    Returns:
        JSONResponse with error details.
    """
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error(f"Service error in {request.url.path}: {exc}", exc_info=True)
    else:
        logger.warning(f"Rejected request to {request.url.path}: {exc}")

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": str(exc),
            "type": exc.__class__.__name__
        }
    )


async def rate_limit_exception_handler(
    request: Request,
    exc: RateLimitExceeded
) -> JSONResponse:
    """
    Handle producer rate-limit rejections with a retry-after hint.

    Args:
        request: The FastAPI request.
        exc: The rate-limit rejection.

    Returns:
        429 JSONResponse with Retry-After header.
    """
    return JSONResponse(
        status_code=429,
        headers={"Retry-After": str(exc.retry_after_seconds)},
        content={
            "success": False,
            "error": exc.message,
            "type": "RateLimitExceeded",
            "retry_after_seconds": exc.retry_after_seconds
        }
    )


async def http_exception_handler(
    request: Request,
    exc: HTTPException
) -> JSONResponse:
    """
    Handle FastAPI HTTP exceptions with consistent format.

    Args:
        request: The FastAPI request.
        exc: The HTTP exception.

    Returns:
        JSONResponse with error details.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": exc.detail,
            "type": "HTTPException"
        }
    )


async def general_exception_handler(
    request: Request,
    exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: The FastAPI request.
        exc: The exception.

    Returns:
        JSONResponse with error details.
    """
    logger.exception(f"Unexpected error in {request.url.path}")

    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal server error",
            "type": "InternalError"
        }
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)
    app.add_exception_handler(NotificationError, service_exception_handler)
    app.add_exception_handler(ServiceException, service_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
