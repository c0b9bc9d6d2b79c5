#!/usr/bin/env python3
"""
Dispatcher - one delivery attempt against the external push gateway.

The gateway is reached over HTTP with a bounded timeout. Credentials are
read from the delivery config store on every call so a rotation takes
effect without a redeploy. The dispatcher never retries inline; failed
attempts are handed to the retry queue by the caller.

Usage:
    from notification.dispatcher import Dispatcher, HttpPushTransport, store_credentials_provider

    dispatcher = Dispatcher(
        HttpPushTransport("https://push.example.com/functions/v1/send-push-notification"),
        store_credentials_provider(),
    )
    result = dispatcher.dispatch(delivery.to_request_body())
"""

import logging
import urllib.parse
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

import requests

from database.database import SessionFactory, db_session_scope
from database.models import PLACEHOLDER_GATEWAY_KEY, PLACEHOLDER_SHARED_SECRET
from database.repositories import DeliveryConfigRepository
from notification.exceptions import DeliveryConfigError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_MS = 5000
ERROR_BODY_LIMIT = 200


class DispatchStatus(Enum):
    DELIVERED = "delivered"
    FAILED = "failed"  # retryable
    GONE = "gone"  # subscription expired at the push service, not retryable


@dataclass(frozen=True)
class DispatchResult:
    status: DispatchStatus
    error: Optional[str] = None
    status_code: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == DispatchStatus.DELIVERED


@dataclass(frozen=True)
class DeliveryCredentials:
    shared_secret: str
    gateway_key: str

    def validate(self) -> "DeliveryCredentials":
        if not self.shared_secret or self.shared_secret == PLACEHOLDER_SHARED_SECRET:
            raise DeliveryConfigError("Push notification shared secret is not configured")
        if not self.gateway_key or self.gateway_key == PLACEHOLDER_GATEWAY_KEY:
            raise DeliveryConfigError("Push gateway key is not configured")
        return self


def load_credentials(session_factory: Optional[SessionFactory] = None) -> DeliveryCredentials:
    """Read and validate the current gateway credentials from the config store."""
    with db_session_scope(session_factory) as session:
        row = DeliveryConfigRepository(session).get()
        if row is None:
            raise DeliveryConfigError("Push notification config row is missing; run init-db")
        credentials = DeliveryCredentials(shared_secret=row.shared_secret, gateway_key=row.gateway_key)
    return credentials.validate()


def store_credentials_provider(session_factory: Optional[SessionFactory] = None) -> Callable[[], DeliveryCredentials]:
    return lambda: load_credentials(session_factory)


@dataclass(frozen=True)
class TransportResponse:
    status_code: int
    text: str = ""


class PushTransport(ABC):
    """
    Abstract transport to the push gateway.

    Implementations raise requests.Timeout / requests.RequestException on
    transport failures; HTTP status handling is the dispatcher's job.
    """

    @property
    @abstractmethod
    def transport_type(self) -> str:
        pass

    @abstractmethod
    def post(self, body: Dict[str, Any], headers: Dict[str, str], timeout_seconds: float) -> TransportResponse:
        pass


def _validate_gateway_url(url: str) -> bool:
    """Check scheme and hostname of the configured gateway URL."""
    parsed = urllib.parse.urlparse(url)
    if parsed.scheme not in ('http', 'https'):
        logger.error(f"Invalid gateway URL scheme: {parsed.scheme}")
        return False
    if not parsed.hostname:
        logger.error("Gateway URL missing hostname")
        return False
    return True


class HttpPushTransport(PushTransport):
    """POSTs JSON to the push gateway with requests."""

    def __init__(self, gateway_url: str, session: Optional[requests.Session] = None):
        if not _validate_gateway_url(gateway_url):
            raise ValueError(f"Invalid push gateway URL: {gateway_url}")
        self.gateway_url = gateway_url
        self.session = session or requests.Session()

    @property
    def transport_type(self) -> str:
        return 'http'

    def post(self, body: Dict[str, Any], headers: Dict[str, str], timeout_seconds: float) -> TransportResponse:
        response = self.session.post(
            self.gateway_url,
            json=body,
            headers=headers,
            timeout=timeout_seconds
        )
        return TransportResponse(status_code=response.status_code, text=response.text or "")


class Dispatcher:
    """Performs one attempt per call and classifies the outcome."""

    def __init__(
        self,
        transport: PushTransport,
        credentials_provider: Callable[[], DeliveryCredentials],
        timeout_ms: int = DEFAULT_TIMEOUT_MS
    ):
        self.transport = transport
        self.credentials_provider = credentials_provider
        self.timeout_ms = timeout_ms

    def check_credentials(self) -> DeliveryCredentials:
        """Raises DeliveryConfigError when the gateway cannot be called at all."""
        return self.credentials_provider()

    @staticmethod
    def build_headers(credentials: DeliveryCredentials) -> Dict[str, str]:
        return {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {credentials.gateway_key}',
            'apikey': credentials.gateway_key,
            'X-Trigger-Secret': credentials.shared_secret,
        }

    def dispatch(self, body: Dict[str, Any]) -> DispatchResult:
        """
        Attempt one delivery.

        Args:
            body: Gateway request body (payload, notification_id, subscription).

        Returns:
            DispatchResult classifying the outcome.

        Raises:
            DeliveryConfigError: credentials missing or placeholders (not retryable).
        """
        credentials = self.credentials_provider()
        headers = self.build_headers(credentials)

        try:
            response = self.transport.post(body, headers, self.timeout_ms / 1000.0)
        except requests.Timeout:
            return DispatchResult(DispatchStatus.FAILED, error=f"Timeout after {self.timeout_ms}ms")
        except requests.RequestException as e:
            return DispatchResult(DispatchStatus.FAILED, error=f"Transport error: {e}")
        except Exception as e:
            # Any transport failure is retryable, whatever the transport raises
            logger.error(f"Unexpected push transport error: {e}", exc_info=True)
            return DispatchResult(DispatchStatus.FAILED, error=f"Transport error: {type(e).__name__}: {e}")

        code = response.status_code
        if 200 <= code < 300:
            return DispatchResult(DispatchStatus.DELIVERED, status_code=code)
        if code == 410:
            return DispatchResult(DispatchStatus.GONE, error="HTTP 410: subscription expired", status_code=code)
        return DispatchResult(
            DispatchStatus.FAILED,
            error=f"HTTP {code}: {response.text[:ERROR_BODY_LIMIT]}",
            status_code=code,
        )
