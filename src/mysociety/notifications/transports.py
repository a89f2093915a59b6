"""Delivery transports for notification lines.

A transport delivers one line of text and returns a receipt. It raises
:class:`TransportError` when a single delivery attempt fails; retrying is the
dispatcher's job.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

import requests

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TransportError(Exception):
    """One delivery attempt failed.

    ``retryable`` is False for failures another attempt cannot fix, such as
    missing configuration or a request the provider rejected.
    """

    def __init__(self, message: str, retryable: bool = True):
        super().__init__(message)
        self.retryable = retryable


@dataclass(frozen=True)
class DeliveryReceipt:
    """Confirmation returned by a transport."""

    provider: str
    message_id: Optional[str]


class Transport(ABC):
    """Abstract delivery mechanism."""

    name: str = "transport"

    @abstractmethod
    def send(self, text: str) -> DeliveryReceipt:
        """Deliver one line of text."""
        pass


class MockTransport(Transport):
    """Development transport that only logs and records the lines it is given."""

    name = "mock"

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self.sent: list[str] = []

    def send(self, text: str) -> DeliveryReceipt:
        with self._guard:
            self.sent.append(text)
            count = len(self.sent)
        logger.info("[MOCK WhatsApp] %s", text)
        return DeliveryReceipt(provider=self.name, message_id=f"mock-{count}")


class TwilioTransport(Transport):
    """WhatsApp delivery through the Twilio Messages REST API."""

    name = "twilio"

    def __init__(
        self,
        account_sid: Optional[str],
        auth_token: Optional[str],
        from_identity: Optional[str],
        to_identity: Optional[str],
        timeout: float = 10.0,
        api_base: str = TWILIO_API_BASE,
    ):
        """Initialize Twilio transport.

        Args:
            account_sid: Twilio account SID, also the basic-auth username
            auth_token: Twilio auth token
            from_identity: Sender, e.g. ``whatsapp:+14155238886``
            to_identity: Recipient number or group identity
            timeout: Request timeout in seconds
            api_base: API root URL
        """
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_identity = from_identity
        self.to_identity = to_identity
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")

    def create_message(self, body: str, from_identity: str, to_identity: str) -> str:
        """Create one message and return its Twilio SID.

        Raises:
            TransportError: If the request fails or the response is malformed
        """
        if not self.account_sid or not self.auth_token:
            raise TransportError("Twilio credentials missing", retryable=False)
        url = f"{self.api_base}/Accounts/{self.account_sid}/Messages.json"
        try:
            response = requests.post(
                url,
                data={"Body": body, "From": from_identity, "To": to_identity},
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status = getattr(e.response, "status_code", None)
            # Client errors other than rate limiting will fail the same way again.
            retryable = status is None or status == 429 or status >= 500
            raise TransportError(f"Twilio request failed: {e}", retryable=retryable) from e
        except requests.exceptions.Timeout as e:
            raise TransportError(f"Twilio request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Twilio request failed: {e}") from e

        try:
            return response.json()["sid"]
        except (ValueError, KeyError, TypeError) as e:
            raise TransportError("Twilio response did not contain a message SID") from e

    def send(self, text: str) -> DeliveryReceipt:
        if not self.from_identity or not self.to_identity:
            raise TransportError("Twilio WhatsApp configuration missing", retryable=False)
        sid = self.create_message(text, self.from_identity, self.to_identity)
        logger.info("WhatsApp message sent via Twilio: %s", sid)
        return DeliveryReceipt(provider=self.name, message_id=sid)
