"""Factory functions for notification transports and dispatchers."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from mysociety.notifications.dispatcher import (
    DEFAULT_BASE_DELAY,
    DEFAULT_MAX_RETRIES,
    NotificationDispatcher,
)
from mysociety.notifications.transports import MockTransport, Transport, TwilioTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportSettings:
    """Credentials and identities for live messaging providers."""

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    whatsapp_from: Optional[str] = None
    whatsapp_to: Optional[str] = None

    @classmethod
    def from_env(cls) -> "TransportSettings":
        """Read settings from TWILIO_* and WHATSAPP_* environment variables."""
        return cls(
            twilio_account_sid=os.environ.get("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.environ.get("TWILIO_AUTH_TOKEN"),
            whatsapp_from=os.environ.get("TWILIO_WHATSAPP_FROM"),
            whatsapp_to=os.environ.get("WHATSAPP_GROUP_ID") or os.environ.get("TWILIO_WHATSAPP_TO"),
        )


def create_transport(provider: str, settings: Optional[TransportSettings] = None) -> Transport:
    """Create the transport named by ``provider``.

    Unknown provider names fall back to the mock transport with a warning.
    """
    settings = settings or TransportSettings()
    name = (provider or "mock").strip().lower()
    if name == "twilio":
        return TwilioTransport(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_identity=settings.whatsapp_from,
            to_identity=settings.whatsapp_to,
        )
    if name != "mock":
        logger.warning("Unknown notification provider: %s, using mock", provider)
    return MockTransport()


def create_dispatcher(
    provider: Optional[str] = None,
    settings: Optional[TransportSettings] = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
) -> NotificationDispatcher:
    """Create a notification dispatcher.

    Args:
        provider: Transport name. If None, checks MYSOCIETY_NOTIFY_PROVIDER,
            then defaults to ``mock``
        settings: Provider settings. If None, read from the environment
        max_retries: Retries after the first failed attempt
        base_delay: Seconds before the first retry

    Returns:
        NotificationDispatcher instance
    """
    if provider is None:
        provider = os.environ.get("MYSOCIETY_NOTIFY_PROVIDER", "mock")
    if settings is None:
        settings = TransportSettings.from_env()
    transport = create_transport(provider, settings)
    return NotificationDispatcher(transport, max_retries=max_retries, base_delay=base_delay)
