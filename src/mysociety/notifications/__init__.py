"""Mutation announcements for mysociety application."""

from mysociety.notifications.dispatcher import NotificationDispatcher, NotificationOutcome
from mysociety.notifications.factories import TransportSettings, create_dispatcher, create_transport
from mysociety.notifications.formatting import format_message
from mysociety.notifications.transports import (
    DeliveryReceipt,
    MockTransport,
    Transport,
    TransportError,
    TwilioTransport,
)

__all__ = [
    "NotificationDispatcher",
    "NotificationOutcome",
    "TransportSettings",
    "create_dispatcher",
    "create_transport",
    "format_message",
    "DeliveryReceipt",
    "MockTransport",
    "Transport",
    "TransportError",
    "TwilioTransport",
]
