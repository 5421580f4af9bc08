"""Realtime notification helpers for the infrastructure layer."""

from .publisher import NotificationPublisher
from .registry import ChannelTransport, ConnectionRegistry
from .session import (
    CLIENT_DISCONNECT,
    JOIN_TOPIC_EVENT,
    LEAVE_TOPIC_EVENT,
    PING_TIMEOUT,
    DeliverySession,
    SessionTransport,
)

__all__ = [
    "ChannelTransport",
    "ConnectionRegistry",
    "NotificationPublisher",
    "DeliverySession",
    "SessionTransport",
    "JOIN_TOPIC_EVENT",
    "LEAVE_TOPIC_EVENT",
    "CLIENT_DISCONNECT",
    "PING_TIMEOUT",
]
