"""Consumer-side helpers: fetch API client, local cache and reconnecting feed."""

from .api import NotificationApiClient
from .cache import CachedNotification, NotificationCache
from .reconnect import BackoffPolicy, ConnectionStatus, NotificationFeed

__all__ = [
    "NotificationApiClient",
    "CachedNotification",
    "NotificationCache",
    "BackoffPolicy",
    "ConnectionStatus",
    "NotificationFeed",
]
