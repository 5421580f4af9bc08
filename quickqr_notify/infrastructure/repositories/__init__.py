"""Repository implementations for infrastructure layer."""

from .membership_repository import RestaurantMembershipRepository
from .notification_repository import NotificationRepository

__all__ = [
    "NotificationRepository",
    "RestaurantMembershipRepository",
]
