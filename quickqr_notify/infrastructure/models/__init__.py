"""ORM models used by the application infrastructure."""

from .notification import NotificationModel
from .restaurant_member import (
    MEMBER_ROLE_OWNER,
    MEMBER_ROLE_STAFF,
    RestaurantMemberModel,
)

__all__ = [
    "NotificationModel",
    "RestaurantMemberModel",
    "MEMBER_ROLE_OWNER",
    "MEMBER_ROLE_STAFF",
]
