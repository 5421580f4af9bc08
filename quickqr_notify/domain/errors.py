"""Exception hierarchy for the notification core."""

from __future__ import annotations


class NotificationError(Exception):
    """Base exception for the notification service."""

    code = "NOTIFICATION_ERROR"
    status_code = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ValidationError(NotificationError):
    """A notification could not be created from the supplied values."""

    code = "VALIDATION_ERROR"
    status_code = 400


class AuthenticationError(NotificationError):
    """Credential missing or invalid."""

    code = "AUTHENTICATION_ERROR"
    status_code = 401

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class NotFoundError(NotificationError):
    """The target does not exist for the calling recipient."""

    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str = "Notification", resource_id: object = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id is None:
            message = f"{resource} not found"
        else:
            message = f"{resource} '{resource_id}' not found"
        super().__init__(message)


class StoreUnavailableError(NotificationError):
    """The notification store could not complete a write."""

    code = "STORE_UNAVAILABLE"
    status_code = 503


class TransientDeliveryError(NotificationError):
    """A push to one channel failed; only that channel is affected."""

    code = "TRANSIENT_DELIVERY_ERROR"
    status_code = 503

    def __init__(self, channel_id: str, reason: str) -> None:
        self.channel_id = channel_id
        self.reason = reason
        super().__init__(f"Delivery to channel {channel_id} failed: {reason}")


class InvalidTransitionError(NotificationError):
    """A delivery session was asked to move to a state it cannot reach."""

    code = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: object, target: object) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Cannot move channel from {current} to {target}")


__all__ = [
    "NotificationError",
    "ValidationError",
    "AuthenticationError",
    "NotFoundError",
    "StoreUnavailableError",
    "TransientDeliveryError",
    "InvalidTransitionError",
]
