"""FastAPI dependency utilities."""

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from starlette.requests import HTTPConnection

from quickqr_notify.application.use_cases.notifications import NotificationRouter
from quickqr_notify.domain.errors import AuthenticationError
from quickqr_notify.infrastructure.notifications import ConnectionRegistry
from quickqr_notify.infrastructure.security import decode_access_token

# Tokens are issued by the authentication service; this API only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/token", auto_error=False)


def resolve_recipient_id(token: str | None) -> str:
    """Return the recipient identity carried by ``token``."""

    if not token:
        raise AuthenticationError("Authentication required")
    try:
        payload = decode_access_token(token)
    except ValueError as exc:
        raise AuthenticationError("Invalid token") from exc

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        raise AuthenticationError("Invalid token")
    return subject.strip()


def get_current_recipient(token: str | None = Depends(oauth2_scheme)) -> str:
    """Return the authenticated recipient for an HTTP request."""

    return resolve_recipient_id(token)


def get_connection_registry(connection: HTTPConnection) -> ConnectionRegistry:
    return connection.app.state.connection_registry


def get_notification_router(connection: HTTPConnection) -> NotificationRouter:
    """Return the router order handlers use to emit notifications."""

    return connection.app.state.notification_router
