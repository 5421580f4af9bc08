"""Async HTTP client for the notification fetch API."""

from __future__ import annotations

from typing import Any

import httpx

from quickqr_notify.domain.errors import AuthenticationError, NotFoundError


class NotificationApiClient:
    """Thin wrapper over ``/notifications`` used by :class:`NotificationCache`."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._token = token
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def set_token(self, token: str) -> None:
        """Swap in a refreshed credential for subsequent requests."""

        self._token = token

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        response = await self._client.request(
            method,
            f"{self.base_url}{path}",
            headers={"Authorization": f"Bearer {self._token}"},
            **kwargs,
        )
        if response.status_code == 401:
            raise AuthenticationError(_detail(response) or "Authentication required")
        if response.status_code == 404:
            raise NotFoundError("Notification")
        response.raise_for_status()
        return response

    async def list_notifications(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        response = await self._request(
            "GET", "/notifications/", params={"page": page, "limit": limit}
        )
        return response.json()

    async def unread_count(self) -> int:
        response = await self._request("GET", "/notifications/unread-count")
        return int(response.json().get("unread_count", 0))

    async def mark_read(self, notification_id: int) -> dict[str, Any]:
        response = await self._request("PATCH", f"/notifications/{notification_id}/read")
        return response.json()

    async def mark_all_read(self) -> int:
        response = await self._request("PATCH", "/notifications/read-all")
        return int(response.json().get("updated", 0))

    async def delete(self, notification_id: int) -> None:
        await self._request("DELETE", f"/notifications/{notification_id}")


def _detail(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("detail")
        return str(detail) if detail else None
    return None


__all__ = ["NotificationApiClient"]
