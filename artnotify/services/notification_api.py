"""
REST client for the notifications API.
Used as the authoritative fallback next to the realtime channel.
"""
from __future__ import annotations

import logging
from typing import Any

import httpx

from artnotify.core.config import settings
from artnotify.core.exceptions import NotificationAPIError, NotFoundException, UnauthorizedException
from artnotify.schemas.notification import NotificationId, NotificationRead, UnreadCount

logger = logging.getLogger(__name__)


class NotificationAPI:
    """
    Typed wrapper around the notification endpoints of the gallery API.

    ``transport`` lets tests route requests to an in-process ASGI app.
    """

    def __init__(
        self,
        credential: str,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.API_BASE_URL).rstrip("/"),
            headers={
                "Authorization": f"Bearer {credential}",
                "Content-Type": "application/json",
            },
            timeout=timeout or settings.HTTP_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> NotificationAPI:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ── Endpoints ─────────────────────────────────────────────────────────────

    async def list_notifications(
        self,
        limit: int | None = None,
        offset: int = 0,
        unread_only: bool = False,
    ) -> list[NotificationRead]:
        params = {
            "limit": str(limit or settings.NOTIFICATIONS_PAGE_SIZE),
            "offset": str(offset),
            "unread_only": "true" if unread_only else "false",
        }
        data = await self._request("GET", "/notifications/", "fetch notifications", params=params)
        if not isinstance(data, list):
            raise NotificationAPIError("Failed to fetch notifications: expected a JSON array")
        return [NotificationRead.model_validate(item) for item in data]

    async def get_unread_count(self) -> UnreadCount:
        data = await self._request("GET", "/notifications/unread-count", "fetch unread count")
        return UnreadCount.model_validate(data)

    async def mark_as_read(self, notification_id: NotificationId) -> dict[str, Any]:
        return await self._request(
            "PUT",
            f"/notifications/{notification_id}/read",
            "mark notification as read",
            resource_id=str(notification_id),
        )

    async def mark_all_as_read(self) -> dict[str, Any]:
        return await self._request("PUT", "/notifications/mark-all-read", "mark all notifications as read")

    # ── Helpers ───────────────────────────────────────────────────────────────

    async def _request(
        self,
        method: str,
        url: str,
        action: str,
        *,
        params: dict[str, str] | None = None,
        resource_id: str | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, url, params=params)
        except httpx.HTTPError as exc:
            logger.error("Notifications API request failed: %s %s: %s", method, url, exc)
            raise NotificationAPIError(f"Failed to {action}: {exc}") from exc

        if response.status_code == 401:
            raise UnauthorizedException()
        if response.status_code == 404 and resource_id is not None:
            raise NotFoundException("Notification", resource_id)
        if response.is_error:
            logger.error(
                "Notifications API error: %s %s -> %s", method, url, response.status_code
            )
            raise NotificationAPIError(
                f"Failed to {action}: {response.reason_phrase}",
                status_code=response.status_code,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise NotificationAPIError(
                f"Failed to {action}: response is not JSON", status_code=response.status_code
            ) from exc
