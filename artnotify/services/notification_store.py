"""
Notification store.
Client-side projection of the notification list and unread count, fed by
realtime channel events and REST snapshots. Mutations are optimistic and go
out over both the channel and the REST API.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from pydantic import TypeAdapter

from artnotify.core.config import settings
from artnotify.schemas.notification import (
    NotificationId,
    NotificationRead,
    NotificationsState,
    UnreadCount,
)
from artnotify.schemas.websocket import ChannelEvent, InboundMessageType
from artnotify.services.notification_api import NotificationAPI
from artnotify.services.websocket_service import NotificationChannel

logger = logging.getLogger(__name__)

AlertHandler = Callable[[NotificationRead], None]

_notification_list_adapter: TypeAdapter[list[NotificationRead]] = TypeAdapter(list[NotificationRead])


class NotificationStore:
    """
    Owns the notification list and unread count for one authenticated session.

    ``unread_count`` and ``notifications_list`` events, and REST snapshots,
    overwrite local state wholesale; the count is never recomputed from the
    list. Pushes and pulls are not ordered against each other, so whichever
    completes last wins.

    Ids seen read during the session, whether marked locally or received
    read, stay read: later items with those ids are applied with
    ``is_read=True``.
    """

    def __init__(
        self,
        channel: NotificationChannel,
        api: NotificationAPI,
        *,
        alert_handler: AlertHandler | None = None,
        alerts_enabled: bool | None = None,
    ) -> None:
        self._channel = channel
        self._api = api
        self._alert_handler = alert_handler
        self._alerts_enabled = (
            settings.DESKTOP_ALERTS_ENABLED if alerts_enabled is None else alerts_enabled
        )

        self._notifications: list[NotificationRead] = []
        self._unread_count = 0
        self._is_connected = False
        self._read_ids: set[NotificationId] = set()
        self._attached = False
        self._closed = False

        self._handlers: dict[str, Callable[[Any], None]] = {
            ChannelEvent.CONNECT.value: self._on_connect,
            ChannelEvent.DISCONNECT.value: self._on_disconnect,
            ChannelEvent.ERROR.value: self._on_error,
            InboundMessageType.NOTIFICATION.value: self._on_notification,
            InboundMessageType.UNREAD_COUNT.value: self._on_unread_count,
            InboundMessageType.NOTIFICATIONS_LIST.value: self._on_notifications_list,
        }

    # ── State ─────────────────────────────────────────────────────────────────

    @property
    def notifications(self) -> tuple[NotificationRead, ...]:
        return tuple(self._notifications)

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def is_connected(self) -> bool:
        return self._is_connected

    @property
    def closed(self) -> bool:
        return self._closed

    def snapshot(self) -> NotificationsState:
        return NotificationsState(
            notifications=tuple(self._notifications),
            unread_count=self._unread_count,
            is_connected=self._is_connected,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    def attach(self) -> None:
        if self._attached:
            return
        for event, handler in self._handlers.items():
            self._channel.dispatcher.on(event, handler)
        self._attached = True

    def detach(self) -> None:
        if not self._attached:
            return
        for event, handler in self._handlers.items():
            self._channel.dispatcher.off(event, handler)
        self._attached = False

    async def start(self, principal_id: str | int, credential: str) -> None:
        """Subscribe to channel events, then open the channel."""
        self.attach()
        logger.info("Connecting notifications for principal_id=%s", principal_id)
        await self._channel.connect(principal_id, credential)

    async def close(self) -> None:
        """Tear down on logout: stop listening, disconnect and reset state."""
        self._closed = True
        self.detach()
        await self._channel.disconnect()
        self._is_connected = False
        self._notifications = []
        self._unread_count = 0
        self._read_ids.clear()

    # ── User actions ──────────────────────────────────────────────────────────

    async def mark_as_read(self, notification_id: NotificationId) -> None:
        # Optimistic; a failed REST call is not rolled back
        self._read_ids.add(notification_id)
        self._notifications = [
            n.as_read() if n.id == notification_id else n for n in self._notifications
        ]
        self._unread_count = max(0, self._unread_count - 1)

        await self._channel.mark_notification_read(notification_id)
        try:
            await self._api.mark_as_read(notification_id)
        except Exception as exc:
            logger.error("Error marking notification %s as read: %s", notification_id, exc)

    async def mark_all_as_read(self) -> None:
        self._read_ids.update(n.id for n in self._notifications)
        self._notifications = [n.as_read() for n in self._notifications]
        self._unread_count = 0

        await self._channel.mark_all_notifications_read()
        try:
            await self._api.mark_all_as_read()
        except Exception as exc:
            logger.error("Error marking all notifications as read: %s", exc)

    async def refresh_notifications(self) -> None:
        """Ask the channel for a resync and pull list and count over REST."""
        await self._channel.request_notifications()
        await asyncio.gather(self._refresh_list(), self._refresh_count())

    async def _refresh_list(self) -> None:
        try:
            notifications = await self._api.list_notifications()
        except Exception as exc:
            logger.error("Error refreshing notifications: %s", exc)
            return
        if self._closed:
            logger.debug("Discarding notifications fetched after store was closed")
            return
        self._replace_notifications(notifications)

    async def _refresh_count(self) -> None:
        try:
            unread = await self._api.get_unread_count()
        except Exception as exc:
            logger.error("Error refreshing unread count: %s", exc)
            return
        if self._closed:
            logger.debug("Discarding unread count fetched after store was closed")
            return
        self._unread_count = max(0, unread.count)

    # ── Channel event handlers ────────────────────────────────────────────────

    def _on_connect(self, _: Any) -> None:
        self._is_connected = True

    def _on_disconnect(self, _: Any) -> None:
        self._is_connected = False

    def _on_error(self, detail: Any) -> None:
        logger.warning("Notification channel error: %s", detail)
        self._is_connected = False

    def _on_notification(self, data: Any) -> None:
        notification = self._keep_read(NotificationRead.model_validate(data))
        self._notifications.insert(0, notification)
        self._unread_count += 1
        logger.info("New notification received: id=%s type=%s", notification.id, notification.type)

        if self._alerts_enabled and self._alert_handler is not None:
            self._alert_handler(notification)

    def _on_unread_count(self, data: Any) -> None:
        self._unread_count = max(0, UnreadCount.model_validate(data).count)

    def _on_notifications_list(self, data: Any) -> None:
        self._replace_notifications(_notification_list_adapter.validate_python(data))

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _replace_notifications(self, notifications: list[NotificationRead]) -> None:
        self._notifications = [self._keep_read(n) for n in notifications]

    def _keep_read(self, notification: NotificationRead) -> NotificationRead:
        if notification.is_read:
            self._read_ids.add(notification.id)
            return notification
        if notification.id in self._read_ids:
            return notification.as_read()
        return notification
