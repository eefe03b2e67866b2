"""
Session owner for realtime notifications.
Holds the one channel and recreates the store on every login.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from artnotify.services.event_dispatcher import EventDispatcher
from artnotify.services.notification_api import NotificationAPI
from artnotify.services.notification_store import AlertHandler, NotificationStore
from artnotify.services.websocket_service import NotificationChannel

logger = logging.getLogger(__name__)


class NotificationCenter:
    """
    One channel per process, one store per authenticated session.

    ``api_factory`` builds the REST client for a credential; tests pass one
    that routes to an in-process app.
    """

    def __init__(
        self,
        channel: NotificationChannel | None = None,
        *,
        api_factory: Callable[[str], NotificationAPI] | None = None,
        alert_handler: AlertHandler | None = None,
        alerts_enabled: bool | None = None,
    ) -> None:
        self._channel = channel or NotificationChannel(EventDispatcher())
        self._api_factory = api_factory or NotificationAPI
        self._alert_handler = alert_handler
        self._alerts_enabled = alerts_enabled
        self._store: NotificationStore | None = None
        self._api: NotificationAPI | None = None

    @property
    def channel(self) -> NotificationChannel:
        return self._channel

    @property
    def store(self) -> NotificationStore | None:
        return self._store

    async def login(self, principal_id: str | int, credential: str) -> NotificationStore:
        """Replace any current session with a fresh store for this principal."""
        await self.logout()
        self._api = self._api_factory(credential)
        self._store = NotificationStore(
            self._channel,
            self._api,
            alert_handler=self._alert_handler,
            alerts_enabled=self._alerts_enabled,
        )
        await self._store.start(principal_id, credential)
        return self._store

    async def logout(self) -> None:
        store, api = self._store, self._api
        self._store = None
        self._api = None
        if store is not None:
            logger.info("Closing notification session")
            await store.close()
        else:
            await self._channel.disconnect()
        if api is not None:
            await api.aclose()

    async def __aenter__(self) -> NotificationCenter:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.logout()


def create_notification_center(
    alert_handler: AlertHandler | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> NotificationCenter:
    """Build a center whose channel and REST client use the configured endpoints."""
    return NotificationCenter(
        NotificationChannel(EventDispatcher()),
        api_factory=lambda credential: NotificationAPI(credential, transport=transport),
        alert_handler=alert_handler,
    )
