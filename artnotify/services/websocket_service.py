"""
Realtime notification channel.
Owns the single WebSocket connection for one principal, reconnects after
abnormal closes and hands decoded frames to the event dispatcher.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any
from urllib.parse import quote, urlencode

import websockets
from pydantic import BaseModel
from websockets.exceptions import ConnectionClosed, InvalidURI

from artnotify.core.config import settings
from artnotify.core.exceptions import MalformedFrameError
from artnotify.schemas.notification import NotificationId
from artnotify.schemas.websocket import (
    ChannelEvent,
    DisconnectInfo,
    GetNotificationsMessage,
    MarkAllReadMessage,
    MarkReadMessage,
    UnknownMessage,
    decode_frame,
    encode_message,
)
from artnotify.services.event_dispatcher import EventDispatcher

logger = logging.getLogger(__name__)

ABNORMAL_CLOSURE_CODE = 1006
MANUAL_DISCONNECT_REASON = "Manual disconnect"

Connector = Callable[[str], Awaitable[Any]]
Scheduler = Callable[[float, Callable[[], None]], Any]


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class NotificationChannel:
    """
    Bidirectional event channel for one authenticated principal.

    The channel never looks inside notification payloads: it decodes the
    envelope, emits ``message.type`` with ``message.data`` and tracks its own
    connection state. ``connector`` opens a connection for a URL (defaults to
    ``websockets.connect``); ``scheduler`` arms the reconnect timer and must
    return a handle with ``cancel()`` (defaults to ``loop.call_later``).
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        *,
        base_url: str | None = None,
        reconnect_delay: float | None = None,
        normal_closure_code: int | None = None,
        connector: Connector | None = None,
        scheduler: Scheduler | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._base_url = (base_url or settings.WS_BASE_URL).rstrip("/")
        self._reconnect_delay = (
            settings.RECONNECT_DELAY_SECONDS if reconnect_delay is None else reconnect_delay
        )
        self._normal_closure_code = (
            settings.NORMAL_CLOSURE_CODE if normal_closure_code is None else normal_closure_code
        )
        self._connector: Connector = connector or websockets.connect
        self._scheduler = scheduler

        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._receiver: asyncio.Task[None] | None = None
        self._principal_id: str | int | None = None
        self._credential: str | None = None
        self._reconnect_handle: Any = None
        self._reconnect_task: asyncio.Task[None] | None = None
        # Bumped by disconnect() so in-flight connect attempts know they are stale
        self._generation = 0

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def principal_id(self) -> str | int | None:
        return self._principal_id

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_handle is not None

    def build_url(self, principal_id: str | int, credential: str) -> str:
        return (
            f"{self._base_url}/ws/{quote(str(principal_id), safe='')}"
            f"?{urlencode({'token': credential})}"
        )

    # ── Lifecycle ─────────────────────────────────────────────────────────────

    async def connect(self, principal_id: str | int, credential: str) -> None:
        """
        Open the connection for ``principal_id``.

        No-op while a connection is open or an attempt is in flight, whatever
        identity either of them was started for.
        """
        if self._state is not ConnectionState.DISCONNECTED:
            logger.info("WebSocket already connected or connecting")
            return

        self._principal_id = principal_id
        self._credential = credential
        self._state = ConnectionState.CONNECTING
        generation = self._generation

        try:
            ws = await self._connector(self.build_url(principal_id, credential))
        except (InvalidURI, ValueError) as exc:
            logger.error("Invalid WebSocket target: %s", exc)
            if generation == self._generation:
                self._state = ConnectionState.DISCONNECTED
                self._dispatcher.emit(ChannelEvent.ERROR, exc)
            return
        except Exception as exc:
            logger.error("Error creating WebSocket connection: %s", exc)
            if generation == self._generation:
                self._state = ConnectionState.DISCONNECTED
                self._dispatcher.emit(ChannelEvent.ERROR, exc)
                # An unreachable server closes abnormally, so the retry policy applies
                self._dispatcher.emit(
                    ChannelEvent.DISCONNECT, DisconnectInfo(code=ABNORMAL_CLOSURE_CODE, reason=str(exc))
                )
                if self._principal_id is not None and self._credential:
                    self._schedule_reconnect()
            return

        if generation != self._generation:
            # disconnect() ran while the handshake was in flight
            logger.info("Discarding WebSocket opened after manual disconnect")
            await self._close_quietly(ws)
            return

        self._ws = ws
        self._state = ConnectionState.CONNECTED
        self._cancel_reconnect()
        logger.info("WebSocket connected: principal_id=%s", principal_id)
        self._dispatcher.emit(ChannelEvent.CONNECT, None)

        self._receiver = asyncio.get_running_loop().create_task(self._receive_loop(ws))
        # Pull on connect so events sent while we were away are not lost
        await self.request_notifications()

    async def disconnect(self) -> None:
        """Close with the normal-closure code and forget the identity."""
        self._cancel_reconnect()
        self._principal_id = None
        self._credential = None
        self._generation += 1

        ws, receiver = self._ws, self._receiver
        self._ws = None
        self._receiver = None
        self._state = ConnectionState.DISCONNECTED
        if ws is None:
            return

        try:
            await ws.close(code=self._normal_closure_code, reason=MANUAL_DISCONNECT_REASON)
        except Exception as exc:
            logger.warning("Error closing WebSocket: %s", exc)
        if receiver is not None and not receiver.done():
            receiver.cancel()
            await asyncio.gather(receiver, return_exceptions=True)

        logger.info("WebSocket disconnected: code=%s reason=%s", self._normal_closure_code, MANUAL_DISCONNECT_REASON)
        self._dispatcher.emit(
            ChannelEvent.DISCONNECT,
            DisconnectInfo(code=self._normal_closure_code, reason=MANUAL_DISCONNECT_REASON),
        )

    # ── Outbound ──────────────────────────────────────────────────────────────

    async def send(self, message: BaseModel | dict[str, Any]) -> None:
        """Best-effort send: dropped with a warning when not connected."""
        ws = self._ws
        if ws is None or self._state is not ConnectionState.CONNECTED:
            logger.warning("WebSocket not connected, cannot send message: %s", message)
            return
        try:
            await ws.send(encode_message(message))
        except Exception as exc:
            logger.warning("WebSocket send failed, message dropped: %s (%s)", message, exc)

    async def request_notifications(self) -> None:
        await self.send(GetNotificationsMessage())

    async def mark_notification_read(self, notification_id: NotificationId) -> None:
        await self.send(MarkReadMessage(notification_id=notification_id))

    async def mark_all_notifications_read(self) -> None:
        await self.send(MarkAllReadMessage())

    # ── Inbound ───────────────────────────────────────────────────────────────

    async def _receive_loop(self, ws: Any) -> None:
        try:
            async for raw in ws:
                self._handle_frame(raw)
        except ConnectionClosed:
            pass
        except Exception as exc:
            logger.error("WebSocket error: %s", exc)
            if ws is self._ws:
                self._dispatcher.emit(ChannelEvent.ERROR, exc)

        code = getattr(ws, "close_code", None) or ABNORMAL_CLOSURE_CODE
        reason = getattr(ws, "close_reason", None) or ""
        self._handle_close(ws, code, reason)

    def _handle_frame(self, raw: str | bytes) -> None:
        try:
            message = decode_frame(raw)
        except MalformedFrameError as exc:
            logger.error("Error parsing WebSocket message: %s", exc.detail)
            return

        if isinstance(message, UnknownMessage):
            logger.debug("Unrecognised WebSocket message type %r", message.type)
        else:
            logger.debug("WebSocket message received: type=%s", message.type)
        self._dispatcher.emit(message.type, message.data)

    def _handle_close(self, ws: Any, code: int, reason: str) -> None:
        if ws is not self._ws:
            return
        self._ws = None
        self._receiver = None
        self._state = ConnectionState.DISCONNECTED
        logger.info("WebSocket disconnected: code=%s reason=%s", code, reason)
        self._dispatcher.emit(ChannelEvent.DISCONNECT, DisconnectInfo(code=code, reason=reason))

        if code != self._normal_closure_code and self._principal_id is not None and self._credential:
            self._schedule_reconnect()

    # ── Reconnection ──────────────────────────────────────────────────────────

    def _schedule_reconnect(self) -> None:
        self._cancel_reconnect()
        schedule = self._scheduler or asyncio.get_running_loop().call_later
        self._reconnect_handle = schedule(self._reconnect_delay, self._on_reconnect_timer)
        logger.info("Reconnecting WebSocket in %.1fs", self._reconnect_delay)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._principal_id is None or not self._credential:
            return
        logger.info("Attempting to reconnect WebSocket...")
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self.connect(self._principal_id, self._credential)
        )

    @staticmethod
    async def _close_quietly(ws: Any) -> None:
        try:
            await ws.close()
        except Exception as exc:
            logger.debug("Error closing stale WebSocket: %s", exc)
