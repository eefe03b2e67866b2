"""
Test configuration and shared fixtures.
The REST API is an in-memory FastAPI app reached through httpx's ASGI transport;
the realtime channel runs over fake WebSocket connections and a manual clock.
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi import APIRouter, FastAPI, Header, HTTPException, Query
from httpx import ASGITransport

from artnotify.services.event_dispatcher import EventDispatcher
from artnotify.services.notification_api import NotificationAPI
from artnotify.services.notification_store import NotificationStore
from artnotify.services.websocket_service import NotificationChannel

TEST_TOKEN = "tok"
API_BASE_URL = "http://test/api"
WS_BASE_URL = "ws://test"
RECONNECT_DELAY = 3.0

_CLOSED = object()


# ── Fake WebSocket transport ──────────────────────────────────────────────────

class FakeWebSocket:
    """Stands in for a websockets client connection."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.sent: list[dict[str, Any]] = []
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.closed = False
        self._incoming: asyncio.Queue[Any] = asyncio.Queue()

    @property
    def sent_types(self) -> list[str]:
        return [message["type"] for message in self.sent]

    def feed(self, message: dict[str, Any] | str) -> None:
        self._incoming.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def drop(self, code: int = 1006, reason: str = "") -> None:
        """Simulate the server side closing the connection."""
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._incoming.put_nowait(_CLOSED)

    async def send(self, raw: str) -> None:
        if self.closed:
            raise RuntimeError("connection is closed")
        self.sent.append(json.loads(raw))

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if not self.closed:
            self.drop(code, reason)

    def __aiter__(self) -> FakeWebSocket:
        return self

    async def __anext__(self) -> str:
        item = await self._incoming.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeConnector:
    """Records connection attempts; optionally fails or waits on a gate."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeWebSocket] = []
        self.fail_with: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        ws = FakeWebSocket(url)
        self.sockets.append(ws)
        return ws

    @property
    def latest(self) -> FakeWebSocket:
        return self.sockets[-1]


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Simulated clock standing in for loop.call_later."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def __call__(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds: float) -> None:
        self.now += seconds
        for timer in list(self.timers):
            if not timer.cancelled and not timer.fired and timer.when <= self.now:
                timer.fired = True
                timer.callback()


# ── Fake notifications REST API ───────────────────────────────────────────────

class FakeNotificationBackend:
    def __init__(self) -> None:
        self.token = TEST_TOKEN
        self.notifications: list[dict[str, Any]] = []
        self.calls: list[str] = []
        self.fail = False


def make_notification_payload(
    notification_id: int,
    *,
    is_read: bool = False,
    type: str = "rating",
    minutes_ago: int = 0,
) -> dict[str, Any]:
    created_at = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago)
    return {
        "id": notification_id,
        "type": type,
        "message": f"Notification {notification_id}",
        "sender": {"id": 7, "username": "monet", "full_name": "Claude Monet"},
        "painting_id": 100 + notification_id,
        "is_read": is_read,
        "created_at": created_at.isoformat(),
    }


def build_notifications_app(backend: FakeNotificationBackend) -> FastAPI:
    router = APIRouter(prefix="/api/notifications")

    def authorize(authorization: str | None) -> None:
        if authorization != f"Bearer {backend.token}":
            raise HTTPException(status_code=401, detail="Invalid token")
        if backend.fail:
            raise HTTPException(status_code=503, detail="Unavailable")

    @router.get("/")
    async def list_notifications(
        limit: int = Query(default=20),
        offset: int = Query(default=0),
        unread_only: bool = Query(default=False),
        authorization: str | None = Header(default=None),
    ) -> list[dict[str, Any]]:
        backend.calls.append("list")
        authorize(authorization)
        items = [n for n in backend.notifications if not (unread_only and n["is_read"])]
        return items[offset:offset + limit]

    @router.get("/unread-count")
    async def unread_count(authorization: str | None = Header(default=None)) -> dict[str, int]:
        backend.calls.append("unread_count")
        authorize(authorization)
        return {"count": sum(1 for n in backend.notifications if not n["is_read"])}

    @router.put("/mark-all-read")
    async def mark_all_read(authorization: str | None = Header(default=None)) -> dict[str, str]:
        backend.calls.append("mark_all_read")
        authorize(authorization)
        for n in backend.notifications:
            n["is_read"] = True
        return {"message": "All notifications marked as read"}

    @router.put("/{notification_id}/read")
    async def mark_read(
        notification_id: int, authorization: str | None = Header(default=None)
    ) -> dict[str, str]:
        backend.calls.append(f"mark_read:{notification_id}")
        authorize(authorization)
        for n in backend.notifications:
            if n["id"] == notification_id:
                n["is_read"] = True
                return {"message": "Notification marked as read"}
        raise HTTPException(status_code=404, detail="Notification not found")

    app = FastAPI()
    app.include_router(router)
    return app


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def make_notification() -> Callable[..., dict[str, Any]]:
    return make_notification_payload


@pytest.fixture
def drain() -> Callable[[], Any]:
    async def _drain() -> None:
        """Let scheduled tasks (receive loops, reconnects) run."""
        for _ in range(20):
            await asyncio.sleep(0)

    return _drain


@pytest.fixture
def dispatcher() -> EventDispatcher:
    return EventDispatcher()


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest_asyncio.fixture
async def channel(
    dispatcher: EventDispatcher, connector: FakeConnector, scheduler: ManualScheduler
) -> AsyncGenerator[NotificationChannel, None]:
    channel = NotificationChannel(
        dispatcher,
        base_url=WS_BASE_URL,
        reconnect_delay=RECONNECT_DELAY,
        connector=connector,
        scheduler=scheduler,
    )
    yield channel
    await channel.disconnect()


@pytest.fixture
def backend() -> FakeNotificationBackend:
    return FakeNotificationBackend()


@pytest.fixture
def api_factory(backend: FakeNotificationBackend) -> Callable[[str], NotificationAPI]:
    transport = ASGITransport(app=build_notifications_app(backend))

    def _factory(credential: str) -> NotificationAPI:
        return NotificationAPI(credential, base_url=API_BASE_URL, transport=transport)

    return _factory


@pytest_asyncio.fixture
async def api(
    api_factory: Callable[[str], NotificationAPI],
) -> AsyncGenerator[NotificationAPI, None]:
    async with api_factory(TEST_TOKEN) as client:
        yield client


@pytest.fixture
def alerts() -> list[Any]:
    return []


@pytest_asyncio.fixture
async def store(
    channel: NotificationChannel, api: NotificationAPI, alerts: list[Any]
) -> AsyncGenerator[NotificationStore, None]:
    store = NotificationStore(channel, api, alert_handler=alerts.append, alerts_enabled=True)
    store.attach()
    yield store
    await store.close()
