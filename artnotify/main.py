"""
ArtNotify watcher entrypoint.
Logs in with the configured principal and logs notifications as they arrive.
"""
from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from artnotify.core.config import settings
from artnotify.schemas.notification import NotificationRead
from artnotify.services.notification_center import NotificationCenter, create_notification_center

logger = logging.getLogger(__name__)


def log_alert(notification: NotificationRead) -> None:
    logger.info(
        "[%s] %s (from %s)",
        notification.type,
        notification.message,
        notification.sender.username,
    )


# ── Lifespan ──────────────────────────────────────────────────────────────────
@asynccontextmanager
async def lifespan() -> AsyncGenerator[NotificationCenter, None]:
    """
    Watcher lifespan handler.
    Logs in before yield and closes the session after.
    """
    if not settings.PRINCIPAL_ID or not settings.ACCESS_TOKEN:
        raise RuntimeError("PRINCIPAL_ID and ACCESS_TOKEN must be set to watch notifications")

    logger.info("Starting %s v%s", settings.APP_NAME, settings.APP_VERSION)
    center = create_notification_center(alert_handler=log_alert)
    await center.login(settings.PRINCIPAL_ID, settings.ACCESS_TOKEN)
    try:
        yield center
    finally:
        logger.info("Shutting down %s", settings.APP_NAME)
        await center.logout()


async def watch() -> None:
    async with lifespan() as center:
        store = center.store
        if store is not None:
            await store.refresh_notifications()
            logger.info("%d unread notifications", store.unread_count)
        # Runs until cancelled (Ctrl+C)
        await asyncio.Event().wait()


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        asyncio.run(watch())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
