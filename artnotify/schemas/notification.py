"""
Notification Pydantic schemas.
"""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

NotificationId = int | str


class NotificationSender(BaseModel):
    id: int | str
    username: str
    full_name: str | None = None
    profile_picture: str | None = None


class NotificationRead(BaseModel):
    id: NotificationId
    type: str
    message: str
    sender: NotificationSender
    painting_id: int | None = None
    comment_id: int | None = None
    rating_id: int | None = None
    is_read: bool = False
    created_at: datetime

    model_config = {"extra": "ignore"}

    def as_read(self) -> NotificationRead:
        if self.is_read:
            return self
        return self.model_copy(update={"is_read": True})


class UnreadCount(BaseModel):
    count: int = Field(ge=0)


class NotificationsState(BaseModel):
    """Immutable view of the store handed to presentation code."""

    notifications: tuple[NotificationRead, ...] = ()
    unread_count: int = 0
    is_connected: bool = False

    model_config = {"frozen": True}
