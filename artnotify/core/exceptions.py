"""
Custom exceptions for ArtNotify.
All client-level errors are defined here for consistency.
"""
from __future__ import annotations


# ── Custom exception classes ──────────────────────────────────────────────────

class ArtNotifyException(Exception):
    """Base exception for all ArtNotify errors."""

    def __init__(self, detail: str, error_code: str | None = None) -> None:
        self.detail = detail
        self.error_code = error_code or "ARTNOTIFY_ERROR"
        super().__init__(detail)


class MalformedFrameError(ArtNotifyException):
    """An inbound frame could not be decoded into a message envelope."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail=detail, error_code="MALFORMED_FRAME")


class NotificationAPIError(ArtNotifyException):
    """The notifications REST API failed or answered with a non-2xx status."""

    def __init__(
        self,
        detail: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        if error_code is None:
            error_code = "API_UNAVAILABLE" if status_code is None else _error_code_for(status_code)
        super().__init__(detail=detail, error_code=error_code)


class UnauthorizedException(NotificationAPIError):
    def __init__(self, detail: str = "Authentication required") -> None:
        super().__init__(detail=detail, status_code=401, error_code="UNAUTHORIZED")


class NotFoundException(NotificationAPIError):
    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        detail = f"{resource} not found"
        if resource_id:
            detail = f"{resource} with id '{resource_id}' not found"
        super().__init__(detail=detail, status_code=404, error_code="NOT_FOUND")


def _error_code_for(status_code: int) -> str:
    if status_code == 401:
        return "UNAUTHORIZED"
    if status_code == 403:
        return "FORBIDDEN"
    if status_code == 404:
        return "NOT_FOUND"
    if status_code >= 500:
        return "INTERNAL_SERVER_ERROR"
    return "BAD_REQUEST"
