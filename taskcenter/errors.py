"""Exceptions raised by the task center client and HTTP error decoding."""

from __future__ import annotations

import json
from typing import Any


class TaskCenterError(Exception):
    """Base class for every error raised by the client."""

    default_code = "TASK_CENTER_ERROR"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status_code = status_code
        self.details = details

    def __str__(self) -> str:
        if self.details in (None, ""):
            return self.message
        return f"{self.message}: {self.details}"


class ValidationError(TaskCenterError):
    """A request was rejected before or by the server as invalid."""

    default_code = "VALIDATION_ERROR"


class NotFoundError(TaskCenterError):
    """The requested resource does not exist."""

    default_code = "NOT_FOUND_ERROR"

    def __init__(
        self,
        resource: str = "resource",
        *,
        message: str | None = None,
        code: str | None = None,
        status_code: int | None = 404,
        details: Any = None,
    ) -> None:
        self.resource = resource
        super().__init__(
            message or f"{resource} not found",
            code=code,
            status_code=status_code,
            details=details,
        )


class ServerError(TaskCenterError):
    """The server failed to handle the request."""

    default_code = "SERVER_ERROR"


class HTTPError(TaskCenterError):
    """Any other unsuccessful HTTP response."""

    default_code = "HTTP_ERROR"


def parse_http_error(status_code: int, body: bytes | str | None) -> TaskCenterError:
    """Build the exception matching an unsuccessful HTTP response."""
    if isinstance(body, (bytes, bytearray)):
        text = body.decode("utf-8", "replace")
    else:
        text = body or ""

    message: str | None = None
    code: str | None = None
    details: Any = None
    try:
        payload = json.loads(text) if text.strip() else None
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        message = payload.get("message") or None
        code = payload.get("code") or None
        details = payload.get("details")
    if not message:
        message = text.strip() or f"HTTP {status_code}"

    if status_code == 404:
        return NotFoundError(
            message=message, code=code, status_code=status_code, details=details
        )
    if status_code >= 500:
        error_type: type[TaskCenterError] = ServerError
    elif status_code in (400, 422):
        error_type = ValidationError
    else:
        error_type = HTTPError
    return error_type(message, code=code, status_code=status_code, details=details)


def is_not_found_error(error: BaseException | None) -> bool:
    """Tell whether an error means the resource was not found."""
    return isinstance(error, NotFoundError)


def is_server_error(error: BaseException | None) -> bool:
    """Tell whether an error came from a server-side failure."""
    return isinstance(error, ServerError)