"""HTTP transport shared by the task center services."""

from __future__ import annotations

import dataclasses
import json
from datetime import date, datetime
from enum import Enum
from typing import Any

import httpx

from taskcenter.errors import TaskCenterError, ValidationError

_DEFAULT_TIMEOUT = 30.0


@dataclasses.dataclass
class Config:
    """Connection settings for the task center API."""

    base_url: str = ""
    api_key: str = ""
    business_id: int = 0
    timeout: float = _DEFAULT_TIMEOUT
    headers: dict[str, str] = dataclasses.field(default_factory=dict)

    def validate(self) -> None:
        """Raise ValidationError when the settings cannot be used."""
        if not self.base_url:
            raise ValidationError("base_url is required")
        if self.timeout is None or self.timeout <= 0:
            self.timeout = _DEFAULT_TIMEOUT


def _to_wire(value: Any) -> Any:
    """Turn request objects into plain JSON-compatible values."""
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict) and not isinstance(value, type):
        return _to_wire(to_dict())
    if isinstance(value, Enum):
        return _to_wire(value.value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {f.name: _to_wire(getattr(value, f.name)) for f in dataclasses.fields(value)}
    if isinstance(value, dict):
        return {str(key): _to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_to_wire(item) for item in value]
    return value


class Client:
    """Authenticated JSON client for the task center API."""

    def __init__(self, config: Config, transport: httpx.BaseTransport | None = None) -> None:
        if config is None:
            raise ValidationError("config is required")
        config.validate()
        self.config = config
        self._base_url = config.base_url.rstrip("/")
        self._http = httpx.Client(transport=transport, timeout=config.timeout)

    def _headers(self, has_body: bool) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if self.config.business_id:
            headers["X-Business-ID"] = str(self.config.business_id)
        headers.update(self.config.headers)
        return headers

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """Send a request and return the response whatever its status."""
        content: bytes | None = None
        if body is not None:
            try:
                content = json.dumps(_to_wire(body)).encode("utf-8")
            except (TypeError, ValueError) as exc:
                raise TaskCenterError(f"failed to encode request body: {exc}") from exc
        options: dict[str, Any] = {}
        if timeout is not None:
            options["timeout"] = timeout
        try:
            return self._http.request(
                method,
                self._base_url + path,
                content=content,
                headers=self._headers(content is not None),
                **options,
            )
        except httpx.TimeoutException as exc:
            raise TaskCenterError(f"request timed out: {exc}", code="TIMEOUT_ERROR") from exc
        except httpx.HTTPError as exc:
            raise TaskCenterError(f"request failed: {exc}", code="NETWORK_ERROR") from exc

    @property
    def closed(self) -> bool:
        """Whether the underlying connection pool has been closed."""
        return self._http.is_closed

    def close(self) -> None:
        """Release the underlying connections."""
        self._http.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()