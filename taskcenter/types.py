"""Wire types exchanged with the task center API."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum
from typing import Any

from taskcenter.errors import ValidationError

_ZERO_TIME = "0001-01-01T00:00:00Z"
_FRACTION = re.compile(r"\.(\d+)")


class TaskStatus(IntEnum):
    """Lifecycle state of a task."""

    PENDING = 0
    RUNNING = 1
    SUCCEEDED = 2
    FAILED = 3
    CANCELLED = 4
    EXPIRED = 5

    @classmethod
    def _missing_(cls, value: object) -> TaskStatus | None:
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = "UNKNOWN"
        member._value_ = value
        return member

    def __str__(self) -> str:
        return self.name.lower()

    def __format__(self, spec: str) -> str:
        return format(str(self), spec)


class TaskPriority(IntEnum):
    """Execution priority; lower numbers run first."""

    HIGHEST = 1
    HIGH = 3
    NORMAL = 5
    LOW = 7
    LOWEST = 9


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.astimezone()


def _format_time(moment: datetime | None, *, fractional: bool = False) -> str:
    if moment is None:
        return _ZERO_TIME
    moment = _aware(moment)
    if not fractional:
        moment = moment.replace(microsecond=0)
    text = moment.isoformat()
    if moment.microsecond:
        text = _FRACTION.sub(lambda m: "." + m.group(1).rstrip("0"), text, count=1)
    if moment.utcoffset() == timedelta(0):
        text = text[:-6] + "Z"
    return text


def _parse_time(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text[-1:] in ("Z", "z"):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + (m.group(1) + "000000")[:6], text, count=1)
    moment = datetime.fromisoformat(text)
    if moment.replace(tzinfo=None) == datetime(1, 1, 1):
        return None
    return moment


def _status(value: Any) -> TaskStatus:
    return TaskStatus(int(value or 0))


def _priority(value: Any) -> TaskPriority | int:
    number = int(value or 0)
    try:
        return TaskPriority(number)
    except ValueError:
        return number


def _put(target: dict[str, Any], key: str, value: Any) -> None:
    """Store a value unless it is empty, mirroring omit-if-empty encoding."""
    if value:
        target[key] = value


@dataclass
class Task:
    """A task as stored by the server."""

    id: int = 0
    business_unique_id: str = ""
    callback_url: str = ""
    callback_method: str = ""
    callback_headers: dict[str, str] = field(default_factory=dict)
    callback_body: str = ""
    retry_intervals: list[int] = field(default_factory=list)
    max_retries: int = 0
    current_retry: int = 0
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority | int = 0
    tags: list[str] = field(default_factory=list)
    timeout: int = 0
    scheduled_at: datetime | None = None
    next_execute_at: datetime | None = None
    executed_at: datetime | None = None
    completed_at: datetime | None = None
    error_message: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        """Encode for the wire, with times in RFC 3339 at second precision."""
        out: dict[str, Any] = {}
        _put(out, "id", self.id)
        out["business_unique_id"] = self.business_unique_id
        out["callback_url"] = self.callback_url
        _put(out, "callback_method", self.callback_method)
        _put(out, "callback_headers", dict(self.callback_headers))
        _put(out, "callback_body", self.callback_body)
        _put(out, "retry_intervals", list(self.retry_intervals))
        _put(out, "max_retries", self.max_retries)
        _put(out, "current_retry", self.current_retry)
        _put(out, "status", int(self.status))
        _put(out, "priority", int(self.priority))
        _put(out, "tags", list(self.tags))
        _put(out, "timeout", self.timeout)
        _put(out, "error_message", self.error_message)
        _put(out, "metadata", dict(self.metadata))
        out["scheduled_at"] = _format_time(self.scheduled_at)
        for key in ("next_execute_at", "executed_at", "completed_at"):
            moment = getattr(self, key)
            if moment is not None:
                out[key] = _format_time(moment)
        out["created_at"] = _format_time(self.created_at)
        out["updated_at"] = _format_time(self.updated_at)
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Task:
        """Decode a task from its wire form."""
        data = data or {}
        return cls(
            id=int(data.get("id") or 0),
            business_unique_id=data.get("business_unique_id") or "",
            callback_url=data.get("callback_url") or "",
            callback_method=data.get("callback_method") or "",
            callback_headers=dict(data.get("callback_headers") or {}),
            callback_body=data.get("callback_body") or "",
            retry_intervals=[int(v) for v in data.get("retry_intervals") or []],
            max_retries=int(data.get("max_retries") or 0),
            current_retry=int(data.get("current_retry") or 0),
            status=_status(data.get("status")),
            priority=_priority(data.get("priority")),
            tags=list(data.get("tags") or []),
            timeout=int(data.get("timeout") or 0),
            scheduled_at=_parse_time(data.get("scheduled_at")),
            next_execute_at=_parse_time(data.get("next_execute_at")),
            executed_at=_parse_time(data.get("executed_at")),
            completed_at=_parse_time(data.get("completed_at")),
            error_message=data.get("error_message") or "",
            metadata=dict(data.get("metadata") or {}),
            created_at=_parse_time(data.get("created_at")),
            updated_at=_parse_time(data.get("updated_at")),
        )


@dataclass
class CreateTaskRequest:
    """Body of a task creation request."""

    business_unique_id: str = ""
    callback_url: str = ""
    callback_method: str = ""
    callback_headers: dict[str, str] = field(default_factory=dict)
    callback_body: str = ""
    retry_intervals: list[int] = field(default_factory=list)
    max_retries: int = 0
    priority: TaskPriority | int = 0
    tags: list[str] = field(default_factory=list)
    timeout: int = 0
    scheduled_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def validate(self) -> None:
        """Check required fields and fill in defaults; raise ValidationError."""
        if not self.business_unique_id:
            raise ValidationError("business_unique_id is required")
        if not self.callback_url:
            raise ValidationError("callback_url is required")
        if not self.callback_method:
            self.callback_method = "POST"
        if not self.priority:
            self.priority = TaskPriority.NORMAL
        if self.timeout <= 0:
            self.timeout = 300
        if self.max_retries < 0:
            self.max_retries = 3

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "business_unique_id": self.business_unique_id,
            "callback_url": self.callback_url,
        }
        _put(out, "callback_method", self.callback_method)
        _put(out, "callback_headers", dict(self.callback_headers))
        _put(out, "callback_body", self.callback_body)
        _put(out, "retry_intervals", list(self.retry_intervals))
        _put(out, "max_retries", self.max_retries)
        _put(out, "priority", int(self.priority))
        _put(out, "tags", list(self.tags))
        _put(out, "timeout", self.timeout)
        if self.scheduled_at is not None:
            out["scheduled_at"] = _format_time(self.scheduled_at, fractional=True)
        _put(out, "metadata", dict(self.metadata))
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CreateTaskRequest:
        data = data or {}
        return cls(
            business_unique_id=data.get("business_unique_id") or "",
            callback_url=data.get("callback_url") or "",
            callback_method=data.get("callback_method") or "",
            callback_headers=dict(data.get("callback_headers") or {}),
            callback_body=data.get("callback_body") or "",
            retry_intervals=[int(v) for v in data.get("retry_intervals") or []],
            max_retries=int(data.get("max_retries") or 0),
            priority=_priority(data.get("priority")),
            tags=list(data.get("tags") or []),
            timeout=int(data.get("timeout") or 0),
            scheduled_at=_parse_time(data.get("scheduled_at")),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class UpdateTaskRequest:
    """Body of a task update; only fields that are set are sent."""

    callback_url: str | None = None
    callback_method: str | None = None
    callback_headers: dict[str, str] | None = None
    callback_body: str | None = None
    retry_intervals: list[int] | None = None
    max_retries: int | None = None
    priority: TaskPriority | int | None = None
    tags: list[str] | None = None
    timeout: int | None = None
    scheduled_at: datetime | None = None
    status: TaskStatus | None = None
    metadata: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for key in ("callback_url", "callback_method", "callback_body", "max_retries", "timeout"):
            value = getattr(self, key)
            if value is not None:
                out[key] = value
        if self.callback_headers:
            out["callback_headers"] = dict(self.callback_headers)
        if self.retry_intervals:
            out["retry_intervals"] = list(self.retry_intervals)
        if self.priority is not None:
            out["priority"] = int(self.priority)
        if self.tags:
            out["tags"] = list(self.tags)
        if self.scheduled_at is not None:
            out["scheduled_at"] = _format_time(self.scheduled_at, fractional=True)
        if self.status is not None:
            out["status"] = int(self.status)
        if self.metadata:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass
class ListTasksRequest:
    """Filters and paging for a task listing."""

    status: list[TaskStatus] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    priority: TaskPriority | int | None = None
    created_from: datetime | None = None
    created_to: datetime | None = None
    page: int = 0
    page_size: int = 0


@dataclass
class ListTasksResponse:
    """One page of tasks."""

    tasks: list[Task] = field(default_factory=list)
    total: int = 0
    page: int = 0
    page_size: int = 0
    total_pages: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ListTasksResponse:
        data = data or {}
        return cls(
            tasks=[Task.from_dict(item) for item in data.get("tasks") or []],
            total=int(data.get("total") or 0),
            page=int(data.get("page") or 0),
            page_size=int(data.get("page_size") or 0),
            total_pages=int(data.get("total_pages") or 0),
        )


@dataclass
class TaskStatsResponse:
    """Aggregate task counts."""

    total_tasks: int = 0
    status_counts: dict[TaskStatus, int] = field(default_factory=dict)
    priority_counts: dict[TaskPriority | int, int] = field(default_factory=dict)
    tag_counts: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> TaskStatsResponse:
        data = data or {}
        return cls(
            total_tasks=int(data.get("total_tasks") or 0),
            status_counts={
                _status(key): int(count)
                for key, count in (data.get("status_counts") or {}).items()
            },
            priority_counts={
                _priority(key): int(count)
                for key, count in (data.get("priority_counts") or {}).items()
            },
            tag_counts={
                str(key): int(count) for key, count in (data.get("tag_counts") or {}).items()
            },
        )


@dataclass
class ApiResponse:
    """Envelope wrapping every API answer."""

    success: bool = False
    data: Any = None
    message: str = ""
    code: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ApiResponse:
        data = data or {}
        return cls(
            success=bool(data.get("success", False)),
            data=data.get("data"),
            message=data.get("message") or "",
            code=data.get("code") or "",
        )


@dataclass
class ErrorResponse:
    """Body the server sends with an error status."""

    success: bool = False
    message: str = ""
    code: str = ""
    details: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ErrorResponse:
        data = data or {}
        return cls(
            success=bool(data.get("success", False)),
            message=data.get("message") or "",
            code=data.get("code") or "",
            details=data.get("details"),
        )


@dataclass
class CallbackEvent:
    """Event delivered to a task's callback URL."""

    event_type: str = ""
    event_time: datetime | None = None
    task_id: int = 0
    business_id: int = 0
    task: Task = field(default_factory=Task)
    signature: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> CallbackEvent:
        data = data or {}
        return cls(
            event_type=data.get("event_type") or "",
            event_time=_parse_time(data.get("event_time")),
            task_id=int(data.get("task_id") or 0),
            business_id=int(data.get("business_id") or 0),
            task=Task.from_dict(data.get("task")),
            signature=data.get("signature") or "",
        )


@dataclass
class BatchCreateTasksRequest:
    """Several creation requests sent at once."""

    tasks: list[CreateTaskRequest] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"tasks": [task.to_dict() for task in self.tasks]}


@dataclass
class BatchTaskError:
    """Failure of one entry of a batch operation."""

    index: int = 0
    error: str = ""
    code: str = ""
    request: CreateTaskRequest = field(default_factory=CreateTaskRequest)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BatchTaskError:
        data = data or {}
        return cls(
            index=int(data.get("index") or 0),
            error=data.get("error") or "",
            code=data.get("code") or "",
            request=CreateTaskRequest.from_dict(data.get("request")),
        )


@dataclass
class BatchCreateTasksResponse:
    """Outcome of a batch creation."""

    succeeded: list[Task] = field(default_factory=list)
    failed: list[BatchTaskError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BatchCreateTasksResponse:
        data = data or {}
        return cls(
            succeeded=[Task.from_dict(item) for item in data.get("succeeded") or []],
            failed=[BatchTaskError.from_dict(item) for item in data.get("failed") or []],
        )