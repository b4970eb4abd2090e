"""Task models with fluent request builders and status helpers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from datetime import datetime, timedelta
from typing import Any

from taskcenter.types import (
    BatchCreateTasksRequest,
    BatchTaskError,
    CreateTaskRequest,
    ListTasksRequest,
    ListTasksResponse,
    Task as _WireTask,
    TaskPriority,
    TaskStatus,
    UpdateTaskRequest,
)

_FINISHED = frozenset(
    {TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED, TaskStatus.EXPIRED}
)


def _now() -> datetime:
    return datetime.now().astimezone()


def _now_like(moment: datetime) -> datetime:
    """Current time, aware or naive to match the given moment."""
    return datetime.now(moment.tzinfo) if moment.tzinfo is not None else datetime.now()


class Task(_WireTask):
    """A server task with convenience queries on its state."""

    def to_json(self) -> str:
        """Encode the task as a JSON string."""
        return json.dumps(self.to_dict())

    def is_completed(self) -> bool:
        return self.status in _FINISHED

    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    def is_pending(self) -> bool:
        return self.status == TaskStatus.PENDING

    def is_succeeded(self) -> bool:
        return self.status == TaskStatus.SUCCEEDED

    def is_failed(self) -> bool:
        return self.status == TaskStatus.FAILED

    def is_cancelled(self) -> bool:
        return self.status == TaskStatus.CANCELLED

    def is_expired(self) -> bool:
        return self.status == TaskStatus.EXPIRED

    def duration(self) -> timedelta:
        """Time spent executing; runs up to now while not yet completed."""
        if self.executed_at is None:
            return timedelta(0)
        end = self.completed_at if self.completed_at is not None else _now_like(self.executed_at)
        return end - self.executed_at

    def wait_time(self) -> timedelta:
        """Time between creation and the start of execution (or now)."""
        if self.created_at is None:
            return timedelta(0)
        if self.executed_at is None:
            return _now_like(self.created_at) - self.created_at
        return self.executed_at - self.created_at

    def has_retry(self) -> bool:
        return self.current_retry > 0

    def can_retry(self) -> bool:
        return self.current_retry < self.max_retries and self.status == TaskStatus.FAILED


def from_json(text: str) -> Task:
    """Decode a task from a JSON string; raise ValueError on bad input."""
    data = json.loads(text)
    if data is not None and not isinstance(data, dict):
        raise ValueError("task JSON must be an object")
    return Task.from_dict(data)


class CreateRequest(CreateTaskRequest):
    """Task creation request with chainable setters."""

    def with_method(self, method: str) -> CreateRequest:
        self.callback_method = method
        return self

    def with_headers(self, headers: dict[str, str]) -> CreateRequest:
        self.callback_headers = headers
        return self

    def with_body(self, body: str) -> CreateRequest:
        self.callback_body = body
        return self

    def with_retry(self, max_retries: int, *intervals: int) -> CreateRequest:
        self.max_retries = max_retries
        if intervals:
            self.retry_intervals = list(intervals)
        return self

    def with_priority(self, priority: TaskPriority | int) -> CreateRequest:
        self.priority = priority
        return self

    def with_tags(self, *tags: str) -> CreateRequest:
        self.tags = list(tags)
        return self

    def with_timeout(self, timeout: int) -> CreateRequest:
        self.timeout = timeout
        return self

    def with_scheduled_at(self, when: datetime) -> CreateRequest:
        self.scheduled_at = when
        return self

    def with_metadata(self, metadata: dict[str, Any]) -> CreateRequest:
        self.metadata = metadata
        return self


def new_create_request(business_unique_id: str, callback_url: str) -> CreateRequest:
    """Creation request with the usual defaults filled in."""
    return CreateRequest(
        business_unique_id=business_unique_id,
        callback_url=callback_url,
        callback_method="POST",
        priority=TaskPriority.NORMAL,
        timeout=300,
        max_retries=3,
    )


class UpdateRequest(UpdateTaskRequest):
    """Task update request with chainable setters."""

    def with_callback_url(self, url: str) -> UpdateRequest:
        self.callback_url = url
        return self

    def with_callback_method(self, method: str) -> UpdateRequest:
        self.callback_method = method
        return self

    def with_callback_headers(self, headers: dict[str, str]) -> UpdateRequest:
        self.callback_headers = headers
        return self

    def with_callback_body(self, body: str) -> UpdateRequest:
        self.callback_body = body
        return self

    def with_retry(self, max_retries: int, *intervals: int) -> UpdateRequest:
        self.max_retries = max_retries
        if intervals:
            self.retry_intervals = list(intervals)
        return self

    def with_priority(self, priority: TaskPriority | int) -> UpdateRequest:
        self.priority = priority
        return self

    def with_tags(self, *tags: str) -> UpdateRequest:
        self.tags = list(tags)
        return self

    def with_timeout(self, timeout: int) -> UpdateRequest:
        self.timeout = timeout
        return self

    def with_scheduled_at(self, when: datetime) -> UpdateRequest:
        self.scheduled_at = when
        return self

    def with_status(self, status: TaskStatus) -> UpdateRequest:
        self.status = status
        return self

    def with_metadata(self, metadata: dict[str, Any]) -> UpdateRequest:
        self.metadata = metadata
        return self


@dataclass
class ListRequest(ListTasksRequest):
    """Listing filters with chainable setters; paging starts at page 1 of 20."""

    page: int = 1
    page_size: int = 20

    def with_status(self, *statuses: TaskStatus) -> ListRequest:
        self.status = list(statuses)
        return self

    def with_tags(self, *tags: str) -> ListRequest:
        self.tags = list(tags)
        return self

    def with_priority(self, priority: TaskPriority | int) -> ListRequest:
        self.priority = priority
        return self

    def with_time_range(self, start: datetime, end: datetime) -> ListRequest:
        self.created_from = start
        self.created_to = end
        return self

    def with_created_from(self, start: datetime) -> ListRequest:
        self.created_from = start
        return self

    def with_created_to(self, end: datetime) -> ListRequest:
        self.created_to = end
        return self

    def with_pagination(self, page: int, page_size: int) -> ListRequest:
        self.page = page
        self.page_size = page_size
        return self


class ListResponse(ListTasksResponse):
    """One page of tasks, decoded as rich task objects."""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ListResponse:
        data = data or {}
        return cls(
            tasks=[Task.from_dict(item) for item in data.get("tasks") or []],
            total=int(data.get("total") or 0),
            page=int(data.get("page") or 0),
            page_size=int(data.get("page_size") or 0),
            total_pages=int(data.get("total_pages") or 0),
        )


@dataclass
class BatchCreateRequest:
    """Collects creation requests to send in one batch."""

    requests: list[CreateRequest] = field(default_factory=list)

    def add_task(self, request: CreateRequest) -> BatchCreateRequest:
        self.requests.append(request)
        return self

    def add_tasks(self, *requests: CreateRequest) -> BatchCreateRequest:
        self.requests.extend(requests)
        return self

    def to_sdk(self) -> BatchCreateTasksRequest:
        """Plain wire request holding a copy of each creation request."""
        names = [f.name for f in fields(CreateTaskRequest)]
        return BatchCreateTasksRequest(
            tasks=[
                CreateTaskRequest(**{name: getattr(req, name) for name in names})
                for req in self.requests
            ]
        )


@dataclass
class BatchCreateResponse:
    """Outcome of a batch creation, with rich task objects."""

    succeeded: list[Task] = field(default_factory=list)
    failed: list[BatchTaskError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BatchCreateResponse:
        data = data or {}
        return cls(
            succeeded=[Task.from_dict(item) for item in data.get("succeeded") or []],
            failed=[BatchTaskError.from_dict(item) for item in data.get("failed") or []],
        )


class TaskBuilder:
    """Fluent builder for a creation request."""

    def __init__(self, business_unique_id: str, callback_url: str) -> None:
        self._request = new_create_request(business_unique_id, callback_url)

    def method(self, method: str) -> TaskBuilder:
        self._request.with_method(method)
        return self

    def headers(self, headers: dict[str, str]) -> TaskBuilder:
        self._request.with_headers(headers)
        return self

    def body(self, body: str) -> TaskBuilder:
        self._request.with_body(body)
        return self

    def retry(self, max_retries: int, *intervals: int) -> TaskBuilder:
        self._request.with_retry(max_retries, *intervals)
        return self

    def priority(self, priority: TaskPriority | int) -> TaskBuilder:
        self._request.with_priority(priority)
        return self

    def tags(self, *tags: str) -> TaskBuilder:
        self._request.with_tags(*tags)
        return self

    def timeout(self, timeout: int) -> TaskBuilder:
        self._request.with_timeout(timeout)
        return self

    def scheduled_at(self, when: datetime) -> TaskBuilder:
        self._request.with_scheduled_at(when)
        return self

    def scheduled_after(self, delay: timedelta) -> TaskBuilder:
        self._request.with_scheduled_at(_now() + delay)
        return self

    def metadata(self, metadata: dict[str, Any]) -> TaskBuilder:
        self._request.with_metadata(metadata)
        return self

    def metadata_value(self, key: str, value: Any) -> TaskBuilder:
        if self._request.metadata is None:
            self._request.metadata = {}
        self._request.metadata[key] = value
        return self

    def build(self) -> CreateRequest:
        return self._request


class FilterBuilder:
    """Fluent builder for a listing request."""

    def __init__(self) -> None:
        self._request = ListRequest()

    def status(self, *statuses: TaskStatus) -> FilterBuilder:
        self._request.with_status(*statuses)
        return self

    def tags(self, *tags: str) -> FilterBuilder:
        self._request.with_tags(*tags)
        return self

    def priority(self, priority: TaskPriority | int) -> FilterBuilder:
        self._request.with_priority(priority)
        return self

    def time_range(self, start: datetime, end: datetime) -> FilterBuilder:
        self._request.with_time_range(start, end)
        return self

    def created_today(self) -> FilterBuilder:
        """Restrict to tasks created since local midnight, up to the next one."""
        today = _now().replace(hour=0, minute=0, second=0, microsecond=0)
        self._request.with_time_range(today, today + timedelta(hours=24))
        return self

    def created_last_week(self) -> FilterBuilder:
        """Restrict to tasks created in the last seven days."""
        self._request.with_created_from(_now() - timedelta(days=7))
        return self

    def pagination(self, page: int, page_size: int) -> FilterBuilder:
        self._request.with_pagination(page, page_size)
        return self

    def build(self) -> ListRequest:
        return self._request