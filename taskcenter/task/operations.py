"""Batch, concurrent, watching, scheduling and query operations on tasks."""

from __future__ import annotations

import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from http import HTTPStatus
from typing import Any

import httpx

from taskcenter.errors import (
    NotFoundError,
    ServerError,
    TaskCenterError,
    ValidationError,
    parse_http_error,
)
from taskcenter.task.client import TaskClient
from taskcenter.task.models import (
    BatchCreateRequest,
    BatchCreateResponse,
    CreateRequest,
    FilterBuilder,
    ListResponse,
    Task,
    UpdateRequest,
)
from taskcenter.types import ApiResponse, BatchTaskError, TaskPriority, TaskStatus

_BATCH_PATH = "/api/v1/tasks/batch"
_DEFAULT_WORKERS = 10
_DEFAULT_TIMEOUT = 30.0
_DEFAULT_WATCH_INTERVAL = 5.0
_WATCH_BUFFER = 10
_PAGE_SIZE_ALL = 100


def _seconds(value: float | timedelta | None, default: float) -> float:
    if isinstance(value, timedelta):
        value = value.total_seconds()
    if value is None or value <= 0:
        return default
    return float(value)


def _ensure_success(response: httpx.Response) -> None:
    if not HTTPStatus.OK <= response.status_code < HTTPStatus.MULTIPLE_CHOICES:
        raise parse_http_error(response.status_code, response.content)


def _json_object(response: httpx.Response, what: str) -> dict[str, Any]:
    _ensure_success(response)
    try:
        body = response.json()
    except ValueError as exc:
        raise TaskCenterError(f"failed to unmarshal {what}: {exc}") from exc
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise TaskCenterError(f"failed to unmarshal {what}: expected a JSON object")
    return body


@dataclass
class BatchUpdateItem:
    """One task update inside a batch update."""

    task_id: int
    request: UpdateRequest | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "request": self.request.to_dict() if self.request is not None else None,
        }


@dataclass
class _TaskBatchResponse:
    succeeded: list[Task] = field(default_factory=list)
    failed: list[BatchTaskError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Any:
        data = data or {}
        return cls(
            succeeded=[Task.from_dict(item) for item in data.get("succeeded") or []],
            failed=[BatchTaskError.from_dict(item) for item in data.get("failed") or []],
        )


@dataclass
class BatchUpdateResponse(_TaskBatchResponse):
    """Outcome of a batch update."""


@dataclass
class BatchCancelResponse(_TaskBatchResponse):
    """Outcome of a batch cancellation."""


@dataclass
class BatchRetryResponse(_TaskBatchResponse):
    """Outcome of a batch retry."""


@dataclass
class BatchDeleteResponse:
    """Outcome of a batch deletion: ids removed and the failures."""

    succeeded: list[int] = field(default_factory=list)
    failed: list[BatchTaskError] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BatchDeleteResponse:
        data = data or {}
        return cls(
            succeeded=[int(item) for item in data.get("succeeded") or []],
            failed=[BatchTaskError.from_dict(item) for item in data.get("failed") or []],
        )


class Operations:
    """Operations acting on many tasks in one request."""

    def __init__(self, client: TaskClient) -> None:
        self.client = client

    def _send(self, method: str, path: str, body: Any) -> httpx.Response:
        return self.client.client.request(method, path, body)

    def batch_create(self, request: BatchCreateRequest | None) -> BatchCreateResponse:
        """Validate every request and create them all at once."""
        if request is None:
            raise ValidationError("batch create request cannot be nil")
        if not request.requests:
            raise ValidationError("batch create request must contain at least one task")
        for index, task_request in enumerate(request.requests):
            try:
                task_request.validate()
            except ValidationError as exc:
                raise ValidationError(f"task {index} validation failed: {exc}") from exc

        response = self._send("POST", _BATCH_PATH, request.to_sdk())
        body = _json_object(response, "response")
        envelope = ApiResponse.from_dict(body)
        if not envelope.success:
            raise ServerError(envelope.message or "request was not successful")
        data = envelope.data
        if data is not None and not isinstance(data, dict):
            raise TaskCenterError("failed to unmarshal batch create response: expected a JSON object")
        return BatchCreateResponse.from_dict(data)

    def batch_update(self, updates: list[BatchUpdateItem]) -> BatchUpdateResponse:
        """Apply several updates in one request."""
        if not updates:
            raise ValidationError("batch update must contain at least one item")
        body = {"updates": [item.to_dict() for item in updates]}
        response = self._send("PUT", _BATCH_PATH, body)
        return BatchUpdateResponse.from_dict(_json_object(response, "batch update response"))

    @staticmethod
    def _ids_body(task_ids: list[int]) -> dict[str, Any]:
        if not task_ids:
            raise ValidationError("task IDs cannot be empty")
        return {"task_ids": list(task_ids)}

    def batch_cancel(self, task_ids: list[int]) -> BatchCancelResponse:
        """Cancel several tasks."""
        body = self._ids_body(task_ids)
        response = self._send("POST", f"{_BATCH_PATH}/cancel", body)
        return BatchCancelResponse.from_dict(_json_object(response, "batch cancel response"))

    def batch_retry(self, task_ids: list[int]) -> BatchRetryResponse:
        """Retry several tasks."""
        body = self._ids_body(task_ids)
        response = self._send("POST", f"{_BATCH_PATH}/retry", body)
        return BatchRetryResponse.from_dict(_json_object(response, "batch retry response"))

    def batch_delete(self, task_ids: list[int]) -> BatchDeleteResponse:
        """Delete several tasks."""
        body = self._ids_body(task_ids)
        response = self._send("DELETE", _BATCH_PATH, body)
        return BatchDeleteResponse.from_dict(_json_object(response, "batch delete response"))


@dataclass
class ConcurrentCreateResult:
    """Result of one creation in a concurrent run."""

    index: int
    task: Task | None = None
    error: TaskCenterError | None = None


@dataclass
class ConcurrentUpdateResult:
    """Result of one update in a concurrent run."""

    task_id: int
    task: Task | None = None
    error: TaskCenterError | None = None


class ConcurrentOperations:
    """Run single-task requests in parallel on a pool of worker threads."""

    def __init__(
        self,
        client: TaskClient,
        max_workers: int = _DEFAULT_WORKERS,
        timeout: float | timedelta | None = _DEFAULT_TIMEOUT,
    ) -> None:
        self.client = client
        self.max_workers = max_workers if max_workers and max_workers > 0 else _DEFAULT_WORKERS
        self.timeout = _seconds(timeout, _DEFAULT_TIMEOUT)

    def _pool(self, jobs: int) -> ThreadPoolExecutor:
        return ThreadPoolExecutor(max_workers=min(self.max_workers, jobs))

    def concurrent_create(self, requests: list[CreateRequest]) -> list[ConcurrentCreateResult]:
        """Create every task; results keep the order of the requests."""
        if not requests:
            return []

        def create(index: int) -> ConcurrentCreateResult:
            try:
                task = self.client.create_task(requests[index], timeout=self.timeout)
            except TaskCenterError as exc:
                return ConcurrentCreateResult(index=index, error=exc)
            return ConcurrentCreateResult(index=index, task=task)

        with self._pool(len(requests)) as pool:
            return list(pool.map(create, range(len(requests))))

    def concurrent_update(
        self, updates: dict[int, UpdateRequest]
    ) -> list[ConcurrentUpdateResult]:
        """Apply every update; one result per task id."""
        if not updates:
            return []

        def update(item: tuple[int, UpdateRequest]) -> ConcurrentUpdateResult:
            task_id, request = item
            try:
                task = self.client.update_task(task_id, request, timeout=self.timeout)
            except TaskCenterError as exc:
                return ConcurrentUpdateResult(task_id=task_id, error=exc)
            return ConcurrentUpdateResult(task_id=task_id, task=task)

        with self._pool(len(updates)) as pool:
            return list(pool.map(update, list(updates.items())))


class TaskWatcher:
    """Poll watched tasks and deliver their state to per-task queues.

    Each queue receives task snapshots and, once watching ends, a final None.
    Updates are dropped while a queue already holds ten of them.
    """

    def __init__(self, client: TaskClient, interval: float | timedelta | None = None) -> None:
        self.client = client
        self.interval = _seconds(interval, _DEFAULT_WATCH_INTERVAL)
        self._stopped = threading.Event()
        self._lock = threading.Lock()
        self._watchers: dict[int, queue.Queue[Task | None]] = {}

    def watch_task(self, task_id: int) -> queue.Queue[Task | None]:
        """Start watching a task and return the queue its updates go to."""
        updates: queue.Queue[Task | None] = queue.Queue(maxsize=_WATCH_BUFFER + 1)
        with self._lock:
            self._watchers[task_id] = updates
        return updates

    def stop_watching(self, task_id: int) -> None:
        """Stop watching a task and close its queue."""
        with self._lock:
            updates = self._watchers.pop(task_id, None)
            if updates is not None:
                updates.put_nowait(None)

    def start(self) -> None:
        """Poll at the configured interval until stop() is called."""
        while not self._stopped.wait(self.interval):
            self._check_tasks()

    def stop(self) -> None:
        """Stop polling and close every queue."""
        self._stopped.set()
        with self._lock:
            for updates in self._watchers.values():
                updates.put_nowait(None)
            self._watchers = {}

    def _check_tasks(self) -> None:
        with self._lock:
            task_ids = list(self._watchers)
        for task_id in task_ids:
            try:
                task = self.client.get_task(task_id)
            except TaskCenterError:
                continue
            with self._lock:
                updates = self._watchers.get(task_id)
                if updates is not None and updates.qsize() < _WATCH_BUFFER:
                    updates.put_nowait(task)


class TaskScheduler:
    """Create tasks that run at a later time."""

    def __init__(self, client: TaskClient) -> None:
        self.client = client

    def schedule_task(self, request: CreateRequest, scheduled_at: datetime) -> Task:
        """Create a task to run at the given moment."""
        request.with_scheduled_at(scheduled_at)
        return self.client.create_task(request)

    def schedule_task_after(self, request: CreateRequest, delay: timedelta) -> Task:
        """Create a task to run once the delay has passed."""
        return self.schedule_task(request, datetime.now().astimezone() + delay)

    def schedule_cron_task(self, request: CreateRequest, cron_expr: str) -> Task:
        """Create a recurring task; the server reads the cron expression from metadata."""
        if request.metadata is None:
            request.metadata = {}
        request.metadata["cron_expression"] = cron_expr
        request.metadata["task_type"] = "cron"
        return self.client.create_task(request)


class TaskQuery:
    """Fluent query over the task listing."""

    def __init__(self, client: TaskClient) -> None:
        self.client = client
        self._filter = FilterBuilder()

    def status(self, *statuses: TaskStatus) -> TaskQuery:
        self._filter.status(*statuses)
        return self

    def tags(self, *tags: str) -> TaskQuery:
        self._filter.tags(*tags)
        return self

    def priority(self, priority: TaskPriority | int) -> TaskQuery:
        self._filter.priority(priority)
        return self

    def time_range(self, start: datetime, end: datetime) -> TaskQuery:
        self._filter.time_range(start, end)
        return self

    def pagination(self, page: int, page_size: int) -> TaskQuery:
        self._filter.pagination(page, page_size)
        return self

    def execute(self) -> ListResponse:
        """Run the query as configured."""
        return self.client.list_tasks(self._filter.build())

    def count(self) -> int:
        """Total number of matching tasks."""
        request = self._filter.build().with_pagination(1, 1)
        return self.client.list_tasks(request).total

    def first(self) -> Task:
        """First matching task; raise NotFoundError when there is none."""
        request = self._filter.build().with_pagination(1, 1)
        response = self.client.list_tasks(request)
        if not response.tasks:
            raise NotFoundError("task")
        return response.tasks[0]

    def all(self) -> list[Task]:
        """Every matching task, fetched page by page."""
        tasks: list[Task] = []
        page = 1
        while True:
            request = self._filter.build().with_pagination(page, _PAGE_SIZE_ALL)
            response = self.client.list_tasks(request)
            tasks.extend(response.tasks)
            if len(response.tasks) < _PAGE_SIZE_ALL:
                return tasks
            page += 1