"""High-level task client built on the task center HTTP transport."""

from __future__ import annotations

from datetime import datetime
from http import HTTPStatus
from typing import Any
from urllib.parse import quote, urlencode

import httpx

from taskcenter.errors import (
    NotFoundError,
    ServerError,
    TaskCenterError,
    ValidationError,
    parse_http_error,
)
from taskcenter.task.models import CreateRequest, ListRequest, ListResponse, Task, UpdateRequest
from taskcenter.transport import Client, Config
from taskcenter.types import (
    ApiResponse,
    ListTasksRequest,
    TaskStatsResponse,
    TaskStatus,
)

_TASKS_PATH = "/api/v1/tasks"
_QUERY_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"
# Characters a path segment may carry unescaped besides letters, digits and "-_.~".
_PATH_SAFE = "$&+,;=:@"


def _list_params(request: ListTasksRequest) -> dict[str, str]:
    params: dict[str, str] = {}
    if request.status:
        params["status"] = ",".join(str(int(status)) for status in request.status)
    if request.tags:
        params["tags"] = ",".join(request.tags)
    if request.priority is not None:
        params["priority"] = str(int(request.priority))
    if request.created_from is not None:
        params["created_from"] = _format_query_time(request.created_from)
    if request.created_to is not None:
        params["created_to"] = _format_query_time(request.created_to)
    if request.page > 0:
        params["page"] = str(request.page)
    if request.page_size > 0:
        params["page_size"] = str(request.page_size)
    return params


def _format_query_time(moment: datetime) -> str:
    return moment.strftime(_QUERY_TIME_FORMAT)


def _encode(params: dict[str, str]) -> str:
    return urlencode(sorted(params.items()))


def build_list_query(request: ListTasksRequest) -> str:
    """Encode listing filters as a query string with keys in sorted order."""
    return _encode(_list_params(request))


def _ensure_success(response: httpx.Response) -> None:
    if not HTTPStatus.OK <= response.status_code < HTTPStatus.MULTIPLE_CHOICES:
        raise parse_http_error(response.status_code, response.content)


def _decode_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise TaskCenterError(f"failed to unmarshal response: {exc}") from exc


def _unwrap(response: httpx.Response) -> Any:
    """Check the status and the envelope, returning the envelope's data."""
    _ensure_success(response)
    body = _decode_json(response)
    if not isinstance(body, dict):
        raise TaskCenterError("failed to unmarshal response: expected a JSON object")
    envelope = ApiResponse.from_dict(body)
    if not envelope.success:
        raise ServerError(envelope.message or "request was not successful")
    return envelope.data


def _require_id(task_id: int) -> None:
    if task_id <= 0:
        raise ValidationError("task ID must be greater than 0")


def _require_business_id(business_unique_id: str) -> None:
    if not business_unique_id:
        raise ValidationError("business unique ID cannot be empty")


def _business_path(business_unique_id: str) -> str:
    return f"{_TASKS_PATH}/business/{quote(business_unique_id, safe=_PATH_SAFE)}"


class TaskClient:
    """Manage tasks: create, fetch, change, list, search and inspect them."""

    def __init__(self, client: Client) -> None:
        self.client = client

    @classmethod
    def from_config(
        cls, config: Config, transport: httpx.BaseTransport | None = None
    ) -> TaskClient:
        """Build a task client together with its own HTTP transport."""
        try:
            client = Client(config, transport)
        except ValidationError as exc:
            raise ValidationError(f"failed to create SDK client: {exc}") from exc
        return cls(client)

    def _task(self, method: str, path: str, body: Any = None, timeout: float | None = None) -> Task:
        response = self.client.request(method, path, body, timeout)
        data = _unwrap(response)
        if data is not None and not isinstance(data, dict):
            raise TaskCenterError("failed to unmarshal task: expected a JSON object")
        return Task.from_dict(data)

    def _list(self, path: str) -> ListResponse:
        response = self.client.request("GET", path)
        data = _unwrap(response)
        if data is not None and not isinstance(data, dict):
            raise TaskCenterError("failed to unmarshal task list: expected a JSON object")
        return ListResponse.from_dict(data)

    def create_task(self, request: CreateRequest | None, timeout: float | None = None) -> Task:
        """Validate and create one task."""
        if request is None:
            raise ValidationError("create request cannot be nil")
        request.validate()
        return self._task("POST", _TASKS_PATH, request, timeout)

    def get_task(self, task_id: int) -> Task:
        """Fetch a task by id."""
        _require_id(task_id)
        return self._task("GET", f"{_TASKS_PATH}/{task_id}")

    def get_task_by_business_id(self, business_unique_id: str) -> Task:
        """Fetch a task by the caller's unique business id."""
        _require_business_id(business_unique_id)
        return self._task("GET", _business_path(business_unique_id))

    def update_task(
        self, task_id: int, request: UpdateRequest | None, timeout: float | None = None
    ) -> Task:
        """Change the fields set on the request."""
        _require_id(task_id)
        if request is None:
            raise ValidationError("update request cannot be nil")
        return self._task("PUT", f"{_TASKS_PATH}/{task_id}", request, timeout)

    def delete_task(self, task_id: int) -> None:
        """Delete a task."""
        _require_id(task_id)
        response = self.client.request("DELETE", f"{_TASKS_PATH}/{task_id}")
        if response.status_code not in (HTTPStatus.OK, HTTPStatus.NO_CONTENT):
            raise parse_http_error(response.status_code, response.content)

    def cancel_task(self, task_id: int) -> Task:
        """Cancel a task and return its new state."""
        _require_id(task_id)
        return self._task("POST", f"{_TASKS_PATH}/{task_id}/cancel")

    def retry_task(self, task_id: int) -> Task:
        """Run a task again and return its new state."""
        _require_id(task_id)
        return self._task("POST", f"{_TASKS_PATH}/{task_id}/retry")

    def list_tasks(self, request: ListTasksRequest | None = None) -> ListResponse:
        """List tasks matching the filters; defaults to page 1 of 20."""
        if request is None:
            request = ListRequest()
        query = build_list_query(request)
        path = f"{_TASKS_PATH}?{query}" if query else _TASKS_PATH
        return self._list(path)

    def get_task_stats(self) -> TaskStatsResponse:
        """Fetch aggregate task counts."""
        response = self.client.request("GET", f"{_TASKS_PATH}/stats")
        data = _unwrap(response)
        if data is not None and not isinstance(data, dict):
            raise TaskCenterError("failed to unmarshal stats: expected a JSON object")
        return TaskStatsResponse.from_dict(data)

    def search_tasks(self, query: str, filters: ListTasksRequest | None = None) -> ListResponse:
        """Full-text search over tasks, narrowed by the listing filters."""
        if not query:
            raise ValidationError("search query cannot be empty")
        if filters is None:
            filters = ListRequest()
        params = _list_params(filters)
        params["q"] = query
        return self._list(f"{_TASKS_PATH}/search?{_encode(params)}")

    def get_task_history(self, task_id: int) -> list[Task]:
        """Fetch past executions of a task; the body is a bare JSON array."""
        _require_id(task_id)
        response = self.client.request("GET", f"{_TASKS_PATH}/{task_id}/history")
        _ensure_success(response)
        body = _decode_json(response)
        if body is None:
            return []
        if not isinstance(body, list):
            raise TaskCenterError("failed to unmarshal task list: expected a JSON array")
        return [Task.from_dict(item) for item in body]

    def get_tasks_by_status(
        self, status: TaskStatus, page: int = 1, page_size: int = 20
    ) -> ListResponse:
        return self.list_tasks(ListRequest().with_status(status).with_pagination(page, page_size))

    def get_tasks_by_tag(self, tag: str, page: int = 1, page_size: int = 20) -> ListResponse:
        return self.list_tasks(ListRequest().with_tags(tag).with_pagination(page, page_size))

    def get_pending_tasks(self, page: int = 1, page_size: int = 20) -> ListResponse:
        return self.get_tasks_by_status(TaskStatus.PENDING, page, page_size)

    def get_running_tasks(self, page: int = 1, page_size: int = 20) -> ListResponse:
        return self.get_tasks_by_status(TaskStatus.RUNNING, page, page_size)

    def get_completed_tasks(self, page: int = 1, page_size: int = 20) -> ListResponse:
        request = ListRequest().with_status(
            TaskStatus.SUCCEEDED, TaskStatus.FAILED, TaskStatus.CANCELLED, TaskStatus.EXPIRED
        )
        return self.list_tasks(request.with_pagination(page, page_size))

    def get_failed_tasks(self, page: int = 1, page_size: int = 20) -> ListResponse:
        return self.get_tasks_by_status(TaskStatus.FAILED, page, page_size)

    def _exists(self, path: str) -> bool:
        try:
            response = self.client.request("HEAD", path)
        except NotFoundError:
            return False
        if response.status_code == HTTPStatus.NOT_FOUND:
            return False
        return response.status_code == HTTPStatus.OK

    def check_task_exists(self, task_id: int) -> bool:
        """Tell whether a task with this id exists."""
        _require_id(task_id)
        return self._exists(f"{_TASKS_PATH}/{task_id}/exists")

    def check_task_exists_by_business_id(self, business_unique_id: str) -> bool:
        """Tell whether a task with this business id exists."""
        _require_business_id(business_unique_id)
        return self._exists(f"{_business_path(business_unique_id)}/exists")

    def close(self) -> None:
        """Release the underlying connections."""
        self.client.close()

    def __enter__(self) -> TaskClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()