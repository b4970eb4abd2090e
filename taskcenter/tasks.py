"""Task service speaking the plain REST endpoints."""

from __future__ import annotations

from datetime import datetime
from http import HTTPStatus
from typing import Any
from urllib.parse import quote_plus, urlencode

import httpx

from taskcenter.errors import NotFoundError, TaskCenterError, ValidationError, parse_http_error
from taskcenter.transport import Client
from taskcenter.types import (
    ApiResponse,
    BatchCreateTasksRequest,
    BatchCreateTasksResponse,
    CreateTaskRequest,
    ListTasksRequest,
    ListTasksResponse,
    Task,
    TaskStatsResponse,
    UpdateTaskRequest,
)

_TASKS_PATH = "/api/v1/tasks"
_QUERY_TIME_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def _error(response: httpx.Response) -> TaskCenterError:
    return parse_http_error(response.status_code, response.content)


def _payload(response: httpx.Response) -> Any:
    try:
        body = response.json()
    except ValueError as exc:
        raise TaskCenterError(f"failed to decode response: {exc}") from exc
    if not isinstance(body, dict):
        raise TaskCenterError("failed to decode response: expected a JSON object")
    return ApiResponse.from_dict(body).data


class TaskService:
    """Create, read, change and list tasks."""

    def __init__(self, client: Client) -> None:
        self.client = client

    def create(self, request: CreateTaskRequest) -> Task:
        """Create a task; the request is validated and defaulted first."""
        request.validate()
        response = self.client.request("POST", _TASKS_PATH, request)
        if response.status_code != HTTPStatus.CREATED:
            raise _error(response)
        return Task.from_dict(_payload(response))

    def _fetch_task(self, method: str, path: str, body: Any = None) -> Task:
        response = self.client.request(method, path, body)
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError("task")
        if response.status_code != HTTPStatus.OK:
            raise _error(response)
        return Task.from_dict(_payload(response))

    def get(self, task_id: int) -> Task:
        """Fetch a task by its id."""
        return self._fetch_task("GET", f"{_TASKS_PATH}/{task_id}")

    def get_by_business_unique_id(self, business_unique_id: str) -> Task:
        """Fetch a task by the caller's unique business id."""
        escaped = quote_plus(business_unique_id)
        return self._fetch_task("GET", f"{_TASKS_PATH}/by-business-id/{escaped}")

    def update(self, task_id: int, request: UpdateTaskRequest) -> Task:
        """Change the fields set on the request."""
        return self._fetch_task("PUT", f"{_TASKS_PATH}/{task_id}", request)

    def delete(self, task_id: int) -> None:
        """Delete a task."""
        response = self.client.request("DELETE", f"{_TASKS_PATH}/{task_id}")
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError("task")
        if response.status_code not in (HTTPStatus.NO_CONTENT, HTTPStatus.OK):
            raise _error(response)

    def list(self, request: ListTasksRequest | None = None) -> ListTasksResponse:
        """List tasks matching the filters; paging defaults to page 1 of 20."""
        if request is None:
            request = ListTasksRequest()
        if request.page <= 0:
            request.page = 1
        if request.page_size <= 0:
            request.page_size = 20

        params: dict[str, str] = {
            "page": str(request.page),
            "page_size": str(request.page_size),
        }
        if request.status:
            params["status"] = ",".join(str(int(s)) for s in request.status)
        if request.tags:
            params["tags"] = ",".join(request.tags)
        if request.priority is not None:
            params["priority"] = str(int(request.priority))
        if request.created_from is not None:
            params["created_from"] = _format_query_time(request.created_from)
        if request.created_to is not None:
            params["created_to"] = _format_query_time(request.created_to)

        path = f"{_TASKS_PATH}?{urlencode(sorted(params.items()))}"
        response = self.client.request("GET", path)
        if response.status_code != HTTPStatus.OK:
            raise _error(response)
        return ListTasksResponse.from_dict(_payload(response))

    def stats(self) -> TaskStatsResponse:
        """Fetch aggregate task counts."""
        response = self.client.request("GET", f"{_TASKS_PATH}/stats")
        if response.status_code != HTTPStatus.OK:
            raise _error(response)
        return TaskStatsResponse.from_dict(_payload(response))

    def batch_create(self, request: BatchCreateTasksRequest | None) -> BatchCreateTasksResponse:
        """Create several tasks at once after validating each of them."""
        if request is None or not request.tasks:
            raise ValidationError("at least one task is required")
        for index, task in enumerate(request.tasks):
            try:
                task.validate()
            except ValidationError as exc:
                raise ValidationError(
                    f"validation failed for task at index {index}", details=str(exc)
                ) from exc

        response = self.client.request("POST", f"{_TASKS_PATH}/batch", request)
        if response.status_code not in (HTTPStatus.CREATED, HTTPStatus.OK):
            raise _error(response)
        return BatchCreateTasksResponse.from_dict(_payload(response))

    def _act(self, task_id: int, action: str) -> None:
        response = self.client.request("POST", f"{_TASKS_PATH}/{task_id}/{action}")
        if response.status_code == HTTPStatus.NOT_FOUND:
            raise NotFoundError("task")
        if response.status_code != HTTPStatus.OK:
            raise _error(response)

    def cancel(self, task_id: int) -> None:
        """Cancel a task."""
        self._act(task_id, "cancel")

    def retry(self, task_id: int) -> None:
        """Ask the server to run a task again."""
        self._act(task_id, "retry")


def _format_query_time(moment: datetime) -> str:
    return moment.strftime(_QUERY_TIME_FORMAT)