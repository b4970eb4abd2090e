import json
from datetime import datetime, timezone

import httpx
import pytest

from taskcenter.errors import (
    HTTPError,
    NotFoundError,
    ServerError,
    TaskCenterError,
    ValidationError,
)
from taskcenter.tasks import TaskService
from taskcenter.transport import Client, Config
from taskcenter.types import (
    BatchCreateTasksRequest,
    CreateTaskRequest,
    ListTasksRequest,
    TaskPriority,
    TaskStatus,
    UpdateTaskRequest,
)


class Server:
    def __init__(self, status=200, payload=None, raw=None):
        self.requests = []
        self.status = status
        self.payload = payload
        self.raw = raw

    def __call__(self, request):
        self.requests.append(request)
        if self.raw is not None:
            return httpx.Response(self.status, content=self.raw)
        if self.payload is None:
            return httpx.Response(self.status)
        return httpx.Response(self.status, json=self.payload)


def service_for(server):
    client = Client(
        Config(base_url="http://localhost:8080", api_key="token", business_id=123),
        transport=httpx.MockTransport(server),
    )
    return TaskService(client)


def ok(data, status=200):
    return Server(status=status, payload={"success": True, "data": data})


def valid_request(uid="test-business-id"):
    return CreateTaskRequest(business_unique_id=uid, callback_url="https://example.com/callback")


def test_create_returns_task_and_sends_defaults():
    server = ok({"id": 1, "business_unique_id": "test-business-id", "status": 0}, status=201)
    task = service_for(server).create(valid_request())
    assert task.id == 1
    assert task.business_unique_id == "test-business-id"
    assert task.status == TaskStatus.PENDING
    sent = server.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == "/api/v1/tasks"
    body = json.loads(sent.content)
    assert body["callback_method"] == "POST"
    assert body["priority"] == int(TaskPriority.NORMAL)
    assert body["timeout"] == 300


def test_create_rejects_invalid_request_without_calling_server():
    server = ok({})
    with pytest.raises(ValidationError):
        service_for(server).create(CreateTaskRequest(callback_url="https://example.com/callback"))
    assert server.requests == []


def test_create_requires_created_status():
    server = Server(status=400, payload={"success": False, "message": "bad", "code": "VALIDATION_ERROR"})
    with pytest.raises(ValidationError) as info:
        service_for(server).create(valid_request())
    assert info.value.message == "bad"


def test_get_returns_task():
    server = ok({"id": 123, "status": 1})
    task = service_for(server).get(123)
    assert task.id == 123
    assert task.status == TaskStatus.RUNNING
    assert server.requests[0].url.path == "/api/v1/tasks/123"


def test_get_not_found():
    server = Server(status=404, payload={"success": False, "message": "Task not found"})
    with pytest.raises(NotFoundError) as info:
        service_for(server).get(404)
    assert info.value.resource == "task"


def test_get_server_error():
    server = Server(status=500, payload={"success": False, "message": "Internal server error", "code": "SERVER_ERROR"})
    with pytest.raises(ServerError):
        service_for(server).get(500)


def test_get_by_business_unique_id_escapes_value():
    server = ok({"id": 456, "business_unique_id": "a b/c"})
    task = service_for(server).get_by_business_unique_id("a b/c")
    assert task.id == 456
    assert server.requests[0].url.raw_path == b"/api/v1/tasks/by-business-id/a+b%2Fc"


def test_update_sends_only_set_fields():
    server = ok({"id": 789, "callback_url": "https://new-callback.com", "status": 4})
    req = UpdateTaskRequest(callback_url="https://new-callback.com", status=TaskStatus.CANCELLED)
    task = service_for(server).update(789, req)
    assert task.callback_url == "https://new-callback.com"
    assert task.status == TaskStatus.CANCELLED
    sent = server.requests[0]
    assert sent.method == "PUT"
    assert json.loads(sent.content) == req.to_dict()


def test_update_not_found():
    with pytest.raises(NotFoundError):
        service_for(Server(status=404)).update(1, UpdateTaskRequest(timeout=10))


@pytest.mark.parametrize("status", [200, 204])
def test_delete_accepts_ok_and_no_content(status):
    server = Server(status=status)
    assert service_for(server).delete(999) is None
    assert server.requests[0].method == "DELETE"
    assert server.requests[0].url.path == "/api/v1/tasks/999"


def test_delete_not_found_and_other_errors():
    with pytest.raises(NotFoundError):
        service_for(Server(status=404)).delete(1)
    with pytest.raises(HTTPError):
        service_for(Server(status=409, payload={"message": "conflict"})).delete(1)


def test_list_applies_default_paging():
    server = ok({"tasks": [{"id": 1}, {"id": 2}], "total": 2, "page": 1, "page_size": 20, "total_pages": 1})
    request = ListTasksRequest()
    result = service_for(server).list(request)
    assert [t.id for t in result.tasks] == [1, 2]
    assert result.total == 2
    assert (request.page, request.page_size) == (1, 20)
    params = server.requests[0].url.params
    assert params["page"] == "1"
    assert params["page_size"] == "20"


def test_list_without_request_uses_defaults():
    server = ok({"tasks": []})
    result = service_for(server).list()
    assert result.tasks == []
    assert server.requests[0].url.params["page_size"] == "20"


def test_list_encodes_filters_in_sorted_order():
    server = ok({"tasks": []})
    request = ListTasksRequest(
        status=[TaskStatus.PENDING, TaskStatus.RUNNING],
        tags=["a", "b"],
        priority=TaskPriority.HIGH,
        created_from=datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        page=2,
        page_size=50,
    )
    service_for(server).list(request)
    params = server.requests[0].url.params
    assert params["status"] == "0,1"
    assert params["tags"] == "a,b"
    assert params["priority"] == "3"
    assert params["created_from"] == "2024-01-02T03:04:05Z"
    assert params["page"] == "2"
    assert "created_to" not in params
    keys = list(params.keys())
    assert keys == sorted(keys)


def test_list_error_status():
    with pytest.raises(ServerError):
        service_for(Server(status=503, payload={"message": "down"})).list()


def test_stats_decodes_counts():
    server = ok({"total_tasks": 100, "status_counts": {"0": 10, "2": 80}, "priority_counts": {"3": 20}})
    stats = service_for(server).stats()
    assert stats.total_tasks == 100
    assert stats.status_counts[TaskStatus.PENDING] == 10
    assert stats.priority_counts[TaskPriority.HIGH] == 20
    assert server.requests[0].url.path == "/api/v1/tasks/stats"


def test_batch_create_requires_tasks():
    server = ok({})
    with pytest.raises(ValidationError):
        service_for(server).batch_create(BatchCreateTasksRequest())
    with pytest.raises(ValidationError):
        service_for(server).batch_create(None)
    assert server.requests == []


def test_batch_create_reports_invalid_index():
    request = BatchCreateTasksRequest(tasks=[valid_request("id1"), CreateTaskRequest(business_unique_id="id2")])
    with pytest.raises(ValidationError) as info:
        service_for(ok({})).batch_create(request)
    assert info.value.message == "validation failed for task at index 1"
    assert info.value.details == "callback_url is required"


@pytest.mark.parametrize("status", [200, 201])
def test_batch_create_success(status):
    server = ok(
        {
            "succeeded": [{"id": 1, "business_unique_id": "id1"}],
            "failed": [{"index": 1, "error": "validation failed", "code": "VALIDATION_ERROR"}],
        },
        status=status,
    )
    request = BatchCreateTasksRequest(tasks=[valid_request("id1"), valid_request("id2")])
    result = service_for(server).batch_create(request)
    assert [t.business_unique_id for t in result.succeeded] == ["id1"]
    assert result.failed[0].code == "VALIDATION_ERROR"
    body = json.loads(server.requests[0].content)
    assert [t["business_unique_id"] for t in body["tasks"]] == ["id1", "id2"]


@pytest.mark.parametrize("action", ["cancel", "retry"])
def test_cancel_and_retry_paths(action):
    server = ok({})
    service = service_for(server)
    assert getattr(service, action)(111) is None
    sent = server.requests[0]
    assert sent.method == "POST"
    assert sent.url.path == f"/api/v1/tasks/111/{action}"


@pytest.mark.parametrize("action", ["cancel", "retry"])
def test_cancel_and_retry_not_found(action):
    with pytest.raises(NotFoundError):
        getattr(service_for(Server(status=404)), action)(1)


def test_undecodable_body_raises():
    server = Server(status=200, raw=b"not json")
    with pytest.raises(TaskCenterError) as info:
        service_for(server).get(1)
    assert "failed to decode response" in str(info.value)