import re
from datetime import datetime, timedelta, timezone

import pytest

from taskcenter.errors import ValidationError
from taskcenter.types import (
    ApiResponse,
    BatchCreateTasksRequest,
    BatchCreateTasksResponse,
    BatchTaskError,
    CallbackEvent,
    CreateTaskRequest,
    ListTasksResponse,
    Task,
    TaskPriority,
    TaskStatsResponse,
    TaskStatus,
    UpdateTaskRequest,
)

RFC3339 = re.compile(r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\d(Z|[+-]\d\d:\d\d)$")


@pytest.mark.parametrize(
    "status, expected",
    [
        (TaskStatus.PENDING, "pending"),
        (TaskStatus.RUNNING, "running"),
        (TaskStatus.SUCCEEDED, "succeeded"),
        (TaskStatus.FAILED, "failed"),
        (TaskStatus.CANCELLED, "cancelled"),
        (TaskStatus.EXPIRED, "expired"),
        (TaskStatus(999), "unknown"),
    ],
)
def test_task_status_string(status, expected):
    assert str(status) == expected
    assert f"{status}" == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (1, TaskPriority.HIGHEST),
        (3, TaskPriority.HIGH),
        (5, TaskPriority.NORMAL),
        (7, TaskPriority.LOW),
        (9, TaskPriority.LOWEST),
    ],
)
def test_priority_values_round_trip_through_task(value, expected):
    task = Task.from_dict({"priority": value})
    assert task.priority is expected
    assert task.to_dict()["priority"] == value


def test_validate_valid_request_applies_defaults():
    req = CreateTaskRequest(business_unique_id="test-123", callback_url="https://example.com/webhook")
    req.validate()
    assert req.callback_method == "POST"
    assert req.priority == TaskPriority.NORMAL
    assert req.timeout == 300


def test_validate_missing_business_unique_id():
    req = CreateTaskRequest(business_unique_id="", callback_url="https://example.com/webhook")
    with pytest.raises(ValidationError):
        req.validate()


def test_validate_missing_callback_url():
    req = CreateTaskRequest(business_unique_id="test-123", callback_url="")
    with pytest.raises(ValidationError):
        req.validate()


def test_validate_negative_retries_default_to_three():
    req = CreateTaskRequest(
        business_unique_id="test-123", callback_url="https://example.com/webhook", max_retries=-1
    )
    req.validate()
    assert req.max_retries == 3


def test_validate_keeps_explicit_values():
    req = CreateTaskRequest(
        business_unique_id="test-123",
        callback_url="https://example.com/webhook",
        callback_method="PUT",
        priority=TaskPriority.HIGH,
        timeout=60,
        max_retries=5,
    )
    req.validate()
    assert (req.callback_method, req.priority, req.timeout, req.max_retries) == (
        "PUT",
        TaskPriority.HIGH,
        60,
        5,
    )


def test_task_to_dict_uses_rfc3339_times():
    now = datetime.now().astimezone()
    later = now + timedelta(hours=1)
    task = Task(
        id=123,
        business_unique_id="test-task",
        callback_url="https://example.com/webhook",
        status=TaskStatus.PENDING,
        priority=TaskPriority.HIGH,
        tags=["test", "example"],
        scheduled_at=now,
        next_execute_at=later,
        created_at=now,
        updated_at=now,
    )
    data = task.to_dict()
    assert RFC3339.match(data["scheduled_at"])
    assert RFC3339.match(data["next_execute_at"])
    assert data["id"] == 123
    assert data["business_unique_id"] == "test-task"
    assert "executed_at" not in data


def test_task_utc_time_is_formatted_with_z():
    moment = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    data = Task(scheduled_at=moment).to_dict()
    assert data["scheduled_at"] == "2024-05-01T12:30:45Z"


def test_unset_times_encode_as_zero_time():
    data = Task().to_dict()
    assert data["created_at"] == "0001-01-01T00:00:00Z"
    assert Task.from_dict(data).created_at is None


def test_task_round_trip():
    moment = datetime(2024, 5, 1, 12, 30, 45, tzinfo=timezone.utc)
    task = Task(
        id=7,
        business_unique_id="biz",
        callback_url="https://example.com/cb",
        callback_headers={"Authorization": "Bearer token"},
        retry_intervals=[10, 30],
        status=TaskStatus.RUNNING,
        priority=TaskPriority.LOW,
        tags=["a"],
        metadata={"key": "value"},
        scheduled_at=moment,
        completed_at=moment,
        created_at=moment,
        updated_at=moment,
    )
    assert Task.from_dict(task.to_dict()) == task


def test_task_from_dict_parses_nanoseconds():
    task = Task.from_dict({"id": 1, "created_at": "2024-05-01T12:30:45.123456789Z", "status": 3})
    assert task.created_at == datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
    assert task.status is TaskStatus.FAILED


def test_task_from_dict_unknown_status():
    task = Task.from_dict({"status": 42})
    assert str(task.status) == "unknown"
    assert int(task.status) == 42


def test_create_request_to_dict_omits_empty():
    req = CreateTaskRequest(business_unique_id="id", callback_url="https://example.com")
    assert req.to_dict() == {"business_unique_id": "id", "callback_url": "https://example.com"}


def test_create_request_round_trip():
    moment = datetime(2024, 5, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
    req = CreateTaskRequest(
        business_unique_id="id",
        callback_url="https://example.com",
        priority=TaskPriority.HIGH,
        tags=["x"],
        scheduled_at=moment,
    )
    data = req.to_dict()
    assert data["scheduled_at"] == "2024-05-01T12:00:00.5Z"
    assert CreateTaskRequest.from_dict(data) == req


def test_update_request_sends_only_set_fields():
    req = UpdateTaskRequest(
        callback_url="https://new-callback.com", max_retries=0, status=TaskStatus.CANCELLED
    )
    assert req.to_dict() == {
        "callback_url": "https://new-callback.com",
        "max_retries": 0,
        "status": 4,
    }


def test_list_response_from_dict():
    resp = ListTasksResponse.from_dict(
        {
            "tasks": [{"id": 1, "business_unique_id": "task1"}, {"id": 2, "status": 1}],
            "total": 2,
            "page": 1,
            "page_size": 20,
            "total_pages": 1,
        }
    )
    assert [t.id for t in resp.tasks] == [1, 2]
    assert resp.tasks[1].status is TaskStatus.RUNNING
    assert resp.total == 2


def test_stats_from_dict_converts_keys():
    stats = TaskStatsResponse.from_dict(
        {
            "total_tasks": 100,
            "status_counts": {"0": 10, "1": 5, "2": 80, "3": 5},
            "priority_counts": {"3": 20, "5": 70, "7": 10},
        }
    )
    assert stats.total_tasks == 100
    assert stats.status_counts[TaskStatus.PENDING] == 10
    assert stats.priority_counts[TaskPriority.HIGH] == 20
    assert stats.tag_counts == {}


def test_api_response_from_dict():
    resp = ApiResponse.from_dict({"success": True, "data": {"id": 1}})
    assert resp.success is True
    assert resp.data == {"id": 1}
    assert resp.message == ""


def test_batch_request_to_dict():
    batch = BatchCreateTasksRequest(
        tasks=[
            CreateTaskRequest(business_unique_id="id1", callback_url="https://example.com/1"),
            CreateTaskRequest(business_unique_id="id2", callback_url="https://example.com/2"),
        ]
    )
    data = batch.to_dict()
    assert [t["business_unique_id"] for t in data["tasks"]] == ["id1", "id2"]


def test_batch_response_from_dict():
    resp = BatchCreateTasksResponse.from_dict(
        {
            "succeeded": [{"id": 1, "business_unique_id": "task1"}, {"id": 2}],
            "failed": [{"index": 2, "error": "validation failed", "code": "VALIDATION_ERROR"}],
        }
    )
    assert [t.id for t in resp.succeeded] == [1, 2]
    assert resp.failed == [
        BatchTaskError(index=2, error="validation failed", code="VALIDATION_ERROR")
    ]


def test_callback_event_from_dict():
    event = CallbackEvent.from_dict(
        {
            "event_type": "task.completed",
            "event_time": "2024-05-01T00:00:00Z",
            "task_id": 9,
            "business_id": 1,
            "task": {"id": 9, "status": 2},
            "signature": "signed",
        }
    )
    assert event.event_type == "task.completed"
    assert event.event_time == datetime(2024, 5, 1, tzinfo=timezone.utc)
    assert event.task.id == 9
    assert event.task.status is TaskStatus.SUCCEEDED