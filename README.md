# taskcenter

A client library for a task center service. A task is a callback the
service makes on your behalf: an HTTP request to a URL of your choice,
sent at a scheduled time, with retries, a timeout, a priority and tags.
This package lets you create such tasks, look them up, update, cancel,
retry or delete them, list and search them, read statistics, and work
on many tasks at once.

## Layout

| Module | What it holds |
| --- | --- |
| `taskcenter.types` | The wire types: `Task`, `TaskStatus`, `TaskPriority`, `CreateTaskRequest`, `UpdateTaskRequest`, `ListTasksRequest`, `ListTasksResponse`, `TaskStatsResponse`, `ApiResponse`, `ErrorResponse`, the batch types and `CallbackEvent`. |
| `taskcenter.errors` | `TaskCenterError` and its subclasses `ValidationError`, `NotFoundError`, `ServerError` and `HTTPError`, plus `parse_http_error`, `is_not_found_error` and `is_server_error`. |
| `taskcenter.transport` | `Config` and the low-level HTTP `Client`. |
| `taskcenter.tasks` | `TaskService`, a thin service over the task endpoints. |
| `taskcenter.task.models` | Richer models and fluent builders: `Task`, `CreateRequest`, `UpdateRequest`, `ListRequest`, `ListResponse`, `TaskBuilder`, `FilterBuilder`, `BatchCreateRequest`, `BatchCreateResponse`, and the functions `new_create_request` and `from_json`. |
| `taskcenter.task.client` | `TaskClient`, the main entry point for task management, and `build_list_query`. |
| `taskcenter.task.operations` | `Operations` for batch calls, `ConcurrentOperations`, `TaskWatcher`, `TaskScheduler` and `TaskQuery`. |

## Connecting

```python
from taskcenter.transport import Config
from taskcenter.task.client import TaskClient

config = Config(
    base_url="http://localhost:8080",
    api_key="placeholder",
    business_id=1,
    timeout=30.0,
)

with TaskClient.from_config(config) as client:
    ...
```

Each request carries the key as a bearer token and the business id in an
`X-Business-ID` header; extra headers can be given in `Config.headers`.
A config without `base_url` is rejected with `ValidationError`, and a
timeout that is not positive falls back to 30 seconds.

`TaskClient.from_config` and `transport.Client` both accept an optional
httpx transport as their second argument, which makes it easy to point
the client at an `httpx.MockTransport` in tests.

## Creating a task

```python
from taskcenter.task.models import TaskBuilder
from taskcenter.types import TaskPriority

request = (
    TaskBuilder("order-1001", "https://example.com/callback")
    .method("POST")
    .headers({"Authorization": "Bearer token"})
    .body('{"order": 1001}')
    .retry(5, 10, 30, 60)
    .priority(TaskPriority.HIGH)
    .tags("orders", "urgent")
    .timeout(600)
    .metadata_value("environment", "test")
    .build()
)

task = client.create_task(request)
print(task.id, task.status)
```

`new_create_request(business_unique_id, callback_url)` gives a request
with the defaults already filled in: method `POST`, normal priority, a
300 second timeout and three retries. A request without a business
unique id or a callback URL is rejected with `ValidationError` before
anything is sent.

## Reading and changing tasks

```python
from taskcenter.errors import NotFoundError
from taskcenter.task.models import UpdateRequest

try:
    task = client.get_task(42)
except NotFoundError:
    task = None

client.update_task(42, UpdateRequest().with_callback_url("https://example.com/new"))
client.cancel_task(42)
client.retry_task(42)
client.delete_task(42)

if client.check_task_exists(42):
    ...
```

Task ids must be greater than zero, or `ValidationError` is raised.
Tasks can also be fetched with `get_task_by_business_id`, and past runs
with `get_task_history`.

Task objects answer questions about themselves: `is_completed()`,
`is_running()`, `is_pending()`, `is_succeeded()`, `is_failed()`,
`is_cancelled()`, `is_expired()`, `has_retry()` and `can_retry()`, and
report how long they ran with `duration()` and how long they waited with
`wait_time()`, both as `timedelta`. `to_json()` and `from_json()` turn a
task into a JSON string and back.

## Listing and searching

```python
from taskcenter.task.models import FilterBuilder
from taskcenter.types import TaskStatus

filters = (
    FilterBuilder()
    .status(TaskStatus.PENDING, TaskStatus.RUNNING)
    .tags("orders")
    .created_today()
    .pagination(1, 50)
    .build()
)

page = client.list_tasks(filters)
for task in page.tasks:
    print(task.business_unique_id, task.status)

found = client.search_tasks("order", None)
stats = client.get_task_stats()
```

Shortcuts cover the common filters: `get_tasks_by_status`,
`get_tasks_by_tag`, `get_pending_tasks`, `get_running_tasks`,
`get_completed_tasks` and `get_failed_tasks`.

`TaskQuery` wraps the same filters and adds `execute()`, `count()`,
`first()` and `all()`; `first()` raises `NotFoundError` when nothing
matches, and `all()` walks every page, 100 tasks at a time.

## Many tasks at once

```python
from taskcenter.task.operations import ConcurrentOperations, Operations

ops = Operations(client)
ops.batch_cancel([1, 2, 3])
ops.batch_delete([4, 5])

concurrent = ConcurrentOperations(client, 4, 10.0)
for result in concurrent.concurrent_create(requests):
    print(result.index, result.task, result.error)
```

`Operations` also offers `batch_create`, `batch_update` and
`batch_retry`; an empty batch raises `ValidationError`.
`ConcurrentOperations` runs the requests on a thread pool (ten workers
and a 30 second timeout per request by default) and reports each error
in its result instead of raising it; `concurrent_update` does the same
for a mapping of task ids to update requests.

`TaskScheduler` creates tasks for a given time (`schedule_task`), after a
delay (`schedule_task_after`), or with a cron expression stored in their
metadata (`schedule_cron_task`).

`TaskWatcher` polls the tasks you ask it to watch. `watch_task(task_id)`
returns a `queue.Queue` that receives a fresh copy of the task on every
poll; `start()` polls in the calling thread until `stop()` is called, so
run it in a thread of its own. When watching ends, through
`stop_watching` or `stop`, the queue receives `None`.

## The plain service

`taskcenter.tasks.TaskService` wraps a `transport.Client` and speaks the
task endpoints directly: `create`, `get`, `get_by_business_unique_id`,
`update`, `delete`, `list`, `stats`, `batch_create`, `cancel` and
`retry`. It works with the wire types from `taskcenter.types`.

## Errors

Request failures raise `TaskCenterError` or one of its subclasses. Bad
input raises `ValidationError`, a missing task `NotFoundError`, a
failing server `ServerError`, and other unexpected HTTP answers
`HTTPError`. `parse_http_error` maps a status code and body to the right
exception: 404 to `NotFoundError`, 400 and 422 to `ValidationError`,
5xx to `ServerError`, anything else to `HTTPError`. Network failures and
timeouts raise `TaskCenterError` with the codes `NETWORK_ERROR` and
`TIMEOUT_ERROR`.

## What it does not do

This is a client library only. It has no command-line program, does not
run a task center server, and does not receive or verify callbacks:
`CallbackEvent.from_dict` decodes an event you have already received,
but checking its signature is left to you.