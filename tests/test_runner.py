import httpx
import pytest
import pytest_asyncio

from nodeflow.constants import NodeType
from nodeflow.services.execution import TaskStatus, WorkflowRunner, WorkflowStatus, step_cache_key
from nodeflow.services.node_executor import build_executor_registry


def trigger(node_id="trigger"):
    return {"id": node_id, "type": "MANUAL_TRIGGER", "data": {}}


def http_node(node_id, endpoint, variable_name, **extra):
    data = {"endpoint": endpoint, "method": "GET", "variableName": variable_name, **extra}
    return {"id": node_id, "type": "HTTP_REQUEST", "data": data}


def connect(source, target):
    return {"source": source, "target": target}


class Api:
    """MockTransport handler with per-path call counts and failures."""

    def __init__(self, failing=()):
        self.calls = {}
        self.requests = []
        self.failing = set(failing)
        self.statuses = {}

    def __call__(self, request):
        path = request.url.path
        self.requests.append(request)
        self.calls[path] = self.calls.get(path, 0) + 1
        if path in self.failing:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.statuses.get(path, 200), json={"path": path})


class StatusLog:
    def __init__(self):
        self.events = []

    async def __call__(self, node_id, status, data):
        self.events.append((node_id, status))


@pytest.fixture
def api():
    return Api()


@pytest_asyncio.fixture
async def http_client(api):
    async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
        yield client


@pytest.fixture
def status_log():
    return StatusLog()


@pytest.fixture
def runner(cache, settings, retry_policy, sleeps, status_log, http_client):
    return WorkflowRunner(
        cache,
        build_executor_registry(settings, http_client=http_client),
        retry_policy=retry_policy,
        status_callback=status_log,
        sleep_fn=sleeps,
    )


@pytest.mark.asyncio
async def test_context_is_threaded_through_nodes(runner, api, status_log):
    nodes = [
        http_node("second", "http://api/echo?from={{first.httpResponse.data.path}}", "second"),
        http_node("first", "http://api/{{user}}", "first"),
        trigger(),
    ]
    connections = [connect("trigger", "first"), connect("first", "second")]

    result = await runner.execute_workflow("wf", nodes, connections,
                                           initial_context={"user": "ada"})

    assert result.success
    assert result.status == WorkflowStatus.COMPLETED
    assert result.execution_order == ["trigger", "first", "second"]
    assert result.nodes_executed == ["trigger", "first", "second"]
    assert result.context["user"] == "ada"
    assert result.context["first"]["httpResponse"]["data"] == {"path": "/ada"}
    assert result.context["second"]["httpResponse"]["data"] == {"path": "/echo"}
    assert api.requests[-1].url.params["from"] == "/ada"
    assert status_log.events == [
        ("trigger", "executing"), ("trigger", "success"),
        ("first", "executing"), ("first", "success"),
        ("second", "executing"), ("second", "success"),
    ]


@pytest.mark.asyncio
async def test_cycle_fails_before_any_node_runs(runner, api, status_log):
    nodes = [http_node("a", "http://api/a", "a"), http_node("b", "http://api/b", "b")]

    result = await runner.execute_workflow("wf", nodes, [connect("a", "b"), connect("b", "a")])

    assert result.status == WorkflowStatus.FAILED
    assert result.error == "Workflow contains a cycle"
    assert result.errors[0]["retriable"] is False
    assert result.node_executions == {}
    assert api.calls == {}
    assert status_log.events == []


@pytest.mark.asyncio
async def test_configuration_error_halts_the_run(runner, api):
    nodes = [trigger(), http_node("broken", "", "x"), http_node("after", "http://api/after", "y")]
    connections = [connect("trigger", "broken"), connect("broken", "after")]

    result = await runner.execute_workflow("wf", nodes, connections, initial_context={"k": 1})

    assert not result.success
    assert result.error == "HTTP Request node: No endpoint configured"
    assert result.errors[0]["node_id"] == "broken"
    assert result.errors[0]["retriable"] is False
    assert result.node_executions["trigger"].status == TaskStatus.COMPLETED
    assert result.node_executions["broken"].status == TaskStatus.FAILED
    assert result.node_executions["after"].status == TaskStatus.SKIPPED
    assert result.context == {"k": 1}
    assert api.calls == {}


@pytest.mark.asyncio
async def test_invalid_node_data_is_non_retriable(runner):
    nodes = [http_node("bad", "http://api/x", "x", body=5)]

    result = await runner.execute_workflow("wf", nodes, [])

    assert result.error.startswith("Invalid configuration for node bad")
    assert result.errors[0]["retriable"] is False


@pytest.mark.asyncio
async def test_transient_failure_is_retried(runner, api, sleeps, retry_policy):
    api.failing.add("/flaky")

    result = await runner.execute_workflow("wf", [http_node("n", "http://api/flaky", "r")], [])

    assert not result.success
    assert result.errors[0]["retriable"] is True
    assert result.node_executions["n"].retriable is True
    assert api.calls["/flaky"] == retry_policy.max_attempts
    assert len(sleeps.calls) == retry_policy.max_attempts - 1


@pytest.mark.asyncio
async def test_resume_replays_completed_steps(runner, api):
    nodes = [http_node("one", "http://api/one", "one"), http_node("two", "http://api/two", "two")]
    connections = [connect("one", "two")]
    api.failing.add("/two")

    first = await runner.execute_workflow("wf", nodes, connections)
    assert not first.success
    assert first.nodes_executed == ["one"]

    api.failing.clear()
    resumed = await runner.execute_workflow("wf", nodes, connections,
                                            execution_id=first.execution_id)

    assert resumed.success
    assert resumed.execution_id == first.execution_id
    assert api.calls["/one"] == 1
    assert resumed.context["one"]["httpResponse"]["data"] == {"path": "/one"}
    assert resumed.context["two"]["httpResponse"]["data"] == {"path": "/two"}


@pytest.mark.asyncio
async def test_dropped_context_keys_are_restored(cache, retry_policy):
    async def forgetful(*, data, node_id, context, step):
        context.clear()
        return {"mine": node_id}

    runner = WorkflowRunner(cache, {NodeType.MANUAL_TRIGGER: forgetful}, retry_policy)

    result = await runner.execute_workflow("wf", [trigger("t")], [], initial_context={"a": 1})

    assert result.success
    assert result.context == {"a": 1, "mine": "t"}


@pytest.mark.asyncio
async def test_missing_executor_fails_the_node(cache, retry_policy):
    runner = WorkflowRunner(cache, {}, retry_policy)

    result = await runner.execute_workflow("wf", [trigger("t")], [])

    assert not result.success
    assert "MANUAL_TRIGGER" in result.error
    assert result.errors[0]["retriable"] is False


@pytest.mark.asyncio
async def test_failing_status_callback_does_not_break_the_run(cache, retry_policy, settings):
    async def broken_callback(node_id, status, data):
        raise RuntimeError("listener gone")

    runner = WorkflowRunner(cache, build_executor_registry(settings), retry_policy,
                            status_callback=broken_callback)

    result = await runner.execute_workflow("wf", [trigger()], [])

    assert result.success


@pytest.mark.asyncio
async def test_result_serializes(runner):
    result = await runner.execute_workflow("wf", [trigger()], [], initial_context={"x": 1})

    payload = result.to_dict()
    assert payload["success"] is True
    assert payload["status"] == "completed"
    assert payload["nodes_executed"] == ["trigger"]
    assert payload["node_executions"]["trigger"]["status"] == "completed"


@pytest.mark.asyncio
async def test_error_status_fails_the_run_after_retries(runner, api, retry_policy):
    api.statuses["/down"] = 503

    result = await runner.execute_workflow("wf", [http_node("n", "http://api/down", "r")], [])

    assert not result.success
    assert result.errors[0]["retriable"] is True
    assert "503" in result.error
    assert "r" not in result.context
    assert api.calls["/down"] == retry_policy.max_attempts


@pytest.mark.asyncio
async def test_resumed_run_keeps_its_new_initial_context(runner, api, cache):
    nodes = [trigger(), http_node("notify", "http://api/notify", "notified")]
    connections = [connect("trigger", "notify")]
    api.failing.add("/notify")

    first = await runner.execute_workflow("wf", nodes, connections,
                                          initial_context={"user": "ada"})
    assert not first.success
    assert await cache.get(step_cache_key(first.execution_id, "MANUAL_TRIGGER")) is not None

    api.failing.clear()
    resumed = await runner.execute_workflow("wf", nodes, connections,
                                            initial_context={"user": "bob"},
                                            execution_id=first.execution_id)

    assert resumed.success
    assert resumed.context["user"] == "bob"
    assert resumed.context["notified"]["httpResponse"]["status"] == 200


@pytest.mark.asyncio
async def test_completed_run_releases_its_step_results(runner, cache):
    result = await runner.execute_workflow("wf", [trigger(), http_node("h", "http://api/a", "a")],
                                           [connect("trigger", "h")])

    assert result.success
    assert await cache.get(step_cache_key(result.execution_id, "MANUAL_TRIGGER")) is None
    assert await cache.get(step_cache_key(result.execution_id, "http-request")) is None
    assert not any(key.startswith(f"step:{result.execution_id}:") for key in cache.memory_cache)


@pytest.mark.asyncio
async def test_failed_run_keeps_step_results_for_resume(runner, api, cache):
    api.failing.add("/b")

    result = await runner.execute_workflow(
        "wf", [http_node("a", "http://api/a", "a"), http_node("b", "http://api/b", "b")],
        [connect("a", "b")])

    assert not result.success
    assert await cache.get(step_cache_key(result.execution_id, "http-request")) is not None
