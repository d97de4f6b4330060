"""Tests for ToolExecutor: failure capture, ordering, concurrency and cancellation."""

from __future__ import annotations

import threading
import time

from automode.agents.cancellation import CancellationToken
from automode.errors import ToolRuntimeError
from automode.models.agent_schemas import ErrorKind, ToolCallRequest
from automode.tools import Param, ParamType, Tool, ToolRegistry, ToolSpec
from automode.tools.executor import ToolExecutor


def _request(name: str, call_id: str, **arguments) -> ToolCallRequest:
    return ToolCallRequest(id=call_id, name=name, arguments=arguments)


def _registry(*tools: Tool) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register_many(list(tools))
    return registry


def _tool(name, fn, read_only=False, params=None) -> Tool:
    return Tool(ToolSpec(name, f"{name} tool", params or {}, read_only=read_only), fn)


ECHO = _tool("echo", lambda a: a["text"], read_only=True, params={"text": Param(ParamType.STRING)})


class TestExecute:
    def test_success(self):
        result = ToolExecutor(_registry(ECHO)).execute(_request("echo", "1", text="hi"))
        assert result.success
        assert result.output == "hi"
        assert result.call_id == "1"
        assert result.tool_name == "echo"

    def test_unknown_tool(self):
        result = ToolExecutor(_registry(ECHO)).execute(_request("nope", "1"))
        assert not result.success
        assert result.error_kind is ErrorKind.UNKNOWN_TOOL
        assert "nope" in result.error

    def test_invalid_arguments_never_reach_the_tool(self):
        calls = []
        tool = _tool("t", calls.append, params={"n": Param(ParamType.INTEGER)})
        result = ToolExecutor(_registry(tool)).execute(_request("t", "1", n="five"))
        assert result.error_kind is ErrorKind.INVALID_ARGUMENTS
        assert "field 'n' expected integer, got str" in result.error
        assert calls == []

    def test_tool_runtime_error(self):
        def boom(args):
            raise ToolRuntimeError("file not found: x")

        result = ToolExecutor(_registry(_tool("t", boom))).execute(_request("t", "1"))
        assert result.error_kind is ErrorKind.TOOL_RUNTIME_FAILURE
        assert result.error == "file not found: x"

    def test_unexpected_exception_is_captured(self):
        def boom(args):
            raise KeyError("missing")

        result = ToolExecutor(_registry(_tool("t", boom))).execute(_request("t", "1"))
        assert result.error_kind is ErrorKind.TOOL_RUNTIME_FAILURE
        assert result.error.startswith("KeyError:")

    def test_tool_gets_a_copy_of_arguments(self):
        def mutate(args):
            args["text"] = "changed"
            return "ok"

        request = _request("m", "1", text="orig")
        tool = _tool("m", mutate, params={"text": Param(ParamType.STRING)})
        ToolExecutor(_registry(tool)).execute(request)
        assert request.arguments["text"] == "orig"


class TestBatch:
    def test_one_result_per_request_in_order(self):
        executor = ToolExecutor(_registry(ECHO))
        requests = [
            _request("echo", "a", text="1"),
            _request("missing", "b"),
            _request("echo", "c", text="3"),
        ]
        results = executor.execute_batch(requests)
        assert [r.call_id for r in results] == ["a", "b", "c"]
        assert [r.success for r in results] == [True, False, True]

    def test_sequential_by_default(self):
        order: list[str] = []

        def record(args):
            order.append(args["text"])
            return args["text"]

        tool = _tool("rec", record, read_only=True, params={"text": Param(ParamType.STRING)})
        executor = ToolExecutor(_registry(tool))
        executor.execute_batch([_request("rec", str(i), text=str(i)) for i in range(5)])
        assert order == ["0", "1", "2", "3", "4"]

    def test_concurrency_only_for_read_only_batches(self):
        write = _tool("write", lambda a: "w")
        executor = ToolExecutor(_registry(ECHO, write), parallel=True)
        reads = [_request("echo", "1", text="a"), _request("echo", "2", text="b")]
        mixed = [_request("echo", "1", text="a"), _request("write", "2")]
        unknown = [_request("echo", "1", text="a"), _request("ghost", "2")]

        assert executor.can_run_concurrently(reads)
        assert not executor.can_run_concurrently(mixed)
        assert not executor.can_run_concurrently(unknown)
        assert not executor.can_run_concurrently(reads[:1])
        assert not ToolExecutor(_registry(ECHO)).can_run_concurrently(reads)

    def test_parallel_batch_overlaps_and_keeps_order(self):
        barrier = threading.Barrier(3, timeout=5)

        def wait_for_peers(args):
            # only passes if all three calls are in flight at once
            barrier.wait()
            time.sleep(0.01 * (3 - int(args["text"])))
            return args["text"]

        tool = _tool("slow", wait_for_peers, read_only=True, params={"text": Param(ParamType.STRING)})
        executor = ToolExecutor(_registry(tool), parallel=True, max_workers=3)
        results = executor.execute_batch([_request("slow", f"c{i}", text=str(i)) for i in range(3)])
        assert [r.call_id for r in results] == ["c0", "c1", "c2"]
        assert [r.output for r in results] == ["0", "1", "2"]
        assert all(r.success for r in results)


class TestCancellation:
    def test_already_cancelled_runs_nothing(self):
        calls = []
        tool = _tool("t", calls.append)
        token = CancellationToken()
        token.cancel()
        results = ToolExecutor(_registry(tool)).execute_batch(
            [_request("t", "1"), _request("t", "2")], token
        )
        assert calls == []
        assert [r.error_kind for r in results] == [ErrorKind.CANCELLED, ErrorKind.CANCELLED]

    def test_cancel_mid_batch_skips_the_rest(self):
        token = CancellationToken()
        ran: list[str] = []

        def first(args):
            ran.append("first")
            token.cancel()
            return "done"

        def second(args):
            ran.append("second")
            return "done"

        executor = ToolExecutor(_registry(_tool("first", first), _tool("second", second)))
        results = executor.execute_batch([_request("first", "1"), _request("second", "2")], token)
        assert ran == ["first"]
        assert results[0].success
        assert results[1].error_kind is ErrorKind.CANCELLED
        assert "cancelled" in results[1].to_content()
