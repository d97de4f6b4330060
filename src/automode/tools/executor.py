"""Validates tool call requests and runs them against the registry."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Sequence

from automode.agents.cancellation import CancellationToken
from automode.errors import InvalidArgumentsError, ToolRuntimeError, UnknownToolError
from automode.models.agent_schemas import ErrorKind, ToolCallRequest, ToolResult
from automode.tools import ToolRegistry
from automode.tools.schema import validate_arguments

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4


class ToolExecutor:
    """Turns ToolCallRequests into ToolResults.

    Tool failures never propagate: unknown tools, bad arguments and exceptions
    raised by the tool itself all come back as failure results so the model can
    see them and adapt.

    Batches run sequentially in request order. With ``parallel=True`` a batch
    made up entirely of read-only tools runs on a thread pool instead; results
    are still returned in request order.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        parallel: bool = False,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ) -> None:
        self.registry = registry
        self.parallel = parallel
        self.max_workers = max_workers

    def execute(self, request: ToolCallRequest) -> ToolResult:
        try:
            tool = self.registry.lookup(request.name)
        except UnknownToolError as e:
            logger.warning("Model requested unknown tool '%s'", request.name)
            return ToolResult.failure(request, ErrorKind.UNKNOWN_TOOL, str(e))

        try:
            validate_arguments(tool.spec, request.arguments)
        except InvalidArgumentsError as e:
            logger.warning("Rejected call %s: %s", request.id, e)
            return ToolResult.failure(request, ErrorKind.INVALID_ARGUMENTS, str(e))

        logger.debug("Dispatching %s (%s) args=%s", request.name, request.id, request.arguments)
        try:
            output = tool.execute(dict(request.arguments))
        except ToolRuntimeError as e:
            logger.warning("Tool '%s' failed: %s", request.name, e)
            return ToolResult.failure(request, ErrorKind.TOOL_RUNTIME_FAILURE, str(e))
        except Exception as e:
            logger.error("Tool '%s' raised %s: %s", request.name, type(e).__name__, e)
            return ToolResult.failure(
                request, ErrorKind.TOOL_RUNTIME_FAILURE, f"{type(e).__name__}: {e}"
            )
        return ToolResult.ok(request, output)

    def can_run_concurrently(self, requests: Sequence[ToolCallRequest]) -> bool:
        if not self.parallel or len(requests) < 2:
            return False
        for request in requests:
            if request.name not in self.registry:
                return False
            if not self.registry.lookup(request.name).read_only:
                return False
        return True

    def execute_batch(
        self,
        requests: Sequence[ToolCallRequest],
        cancel_token: CancellationToken | None = None,
    ) -> list[ToolResult]:
        """Run every request of one assistant turn; one result per request, same order."""
        if cancel_token is not None and cancel_token.cancelled:
            return [_cancelled(r) for r in requests]

        if self.can_run_concurrently(requests):
            logger.debug("Running %d read-only tool calls concurrently", len(requests))
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                return list(pool.map(self.execute, requests))

        results: list[ToolResult] = []
        for request in requests:
            if cancel_token is not None and cancel_token.cancelled:
                logger.info("Cancelled before dispatching %s (%s)", request.name, request.id)
                results.append(_cancelled(request))
                continue
            results.append(self.execute(request))
        return results


def _cancelled(request: ToolCallRequest) -> ToolResult:
    return ToolResult.failure(request, ErrorKind.CANCELLED, "not run: the task was cancelled")
