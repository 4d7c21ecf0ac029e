"""WorkflowRunner - sequential workflow execution.

Orders the graph once per run, then runs each node's executor in turn,
threading the execution context from one node to the next. All nodes of a
run share one :class:`DurableStepRunner`, so passing an earlier
``execution_id`` resumes that run: completed steps replay from the cache.
"""

import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError

from nodeflow.core.cache import CacheService
from nodeflow.core.logging import get_logger, log_execution_time
from nodeflow.models.nodes import Connection, WorkflowNode, validate_node_data
from .exceptions import (
    NonRetriableError,
    RegistryError,
    WorkflowCycleError,
    WorkflowError,
)
from .models import (
    NodeExecution,
    RetryPolicy,
    TaskStatus,
    WorkflowRunResult,
    WorkflowStatus,
)
from .sequencer import topological_sort
from .steps import DurableStepRunner, step_cache_key

logger = get_logger(__name__)

StatusCallback = Callable[[str, str, Dict[str, Any]], Awaitable[None]]

# Failures that cannot succeed on a later attempt of the same run
PERMANENT_ERRORS = (NonRetriableError, WorkflowCycleError, RegistryError)


def _error_message(error: Exception) -> str:
    if isinstance(error, WorkflowError):
        return error.message
    return str(error) or type(error).__name__


class WorkflowRunner:
    """Runs workflow graphs one node at a time.

    Features:
    - Deterministic ordering via the graph sequencer
    - Durable steps with retry and replay
    - Context threading with append-only enforcement
    - Status notifications per node
    """

    def __init__(self, cache: CacheService,
                 executors: Mapping[Any, Callable[..., Awaitable[Dict[str, Any]]]],
                 retry_policy: Optional[RetryPolicy] = None,
                 status_callback: Optional[StatusCallback] = None,
                 sleep_fn: Callable[[float], Awaitable[None]] = asyncio.sleep):
        """Initialize runner.

        Args:
            cache: Cache holding memoized step results
            executors: Node type -> executor registry
            retry_policy: Retry policy for durable steps
            status_callback: Optional async callback for status updates
                            Signature: async def callback(node_id, status, data)
            sleep_fn: Awaitable used for retry backoff and step sleeps
        """
        self.cache = cache
        self.executors = executors
        self.retry_policy = retry_policy or RetryPolicy()
        self.status_callback = status_callback
        self._sleep = sleep_fn

    # =========================================================================
    # EXECUTION ENTRY POINT
    # =========================================================================

    async def execute_workflow(self, workflow_id: str,
                               nodes: Iterable[Union[WorkflowNode, Dict[str, Any]]],
                               connections: Iterable[Union[Connection, Dict[str, Any]]],
                               initial_context: Optional[Dict[str, Any]] = None,
                               execution_id: Optional[str] = None) -> WorkflowRunResult:
        """Execute a workflow graph.

        Args:
            workflow_id: Workflow identifier
            nodes: Workflow nodes (models or graph JSON mappings)
            connections: Connections between nodes
            initial_context: Context handed to the first node
            execution_id: Earlier run to resume; a new id is generated when None

        Returns:
            Run result. Failures are reported in the result, never raised.
        """
        start_time = time.time()
        resumed = execution_id is not None

        result = WorkflowRunResult(
            execution_id=execution_id or uuid.uuid4().hex,
            workflow_id=workflow_id,
            status=WorkflowStatus.RUNNING,
            context=dict(initial_context or {}),
        )
        step = DurableStepRunner(result.execution_id, self.cache,
                                 self.retry_policy, sleep_fn=self._sleep)

        try:
            graph_nodes = [WorkflowNode.model_validate(n) if isinstance(n, dict) else n
                           for n in nodes]
            graph_connections = [Connection.model_validate(c) if isinstance(c, dict) else c
                                 for c in connections]

            ordered = topological_sort(graph_nodes, graph_connections)
            result.execution_order = [node.id for node in ordered]
            for node in ordered:
                result.node_executions[node.id] = NodeExecution(
                    node_id=node.id, node_type=node.type.value)

            logger.info("Starting workflow execution",
                        execution_id=result.execution_id,
                        workflow_id=workflow_id,
                        node_count=len(ordered),
                        resumed=resumed)

            for node in ordered:
                try:
                    result.context = await self._execute_node(node, result, step)
                except Exception as e:
                    self._record_failure(result, e, node_id=node.id)
                    break
            else:
                result.status = WorkflowStatus.COMPLETED
                # A completed run has nothing left to resume
                await self.cache.clear_pattern(step_cache_key(result.execution_id, ""))

        except Exception as e:
            logger.error("Workflow could not be started", execution_id=result.execution_id,
                         workflow_id=workflow_id, error=_error_message(e))
            self._record_failure(result, e)

        result.completed_at = time.time()
        log_execution_time(logger, "workflow_execution", start_time, result.completed_at,
                           execution_id=result.execution_id,
                           workflow_id=workflow_id,
                           status=result.status.value,
                           nodes_executed=len(result.nodes_executed))
        return result

    # =========================================================================
    # NODE EXECUTION
    # =========================================================================

    async def _execute_node(self, node: WorkflowNode, result: WorkflowRunResult,
                            step: DurableStepRunner) -> Dict[str, Any]:
        """Run one node and return the context for the next one."""
        execution = result.node_executions[node.id]
        execution.status = TaskStatus.RUNNING
        execution.started_at = time.time()
        await self._notify_status(node.id, "executing", {"node_type": node.type.value})

        try:
            executor = self.executors.get(node.type)
            if executor is None:
                raise RegistryError(f"No executor registered for node type {node.type.value}",
                                    node_id=node.id)

            try:
                params = validate_node_data(node.type, node.data)
            except ValidationError as e:
                raise NonRetriableError(
                    f"Invalid configuration for node {node.id}: {e}", node_id=node.id) from e

            context = result.context
            new_context = await executor(data=params, node_id=node.id,
                                         context=dict(context), step=step)
            if not isinstance(new_context, Mapping):
                raise WorkflowError(
                    f"Executor for {node.type.value} returned {type(new_context).__name__}, "
                    f"expected a mapping", node_id=node.id)

            new_context = dict(new_context)
            missing = [key for key in context if key not in new_context]
            if missing:
                logger.warning("Executor dropped context keys, restoring them",
                               node_id=node.id, keys=missing)
                for key in missing:
                    new_context[key] = context[key]

        except Exception as e:
            execution.status = TaskStatus.FAILED
            execution.error = _error_message(e)
            execution.retriable = not isinstance(e, PERMANENT_ERRORS)
            execution.completed_at = time.time()
            logger.error("Node execution failed", execution_id=result.execution_id,
                         node_id=node.id, node_type=node.type.value,
                         error=execution.error, retriable=execution.retriable)
            await self._notify_status(node.id, "error", {"error": execution.error})
            raise

        execution.status = TaskStatus.COMPLETED
        execution.completed_at = time.time()
        logger.info("Node execution completed", execution_id=result.execution_id,
                    node_id=node.id, node_type=node.type.value)
        await self._notify_status(node.id, "success", {"context_keys": list(new_context.keys())})
        return new_context

    def _record_failure(self, result: WorkflowRunResult, error: Exception,
                        node_id: Optional[str] = None) -> None:
        result.status = WorkflowStatus.FAILED
        result.add_error(_error_message(error), node_id=node_id,
                         retriable=not isinstance(error, PERMANENT_ERRORS))
        for execution in result.node_executions.values():
            if execution.status == TaskStatus.PENDING:
                execution.status = TaskStatus.SKIPPED

    async def _notify_status(self, node_id: str, status: str,
                             data: Dict[str, Any]) -> None:
        """Send status notification via callback.

        Args:
            node_id: Node ID
            status: Status string
            data: Additional data
        """
        if self.status_callback:
            try:
                await self.status_callback(node_id, status, data)
            except Exception as e:
                logger.warning("Status callback failed", node_id=node_id, error=str(e))
