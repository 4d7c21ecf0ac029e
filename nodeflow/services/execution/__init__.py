"""Execution engine package.

Sequential workflow execution with:
- Deterministic graph sequencing with cycle detection
- Durable named steps with retry and replay
- Context threading between nodes
"""

from .exceptions import (
    WorkflowError,
    WorkflowCycleError,
    NonRetriableError,
    TemplateError,
    RegistryError,
    DuplicateTriggerError,
)
from .models import (
    TaskStatus,
    WorkflowStatus,
    RetryPolicy,
    NodeExecution,
    WorkflowRunResult,
    parse_duration,
)
from .sequencer import topological_sort
from .steps import StepTools, DurableStepRunner, step_cache_key
from .runner import WorkflowRunner

__all__ = [
    # Exceptions
    "WorkflowError",
    "WorkflowCycleError",
    "NonRetriableError",
    "TemplateError",
    "RegistryError",
    "DuplicateTriggerError",
    # Models
    "TaskStatus",
    "WorkflowStatus",
    "RetryPolicy",
    "NodeExecution",
    "WorkflowRunResult",
    "parse_duration",
    # Sequencer
    "topological_sort",
    # Steps
    "StepTools",
    "DurableStepRunner",
    "step_cache_key",
    # Runner
    "WorkflowRunner",
]
