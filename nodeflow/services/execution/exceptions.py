"""Exception hierarchy for workflow sequencing and execution."""

from typing import List, Optional


class WorkflowError(Exception):
    """Base exception for workflow engine errors."""

    def __init__(self, message: str, node_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.node_id = node_id


class WorkflowCycleError(WorkflowError):
    """The connection graph contains a cycle; no execution order exists."""

    def __init__(self, cycle: List[str]):
        super().__init__("Workflow contains a cycle")
        self.cycle = cycle


class NonRetriableError(WorkflowError):
    """Permanent failure. Retry machinery must give up immediately."""


class TemplateError(WorkflowError):
    """A template could not be rendered against the execution context.

    Raised inside durable steps, so it is retried like any step failure.
    """


class RegistryError(WorkflowError):
    """A node type has no registered executor."""


class DuplicateTriggerError(WorkflowError):
    """A graph edit would add a second manual trigger."""
