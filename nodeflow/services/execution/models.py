"""Execution engine state models.

All models are JSON-serializable so run results can be logged or returned
from the CLI as-is.
"""

import re
import time
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Dict, Any, List, Optional, Union

from nodeflow.core.config import Settings


class TaskStatus(str, Enum):
    """Node execution states.

    State transitions:
        PENDING -> RUNNING -> COMPLETED
                           -> FAILED
        PENDING -> SKIPPED (an earlier node failed)
    """
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class WorkflowStatus(str, Enum):
    """Workflow run states."""
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class RetryPolicy:
    """Retry configuration for durable steps.

    Implements exponential backoff with configurable limits.
    Delay formula: min(initial_delay * (backoff_multiplier ^ attempt), max_delay)
    """
    max_attempts: int = 3
    initial_delay: float = 1.0       # seconds
    max_delay: float = 30.0          # seconds
    backoff_multiplier: float = 2.0

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay before next retry attempt.

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Delay in seconds before next attempt
        """
        delay = self.initial_delay * (self.backoff_multiplier ** attempt)
        return min(delay, self.max_delay)

    def should_retry(self, attempt: int) -> bool:
        """True while attempts remain after the given 0-indexed attempt."""
        return attempt + 1 < self.max_attempts

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        """Create from engine settings."""
        return cls(
            max_attempts=settings.step_max_attempts,
            initial_delay=settings.step_initial_delay,
            max_delay=settings.step_max_delay,
            backoff_multiplier=settings.step_backoff_multiplier,
        )


@dataclass
class NodeExecution:
    """Tracks execution state for a single node."""
    node_id: str
    node_type: str
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    retriable: Optional[bool] = None
    started_at: Optional[float] = None
    completed_at: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "node_id": self.node_id,
            "node_type": self.node_type,
            "status": self.status.value,
            "error": self.error,
            "retriable": self.retriable,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


@dataclass
class WorkflowRunResult:
    """Outcome of one workflow run.

    ``context`` is the execution context as it stood when the run stopped:
    the final context on success, the last good context on failure.
    """
    execution_id: str
    workflow_id: str
    status: WorkflowStatus = WorkflowStatus.PENDING
    context: Dict[str, Any] = field(default_factory=dict)
    execution_order: List[str] = field(default_factory=list)
    node_executions: Dict[str, NodeExecution] = field(default_factory=dict)
    errors: List[Dict[str, Any]] = field(default_factory=list)
    started_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None

    @property
    def success(self) -> bool:
        return self.status == WorkflowStatus.COMPLETED

    @property
    def error(self) -> Optional[str]:
        """First error message, verbatim."""
        return self.errors[0]["error"] if self.errors else None

    @property
    def nodes_executed(self) -> List[str]:
        return [
            node_id for node_id in self.execution_order
            if self.node_executions[node_id].status == TaskStatus.COMPLETED
        ]

    @property
    def execution_time(self) -> float:
        end = self.completed_at if self.completed_at is not None else time.time()
        return end - self.started_at

    def add_error(self, error: str, node_id: Optional[str] = None,
                  retriable: bool = False) -> None:
        self.errors.append({
            "node_id": node_id,
            "error": error,
            "retriable": retriable,
            "timestamp": time.time(),
        })

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "success": self.success,
            "execution_id": self.execution_id,
            "workflow_id": self.workflow_id,
            "status": self.status.value,
            "context": self.context,
            "execution_order": self.execution_order,
            "nodes_executed": self.nodes_executed,
            "node_executions": {
                k: v.to_dict() for k, v in self.node_executions.items()
            },
            "error": self.error,
            "errors": self.errors,
            "execution_time": self.execution_time,
        }


# ms-style durations: "500ms", "5s", "2m", "1h30m", "1 day"
_DURATION_PART = re.compile(
    r"(\d+(?:\.\d+)?)\s*(milliseconds?|ms|seconds?|secs?|s|minutes?|mins?|m|hours?|hrs?|h|days?|d|weeks?|w)?",
    re.IGNORECASE,
)

_UNIT_SECONDS = {
    "ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0, "w": 604800.0,
}


def _unit_key(unit: Optional[str]) -> str:
    if not unit:
        return "s"
    unit = unit.lower()
    if unit.startswith("ms") or unit.startswith("milli"):
        return "ms"
    return unit[0]


def parse_duration(duration: Union[str, int, float, timedelta]) -> float:
    """Convert a duration to seconds.

    Numbers are seconds. Strings are one or more ``<amount><unit>`` parts;
    a bare number string is seconds.

    Raises:
        ValueError: If the duration is negative or cannot be parsed
    """
    if isinstance(duration, timedelta):
        seconds = duration.total_seconds()
    elif isinstance(duration, (int, float)) and not isinstance(duration, bool):
        seconds = float(duration)
    elif isinstance(duration, str):
        text = duration.strip()
        if not text:
            raise ValueError("Empty duration")
        seconds = 0.0
        pos = 0
        for match in _DURATION_PART.finditer(text):
            if text[pos:match.start()].strip():
                raise ValueError(f"Invalid duration: {duration!r}")
            seconds += float(match.group(1)) * _UNIT_SECONDS[_unit_key(match.group(2))]
            pos = match.end()
        if pos == 0 or text[pos:].strip():
            raise ValueError(f"Invalid duration: {duration!r}")
    else:
        raise ValueError(f"Invalid duration: {duration!r}")

    if seconds < 0:
        raise ValueError(f"Negative duration: {duration!r}")
    return seconds
