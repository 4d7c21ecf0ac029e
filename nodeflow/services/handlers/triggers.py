"""Trigger node handlers - workflow entry points.

Triggers contribute nothing to the context. Each still runs as a named step
so the run's step history shows where it started. The step records no
result, so a resumed run keeps the context it was started with.
"""

from typing import Any, Dict

from nodeflow.constants import NodeType
from nodeflow.core.logging import get_logger
from nodeflow.models.nodes import InitialTriggerParams, ManualTriggerParams
from nodeflow.services.execution.steps import StepTools

logger = get_logger(__name__)


async def execute_initial_trigger(
    *,
    data: InitialTriggerParams,
    node_id: str,
    context: Dict[str, Any],
    step: StepTools,
) -> Dict[str, Any]:
    """Placeholder trigger of a fresh workflow."""
    await step.run(NodeType.INITIAL.value, lambda: None)
    return context


async def execute_manual_trigger(
    *,
    data: ManualTriggerParams,
    node_id: str,
    context: Dict[str, Any],
    step: StepTools,
) -> Dict[str, Any]:
    """Manual trigger: starts the run with the initial context."""
    logger.debug("Manual trigger fired", node_id=node_id, context_keys=list(context.keys()))
    await step.run(NodeType.MANUAL_TRIGGER.value, lambda: None)
    return context
