"""Node Executor - executor contract and handler registry.

Uses a registry pattern for clean handler dispatch without if-else chains.
Every ``NodeType`` must map to an executor; building a registry that misses
one fails immediately rather than at the first run that reaches that node.
"""

from functools import partial
from typing import Any, Dict, Mapping, Optional, Protocol, TYPE_CHECKING

import httpx

from nodeflow.constants import NodeType
from nodeflow.core.logging import get_logger
from nodeflow.models.nodes import BaseNodeParams
from nodeflow.services.execution.exceptions import RegistryError
from nodeflow.services.execution.steps import StepTools
from nodeflow.services.handlers import (
    execute_http_request,
    execute_initial_trigger,
    execute_manual_trigger,
)

if TYPE_CHECKING:
    from nodeflow.core.config import Settings

logger = get_logger(__name__)


class NodeExecutor(Protocol):
    """Contract every node-type handler implements.

    Configuration errors raise ``NonRetriableError`` before any step runs.
    Side effects happen only inside ``step.run``. The returned mapping is a
    superset of ``context``.
    """

    async def __call__(self, *, data: BaseNodeParams, node_id: str,
                       context: Dict[str, Any], step: StepTools) -> Dict[str, Any]:
        ...


def check_registry(registry: Mapping[NodeType, NodeExecutor]) -> None:
    """Raise RegistryError if any node type lacks an executor."""
    missing = [node_type.value for node_type in NodeType if node_type not in registry]
    if missing:
        raise RegistryError(f"No executor registered for node types: {', '.join(missing)}")


def build_executor_registry(settings: Optional["Settings"] = None,
                            http_client: Optional[httpx.AsyncClient] = None
                            ) -> Dict[NodeType, NodeExecutor]:
    """Build handler registry with service dependencies bound via partial."""
    timeout = settings.http_timeout if settings is not None else 30.0

    registry: Dict[NodeType, NodeExecutor] = {
        NodeType.INITIAL: execute_initial_trigger,
        NodeType.MANUAL_TRIGGER: execute_manual_trigger,
        NodeType.HTTP_REQUEST: partial(execute_http_request,
                                       http_client=http_client, timeout=timeout),
    }

    check_registry(registry)
    logger.debug("Executor registry built", node_types=[t.value for t in registry])
    return registry
