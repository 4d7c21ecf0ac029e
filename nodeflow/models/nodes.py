"""Pydantic models for workflow graphs and node configuration.

Node configuration is validated with a Pydantic v2 discriminated union keyed
on the node ``type``. A new node type needs a ``NodeType`` member with a params model in
``NodeParams``, plus a handler registry entry.
"""

from typing import Annotated, Any, Dict, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from nodeflow.constants import NodeType


# =============================================================================
# GRAPH MODELS
# =============================================================================

class Position(BaseModel):
    """Canvas coordinates. Carried through, never used for execution."""
    x: float = 0.0
    y: float = 0.0


class WorkflowNode(BaseModel):
    """A node of a workflow graph."""
    model_config = ConfigDict(extra="allow")

    id: str = Field(..., min_length=1)
    type: NodeType
    data: Dict[str, Any] = Field(default_factory=dict)
    position: Optional[Position] = None


class Connection(BaseModel):
    """Directed precedence link: ``target`` runs after ``source``."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    source: str = Field(..., min_length=1)
    target: str = Field(..., min_length=1)
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


# =============================================================================
# NODE PARAMS
# =============================================================================

class BaseNodeParams(BaseModel):
    """Base class for all node parameters."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class InitialTriggerParams(BaseNodeParams):
    """Parameters for the initial (placeholder) trigger."""
    type: Literal["INITIAL"]


class ManualTriggerParams(BaseNodeParams):
    """Parameters for the manual trigger."""
    type: Literal["MANUAL_TRIGGER"]


class HttpRequestParams(BaseNodeParams):
    """Parameters for HTTP request node.

    Every field may be empty here; the executor reports missing
    configuration as a non-retriable failure naming the field.
    """
    type: Literal["HTTP_REQUEST"]
    variable_name: str = Field(default="", alias="variableName")
    endpoint: str = ""
    method: str = ""
    body: Optional[str] = None


NodeParams = Annotated[
    Union[InitialTriggerParams, ManualTriggerParams, HttpRequestParams],
    Field(discriminator="type")
]

# Created once at module level
_node_params_adapter = TypeAdapter(NodeParams)


def validate_node_data(node_type: Union[NodeType, str],
                       data: Optional[Dict[str, Any]]) -> BaseNodeParams:
    """Validate a node's configuration payload into its params model.

    Args:
        node_type: The node type tag
        data: The node ``data`` payload (UI fields such as label are kept as extras)

    Returns:
        Validated parameters model (specific subclass based on node_type)

    Raises:
        ValidationError: If the type is unknown or the payload is invalid
    """
    tag = node_type.value if isinstance(node_type, NodeType) else node_type
    payload = {**(data or {}), "type": tag}
    return _node_params_adapter.validate_python(payload)
