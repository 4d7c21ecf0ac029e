"""Graph editing with the node placement rules of the workflow editor.

- A fresh workflow holds a single ``INITIAL`` placeholder node. Adding any
  node to such a graph, or adding an ``INITIAL`` node, replaces every node.
- At most one ``MANUAL_TRIGGER`` may exist.

Graphs are immutable: every edit returns a new :class:`WorkflowGraph`.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from nodeflow.constants import NODE_TYPE_LABELS, NodeType
from nodeflow.core.logging import get_logger
from nodeflow.models.nodes import Connection, Position, WorkflowNode
from nodeflow.services.execution.exceptions import DuplicateTriggerError

logger = get_logger(__name__)


def create_node(node_type: NodeType, data: Optional[Dict[str, Any]] = None,
                position: Optional[Position] = None) -> WorkflowNode:
    """New node with a generated id and the type's default label and description."""
    defaults = NODE_TYPE_LABELS.get(NodeType(node_type), {})
    return WorkflowNode(
        id=uuid.uuid4().hex,
        type=node_type,
        data={**defaults, **(data or {})},
        position=position or Position(),
    )


class WorkflowGraph(BaseModel):
    """Nodes and connections of one workflow."""
    nodes: List[WorkflowNode] = Field(default_factory=list)
    connections: List[Connection] = Field(default_factory=list)

    @classmethod
    def initial(cls) -> "WorkflowGraph":
        """Graph of a newly created workflow: just the placeholder trigger."""
        return cls(nodes=[create_node(NodeType.INITIAL)])

    def get_node(self, node_id: str) -> WorkflowNode:
        for node in self.nodes:
            if node.id == node_id:
                return node
        raise KeyError(node_id)

    def has_type(self, node_type: NodeType) -> bool:
        return any(node.type == node_type for node in self.nodes)

    def insert_node(self, node: WorkflowNode) -> "WorkflowGraph":
        """Add a node, applying the placeholder and single-trigger rules.

        Raises:
            DuplicateTriggerError: If a manual trigger already exists
            ValueError: If a node with the same id exists
        """
        if node.type == NodeType.MANUAL_TRIGGER and self.has_type(NodeType.MANUAL_TRIGGER):
            raise DuplicateTriggerError("Manual trigger node already exists", node_id=node.id)

        if node.type == NodeType.INITIAL or self.has_type(NodeType.INITIAL):
            logger.debug("Replacing graph nodes", node_id=node.id, node_type=node.type.value,
                         replaced=len(self.nodes))
            return WorkflowGraph(nodes=[node], connections=[])

        if any(existing.id == node.id for existing in self.nodes):
            raise ValueError(f"Node {node.id} already exists")

        return self.model_copy(update={"nodes": [*self.nodes, node]})

    def update_node_data(self, node_id: str, data: Dict[str, Any]) -> "WorkflowGraph":
        """Merge submitted configuration into a node's data."""
        target = self.get_node(node_id)
        updated = target.model_copy(update={"data": {**target.data, **data}})
        return self.model_copy(update={
            "nodes": [updated if node.id == node_id else node for node in self.nodes],
        })

    def remove_node(self, node_id: str) -> "WorkflowGraph":
        """Drop a node and every connection touching it."""
        self.get_node(node_id)
        return WorkflowGraph(
            nodes=[node for node in self.nodes if node.id != node_id],
            connections=[
                conn for conn in self.connections
                if conn.source != node_id and conn.target != node_id
            ],
        )

    def connect(self, source: str, target: str) -> "WorkflowGraph":
        """Add a ``source -> target`` connection. Duplicates are ignored."""
        self.get_node(source)
        self.get_node(target)
        if any(c.source == source and c.target == target for c in self.connections):
            return self
        return self.model_copy(update={
            "connections": [*self.connections, Connection(source=source, target=target)],
        })
