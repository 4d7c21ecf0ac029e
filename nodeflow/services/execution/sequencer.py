"""Graph sequencer - deterministic execution order for a workflow graph.

Orders nodes so every connection's source precedes its target, using an
explicit depth-first traversal with an on-stack marker set. A back edge to a
vertex still on the stack is a cycle and is reported as
:class:`WorkflowCycleError`; every other fault propagates unchanged.

Tie-breaking: the result is the reverse depth-first post-order where roots
are tried in reverse input-node order and each vertex's successors in
reverse connection order. With no connections the input order is returned
unchanged.
"""

from typing import Any, Dict, Iterable, Iterator, List, Sequence, Tuple, TypeVar

from nodeflow.core.logging import get_logger
from .exceptions import WorkflowCycleError

logger = get_logger(__name__)

N = TypeVar("N")


def _field(obj: Any, name: str) -> str:
    """Read ``name`` from a mapping (graph JSON) or an attribute (model)."""
    if isinstance(obj, dict):
        return obj[name]
    return getattr(obj, name)


def build_successors(node_ids: Sequence[str], connections: Iterable[Any]) -> Dict[str, Dict[str, None]]:
    """Adjacency map with every node seeded as a vertex.

    Seeding the vertex set from the node list keeps isolated nodes in the
    traversal without an anchor edge. Successors are an insertion-ordered
    dict, so duplicate connections collapse.

    Raises:
        KeyError: If a connection's source is not a known node
    """
    successors: Dict[str, Dict[str, None]] = {node_id: {} for node_id in node_ids}
    for conn in connections:
        successors[_field(conn, "source")][_field(conn, "target")] = None
    return successors


def _depth_first_order(roots: Sequence[str], successors: Dict[str, Dict[str, None]]) -> List[str]:
    done: set = set()
    on_stack: set = set()
    postorder: List[str] = []

    for root in reversed(roots):
        if root in done:
            continue

        stack: List[Tuple[str, Iterator[str]]] = [(root, reversed(list(successors[root])))]
        on_stack.add(root)

        while stack:
            vertex, children = stack[-1]
            for child in children:
                if child in on_stack:
                    start = next(i for i, (v, _) in enumerate(stack) if v == child)
                    cycle = [v for v, _ in stack[start:]] + [child]
                    raise WorkflowCycleError(cycle)
                if child not in done:
                    on_stack.add(child)
                    stack.append((child, reversed(list(successors[child]))))
                    break
            else:
                stack.pop()
                on_stack.discard(vertex)
                done.add(vertex)
                postorder.append(vertex)

    # A vertex is appended once, but keep the output a strict permutation
    return list(dict.fromkeys(reversed(postorder)))


def topological_sort(nodes: Iterable[N], connections: Iterable[Any]) -> List[N]:
    """Order workflow nodes so each connection's source runs before its target.

    Args:
        nodes: Node models or mappings, each with a unique ``id``
        connections: Connection models or mappings with ``source`` and ``target``

    Returns:
        The given node objects in execution order, each exactly once

    Raises:
        WorkflowCycleError: If the connections contain a cycle (self-loops included)
        KeyError: If a connection references a node that is not in ``nodes``
    """
    nodes = list(nodes)
    connections = list(connections)

    if not connections:
        return nodes

    node_map = {_field(node, "id"): node for node in nodes}
    successors = build_successors(list(node_map), connections)

    try:
        order = _depth_first_order(list(node_map), successors)
    except WorkflowCycleError as e:
        logger.warning("Cycle detected in workflow graph", cycle=e.cycle)
        raise

    logger.debug("Computed execution order", node_count=len(order),
                 connection_count=len(connections))
    return [node_map[node_id] for node_id in order]
