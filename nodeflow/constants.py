"""Centralized constants for node types and categories.

This module provides a single source of truth for all node type definitions,
so graph editing, validation and executor dispatch agree on the same tags.
"""

from enum import Enum
from typing import Dict, FrozenSet


class NodeType(str, Enum):
    """Closed set of node type tags stored on workflow graphs."""
    INITIAL = "INITIAL"
    MANUAL_TRIGGER = "MANUAL_TRIGGER"
    HTTP_REQUEST = "HTTP_REQUEST"


# =============================================================================
# HTTP
# =============================================================================

HTTP_METHODS: FrozenSet[str] = frozenset(["GET", "POST", "PUT", "PATCH", "DELETE"])

# Methods whose body template is rendered and sent
BODY_METHODS: FrozenSet[str] = frozenset(["POST", "PUT", "PATCH"])

# Step name used by the HTTP request executor
HTTP_REQUEST_STEP = "http-request"

# =============================================================================
# NODE PRESENTATION DEFAULTS (node selector)
# =============================================================================

NODE_TYPE_LABELS: Dict[NodeType, Dict[str, str]] = {
    NodeType.MANUAL_TRIGGER: {
        "label": "Trigger Manually",
        "description": "Trigger the workflow manually",
    },
    NodeType.INITIAL: {
        "label": "Initial Trigger",
        "description": "Initial trigger node",
    },
    NodeType.HTTP_REQUEST: {
        "label": "HTTP Request",
        "description": "Make an HTTP request",
    },
}
