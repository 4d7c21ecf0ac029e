import pytest
from pydantic import ValidationError

from nodeflow.constants import NodeType
from nodeflow.models.nodes import (
    Connection,
    HttpRequestParams,
    ManualTriggerParams,
    WorkflowNode,
    validate_node_data,
)
from nodeflow.services.execution import RegistryError
from nodeflow.services.node_executor import build_executor_registry, check_registry


def test_http_params_accept_camel_case():
    params = validate_node_data(NodeType.HTTP_REQUEST, {
        "variableName": "user", "endpoint": "http://e", "method": "GET", "label": "Fetch",
    })

    assert isinstance(params, HttpRequestParams)
    assert params.variable_name == "user"
    assert params.body is None


def test_unconfigured_http_node_still_validates():
    params = validate_node_data("HTTP_REQUEST", None)

    assert params.endpoint == ""
    assert params.variable_name == ""


def test_type_tag_comes_from_the_node():
    params = validate_node_data("MANUAL_TRIGGER", {"type": "HTTP_REQUEST"})

    assert isinstance(params, ManualTriggerParams)


def test_unknown_type_is_rejected():
    with pytest.raises(ValidationError):
        validate_node_data("WEBHOOK", {})


def test_graph_json_models():
    node = WorkflowNode.model_validate({
        "id": "n1", "type": "HTTP_REQUEST", "position": {"x": 10, "y": 20}, "selected": True,
    })
    conn = Connection.model_validate({
        "source": "a", "target": "b", "sourceHandle": "main", "targetHandle": "main",
    })

    assert node.type == NodeType.HTTP_REQUEST
    assert node.data == {}
    assert node.position.x == 10
    assert conn.source_handle == "main"


def test_registry_covers_every_node_type(settings):
    registry = build_executor_registry(settings)

    assert set(registry) == set(NodeType)


def test_incomplete_registry_is_rejected():
    with pytest.raises(RegistryError, match="HTTP_REQUEST"):
        check_registry({NodeType.INITIAL: object(), NodeType.MANUAL_TRIGGER: object()})
