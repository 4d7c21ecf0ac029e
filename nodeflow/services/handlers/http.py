"""HTTP node handler - HTTP Request."""

import json
import re
from typing import Any, Dict, Optional

import httpx

from nodeflow.constants import BODY_METHODS, HTTP_METHODS, HTTP_REQUEST_STEP
from nodeflow.core.logging import get_logger
from nodeflow.models.nodes import HttpRequestParams
from nodeflow.services.execution.exceptions import NonRetriableError
from nodeflow.services.execution.steps import StepTools
from nodeflow.services.template_resolver import render_template

logger = get_logger(__name__)

VARIABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_http_params(data: HttpRequestParams) -> str:
    """Check configuration before any side effect. Returns the normalized method.

    Raises:
        NonRetriableError: Naming the first missing or malformed field
    """
    if not data.endpoint:
        raise NonRetriableError("HTTP Request node: No endpoint configured")

    if not data.method:
        raise NonRetriableError("HTTP Request node: No method configured")
    method = data.method.upper()
    if method not in HTTP_METHODS:
        raise NonRetriableError(f"HTTP Request node: Invalid method '{data.method}'")

    if not data.variable_name:
        raise NonRetriableError("HTTP Request node: Variable name not configured")
    if not VARIABLE_NAME_PATTERN.match(data.variable_name):
        raise NonRetriableError(
            f"HTTP Request node: Invalid variable name '{data.variable_name}'")

    return method


def _parse_response(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


async def execute_http_request(
    *,
    data: HttpRequestParams,
    node_id: str,
    context: Dict[str, Any],
    step: StepTools,
    http_client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> Dict[str, Any]:
    """Handle HTTP request node execution.

    Args:
        data: Validated node configuration
        node_id: The node ID
        context: Execution context produced by earlier nodes
        step: Durable step capability; the call runs as one ``http-request`` step
        http_client: Shared client; a short-lived one is created per call when None
        timeout: Request timeout in seconds for a short-lived client

    Returns:
        The context with ``{variableName: {"httpResponse": {...}}}`` merged in
    """
    method = validate_http_params(data)
    variable_name = data.variable_name

    async def send_request() -> Dict[str, Any]:
        endpoint = render_template(data.endpoint, context)

        kwargs: Dict[str, Any] = {"method": method, "url": endpoint}
        if method in BODY_METHODS and data.body:
            rendered = render_template(data.body, context)
            # Raises on malformed JSON; retried like any other step failure
            json.loads(rendered)
            kwargs["content"] = rendered.encode("utf-8")
            kwargs["headers"] = {"Content-Type": "application/json"}

        logger.info("[HTTP Request] Executing", node_id=node_id, method=method, url=endpoint)

        if http_client is not None:
            response = await http_client.request(**kwargs)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.request(**kwargs)

        logger.info("[HTTP Request] Completed", node_id=node_id,
                    status=response.status_code, url=endpoint)

        # 4xx/5xx are step failures
        response.raise_for_status()

        return {
            "status": response.status_code,
            "statusText": response.reason_phrase,
            "data": _parse_response(response),
        }

    result = await step.run(HTTP_REQUEST_STEP, send_request)

    if variable_name in context:
        logger.warning("Overwriting context key", node_id=node_id, key=variable_name)

    return {
        **context,
        variable_name: {"httpResponse": result},
    }
