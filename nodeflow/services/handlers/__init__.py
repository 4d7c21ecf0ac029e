"""Node handlers package.

- http.py: HTTP Request
- triggers.py: Initial and Manual triggers
"""

from .http import (
    execute_http_request,
    validate_http_params,
)

from .triggers import (
    execute_initial_trigger,
    execute_manual_trigger,
)

__all__ = [
    'execute_http_request',
    'validate_http_params',
    'execute_initial_trigger',
    'execute_manual_trigger',
]
