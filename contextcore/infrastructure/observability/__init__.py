from .logging import (
    CoreLogger,
    add_service_context,
    bind_request_context,
    clear_request_context,
    setup_logging,
)
from .metrics import MetricsCollector

__all__ = [
    "CoreLogger",
    "MetricsCollector",
    "add_service_context",
    "bind_request_context",
    "clear_request_context",
    "setup_logging",
]
