import structlog
import logging
import os
import sys
from typing import Dict, Any, Optional, List
from datetime import datetime

REQUEST_CONTEXT_KEYS = ("trace_id", "session_id")


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "contextcore"
) -> None:
    """Route structlog through stdlib logging with JSON or console output"""

    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.processors.JSONRenderer() if log_format == "json" else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=_shared_processors() + [renderer],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("CONTEXTCORE_ENVIRONMENT", "development")
    )


def _shared_processors() -> List[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        add_service_context,
    ]


def add_service_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp events with a timestamp and the bound request ids"""

    event_dict.setdefault("timestamp", datetime.utcnow().isoformat())

    bound = structlog.contextvars.get_contextvars()
    for key in REQUEST_CONTEXT_KEYS:
        value = bound.get(key)
        if value and key not in event_dict:
            event_dict[key] = value

    return event_dict


def bind_request_context(trace_id: str, session_id: Optional[str] = None) -> None:
    """Bind request scoped ids for every log line of the current task"""

    structlog.contextvars.bind_contextvars(trace_id=trace_id, session_id=session_id)


def clear_request_context() -> None:
    structlog.contextvars.unbind_contextvars(*REQUEST_CONTEXT_KEYS)


class CoreLogger:
    """Specialized logger for rule and context events"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_rule_execution(
        self,
        rule_id: str,
        session_id: Optional[str],
        success: bool = True,
        modified: bool = False,
        duration_ms: Optional[float] = None,
        error: Optional[str] = None
    ):
        """Log a single rule application"""

        log = self.logger.info if success else self.logger.warning
        log(
            "rule_execution",
            rule_id=rule_id,
            session_id=session_id,
            success=success,
            modified=modified,
            duration_ms=duration_ms,
            error=error
        )

    def log_rule_set_transition(
        self,
        rule_set: str,
        from_status: str,
        to_status: str,
        rule_ids: Optional[List[str]] = None
    ):
        """Log rule set state machine transitions"""

        self.logger.info(
            "rule_set_transition",
            rule_set=rule_set,
            from_status=from_status,
            to_status=to_status,
            rule_ids=rule_ids or []
        )

    def log_context_update(
        self,
        session_id: str,
        tier: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log context updates"""

        self.logger.info(
            "context_update",
            session_id=session_id,
            tier=tier,
            action=action,
            details=details or {}
        )
