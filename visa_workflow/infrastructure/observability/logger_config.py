import logging
from typing import Optional

import structlog
from structlog.contextvars import merge_contextvars

from visa_workflow.core.settings import settings
from visa_workflow.infrastructure.observability.context_vars import get_student_id, get_university_id
from visa_workflow.infrastructure.observability.correlation import CorrelationLogFilter, get_correlation_id


def add_context_vars(_, __, event_dict):
    """
    Processor to inject the workflow ContextVars into every log event.
    """
    cid = get_correlation_id()
    if cid:
        event_dict["correlation_id"] = cid

    trace = {
        "student_id": get_student_id(),
        "university_id": get_university_id(),
    }

    existing_trace = event_dict.get("trace", {})
    if isinstance(existing_trace, dict):
        trace.update(existing_trace)

    event_dict["trace"] = {k: v for k, v in trace.items() if v is not None}
    return event_dict


def configure_structlog(log_level: Optional[str] = None, json_logs: Optional[bool] = None):
    """
    Configures structlog on top of standard logging.
    """
    handler = logging.StreamHandler()
    handler.addFilter(CorrelationLogFilter())
    handler.setFormatter(
        logging.Formatter(" [%(asctime)s] [%(levelname)s] [trace_id=%(correlation_id)s] %(name)s: %(message)s")
    )

    resolved_level = str(log_level or settings.LOG_LEVEL or "INFO").upper()
    level = getattr(logging, resolved_level, logging.INFO)

    logging.basicConfig(format="%(message)s", level=level, handlers=[handler], force=True)

    use_json = settings.LOG_JSON if json_logs is None else json_logs
    if use_json:
        # canonical schema: the event text travels as "message"
        renderers = [structlog.processors.EventRenamer("message"), structlog.processors.JSONRenderer()]
    else:
        renderers = [structlog.dev.ConsoleRenderer()]

    processors = [
        merge_contextvars,
        add_context_vars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        *renderers,
    ]

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
