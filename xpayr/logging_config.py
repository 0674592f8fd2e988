"""
Structured logging for the dispatch service.

Every log line carries whatever transfer identifiers are bound in the
current context (``request_id`` from the HTTP middleware, ``dispatch_id``
from the orchestrator, ``execution_id`` and chains from the bridge
executor). Bound values are task-local, so concurrent bridge executions
never see each other's identifiers.
"""

import logging
import sys
from typing import ContextManager, Optional

import structlog

from .config import settings

# Third-party loggers that are too chatty at INFO (one line per RPC poll)
QUIET_LOGGERS = ("uvicorn.access", "httpcore", "httpx")


def transfer_context(**identifiers: Optional[str]) -> ContextManager[None]:
    """Bind transfer identifiers to all log lines emitted inside the block.

    ``None`` values are skipped. Tasks created inside the block inherit
    the bindings.

    Usage:
        with transfer_context(dispatch_id=dispatch_id):
            ...
    """
    return structlog.contextvars.bound_contextvars(
        **{key: value for key, value in identifiers.items() if value is not None}
    )


def _stringify_amounts(logger: object, method_name: str, event_dict: dict) -> dict:
    """Render integers beyond 2**53 (wei amounts) as strings."""
    for key, value in event_dict.items():
        if isinstance(value, int) and not isinstance(value, bool) and abs(value) >= 2**53:
            event_dict[key] = str(value)
    return event_dict


def setup_logging(log_level: Optional[str] = None) -> None:
    """Route structlog and stdlib logging through one formatter.

    JSON lines by default; colored console output when the level is DEBUG.

    Args:
        log_level: Override log level (default: from settings.log_level)
    """
    level = getattr(logging, (log_level or settings.log_level).upper(), logging.INFO)
    console = level == logging.DEBUG

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _stringify_amounts,
    ]

    if console:
        renderer: structlog.types.Processor = structlog.dev.ConsoleRenderer()
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Core modules log through logging.getLogger(__name__)
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
