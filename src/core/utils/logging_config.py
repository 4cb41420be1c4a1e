"""Structured logging for the FX Treasury engine.

Every module logs through ``structlog.get_logger(__name__)`` with snake_case
event names; this module installs the processor chain once per process.
Console rendering for development, one JSON object per line when
``json_logs`` is set (log shipping in deployed environments).
"""

from __future__ import annotations

from typing import Any

import structlog

_configured = False

SERVICE_NAME = "fx-treasury"


def _add_service(_logger: Any, _method: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(debug: bool = False, json_logs: bool = False) -> None:
    """Configure structlog processors once.

    Args:
        debug: Emit DEBUG events (e.g. ``positions_aggregated``); INFO otherwise.
        json_logs: Render JSON lines instead of the coloured console format.

    Only the first call takes effect.
    """
    global _configured
    if _configured:
        return

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        # 10 = DEBUG, 20 = INFO
        wrapper_class=structlog.make_filtering_bound_logger(10 if debug else 20),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def get_logger(name: str, **initial_values: Any) -> Any:
    """Named logger with optional bound context, configuring defaults first."""
    configure_logging()
    return structlog.get_logger(name, **initial_values)
