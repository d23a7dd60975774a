"""
launch-spine logging - structured logging for the launch workers.

Every launch worker logs through structlog so that a container launch can
be followed across threads by its ``container_id`` and ``role`` fields.

Architecture:
    ::

        configure_logging(settings)            # or level=/json_format=/service=
            │
            ▼
        structlog processor chain:
          1. TimeStamper (iso)
          2. merge_contextvars        (container_id / role bound by LogContext)
          3. add_log_level
          4. thread name              (which pool thread ran the launch)
          5. service.name
          6. ECS field names          (JSON only)
          7. JSONRenderer | ConsoleRenderer

        logger = get_logger(__name__)
        logger.info("launch.command", command="...")

Examples:
    >>> from launchspine.core.logging import configure_logging, get_logger
    >>> configure_logging(level="DEBUG", json_format=False)
    >>> logger = get_logger(__name__)
    >>> logger.info("launch.starting", container_id="c-007", role="worker")

Guardrails:
    - Worker threads get their own contextvars copy, so ``LogContext``
      bound inside one worker never leaks into another.
    - Service name is stored globally (set once at startup).

Tags:
    logging, structlog, observability, json-logging, launch-spine
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from launchspine.core.settings import LaunchSettings, get_settings

_service_name = "launch-spine"


def _add_service(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("service.name", _service_name)
    return event_dict


def _to_ecs_fields(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Rename timestamp/level/thread to their ECS field names."""
    for old, new in (("timestamp", "@timestamp"), ("level", "log.level"), ("thread_name", "process.thread.name")):
        if old in event_dict:
            event_dict[new] = event_dict.pop(old)
    return event_dict


def configure_logging(
    settings: LaunchSettings | None = None,
    *,
    level: str | None = None,
    json_format: bool | None = None,
    service: str | None = None,
) -> None:
    """Configure structlog for launch workers.

    Explicit arguments win over ``settings``; ``settings`` defaults to
    :func:`~launchspine.core.settings.get_settings`. Every line carries the
    pool thread that emitted it, since launches interleave across threads.

    Args:
        settings: Source of ``log_level``, ``json_logs`` and ``service_name``
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: True for JSON, False for console, None for auto (JSON if not tty)
        service: ``service.name`` value on every line
    """
    global _service_name
    if settings is None and (level is None or service is None):
        settings = get_settings()

    level = (level or settings.log_level).upper()
    _service_name = service or settings.service_name
    if json_format is None and settings is not None:
        json_format = settings.json_logs
    if json_format is None:
        json_format = not sys.stdout.isatty()

    processors: list[Processor] = [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.processors.CallsiteParameterAdder(
            [structlog.processors.CallsiteParameter.THREAD_NAME]
        ),
        structlog.dev.set_exc_info,
        _add_service,
    ]
    if json_format:
        processors += [
            _to_ecs_fields,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None, **initial_values: Any) -> Any:
    """Get a structured logger, optionally pre-bound with *initial_values*."""
    return structlog.get_logger(name, **initial_values)


def bind_context(**kwargs: Any) -> None:
    """Bind context to include in all subsequent logs of this thread."""
    structlog.contextvars.bind_contextvars(**kwargs)


def unbind_context(*keys: str) -> None:
    """Remove specific keys from logging context."""
    structlog.contextvars.unbind_contextvars(*keys)


def clear_context() -> None:
    """Clear all bound context."""
    structlog.contextvars.clear_contextvars()


class LogContext:
    """Context manager for scoped logging context.

    Example:
        with LogContext(container_id="c-007", role="worker"):
            logger.info("launch.starting")
    """

    def __init__(self, **kwargs: Any):
        self._context = kwargs

    def __enter__(self) -> LogContext:
        bind_context(**self._context)
        return self

    def __exit__(self, *args) -> None:
        unbind_context(*self._context.keys())


__all__ = [
    "configure_logging",
    "get_logger",
    "bind_context",
    "unbind_context",
    "clear_context",
    "LogContext",
]
