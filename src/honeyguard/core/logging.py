"""Structured logging configuration for HoneyGuard.

Every event carries the application name and environment. Fields that
hold attacker-supplied text (payloads, user agents, honeypot shell input)
are shortened and stripped of control characters before rendering, so a
hostile request cannot flood or forge log lines. Standard library
loggers are routed through the same processor chain.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from honeyguard.core.config import Settings, get_settings

UNTRUSTED_FIELDS = frozenset({"payload", "user_agent", "endpoint", "input"})
TRUNCATION_MARKER = "...[truncated]"


def add_app_context(settings: Settings) -> Processor:
    """Build a processor that stamps ``app`` and ``env`` on every event."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict.setdefault("app", settings.app_name)
        event_dict.setdefault("env", settings.app_env)
        return event_dict

    return processor


def sanitize_untrusted(max_length: int) -> Processor:
    """Build a processor that bounds and escapes attacker-controlled string fields."""

    def processor(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
        for key in UNTRUSTED_FIELDS.intersection(event_dict):
            value = event_dict[key]
            if not isinstance(value, str):
                continue
            value = value.encode("unicode_escape").decode("ascii")
            if len(value) > max_length:
                value = value[:max_length] + TRUNCATION_MARKER
            event_dict[key] = value
        return event_dict

    return processor


def setup_logging(settings: Settings | None = None) -> None:
    """Configure structured logging for the application."""
    settings = settings or get_settings()
    level = getattr(logging, settings.log_level)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context(settings),
        sanitize_untrusted(settings.log_max_field_length),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if settings.app_env == "development":
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        shared_processors.append(structlog.processors.format_exc_info)
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # stdlib records (asyncio, third-party libraries) go through the same chain
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a logger instance with optional initial context."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger
