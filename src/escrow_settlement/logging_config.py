"""Structured logging configuration using structlog.

Provides JSON-structured logging in production and human-readable colored
output in development. Every entry is stamped with the service name and the
escrow it concerns; entries emitted while serving a request also carry the
request_id bound by RequestIDMiddleware. Records from stdlib loggers
(uvicorn, sqlalchemy) go through the same processors.

Usage:
    from escrow_settlement.logging_config import setup_logging, get_logger
    setup_logging(log_level="DEBUG", json_logs=False, escrow_id="ESCROW_SINGLE")
    logger = get_logger()
    logger.info("settlement.escrow_funded", amount=50000)
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def add_service_context(service: str, escrow_id: str | None = None) -> structlog.types.Processor:
    """Build a processor that fills in ``service`` and ``escrow_id``.

    Values already present on the entry (bound or passed explicitly) win.
    """

    def processor(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        if escrow_id is not None:
            event_dict.setdefault("escrow_id", escrow_id)
        return event_dict

    return processor


def setup_logging(
    log_level: str = "DEBUG",
    json_logs: bool = False,
    service: str = "escrow-settlement",
    escrow_id: str | None = None,
) -> None:
    """Configure structlog with shared processors.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, output JSON (for production). If False, colored console.
        service: Service name stamped on every entry.
        escrow_id: Default escrow id stamped on entries that do not set one.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        add_service_context(service, escrow_id),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    # Quiet noisy third-party loggers
    for noisy_logger in (
        "uvicorn.access",
        "sqlalchemy.engine",
        "aiosqlite",
        "httpx",
        "httpcore",
    ):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
