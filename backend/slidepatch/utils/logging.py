from __future__ import annotations

import logging
import os
from typing import Any

from pythonjsonlogger import jsonlogger
import structlog


def _level_from(app: Any | None) -> str:
    return (app.config.get("LOG_LEVEL") if app else os.getenv("SLIDEPATCH_LOG_LEVEL")) or "INFO"


def _formatter_from(app: Any | None) -> logging.Formatter:
    log_format = (app.config.get("LOG_FORMAT") if app else os.getenv("SLIDEPATCH_LOG_FORMAT")) or "json"
    if log_format == "console":
        return structlog.stdlib.ProcessorFormatter(processor=structlog.dev.ConsoleRenderer(colors=False))
    # structlog hands the event dict over as the record message; the JSON formatter merges it
    return jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s")


def configure_logging(app: Any | None = None) -> None:
    """Route structlog through stdlib logging with one JSON (or console) handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(_level_from(app))

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter_from(app))
    root_logger.handlers = [handler]

    # Pillow's PNG plugin is chatty at DEBUG
    logging.getLogger("PIL").setLevel(max(logging.INFO, root_logger.level))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def bind_request_context(**values: Any) -> None:
    """Attach ``values`` to every log line emitted while handling the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
