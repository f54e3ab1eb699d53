"""Structured logging for relaybus.

Modules log through ``get_logger(__name__)`` and never configure anything
on import; the host application owns structlog. ``configure_logging`` is an
opt-in setup for applications that want relaybus's events rendered from a
``RegistryConfig``.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

from relaybus.config import RegistryConfig

LOGGER_NAME = "relaybus"


def configure_logging(
    config: RegistryConfig | None = None,
    log_file: Path | None = None,
) -> logging.Handler:
    """Render relaybus events through stdlib logging.

    Level and format come from ``config`` (``RegistryConfig.from_env()``
    when omitted). Only the ``relaybus`` logger gets a handler, so the
    application's own stdlib handlers are left alone.

    Args:
        config: Settings carrying ``log_level`` and ``json_logs``
        log_file: Optional file to append to instead of stderr

    Returns:
        The handler attached to the ``relaybus`` logger
    """
    config = config or RegistryConfig.from_env()

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(message)s"))

    lib_logger = logging.getLogger(LOGGER_NAME)
    for old in list(lib_logger.handlers):
        lib_logger.removeHandler(old)
        old.close()
    lib_logger.addHandler(handler)
    lib_logger.setLevel(config.log_level)
    lib_logger.propagate = False

    processors: list[structlog.types.Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if config.json_logs:
        processors += [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    else:
        colors = log_file is None and sys.stderr.isatty()
        processors.append(structlog.dev.ConsoleRenderer(colors=colors))

    # Loggers are rebuilt per call so a later reconfiguration reaches
    # module-level loggers created at import.
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    return handler


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)
    """
    return structlog.get_logger(name)
