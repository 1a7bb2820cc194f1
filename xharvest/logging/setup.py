"""Structlog configuration for xharvest."""

import logging
import sys

import structlog

from xharvest.config import HarvestConfig, LogFormat

# Event keys whose values are credentials and must never reach the output
SECRET_KEYS = frozenset({"api_key", "credential", "session_cookie", "csrf_token", "token"})


def mask_secret(value: str | None, visible: int = 6) -> str:
    """Shorten a secret to its first few characters for diagnostics."""
    if not value:
        return "<none>"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}..."


def redact_secrets(logger, method_name: str, event_dict: dict) -> dict:
    """Structlog processor masking credential-bearing keys."""
    for key in SECRET_KEYS.intersection(event_dict):
        event_dict[key] = mask_secret(str(event_dict[key]) if event_dict[key] else None)
    return event_dict


def configure_logging(config: HarvestConfig | None = None) -> None:
    """
    Configure structlog processors and output format for the engine.

    Args:
        config: HarvestConfig instance, uses defaults if None
    """
    if config is None:
        config = HarvestConfig()

    log_level = getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=log_level,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if config.log_format == LogFormat.JSON:
        processors.extend([
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ])
    else:
        processors.extend([
            structlog.dev.set_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """
    Get a structlog logger, optionally bound to a component name.

    Args:
        name: Component name added as ``logger_name``

    Returns:
        BoundLogger
    """
    logger = structlog.get_logger()
    if name:
        logger = logger.bind(logger_name=name)
    return logger
