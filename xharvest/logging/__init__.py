"""Structured logging helpers."""

from xharvest.logging.setup import configure_logging, get_logger

__all__ = ["configure_logging", "get_logger"]
