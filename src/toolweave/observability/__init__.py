"""Observability - logging configuration (text or JSON lines)."""

from .log import ConsoleFormatter, JsonFormatter, configure_from_settings, configure_logging

__all__ = ["ConsoleFormatter", "JsonFormatter", "configure_logging", "configure_from_settings"]
