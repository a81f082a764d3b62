"""Utilities package for the Docker exporter."""

from .errors import (
    ConfigurationError,
    ErrorCategory,
    ExporterError,
    ParseError,
    ScrapeTimeout,
    StatsUnavailable,
    TransportError,
)
from .logging_config import SystemLogger, generate_correlation_id, get_logger, setup_logging

__all__ = [
    "ExporterError",
    "ErrorCategory",
    "TransportError",
    "ScrapeTimeout",
    "StatsUnavailable",
    "ParseError",
    "ConfigurationError",
    "SystemLogger",
    "get_logger",
    "setup_logging",
    "generate_correlation_id",
]
