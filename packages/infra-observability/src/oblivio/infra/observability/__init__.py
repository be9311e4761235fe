"""Oblivio Infra Observability -- structlog logging and cascade log context."""

from __future__ import annotations

from oblivio.infra.observability.context import cascade_context
from oblivio.infra.observability.logging import (
    LoggingSettings,
    SensitiveDataProcessor,
    configure_logging,
    get_logger,
)

__all__ = [
    "LoggingSettings",
    "SensitiveDataProcessor",
    "cascade_context",
    "configure_logging",
    "get_logger",
]
