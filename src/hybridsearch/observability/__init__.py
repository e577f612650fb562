"""Observability: structured logging."""

from hybridsearch.observability.logging import (
    configure_from_config,
    configure_logging,
    get_logger,
    operation_context,
)

__all__ = ["configure_from_config", "configure_logging", "get_logger", "operation_context"]
