"""
Core module for cross-cutting concerns.

This module provides:
- Structured logging configuration
"""

from core.logging import (
    bind_context,
    bound_context,
    clear_context,
    configure_logging,
    configure_logging_from_settings,
    get_logger,
)

__all__ = [
    "bind_context",
    "bound_context",
    "clear_context",
    "configure_logging",
    "configure_logging_from_settings",
    "get_logger",
]
