"""
Utilities Module

Logging configuration and async helpers.
"""

from .async_utils import fetch_with_timeout
from .logging_config import (
    ToneMapLogger,
    get_logger,
    log_error,
    log_performance,
    set_request_context,
    setup_logging,
)

__all__ = [
    "ToneMapLogger",
    "fetch_with_timeout",
    "get_logger",
    "log_error",
    "log_performance",
    "set_request_context",
    "setup_logging",
]
