"""Logging module for wagate."""

from .context import clear_request_context, set_request_context
from .logger import get_app_logger, get_logger, setup_app_logging

__all__ = [
    "clear_request_context",
    "get_app_logger",
    "get_logger",
    "set_request_context",
    "setup_app_logging",
]
