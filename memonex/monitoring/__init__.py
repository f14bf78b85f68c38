"""
Memonex Guard - Monitoring Module

Structured logging for the scanning engine.
"""

from .logging import configure_logging, get_logger, log_duration

__all__ = [
    "configure_logging",
    "get_logger",
    "log_duration",
]
