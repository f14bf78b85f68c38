"""
Memonex Guard - Security Module

Regex safety helpers shared by the threat and privacy scanners.
"""

from .safe_regex import (
    MAX_PATTERN_LENGTH,
    RegexTimeoutError,
    RegexValidationError,
    count_matches,
    iter_enclosed,
    iter_matches,
    run_guarded,
    safe_compile,
    shutdown_executor,
    validate_pattern,
)

__all__ = [
    "MAX_PATTERN_LENGTH",
    "RegexTimeoutError",
    "RegexValidationError",
    "count_matches",
    "iter_enclosed",
    "iter_matches",
    "run_guarded",
    "safe_compile",
    "shutdown_executor",
    "validate_pattern",
]
