"""
Safe Regex Utilities for Memonex Guard

Threat rules run against untrusted package text, so any pattern that is not
part of the built-in catalog is checked before it is compiled:
- Pattern length limits
- Nested-quantifier and quantified-alternation (ReDoS) heuristics
- Compile errors surfaced as RegexValidationError

Custom rules are also evaluated under a timeout on a bounded input. Built-in
rules are compiled through the same cache with validation off and run
inline.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from functools import lru_cache
from re import Pattern
from typing import Any, TypeVar

import structlog

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# Maximum allowed pattern length
MAX_PATTERN_LENGTH = 500

# Maximum input handed to a guarded (custom) rule
MAX_INPUT_LENGTH = 100_000

# Default timeout for guarded regex work (seconds)
DEFAULT_REGEX_TIMEOUT = 1.0

# Shapes known to cause catastrophic backtracking
REDOS_SUSPICIOUS_PATTERNS = [
    re.compile(r'\(.*\+.*\)\+'),           # Nested quantifiers like (a+)+
    re.compile(r'\(.*\*.*\)\*'),           # Nested quantifiers like (a*)*
    re.compile(r'\(.*\+.*\)\*'),           # Mixed nested quantifiers
    re.compile(r'\(.*\*.*\)\+'),           # Mixed nested quantifiers
    re.compile(r'\(.*\{.*\}.*\)\{'),       # Nested counted quantifiers
    re.compile(r'\(.*\|.*\)\+'),           # Alternation with quantifier
    re.compile(r'\(.*\|.*\)\*'),           # Alternation with quantifier
    re.compile(r'\.[\*\+]\.\*'),           # Overlapping wildcards
    re.compile(r'\[.*\][\*\+]\[.*\][\*\+]'),  # Adjacent quantified classes
]

_executor: ThreadPoolExecutor | None = None


def _get_executor() -> ThreadPoolExecutor:
    """Get or create the thread pool executor."""
    global _executor
    if _executor is None:
        _executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="regex_worker")
    return _executor


class RegexValidationError(Exception):
    """Raised when a regex pattern fails validation."""
    pass


class RegexTimeoutError(Exception):
    """Raised when guarded regex work runs past its timeout."""
    pass


def validate_pattern(pattern: str) -> tuple[bool, str | None]:
    """
    Validate a regex pattern for safety.

    Args:
        pattern: The regex pattern to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not pattern or pattern.isspace():
        return False, "Pattern cannot be empty"

    if len(pattern) > MAX_PATTERN_LENGTH:
        return False, f"Pattern length ({len(pattern)}) exceeds maximum ({MAX_PATTERN_LENGTH})"

    for suspicious in REDOS_SUSPICIOUS_PATTERNS:
        if suspicious.search(pattern):
            return False, "Pattern contains potentially vulnerable construct"

    try:
        re.compile(pattern)
    except re.error as e:
        return False, f"Invalid regex pattern: {e}"

    return True, None


@lru_cache(maxsize=1000)
def _compile_pattern_cached(pattern: str, flags: int = 0) -> Pattern:
    """Cache compiled patterns to avoid recompilation."""
    return re.compile(pattern, flags)


def safe_compile(pattern: str, flags: int = 0, validate: bool = True) -> Pattern:
    """
    Safely compile a regex pattern with validation.

    Args:
        pattern: The regex pattern to compile
        flags: Regex flags (re.IGNORECASE, etc.)
        validate: Whether to validate pattern for ReDoS vulnerability

    Returns:
        Compiled pattern

    Raises:
        RegexValidationError: If pattern is invalid or unsafe
    """
    if validate:
        is_valid, error = validate_pattern(pattern)
        if not is_valid:
            logger.warning("regex_pattern_rejected", pattern=pattern[:30], error=error)
            raise RegexValidationError(error)

    try:
        return _compile_pattern_cached(pattern, flags)
    except re.error as e:
        raise RegexValidationError(f"Failed to compile pattern: {e}") from e


def _run_with_timeout(func: Callable[..., T], *args: Any, timeout: float = DEFAULT_REGEX_TIMEOUT) -> T:
    """
    Run a function with a timeout.

    Raises:
        RegexTimeoutError: If operation times out
    """
    future = _get_executor().submit(func, *args)
    try:
        return future.result(timeout=timeout)
    except FuturesTimeoutError as e:
        # The worker keeps running; MAX_INPUT_LENGTH bounds how long
        raise RegexTimeoutError(f"Regex operation timed out after {timeout}s") from e


def run_guarded(
    func: Callable[[str], T],
    text: str,
    timeout: float = DEFAULT_REGEX_TIMEOUT,
) -> T:
    """
    Run regex work over untrusted text with an input cap and a timeout.

    Raises:
        RegexTimeoutError: If the work does not finish within `timeout`
    """
    if len(text) > MAX_INPUT_LENGTH:
        logger.warning("regex_input_truncated", original_length=len(text), max_length=MAX_INPUT_LENGTH)
        text = text[:MAX_INPUT_LENGTH]
    return _run_with_timeout(func, text, timeout=timeout)


def shutdown_executor() -> None:
    """Shutdown the regex thread pool executor."""
    global _executor
    if _executor is not None:
        _executor.shutdown(wait=False)
        _executor = None


def iter_matches(compiled: Pattern, text: str) -> Iterator[str]:
    """Yield the text of every non-empty match, left to right."""
    for match in compiled.finditer(text):
        if match.group(0):
            yield match.group(0)


def count_matches(compiled: Pattern, text: str) -> int:
    """Number of matches of a compiled pattern in text, empty matches included."""
    return sum(1 for _ in compiled.finditer(text))


def iter_enclosed(text: str, opener: str, closer: str) -> Iterator[tuple[str, str]]:
    """
    Yield `(span, body)` for each opener...closer section, left to right.

    Sections do not nest: a section ends at the first closer after its
    opener. The scan is a single pass with `str.find`, so unterminated
    openers cost linear time.
    """
    pos = 0
    while True:
        start = text.find(opener, pos)
        if start == -1:
            return
        body_start = start + len(opener)
        end = text.find(closer, body_start)
        if end == -1:
            return
        yield text[start:end + len(closer)], text[body_start:end]
        pos = end + len(closer)
