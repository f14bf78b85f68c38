"""
Programmatic checks.

Structural heuristics that do not fit a single regex: oversized text,
repeated payloads, invisible Unicode density and WebSocket connections to
nonstandard ports. All of them only warn.
"""

from __future__ import annotations

import re

from memonex.config import get_settings
from memonex.models.base import FlagAction, Severity, ThreatCategory
from memonex.models.threat import ThreatFlag
from memonex.scanner.evaluator import make_flag, mask_snippet

REPETITION_WINDOW = 20
REPETITION_STEP = 10
REPETITION_THRESHOLD = 5

UNICODE_TRICK_RATIO = 0.2

# Zero-width, bidi override, invisible operators, BOM, soft hyphen
SUSPICIOUS_UNICODE = re.compile(r"[\u200B-\u200F\u202A-\u202E\u2060-\u2064\uFEFF\u00AD]")

WEBSOCKET_URL = re.compile(r"""new\s+WebSocket\s*\(\s*["']wss?://[^"']*:(\d+)""", re.IGNORECASE)


def check_token_bombing(text: str, location: str) -> ThreatFlag | None:
    """Text longer than the token-bomb limit."""
    limit = get_settings().token_bomb_chars
    if len(text) <= limit:
        return None
    return make_flag(
        flag_id=f"prog:token-bomb:{location}",
        rule_id="prog:token-bomb",
        severity=Severity.LOW,
        category=ThreatCategory.OBFUSCATION,
        message=f"Token bombing (>{limit // 1000}k chars)",
        location=location,
        snippet=f"{len(text)} chars",
        action=FlagAction.WARN,
    )


def check_excessive_repetition(text: str, location: str) -> ThreatFlag | None:
    """
    Sample a 20-char window every 10 chars; flag when any window value
    repeats five times.
    """
    seen: dict[str, int] = {}
    for start in range(0, len(text) - REPETITION_WINDOW + 1, REPETITION_STEP):
        window = text[start:start + REPETITION_WINDOW]
        seen[window] = seen.get(window, 0) + 1
        if seen[window] >= REPETITION_THRESHOLD:
            return make_flag(
                flag_id=f"prog:repetition:{location}",
                rule_id="prog:repetition",
                severity=Severity.LOW,
                category=ThreatCategory.OBFUSCATION,
                message="Excessive repetition",
                location=location,
                snippet=mask_snippet(window),
                action=FlagAction.WARN,
            )
    return None


def check_unicode_tricks(text: str, location: str) -> ThreatFlag | None:
    """Invisible or direction-changing characters above 20% of the text."""
    if not text:
        return None
    hits = len(SUSPICIOUS_UNICODE.findall(text))
    if hits / len(text) <= UNICODE_TRICK_RATIO:
        return None
    return make_flag(
        flag_id=f"prog:unicode:{location}",
        rule_id="prog:unicode",
        severity=Severity.LOW,
        category=ThreatCategory.OBFUSCATION,
        message="Unicode tricks (zero-width/RTL/homoglyphs)",
        location=location,
        snippet=f"{hits} suspicious chars in {len(text)}",
        action=FlagAction.WARN,
    )


def check_websocket_ports(text: str, location: str) -> list[ThreatFlag]:
    """One flag per WebSocket URL whose explicit port is not allow-listed."""
    allowed = get_settings().websocket_ports
    flags = []
    for match in WEBSOCKET_URL.finditer(text):
        port = int(match.group(1))
        if port in allowed:
            continue
        flags.append(make_flag(
            flag_id=f"exfil:websocket-port:{location}:{len(flags) + 1}",
            rule_id="exfil:websocket-port",
            severity=Severity.MEDIUM,
            category=ThreatCategory.DATA_EXFILTRATION,
            message="WebSocket to nonstandard port",
            location=location,
            snippet=mask_snippet(match.group(0)),
            action=FlagAction.WARN,
        ))
    return flags


def run_triage_checks(text: str, location: str) -> list[ThreatFlag]:
    """The checks that run in the triage phase, in order."""
    results = (
        check_token_bombing(text, location),
        check_excessive_repetition(text, location),
        check_unicode_tricks(text, location),
    )
    return [flag for flag in results if flag is not None]
