"""
Flag merging and risk scoring.

The threat score sums severity weights of active (non-overridden) flags,
adds fixed bonuses for the most dangerous categories and a term for the
share of insights that will be removed. The verdict has two independent
gates: the score must stay below the unsafe threshold and no active flag
may be critical.
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from memonex.config import get_settings
from memonex.models.base import (
    ContentType,
    FlagAction,
    Severity,
    ThreatCategory,
    clamp01,
    severity_weight,
    utc_now_iso,
)
from memonex.models.threat import ScanResult, ScanSummary, ThreatFlag

CATEGORY_BONUSES: dict[str, float] = {
    ThreatCategory.PROMPT_INJECTION.value: 0.20,
    ThreatCategory.DATA_EXFILTRATION.value: 0.20,
    ThreatCategory.OBFUSCATION.value: 0.10,
}

REMOVED_INSIGHTS_WEIGHT = 0.20

_INSIGHT_LOCATION = re.compile(r"^insight:([^.]+)")
_ATTACHMENT_LOCATION = re.compile(r"^attachment:(.+)$")


def merge_flags(*sources: Iterable[ThreatFlag]) -> list[ThreatFlag]:
    """
    Union flag lists, collapsing duplicates.

    Flags are duplicates when rule id, location and snippet agree. The
    heavier instance wins but keeps the slot of the first one seen.
    """
    merged: dict[tuple[str, str, str], ThreatFlag] = {}
    for flags in sources:
        for flag in flags:
            existing = merged.get(flag.dedupe_key)
            if existing is None or severity_weight(flag.severity) > severity_weight(existing.severity):
                merged[flag.dedupe_key] = flag
    return list(merged.values())


def _blocked_keys(flags: Iterable[ThreatFlag], pattern: re.Pattern) -> set[str]:
    keys = set()
    for flag in flags:
        if not flag.is_blocking:
            continue
        match = pattern.match(flag.location)
        if match:
            keys.add(match.group(1))
    return keys


def blocked_insight_ids(flags: Iterable[ThreatFlag]) -> set[str]:
    """Insight ids with at least one active BLOCK flag."""
    return _blocked_keys(flags, _INSIGHT_LOCATION)


def blocked_attachment_names(flags: Iterable[ThreatFlag]) -> set[str]:
    """Attachment names with at least one active BLOCK flag."""
    return _blocked_keys(flags, _ATTACHMENT_LOCATION)


def summarize_flags(flags: list[ThreatFlag], total_insights: int) -> ScanSummary:
    removed = len(blocked_insight_ids(flags))
    return ScanSummary(
        total=len(flags),
        blocked=sum(1 for f in flags if f.action == FlagAction.BLOCK),
        warned=sum(1 for f in flags if f.action == FlagAction.WARN),
        passed=sum(1 for f in flags if f.action == FlagAction.PASS),
        overridden=sum(1 for f in flags if f.overridden),
        insights_removed=min(removed, total_insights),
    )


def score_threats(
    flags: Iterable[ThreatFlag],
    total_insights: int,
    insights_removed: int,
) -> tuple[float, bool]:
    """
    Compute the bounded threat score and the safe-to-import verdict.

    Returns:
        Tuple of (threat_score, safe_to_import)
    """
    active = [f for f in flags if f.is_active]

    score = sum(severity_weight(f.severity) for f in active)
    categories = {f.category for f in active}
    score += sum(bonus for category, bonus in CATEGORY_BONUSES.items() if category in categories)
    score += (insights_removed / (total_insights or 1)) * REMOVED_INSIGHTS_WEIGHT
    score = clamp01(score)

    has_critical = any(f.severity == Severity.CRITICAL for f in active)
    safe = score < get_settings().unsafe_score_threshold and not has_critical
    return score, safe


def build_scan_result(
    flags: list[ThreatFlag],
    total_insights: int,
    content_type: ContentType | str,
) -> ScanResult:
    """Summarize and score a final flag set."""
    total = total_insights or 1
    summary = summarize_flags(flags, total)
    threat_score, safe = score_threats(flags, total, summary.insights_removed)

    return ScanResult(
        flags=flags,
        summary=summary,
        threat_score=threat_score,
        safe_to_import=safe,
        reviewed_at=utc_now_iso(),
        content_type=content_type,
    )
