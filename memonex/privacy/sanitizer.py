"""
Automatic insight sanitizer.

Runs during extraction, before a seller ever sees the package. A private
key block or leaked system prompt drops the whole insight. Other secrets
and PII are redacted in place.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from re import Pattern

import structlog

from memonex.models.base import clamp01
from memonex.models.package import Insight
from memonex.models.privacy import (
    PrivacyAction,
    PrivacyKind,
    PrivacyReport,
    PrivacyReportSummary,
    PrivacyRuleHit,
)
from memonex.security.safe_regex import count_matches, safe_compile

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class SanitizerRule:
    id: str
    kind: PrivacyKind
    action: PrivacyAction
    pattern: str
    flags: int = 0
    replacement: str = "[REDACTED]"
    # Count presence only, not each occurrence
    count_once: bool = False

    @property
    def regex(self) -> Pattern:
        return safe_compile(self.pattern, self.flags, validate=False)

    def count(self, text: str) -> int:
        if self.count_once:
            return 1 if self.regex.search(text) else 0
        return count_matches(self.regex, text)


SANITIZER_RULES = (
    SanitizerRule(
        id="secret:pem-private-key",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.DROP,
        pattern=(
            r"-----BEGIN (EC|RSA|OPENSSH) PRIVATE KEY-----(?:(?!-----BEGIN )[\s\S])*?"
            r"-----END (EC|RSA|OPENSSH) PRIVATE KEY-----"
        ),
    ),
    # Tx hashes look the same, so redact instead of drop
    SanitizerRule(
        id="secret:evm-private-key-hex64",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.REDACT,
        pattern=r"\b0x[a-fA-F0-9]{64}\b",
    ),
    SanitizerRule(
        id="secret:openai-sk",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.REDACT,
        pattern=r"\bsk-[A-Za-z0-9]{20,}\b",
        replacement="[REDACTED_OPENAI_KEY]",
    ),
    SanitizerRule(
        id="secret:jwt",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.REDACT,
        pattern=r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\b",
        replacement="[REDACTED_JWT]",
    ),
    SanitizerRule(
        id="secret:bearer",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.REDACT,
        pattern=r"\bbearer\s+[A-Za-z0-9\-_.]{20,}\b",
        flags=re.IGNORECASE,
        replacement="Bearer [REDACTED_TOKEN]",
    ),
    SanitizerRule(
        id="secret:api-key-assignment",
        kind=PrivacyKind.SECRET,
        action=PrivacyAction.REDACT,
        pattern=r"""\b(api[_-]?key|secret|password|passwd|token)\s*[:=]\s*['"]?[A-Za-z0-9_\-]{8,}['"]?""",
        flags=re.IGNORECASE,
        replacement=r"\1=[REDACTED_SECRET]",
    ),
    SanitizerRule(
        id="pii:email",
        kind=PrivacyKind.PII,
        action=PrivacyAction.REDACT,
        pattern=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        replacement="[REDACTED_EMAIL]",
    ),
    SanitizerRule(
        id="pii:phone",
        kind=PrivacyKind.PII,
        action=PrivacyAction.REDACT,
        pattern=r"\b(?:\+?\d{1,3}[-.\s]?)?(?:\(?\d{2,4}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}\b",
        replacement="[REDACTED_PHONE]",
    ),
    SanitizerRule(
        id="pii:ip",
        kind=PrivacyKind.PII,
        action=PrivacyAction.REDACT,
        pattern=r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b",
        replacement="[REDACTED_IP]",
    ),
    SanitizerRule(
        id="prompt:system-role",
        kind=PrivacyKind.PROMPT,
        action=PrivacyAction.DROP,
        pattern=r"\b(you are chatgpt|system prompt|developer message|tools available|follow these defaults)\b",
        flags=re.IGNORECASE,
        count_once=True,
    ),
)


@dataclass
class _TextResult:
    text: str
    dropped: bool
    hits: dict[str, tuple[SanitizerRule, int]]


def _apply_rules(text: str) -> _TextResult:
    out = text
    dropped = False
    hits: dict[str, tuple[SanitizerRule, int]] = {}

    for rule in SANITIZER_RULES:
        count = rule.count(out)
        if count <= 0:
            continue
        hits[rule.id] = (rule, count)

        if rule.action == PrivacyAction.DROP:
            # Keep scanning so the report is complete
            dropped = True
            continue

        out = rule.regex.sub(rule.replacement, out)

    return _TextResult(text=out, dropped=dropped, hits=hits)


def sanitize_insights(insights: list[Insight]) -> tuple[list[Insight], PrivacyReport]:
    """
    Redact secrets and PII from insights, dropping high-risk ones entirely.

    Returns:
        Tuple of (sanitized insights, privacy report)
    """
    sanitized: list[Insight] = []
    hit_totals: dict[str, PrivacyRuleHit] = {}
    secrets_removed = 0
    pii_removed = 0
    dropped = 0

    for insight in insights:
        title = _apply_rules(insight.title)
        content = _apply_rules(insight.content)

        for result in (title, content):
            for rule_id, (rule, count) in result.hits.items():
                previous = hit_totals.get(rule_id)
                hit_totals[rule_id] = PrivacyRuleHit(
                    rule_id=rule_id,
                    kind=rule.kind,
                    action=rule.action,
                    count=(previous.count if previous else 0) + count,
                )
                if rule.action == PrivacyAction.REDACT:
                    if rule.kind == PrivacyKind.SECRET:
                        secrets_removed += count
                    elif rule.kind == PrivacyKind.PII:
                        pii_removed += count

        if title.dropped or content.dropped:
            dropped += 1
            continue

        sanitized.append(insight.model_copy(update={
            "id": insight.id or str(uuid.uuid4()),
            "title": title.text,
            "content": content.text,
        }))

    hits = list(hit_totals.values())
    blocked = any(
        h.action == PrivacyAction.DROP and h.kind in (PrivacyKind.SECRET, PrivacyKind.PROMPT)
        for h in hits
    )

    notes = []
    if blocked:
        notes.append("High-risk content was detected (secrets/prompts). Those segments were dropped.")
    if dropped:
        notes.append(f"Dropped {dropped} insight(s) due to high-risk matches.")

    risk = clamp01(
        (0.4 if secrets_removed else 0.0)
        + (0.15 if pii_removed else 0.0)
        + (0.5 if dropped else 0.0)
    )

    report = PrivacyReport(
        blocked=blocked,
        summary=PrivacyReportSummary(
            secrets_removed=secrets_removed,
            pii_removed=pii_removed,
            high_risk_segments_dropped=dropped,
        ),
        hits=hits,
        notes=notes,
        leakage_risk_score=risk,
    )

    logger.info(
        "insights_sanitized",
        insights_in=len(insights),
        insights_out=len(sanitized),
        secrets_removed=secrets_removed,
        pii_removed=pii_removed,
        dropped=dropped,
    )
    return sanitized, report
