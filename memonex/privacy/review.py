"""
Seller-side privacy review.

Before a package is published the seller sees every secret, PII or
high-risk match as a PrivacyFlag. Each flag can be left on REDACT or
switched to KEEP; `apply_privacy_actions` then rewrites the package text
and scores the leakage risk of what the seller chose to keep.
"""

from __future__ import annotations

import re
from collections import defaultdict, deque
from collections.abc import Callable
from dataclasses import dataclass
from re import Match, Pattern

import structlog

from memonex.models.base import clamp01, utc_now_iso
from memonex.models.package import MemoryPackage
from memonex.models.privacy import (
    PrivacyAction,
    PrivacyFlag,
    PrivacyKind,
    PrivacyReview,
    PrivacyReviewSummary,
)
from memonex.scanner.rules import SECRET_ENV_NAMES
from memonex.scanner.targets import ScanTarget
from memonex.security.safe_regex import iter_matches, safe_compile

logger = structlog.get_logger(__name__)

Replacement = str | Callable[[Match], str]


@dataclass(frozen=True)
class PrivacyRule:
    id: str
    kind: PrivacyKind
    label: str
    pattern: str
    flags: int = 0
    replacement: Replacement = "[REDACTED]"

    @property
    def regex(self) -> Pattern:
        return safe_compile(self.pattern, self.flags, validate=False)

    def replace(self, match: Match) -> str:
        if callable(self.replacement):
            return self.replacement(match)
        return self.replacement


PRIVACY_RULES = (
    PrivacyRule(
        id="secret:bearer",
        kind=PrivacyKind.SECRET,
        label="Bearer token",
        pattern=r"\bBearer\s+[A-Za-z0-9\-_.]{16,}\b",
        flags=re.IGNORECASE,
        replacement="Bearer [REDACTED_TOKEN]",
    ),
    PrivacyRule(
        id="secret:sk_live",
        kind=PrivacyKind.SECRET,
        label="sk_live API key",
        pattern=r"\bsk_live_[A-Za-z0-9]{8,}\b",
        flags=re.IGNORECASE,
        replacement="[REDACTED_API_KEY]",
    ),
    PrivacyRule(
        id="secret:evm-private-key",
        kind=PrivacyKind.SECRET,
        label="EVM private key",
        pattern=r"\b0x[a-fA-F0-9]{64}\b",
        replacement="[REDACTED_PRIVATE_KEY]",
    ),
    PrivacyRule(
        id="secret:env-assignment",
        kind=PrivacyKind.SECRET,
        label="Secret env assignment",
        pattern=r"\b" + SECRET_ENV_NAMES + r"""\b\s*[:=]\s*['"]?[^\s'"\n]{4,}['"]?""",
        flags=re.IGNORECASE,
        replacement=lambda m: f"{m.group(1)}=[REDACTED_SECRET]",
    ),
    PrivacyRule(
        id="pii:email",
        kind=PrivacyKind.PII,
        label="Email address",
        pattern=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        replacement="[REDACTED_EMAIL]",
    ),
    PrivacyRule(
        id="pii:phone",
        kind=PrivacyKind.PII,
        label="Phone number",
        pattern=r"\b(?:\+?\d{1,3}[-.\s]?)?(?:\(?\d{2,4}\)?[-.\s]?)?\d{3}[-.\s]?\d{4}\b",
        replacement="[REDACTED_PHONE]",
    ),
    PrivacyRule(
        id="pii:ip",
        kind=PrivacyKind.PII,
        label="IP address",
        pattern=r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b",
        replacement="[REDACTED_IP]",
    ),
    PrivacyRule(
        id="highrisk:env-name",
        kind=PrivacyKind.HIGH_RISK,
        label="Secret env var name",
        pattern=r"\b" + SECRET_ENV_NAMES + r"\b(?!\s*[:=])",
        flags=re.IGNORECASE,
        replacement="[REDACTED_ENV_VAR]",
    ),
)

FlagIndex = dict[tuple[str, str, str], deque[PrivacyFlag]]


def mask_privacy_snippet(value: str) -> str:
    """Keep only the first and last four characters of a match."""
    compact = re.sub(r"\s+", " ", value).strip()
    if len(compact) <= 8:
        return compact
    return f"{compact[:4]}…{compact[-4:]}"


def privacy_targets(package: MemoryPackage) -> list[ScanTarget]:
    """Text the seller publishes: title, description, query, insights and attachments."""
    targets = [ScanTarget("package.title", package.title or "")]
    if package.description:
        targets.append(ScanTarget("package.description", package.description))
    spec = package.extraction.spec if package.extraction else None
    if spec and spec.query:
        targets.append(ScanTarget("extraction.query", spec.query))
    for insight in package.insight_list:
        base = f"insight:{insight.id}"
        targets.append(ScanTarget(f"{base}.title", insight.title))
        targets.append(ScanTarget(f"{base}.content", insight.content))
    for attachment in package.attachments or []:
        targets.append(ScanTarget(f"attachment:{attachment.name}", attachment.content))
    return targets


def scan_for_privacy(package: MemoryPackage) -> list[PrivacyFlag]:
    """Flag every sensitive match in the package. All flags start as REDACT."""
    flags: list[PrivacyFlag] = []
    counter = 0

    for target in privacy_targets(package):
        for rule in PRIVACY_RULES:
            for match in iter_matches(rule.regex, target.text):
                counter += 1
                flags.append(PrivacyFlag(
                    id=f"{rule.id}:{counter}",
                    kind=rule.kind,
                    pattern=rule.label,
                    location=target.location,
                    snippet=mask_privacy_snippet(match),
                    action=PrivacyAction.REDACT,
                    overridden=False,
                ))

    logger.info("privacy_scan_complete", package_id=package.package_id, flags=len(flags))
    return flags


def _index_flags(flags: list[PrivacyFlag]) -> FlagIndex:
    index: FlagIndex = defaultdict(deque)
    for flag in flags:
        index[(flag.location, flag.pattern, flag.snippet)].append(flag)
    return index


def redact_text(text: str, location: str, index: FlagIndex) -> str:
    """
    Apply every rule in order, replacing matches whose flag says REDACT.

    Each flag is consumed by the match it was created for. Matches without
    a flag, and matches flagged KEEP, stay as written.
    """
    out = text
    for rule in PRIVACY_RULES:
        def _replace(match: Match, rule: PrivacyRule = rule) -> str:
            key = (location, rule.label, mask_privacy_snippet(match.group(0)))
            pending = index.get(key)
            if not pending:
                return match.group(0)
            flag = pending.popleft()
            if flag.action == PrivacyAction.KEEP:
                return match.group(0)
            return rule.replace(match)

        out = rule.regex.sub(_replace, out)
    return out


def _redact_package(package: MemoryPackage, index: FlagIndex) -> MemoryPackage:
    update: dict = {}
    if package.title:
        update["title"] = redact_text(package.title, "package.title", index)

    if package.description:
        update["description"] = redact_text(package.description, "package.description", index)

    if package.extraction and package.extraction.spec:
        spec = package.extraction.spec
        update["extraction"] = package.extraction.model_copy(update={
            "spec": spec.model_copy(update={"query": redact_text(spec.query, "extraction.query", index)}),
        })

    if package.insights is not None:
        update["insights"] = [
            insight.model_copy(update={
                "title": redact_text(insight.title, f"insight:{insight.id}.title", index),
                "content": redact_text(insight.content, f"insight:{insight.id}.content", index),
            })
            for insight in package.insights
        ]

    if package.attachments is not None:
        update["attachments"] = [
            attachment.model_copy(update={
                "content": redact_text(attachment.content, f"attachment:{attachment.name}", index),
            })
            for attachment in package.attachments
        ]

    return package.model_copy(update=update)


@dataclass
class PrivacyOutcome:
    cleaned: MemoryPackage
    review: PrivacyReview


def apply_privacy_actions(package: MemoryPackage, flags: list[PrivacyFlag]) -> PrivacyOutcome:
    """
    Redact or keep each flagged match and score the leakage risk.

    Risk: 0.15 for any flag, 0.5 if a secret was kept, 0.2 if PII was kept,
    0.1 if the seller overrode anything. Approved when no secret was kept
    and the risk stays at or below 0.5.
    """
    cleaned = _redact_package(package, _index_flags(flags))

    kept_secrets = sum(1 for f in flags if f.action == PrivacyAction.KEEP and f.kind == PrivacyKind.SECRET)
    kept_pii = sum(1 for f in flags if f.action == PrivacyAction.KEEP and f.kind == PrivacyKind.PII)
    summary = PrivacyReviewSummary(
        total_flagged=len(flags),
        redacted=sum(1 for f in flags if f.action == PrivacyAction.REDACT),
        kept=sum(1 for f in flags if f.action == PrivacyAction.KEEP),
        overridden=sum(1 for f in flags if f.overridden),
    )

    risk = clamp01(
        (0.15 if summary.total_flagged else 0.0)
        + (0.5 if kept_secrets else 0.0)
        + (0.2 if kept_pii else 0.0)
        + (0.1 if summary.overridden else 0.0)
    )

    review = PrivacyReview(
        flags=flags,
        summary=summary,
        leakage_risk_score=risk,
        reviewed_at=utc_now_iso(),
        approved=kept_secrets == 0 and risk <= 0.5,
    )

    logger.info(
        "privacy_actions_applied",
        package_id=package.package_id,
        redacted=summary.redacted,
        kept=summary.kept,
        leakage_risk=round(risk, 4),
        approved=review.approved,
    )
    return PrivacyOutcome(cleaned=cleaned, review=review)


def format_privacy_summary(review: PrivacyReview) -> str:
    status = "approved" if review.approved else "needs review"
    return "\n".join([
        f"Privacy review: {status}",
        f"Total flagged: {review.summary.total_flagged}",
        f"Redacted: {review.summary.redacted}",
        f"Kept: {review.summary.kept}",
        f"Overrides: {review.summary.overridden}",
        f"Leakage risk: {review.leakage_risk_score:.2f}",
        f"Reviewed by: {review.reviewed_by} @ {review.reviewed_at}",
    ])
