"""
Privacy Review Models

Seller-side privacy scanning: flags the seller can confirm or override
before a package is published, and the report produced by the automatic
insight sanitizer.
"""

from enum import Enum

from pydantic import Field

from memonex.models.base import MemonexModel, ReviewerKind, utc_now_iso


class PrivacyKind(str, Enum):
    """What a privacy rule protects."""

    SECRET = "secret"
    PII = "pii"
    HIGH_RISK = "high-risk"
    PROMPT = "prompt"


class PrivacyAction(str, Enum):
    """Action for a privacy flag or sanitizer rule."""

    REDACT = "REDACT"  # Replace the match
    KEEP = "KEEP"      # Seller chose to publish the match as-is
    DROP = "DROP"      # Sanitizer removes the whole insight


class PrivacyFlag(MemonexModel):
    """A single match flagged by the privacy review scanner."""

    id: str
    kind: PrivacyKind
    pattern: str = Field(description="Label of the rule that matched")
    location: str
    snippet: str = Field(description="Masked excerpt of the match")
    action: PrivacyAction = PrivacyAction.REDACT
    overridden: bool = False


class PrivacyReviewSummary(MemonexModel):
    total_flagged: int = 0
    redacted: int = 0
    kept: int = 0
    overridden: int = 0


class PrivacyReview(MemonexModel):
    """Privacy review result after seller overrides are applied."""

    flags: list[PrivacyFlag] = Field(default_factory=list)
    summary: PrivacyReviewSummary = Field(default_factory=PrivacyReviewSummary)
    leakage_risk_score: float = Field(default=0.0, ge=0.0, le=1.0)
    reviewed_by: ReviewerKind = ReviewerKind.AUTO
    reviewed_at: str = Field(default_factory=utc_now_iso)
    approved: bool = True


class PrivacyRuleHit(MemonexModel):
    """Aggregated hits of one sanitizer rule across a batch of insights."""

    rule_id: str
    kind: PrivacyKind
    action: PrivacyAction
    count: int = 0


class PrivacyReportSummary(MemonexModel):
    secrets_removed: int = 0
    pii_removed: int = 0
    high_risk_segments_dropped: int = 0


class PrivacyReport(MemonexModel):
    """Report produced by the automatic insight sanitizer."""

    blocked: bool = False
    summary: PrivacyReportSummary = Field(default_factory=PrivacyReportSummary)
    hits: list[PrivacyRuleHit] = Field(default_factory=list)
    notes: list[str] = Field(default_factory=list)
    leakage_risk_score: float = Field(default=0.0, ge=0.0, le=1.0)
