"""
Threat Scan Models

Flags produced by the import safety scanner and the scan result handed to
import pipelines and human reviewers.
"""

from pydantic import Field

from memonex.models.base import (
    ContentType,
    FlagAction,
    MemonexModel,
    ReviewerKind,
    Severity,
    ThreatCategory,
    utc_now_iso,
)


class ThreatFlag(MemonexModel):
    """
    One rule firing on one location.

    The snippet is always a masked excerpt, never the full matched text,
    so a report cannot itself leak what it flagged.
    """

    id: str
    severity: Severity
    category: ThreatCategory
    rule_id: str
    message: str
    location: str
    snippet: str
    action: FlagAction
    overridden: bool = False
    score_weight: float = Field(ge=0.0, le=1.0)

    @property
    def is_active(self) -> bool:
        """Overridden flags no longer count towards score or removal."""
        return not self.overridden

    @property
    def is_blocking(self) -> bool:
        return self.action == FlagAction.BLOCK and not self.overridden

    @property
    def dedupe_key(self) -> tuple[str, str, str]:
        return (self.rule_id, self.location, self.snippet)


class ScanSummary(MemonexModel):
    """Counts over a flag set."""

    total: int = 0
    blocked: int = 0
    warned: int = 0
    passed: int = 0
    overridden: int = 0
    insights_removed: int = 0


class ScanResult(MemonexModel):
    """Outcome of a scan: flags, counts, score and verdict."""

    flags: list[ThreatFlag] = Field(default_factory=list)
    summary: ScanSummary = Field(default_factory=ScanSummary)
    threat_score: float = Field(default=0.0, ge=0.0, le=1.0)
    safe_to_import: bool = True
    reviewed_by: ReviewerKind = ReviewerKind.AUTO
    reviewed_at: str = Field(default_factory=utc_now_iso)
    content_type: ContentType = ContentType.KNOWLEDGE

    @property
    def blocking_flags(self) -> list[ThreatFlag]:
        return [f for f in self.flags if f.is_blocking]
