"""
Scoring Tests for Memonex Guard

Tests for flag merging, blocked-unit detection, summary counts, the
threat score formula and the safe-to-import verdict.
"""

import pytest

from memonex.models.base import FlagAction, Severity, ThreatCategory, default_action
from memonex.scanner.evaluator import make_flag
from memonex.scanner.scoring import (
    blocked_attachment_names,
    blocked_insight_ids,
    build_scan_result,
    merge_flags,
    score_threats,
    summarize_flags,
)


def flag(
    severity=Severity.MEDIUM,
    category=ThreatCategory.CODE_EXECUTION,
    location="package",
    rule_id="test:rule",
    snippet="snippet",
    action=None,
    overridden=False,
):
    f = make_flag(
        flag_id=f"{rule_id}:1",
        rule_id=rule_id,
        severity=severity,
        category=category,
        message="Test flag",
        location=location,
        snippet=snippet,
        action=action or default_action(severity),
    )
    if overridden:
        f = f.model_copy(update={"overridden": True, "action": FlagAction.WARN.value})
    return f


# =============================================================================
# Merging
# =============================================================================


class TestMergeFlags:
    """Tests for merge_flags."""

    def test_union(self):
        a = flag(rule_id="a")
        b = flag(rule_id="b")

        assert merge_flags([a], [b]) == [a, b]

    def test_duplicates_collapse_to_heaviest(self):
        light = flag(severity=Severity.LOW)
        heavy = flag(severity=Severity.CRITICAL)
        other = flag(rule_id="other")

        merged = merge_flags([light, other], [heavy])

        assert merged == [heavy, other]

    def test_equal_severity_keeps_first(self):
        first = flag()
        second = first.model_copy(update={"id": "test:rule:2"})

        assert merge_flags([first], [second]) == [first]

    def test_different_snippet_not_duplicate(self):
        assert len(merge_flags([flag(snippet="x")], [flag(snippet="y")])) == 2

    def test_empty(self):
        assert merge_flags() == []


# =============================================================================
# Blocked Units
# =============================================================================


class TestBlockedUnits:
    def test_insight_ids(self):
        flags = [
            flag(severity=Severity.CRITICAL, location="insight:a.title"),
            flag(severity=Severity.CRITICAL, location="insight:a.content", rule_id="x"),
            flag(severity=Severity.HIGH, location="insight:b.content"),
            flag(severity=Severity.MEDIUM, location="insight:c.content"),
            flag(severity=Severity.CRITICAL, location="insight:d.content", overridden=True),
            flag(severity=Severity.CRITICAL, location="package.title"),
        ]

        assert blocked_insight_ids(flags) == {"a", "b"}

    def test_attachment_names(self):
        flags = [
            flag(severity=Severity.CRITICAL, location="attachment:evil.md"),
            flag(severity=Severity.MEDIUM, location="attachment:ok.md"),
        ]

        assert blocked_attachment_names(flags) == {"evil.md"}


class TestSummarizeFlags:
    def test_counts(self):
        flags = [
            flag(severity=Severity.CRITICAL, location="insight:a.content"),
            flag(severity=Severity.MEDIUM, rule_id="m"),
            flag(severity=Severity.LOW, rule_id="l"),
            flag(severity=Severity.CRITICAL, rule_id="o", location="insight:b.content", overridden=True),
        ]

        summary = summarize_flags(flags, total_insights=2)

        assert summary.total == 4
        assert summary.blocked == 1
        assert summary.warned == 2
        assert summary.passed == 1
        assert summary.overridden == 1
        assert summary.insights_removed == 1

    def test_removed_capped_at_total(self):
        flags = [
            flag(severity=Severity.CRITICAL, location=f"insight:{i}.content", rule_id=f"r{i}")
            for i in range(3)
        ]

        assert summarize_flags(flags, total_insights=2).insights_removed == 2


# =============================================================================
# Score and Verdict
# =============================================================================


class TestScoreThreats:
    """Tests for score_threats."""

    def test_no_flags(self):
        assert score_threats([], total_insights=3, insights_removed=0) == (0.0, True)

    def test_severity_weights(self):
        flags = [
            flag(severity=Severity.HIGH, rule_id="h"),
            flag(severity=Severity.MEDIUM, rule_id="m"),
            flag(severity=Severity.LOW, rule_id="l"),
        ]

        score, safe = score_threats(flags, total_insights=1, insights_removed=0)

        assert score == pytest.approx(0.35)
        assert safe is True

    @pytest.mark.parametrize(
        "category,bonus",
        [
            (ThreatCategory.PROMPT_INJECTION, 0.20),
            (ThreatCategory.DATA_EXFILTRATION, 0.20),
            (ThreatCategory.OBFUSCATION, 0.10),
            (ThreatCategory.PRIVACY, 0.0),
        ],
    )
    def test_category_bonus(self, category, bonus):
        score, _ = score_threats([flag(severity=Severity.LOW, category=category)], 1, 0)

        assert score == pytest.approx(0.05 + bonus)

    def test_bonus_applied_once_per_category(self):
        flags = [
            flag(severity=Severity.LOW, category=ThreatCategory.OBFUSCATION, rule_id="a"),
            flag(severity=Severity.LOW, category=ThreatCategory.OBFUSCATION, rule_id="b"),
        ]

        score, _ = score_threats(flags, 1, 0)

        assert score == pytest.approx(0.20)

    def test_removed_fraction(self):
        score, _ = score_threats([], total_insights=4, insights_removed=1)

        assert score == pytest.approx(0.05)

    def test_zero_insights_divides_by_one(self):
        score, _ = score_threats([], total_insights=0, insights_removed=0)

        assert score == 0.0

    def test_clamped(self):
        flags = [flag(severity=Severity.CRITICAL, rule_id=f"c{i}") for i in range(5)]

        score, safe = score_threats(flags, 1, 1)

        assert score == 1.0
        assert safe is False

    def test_critical_veto_below_threshold(self):
        """A lone critical flag is unsafe even though 0.35 < 0.6."""
        score, safe = score_threats([flag(severity=Severity.CRITICAL)], 1, 0)

        assert score == pytest.approx(0.35)
        assert safe is False

    def test_threshold_without_critical(self):
        flags = [flag(severity=Severity.HIGH, rule_id=f"h{i}") for i in range(3)]

        score, safe = score_threats(flags, 1, 0)

        assert score >= 0.6
        assert safe is False

    def test_overridden_flags_ignored(self):
        flags = [flag(severity=Severity.CRITICAL, category=ThreatCategory.PROMPT_INJECTION, overridden=True)]

        assert score_threats(flags, 1, 0) == (0.0, True)

    def test_threshold_from_settings(self, monkeypatch):
        monkeypatch.setenv("MEMONEX_UNSAFE_SCORE_THRESHOLD", "0.3")

        _, safe = score_threats([flag(severity=Severity.HIGH, rule_id="a"), flag(severity=Severity.MEDIUM)], 1, 0)

        assert safe is False


class TestBuildScanResult:
    def test_full_formula(self):
        """Critical injection on one of two insights: 0.35 + 0.20 + 0.5 * 0.20."""
        flags = [
            flag(
                severity=Severity.CRITICAL,
                category=ThreatCategory.PROMPT_INJECTION,
                location="insight:a.content",
            ),
        ]

        result = build_scan_result(flags, total_insights=2, content_type="knowledge")

        assert result.threat_score == pytest.approx(0.65)
        assert result.safe_to_import is False
        assert result.summary.insights_removed == 1
        assert result.content_type == "knowledge"

    def test_zero_insights(self):
        flags = [flag(severity=Severity.CRITICAL, location="insight:a.content")]

        result = build_scan_result(flags, total_insights=0, content_type="knowledge")

        assert result.summary.insights_removed == 1
        assert 0.0 <= result.threat_score <= 1.0
