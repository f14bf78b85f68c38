"""Plain-text rendering of scan results for human reviewers."""

from __future__ import annotations

from memonex.models.base import Severity
from memonex.models.threat import ScanResult, ThreatFlag


def flag_prefix(flag: ThreatFlag) -> str:
    if flag.severity == Severity.CRITICAL:
        return "[DANGER]"
    if flag.severity == Severity.LOW:
        return "[INFO]"
    return "[WARN]"


def format_safety_report(result: ScanResult) -> str:
    """Status line, counts, then one line per flag."""
    status = "SAFE" if result.safe_to_import else "UNSAFE"
    summary = result.summary
    lines = [
        f"Import safety: {status} (score: {result.threat_score:.2f})",
        f"Total flagged: {summary.total}",
        f"  Blocked: {summary.blocked}",
        f"  Warned: {summary.warned}",
        f"  Passed: {summary.passed}",
        f"  Overridden: {summary.overridden}",
        f"Insights removed: {summary.insights_removed}",
    ]

    if result.flags:
        lines.extend(["", "Flags:"])
        for flag in result.flags:
            lines.append(f"  {flag_prefix(flag)} {flag.message} @ {flag.location}: {flag.snippet}")

    return "\n".join(lines)
