"""
Action application.

Turns a flag set into a cleaned package: insights and attachments with an
active BLOCK flag are filtered out, everything else keeps its order. The
input package is never modified.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

import structlog

from memonex.models.base import ContentType, FlagAction
from memonex.models.package import MemoryPackage
from memonex.models.threat import ScanResult, ThreatFlag
from memonex.scanner.scoring import (
    blocked_attachment_names,
    blocked_insight_ids,
    build_scan_result,
)

logger = structlog.get_logger(__name__)


@dataclass
class ActionOutcome:
    cleaned: MemoryPackage
    report: ScanResult


def force_override(flags: Iterable[ThreatFlag]) -> list[ThreatFlag]:
    """
    Accept blocked content on the caller's authority.

    Every BLOCK flag comes back overridden and downgraded to WARN; other
    flags are returned unchanged. The input flags are not modified.
    """
    return [
        flag.model_copy(update={"overridden": True, "action": FlagAction.WARN.value})
        if flag.action == FlagAction.BLOCK
        else flag
        for flag in flags
    ]


def apply_actions(package: MemoryPackage, flags: list[ThreatFlag]) -> ActionOutcome:
    """
    Remove blocked insights and attachments and recompute the report.

    Overridden flags never remove content, whatever their severity.
    """
    insight_ids = blocked_insight_ids(flags)
    attachment_names = blocked_attachment_names(flags)

    update: dict = {}
    if package.insights is not None:
        update["insights"] = [i for i in package.insights if i.id not in insight_ids]
    if package.attachments is not None:
        update["attachments"] = [a for a in package.attachments if a.name not in attachment_names]
    cleaned = package.model_copy(update=update)

    content_type = package.declared_content_type or ContentType.KNOWLEDGE
    report = build_scan_result(list(flags), len(package.insight_list), content_type)

    logger.info(
        "actions_applied",
        package_id=package.package_id,
        insights_removed=report.summary.insights_removed,
        attachments_removed=len(package.attachments or []) - len(cleaned.attachments or []),
        overridden=report.summary.overridden,
    )
    return ActionOutcome(cleaned=cleaned, report=report)
