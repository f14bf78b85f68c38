"""
Import Gate Service

Buyer-side safety step run before any purchased package touches the
buyer's memory: scan, optionally force-accept blocked content, strip what
stays blocked and report. Writing the cleaned package anywhere is the
caller's job.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import Field

from memonex.models.base import ContentType, MemonexModel
from memonex.models.package import MemoryPackage
from memonex.models.threat import ScanResult
from memonex.scanner.actions import apply_actions, force_override
from memonex.scanner.pipeline import ScanOptions, scan
from memonex.scanner.report import format_safety_report
from memonex.scanner.rules import DEFAULT_CATALOG, RuleCatalog
from memonex.scanner.schema import coerce_package
from memonex.scanner.scoring import merge_flags

logger = structlog.get_logger(__name__)

SCAN_SKIPPED_WARNING = "Safety scan was skipped"
ALL_BLOCKED_WARNING = "All insights blocked — import aborted"


class ImportOptions(MemonexModel):
    """Buyer choices for one import."""

    force_import: bool = Field(default=False, description="Accept BLOCK flags as warnings")
    skip_safety_scan: bool = Field(default=False, description="Import without scanning")
    scan_options: ScanOptions = Field(default_factory=ScanOptions)


class ImportScreening(MemonexModel):
    """Result of screening a package for import."""

    success: bool
    package_id: str | None = None
    cleaned: MemoryPackage
    insights_imported: int = 0
    insights_blocked: int = 0
    safety_report: ScanResult
    warnings: list[str] = Field(default_factory=list)


def empty_safety_report(content_type: ContentType | str = ContentType.KNOWLEDGE) -> ScanResult:
    return ScanResult(content_type=content_type)


def screen_import(
    package: MemoryPackage | Mapping[str, Any],
    options: ImportOptions | None = None,
    catalog: RuleCatalog = DEFAULT_CATALOG,
) -> ImportScreening:
    """
    Screen a purchased package.

    A package whose insights are all blocked comes back with
    `success=False` and an explanatory warning instead of an exception,
    so the caller can retry with `force_import`.
    """
    options = options or ImportOptions()
    warnings: list[str] = []
    package, coercion_flags = coerce_package(package)

    if options.skip_safety_scan:
        logger.warning("safety_scan_skipped", package_id=package.package_id)
        return ImportScreening(
            success=True,
            package_id=package.package_id,
            cleaned=package,
            insights_imported=len(package.insight_list),
            safety_report=empty_safety_report(package.declared_content_type or ContentType.KNOWLEDGE),
            warnings=[SCAN_SKIPPED_WARNING],
        )

    result = scan(package, options.scan_options, catalog)
    flags = merge_flags(coercion_flags, result.flags)
    if options.force_import:
        flags = force_override(flags)
    outcome = apply_actions(package, flags)
    report = outcome.report

    removed = report.summary.insights_removed
    if removed > 0:
        warnings.append(f"{removed} insight(s) blocked by safety scanner")

    if not report.safe_to_import and not options.force_import and not outcome.cleaned.insight_list:
        logger.warning(
            "import_aborted",
            package_id=package.package_id,
            insights_blocked=removed,
            threat_score=round(report.threat_score, 4),
        )
        return ImportScreening(
            success=False,
            package_id=package.package_id,
            cleaned=outcome.cleaned,
            insights_imported=0,
            insights_blocked=removed,
            safety_report=report,
            warnings=[*warnings, ALL_BLOCKED_WARNING],
        )

    if report.flags:
        logger.info("import_safety_report", package_id=package.package_id, report=format_safety_report(report))

    logger.info(
        "import_screened",
        package_id=package.package_id,
        forced=options.force_import,
        insights_imported=len(outcome.cleaned.insight_list),
        insights_blocked=removed,
        safe_to_import=report.safe_to_import,
    )
    return ImportScreening(
        success=True,
        package_id=package.package_id,
        cleaned=outcome.cleaned,
        insights_imported=len(outcome.cleaned.insight_list),
        insights_blocked=removed,
        safety_report=report,
        warnings=warnings,
    )
