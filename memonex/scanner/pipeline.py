"""
Two-Phase Scan Orchestrator

Triage runs the cheap rule subset plus the structural checks on every
package. The deep phase runs the full catalog, but only when the caller
asks for it or triage found something above low severity, so large benign
packages stay cheap to scan.

    triage ──(deep requested or flag > low)──> deep ──> merge + score
       └──────────────────(otherwise)──────────────────────┘
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import field_validator

from memonex.config import get_settings
from memonex.models.base import (
    ContentType,
    FlagAction,
    MemonexModel,
    ScanMode,
    Severity,
    ThreatCategory,
    normalize_content_type,
)
from memonex.models.package import MemoryPackage
from memonex.models.threat import ScanResult, ThreatFlag
from memonex.monitoring.logging import log_duration
from memonex.scanner.checks import check_websocket_ports, run_triage_checks
from memonex.scanner.evaluator import evaluate_rules, make_flag
from memonex.scanner.rules import DEFAULT_CATALOG, RuleCatalog
from memonex.scanner.schema import (
    check_size_limits,
    coerce_package,
    imprint_flags,
    schema_error_flags,
    validate_imprint_structure,
    validate_schema,
)
from memonex.scanner.scoring import build_scan_result, merge_flags
from memonex.scanner.targets import collect_memory_text, extract_targets
from memonex.scanner.tone import ToneResult, classify_tone

logger = structlog.get_logger(__name__)


class ScanOptions(MemonexModel):
    """Caller options for a scan. Unset fields fall back to package metadata and settings."""

    content_type: ContentType | None = None
    mode: ScanMode | None = None

    @field_validator("content_type", mode="before")
    @classmethod
    def accept_legacy_content_type(cls, v: Any) -> Any:
        return normalize_content_type(v)


@dataclass
class TriageResult:
    flags: list[ThreatFlag] = field(default_factory=list)
    needs_deep: bool = False


def resolve_content_type(package: MemoryPackage, options: ScanOptions | None = None) -> ContentType:
    """Explicit option, then the package's own metadata, then knowledge."""
    if options is not None and options.content_type:
        return ContentType(options.content_type)
    return package.declared_content_type or ContentType.KNOWLEDGE


def resolve_mode(options: ScanOptions | None = None) -> ScanMode:
    if options is not None and options.mode:
        return ScanMode(options.mode)
    return ScanMode(get_settings().default_scan_mode)


def _tone_for(package: MemoryPackage, content_type: ContentType) -> ToneResult | None:
    if content_type != ContentType.IMPRINT:
        return None
    return classify_tone(collect_memory_text(package))


def _triage_tone_flag(tone: ToneResult) -> ThreatFlag | None:
    if tone.is_injection:
        return make_flag(
            flag_id="imprint:tone-injection:triage",
            rule_id="imprint:tone-injection",
            severity=Severity.CRITICAL,
            category=ThreatCategory.PROMPT_INJECTION,
            message="Imprint tone resembles prompt injection",
            location="imprint.tone",
            snippet=f"imperative {tone.imperative_ratio:.2f}",
            action=FlagAction.BLOCK,
        )
    if not tone.is_personality:
        return make_flag(
            flag_id="imprint:tone-ambiguous:triage",
            rule_id="imprint:tone-ambiguous",
            severity=Severity.LOW,
            category=ThreatCategory.PROMPT_INJECTION,
            message="Imprint tone ambiguous",
            location="imprint.tone",
            snippet=f"first-person {tone.first_person_ratio:.2f}",
            action=FlagAction.WARN,
        )
    return None


def scan_triage(
    package: MemoryPackage,
    options: ScanOptions | None = None,
    catalog: RuleCatalog = DEFAULT_CATALOG,
) -> TriageResult:
    """
    Run the triage phase.

    Returns the triage flags and whether the deep phase should follow.
    A result holding only low-severity flags does not escalate.
    """
    content_type = resolve_content_type(package, options)
    tone = _tone_for(package, content_type)
    targets = extract_targets(package)

    flags = evaluate_rules(targets, catalog.triage_rules, content_type, tone)
    for target in targets:
        flags.extend(run_triage_checks(target.text, target.location))

    count = len(package.insight_list)
    threshold = get_settings().many_insights_threshold
    if count > threshold:
        flags.append(make_flag(
            flag_id="prog:insight-count:triage",
            rule_id="prog:insight-count",
            severity=Severity.LOW,
            category=ThreatCategory.SCHEMA,
            message=f"High insight count (>{threshold})",
            location="package",
            snippet=f"{count} insights",
            action=FlagAction.WARN,
        ))

    if tone is not None:
        tone_flag = _triage_tone_flag(tone)
        if tone_flag is not None:
            flags.append(tone_flag)

    needs_deep = resolve_mode(options) == ScanMode.DEEP or any(
        f.severity != Severity.LOW for f in flags
    )
    return TriageResult(flags=flags, needs_deep=needs_deep)


def scan_deep(
    package: MemoryPackage,
    options: ScanOptions | None = None,
    catalog: RuleCatalog = DEFAULT_CATALOG,
) -> list[ThreatFlag]:
    """Run the deep phase: full catalog, WebSocket ports and tone conflict."""
    content_type = resolve_content_type(package, options)
    tone = _tone_for(package, content_type)
    targets = extract_targets(package)

    flags = evaluate_rules(targets, catalog.rules, content_type, tone)
    for target in targets:
        flags.extend(check_websocket_ports(target.text, target.location))

    if tone is not None and tone.is_personality and tone.is_injection:
        flags.append(make_flag(
            flag_id="imprint:tone-conflict:deep",
            rule_id="imprint:tone-conflict",
            severity=Severity.MEDIUM,
            category=ThreatCategory.PROMPT_INJECTION,
            message="Imprint tone mixes personality + imperatives",
            location="imprint.tone",
            snippet=f"imperative {tone.imperative_ratio:.2f}",
            action=FlagAction.WARN,
        ))

    return flags


def structure_flags(package: MemoryPackage, content_type: ContentType) -> list[ThreatFlag]:
    """Size limits, required fields and, for imprints, imprint structure."""
    flags = check_size_limits(package, extract_targets(package))
    flags.extend(schema_error_flags(validate_schema(package)))
    if content_type == ContentType.IMPRINT:
        validation = validate_imprint_structure(package.meta, collect_memory_text(package))
        flags.extend(imprint_flags(validation))
    return flags


def scan(
    package: MemoryPackage | Mapping[str, Any],
    options: ScanOptions | None = None,
    catalog: RuleCatalog = DEFAULT_CATALOG,
) -> ScanResult:
    """
    Scan a package and return the scored verdict.

    Accepts a MemoryPackage or a raw mapping in wire format. Malformed
    input never raises; it shows up as critical schema flags.
    """
    package, coercion_flags = coerce_package(package)
    content_type = resolve_content_type(package, options)
    phase_options = ScanOptions(
        content_type=content_type,
        mode=options.mode if options is not None else None,
    )

    with log_duration(
        logger, "scan", level="debug",
        package_id=package.package_id, content_type=content_type.value,
    ):
        flags = coercion_flags + structure_flags(package, content_type)

        triage = scan_triage(package, phase_options, catalog)
        deep_flags: list[ThreatFlag] = []
        if triage.needs_deep:
            logger.debug(
                "deep_scan_escalated",
                package_id=package.package_id,
                triage_flags=len(triage.flags),
            )
            deep_flags = scan_deep(package, phase_options, catalog)

        merged = merge_flags(flags, triage.flags, deep_flags)
        result = build_scan_result(merged, len(package.insight_list), content_type)

    logger.info(
        "scan_complete",
        package_id=package.package_id,
        content_type=content_type.value,
        deep=triage.needs_deep,
        flags=result.summary.total,
        blocked=result.summary.blocked,
        threat_score=round(result.threat_score, 4),
        safe_to_import=result.safe_to_import,
    )
    return result
