"""
Schema and structure validation.

Structural problems never raise: every missing field, exceeded limit or
malformed imprint block becomes a flag, so callers always get a ScanResult
back even for garbage input.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import ValidationError

from memonex.config import get_settings
from memonex.models.base import FlagAction, Severity, ThreatCategory
from memonex.models.package import PACKAGE_SCHEMA, ImprintMeta, MemoryPackage, PackageMeta
from memonex.models.threat import ThreatFlag
from memonex.scanner.evaluator import make_flag, mask_snippet
from memonex.scanner.targets import ScanTarget, total_text_bytes
from memonex.scanner.tone import classify_tone

logger = structlog.get_logger(__name__)

# Imprint arrays that must be non-empty: (attribute, wire name)
REQUIRED_IMPRINT_FIELDS = (
    ("catchphrases", "catchphrases"),
    ("activation_triggers", "activationTriggers"),
    ("behavioral_effects", "behavioralEffects"),
)

# Soft caps on imprint arrays: (attribute, cap, warning)
IMPRINT_ARRAY_CAPS = (
    ("catchphrases", 8, "Too many catchphrases (max 8)"),
    ("activation_triggers", 12, "Too many activation triggers (max 12)"),
    ("behavioral_effects", 8, "Too many behavioral effects (max 8)"),
)

MIN_IMPRINT_FIRST_PERSON = 0.02
MAX_IMPRINT_IMPERATIVE = 0.04


@dataclass
class ImprintMetrics:
    memory_chars: int
    first_person_ratio: float
    imperative_ratio: float
    has_required_fields: bool


@dataclass
class ImprintValidation:
    """Outcome of imprint structure validation."""

    ok: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    metrics: ImprintMetrics | None = None


def validate_schema(package: MemoryPackage | None) -> list[str]:
    """
    Check that every required package field is present.

    Returns:
        Human-readable error strings, empty when the package is well formed
    """
    if package is None:
        return ["Package is missing"]

    errors: list[str] = []
    if package.schema_tag != PACKAGE_SCHEMA:
        errors.append("Invalid schema version")
    if not package.package_id:
        errors.append("Missing packageId")
    if not package.title:
        errors.append("Missing title")
    if package.topics is None:
        errors.append("Missing topics array")
    if not package.audience:
        errors.append("Missing audience")
    if not package.created_at or not package.updated_at:
        errors.append("Missing timestamps")
    if not (package.seller and package.seller.agent_name):
        errors.append("Missing seller agentName")
    if not (package.seller and package.seller.seller_address):
        errors.append("Missing seller address")
    if not (package.extraction and package.extraction.spec):
        errors.append("Missing extraction spec")
    if package.insights is None:
        errors.append("Missing insights array")
    if not (package.license and package.license.terms):
        errors.append("Missing license terms")

    seen: set[str] = set()
    for insight in package.insight_list:
        if insight.id in seen:
            errors.append(f"Duplicate insight id: {insight.id}")
        seen.add(insight.id)

    return errors


def schema_error_flags(errors: list[str]) -> list[ThreatFlag]:
    return [
        make_flag(
            flag_id=f"schema:{error}",
            rule_id="schema:invalid",
            severity=Severity.CRITICAL,
            category=ThreatCategory.SCHEMA,
            message=error,
            location="package",
            snippet=mask_snippet(error),
            action=FlagAction.BLOCK,
        )
        for error in errors
    ]


def check_size_limits(package: MemoryPackage, targets: list[ScanTarget]) -> list[ThreatFlag]:
    """Critical blocks for too many insights or too much scannable text."""
    settings = get_settings()
    flags = []

    count = len(package.insight_list)
    if count > settings.max_insights:
        flags.append(make_flag(
            flag_id="schema:too-many-insights",
            rule_id="schema:size-limit",
            severity=Severity.CRITICAL,
            category=ThreatCategory.SCHEMA,
            message=f"Too many insights ({count} > {settings.max_insights})",
            location="package",
            snippet=f"{count} insights",
            action=FlagAction.BLOCK,
        ))

    size = total_text_bytes(targets)
    if size > settings.max_package_bytes:
        flags.append(make_flag(
            flag_id="schema:package-too-large",
            rule_id="schema:size-limit",
            severity=Severity.CRITICAL,
            category=ThreatCategory.SCHEMA,
            message=f"Package text exceeds {settings.max_package_bytes} bytes",
            location="package",
            snippet=f"{size} bytes",
            action=FlagAction.BLOCK,
        ))

    return flags


def validate_imprint_structure(meta: PackageMeta | None, memory_text: str) -> ImprintValidation:
    """
    Validate imprint metadata and the memory text it ships with.

    Errors (missing metadata, oversized memory text, empty required arrays)
    make the imprint invalid. Warnings cover soft caps and a tone that reads
    as instructions rather than a personality.
    """
    errors: list[str] = []
    warnings: list[str] = []
    tone = classify_tone(memory_text)
    max_chars = get_settings().max_imprint_chars

    if not isinstance(meta, ImprintMeta):
        errors.append("Missing imprint metadata")

    if len(memory_text) > max_chars:
        errors.append(f"Memory text exceeds {max_chars} chars")

    has_required_fields = meta is not None
    if meta is not None:
        for attr, wire_name in REQUIRED_IMPRINT_FIELDS:
            if not getattr(meta, attr, None):
                has_required_fields = False
                errors.append(f"Missing required field: {wire_name}")

        for attr, cap, warning in IMPRINT_ARRAY_CAPS:
            if len(getattr(meta, attr, None) or []) > cap:
                warnings.append(warning)

    if tone.first_person_ratio < MIN_IMPRINT_FIRST_PERSON:
        warnings.append("Low first-person voice — imprint may read like instructions")
    if tone.imperative_ratio > MAX_IMPRINT_IMPERATIVE:
        warnings.append("High imperative ratio — imprint may look like prompt injection")

    return ImprintValidation(
        ok=not errors,
        errors=errors,
        warnings=warnings,
        metrics=ImprintMetrics(
            memory_chars=len(memory_text),
            first_person_ratio=tone.first_person_ratio,
            imperative_ratio=tone.imperative_ratio,
            has_required_fields=has_required_fields,
        ),
    )


def imprint_flags(validation: ImprintValidation) -> list[ThreatFlag]:
    """Errors block, warnings only warn."""
    flags = [
        make_flag(
            flag_id=f"schema:imprint:{error}",
            rule_id="schema:imprint-invalid",
            severity=Severity.CRITICAL,
            category=ThreatCategory.SCHEMA,
            message=error,
            location="meta",
            snippet=mask_snippet(error),
            action=FlagAction.BLOCK,
        )
        for error in validation.errors
    ]
    flags.extend(
        make_flag(
            flag_id=f"schema:imprint-warning:{warning}",
            rule_id="schema:imprint-warning",
            severity=Severity.LOW,
            category=ThreatCategory.SCHEMA,
            message=warning,
            location="meta",
            snippet=mask_snippet(warning),
            action=FlagAction.WARN,
        )
        for warning in validation.warnings
    )
    return flags


def _describe_error(error: Mapping[str, Any]) -> str:
    loc = ".".join(str(part) for part in error.get("loc", ())) or "package"
    return f"Invalid {loc}: {error.get('msg', 'invalid value')}"


def _field_keys(key: str) -> set[str]:
    """Both spellings of a top-level package key: wire alias and field name."""
    for name, info in MemoryPackage.model_fields.items():
        if key in (name, info.alias):
            return {name, info.alias or name}
    return {key}


def _strip_invalid(raw: Mapping[str, Any], exc: ValidationError) -> dict[str, Any]:
    """
    Drop the parts of a raw package that failed validation.

    A bad insight removes only that insight; any other bad value removes
    its whole top-level field.
    """
    bad_fields: set[str] = set()
    bad_insights: set[int] = set()
    for error in exc.errors():
        loc = error.get("loc", ())
        if not loc:
            continue
        if loc[0] == "insights" and len(loc) > 1 and isinstance(loc[1], int):
            bad_insights.add(loc[1])
        else:
            bad_fields.update(_field_keys(str(loc[0])))

    cleaned = {key: value for key, value in raw.items() if key not in bad_fields}
    insights = cleaned.get("insights")
    if bad_insights and isinstance(insights, list):
        cleaned["insights"] = [item for idx, item in enumerate(insights) if idx not in bad_insights]
    return cleaned


def coerce_package(raw: MemoryPackage | Mapping[str, Any] | None) -> tuple[MemoryPackage, list[ThreatFlag]]:
    """
    Turn caller input into a MemoryPackage without raising.

    Returns:
        The package (possibly with invalid parts removed) and one critical
        `schema:invalid` flag per validation error
    """
    if isinstance(raw, MemoryPackage):
        return raw, []

    if not isinstance(raw, Mapping):
        message = "Package is missing" if raw is None else "Package is not an object"
        logger.warning("package_rejected", reason=message, input_type=type(raw).__name__)
        return MemoryPackage(), schema_error_flags([message])

    try:
        return MemoryPackage.model_validate(raw), []
    except ValidationError as e:
        errors = [_describe_error(err) for err in e.errors()]
        logger.warning("package_validation_failed", error_count=len(errors))
        stripped = _strip_invalid(raw, e)

    try:
        package = MemoryPackage.model_validate(stripped)
    except ValidationError as e:
        logger.warning("package_unrecoverable", error_count=e.error_count())
        package = MemoryPackage()

    return package, schema_error_flags(errors)
