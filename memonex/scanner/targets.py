"""
Scan target extraction.

Flattens every human-authored text surface of a package into ordered
(location, text) pairs. Insight locations are `insight:<id>.<field>` and
attachment locations `attachment:<name>`; the action applicator relies on
those prefixes to map flags back to removable units.
"""

from __future__ import annotations

from typing import NamedTuple

from memonex.models.package import ImprintMeta, MemoryPackage

# Imprint list fields in scan order: (attribute, wire name used in locations)
IMPRINT_LIST_FIELDS = (
    ("catchphrases", "catchphrases"),
    ("activation_triggers", "activationTriggers"),
    ("behavioral_effects", "behavioralEffects"),
    ("traits", "traits"),
    ("forbidden_contexts", "forbiddenContexts"),
    ("compatibility_tags", "compatibilityTags"),
)


class ScanTarget(NamedTuple):
    location: str
    text: str


def _imprint_targets(meta: ImprintMeta) -> list[ScanTarget]:
    targets = []
    for attr, wire_name in IMPRINT_LIST_FIELDS:
        for idx, value in enumerate(getattr(meta, attr) or []):
            targets.append(ScanTarget(f"meta.{wire_name}[{idx}]", value))
    if meta.series:
        targets.append(ScanTarget("meta.series", meta.series))
    return targets


def extract_targets(package: MemoryPackage) -> list[ScanTarget]:
    """
    Extract all scannable text from a package, in a stable order.

    Missing optional fields are skipped. Imprint metadata strings are only
    included when the package's own metadata is the imprint variant.
    """
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

    if package.imprint_meta is not None:
        targets.extend(_imprint_targets(package.imprint_meta))

    return targets


def collect_memory_text(package: MemoryPackage) -> str:
    """
    Join the package's narrative text into one string.

    This is the text the tone classifier and the imprint size check read:
    title, description, insight titles and contents, and imprint strings.
    Empty parts are dropped.
    """
    parts: list[str] = [package.title or "", package.description or ""]
    for insight in package.insight_list:
        parts.extend((insight.title, insight.content))

    meta = package.imprint_meta
    if meta is not None:
        for attr, _ in IMPRINT_LIST_FIELDS:
            parts.extend(getattr(meta, attr) or [])
        parts.append(meta.series or "")

    return " ".join(part for part in parts if part)


def total_text_bytes(targets: list[ScanTarget]) -> int:
    """UTF-8 size of all scan targets together."""
    return sum(len(target.text.encode("utf-8")) for target in targets)
