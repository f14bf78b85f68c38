"""
Memonex Guard - Import Safety Scanner

Two-phase, rule-driven threat scanning for memory packages:
- Rule catalog and evaluator
- Tone classification for imprint content
- Structural and programmatic checks
- Merging, scoring and action application
"""

from .actions import ActionOutcome, apply_actions, force_override
from .evaluator import evaluate_rules, mask_snippet
from .pipeline import ScanOptions, TriageResult, resolve_content_type, scan, scan_deep, scan_triage
from .report import format_safety_report
from .rules import DEFAULT_CATALOG, RuleCatalog, ThreatRule
from .schema import ImprintValidation, coerce_package, validate_imprint_structure, validate_schema
from .scoring import build_scan_result, merge_flags, score_threats, summarize_flags
from .targets import ScanTarget, collect_memory_text, extract_targets
from .tone import ToneResult, classify_tone

__all__ = [
    # Orchestration
    "ScanOptions",
    "TriageResult",
    "resolve_content_type",
    "scan",
    "scan_deep",
    "scan_triage",
    # Rules
    "DEFAULT_CATALOG",
    "RuleCatalog",
    "ThreatRule",
    "evaluate_rules",
    "mask_snippet",
    # Targets and tone
    "ScanTarget",
    "collect_memory_text",
    "extract_targets",
    "ToneResult",
    "classify_tone",
    # Structure
    "ImprintValidation",
    "coerce_package",
    "validate_imprint_structure",
    "validate_schema",
    # Scoring and actions
    "build_scan_result",
    "merge_flags",
    "score_threats",
    "summarize_flags",
    "ActionOutcome",
    "apply_actions",
    "force_override",
    "format_safety_report",
]
