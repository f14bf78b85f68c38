"""
Rule evaluation over scan targets.

Applies a rule subset to a list of targets and turns each match into a
ThreatFlag. Flags never carry the full matched text; the snippet is masked
so the report cannot become a leakage vector of its own.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from functools import partial

import structlog

from memonex.config import get_settings
from memonex.models.base import (
    ContentType,
    FlagAction,
    Severity,
    ThreatCategory,
    severity_weight,
)
from memonex.models.threat import ThreatFlag
from memonex.scanner.rules import ThreatRule
from memonex.scanner.targets import ScanTarget
from memonex.scanner.tone import ToneResult
from memonex.security.safe_regex import RegexTimeoutError, run_guarded

logger = structlog.get_logger(__name__)

MAX_SNIPPET_CHARS = 80
SNIPPET_HEAD = 40
SNIPPET_TAIL = 36

_WHITESPACE = re.compile(r"\s+")


def mask_snippet(value: str) -> str:
    """Collapse whitespace and cut long values to head + ellipsis + tail."""
    compact = _WHITESPACE.sub(" ", value).strip()
    if len(compact) <= MAX_SNIPPET_CHARS:
        return compact
    return f"{compact[:SNIPPET_HEAD]}…{compact[-SNIPPET_TAIL:]}"


def make_flag(
    *,
    flag_id: str,
    rule_id: str,
    severity: Severity,
    category: ThreatCategory,
    message: str,
    location: str,
    snippet: str,
    action: FlagAction,
) -> ThreatFlag:
    """Build a flag whose score weight follows its severity."""
    return ThreatFlag(
        id=flag_id,
        severity=severity,
        category=category,
        rule_id=rule_id,
        message=message,
        location=location,
        snippet=snippet,
        action=action,
        overridden=False,
        score_weight=severity_weight(severity),
    )


def build_flag(rule: ThreatRule, location: str, match: str, counter: int) -> ThreatFlag:
    return make_flag(
        flag_id=f"{rule.id}:{counter}",
        rule_id=rule.id,
        severity=rule.severity,
        category=rule.category,
        message=rule.message,
        location=location,
        snippet=mask_snippet(match),
        action=rule.resolved_action,
    )


def is_rule_suppressed(
    rule: ThreatRule,
    content_type: ContentType | str,
    tone: ToneResult | None,
) -> bool:
    """
    Personality waiver: roleplay-style rules are skipped for imprint content
    whose tone reads as personality and not as injection.
    """
    if content_type != ContentType.IMPRINT or not rule.allow_for_personality:
        return False
    return tone is not None and tone.is_personality and not tone.is_injection


def _rule_hits(rule: ThreatRule, text: str) -> list[str]:
    if not rule.context_matches(text):
        return []
    return list(rule.find_matches(text))


def rule_hits(rule: ThreatRule, text: str) -> list[str]:
    """
    Matched text for one rule over one target.

    Untrusted rules run through `run_guarded`.

    Raises:
        RegexTimeoutError: If an untrusted rule runs past its timeout
    """
    if rule.trusted:
        return _rule_hits(rule, text)
    return run_guarded(partial(_rule_hits, rule), text, timeout=get_settings().custom_rule_timeout)


def timeout_flag(rule: ThreatRule, location: str) -> ThreatFlag:
    return make_flag(
        flag_id=f"prog:rule-timeout:{rule.id}",
        rule_id="prog:rule-timeout",
        severity=Severity.MEDIUM,
        category=ThreatCategory.SCHEMA,
        message=f"Rule {rule.id} timed out on this text",
        location=location,
        snippet=rule.id,
        action=FlagAction.WARN,
    )


def evaluate_rules(
    targets: Iterable[ScanTarget],
    rules: Iterable[ThreatRule],
    content_type: ContentType | str,
    tone: ToneResult | None = None,
) -> list[ThreatFlag]:
    """
    Run every rule over every target.

    Each match yields its own flag, so the same rule can flag one target
    several times. Flag ids are `<rule_id>:<n>` with `n` counting across
    the whole call.
    """
    rules = tuple(rules)
    flags: list[ThreatFlag] = []
    counter = 0

    for target in targets:
        for rule in rules:
            if is_rule_suppressed(rule, content_type, tone):
                continue
            try:
                hits = rule_hits(rule, target.text)
            except RegexTimeoutError:
                logger.warning("rule_evaluation_timed_out", rule_id=rule.id, location=target.location)
                flags.append(timeout_flag(rule, target.location))
                continue
            for match in hits:
                counter += 1
                flags.append(build_flag(rule, target.location, match, counter))

    return flags
