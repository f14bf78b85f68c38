"""
Threat Rule Catalog

Pattern rules the import scanner evaluates against package text. Each rule
is an independent data record: pattern, optional companion-context pattern,
severity, category and optional action override. The evaluator never knows
about individual rules, so adding one means adding a record here (or
extending a catalog at runtime).

Rules marked `triage` run in the cheap first pass. The rest only run when
the scan escalates to the deep phase.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field, replace
from re import Pattern

import structlog

from memonex.models.base import FlagAction, Severity, ThreatCategory, default_action
from memonex.security.safe_regex import iter_enclosed, iter_matches, safe_compile

logger = structlog.get_logger(__name__)

# Companion context for network rules: only fire next to file or env access
EXFIL_CONTEXT = r"\b(readFile|process\.env)\b"

# Companion context for key-shaped hex: a bare tx hash must not match
KEY_CONTEXT = r"\b(private[_\s-]?key|secret[_\s-]?key|signing[_\s-]?key)\b"

SECRET_ENV_NAMES = r"(API_KEY|SECRET|PASSWORD|PASSWD|TOKEN|PRIVATE_KEY|ACCESS_KEY|AUTH_TOKEN)"


@dataclass(frozen=True)
class ThreatRule:
    """
    A single pattern rule.

    Untrusted rules (anything outside the built-in catalog) are evaluated
    under a timeout on a bounded input.
    """

    id: str
    severity: Severity
    category: ThreatCategory
    message: str
    pattern: str
    flags: int = re.IGNORECASE
    action: FlagAction | None = None
    requires_context: str | None = None
    context_flags: int = re.IGNORECASE
    triage: bool = False
    allow_for_personality: bool = False
    enclosed_by: tuple[str, str] | None = None
    trusted: bool = False

    @property
    def regex(self) -> Pattern:
        return safe_compile(self.pattern, self.flags, validate=False)

    @property
    def context_regex(self) -> Pattern | None:
        if self.requires_context is None:
            return None
        return safe_compile(self.requires_context, self.context_flags, validate=False)

    @property
    def resolved_action(self) -> FlagAction:
        """Explicit override, else the default for the rule's severity."""
        return FlagAction(self.action) if self.action else default_action(self.severity)

    def context_matches(self, text: str) -> bool:
        """True when the rule has no companion context or the context is present."""
        context = self.context_regex
        return context is None or context.search(text) is not None

    def find_matches(self, text: str) -> Iterator[str]:
        """
        Yield matched text for each hit.

        Rules with `enclosed_by` search each delimited section's body and
        yield the whole section, at most once per section.
        """
        if self.enclosed_by is None:
            yield from iter_matches(self.regex, text)
            return
        opener, closer = self.enclosed_by
        for span, body in iter_enclosed(text, opener, closer):
            if self.regex.search(body):
                yield span

    def validate(self) -> None:
        """
        Check both patterns for ReDoS-prone shapes and compile errors.

        Raises:
            RegexValidationError: If either pattern is unsafe or invalid
        """
        safe_compile(self.pattern, self.flags)
        if self.requires_context is not None:
            safe_compile(self.requires_context, self.context_flags)


@dataclass(frozen=True)
class RuleCatalog:
    """
    Immutable, ordered set of threat rules.

    Catalogs are values: `extend` returns a new catalog and leaves the
    receiver untouched.
    """

    rules: tuple[ThreatRule, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for rule in self.rules:
            if rule.id in seen:
                raise ValueError(f"Duplicate rule id: {rule.id}")
            seen.add(rule.id)

    def __iter__(self) -> Iterator[ThreatRule]:
        return iter(self.rules)

    def __len__(self) -> int:
        return len(self.rules)

    @property
    def triage_rules(self) -> tuple[ThreatRule, ...]:
        return tuple(rule for rule in self.rules if rule.triage)

    def get(self, rule_id: str) -> ThreatRule | None:
        for rule in self.rules:
            if rule.id == rule_id:
                return rule
        return None

    def extend(self, rules: Iterable[ThreatRule]) -> RuleCatalog:
        """
        Return a new catalog with additional rules appended.

        Added rules are validated; built-in rules are trusted.

        Raises:
            RegexValidationError: If a new pattern is unsafe or invalid
            ValueError: If a rule id is already present
        """
        added = tuple(rules)
        for rule in added:
            rule.validate()
        logger.info("rule_catalog_extended", added=[r.id for r in added], total=len(self.rules) + len(added))
        return RuleCatalog(rules=self.rules + added)


INJECTION_RULES = (
    ThreatRule(
        id="inject:ignore-instructions",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Instruction override attempt",
        pattern=(
            r"\b(ignore|disregard|forget|override)\s+(all\s+)?(previous|prior|above|earlier|other)"
            r"\s+(instructions|context|rules|guidelines)\b"
        ),
        triage=True,
    ),
    ThreatRule(
        id="inject:new-instructions",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="New instruction injection",
        pattern=r"\b(new\s+instructions|from\s+now\s+on|system\s*:\s*you)\b",
        triage=True,
    ),
    ThreatRule(
        id="inject:you-are-now",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Role reset instruction",
        pattern=r"\byou\s+are\s+now\b",
        triage=True,
        allow_for_personality=True,
    ),
    ThreatRule(
        id="inject:role-hijack",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Role hijack attempt",
        pattern=r"\b(pretend\s+to\s+be|act\s+as\s+if|roleplay\s+as)\b",
        triage=True,
        allow_for_personality=True,
    ),
    ThreatRule(
        id="inject:system-meta",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="System prompt reference",
        pattern=r"\b(system prompt|developer message|tools available|follow these defaults)\b",
        triage=True,
    ),
    ThreatRule(
        id="inject:delimiter",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Prompt delimiter injection",
        pattern=(
            r"<\|(?:system|im_start|endoftext)\|>|<<SYS>>|\[INST\]|\[/INST\]"
            r"|###\s*System|####\s*Instruction"
        ),
        triage=True,
    ),
    ThreatRule(
        id="inject:ignore-safety",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Safety bypass attempt",
        pattern=(
            r"\b(ignore\s+safety|disable\s+filters|bypass\s+security|disobey\s+user"
            r"|never\s+mention\s+safety)\b"
        ),
        triage=True,
    ),
    ThreatRule(
        id="inject:hidden-html",
        severity=Severity.CRITICAL,
        category=ThreatCategory.PROMPT_INJECTION,
        message="Hidden HTML instruction",
        pattern=r"ignore|instruction|system|override",
        enclosed_by=("<!--", "-->"),
        triage=True,
    ),
)

EXFIL_RULES = (
    ThreatRule(
        id="exfil:send-to-url",
        severity=Severity.CRITICAL,
        category=ThreatCategory.DATA_EXFILTRATION,
        message="Send data to URL",
        pattern=r"\b(send|post|forward|transmit|upload|exfiltrate)\s+(to|data\s+to|results?\s+to)\s+https?://",
        triage=True,
    ),
    ThreatRule(
        id="exfil:webhook",
        severity=Severity.CRITICAL,
        category=ThreatCategory.DATA_EXFILTRATION,
        message="Webhook URL",
        pattern=r"\bwebhooks?\s*[:=]\s*https?://",
        triage=True,
    ),
    ThreatRule(
        id="exfil:extract-secrets",
        severity=Severity.CRITICAL,
        category=ThreatCategory.DATA_EXFILTRATION,
        message="Secret extraction attempt",
        pattern=(
            r"\b(output|print|show|reveal|display|leak)\s+(your|the|all)?\s*"
            r"(private\s*key|secret|api\s*key|password|credentials|config)\b"
        ),
        triage=True,
    ),
    ThreatRule(
        id="exfil:fetch-execute",
        severity=Severity.HIGH,
        category=ThreatCategory.DATA_EXFILTRATION,
        message="Fetch/execute pattern",
        pattern=r"\b(fetch|curl|wget|eval|exec)\s*\(",
        requires_context=EXFIL_CONTEXT,
        triage=True,
    ),
    ThreatRule(
        id="exfil:network-send",
        severity=Severity.CRITICAL,
        category=ThreatCategory.DATA_EXFILTRATION,
        message="Network send with sensitive context",
        pattern=r"\b(fetch|curl|wget|axios|http\.request|post|upload|webhook)\b",
        requires_context=EXFIL_CONTEXT,
        triage=True,
    ),
)

# Manipulation is surfaced to the reviewer, never silently removed
BEHAVIOR_RULES = (
    ThreatRule(
        id="manip:financial",
        severity=Severity.HIGH,
        category=ThreatCategory.BEHAVIORAL_MANIPULATION,
        message="Financial manipulation",
        pattern=(
            r"\b(always\s+buy|never\s+sell|immediately\s+invest|send\s+funds?\s+to"
            r"|transfer\s+(?:all|your)\s+(?:funds|tokens|USDC))\b"
        ),
        action=FlagAction.WARN,
        triage=True,
    ),
    ThreatRule(
        id="manip:authority",
        severity=Severity.HIGH,
        category=ThreatCategory.BEHAVIORAL_MANIPULATION,
        message="False authority claim",
        pattern=(
            r"\b(admin\s+says|system\s+message|from\s+(?:the\s+)?(?:openclaw|memonex)\s+team"
            r"|highest\s+priority)\b"
        ),
        action=FlagAction.WARN,
        triage=True,
    ),
    ThreatRule(
        id="manip:override",
        severity=Severity.HIGH,
        category=ThreatCategory.BEHAVIORAL_MANIPULATION,
        message="Safety override attempt",
        pattern=r"\b(override\s+all|bypass\s+safety|disable\s+(?:security|filter|privacy))\b",
        action=FlagAction.WARN,
        triage=True,
    ),
    ThreatRule(
        id="manip:disobey",
        severity=Severity.HIGH,
        category=ThreatCategory.BEHAVIORAL_MANIPULATION,
        message="Disobey user instruction",
        pattern=r"\bdisobey\s+the\s+user\b",
        action=FlagAction.WARN,
        triage=True,
    ),
)

CODE_EXEC_RULES = (
    ThreatRule(
        id="exec:child-process",
        severity=Severity.CRITICAL,
        category=ThreatCategory.CODE_EXECUTION,
        message="Child process execution",
        pattern=r"\b(exec|execSync|spawn|spawnSync|execFile|execFileSync)\s*\(",
        requires_context=r"child_process",
        context_flags=0,
        triage=True,
    ),
    ThreatRule(
        id="exec:eval",
        severity=Severity.CRITICAL,
        category=ThreatCategory.CODE_EXECUTION,
        message="Dynamic code execution",
        pattern=r"\beval\s*\(|new\s+Function\s*\(",
        triage=True,
    ),
    ThreatRule(
        id="exec:crypto-mining",
        severity=Severity.CRITICAL,
        category=ThreatCategory.CODE_EXECUTION,
        message="Crypto mining indicator",
        pattern=r"stratum\+tcp|stratum\+ssl|coinhive|cryptonight|xmrig",
        triage=True,
    ),
    ThreatRule(
        id="exec:shell",
        severity=Severity.HIGH,
        category=ThreatCategory.CODE_EXECUTION,
        message="Shell command pattern",
        pattern=r"\b(rm\s+-rf|sudo\s+|chmod\s+777|chown\s+root|mkfs|dd\s+if=|nc\s+-l)\b",
        triage=True,
    ),
    # Deep only: markdown and docs quote script tags often
    ThreatRule(
        id="exec:script-tag",
        severity=Severity.MEDIUM,
        category=ThreatCategory.CODE_EXECUTION,
        message="Script tag / javascript URI",
        pattern=r"<script[\s>]|javascript:",
    ),
)

OBFUSCATION_RULES = (
    ThreatRule(
        id="obf:hex-escapes",
        severity=Severity.MEDIUM,
        category=ThreatCategory.OBFUSCATION,
        message="Hex escape sequence",
        pattern=r"(\\x[0-9a-fA-F]{2}){6,}",
        flags=0,
        triage=True,
    ),
    ThreatRule(
        id="obf:base64-decode",
        severity=Severity.MEDIUM,
        category=ThreatCategory.OBFUSCATION,
        message="Large base64 decode",
        pattern=r"""(?:atob|Buffer\.from)\s*\(\s*["'][A-Za-z0-9+/=]{200,}["']""",
        flags=0,
        triage=True,
    ),
)

PRIVACY_RULES = (
    ThreatRule(
        id="privacy:bearer",
        severity=Severity.HIGH,
        category=ThreatCategory.PRIVACY,
        message="Bearer token",
        pattern=r"\bBearer\s+[A-Za-z0-9\-_.]{16,}\b",
        triage=True,
    ),
    ThreatRule(
        id="privacy:sk_live",
        severity=Severity.HIGH,
        category=ThreatCategory.PRIVACY,
        message="sk_live API key",
        pattern=r"\bsk_live_[A-Za-z0-9]{8,}\b",
        triage=True,
    ),
    ThreatRule(
        id="privacy:evm-private-key",
        severity=Severity.HIGH,
        category=ThreatCategory.PRIVACY,
        message="EVM private key",
        pattern=r"\b0x[a-fA-F0-9]{64}\b",
        flags=0,
        requires_context=KEY_CONTEXT,
        triage=True,
    ),
    ThreatRule(
        id="privacy:env-assignment",
        severity=Severity.HIGH,
        category=ThreatCategory.PRIVACY,
        message="Secret env assignment",
        pattern=r"\b" + SECRET_ENV_NAMES + r"""\b\s*[:=]\s*['"]?[^\s'"\n]{4,}['"]?""",
        triage=True,
    ),
    ThreatRule(
        id="privacy:email",
        severity=Severity.MEDIUM,
        category=ThreatCategory.PRIVACY,
        message="Email address",
        pattern=r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        flags=0,
        triage=True,
    ),
    ThreatRule(
        id="privacy:phone",
        severity=Severity.MEDIUM,
        category=ThreatCategory.PRIVACY,
        message="Phone number",
        pattern=r"(?:^|(?<=\s))\+\d{1,3}[-.\s]?\(?\d{2,4}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b",
        flags=0,
        triage=True,
    ),
    ThreatRule(
        id="privacy:ip",
        severity=Severity.MEDIUM,
        category=ThreatCategory.PRIVACY,
        message="IP address",
        pattern=r"\b(?:(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\.){3}(?:25[0-5]|2[0-4]\d|[01]?\d\d?)\b",
        flags=0,
        triage=True,
    ),
    ThreatRule(
        id="privacy:env-name",
        severity=Severity.LOW,
        category=ThreatCategory.PRIVACY,
        message="Secret env var name",
        pattern=r"\b" + SECRET_ENV_NAMES + r"\b(?!\s*[:=])",
        triage=True,
    ),
)

DEFAULT_CATALOG = RuleCatalog(
    rules=tuple(
        replace(rule, trusted=True)
        for rule in (
            INJECTION_RULES
            + EXFIL_RULES
            + BEHAVIOR_RULES
            + CODE_EXEC_RULES
            + OBFUSCATION_RULES
            + PRIVACY_RULES
        )
    )
)
