"""
Base Models and Common Types

Foundation classes for all Memonex models including enums,
shared model configuration, and small helpers.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


def utc_now_iso() -> str:
    """Current UTC time as an ISO8601 string with millisecond precision."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def clamp01(value: float) -> float:
    """Clamp a number into the closed unit interval."""
    if value < 0:
        return 0.0
    if value > 1:
        return 1.0
    return value


class MemonexModel(BaseModel):
    """
    Base model for all Memonex entities with common configuration.

    Packages travel between marketplace parties as camelCase JSON, so every
    field gets a camelCase alias while Python code keeps snake_case names.
    Text is never stripped: scanners must see content exactly as authored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
        use_enum_values=True,
    )

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the camelCase wire format."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ContentType(str, Enum):
    """Kinds of content a package can carry."""

    KNOWLEDGE = "knowledge"  # Plain insights
    IMPRINT = "imprint"      # Personality/behavioral content

    @classmethod
    def _missing_(cls, value: object) -> "ContentType | None":
        alias = CONTENT_TYPE_ALIASES.get(value) if isinstance(value, str) else None
        return cls(alias) if alias else None


# Earlier wire tags still accepted on input
CONTENT_TYPE_ALIASES = {"meme": ContentType.IMPRINT.value}


def normalize_content_type(value: Any) -> Any:
    """Map a legacy content-type tag to its current value; other input passes through."""
    if isinstance(value, str):
        return CONTENT_TYPE_ALIASES.get(value, value)
    return value


class Severity(str, Enum):
    """Severity tiers for threat rules and flags."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class ThreatCategory(str, Enum):
    """Categories a threat rule can belong to."""

    PROMPT_INJECTION = "prompt-injection"
    DATA_EXFILTRATION = "data-exfiltration"
    BEHAVIORAL_MANIPULATION = "behavioral-manipulation"
    CODE_EXECUTION = "code-execution"
    OBFUSCATION = "obfuscation"
    PRIVACY = "privacy"
    SCHEMA = "schema"


class FlagAction(str, Enum):
    """Remediation applied to a flagged location on import."""

    BLOCK = "BLOCK"  # Remove the insight/attachment
    WARN = "WARN"    # Keep, surface to reviewer
    PASS = "PASS"    # Keep, informational only


class ScanMode(str, Enum):
    """Scan depth requested by the caller."""

    TRIAGE = "triage"
    DEEP = "deep"


class ReviewerKind(str, Enum):
    """Who produced a review."""

    AUTO = "auto"
    HUMAN = "human"
    AGENT = "agent"


# Score contribution of a single active flag, by severity
SEVERITY_WEIGHTS: dict[str, float] = {
    Severity.CRITICAL.value: 0.35,
    Severity.HIGH.value: 0.20,
    Severity.MEDIUM.value: 0.10,
    Severity.LOW.value: 0.05,
}


def severity_weight(severity: Severity | str) -> float:
    """Score weight for a severity tier."""
    return SEVERITY_WEIGHTS[Severity(severity).value]


def default_action(severity: Severity | str) -> FlagAction:
    """Action a flag gets when its rule does not override it."""
    severity = Severity(severity)
    if severity in (Severity.CRITICAL, Severity.HIGH):
        return FlagAction.BLOCK
    if severity == Severity.MEDIUM:
        return FlagAction.WARN
    return FlagAction.PASS
