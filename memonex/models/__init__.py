"""
Memonex Guard - Models

Pydantic models for memory packages, threat scan results and privacy
reviews.
"""

from .base import (
    SEVERITY_WEIGHTS,
    ContentType,
    FlagAction,
    MemonexModel,
    ReviewerKind,
    ScanMode,
    Severity,
    ThreatCategory,
    default_action,
    severity_weight,
)
from .package import (
    PACKAGE_SCHEMA,
    Attachment,
    Audience,
    ExtractionRecord,
    ExtractionSpec,
    ImprintMeta,
    ImprintStrength,
    Insight,
    InsightType,
    KnowledgeMeta,
    LicenseTerms,
    MemoryPackage,
    Rarity,
    SellerInfo,
)
from .privacy import (
    PrivacyAction,
    PrivacyFlag,
    PrivacyKind,
    PrivacyReport,
    PrivacyReview,
    PrivacyRuleHit,
)
from .threat import ScanResult, ScanSummary, ThreatFlag

__all__ = [
    # Base
    "SEVERITY_WEIGHTS",
    "ContentType",
    "FlagAction",
    "MemonexModel",
    "ReviewerKind",
    "ScanMode",
    "Severity",
    "ThreatCategory",
    "default_action",
    "severity_weight",
    # Package
    "PACKAGE_SCHEMA",
    "Attachment",
    "Audience",
    "ExtractionRecord",
    "ExtractionSpec",
    "ImprintMeta",
    "ImprintStrength",
    "Insight",
    "InsightType",
    "KnowledgeMeta",
    "LicenseTerms",
    "MemoryPackage",
    "Rarity",
    "SellerInfo",
    # Privacy
    "PrivacyAction",
    "PrivacyFlag",
    "PrivacyKind",
    "PrivacyReport",
    "PrivacyReview",
    "PrivacyRuleHit",
    # Threat
    "ScanResult",
    "ScanSummary",
    "ThreatFlag",
]
