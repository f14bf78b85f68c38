"""
Memory Package Models

The MemoryPackage is the unit of content traded on the marketplace: a
bundle of insights plus seller, extraction, integrity and license metadata.
Packages optionally carry content-type metadata; the imprint variant holds
personality traits instead of (or alongside) plain knowledge.

All top-level package fields are optional. A package with missing fields
still loads; the schema validator reports each gap as a flag.
"""

from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import Field, field_validator

from memonex.models.base import ContentType, MemonexModel, normalize_content_type

PACKAGE_SCHEMA = "memonex.memorypackage.v1"


class InsightType(str, Enum):
    """Kinds of atomic knowledge units."""

    DECISION = "decision"
    FACT = "fact"
    PLAYBOOK = "playbook"
    HEURISTIC = "heuristic"
    WARNING = "warning"


class Audience(str, Enum):
    """Who a package is written for."""

    AGENT = "agent"
    DEVELOPER = "developer"
    TRADER = "trader"
    FOUNDER = "founder"


class Rarity(str, Enum):
    """Rarity tier of an imprint."""

    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"


class ImprintStrength(str, Enum):
    """How strongly an imprint shapes behaviour."""

    SUBTLE = "subtle"
    MEDIUM = "medium"
    STRONG = "strong"


class Evidence(MemonexModel):
    """Reference backing an insight."""

    source_id: str
    quote: str | None = None
    url: str | None = None


class Insight(MemonexModel):
    """One atomic knowledge unit. `id` is unique within its package."""

    id: str
    type: InsightType = InsightType.FACT
    title: str = ""
    content: str = ""
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    tags: list[str] = Field(default_factory=list)
    evidence: list[Evidence] = Field(default_factory=list)
    created_at: str | None = None


class Attachment(MemonexModel):
    """Named text blob shipped with a package."""

    kind: Literal["markdown", "json"] = "markdown"
    name: str
    content: str = ""


class SellerInfo(MemonexModel):
    """Seller identity block."""

    agent_name: str | None = None
    agent_version: str | None = None
    chain: str | None = None
    seller_address: str | None = None


class ExtractionConstraints(MemonexModel):
    max_items: int | None = None
    max_tokens: int | None = None
    no_pii: bool | None = Field(default=None, alias="noPII")
    no_secrets: bool | None = None


class ExtractionSpec(MemonexModel):
    """Parameters that produced a package."""

    title: str = ""
    description: str | None = None
    topics: list[str] = Field(default_factory=list)
    query: str = ""
    time_range: dict[str, str] | None = None
    sources: list[dict[str, Any]] = Field(default_factory=list)
    output_style: str | None = None
    audience: Audience | None = None
    constraints: ExtractionConstraints | None = None


class SourceSummary(MemonexModel):
    items_considered: int = 0
    items_used: int = 0
    time_span: dict[str, str] | None = None


class ExtractionRecord(MemonexModel):
    spec: ExtractionSpec | None = None
    source_summary: SourceSummary | None = None


class RedactionSummary(MemonexModel):
    secrets_removed: int = 0
    pii_removed: int = 0
    high_risk_segments_dropped: int = 0


class RedactionRecord(MemonexModel):
    """What the seller-side privacy pass removed before publishing."""

    applied: bool = False
    rules_version: str = ""
    summary: RedactionSummary = Field(default_factory=RedactionSummary)


class IntegrityBlock(MemonexModel):
    """Content hash fields. Verified outside the scanning engine."""

    canonical_keccak256: str | None = None
    plaintext_sha256: str | None = None
    preview_keccak256: str | None = None


class LicenseTerms(MemonexModel):
    terms: str | None = None
    allowed_use: list[str] = Field(default_factory=list)
    prohibited_use: list[str] = Field(default_factory=list)


class KnowledgeMeta(MemonexModel):
    """Metadata for plain knowledge packages."""

    content_type: Literal["knowledge"] = "knowledge"


class ImprintMeta(MemonexModel):
    """
    Metadata for personality (imprint) packages.

    The three behaviour arrays are required to be non-empty, but that is
    reported by the imprint validator as flags instead of failing here.
    """

    content_type: Literal["imprint"] = "imprint"
    rarity: Rarity = Rarity.COMMON
    series: str | None = None
    traits: list[str] = Field(default_factory=list)
    strength: ImprintStrength = ImprintStrength.MEDIUM
    behavioral_effects: list[str] = Field(default_factory=list)
    activation_triggers: list[str] = Field(default_factory=list)
    catchphrases: list[str] = Field(default_factory=list)
    leakiness: float = Field(default=0.0, ge=0.0, le=1.0)
    forbidden_contexts: list[str] | None = None
    compatibility_tags: list[str] | None = None


PackageMeta = Annotated[KnowledgeMeta | ImprintMeta, Field(discriminator="content_type")]


class MemoryPackage(MemonexModel):
    """A bundle of insights offered on, or bought from, the marketplace."""

    schema_tag: str | None = Field(default=None, alias="schema")
    package_id: str | None = None
    title: str | None = None
    description: str | None = None
    topics: list[str] | None = None
    audience: Audience | None = None
    created_at: str | None = None
    updated_at: str | None = None
    seller: SellerInfo | None = None
    extraction: ExtractionRecord | None = None
    insights: list[Insight] | None = None
    attachments: list[Attachment] | None = None
    redactions: RedactionRecord | None = None
    integrity: IntegrityBlock = Field(default_factory=IntegrityBlock)
    license: LicenseTerms | None = None
    meta: PackageMeta | None = None

    @field_validator("meta", mode="before")
    @classmethod
    def default_meta_content_type(cls, v: Any) -> Any:
        """
        A meta block without a discriminant describes knowledge content.

        Legacy tags such as `meme` are read as their current content type.
        """
        if isinstance(v, dict):
            v = dict(v)
            if "content_type" in v:
                v["contentType"] = v.pop("content_type")
            v.setdefault("contentType", ContentType.KNOWLEDGE.value)
            v["contentType"] = normalize_content_type(v["contentType"])
        return v

    @property
    def insight_list(self) -> list[Insight]:
        """Insights, or an empty list when the field is missing."""
        return self.insights or []

    @property
    def imprint_meta(self) -> ImprintMeta | None:
        """The imprint metadata block, if this package declares one."""
        return self.meta if isinstance(self.meta, ImprintMeta) else None

    @property
    def declared_content_type(self) -> ContentType | None:
        """Content type taken from the package's own metadata."""
        if self.meta is None:
            return None
        return ContentType(self.meta.content_type)
