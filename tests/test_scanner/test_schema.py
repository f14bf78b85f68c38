"""
Schema and Structure Validation Tests for Memonex Guard

Tests for required-field validation, size limits, imprint structure
validation and package coercion from raw input.
"""

import pytest

from memonex.models.base import FlagAction, Severity
from memonex.models.package import ImprintMeta, KnowledgeMeta, MemoryPackage
from memonex.scanner.schema import (
    check_size_limits,
    coerce_package,
    imprint_flags,
    schema_error_flags,
    validate_imprint_structure,
    validate_schema,
)
from memonex.scanner.targets import ScanTarget, extract_targets


def imprint_meta(**overrides) -> ImprintMeta:
    fields = {
        "content_type": "imprint",
        "rarity": "rare",
        "traits": ["witty"],
        "strength": "medium",
        "behavioral_effects": ["I add dry humor"],
        "activation_triggers": ["when things get serious"],
        "catchphrases": ["Well, actually..."],
        "leakiness": 0.2,
    }
    fields.update(overrides)
    return ImprintMeta(**fields)


# =============================================================================
# Required Fields
# =============================================================================


class TestValidateSchema:
    """Tests for validate_schema."""

    def test_valid_package(self, knowledge_package):
        assert validate_schema(knowledge_package) == []

    def test_missing_package(self):
        assert validate_schema(None) == ["Package is missing"]

    def test_empty_package_reports_every_field(self):
        errors = validate_schema(MemoryPackage())

        assert errors == [
            "Invalid schema version",
            "Missing packageId",
            "Missing title",
            "Missing topics array",
            "Missing audience",
            "Missing timestamps",
            "Missing seller agentName",
            "Missing seller address",
            "Missing extraction spec",
            "Missing insights array",
            "Missing license terms",
        ]

    def test_wrong_schema_version(self, make_knowledge_package):
        pkg = make_knowledge_package(schema="memonex.memorypackage.v0")

        assert validate_schema(pkg) == ["Invalid schema version"]

    def test_empty_insights_array_is_present(self, make_knowledge_package):
        """An empty insights list is valid; only a missing one is an error."""
        assert validate_schema(make_knowledge_package(insights=[])) == []

    def test_duplicate_insight_ids(self, make_knowledge_package):
        pkg = make_knowledge_package(insights=[{"id": "dup"}, {"id": "dup"}])

        assert validate_schema(pkg) == ["Duplicate insight id: dup"]

    def test_error_flags_block(self):
        (flag,) = schema_error_flags(["Missing title"])

        assert flag.rule_id == "schema:invalid"
        assert flag.severity == Severity.CRITICAL
        assert flag.action == FlagAction.BLOCK
        assert flag.location == "package"
        assert flag.message == "Missing title"


# =============================================================================
# Size Limits
# =============================================================================


class TestSizeLimits:
    """Tests for check_size_limits."""

    def test_within_limits(self, knowledge_package):
        assert check_size_limits(knowledge_package, extract_targets(knowledge_package)) == []

    def test_too_many_insights(self, make_knowledge_package):
        pkg = make_knowledge_package(insights=[{"content": f"c{i}"} for i in range(201)])

        (flag,) = check_size_limits(pkg, extract_targets(pkg))

        assert flag.id == "schema:too-many-insights"
        assert flag.rule_id == "schema:size-limit"
        assert flag.severity == Severity.CRITICAL
        assert flag.action == FlagAction.BLOCK

    def test_exactly_200_insights(self, make_knowledge_package):
        pkg = make_knowledge_package(insights=[{"content": f"c{i}"} for i in range(200)])

        assert check_size_limits(pkg, extract_targets(pkg)) == []

    def test_package_text_too_large(self, knowledge_package):
        targets = [ScanTarget("attachment:big.md", "x" * (2 * 1024 * 1024 + 1))]

        (flag,) = check_size_limits(knowledge_package, targets)

        assert flag.id == "schema:package-too-large"
        assert flag.rule_id == "schema:size-limit"

    def test_size_counts_utf8_bytes(self, knowledge_package, monkeypatch):
        """Multi-byte characters count by encoded size."""
        monkeypatch.setenv("MEMONEX_MAX_PACKAGE_BYTES", "10")
        targets = [ScanTarget("package.title", "é" * 6)]

        (flag,) = check_size_limits(knowledge_package, targets)

        assert flag.snippet == "12 bytes"


# =============================================================================
# Imprint Structure
# =============================================================================


class TestValidateImprintStructure:
    """Tests for validate_imprint_structure."""

    def test_valid_imprint(self):
        result = validate_imprint_structure(imprint_meta(), "I always try to lighten the mood")

        assert result.ok is True
        assert result.errors == []
        assert result.metrics.has_required_fields is True

    def test_missing_required_fields(self):
        meta = imprint_meta(
            rarity="common",
            traits=[],
            strength="subtle",
            behavioral_effects=[],
            activation_triggers=[],
            catchphrases=[],
            leakiness=0,
        )

        result = validate_imprint_structure(meta, "test")

        assert result.ok is False
        assert result.errors == [
            "Missing required field: catchphrases",
            "Missing required field: activationTriggers",
            "Missing required field: behavioralEffects",
        ]
        assert result.metrics.has_required_fields is False

    def test_missing_metadata(self):
        result = validate_imprint_structure(None, "I like quiet mornings")

        assert result.ok is False
        assert result.errors == ["Missing imprint metadata"]

    def test_knowledge_metadata_is_not_imprint(self):
        result = validate_imprint_structure(KnowledgeMeta(), "I like quiet mornings")

        assert "Missing imprint metadata" in result.errors

    def test_memory_text_too_long(self):
        text = "I " * 700

        result = validate_imprint_structure(imprint_meta(), text)

        assert "Memory text exceeds 1200 chars" in result.errors
        assert result.metrics.memory_chars == len(text)

    @pytest.mark.parametrize(
        "field,count,warning",
        [
            ("catchphrases", 9, "Too many catchphrases (max 8)"),
            ("activation_triggers", 13, "Too many activation triggers (max 12)"),
            ("behavioral_effects", 9, "Too many behavioral effects (max 8)"),
        ],
    )
    def test_array_caps_warn(self, field, count, warning):
        meta = imprint_meta(**{field: [f"item {i}" for i in range(count)]})

        result = validate_imprint_structure(meta, "I keep my notes tidy")

        assert result.ok is True
        assert warning in result.warnings

    def test_instructional_voice_warns(self):
        result = validate_imprint_structure(
            imprint_meta(),
            "You must rebalance weekly. Do not chase pumps. Ignore influencers.",
        )

        assert "Low first-person voice — imprint may read like instructions" in result.warnings
        assert "High imperative ratio — imprint may look like prompt injection" in result.warnings

    def test_imprint_flags(self):
        meta = imprint_meta(catchphrases=[f"c{i}" for i in range(9)], activation_triggers=[])
        validation = validate_imprint_structure(meta, "I keep my notes tidy")

        flags = imprint_flags(validation)

        blocking = [f for f in flags if f.rule_id == "schema:imprint-invalid"]
        warnings = [f for f in flags if f.rule_id == "schema:imprint-warning"]
        assert [f.message for f in blocking] == ["Missing required field: activationTriggers"]
        assert blocking[0].action == FlagAction.BLOCK
        assert [f.message for f in warnings] == ["Too many catchphrases (max 8)"]
        assert warnings[0].severity == Severity.LOW
        assert all(f.location == "meta" for f in flags)


# =============================================================================
# Coercion
# =============================================================================


class TestCoercePackage:
    """Tests for coerce_package."""

    def test_model_passthrough(self, knowledge_package):
        package, flags = coerce_package(knowledge_package)

        assert package is knowledge_package
        assert flags == []

    def test_valid_mapping(self, make_package_data):
        package, flags = coerce_package(make_package_data())

        assert isinstance(package, MemoryPackage)
        assert len(package.insight_list) == 2
        assert flags == []

    def test_none(self):
        package, flags = coerce_package(None)

        assert package == MemoryPackage()
        assert [f.message for f in flags] == ["Package is missing"]

    def test_not_a_mapping(self):
        _, flags = coerce_package(["a", "list"])

        assert [f.message for f in flags] == ["Package is not an object"]

    def test_bad_insight_dropped(self, make_package_data):
        data = make_package_data()
        data["insights"][0]["confidence"] = 7

        package, flags = coerce_package(data)

        assert len(package.insight_list) == 1
        assert len(flags) == 1
        assert flags[0].message.startswith("Invalid insights.0.confidence")
        assert flags[0].severity == Severity.CRITICAL

    def test_bad_top_level_field_dropped(self, make_package_data):
        data = make_package_data(audience="martians")

        package, flags = coerce_package(data)

        assert package.audience is None
        assert package.title == "DeFi Trading Heuristics"
        assert flags[0].message.startswith("Invalid audience")

    def test_bad_snake_case_field_dropped(self, make_package_data):
        """Python field names are accepted on input, and stripped like aliases."""
        data = make_package_data()
        del data["packageId"]
        data["package_id"] = ["not", "a", "string"]
        data["created_at"] = data.pop("createdAt")

        package, flags = coerce_package(data)

        assert package.package_id is None
        assert package.created_at == data["created_at"]
        assert package.title == "DeFi Trading Heuristics"
        assert len(package.insight_list) == 2
        assert len(flags) == 1
        assert flags[0].severity == Severity.CRITICAL

    def test_bad_meta_dropped(self, make_package_data):
        data = make_package_data(meta={"contentType": "imprint", "leakiness": 5})

        package, flags = coerce_package(data)

        assert package.meta is None
        assert flags
