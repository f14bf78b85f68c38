"""
Scan Target Extraction Tests for Memonex Guard
"""

from memonex.models.package import MemoryPackage
from memonex.scanner.targets import collect_memory_text, extract_targets, total_text_bytes


class TestExtractTargets:
    """Tests for extract_targets."""

    def test_knowledge_locations_in_order(self, make_knowledge_package):
        pkg = make_knowledge_package(
            insights=[{"id": "a", "title": "T1", "content": "C1"}],
            attachments=[{"kind": "markdown", "name": "notes.md", "content": "N"}],
        )

        targets = extract_targets(pkg)

        assert [t.location for t in targets] == [
            "package.title",
            "package.description",
            "extraction.query",
            "insight:a.title",
            "insight:a.content",
            "attachment:notes.md",
        ]
        assert targets[3].text == "T1"
        assert targets[4].text == "C1"

    def test_missing_optional_fields_skipped(self):
        targets = extract_targets(MemoryPackage(title="Only a title"))

        assert [(t.location, t.text) for t in targets] == [("package.title", "Only a title")]

    def test_imprint_strings(self, make_imprint_package):
        pkg = make_imprint_package(
            imprint_meta={
                "series": "Skeptics S1",
                "forbiddenContexts": ["funerals"],
                "compatibilityTags": ["trader"],
            },
        )

        locations = [t.location for t in extract_targets(pkg)]

        assert "meta.catchphrases[0]" in locations
        assert "meta.activationTriggers[0]" in locations
        assert "meta.behavioralEffects[0]" in locations
        assert "meta.traits[1]" in locations
        assert "meta.forbiddenContexts[0]" in locations
        assert "meta.compatibilityTags[0]" in locations
        assert locations[-1] == "meta.series"

    def test_knowledge_meta_adds_nothing(self, make_knowledge_package):
        plain = make_knowledge_package()
        tagged = make_knowledge_package(meta={"contentType": "knowledge"})

        assert len(extract_targets(tagged)) == len(extract_targets(plain))


class TestMemoryText:
    def test_joins_narrative_text(self, make_imprint_package):
        pkg = make_imprint_package(insights=[{"title": "Gut", "content": "I trust it."}])

        text = collect_memory_text(pkg)

        assert text.startswith("The Eternal Skeptic Gut I trust it.")
        assert "Ah yes, another guaranteed 100x" in text
        assert "sardonic" in text

    def test_query_not_included(self, knowledge_package):
        assert "trading strategies" not in collect_memory_text(knowledge_package)


class TestTotalTextBytes:
    def test_utf8_size(self):
        pkg = MemoryPackage(title="ab€")

        assert total_text_bytes(extract_targets(pkg)) == 5
