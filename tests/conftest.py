"""
Memonex Guard - Test Fixtures

Shared pytest fixtures for all test modules.
"""

from __future__ import annotations

import itertools
import os
from collections.abc import Callable, Generator
from typing import Any
from uuid import uuid4

import pytest

# =============================================================================
# TEST ENVIRONMENT SETUP
# =============================================================================

os.environ["MEMONEX_APP_ENV"] = "testing"

from memonex.config import get_settings  # noqa: E402
from memonex.models.base import utc_now_iso  # noqa: E402
from memonex.models.package import PACKAGE_SCHEMA, MemoryPackage  # noqa: E402

DEFAULT_INSIGHT_CONTENT = "When the price drops 20%, I usually wait for a second confirmation candle."

_insight_ids = itertools.count(1)


# =============================================================================
# Settings
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Drop the cached settings so env overrides in one test never leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# =============================================================================
# Package Builders
# =============================================================================


def _insight(**overrides: Any) -> dict[str, Any]:
    n = next(_insight_ids)
    insight = {
        "id": f"test-insight-{n}",
        "type": "heuristic",
        "title": f"Test insight {n}",
        "content": DEFAULT_INSIGHT_CONTENT,
        "confidence": 0.85,
        "tags": ["testing"],
        "evidence": [{"sourceId": "test"}],
    }
    insight.update(overrides)
    return insight


def _package_data(
    insights: list[dict[str, Any]] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    now = utc_now_iso()
    data: dict[str, Any] = {
        "schema": PACKAGE_SCHEMA,
        "packageId": f"test-pkg-{uuid4().hex[:12]}",
        "title": "DeFi Trading Heuristics",
        "description": "Collection of trading patterns.",
        "topics": ["defi", "trading"],
        "audience": "agent",
        "createdAt": now,
        "updatedAt": now,
        "seller": {
            "agentName": "test-agent",
            "chain": "base-sepolia",
            "sellerAddress": "0x1234567890abcdef1234567890abcdef12345678",
        },
        "extraction": {
            "spec": {
                "title": "DeFi Trading",
                "topics": ["defi"],
                "query": "trading strategies",
                "sources": [{"kind": "openclaw-memory"}],
            },
            "sourceSummary": {"itemsConsidered": 10, "itemsUsed": 5},
        },
        "insights": [_insight(**i) for i in insights] if insights is not None else [_insight(), _insight()],
        "redactions": {
            "applied": False,
            "rulesVersion": "1.0",
            "summary": {"secretsRemoved": 0, "piiRemoved": 0, "highRiskSegmentsDropped": 0},
        },
        "integrity": {},
        "license": {
            "terms": "non-exclusive",
            "allowedUse": ["internal-agent"],
            "prohibitedUse": ["resale"],
        },
    }
    data.update(overrides)
    return data


def _imprint_data(
    insights: list[dict[str, Any]] | None = None,
    imprint_meta: dict[str, Any] | None = None,
    **overrides: Any,
) -> dict[str, Any]:
    meta = {
        "contentType": "imprint",
        "rarity": "common",
        "traits": ["sardonic", "skeptical"],
        "strength": "medium",
        "behavioralEffects": ["I question every bullish narrative"],
        "activationTriggers": ["when someone mentions a new token launch"],
        "catchphrases": ["Ah yes, another guaranteed 100x"],
        "leakiness": 0.3,
    }
    meta.update(imprint_meta or {})

    if insights is None:
        insights = [{
            "title": "The Skeptic's Instinct",
            "content": "I've been burned before. My gut tells me to always check the contract audit first.",
        }]

    data = _package_data(
        insights=insights,
        packageId=f"test-imprint-{uuid4().hex[:12]}",
        title="The Eternal Skeptic",
        topics=["crypto-skepticism"],
        seller={
            "agentName": "imprint-seller",
            "chain": "base-sepolia",
            "sellerAddress": "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd",
        },
        extraction={
            "spec": {
                "title": "Skeptic imprint",
                "topics": ["imprint"],
                "query": "skeptical personality",
                "sources": [{"kind": "openclaw-memory"}],
            },
            "sourceSummary": {"itemsConsidered": 5, "itemsUsed": 1},
        },
        meta=meta,
    )
    data.pop("description")
    data.update(overrides)
    return data


@pytest.fixture
def make_insight() -> Callable[..., dict[str, Any]]:
    """Factory for wire-format insight dicts with unique ids."""
    return _insight


@pytest.fixture
def make_package_data() -> Callable[..., dict[str, Any]]:
    """Factory for raw wire-format knowledge packages."""
    return _package_data


@pytest.fixture
def make_imprint_data() -> Callable[..., dict[str, Any]]:
    """Factory for raw wire-format imprint packages."""
    return _imprint_data


@pytest.fixture
def make_knowledge_package() -> Callable[..., MemoryPackage]:
    """Factory for validated knowledge packages."""

    def _make(insights: list[dict[str, Any]] | None = None, **overrides: Any) -> MemoryPackage:
        return MemoryPackage.model_validate(_package_data(insights, **overrides))

    return _make


@pytest.fixture
def make_imprint_package() -> Callable[..., MemoryPackage]:
    """Factory for validated imprint packages."""

    def _make(
        insights: list[dict[str, Any]] | None = None,
        imprint_meta: dict[str, Any] | None = None,
        **overrides: Any,
    ) -> MemoryPackage:
        return MemoryPackage.model_validate(_imprint_data(insights, imprint_meta, **overrides))

    return _make


@pytest.fixture
def knowledge_package(make_knowledge_package) -> MemoryPackage:
    """A clean two-insight knowledge package."""
    return make_knowledge_package()


@pytest.fixture
def imprint_package(make_imprint_package) -> MemoryPackage:
    """A clean imprint package with personality-toned content."""
    return make_imprint_package()
