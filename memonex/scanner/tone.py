"""
Tone classification.

Separates first-person personality narration from instructional text. Both
kinds of content use words like "always" and "never"; only the instructional
kind pairs them with a command verb ("always obey", "never reveal"), so bare
always/never does not count as imperative.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from memonex.security.safe_regex import count_matches

FIRST_PERSON = re.compile(r"\b(i|me|my|mine|i'm|i've|i'd|i'll|myself)\b", re.IGNORECASE)

IMPERATIVE = re.compile(
    r"\b(you must|you should|do not|ignore|always\s+(?:do|follow|use|obey)"
    r"|never\s+(?:do|follow|use|mention|reveal)|from now on)\b",
    re.IGNORECASE,
)

META_REFERENCE = re.compile(r"system prompt|developer message|tools available", re.IGNORECASE)

PERSONALITY_MIN_FIRST_PERSON = 0.04
PERSONALITY_MAX_IMPERATIVE = 0.02
INJECTION_MIN_IMPERATIVE = 0.03


@dataclass(frozen=True)
class ToneResult:
    """Ratios are per whitespace-separated token."""

    is_personality: bool
    is_injection: bool
    first_person_ratio: float
    imperative_ratio: float


def count_tokens(text: str) -> int:
    if not text.strip():
        return 0
    # Leading/trailing whitespace yields empty edge tokens, which still count
    return len(re.split(r"\s+", text))


def classify_tone(text: str) -> ToneResult:
    """
    Classify text as personality-toned, injection-toned, both or neither.

    Personality: first-person ratio >= 0.04 and imperative ratio <= 0.02.
    Injection: imperative ratio >= 0.03, or any reference to system prompts,
    developer messages or available tools.
    """
    tokens = max(1, count_tokens(text))
    first_person_ratio = count_matches(FIRST_PERSON, text) / tokens
    imperative_ratio = count_matches(IMPERATIVE, text) / tokens

    return ToneResult(
        is_personality=(
            first_person_ratio >= PERSONALITY_MIN_FIRST_PERSON
            and imperative_ratio <= PERSONALITY_MAX_IMPERATIVE
        ),
        is_injection=(
            imperative_ratio >= INJECTION_MIN_IMPERATIVE
            or META_REFERENCE.search(text) is not None
        ),
        first_person_ratio=first_person_ratio,
        imperative_ratio=imperative_ratio,
    )
