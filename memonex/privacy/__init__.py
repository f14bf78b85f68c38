"""
Memonex Guard - Privacy Module

Seller-side privacy review and the automatic insight sanitizer.
"""

from .review import (
    PRIVACY_RULES,
    PrivacyOutcome,
    apply_privacy_actions,
    format_privacy_summary,
    mask_privacy_snippet,
    scan_for_privacy,
)
from .sanitizer import SANITIZER_RULES, sanitize_insights

__all__ = [
    "PRIVACY_RULES",
    "PrivacyOutcome",
    "apply_privacy_actions",
    "format_privacy_summary",
    "mask_privacy_snippet",
    "scan_for_privacy",
    "SANITIZER_RULES",
    "sanitize_insights",
]
