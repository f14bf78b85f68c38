"""
Memonex Guard

Content-safety gate for the Memonex knowledge marketplace. Packages are
scanned before they are published or imported: rule-driven triage and deep
phases produce flags, a bounded threat score and a verdict, and blocked
content is stripped before anything reaches an agent's memory.
"""

__version__ = "1.0.0"

from memonex.models import MemoryPackage, ScanResult, ThreatFlag  # noqa: E402
from memonex.privacy import apply_privacy_actions, scan_for_privacy  # noqa: E402
from memonex.scanner import (  # noqa: E402
    DEFAULT_CATALOG,
    ScanOptions,
    apply_actions,
    format_safety_report,
    scan,
)
from memonex.services import ImportOptions, screen_import  # noqa: E402

__all__ = [
    "__version__",
    "DEFAULT_CATALOG",
    "ImportOptions",
    "MemoryPackage",
    "ScanOptions",
    "ScanResult",
    "ThreatFlag",
    "apply_actions",
    "apply_privacy_actions",
    "format_safety_report",
    "scan",
    "scan_for_privacy",
    "screen_import",
]
