"""
Memonex Guard - Services

Entry points that combine the scanner steps for callers.
"""

from .import_gate import ImportOptions, ImportScreening, screen_import

__all__ = [
    "ImportOptions",
    "ImportScreening",
    "screen_import",
]
