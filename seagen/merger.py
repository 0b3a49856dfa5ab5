# File: seagen/merger.py
"""
Seagen - Incremental Merger
============================
Marker-delimited region replacement for entity files.

An entity file carries a generated region between two sentinel comment
lines. On regeneration only that region is replaced; everything before the
start marker and after the end marker is kept byte-for-byte. When either
marker is missing the file cannot be merged and ``merge_generated_region``
returns None, leaving the decision to conflict handling.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("seagen.merger")

GENERATED_START_MARKER: str = "// === spring-rs generated START ==="
GENERATED_END_MARKER: str = "// === spring-rs generated END ==="


def _region_bounds(content: str) -> Optional[Tuple[int, int]]:
    """Offsets of the marked region; *end* points just past the end marker."""
    start: int = content.find(GENERATED_START_MARKER)
    if start < 0:
        return None
    end: int = content.find(GENERATED_END_MARKER, start + len(GENERATED_START_MARKER))
    if end < 0:
        return None
    return start, end + len(GENERATED_END_MARKER)


def has_markers(content: str) -> bool:
    return _region_bounds(content) is not None


def extract_generated_region(content: str) -> Optional[str]:
    """Text from the start marker through the end marker, inclusive."""
    bounds: Optional[Tuple[int, int]] = _region_bounds(content)
    if bounds is None:
        return None
    return content[bounds[0]:bounds[1]]


def merge_generated_region(existing: str, generated: str) -> Optional[str]:
    """
    Replace the marked region of *existing* with the one from *generated*.

    Returns None when either text lacks a well-formed marker pair.
    """
    old_bounds: Optional[Tuple[int, int]] = _region_bounds(existing)
    if old_bounds is None:
        logger.debug("Existing file has no generated region; merge not possible")
        return None
    new_region: Optional[str] = extract_generated_region(generated)
    if new_region is None:
        logger.debug("Generated content has no marked region; merge not possible")
        return None
    before: str = existing[:old_bounds[0]]
    after: str = existing[old_bounds[1]:]
    return before + new_region + after


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "GENERATED_START_MARKER",
    "GENERATED_END_MARKER",
    "has_markers",
    "extract_generated_region",
    "merge_generated_region",
]
