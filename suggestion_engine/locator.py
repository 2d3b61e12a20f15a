"""
Suggestion Locator - Validate or repair suggestion offsets against live text.

The suggestion source computes offsets independently of the live document,
so offsets drift after concurrent edits or source-side miscounting. The
locator trusts offsets only when the claimed span still reads as the
suggestion text; otherwise it falls back to exact substring search.

Strategies:
1. FIRST (default) - first occurrence of the text in the document
2. NEAREST - occurrence whose start is closest to the claimed start
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import List, Optional, Tuple

from .errors import OffsetDriftError

logger = logging.getLogger(__name__)

DEFAULT_CONTEXT_RADIUS = 50


class LocateStrategy(str, Enum):
    """How to pick among repeated occurrences when offsets have drifted."""

    FIRST = "first"
    NEAREST = "nearest"


def offsets_match(full_text: str, text: str, start: Optional[int], end: Optional[int]) -> bool:
    """Check whether ``full_text[start:end]`` is exactly ``text`` with in-bounds offsets."""
    if start is None or end is None:
        return False
    if not (0 <= start < end <= len(full_text)):
        return False
    return full_text[start:end] == text


def find_occurrences(full_text: str, text: str) -> List[int]:
    """
    Find the start of every exact (possibly overlapping) occurrence.

    Args:
        full_text: Document plain text
        text: Substring to search for

    Returns:
        Start offsets in ascending order (empty for empty ``text``)
    """
    if not text:
        return []
    positions = []
    pos = full_text.find(text)
    while pos != -1:
        positions.append(pos)
        pos = full_text.find(text, pos + 1)
    return positions


def locate(
    full_text: str,
    text: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    strategy: LocateStrategy = LocateStrategy.FIRST,
) -> Optional[Tuple[int, int]]:
    """
    Validate claimed offsets, or re-locate the suggestion text.

    Args:
        full_text: Current document plain text
        text: Text the suggestion targets
        start: Claimed start offset (may be stale or missing)
        end: Claimed end offset (may be stale or missing)
        strategy: Which occurrence to prefer when offsets are wrong

    Returns:
        (start, end) tuple, or None when the suggestion cannot be rendered

    Example:
        locate("The qick fox", "qick", 99, 103)
        # (4, 8)
    """
    if offsets_match(full_text, text, start, end):
        return (start, end)

    if not text:
        return None

    if strategy is LocateStrategy.NEAREST and start is not None:
        occurrences = find_occurrences(full_text, text)
        if not occurrences:
            return None
        pos = min(occurrences, key=lambda p: (abs(p - start), p))
    else:
        pos = full_text.find(text)
        if pos == -1:
            return None

    if start is not None and pos != start:
        logger.debug(f"Repaired offsets for {text!r}: claimed {start}-{end}, found {pos}-{pos + len(text)}")
    return (pos, pos + len(text))


def locate_or_raise(
    full_text: str,
    text: str,
    start: Optional[int] = None,
    end: Optional[int] = None,
    strategy: LocateStrategy = LocateStrategy.FIRST,
    suggestion_id: Optional[str] = None,
) -> Tuple[int, int]:
    """Same as locate() but raises OffsetDriftError when the text is gone."""
    position = locate(full_text, text, start, end, strategy)
    if position is None:
        raise OffsetDriftError(
            f"Suggestion text {text!r} not found in current content (claimed {start}-{end})",
            suggestion_id=suggestion_id,
            text=text,
        )
    return position


def get_context(full_text: str, start: int, end: int, radius: int = DEFAULT_CONTEXT_RADIUS) -> str:
    """Return the window of ``radius`` characters around a span."""
    context_start = max(0, start - radius)
    context_end = min(len(full_text), end + radius)
    return full_text[context_start:context_end]
