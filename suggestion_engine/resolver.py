"""
Suggestion Resolver - Priority computation and conflict handling.

Priority is a derived value in [1, 10]:

    base weight (per category)
    + mode adjustment (grammar-first / tone-first / balanced)
    + (confidence - 0.5) * CONFIDENCE_SCALE
    -> rounded half up and clamped

user-choice mode replaces the whole computation with a flat mid priority so
no category automatically wins; overlapping suggestions are surfaced as
conflict groups without a winner.

Acceptance is different: accepting a suggestion always ignores every pending
suggestion that overlaps it or is linked through ``conflicts_with``, whatever
the mode, because applying two fixes to the same span corrupts the text.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from .models import (
    ConflictResolutionMode,
    Suggestion,
    SuggestionStatus,
    SuggestionType,
)

logger = logging.getLogger(__name__)

MIN_PRIORITY = 1
MAX_PRIORITY = 10
USER_CHOICE_PRIORITY = 5
CONFIDENCE_SCALE = 4.0

BASE_WEIGHTS: Dict[SuggestionType, int] = {
    SuggestionType.SPELLING: 9,
    SuggestionType.DEMONETIZATION: 9,
    SuggestionType.TONE_REWRITE: 8,
    SuggestionType.SEO: 8,
    SuggestionType.GRAMMAR: 7,
    SuggestionType.STYLE: 5,
    SuggestionType.ENGAGEMENT: 5,
    SuggestionType.PLATFORM_ADAPTATION: 4,
    SuggestionType.OTHER: 4,
    SuggestionType.SLANG_PROTECTED: 1,  # Informational only
}

MODE_ADJUSTMENTS: Dict[ConflictResolutionMode, Dict[SuggestionType, int]] = {
    ConflictResolutionMode.GRAMMAR_FIRST: {
        SuggestionType.GRAMMAR: 2,
        SuggestionType.SPELLING: 2,
        SuggestionType.TONE_REWRITE: -2,
    },
    ConflictResolutionMode.TONE_FIRST: {
        SuggestionType.GRAMMAR: -2,
        SuggestionType.SPELLING: -2,
        SuggestionType.TONE_REWRITE: 2,
    },
    ConflictResolutionMode.BALANCED: {},
}


def compute_priority(
    suggestion: Suggestion,
    mode: ConflictResolutionMode = ConflictResolutionMode.BALANCED,
    confidence_scale: float = CONFIDENCE_SCALE,
) -> int:
    """
    Compute the priority of a suggestion under a conflict-resolution mode.

    Args:
        suggestion: Suggestion to rank (only type and confidence are read)
        mode: Active conflict-resolution mode
        confidence_scale: Weight of the (confidence - 0.5) term

    Returns:
        Integer priority in [1, 10]
    """
    if mode is ConflictResolutionMode.USER_CHOICE:
        return USER_CHOICE_PRIORITY

    score = float(BASE_WEIGHTS[suggestion.type])
    score += MODE_ADJUSTMENTS[mode].get(suggestion.type, 0)
    score += (suggestion.effective_confidence - 0.5) * confidence_scale
    return max(MIN_PRIORITY, min(MAX_PRIORITY, math.floor(score + 0.5)))


def assign_priorities(
    suggestions: Iterable[Suggestion],
    mode: ConflictResolutionMode,
    confidence_scale: float = CONFIDENCE_SCALE,
) -> None:
    """Recompute the derived priority field in place. Never touches status."""
    for suggestion in suggestions:
        suggestion.priority = compute_priority(suggestion, mode, confidence_scale)


def overlaps(a: Suggestion, b: Suggestion) -> bool:
    """Two half-open ranges intersect."""
    return a.start < b.end and b.start < a.end


def conflicts(a: Suggestion, b: Suggestion) -> bool:
    """Range overlap or an explicit conflict link in either direction."""
    if a.id == b.id:
        return False
    return overlaps(a, b) or a.id in b.conflicts_with or b.id in a.conflicts_with


def find_conflicts(target: Suggestion, candidates: Iterable[Suggestion]) -> List[Suggestion]:
    """Pending candidates that would be invalidated by accepting ``target``."""
    return [c for c in candidates if c.is_pending and conflicts(target, c)]


def apply_acceptance(target: Suggestion, suggestions: Iterable[Suggestion]) -> List[Suggestion]:
    """
    Accept ``target`` and ignore every pending suggestion competing for its span.

    Applied unconditionally regardless of the conflict-resolution mode.

    Returns:
        Suggestions whose status changed, target first
    """
    if target.status.is_terminal:
        return []

    losers = find_conflicts(target, suggestions)
    target.status = SuggestionStatus.ACCEPTED
    for loser in losers:
        loser.status = SuggestionStatus.IGNORED
    if losers:
        logger.debug(
            "Accepting %s ignored %d conflicting suggestion(s): %s",
            target.id,
            len(losers),
            ", ".join(s.id for s in losers),
        )
    return [target, *losers]


@dataclass
class ConflictGroup:
    """A connected cluster of overlapping suggestions."""

    members: List[Suggestion] = field(default_factory=list)
    winner: Optional[Suggestion] = None

    @property
    def start(self) -> int:
        return min(s.start for s in self.members)

    @property
    def end(self) -> int:
        return max(s.end for s in self.members)

    @property
    def is_surfaced(self) -> bool:
        """True when the user must choose because no member wins automatically."""
        return self.winner is None

    def to_dict(self) -> Dict[str, object]:
        return {
            "start": self.start,
            "end": self.end,
            "member_ids": [s.id for s in self.members],
            "winner_id": self.winner.id if self.winner else None,
        }


def _rank_key(suggestion: Suggestion):
    return (-suggestion.priority, suggestion.start, suggestion.id)


def group_overlaps(
    suggestions: Sequence[Suggestion],
    mode: ConflictResolutionMode = ConflictResolutionMode.BALANCED,
) -> List[ConflictGroup]:
    """
    Cluster overlapping suggestions and pick the dominant one per cluster.

    Only clusters with at least two members are returned. Priorities are read
    as currently assigned, so call assign_priorities first for a new mode.
    """
    ordered = sorted(suggestions, key=lambda s: (s.start, s.end, s.id))
    groups: List[ConflictGroup] = []
    current: List[Suggestion] = []
    current_end = -1

    for suggestion in ordered:
        if current and suggestion.start < current_end:
            current.append(suggestion)
            current_end = max(current_end, suggestion.end)
            continue
        if len(current) > 1:
            groups.append(ConflictGroup(members=current))
        current = [suggestion]
        current_end = suggestion.end
    if len(current) > 1:
        groups.append(ConflictGroup(members=current))

    if mode is not ConflictResolutionMode.USER_CHOICE:
        for group in groups:
            group.winner = min(group.members, key=_rank_key)
    return groups


def dominant_at(suggestions: Iterable[Suggestion], offset: int) -> Optional[Suggestion]:
    """The highest priority suggestion covering ``offset``, if any."""
    covering = [s for s in suggestions if s.contains(offset)]
    if not covering:
        return None
    return min(covering, key=_rank_key)
