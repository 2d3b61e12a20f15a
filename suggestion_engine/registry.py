"""
Suggestion Registry - Canonical store of suggestions for one document.

Two views are kept:
- all_suggestions: every suggestion of the current batch, unfiltered
- suggestions: pending suggestions whose category is enabled, with priorities
  for the current conflict-resolution mode, ordered by (start, -priority, id)

The active view is a pure function of (all_suggestions, toggles, mode), so
refilter() can run on every keystroke and calling it twice yields the same
content.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Iterable, List, Optional, Tuple

from .models import (
    ConflictResolutionMode,
    FeatureToggles,
    Suggestion,
    SuggestionAnalytics,
    SuggestionStatus,
)
from .recalculator import RecalculationReport, on_text_inserted, on_text_removed
from .resolver import (
    CONFIDENCE_SCALE,
    ConflictGroup,
    apply_acceptance,
    assign_priorities,
    group_overlaps,
)

logger = logging.getLogger(__name__)


def _is_valid_range(suggestion: Suggestion) -> bool:
    return 0 <= suggestion.start < suggestion.end


class SuggestionRegistry:
    """
    Owns the suggestion list of one document and its lifecycle.

    Example:
        registry = SuggestionRegistry()
        registry.replace_all([a, b])
        registry.set_status(a.id, SuggestionStatus.ACCEPTED)  # b ignored if it overlaps a
        registry.set_toggles(FeatureToggles(grammar_enabled=False))
    """

    def __init__(
        self,
        toggles: Optional[FeatureToggles] = None,
        mode: ConflictResolutionMode = ConflictResolutionMode.BALANCED,
        confidence_scale: float = CONFIDENCE_SCALE,
    ):
        self._toggles = toggles.model_copy() if toggles is not None else FeatureToggles()
        self._mode = ConflictResolutionMode(mode)
        self._confidence_scale = confidence_scale
        self._all: List[Suggestion] = []
        self._by_id: Dict[str, Suggestion] = {}
        self._active: List[Suggestion] = []
        self._analytics = SuggestionAnalytics()

    # =========================================================================
    # VIEWS
    # =========================================================================

    @property
    def all_suggestions(self) -> List[Suggestion]:
        return list(self._all)

    @property
    def suggestions(self) -> List[Suggestion]:
        """Active (filtered, prioritized) view."""
        return list(self._active)

    @property
    def toggles(self) -> FeatureToggles:
        return self._toggles.model_copy()

    @property
    def mode(self) -> ConflictResolutionMode:
        return self._mode

    @property
    def analytics(self) -> SuggestionAnalytics:
        return self._analytics

    def get(self, suggestion_id: str) -> Optional[Suggestion]:
        return self._by_id.get(suggestion_id)

    def pending(self) -> List[Suggestion]:
        return [s for s in self._all if s.is_pending]

    def __len__(self) -> int:
        return len(self._all)

    def __contains__(self, suggestion_id: object) -> bool:
        return suggestion_id in self._by_id

    # =========================================================================
    # BATCH OPERATIONS
    # =========================================================================

    def replace_all(self, new_suggestions: Iterable[Suggestion]) -> List[Suggestion]:
        """
        Discard the current batch and install a new one.

        Incoming suggestions are copied, forced to pending, and rejected when
        their range is empty or negative or when they duplicate an earlier
        entry (same id, or same category and range).

        Returns:
            The active view after the replace
        """
        accepted, _ = self._admit(new_suggestions, existing=[])
        self._all = accepted
        self._by_id = {s.id: s for s in accepted}
        self.refilter()
        return self.suggestions

    def merge(self, batch: Iterable[Suggestion]) -> List[Suggestion]:
        """
        Add suggestions from a partial batch without touching existing ones.

        Used when a later stage of the same content snapshot arrives: already
        known ids and identical (type, start, end) ranges are skipped.

        Returns:
            The suggestions that were added
        """
        added, _ = self._admit(batch, existing=self._all)
        if added:
            self._all.extend(added)
            self._by_id.update({s.id: s for s in added})
        self.refilter()
        return added

    def _admit(
        self,
        incoming: Iterable[Suggestion],
        existing: List[Suggestion],
    ) -> Tuple[List[Suggestion], int]:
        seen_ids = {s.id for s in existing}
        seen_ranges = {(s.type, s.start, s.end) for s in existing}
        admitted: List[Suggestion] = []
        rejected = 0

        for candidate in incoming:
            if not _is_valid_range(candidate):
                logger.debug(f"Rejected {candidate.id}: invalid range {candidate.start}-{candidate.end}")
                rejected += 1
                continue
            range_key = (candidate.type, candidate.start, candidate.end)
            if candidate.id in seen_ids or range_key in seen_ranges:
                logger.debug(f"Rejected duplicate suggestion {candidate.id} at {candidate.start}-{candidate.end}")
                rejected += 1
                continue
            suggestion = candidate.copy()
            suggestion.status = SuggestionStatus.PENDING
            seen_ids.add(suggestion.id)
            seen_ranges.add(range_key)
            admitted.append(suggestion)

        if rejected:
            logger.info(f"Registry admitted {len(admitted)} suggestion(s), rejected {rejected}")
        return admitted, rejected

    def clear(self) -> None:
        """Drop everything (new document loaded)."""
        self._all = []
        self._by_id = {}
        self.refilter()

    # =========================================================================
    # FILTERING
    # =========================================================================

    def refilter(self) -> List[Suggestion]:
        """
        Recompute priorities, the active view and analytics.

        Never changes any status.
        """
        assign_priorities(self._all, self._mode, self._confidence_scale)
        active = [s for s in self._all if s.is_pending and self._toggles.is_enabled(s.type)]
        active.sort(key=lambda s: (s.start, -s.priority, s.id))
        self._active = active
        self._analytics = self._compute_analytics()
        return self.suggestions

    def set_toggles(self, toggles: FeatureToggles) -> List[Suggestion]:
        self._toggles = toggles.model_copy()
        return self.refilter()

    def set_mode(self, mode: ConflictResolutionMode) -> List[Suggestion]:
        self._mode = ConflictResolutionMode(mode)
        return self.refilter()

    def conflict_groups(self) -> List[ConflictGroup]:
        """Overlap clusters within the active view."""
        return group_overlaps(self._active, self._mode)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def set_status(self, suggestion_id: str, status: SuggestionStatus) -> List[Suggestion]:
        """
        Transition one pending suggestion to a terminal state.

        Accepting runs the conflict cascade first. Unknown ids, suggestions
        already in a terminal state, and requests to go back to pending are
        silently ignored.

        Returns:
            Suggestions whose status changed
        """
        status = SuggestionStatus(status)
        suggestion = self._by_id.get(suggestion_id)
        if suggestion is None:
            logger.debug(f"set_status ignored: unknown suggestion {suggestion_id}")
            return []
        if suggestion.status.is_terminal or not status.is_terminal:
            return []

        if status is SuggestionStatus.ACCEPTED:
            changed = apply_acceptance(suggestion, self._all)
        else:
            suggestion.status = status
            changed = [suggestion]

        if status is SuggestionStatus.INVALIDATED:
            self.drop_invalidated()
        else:
            self.refilter()
        return changed

    def drop_invalidated(self) -> List[str]:
        """Remove invalidated suggestions from both views."""
        dropped = [s.id for s in self._all if s.status is SuggestionStatus.INVALIDATED]
        if dropped:
            self._all = [s for s in self._all if s.status is not SuggestionStatus.INVALIDATED]
            for suggestion_id in dropped:
                self._by_id.pop(suggestion_id, None)
        self.refilter()
        return dropped

    # =========================================================================
    # EDITS
    # =========================================================================

    def apply_removal(self, from_pos: int, to_pos: int) -> RecalculationReport:
        report = on_text_removed(self._all, from_pos, to_pos)
        self.drop_invalidated()
        return report

    def apply_insertion(self, position: int, inserted_text: str) -> RecalculationReport:
        report = on_text_inserted(self._all, position, inserted_text)
        self.drop_invalidated()
        return report

    # =========================================================================
    # ANALYTICS / EXPORT
    # =========================================================================

    def _compute_analytics(self) -> SuggestionAnalytics:
        by_status = Counter(s.status.value for s in self._all)
        by_type = Counter(s.type.value for s in self._all)
        confidences = [s.confidence for s in self._all if s.confidence is not None]
        average = round(sum(confidences) / len(confidences), 3) if confidences else None
        return SuggestionAnalytics(
            total=len(self._all),
            active=len(self._active),
            by_status=dict(by_status),
            by_type=dict(by_type),
            conflict_groups=len(group_overlaps(self._active, self._mode)),
            average_confidence=average,
        )

    def snapshot(self) -> Dict[str, object]:
        """JSON-ready view of the registry."""
        return {
            "mode": self._mode.value,
            "toggles": self._toggles.model_dump(),
            "all_suggestions": [s.to_dict() for s in self._all],
            "suggestions": [s.to_dict() for s in self._active],
            "analytics": self._analytics.to_dict(),
        }
