"""
Tests for suggestion_engine.resolver - priorities, conflicts and the acceptance cascade.
"""

import pytest

from suggestion_engine.models import ConflictResolutionMode, SuggestionStatus, SuggestionType
from suggestion_engine.resolver import (
    BASE_WEIGHTS,
    MAX_PRIORITY,
    MIN_PRIORITY,
    apply_acceptance,
    assign_priorities,
    compute_priority,
    conflicts,
    dominant_at,
    find_conflicts,
    group_overlaps,
    overlaps,
)


# ============================================================================
# compute_priority
# ============================================================================

class TestComputePriority:
    """Priority formula per mode."""

    @pytest.mark.parametrize("suggestion_type", list(SuggestionType))
    def test_neutral_confidence_gives_base_weight(self, make_suggestion, suggestion_type):
        suggestion = make_suggestion(0, 4, type=suggestion_type)
        assert compute_priority(suggestion) == BASE_WEIGHTS[suggestion_type]

    def test_grammar_first(self, make_suggestion):
        grammar = make_suggestion(0, 4, type=SuggestionType.GRAMMAR)
        tone = make_suggestion(0, 4, type=SuggestionType.TONE_REWRITE)
        mode = ConflictResolutionMode.GRAMMAR_FIRST
        assert compute_priority(grammar, mode) == 9
        assert compute_priority(tone, mode) == 6

    def test_tone_first(self, make_suggestion):
        grammar = make_suggestion(0, 4, type=SuggestionType.GRAMMAR)
        tone = make_suggestion(0, 4, type=SuggestionType.TONE_REWRITE)
        mode = ConflictResolutionMode.TONE_FIRST
        assert compute_priority(grammar, mode) == 5
        assert compute_priority(tone, mode) == 10

    def test_user_choice_is_flat(self, make_suggestion):
        mode = ConflictResolutionMode.USER_CHOICE
        for suggestion_type in SuggestionType:
            suggestion = make_suggestion(0, 4, type=suggestion_type, confidence=1.0)
            assert compute_priority(suggestion, mode) == 5

    def test_confidence_moves_priority(self, make_suggestion):
        low = make_suggestion(0, 4, type=SuggestionType.STYLE, confidence=0.0)
        high = make_suggestion(0, 4, type=SuggestionType.STYLE, confidence=1.0)
        assert compute_priority(low) == 3
        assert compute_priority(high) == 7

    def test_half_scores_round_up(self, make_suggestion):
        # 7.5 and 8.5 must stay one step apart
        grammar = make_suggestion(0, 4, type=SuggestionType.GRAMMAR, confidence=0.625)
        seo = make_suggestion(0, 4, type=SuggestionType.SEO, confidence=0.625)
        assert compute_priority(grammar) == 8
        assert compute_priority(seo) == 9

    def test_confidence_scale_is_configurable(self, make_suggestion):
        suggestion = make_suggestion(0, 4, type=SuggestionType.STYLE, confidence=1.0)
        assert compute_priority(suggestion, confidence_scale=0.0) == 5

    def test_clamped_to_range(self, make_suggestion):
        top = make_suggestion(0, 4, type=SuggestionType.SPELLING, confidence=1.0)
        bottom = make_suggestion(0, 4, type=SuggestionType.SLANG_PROTECTED, confidence=0.0)
        assert compute_priority(top, ConflictResolutionMode.GRAMMAR_FIRST) == MAX_PRIORITY
        assert compute_priority(bottom) == MIN_PRIORITY

    def test_assign_priorities_never_touches_status(self, make_suggestion):
        suggestions = [
            make_suggestion(0, 4, status=SuggestionStatus.IGNORED),
            make_suggestion(5, 9, type=SuggestionType.SPELLING),
        ]
        assign_priorities(suggestions, ConflictResolutionMode.TONE_FIRST)
        assert [s.status for s in suggestions] == [SuggestionStatus.IGNORED, SuggestionStatus.PENDING]
        assert [s.priority for s in suggestions] == [5, 7]


# ============================================================================
# Overlap and conflicts
# ============================================================================

class TestConflicts:

    def test_overlaps_half_open(self, make_suggestion):
        assert overlaps(make_suggestion(0, 5), make_suggestion(4, 8))
        assert not overlaps(make_suggestion(0, 5), make_suggestion(5, 8))

    def test_explicit_link_counts_as_conflict(self, make_suggestion):
        a = make_suggestion(0, 5, id="a", conflicts_with=["b"])
        b = make_suggestion(20, 25, id="b")
        assert conflicts(a, b)
        assert conflicts(b, a)

    def test_not_in_conflict_with_itself(self, make_suggestion):
        a = make_suggestion(0, 5, id="a")
        assert not conflicts(a, a)

    def test_find_conflicts_only_pending(self, make_suggestion):
        target = make_suggestion(0, 10, id="t")
        pending = make_suggestion(5, 12, id="p")
        ignored = make_suggestion(2, 4, id="i", status=SuggestionStatus.IGNORED)
        assert [s.id for s in find_conflicts(target, [target, pending, ignored])] == ["p"]


class TestApplyAcceptance:
    """The acceptance cascade."""

    def test_cascade(self, make_suggestion):
        a = make_suggestion(0, 10, id="A", type=SuggestionType.GRAMMAR)
        b = make_suggestion(5, 15, id="B", type=SuggestionType.STYLE)
        changed = apply_acceptance(a, [a, b])
        assert [s.id for s in changed] == ["A", "B"]
        assert a.status is SuggestionStatus.ACCEPTED
        assert b.status is SuggestionStatus.IGNORED

    def test_cascade_follows_conflict_links(self, make_suggestion):
        a = make_suggestion(0, 10, id="A", conflicts_with=["C"])
        c = make_suggestion(30, 40, id="C")
        d = make_suggestion(50, 60, id="D")
        apply_acceptance(a, [a, c, d])
        assert c.status is SuggestionStatus.IGNORED
        assert d.status is SuggestionStatus.PENDING

    def test_cascade_ignores_protected_slang_too(self, make_suggestion):
        a = make_suggestion(0, 10, id="A")
        slang = make_suggestion(2, 6, id="S", type=SuggestionType.SLANG_PROTECTED)
        apply_acceptance(a, [a, slang])
        assert slang.status is SuggestionStatus.IGNORED

    def test_terminal_target_is_noop(self, make_suggestion):
        a = make_suggestion(0, 10, id="A", status=SuggestionStatus.IGNORED)
        b = make_suggestion(5, 15, id="B")
        assert apply_acceptance(a, [a, b]) == []
        assert b.is_pending


# ============================================================================
# Groups
# ============================================================================

class TestGroupOverlaps:

    def test_transitive_cluster(self, make_suggestion):
        suggestions = [
            make_suggestion(0, 5, id="a"),
            make_suggestion(4, 9, id="b", type=SuggestionType.SPELLING),
            make_suggestion(8, 12, id="c", type=SuggestionType.STYLE),
            make_suggestion(20, 22, id="lonely"),
        ]
        assign_priorities(suggestions, ConflictResolutionMode.BALANCED)
        groups = group_overlaps(suggestions)
        assert len(groups) == 1
        group = groups[0]
        assert [s.id for s in group.members] == ["a", "b", "c"]
        assert (group.start, group.end) == (0, 12)
        assert group.winner.id == "b"
        assert group.to_dict()["winner_id"] == "b"

    def test_touching_ranges_do_not_group(self, make_suggestion):
        assert group_overlaps([make_suggestion(0, 5), make_suggestion(5, 9)]) == []

    def test_user_choice_surfaces_groups(self, make_suggestion):
        suggestions = [make_suggestion(0, 5, id="a"), make_suggestion(2, 6, id="b")]
        assign_priorities(suggestions, ConflictResolutionMode.USER_CHOICE)
        groups = group_overlaps(suggestions, ConflictResolutionMode.USER_CHOICE)
        assert len(groups) == 1
        assert groups[0].winner is None
        assert groups[0].is_surfaced

    def test_dominant_at(self, make_suggestion):
        suggestions = [
            make_suggestion(0, 10, id="grammar"),
            make_suggestion(3, 6, id="spelling", type=SuggestionType.SPELLING),
        ]
        assign_priorities(suggestions, ConflictResolutionMode.BALANCED)
        assert dominant_at(suggestions, 1).id == "grammar"
        assert dominant_at(suggestions, 4).id == "spelling"
        assert dominant_at(suggestions, 10) is None
