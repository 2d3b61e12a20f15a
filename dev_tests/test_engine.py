"""
Tests for suggestion_engine.engine - the per-document facade.

Test Areas:
1. Ingestion (offset repair, drops, stale snapshots)
2. Acceptance flow (text replacement, cascade, refresh request)
3. Edits mirrored into the engine text
4. Rendering (instructions and decorations)
"""

import logging

import pytest
from unittest.mock import Mock

from suggestion_engine import (
    ConflictResolutionMode,
    ContentSnapshot,
    DocNode,
    FeatureToggles,
    OffsetDriftError,
    StaleBatchError,
    SuggestionEngine,
    SuggestionRecord,
    SuggestionStatus,
    SuggestionType,
    TextInsertion,
    TextRemoval,
)
from suggestion_engine.models import DemonetizationPayload, GenericPayload


def _ids(suggestions):
    return [s.id for s in suggestions]


# ============================================================================
# Ingestion
# ============================================================================

class TestIngest:
    """Batch ingestion."""

    def test_ingest_installs_batch(self, make_engine, sample_records):
        engine = make_engine()
        active = engine.ingest(sample_records)
        assert _ids(active) == ["g1", "st1", "g2"]
        assert engine.needs_refresh is False

    def test_new_engine_with_text_needs_refresh(self, make_engine):
        assert make_engine().needs_refresh is True
        assert make_engine("").needs_refresh is False

    def test_drifted_offsets_are_repaired(self, make_engine):
        engine = make_engine()
        engine.ingest([{"id": "a", "text": "park", "start": 3, "end": 7}])
        assert engine.get("a").span == (19, 23)

    def test_missing_offsets_are_located(self, make_engine):
        engine = make_engine()
        engine.ingest([{"id": "a", "text": "tomorrow"}])
        assert engine.get("a").span == (24, 32)

    def test_unlocatable_record_is_dropped(self, make_engine):
        engine = make_engine()
        active = engine.ingest([
            {"id": "gone", "text": "nowhere", "start": 0, "end": 7},
            {"id": "ok", "text": "park"},
        ])
        assert _ids(active) == ["ok"]

    def test_dropped_record_is_logged(self, make_engine, caplog):
        caplog.set_level(logging.DEBUG, logger="suggestion_engine.engine")
        engine = make_engine()
        engine.ingest([{"id": "gone", "text": "nowhere", "start": 0, "end": 7}])
        assert "[DROP]" in caplog.text
        assert "gone" in caplog.text

    def test_empty_range_record_is_dropped(self, make_engine):
        engine = make_engine()
        assert engine.ingest([{"id": "e", "text": "park", "start": 5, "end": 5}]) == []

    def test_malformed_record_is_skipped(self, make_engine):
        engine = make_engine()
        active = engine.ingest([{"id": "bad", "text": "park", "start": "abc"}, {"id": "ok", "text": "park"}])
        assert _ids(active) == ["ok"]

    def test_unknown_type_maps_to_other(self, make_engine):
        engine = make_engine()
        engine.ingest([{"id": "x", "text": "park", "type": "readability"}])
        suggestion = engine.get("x")
        assert suggestion.type is SuggestionType.OTHER
        assert isinstance(suggestion.payload, GenericPayload)
        assert suggestion.payload.label == "readability"

    def test_category_payload_from_extra_fields(self, make_engine):
        engine = make_engine()
        engine.ingest([{
            "id": "d",
            "text": "park",
            "type": "demonetization",
            "flaggedWord": "park",
            "context": "to the park tomorrow",
        }])
        payload = engine.get("d").payload
        assert isinstance(payload, DemonetizationPayload)
        assert payload.flagged_word == "park"
        assert payload.context == "to the park tomorrow"

    def test_accepts_record_models(self, make_engine):
        engine = make_engine()
        engine.ingest([SuggestionRecord(id="m", text="park")])
        assert "m" in engine.registry

    def test_stale_snapshot_rejected(self, make_engine, sample_records):
        engine = make_engine()
        stale = ContentSnapshot.of("some older text")
        with pytest.raises(StaleBatchError) as exc_info:
            engine.ingest(sample_records, snapshot=stale)
        assert exc_info.value.actual == engine.snapshot.digest
        assert engine.all_suggestions == []

    def test_current_snapshot_accepted_as_digest(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records, snapshot=engine.snapshot.digest)
        assert len(engine.all_suggestions) == 3

    def test_merge_keeps_existing(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records[:1])
        added = engine.merge(sample_records[1:], snapshot=engine.snapshot)
        assert _ids(added) == ["g2", "st1"]
        assert len(engine.all_suggestions) == 3

    def test_load_document_resets(self, make_engine, sample_records):
        refresh = Mock()
        engine = make_engine(on_refresh_needed=refresh)
        engine.ingest(sample_records)
        engine.load_document("Brand new text", document_id="doc-2")
        assert engine.all_suggestions == []
        assert engine.text == "Brand new text"
        assert engine.document_id == "doc-2"
        assert engine.needs_refresh is True
        refresh.assert_called_once_with(engine)


# ============================================================================
# Acceptance
# ============================================================================

class TestAccept:
    """Accepting a suggestion applies it to the text."""

    def test_accept_replaces_text(self, make_engine, sample_records):
        refresh = Mock()
        engine = make_engine(on_refresh_needed=refresh)
        engine.ingest(sample_records)

        changed = engine.accept("g1")

        assert _ids(changed) == ["g1"]
        assert engine.text == "They're going to the park tomorrow and they is happy."
        assert engine.get("g1").status is SuggestionStatus.ACCEPTED
        assert engine.needs_refresh is True
        refresh.assert_called_once_with(engine)

    def test_accept_invalidates_other_pending(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        engine.accept("g2")
        assert engine.suggestions == []
        assert engine.get("g1") is None
        assert engine.get("g2").status is SuggestionStatus.ACCEPTED

    def test_accept_cascade_ignores_overlapping(self, make_engine):
        engine = make_engine("abcdefghijklmnop")
        engine.ingest([
            {"id": "A", "text": "abcdefghij", "start": 0, "end": 10, "type": "grammar", "alternatives": ["X"]},
            {"id": "B", "text": "fghijklmno", "start": 5, "end": 15, "type": "style", "alternatives": ["Y"]},
        ])
        changed = engine.accept("A")
        assert _ids(changed) == ["A", "B"]
        assert engine.get("B").status is SuggestionStatus.IGNORED
        assert engine.text == "Xklmnop"

    def test_accept_defaults_to_first_alternative(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have", "had"]}])
        assert engine.get("a").default_alternative == "have"
        engine.accept("a")
        assert engine.text == "I have a cat"

    def test_accept_alternative_index(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have", "had"]}])
        engine.accept("a", alternative_index=1)
        assert engine.text == "I had a cat"

    def test_accept_bad_alternative_index(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have"]}])
        with pytest.raises(IndexError):
            engine.accept("a", alternative_index=3)
        assert engine.get("a").is_pending

    def test_accept_empty_replacement_deletes(self, make_engine):
        engine = make_engine("very very good")
        engine.ingest([{"id": "dup", "text": "very ", "start": 5, "end": 10, "alternatives": [""]}])
        engine.accept("dup")
        assert engine.text == "very good"
        assert engine.needs_refresh is True

    def test_accept_informational_keeps_text(self, make_engine):
        engine = make_engine("this fit is fire")
        engine.ingest([{"id": "s", "text": "fire", "type": "slang-protected"}])
        engine.accept("s")
        assert engine.text == "this fit is fire"
        assert engine.get("s").status is SuggestionStatus.ACCEPTED

    def test_accept_drifted_span_raises(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have"]}])
        engine.get("a").text = "hax"
        with pytest.raises(OffsetDriftError):
            engine.accept("a")

    def test_accept_unknown_or_terminal_is_noop(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have"]}])
        engine.ignore("a")
        assert engine.accept("a") == []
        assert engine.accept("missing") == []
        assert engine.text == "I has a cat"

    def test_set_status_routes(self, make_engine):
        engine = make_engine("I has a cat")
        engine.ingest([{"id": "a", "text": "has", "alternatives": ["have"]}])
        engine.set_status("a", SuggestionStatus.ACCEPTED)
        assert engine.text == "I have a cat"


# ============================================================================
# Edits
# ============================================================================

class TestEdits:

    def test_removal_updates_text_and_offsets(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        old_snapshot = engine.snapshot

        report = engine.on_text_removed(24, 33, "tomorrow ")

        assert engine.text == "Their going to the park and they is happy."
        assert engine.snapshot != old_snapshot
        assert report.shifted == ["g2"]
        g2 = engine.get("g2")
        assert engine.text[g2.start:g2.end] == "they is"

    def test_out_of_range_removal_ignored(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        report = engine.on_text_removed(40, 400)
        assert not report.changed
        assert engine.text == make_engine().text

    def test_insertion_requests_refresh(self, make_engine, sample_records):
        refresh = Mock()
        engine = make_engine(on_refresh_needed=refresh)
        engine.ingest(sample_records)

        report = engine.on_text_inserted(0, "Oh, ")

        assert engine.text.startswith("Oh, Their")
        assert engine.suggestions == []
        assert sorted(report.invalidated) == ["g1", "g2", "st1"]
        assert engine.needs_refresh is True
        refresh.assert_called_once()

    def test_apply_edit_removal(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)

        report = engine.apply_edit(TextRemoval(24, 33, "tomorrow "))

        assert engine.text == "Their going to the park and they is happy."
        assert report.shifted == ["g2"]

    def test_apply_edit_insertion(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)

        report = engine.apply_edit(TextInsertion(0, "Oh, "))

        assert engine.text.startswith("Oh, Their")
        assert report.needs_refresh is True
        assert engine.all_suggestions == []

    def test_apply_edit_rejects_unknown(self, make_engine):
        with pytest.raises(TypeError):
            make_engine().apply_edit("delete everything")

    def test_stale_batch_after_edit(self, make_engine, sample_records):
        engine = make_engine()
        snapshot = engine.snapshot
        engine.on_text_inserted(0, "x")
        with pytest.raises(StaleBatchError):
            engine.ingest(sample_records, snapshot=snapshot)

    def test_structured_removal(self, make_engine):
        engine = make_engine("Hiyo")
        engine.ingest([{"id": "y", "text": "yo", "start": 2, "end": 4}])
        doc = DocNode.from_paragraphs(["Hi", "yo"])

        # Removes the "i" (structured 2..3)
        report = engine.on_structured_removal(doc, 2, 3)

        assert engine.text == "Hyo"
        assert engine.get("y").span == (1, 3)
        assert report.shifted == ["y"]

    def test_structured_removal_without_text(self, make_engine):
        engine = make_engine("ab")
        doc = DocNode.from_paragraphs(["a", "", "b"])
        report = engine.on_structured_removal(doc, 3, 5)
        assert not report.changed
        assert engine.text == "ab"


# ============================================================================
# Settings and rendering
# ============================================================================

class TestRendering:

    def test_render_instructions(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        instructions = engine.render_instructions()
        assert [i.suggestion_id for i in instructions] == ["g1", "st1", "g2"]
        assert instructions[1].css_class == "suggestion-underline-style"
        assert (instructions[0].flat_start, instructions[0].flat_end) == (0, 5)

    def test_toggles_hide_instructions(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        engine.set_toggles(FeatureToggles(style_enabled=False))
        assert [i.suggestion_id for i in engine.render_instructions()] == ["g1", "g2"]

    def test_default_decorations_single_paragraph(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        decorations = {d.suggestion_id: d for d in engine.decorations()}
        assert (decorations["g1"].from_pos, decorations["g1"].to_pos) == (1, 6)

    def test_decorations_for_structured_doc(self, make_engine):
        engine = make_engine("Hiyo")
        engine.ingest([{"id": "y", "text": "yo"}])
        decorations = engine.decorations(DocNode.from_paragraphs(["Hi", "yo"]))
        assert [(d.from_pos, d.to_pos) for d in decorations] == [(5, 7)]

    def test_user_choice_mode_surfaces_groups(self, make_engine, sample_records):
        engine = make_engine()
        engine.ingest(sample_records)
        engine.set_mode(ConflictResolutionMode.USER_CHOICE)
        assert engine.conflict_groups() == []
        assert {s.priority for s in engine.suggestions} == {5}

    def test_to_dict(self, make_engine, sample_records):
        engine = make_engine(document_id="doc-1")
        engine.ingest(sample_records)
        state = engine.to_dict()
        assert state["document_id"] == "doc-1"
        assert state["snapshot"] == engine.snapshot.digest
        assert state["text_length"] == len(engine.text)
        assert len(state["suggestions"]) == 3


class TestIsolation:

    def test_engines_share_nothing(self, sample_records):
        first = SuggestionEngine("Their going to the park tomorrow and they is happy.")
        second = SuggestionEngine("Their going to the park tomorrow and they is happy.")
        first.ingest(sample_records)
        first.set_mode(ConflictResolutionMode.TONE_FIRST)
        assert second.all_suggestions == []
        assert second.mode is ConflictResolutionMode.BALANCED
