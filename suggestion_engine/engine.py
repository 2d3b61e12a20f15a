"""
Suggestion Engine - Per-document facade over locator, registry, resolver and recalculator.

Each SuggestionEngine instance is an explicit state container for one
document: its current plain text, the suggestion registry, category toggles
and conflict-resolution mode. Nothing is shared between instances.

Flow:
1. load_document(): new text, every suggestion dropped, refresh requested
2. ingest(records): offsets validated/repaired against the live text, then
   the batch replaces the registry (merge() adds a later stage instead)
3. accept()/ignore(): lifecycle transitions with the conflict cascade
4. on_text_removed()/on_text_inserted(): offsets kept valid across edits
5. render_instructions()/decorations(): what the rich text surface draws
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from logging_utils import Phase, PhaseLogger

from .errors import MalformedRangeError, OffsetDriftError, StaleBatchError
from .locator import LocateStrategy, locate_or_raise
from .models import (
    ConflictResolutionMode,
    ContentSnapshot,
    Decoration,
    FeatureToggles,
    RenderInstruction,
    Suggestion,
    SuggestionAnalytics,
    SuggestionRecord,
    SuggestionStatus,
    TextInsertion,
    TextRemoval,
)
from .position_map import DocNode, build_decorations, build_map
from .recalculator import RecalculationReport
from .registry import SuggestionRegistry
from .resolver import CONFIDENCE_SCALE, ConflictGroup

logger = logging.getLogger(__name__)

RecordLike = Union[SuggestionRecord, Mapping[str, Any]]
SnapshotLike = Union[ContentSnapshot, str, None]


class SuggestionEngine:
    """
    Suggestion state for one document.

    Example:
        engine = SuggestionEngine("Their going to the park.")
        engine.ingest([{"text": "Their", "start": 0, "end": 5,
                        "type": "grammar", "alternatives": ["They're"]}])
        engine.accept(engine.suggestions[0].id)
        engine.text            # "They're going to the park."
        engine.needs_refresh   # True
    """

    def __init__(
        self,
        text: str = "",
        *,
        document_id: Optional[str] = None,
        toggles: Optional[FeatureToggles] = None,
        mode: ConflictResolutionMode = ConflictResolutionMode.BALANCED,
        locate_strategy: LocateStrategy = LocateStrategy.FIRST,
        confidence_scale: float = CONFIDENCE_SCALE,
        on_refresh_needed: Optional[Callable[["SuggestionEngine"], None]] = None,
        phase_logger: Optional[PhaseLogger] = None,
        verbose: bool = False,
    ):
        self.document_id = document_id
        self.locate_strategy = LocateStrategy(locate_strategy)
        self.on_refresh_needed = on_refresh_needed
        self.phase_logger = phase_logger or PhaseLogger(
            session_id=document_id or "engine", verbose=verbose, logger=logger
        )
        self.registry = SuggestionRegistry(toggles=toggles, mode=mode, confidence_scale=confidence_scale)
        self._text = text
        self._snapshot = ContentSnapshot.of(text)
        self._needs_refresh = bool(text)

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def text(self) -> str:
        return self._text

    @property
    def snapshot(self) -> ContentSnapshot:
        """Identity of the current text; batches must be computed for it."""
        return self._snapshot

    @property
    def needs_refresh(self) -> bool:
        return self._needs_refresh

    @property
    def suggestions(self) -> List[Suggestion]:
        return self.registry.suggestions

    @property
    def all_suggestions(self) -> List[Suggestion]:
        return self.registry.all_suggestions

    @property
    def analytics(self) -> SuggestionAnalytics:
        return self.registry.analytics

    @property
    def toggles(self) -> FeatureToggles:
        return self.registry.toggles

    @property
    def mode(self) -> ConflictResolutionMode:
        return self.registry.mode

    def get(self, suggestion_id: str) -> Optional[Suggestion]:
        return self.registry.get(suggestion_id)

    def _set_text(self, text: str) -> None:
        self._text = text
        self._snapshot = ContentSnapshot.of(text)

    def _request_refresh(self) -> None:
        self._needs_refresh = True
        if self.on_refresh_needed is not None:
            self.on_refresh_needed(self)

    def load_document(self, text: str, document_id: Optional[str] = None) -> None:
        """Switch to a new document text; all suggestions are dropped."""
        if document_id is not None:
            self.document_id = document_id
        self._set_text(text)
        self.registry.clear()
        self.phase_logger.debug(f"Loaded document {self.document_id or '-'} ({len(text)} chars)")
        self._request_refresh()

    # =========================================================================
    # BATCHES
    # =========================================================================

    def check_snapshot(self, snapshot: SnapshotLike) -> None:
        """
        Raise StaleBatchError when ``snapshot`` is not the current content.

        ``None`` means the caller did not pin the batch to a snapshot.
        """
        if snapshot is None:
            return
        expected = snapshot.digest if isinstance(snapshot, ContentSnapshot) else str(snapshot)
        if expected != self._snapshot.digest:
            raise StaleBatchError(
                f"Batch computed for content {expected}, current content is {self._snapshot.digest}",
                expected=expected,
                actual=self._snapshot.digest,
            )

    def _validate_records(self, records: Iterable[RecordLike]) -> List[Suggestion]:
        """Turn wire records into suggestions with offsets valid for the current text."""
        validated: List[Suggestion] = []
        with self.phase_logger.phase(Phase.LOCATE):
            for raw in records:
                try:
                    record = raw if isinstance(raw, SuggestionRecord) else SuggestionRecord.model_validate(raw)
                except ValidationError as e:
                    self.phase_logger.warning(f"Skipping malformed suggestion record: {e.error_count()} error(s)")
                    continue

                if record.start is not None and record.start == record.end:
                    self.phase_logger.log_dropped(record.id, f"empty range at {record.start}")
                    continue

                try:
                    start, end = locate_or_raise(
                        self._text,
                        record.text,
                        record.start,
                        record.end,
                        strategy=self.locate_strategy,
                        suggestion_id=record.id,
                    )
                except OffsetDriftError as e:
                    self.phase_logger.log_dropped(record.id, str(e))
                    continue

                validated.append(record.to_suggestion(start, end))
        return validated

    def ingest(self, records: Iterable[RecordLike], snapshot: SnapshotLike = None) -> List[Suggestion]:
        """
        Replace the current batch with a new one.

        Args:
            records: Suggestion records from the source (models or dicts)
            snapshot: Content snapshot (or digest) the batch was computed for

        Returns:
            The active view after ingestion

        Raises:
            StaleBatchError: When the batch was computed for other content
        """
        records = list(records)
        with self.phase_logger.phase(Phase.INGEST, sub_label=f"{len(records)} records"):
            self.check_snapshot(snapshot)
            suggestions = self._validate_records(records)
            with self.phase_logger.phase(Phase.RESOLVE):
                active = self.registry.replace_all(suggestions)
            self._needs_refresh = False
            self.phase_logger.log_batch_summary(len(records), len(suggestions), len(active))
        return active

    def merge(self, records: Iterable[RecordLike], snapshot: SnapshotLike = None) -> List[Suggestion]:
        """
        Add a later stage of the same batch without disturbing existing suggestions.

        Returns:
            The suggestions that were added
        """
        records = list(records)
        with self.phase_logger.phase(Phase.INGEST, sub_label=f"merge {len(records)} records"):
            self.check_snapshot(snapshot)
            suggestions = self._validate_records(records)
            with self.phase_logger.phase(Phase.RESOLVE):
                added = self.registry.merge(suggestions)
            if added:
                self.phase_logger.log_decision("MERGED", [s.id for s in added])
        return added

    # =========================================================================
    # SETTINGS
    # =========================================================================

    def set_toggles(self, toggles: FeatureToggles) -> List[Suggestion]:
        return self.registry.set_toggles(toggles)

    def set_mode(self, mode: ConflictResolutionMode) -> List[Suggestion]:
        with self.phase_logger.phase(Phase.RESOLVE, sub_label=f"mode {ConflictResolutionMode(mode).value}"):
            return self.registry.set_mode(mode)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def set_status(self, suggestion_id: str, status: SuggestionStatus) -> List[Suggestion]:
        """Route to accept()/ignore(); other transitions go straight to the registry."""
        status = SuggestionStatus(status)
        if status is SuggestionStatus.ACCEPTED:
            return self.accept(suggestion_id)
        if status is SuggestionStatus.IGNORED:
            return self.ignore(suggestion_id)
        return self.registry.set_status(suggestion_id, status)

    def accept(self, suggestion_id: str, alternative_index: Optional[int] = None) -> List[Suggestion]:
        """
        Accept a suggestion and apply its replacement to the document text.

        The replacement is handled as a removal of the flagged span followed by
        an insertion, so every other pending suggestion is invalidated and a
        refresh is requested. Informational suggestions (protected slang) and
        suggestions without alternatives are accepted without touching the text.

        Args:
            suggestion_id: Suggestion to accept
            alternative_index: Which alternative to apply; the first one when omitted

        Returns:
            Suggestions whose status changed (accepted target first)

        Raises:
            IndexError: When alternative_index does not exist
            OffsetDriftError: When the flagged span no longer reads as the suggestion text
        """
        suggestion = self.registry.get(suggestion_id)
        if suggestion is None or not suggestion.is_pending:
            return []

        replacement: Optional[str] = None
        if suggestion.alternatives and not suggestion.type.is_informational:
            if alternative_index is None:
                replacement = suggestion.default_alternative
            elif 0 <= alternative_index < len(suggestion.alternatives):
                replacement = suggestion.alternatives[alternative_index]
            else:
                raise IndexError(
                    f"Suggestion {suggestion_id} has {len(suggestion.alternatives)} alternative(s), "
                    f"index {alternative_index} requested"
                )
            if self._text[suggestion.start:suggestion.end] != suggestion.text:
                raise OffsetDriftError(
                    f"Span {suggestion.start}-{suggestion.end} no longer reads {suggestion.text!r}",
                    suggestion_id=suggestion_id,
                    text=suggestion.text,
                )

        start, end = suggestion.start, suggestion.end
        changed = self.registry.set_status(suggestion_id, SuggestionStatus.ACCEPTED)
        self.phase_logger.log_decision(
            "ACCEPTED", [suggestion_id], reason=f"{len(changed) - 1} conflicting suggestion(s) ignored"
        )

        if replacement is not None:
            self.on_text_removed(start, end, suggestion.text)
            if replacement:
                self.on_text_inserted(start, replacement)
            else:
                self._request_refresh()
        return changed

    def ignore(self, suggestion_id: str) -> List[Suggestion]:
        changed = self.registry.set_status(suggestion_id, SuggestionStatus.IGNORED)
        if changed:
            self.phase_logger.log_decision("IGNORED", [suggestion_id])
        return changed

    # =========================================================================
    # EDITS
    # =========================================================================

    def on_text_removed(self, from_pos: int, to_pos: int, removed_text: str = "") -> RecalculationReport:
        """
        Mirror a deletion of the flat span [from_pos, to_pos) and adjust offsets.

        Out-of-range removals are logged and ignored.
        """
        if not (0 <= from_pos < to_pos <= len(self._text)):
            error = MalformedRangeError(
                f"Removal {from_pos}-{to_pos} outside text of length {len(self._text)}",
                start=from_pos,
                end=to_pos,
            )
            self.phase_logger.warning(str(error))
            return RecalculationReport()

        if removed_text and self._text[from_pos:to_pos] != removed_text:
            self.phase_logger.warning(
                f"Removal {from_pos}-{to_pos} reported {removed_text!r}, "
                f"engine text has {self._text[from_pos:to_pos]!r}"
            )

        with self.phase_logger.phase(Phase.EDIT, sub_label=f"removal {from_pos}-{to_pos}"):
            self._set_text(self._text[:from_pos] + self._text[to_pos:])
            report = self.registry.apply_removal(from_pos, to_pos)
            if report.invalidated:
                self.phase_logger.log_decision("INVALIDATED", report.invalidated)
        return report

    def on_text_inserted(self, position: int, inserted_text: str) -> RecalculationReport:
        """Mirror an insertion; every pending suggestion is invalidated and a refresh requested."""
        if not inserted_text:
            return RecalculationReport()
        if not 0 <= position <= len(self._text):
            self.phase_logger.warning(f"Insertion at {position} outside text of length {len(self._text)}")
            return RecalculationReport()

        with self.phase_logger.phase(Phase.EDIT, sub_label=f"insertion at {position}"):
            self._set_text(self._text[:position] + inserted_text + self._text[position:])
            report = self.registry.apply_insertion(position, inserted_text)
        self._request_refresh()
        return report

    def apply_edit(self, edit: Union[TextRemoval, TextInsertion]) -> RecalculationReport:
        """Apply an edit reported by the rich text surface in flat offsets."""
        if isinstance(edit, TextRemoval):
            return self.on_text_removed(edit.from_pos, edit.to_pos, edit.removed_text)
        if isinstance(edit, TextInsertion):
            return self.on_text_inserted(edit.position, edit.inserted_text)
        raise TypeError(f"Unsupported edit {type(edit).__name__}")

    def on_structured_removal(self, doc: DocNode, from_pos: int, to_pos: int) -> RecalculationReport:
        """
        Handle a removal reported in structured positions.

        Args:
            doc: Document tree as it was before the removal
            from_pos: Structured start of the removed range
            to_pos: Structured end of the removed range

        Returns:
            RecalculationReport for the equivalent flat removal (empty when
            the range covered no text, e.g. an empty paragraph)
        """
        removal = TextRemoval(*build_map(doc).to_flat_range(from_pos, to_pos))
        if removal.length <= 0:
            return RecalculationReport()
        return self.apply_edit(removal)

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render_instructions(self) -> List[RenderInstruction]:
        """One instruction per active suggestion, in active-view order."""
        with self.phase_logger.phase(Phase.RENDER):
            return [RenderInstruction.for_suggestion(s) for s in self.registry.suggestions]

    def decorations(self, doc: Optional[DocNode] = None) -> List[Decoration]:
        """
        Map the active view onto structured positions.

        Args:
            doc: Current document tree; defaults to a single paragraph holding
                the engine text
        """
        if doc is None:
            doc = DocNode.from_paragraphs([self._text])
        elif doc.plain_text() != self._text:
            self.phase_logger.warning("Document tree text differs from engine text; decorations may be skipped")

        instructions = self.render_instructions()
        with self.phase_logger.phase(Phase.RENDER, sub_label="decorations"):
            return build_decorations(build_map(doc), instructions)

    def conflict_groups(self) -> List[ConflictGroup]:
        return self.registry.conflict_groups()

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready state for the HTTP surface."""
        state = self.registry.snapshot()
        state.update(
            {
                "document_id": self.document_id,
                "snapshot": self._snapshot.digest,
                "text_length": len(self._text),
                "needs_refresh": self._needs_refresh,
                "conflict_groups": [g.to_dict() for g in self.registry.conflict_groups()],
                "phase_timings": self.phase_logger.timing_summary(),
            }
        )
        return state
