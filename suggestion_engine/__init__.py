"""
Suggestion Engine - Position mapping and conflict resolution for inline writing suggestions.

Keeps a set of suggestions (grammar, spelling, style, demonetization risk,
protected slang, tone rewrites, ...) anchored to a live document while the
user edits it.

Components:
- locator: repairs drifted offsets by exact text search
- position_map: flat text offsets <-> structured document positions
- registry: suggestion lifecycle, filtering and analytics
- resolver: priorities, overlap groups and the acceptance cascade
- recalculator: offset maintenance across removals and insertions
- engine: per-document facade tying the above together
- detectors / sources / staging: where suggestions come from and when

Usage:
    from suggestion_engine import SuggestionEngine

    engine = SuggestionEngine("Teh quick fox")
    engine.ingest([{"text": "Teh", "type": "spelling", "alternatives": ["The"]}])
    for instruction in engine.render_instructions():
        print(instruction.flat_start, instruction.flat_end, instruction.css_class)
"""

from .engine import SuggestionEngine
from .errors import (
    MalformedRangeError,
    OffsetDriftError,
    SourceFetchError,
    StaleBatchError,
    SuggestionEngineError,
)
from .locator import LocateStrategy, locate, locate_or_raise
from .models import (
    ConflictResolutionMode,
    ContentSnapshot,
    Decoration,
    FeatureToggles,
    Formality,
    RenderInstruction,
    Suggestion,
    SuggestionRecord,
    SuggestionStatus,
    SuggestionType,
    TextInsertion,
    TextRemoval,
)
from .position_map import DocNode, PositionMap, build_decorations, build_map
from .recalculator import RecalculationReport, on_text_inserted, on_text_removed
from .registry import SuggestionRegistry
from .resolver import ConflictGroup, compute_priority, group_overlaps
from .sources import (
    CompositeSuggestionSource,
    HttpSuggestionSource,
    RuleBasedSuggestionSource,
    SuggestionSource,
)
from .staging import StagedSuggestionFetcher

__version__ = "1.0.0"

__all__ = [
    "SuggestionEngine",
    "SuggestionRegistry",
    "StagedSuggestionFetcher",
    # Models
    "ConflictResolutionMode",
    "ContentSnapshot",
    "Decoration",
    "FeatureToggles",
    "Formality",
    "RenderInstruction",
    "Suggestion",
    "SuggestionRecord",
    "SuggestionStatus",
    "SuggestionType",
    "TextInsertion",
    "TextRemoval",
    # Locator / mapping
    "LocateStrategy",
    "locate",
    "locate_or_raise",
    "DocNode",
    "PositionMap",
    "build_map",
    "build_decorations",
    # Resolution / recalculation
    "ConflictGroup",
    "compute_priority",
    "group_overlaps",
    "RecalculationReport",
    "on_text_removed",
    "on_text_inserted",
    # Sources
    "SuggestionSource",
    "HttpSuggestionSource",
    "RuleBasedSuggestionSource",
    "CompositeSuggestionSource",
    # Errors
    "SuggestionEngineError",
    "OffsetDriftError",
    "MalformedRangeError",
    "StaleBatchError",
    "SourceFetchError",
]
