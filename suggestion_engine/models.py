"""
Suggestion Engine Models - Data structures for inline writing suggestions.

Core Types:
- SuggestionType: Closed category set with an OTHER bucket for unknown labels
- SuggestionStatus: Lifecycle states (pending -> accepted | ignored | invalidated)
- ConflictResolutionMode: User-selected policy used when ranking suggestions
- Suggestion: A flagged span with proposed alternatives and a category payload
- ContentSnapshot: Identity of the document text a batch was computed for

Category payloads form a tagged variant: every SuggestionType maps to exactly
one payload dataclass through PAYLOAD_TYPES, so per-category data never lives
in ad hoc optional fields on the suggestion itself.

Wire Types (pydantic, for data coming from the suggestion source):
- SuggestionRecord: One suggestion as delivered by the source
- FeatureToggles: Which categories are shown in the active view
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def new_suggestion_id(prefix: str = "sugg") -> str:
    """Generate a short opaque suggestion identifier."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class SuggestionType(str, Enum):
    """Suggestion categories understood by the engine."""

    GRAMMAR = "grammar"
    SPELLING = "spelling"
    STYLE = "style"
    DEMONETIZATION = "demonetization"
    SLANG_PROTECTED = "slang-protected"
    TONE_REWRITE = "tone-rewrite"
    ENGAGEMENT = "engagement"
    SEO = "seo"
    PLATFORM_ADAPTATION = "platform-adaptation"
    OTHER = "other"  # Unrecognized source label, kept with a GenericPayload

    @classmethod
    def parse(cls, raw: Any) -> "SuggestionType":
        """Map a raw source label to a category, falling back to OTHER."""
        if isinstance(raw, SuggestionType):
            return raw
        if not raw:
            return cls.OTHER
        normalized = str(raw).strip().lower().replace("_", "-").replace(" ", "-")
        normalized = _TYPE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER

    @property
    def is_informational(self) -> bool:
        """Informational categories carry no replacement to apply."""
        return self is SuggestionType.SLANG_PROTECTED


_TYPE_ALIASES: Dict[str, str] = {
    "demonetization-risk": "demonetization",
    "demonetisation": "demonetization",
    "slang": "slang-protected",
    "slang-protection": "slang-protected",
    "tone": "tone-rewrite",
    "platform": "platform-adaptation",
    "spell": "spelling",
}


class SuggestionStatus(str, Enum):
    """Lifecycle states. Every state except PENDING is terminal."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    IGNORED = "ignored"
    INVALIDATED = "invalidated"

    @property
    def is_terminal(self) -> bool:
        return self is not SuggestionStatus.PENDING


class ConflictResolutionMode(str, Enum):
    """How automatic precedence between categories is computed."""

    GRAMMAR_FIRST = "grammar-first"
    TONE_FIRST = "tone-first"
    BALANCED = "balanced"
    USER_CHOICE = "user-choice"  # Equal priority, conflicts surfaced rather than auto-resolved


class Formality(str, Enum):
    """Target formality used when deciding whether slang is protected."""

    CASUAL = "casual"
    BALANCED = "balanced"
    FORMAL = "formal"


# =============================================================================
# CATEGORY PAYLOADS
# =============================================================================


@dataclass
class StandardPayload:
    """Grammar, spelling and style suggestions carry no extra data."""

    kind: Literal["standard"] = "standard"


@dataclass
class DemonetizationPayload:
    flagged_word: str = ""
    context: str = ""
    kind: Literal["demonetization"] = "demonetization"


@dataclass
class SlangPayload:
    confidence_source: str = "Rules only"
    reasoning: str = ""
    is_intentional: bool = True
    kind: Literal["slang-protected"] = "slang-protected"


@dataclass
class ToneRewritePayload:
    original_tone: str = ""
    target_tone: str = ""
    kind: Literal["tone-rewrite"] = "tone-rewrite"


@dataclass
class EngagementPayload:
    hook_type: str = ""
    kind: Literal["engagement"] = "engagement"


@dataclass
class SeoPayload:
    seo_category: str = ""
    keyword: str = ""
    kind: Literal["seo"] = "seo"


@dataclass
class PlatformPayload:
    platform: str = ""
    platform_score: Optional[float] = None
    kind: Literal["platform-adaptation"] = "platform-adaptation"


@dataclass
class GenericPayload:
    """Payload for labels the engine does not recognize."""

    label: str = ""
    kind: Literal["other"] = "other"


CategoryPayload = Union[
    StandardPayload,
    DemonetizationPayload,
    SlangPayload,
    ToneRewritePayload,
    EngagementPayload,
    SeoPayload,
    PlatformPayload,
    GenericPayload,
]

PAYLOAD_TYPES: Dict[SuggestionType, type] = {
    SuggestionType.GRAMMAR: StandardPayload,
    SuggestionType.SPELLING: StandardPayload,
    SuggestionType.STYLE: StandardPayload,
    SuggestionType.DEMONETIZATION: DemonetizationPayload,
    SuggestionType.SLANG_PROTECTED: SlangPayload,
    SuggestionType.TONE_REWRITE: ToneRewritePayload,
    SuggestionType.ENGAGEMENT: EngagementPayload,
    SuggestionType.SEO: SeoPayload,
    SuggestionType.PLATFORM_ADAPTATION: PlatformPayload,
    SuggestionType.OTHER: GenericPayload,
}

_missing_payloads = set(SuggestionType) - set(PAYLOAD_TYPES)
if _missing_payloads:
    raise RuntimeError(f"No payload registered for: {sorted(t.value for t in _missing_payloads)}")

# Source field names (camelCase from the JS service) -> payload field names
_PAYLOAD_FIELD_ALIASES: Dict[str, str] = {
    "word": "flagged_word",
    "flaggedWord": "flagged_word",
    "confidenceSource": "confidence_source",
    "isIntentional": "is_intentional",
    "originalTone": "original_tone",
    "targetTone": "target_tone",
    "hookType": "hook_type",
    "seoCategory": "seo_category",
    "platformScore": "platform_score",
}


def build_payload(
    suggestion_type: SuggestionType,
    extra: Optional[Dict[str, Any]] = None,
    raw_label: str = "",
) -> CategoryPayload:
    """
    Build the payload variant for a category from loose source fields.

    Unknown keys are ignored; values of the wrong shape are dropped rather
    than failing the whole suggestion.
    """
    payload_cls = PAYLOAD_TYPES[suggestion_type]
    known = {f.name: f for f in fields(payload_cls) if f.name != "kind"}
    kwargs: Dict[str, Any] = {}
    for key, value in (extra or {}).items():
        name = _PAYLOAD_FIELD_ALIASES.get(key, key)
        if name not in known or value is None:
            continue
        if name == "platform_score":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                continue
            value = float(value)
        elif name == "is_intentional":
            value = bool(value)
        elif not isinstance(value, str):
            continue
        kwargs[name] = value
    if payload_cls is GenericPayload and "label" not in kwargs:
        kwargs["label"] = raw_label
    return payload_cls(**kwargs)


# =============================================================================
# SUGGESTION
# =============================================================================

NEUTRAL_CONFIDENCE = 0.5


@dataclass
class Suggestion:
    """
    A flagged span of flat document text with proposed replacements.

    Attributes:
        id: Opaque identifier, stable across re-filtering
        text: Substring the suggestion targets, as originally observed
        start: Inclusive flat-text start offset
        end: Exclusive flat-text end offset
        message: Human-readable description of the issue
        type: Category
        alternatives: Candidate replacements, first one is the default
        confidence: Source score in [0, 1]; None means neutral
        status: Lifecycle state
        priority: Derived ranking in [1, 10], recomputed by the resolver
        conflicts_with: Ids this suggestion semantically conflicts with
        payload: Category-specific data (see PAYLOAD_TYPES)
    """

    id: str
    text: str
    start: int
    end: int
    message: str = ""
    type: SuggestionType = SuggestionType.GRAMMAR
    alternatives: List[str] = field(default_factory=list)
    confidence: Optional[float] = None
    status: SuggestionStatus = SuggestionStatus.PENDING
    priority: int = 5
    conflicts_with: List[str] = field(default_factory=list)
    payload: Optional[CategoryPayload] = None

    def __post_init__(self):
        self.type = SuggestionType.parse(self.type)
        self.status = SuggestionStatus(self.status)
        if self.payload is None or not isinstance(self.payload, PAYLOAD_TYPES[self.type]):
            self.payload = build_payload(self.type)

    @property
    def length(self) -> int:
        return self.end - self.start

    @property
    def span(self) -> Tuple[int, int]:
        return (self.start, self.end)

    @property
    def is_pending(self) -> bool:
        return self.status is SuggestionStatus.PENDING

    @property
    def effective_confidence(self) -> float:
        return NEUTRAL_CONFIDENCE if self.confidence is None else self.confidence

    @property
    def default_alternative(self) -> Optional[str]:
        return self.alternatives[0] if self.alternatives else None

    def overlaps(self, other: "Suggestion") -> bool:
        """Half-open range intersection."""
        return self.start < other.end and other.start < self.end

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def copy(self) -> "Suggestion":
        return Suggestion(
            id=self.id,
            text=self.text,
            start=self.start,
            end=self.end,
            message=self.message,
            type=self.type,
            alternatives=list(self.alternatives),
            confidence=self.confidence,
            status=self.status,
            priority=self.priority,
            conflicts_with=list(self.conflicts_with),
            payload=self.payload,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        payload = {f.name: getattr(self.payload, f.name) for f in fields(self.payload)}
        return {
            "id": self.id,
            "text": self.text,
            "start": self.start,
            "end": self.end,
            "message": self.message,
            "type": self.type.value,
            "alternatives": list(self.alternatives),
            "confidence": self.confidence,
            "status": self.status.value,
            "priority": self.priority,
            "conflicts_with": list(self.conflicts_with),
            "payload": payload,
        }


@dataclass(frozen=True)
class ContentSnapshot:
    """Identity of a document text; batches are only applied to the snapshot they were computed for."""

    digest: str
    length: int

    @classmethod
    def of(cls, text: str) -> "ContentSnapshot":
        digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]
        return cls(digest=digest, length=len(text))


# =============================================================================
# RENDERING AND EDIT REPORTS
# =============================================================================

CSS_CLASSES: Dict[SuggestionType, str] = {
    SuggestionType.GRAMMAR: "suggestion-underline",
    SuggestionType.SPELLING: "suggestion-underline",
    SuggestionType.STYLE: "suggestion-underline-style",
    SuggestionType.DEMONETIZATION: "suggestion-underline-demonetization",
    SuggestionType.SLANG_PROTECTED: "suggestion-underline-slang-protected",
    SuggestionType.TONE_REWRITE: "suggestion-underline-tone-rewrite",
    SuggestionType.ENGAGEMENT: "suggestion-underline-engagement",
    SuggestionType.SEO: "suggestion-underline-seo",
    SuggestionType.PLATFORM_ADAPTATION: "suggestion-underline-platform",
    SuggestionType.OTHER: "suggestion-underline",
}


@dataclass
class RenderInstruction:
    """What the rich text surface needs to highlight one active suggestion."""

    flat_start: int
    flat_end: int
    category: SuggestionType
    suggestion_id: str
    priority: int
    css_class: str = "suggestion-underline"
    message: str = ""

    @classmethod
    def for_suggestion(cls, suggestion: Suggestion) -> "RenderInstruction":
        return cls(
            flat_start=suggestion.start,
            flat_end=suggestion.end,
            category=suggestion.type,
            suggestion_id=suggestion.id,
            priority=suggestion.priority,
            css_class=CSS_CLASSES[suggestion.type],
            message=suggestion.message,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "flat_start": self.flat_start,
            "flat_end": self.flat_end,
            "category": self.category.value,
            "suggestion_id": self.suggestion_id,
            "priority": self.priority,
            "css_class": self.css_class,
            "message": self.message,
        }


@dataclass
class Decoration:
    """An inline decoration in structured-position space."""

    from_pos: int
    to_pos: int
    suggestion_id: str
    css_class: str
    title: str = ""
    priority: int = 5

    @property
    def attrs(self) -> Dict[str, str]:
        return {
            "class": self.css_class,
            "data-suggestion-id": self.suggestion_id,
            "data-from": str(self.from_pos),
            "data-to": str(self.to_pos),
            "title": self.title,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_pos, "to": self.to_pos, "priority": self.priority, "attrs": self.attrs}


@dataclass
class TextRemoval:
    """Flat-text span [from_pos, to_pos) deleted by the surface."""

    from_pos: int
    to_pos: int
    removed_text: str = ""

    @property
    def length(self) -> int:
        return self.to_pos - self.from_pos


@dataclass
class TextInsertion:
    """Text inserted at a flat offset."""

    position: int
    inserted_text: str


@dataclass
class SuggestionAnalytics:
    """Derived counters recomputed after every registry change."""

    total: int = 0
    active: int = 0
    by_status: Dict[str, int] = field(default_factory=dict)
    by_type: Dict[str, int] = field(default_factory=dict)
    conflict_groups: int = 0
    average_confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "active": self.active,
            "by_status": dict(self.by_status),
            "by_type": dict(self.by_type),
            "conflict_groups": self.conflict_groups,
            "average_confidence": self.average_confidence,
        }


# =============================================================================
# WIRE MODELS
# =============================================================================


class EngineBaseModel(BaseModel):
    """Base model enabling population by field name or camelCase alias."""
    model_config = {"populate_by_name": True}


class SuggestionRecord(EngineBaseModel):
    """
    One suggestion as delivered by the suggestion source.

    Offsets are untrusted: they may be missing, stale or miscounted and are
    validated against the live text before the engine uses them. Fields the
    model does not declare are kept in ``model_extra`` and become the
    category payload.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(default_factory=new_suggestion_id, description="Opaque suggestion id")
    text: str = Field(default="", description="Exact substring the suggestion targets")
    start: Optional[int] = Field(default=None, description="Claimed flat-text start offset")
    end: Optional[int] = Field(default=None, description="Claimed flat-text end offset (exclusive)")
    message: str = Field(default="", description="Human-readable explanation")
    type: str = Field(default="grammar", description="Raw category label")
    alternatives: List[str] = Field(default_factory=list, description="Replacement candidates")
    confidence: Optional[float] = Field(default=None, description="Source confidence in [0, 1]")
    status: Optional[str] = Field(default=None, description="Ignored on ingestion; batches start pending")
    conflicts_with: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("conflictsWith", "conflicts_with"),
        description="Ids of suggestions this one conflicts with",
    )

    @field_validator("id", mode="before")
    @classmethod
    def _ensure_id(cls, value: Any) -> str:
        if value is None or not str(value).strip():
            return new_suggestion_id()
        return str(value)

    @field_validator("text", "message", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> str:
        return "" if value is None else value

    @field_validator("type", mode="before")
    @classmethod
    def _type_to_str(cls, value: Any) -> str:
        if isinstance(value, Enum):
            return value.value
        return "" if value is None else str(value)

    @field_validator("alternatives", "conflicts_with", mode="before")
    @classmethod
    def _string_list(cls, value: Any) -> List[str]:
        if not value:
            return []
        if isinstance(value, str):
            return [value]
        return [str(item) for item in value if item is not None]

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> Optional[float]:
        if value is None or isinstance(value, bool):
            return None
        try:
            parsed = float(value)
        except (TypeError, ValueError):
            return None
        return max(0.0, min(1.0, parsed))

    def to_suggestion(self, start: int, end: int) -> Suggestion:
        """Build a pending Suggestion at validated offsets."""
        suggestion_type = SuggestionType.parse(self.type)
        return Suggestion(
            id=self.id,
            text=self.text,
            start=start,
            end=end,
            message=self.message,
            type=suggestion_type,
            alternatives=list(self.alternatives),
            confidence=self.confidence,
            status=SuggestionStatus.PENDING,
            conflicts_with=list(self.conflicts_with),
            payload=build_payload(suggestion_type, self.model_extra, raw_label=self.type),
        )


# Categories without an entry are always shown while pending
TOGGLE_FIELDS: Dict[SuggestionType, str] = {
    SuggestionType.GRAMMAR: "grammar_enabled",
    SuggestionType.SPELLING: "grammar_enabled",
    SuggestionType.STYLE: "style_enabled",
    SuggestionType.DEMONETIZATION: "demonetization_enabled",
    SuggestionType.SLANG_PROTECTED: "slang_protection_enabled",
    SuggestionType.TONE_REWRITE: "tone_rewrite_enabled",
    SuggestionType.ENGAGEMENT: "engagement_enabled",
    SuggestionType.SEO: "seo_enabled",
}


class FeatureToggles(EngineBaseModel):
    """Per-category visibility switches for the active view."""

    grammar_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("grammarEnabled", "grammar_enabled"),
        description="Show grammar and spelling suggestions",
    )
    style_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("styleEnabled", "style_enabled"),
    )
    demonetization_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("demonetizationEnabled", "demonetization_enabled"),
    )
    slang_protection_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("slangProtectionEnabled", "slang_protection_enabled"),
    )
    tone_rewrite_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("toneRewriteEnabled", "tone_rewrite_enabled"),
    )
    engagement_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("engagementEnabled", "engagement_enabled"),
    )
    seo_enabled: bool = Field(
        default=True,
        validation_alias=AliasChoices("seoEnabled", "seo_enabled"),
    )

    def is_enabled(self, suggestion_type: Any) -> bool:
        toggle = TOGGLE_FIELDS.get(SuggestionType.parse(suggestion_type))
        if toggle is None:
            return True
        return bool(getattr(self, toggle))
