"""
FastAPI router exposing suggestion engine sessions
==================================================

One session per open document. The rich text surface reports batches,
lifecycle actions and edits; the router answers with the active view and
render instructions.

Endpoints:
- POST   /sessions                              open a session for a text
- POST   /sessions/{id}/batch                   ingest (or merge) a batch
- POST   /sessions/{id}/refresh                 fetch from the configured sources now
- POST   /sessions/{id}/suggestions/{sid}/status  accept / ignore
- POST   /sessions/{id}/edits/removal           report a deletion
- POST   /sessions/{id}/edits/insertion         report an insertion
- PUT    /sessions/{id}/settings                toggles and conflict mode
- GET    /sessions/{id}                         full state and analytics
- GET    /sessions/{id}/render                  instructions and decorations
- POST   /sessions/{id}/decorations             decorations for a structured document
- DELETE /sessions/{id}
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import AliasChoices, BaseModel, Field

from config import config
from session_store import EngineSession, EngineSessionStore
from suggestion_engine import (
    ConflictResolutionMode,
    DocNode,
    FeatureToggles,
    Formality,
    OffsetDriftError,
    SourceFetchError,
    StaleBatchError,
    SuggestionStatus,
    TextInsertion,
    TextRemoval,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["suggestions"])

_session_store: Optional[EngineSessionStore] = None


def get_session_store() -> EngineSessionStore:
    """Return the process-wide session store, built from config on first use."""
    global _session_store
    if _session_store is None:
        store = EngineSessionStore(
            max_sessions=config.MAX_ACTIVE_SESSIONS,
            default_toggles=config.TOGGLES,
            default_mode=config.ENGINE.default_mode,
            locate_strategy=config.ENGINE.locate_strategy,
            confidence_scale=config.ENGINE.confidence_scale,
            formality=config.SOURCE.default_formality,
            debounce_seconds=config.debounce_seconds,
            verbose=config.VERBOSE_ENGINE_LOGS,
        )
        store.configure_sources(
            config.SOURCE.api_url,
            timeout_seconds=config.SOURCE.timeout_seconds,
            rule_based=config.SOURCE.rule_based_enabled,
            context_radius=config.ENGINE.context_radius,
        )
        _session_store = store
    return _session_store


async def close_session_store() -> None:
    global _session_store
    if _session_store is not None:
        await _session_store.close()
        _session_store = None


def _require_session(store: EngineSessionStore, session_id: str) -> EngineSession:
    session = store.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session '{session_id}'")
    return session


def _active_view(session: EngineSession) -> List[Dict[str, Any]]:
    return [s.to_dict() for s in session.engine.suggestions]


# ============================================================================
# REQUEST MODELS
# ============================================================================

class CreateSessionRequest(BaseModel):
    """Open a session for a document text."""

    text: str = Field(default="", description="Document plain text")
    document_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("documentId", "document_id"),
    )
    toggles: Optional[FeatureToggles] = Field(default=None, description="Category toggles (defaults from config)")
    mode: Optional[ConflictResolutionMode] = Field(default=None, description="Conflict-resolution mode")
    formality: Optional[Formality] = Field(
        default=None,
        validation_alias=AliasChoices("formalityLevel", "formality"),
        description="Formality used for slang protection",
    )


class BatchRequest(BaseModel):
    """A batch of raw suggestion records computed for a content snapshot."""

    suggestions: List[Dict[str, Any]] = Field(default_factory=list)
    snapshot: Optional[str] = Field(default=None, description="Digest of the content the batch was computed for")
    merge: bool = Field(default=False, description="Add to the current batch instead of replacing it")


class StatusRequest(BaseModel):
    status: SuggestionStatus
    alternative_index: Optional[int] = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices("alternativeIndex", "alternative_index"),
    )


class RemovalRequest(BaseModel):
    """A deletion in flat offsets, or structured positions when ``doc`` is given."""

    from_pos: int = Field(..., ge=0, validation_alias=AliasChoices("from", "from_pos"))
    to_pos: int = Field(..., ge=0, validation_alias=AliasChoices("to", "to_pos"))
    removed_text: str = Field(default="", validation_alias=AliasChoices("removedText", "removed_text"))
    doc: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Document JSON before the removal; positions are then structured positions",
    )


class InsertionRequest(BaseModel):
    position: int = Field(..., ge=0)
    text: str = Field(..., min_length=1)


class SettingsRequest(BaseModel):
    toggles: Optional[FeatureToggles] = None
    mode: Optional[ConflictResolutionMode] = None


class DecorationsRequest(BaseModel):
    doc: Dict[str, Any] = Field(..., description="Document JSON as produced by the editor")


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.post("", status_code=status.HTTP_201_CREATED)
async def create_session(
    request: CreateSessionRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = store.create(
        request.text,
        document_id=request.document_id,
        toggles=request.toggles,
        mode=request.mode,
        formality=request.formality,
    )
    return {
        "session_id": session.session_id,
        "snapshot": session.engine.snapshot.digest,
        "needs_refresh": session.engine.needs_refresh,
    }


@router.post("/{session_id}/batch")
async def ingest_batch(
    session_id: str,
    request: BatchRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    try:
        if request.merge:
            added = session.engine.merge(request.suggestions, snapshot=request.snapshot)
            return {"added": [s.to_dict() for s in added], "suggestions": _active_view(session)}
        session.engine.ingest(request.suggestions, snapshot=request.snapshot)
    except StaleBatchError as e:
        logger.info(f"Rejected stale batch for session {session_id}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return {"suggestions": _active_view(session), "analytics": session.engine.analytics.to_dict()}


@router.post("/{session_id}/refresh")
async def refresh_session(
    session_id: str,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    if session.fetcher is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="No suggestion source configured")
    try:
        applied = await session.fetcher.refresh()
    except SourceFetchError as e:
        logger.warning(f"Refresh failed for session {session_id}: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={"message": str(e), "status_code": e.status_code},
        ) from e
    return {"applied": applied, "suggestions": _active_view(session)}


@router.post("/{session_id}/suggestions/{suggestion_id}/status")
async def set_suggestion_status(
    session_id: str,
    suggestion_id: str,
    request: StatusRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    engine = session.engine
    if engine.get(suggestion_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown suggestion '{suggestion_id}'")

    try:
        if request.status is SuggestionStatus.ACCEPTED:
            changed = engine.accept(suggestion_id, request.alternative_index)
        else:
            changed = engine.set_status(suggestion_id, request.status)
    except IndexError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except OffsetDriftError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e

    return {
        "changed": [s.to_dict() for s in changed],
        "text": engine.text,
        "snapshot": engine.snapshot.digest,
        "needs_refresh": engine.needs_refresh,
        "suggestions": _active_view(session),
    }


@router.post("/{session_id}/edits/removal")
async def report_removal(
    session_id: str,
    request: RemovalRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    if request.doc is not None:
        report = session.engine.on_structured_removal(
            DocNode.from_prosemirror(request.doc), request.from_pos, request.to_pos
        )
    else:
        report = session.engine.apply_edit(
            TextRemoval(request.from_pos, request.to_pos, request.removed_text)
        )
    return {
        "report": report.to_dict(),
        "snapshot": session.engine.snapshot.digest,
        "suggestions": _active_view(session),
    }


@router.post("/{session_id}/edits/insertion")
async def report_insertion(
    session_id: str,
    request: InsertionRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    report = session.engine.apply_edit(TextInsertion(request.position, request.text))
    return {
        "report": report.to_dict(),
        "snapshot": session.engine.snapshot.digest,
        "needs_refresh": session.engine.needs_refresh,
        "suggestions": _active_view(session),
    }


@router.put("/{session_id}/settings")
async def update_settings(
    session_id: str,
    request: SettingsRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    if request.toggles is not None:
        session.engine.set_toggles(request.toggles)
    if request.mode is not None:
        session.engine.set_mode(request.mode)
    return {
        "toggles": session.engine.toggles.model_dump(),
        "mode": session.engine.mode.value,
        "suggestions": _active_view(session),
    }


@router.get("/{session_id}")
async def get_session_state(
    session_id: str,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    state = session.engine.to_dict()
    state["session"] = session.to_summary()
    return state


@router.get("/{session_id}/render")
async def get_render_instructions(
    session_id: str,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    return {
        "instructions": [i.to_dict() for i in session.engine.render_instructions()],
        "decorations": [d.to_dict() for d in session.engine.decorations()],
    }


@router.post("/{session_id}/decorations")
async def get_decorations(
    session_id: str,
    request: DecorationsRequest,
    store: EngineSessionStore = Depends(get_session_store),
):
    session = _require_session(store, session_id)
    doc = DocNode.from_prosemirror(request.doc)
    return {"decorations": [d.to_dict() for d in session.engine.decorations(doc)]}


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    store: EngineSessionStore = Depends(get_session_store),
):
    if not await store.delete(session_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown session '{session_id}'")
    return {"deleted": session_id}
