"""
In-memory engine sessions for the HTTP surface
==============================================

One SuggestionEngine (plus its staged fetcher) per open document. The store
is bounded by MAX_ACTIVE_SESSIONS; when full, the least recently used
session is evicted.
"""

from __future__ import annotations

import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterator, Optional, Tuple

import aiohttp

from suggestion_engine import (
    CompositeSuggestionSource,
    ConflictResolutionMode,
    FeatureToggles,
    Formality,
    HttpSuggestionSource,
    LocateStrategy,
    RuleBasedSuggestionSource,
    StagedSuggestionFetcher,
    SuggestionEngine,
)
from suggestion_engine.resolver import CONFIDENCE_SCALE

logger = logging.getLogger(__name__)


@dataclass
class EngineSession:
    """An engine plus the bookkeeping the HTTP surface needs."""

    session_id: str
    engine: SuggestionEngine
    fetcher: Optional[StagedSuggestionFetcher] = None
    created_at: datetime = field(default_factory=datetime.now)
    last_access: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        self.last_access = datetime.now()

    def to_summary(self) -> Dict[str, object]:
        return {
            "session_id": self.session_id,
            "document_id": self.engine.document_id,
            "created_at": self.created_at.isoformat(),
            "last_access": self.last_access.isoformat(),
            "active_suggestions": len(self.engine.suggestions),
        }


class EngineSessionStore:
    """
    Bounded LRU map of session id -> EngineSession.

    Sources are shared by every session; each session gets its own fetcher
    so debouncing and stale checks stay per document.
    """

    def __init__(
        self,
        max_sessions: int = 100,
        *,
        default_toggles: Optional[FeatureToggles] = None,
        default_mode: ConflictResolutionMode = ConflictResolutionMode.BALANCED,
        locate_strategy: LocateStrategy = LocateStrategy.FIRST,
        confidence_scale: float = CONFIDENCE_SCALE,
        formality: Formality = Formality.BALANCED,
        debounce_seconds: float = 0.8,
        verbose: bool = False,
    ):
        self.max_sessions = max_sessions
        self.default_toggles = default_toggles or FeatureToggles()
        self.default_mode = default_mode
        self.locate_strategy = locate_strategy
        self.confidence_scale = confidence_scale
        self.formality = formality
        self.debounce_seconds = debounce_seconds
        self.verbose = verbose
        self.core_source = None
        self.enhanced_source = None
        self._http_source: Optional[HttpSuggestionSource] = None
        self._sessions: "OrderedDict[str, EngineSession]" = OrderedDict()

    def configure_sources(
        self,
        api_url: Optional[str],
        timeout_seconds: float = 30.0,
        rule_based: bool = True,
        context_radius: int = 50,
    ) -> None:
        """
        Wire the shared sources.

        With rule-based detection on, local detectors form the core stage and
        the remote service the enhanced stage. Otherwise the remote service is
        the only stage.
        """
        self._http_source = None
        remote = None
        if api_url:
            self._http_source = HttpSuggestionSource(
                api_url, timeout=aiohttp.ClientTimeout(total=timeout_seconds)
            )
            remote = CompositeSuggestionSource([self._http_source])

        if rule_based:
            self.core_source = RuleBasedSuggestionSource(context_radius=context_radius)
            self.enhanced_source = remote
        else:
            self.core_source = remote
            self.enhanced_source = None

    async def close(self) -> None:
        for session in list(self._sessions.values()):
            if session.fetcher is not None:
                await session.fetcher.aclose()
        if self._http_source is not None:
            await self._http_source.close()

    # =========================================================================
    # SESSIONS
    # =========================================================================

    def create(
        self,
        text: str,
        document_id: Optional[str] = None,
        toggles: Optional[FeatureToggles] = None,
        mode: Optional[ConflictResolutionMode] = None,
        formality: Optional[Formality] = None,
    ) -> EngineSession:
        while len(self._sessions) >= self.max_sessions:
            evicted_id, evicted = self._sessions.popitem(last=False)
            if evicted.fetcher is not None:
                evicted.fetcher.cancel()
            logger.warning(f"Session limit {self.max_sessions} reached, evicted {evicted_id}")

        session_id = str(uuid.uuid4())
        engine = SuggestionEngine(
            text,
            document_id=document_id,
            toggles=toggles or self.default_toggles,
            mode=mode or self.default_mode,
            locate_strategy=self.locate_strategy,
            confidence_scale=self.confidence_scale,
            verbose=self.verbose,
        )
        fetcher = None
        if self.core_source is not None:
            fetcher = StagedSuggestionFetcher(
                engine,
                self.core_source,
                self.enhanced_source,
                formality=formality or self.formality,
                debounce_seconds=self.debounce_seconds,
            )
            fetcher.bind()
        session = EngineSession(session_id=session_id, engine=engine, fetcher=fetcher)
        self._sessions[session_id] = session
        logger.info(f"Created session {session_id} ({len(text)} chars)")
        return session

    def get(self, session_id: str) -> Optional[EngineSession]:
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
            session.touch()
        return session

    async def delete(self, session_id: str) -> bool:
        session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        session.engine.phase_logger.log_timing_summary()
        if session.fetcher is not None:
            await session.fetcher.aclose()
        logger.info(f"Deleted session {session_id}")
        return True

    def items(self) -> Iterator[Tuple[str, EngineSession]]:
        return iter(list(self._sessions.items()))

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions
