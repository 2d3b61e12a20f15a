"""
Staged Fetching - Debounced, snapshot-gated suggestion refreshes.

A refresh runs in up to two stages against the same content snapshot:

1. core: fast results, installed with ingest() (replaces the batch)
2. enhanced: slower results, added with merge() (existing suggestions kept)

Each stage is applied only if the document text is still the one the
request was made for; otherwise the response is discarded as stale.
schedule() debounces refreshes the way an editor debounces keystrokes:
every call restarts the quiet period and cancels the pending refresh.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

from logging_utils import Phase

from .engine import SuggestionEngine
from .errors import SourceFetchError, StaleBatchError
from .models import Formality
from .sources import SuggestionSource

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.8


class StagedSuggestionFetcher:
    """
    Keeps one engine's suggestions in sync with its sources.

    Usage:
        fetcher = StagedSuggestionFetcher(engine, RuleBasedSuggestionSource(),
                                          enhanced_source=http_source)
        fetcher.bind()           # engine edits now schedule refreshes
        await fetcher.refresh()  # or refresh immediately
        await fetcher.aclose()
    """

    def __init__(
        self,
        engine: SuggestionEngine,
        core_source: SuggestionSource,
        enhanced_source: Optional[SuggestionSource] = None,
        *,
        formality: Formality = Formality.BALANCED,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        on_error: Optional[Callable[[SourceFetchError], None]] = None,
    ):
        self.engine = engine
        self.core_source = core_source
        self.enhanced_source = enhanced_source
        self.formality = Formality(formality)
        self.debounce_seconds = debounce_seconds
        self.on_error = on_error
        self.last_error: Optional[SourceFetchError] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        """True while a scheduled refresh has not finished."""
        return self._task is not None and not self._task.done()

    def bind(self) -> None:
        """Schedule a refresh whenever the engine asks for one."""
        self.engine.on_refresh_needed = lambda _engine: self.schedule()

    async def refresh(self) -> bool:
        """
        Fetch and apply both stages for the current text.

        Returns:
            True when the core stage was applied, False when it was stale

        Raises:
            SourceFetchError: When a source fails (the registry is left as it was
                before that stage)
        """
        snapshot = self.engine.snapshot
        text = self.engine.text
        phase_logger = self.engine.phase_logger

        with phase_logger.phase(Phase.FETCH, sub_label="core"):
            records = await self.core_source.fetch(text, self.formality)
        try:
            self.engine.ingest(records, snapshot=snapshot)
        except StaleBatchError as e:
            logger.info(f"Discarded stale core batch: {e}")
            return False
        self.last_error = None

        if self.enhanced_source is None:
            return True

        with phase_logger.phase(Phase.FETCH, sub_label="enhanced"):
            enhanced = await self.enhanced_source.fetch(text, self.formality)
        try:
            self.engine.merge(enhanced, snapshot=snapshot)
        except StaleBatchError as e:
            logger.info(f"Discarded stale enhanced batch: {e}")
        return True

    def schedule(self) -> asyncio.Task:
        """
        Debounced refresh. Must be called from a running event loop.

        Returns:
            The task that will run the refresh
        """
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = asyncio.get_running_loop().create_task(self._run_debounced())
        return self._task

    async def _run_debounced(self) -> None:
        await asyncio.sleep(self.debounce_seconds)
        try:
            await self.refresh()
        except SourceFetchError as e:
            self.last_error = e
            logger.warning(f"Suggestion refresh failed: {e}")
            if self.on_error is not None:
                self.on_error(e)

    async def wait(self) -> None:
        """Wait for the scheduled refresh, if any, to finish."""
        task = self._task
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            if not task.cancelled():
                raise

    def cancel(self) -> Optional[asyncio.Task]:
        """
        Unbind from the engine and request cancellation without waiting.

        Returns:
            The cancelled task, if one was still running
        """
        self.engine.on_refresh_needed = None
        task, self._task = self._task, None
        if task is None or task.done():
            return None
        task.cancel()
        return task

    async def aclose(self) -> None:
        """Unbind from the engine and cancel any scheduled refresh."""
        task = self.cancel()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            pass
