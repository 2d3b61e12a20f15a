"""
Tests for suggestion_engine.staging - debounced, snapshot-gated refreshes.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock

from suggestion_engine import SourceFetchError, StagedSuggestionFetcher, SuggestionRecord
from suggestion_engine.sources import HttpSuggestionSource
from suggestion_engine.models import Formality


# ============================================================================
# Fixtures
# ============================================================================

def _source(records=None, side_effect=None):
    source = Mock(spec=["fetch"])
    source.fetch = AsyncMock(return_value=records or [], side_effect=side_effect)
    return source


@pytest.fixture
def core_records():
    return [SuggestionRecord(id="g1", text="Their", start=0, end=5, alternatives=["They're"])]


@pytest.fixture
def enhanced_records():
    return [SuggestionRecord(id="t1", text="happy", type="tone-rewrite", alternatives=["thrilled"])]


# ============================================================================
# refresh()
# ============================================================================

class TestRefresh:
    """Both stages against one snapshot."""

    @pytest.mark.asyncio
    async def test_core_then_enhanced(self, make_engine, core_records, enhanced_records):
        engine = make_engine()
        core = _source(core_records)
        enhanced = _source(enhanced_records)
        fetcher = StagedSuggestionFetcher(engine, core, enhanced, formality=Formality.CASUAL)

        applied = await fetcher.refresh()

        assert applied is True
        assert sorted(s.id for s in engine.suggestions) == ["g1", "t1"]
        assert engine.needs_refresh is False
        core.fetch.assert_awaited_once_with(engine.text, Formality.CASUAL)

    @pytest.mark.asyncio
    async def test_core_only(self, make_engine, core_records):
        engine = make_engine()
        fetcher = StagedSuggestionFetcher(engine, _source(core_records))
        assert await fetcher.refresh() is True
        assert [s.id for s in engine.suggestions] == ["g1"]

    @pytest.mark.asyncio
    async def test_stale_core_batch_discarded(self, make_engine, core_records):
        engine = make_engine()

        def edit_during_fetch(text, formality):
            engine.on_text_inserted(0, "Well, ")
            return core_records

        fetcher = StagedSuggestionFetcher(engine, _source(side_effect=edit_during_fetch))

        assert await fetcher.refresh() is False
        assert engine.all_suggestions == []
        assert engine.needs_refresh is True

    @pytest.mark.asyncio
    async def test_stale_enhanced_batch_discarded(self, make_engine, core_records, enhanced_records):
        engine = make_engine()

        def edit_during_fetch(text, formality):
            # Delete " tomorrow"; g1 sits before it and survives
            engine.on_text_removed(23, 32)
            return enhanced_records

        fetcher = StagedSuggestionFetcher(
            engine, _source(core_records), _source(side_effect=edit_during_fetch)
        )

        assert await fetcher.refresh() is True
        assert [s.id for s in engine.all_suggestions] == ["g1"]

    @pytest.mark.asyncio
    async def test_source_error_propagates(self, make_engine, core_records):
        engine = make_engine()
        engine.ingest([r.model_dump() for r in core_records])
        fetcher = StagedSuggestionFetcher(engine, _source(side_effect=SourceFetchError("down")))

        with pytest.raises(SourceFetchError):
            await fetcher.refresh()
        assert [s.id for s in engine.suggestions] == ["g1"]


# ============================================================================
# schedule() / bind()
# ============================================================================

class TestSchedule:
    """Debouncing."""

    @pytest.mark.asyncio
    async def test_rapid_schedules_fetch_once(self, make_engine, core_records):
        engine = make_engine()
        core = _source(core_records)
        fetcher = StagedSuggestionFetcher(engine, core, debounce_seconds=0.01)

        fetcher.schedule()
        fetcher.schedule()
        fetcher.schedule()
        await fetcher.wait()

        core.fetch.assert_awaited_once()
        assert fetcher.pending is False

    @pytest.mark.asyncio
    async def test_bind_schedules_on_edit(self, make_engine, core_records):
        engine = make_engine()
        core = _source(core_records)
        fetcher = StagedSuggestionFetcher(engine, core, debounce_seconds=0.01)
        fetcher.bind()

        engine.on_text_inserted(len(engine.text), " Really.")
        assert fetcher.pending is True
        await fetcher.wait()

        core.fetch.assert_awaited_once_with(engine.text, Formality.BALANCED)
        assert engine.needs_refresh is False

    @pytest.mark.asyncio
    async def test_scheduled_error_reported(self, make_engine):
        engine = make_engine()
        error = SourceFetchError("down", status_code=503)
        on_error = Mock()
        fetcher = StagedSuggestionFetcher(
            engine, _source(side_effect=error), debounce_seconds=0.0, on_error=on_error
        )

        fetcher.schedule()
        await fetcher.wait()

        assert fetcher.last_error is error
        on_error.assert_called_once_with(error)

    @pytest.mark.asyncio
    async def test_scheduled_body_timeout_reported(self, make_engine):
        engine = make_engine()
        response = MagicMock()
        response.status = 200
        response.read = AsyncMock(side_effect=asyncio.TimeoutError())
        response.__aenter__.return_value = response
        response.__aexit__.return_value = False
        http_source = HttpSuggestionSource("http://svc")
        http_source._request = AsyncMock(return_value=response)
        on_error = Mock()
        fetcher = StagedSuggestionFetcher(engine, http_source, debounce_seconds=0.0, on_error=on_error)

        fetcher.schedule()
        await fetcher.wait()

        assert isinstance(fetcher.last_error, SourceFetchError)
        on_error.assert_called_once_with(fetcher.last_error)

    @pytest.mark.asyncio
    async def test_aclose_cancels_and_unbinds(self, make_engine):
        engine = make_engine()
        core = _source([])
        fetcher = StagedSuggestionFetcher(engine, core, debounce_seconds=10)
        fetcher.bind()

        task = fetcher.schedule()
        await fetcher.aclose()

        assert task.cancelled()
        assert engine.on_refresh_needed is None
        core.fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_cancel_without_task(self, make_engine):
        fetcher = StagedSuggestionFetcher(make_engine(), _source([]))
        assert fetcher.cancel() is None
        await fetcher.wait()
