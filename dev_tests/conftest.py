"""Shared pytest fixtures for Suggestion Engine tests."""
import pytest
from unittest.mock import patch
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from suggestion_engine import (  # noqa: E402
    ConflictResolutionMode,
    FeatureToggles,
    Suggestion,
    SuggestionEngine,
    SuggestionType,
)


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def mock_env_vars():
    """Neutral environment for config tests."""
    env = {
        "SUGGESTIONS_API_URL": "http://localhost:3001",
        "LOG_LEVEL": "INFO",
    }
    with patch.dict(os.environ, env, clear=False):
        yield env


# ============================================================================
# Text Fixtures
# ============================================================================

SAMPLE_TEXT = "Their going to the park tomorrow and they is happy."


@pytest.fixture
def sample_text():
    return SAMPLE_TEXT


# ============================================================================
# Suggestion Factories
# ============================================================================

@pytest.fixture
def make_suggestion():
    """Factory for Suggestion objects with sensible defaults."""
    counter = {"n": 0}

    def _make(start, end, type=SuggestionType.GRAMMAR, id=None, text=None, **kwargs):
        counter["n"] += 1
        return Suggestion(
            id=id or f"s{counter['n']}",
            text=text if text is not None else "x" * (end - start),
            start=start,
            end=end,
            type=type,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_engine():
    """Factory for SuggestionEngine instances."""

    def _make(text=SAMPLE_TEXT, **kwargs):
        kwargs.setdefault("mode", ConflictResolutionMode.BALANCED)
        kwargs.setdefault("toggles", FeatureToggles())
        return SuggestionEngine(text, **kwargs)

    return _make


@pytest.fixture
def sample_records():
    """Wire records matching SAMPLE_TEXT."""
    return [
        {
            "id": "g1",
            "text": "Their",
            "start": 0,
            "end": 5,
            "type": "grammar",
            "message": "Use \"They're\"",
            "alternatives": ["They're"],
            "confidence": 0.9,
        },
        {
            "id": "g2",
            "text": "they is",
            "start": 37,
            "end": 44,
            "type": "grammar",
            "alternatives": ["they are"],
        },
        {
            "id": "st1",
            "text": "going to the park",
            "start": 6,
            "end": 23,
            "type": "style",
            "alternatives": ["heading to the park"],
            "confidence": 0.4,
        },
    ]
