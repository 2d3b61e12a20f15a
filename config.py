"""
Configuration for the Suggestion Engine service
===============================================

Central configuration for engine defaults, the suggestion source and the
HTTP surface. Values come from the environment (a .env file is honored).
Malformed values are not silently replaced: this module prints a clear
error to stderr and raises.
"""

import os
import sys
from typing import Optional

from pydantic import BaseModel, Field
from dotenv import load_dotenv

from suggestion_engine.locator import DEFAULT_CONTEXT_RADIUS, LocateStrategy
from suggestion_engine.models import ConflictResolutionMode, FeatureToggles, Formality
from suggestion_engine.resolver import CONFIDENCE_SCALE

# Load environment variables from .env file
load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class EngineSettings(BaseModel):
    """Defaults applied to every new engine session."""

    default_mode: ConflictResolutionMode = Field(
        default=ConflictResolutionMode.BALANCED,
        description="Conflict-resolution mode for new sessions",
    )
    locate_strategy: LocateStrategy = Field(
        default=LocateStrategy.FIRST,
        description="Occurrence picked when suggestion offsets have drifted",
    )
    confidence_scale: float = Field(
        default=CONFIDENCE_SCALE,
        ge=0.0,
        description="Weight of the (confidence - 0.5) term in priority",
    )
    context_radius: int = Field(
        default=DEFAULT_CONTEXT_RADIUS,
        ge=0,
        description="Characters of context captured around detected words",
    )


class SourceSettings(BaseModel):
    """Suggestion source (remote service) settings."""

    api_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the suggestion service",
    )
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Total timeout for one suggestion request",
    )
    debounce_ms: int = Field(
        default=800,
        ge=0,
        description="Quiet period after the last edit before a refresh is requested",
    )
    default_formality: Formality = Field(
        default=Formality.BALANCED,
        description="Formality sent with requests and used for slang protection",
    )
    rule_based_enabled: bool = Field(
        default=True,
        description="Run the local demonetization/slang detectors alongside the service",
    )


class Config(BaseModel):
    """Configuration settings for the Suggestion Engine service."""

    model_config = {"populate_by_name": True}

    ENGINE: EngineSettings = Field(default_factory=EngineSettings, description="Engine defaults")
    TOGGLES: FeatureToggles = Field(default_factory=FeatureToggles, description="Default category toggles")
    SOURCE: SourceSettings = Field(default_factory=SourceSettings, description="Suggestion source settings")

    # FastAPI Configuration
    APP_HOST: str = Field(default="0.0.0.0", description="FastAPI host")
    APP_PORT: int = Field(default=8000, description="FastAPI port")
    APP_RELOAD: bool = Field(default=False, description="FastAPI reload mode")

    # Sessions
    MAX_ACTIVE_SESSIONS: int = Field(default=100, ge=1, description="Maximum engine sessions kept in memory")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Root log level")
    VERBOSE_ENGINE_LOGS: bool = Field(default=False, description="Print phase banners for every engine operation")

    def __init__(self):
        super().__init__()
        self.load_from_environment()

    def load_from_environment(self):
        """Load configuration from environment variables."""
        # Engine
        mode_override = os.getenv("DEFAULT_CONFLICT_MODE")
        if mode_override:
            self.ENGINE.default_mode = _parse_enum("DEFAULT_CONFLICT_MODE", mode_override, ConflictResolutionMode)

        strategy_override = os.getenv("LOCATE_STRATEGY")
        if strategy_override:
            self.ENGINE.locate_strategy = _parse_enum("LOCATE_STRATEGY", strategy_override, LocateStrategy)

        scale_override = os.getenv("CONFIDENCE_SCALE")
        if scale_override:
            self.ENGINE.confidence_scale = _parse_number("CONFIDENCE_SCALE", scale_override, float, minimum=0.0)

        radius_override = os.getenv("CONTEXT_RADIUS")
        if radius_override:
            self.ENGINE.context_radius = _parse_number("CONTEXT_RADIUS", radius_override, int, minimum=0)

        # Category toggles
        for field_name in FeatureToggles.model_fields:
            env_name = field_name.upper()
            raw = os.getenv(env_name)
            if raw:
                setattr(self.TOGGLES, field_name, _parse_bool(env_name, raw))

        # Suggestion source
        self.SOURCE.api_url = os.getenv("SUGGESTIONS_API_URL", self.SOURCE.api_url).rstrip("/")

        timeout_override = os.getenv("SUGGESTIONS_TIMEOUT_SECONDS")
        if timeout_override:
            self.SOURCE.timeout_seconds = _parse_number(
                "SUGGESTIONS_TIMEOUT_SECONDS", timeout_override, float, minimum=0.001
            )

        debounce_override = os.getenv("SUGGESTIONS_DEBOUNCE_MS")
        if debounce_override:
            self.SOURCE.debounce_ms = _parse_number("SUGGESTIONS_DEBOUNCE_MS", debounce_override, int, minimum=0)

        formality_override = os.getenv("DEFAULT_FORMALITY")
        if formality_override:
            self.SOURCE.default_formality = _parse_enum("DEFAULT_FORMALITY", formality_override, Formality)

        rules_override = os.getenv("RULE_BASED_SOURCE_ENABLED")
        if rules_override:
            self.SOURCE.rule_based_enabled = _parse_bool("RULE_BASED_SOURCE_ENABLED", rules_override)

        # FastAPI Configuration
        self.APP_HOST = os.getenv("APP_HOST", self.APP_HOST)
        port_override = os.getenv("APP_PORT")
        if port_override:
            self.APP_PORT = _parse_number("APP_PORT", port_override, int, minimum=1)
        reload_override = os.getenv("APP_RELOAD")
        if reload_override:
            self.APP_RELOAD = _parse_bool("APP_RELOAD", reload_override)

        sessions_override = os.getenv("MAX_ACTIVE_SESSIONS")
        if sessions_override:
            self.MAX_ACTIVE_SESSIONS = _parse_number("MAX_ACTIVE_SESSIONS", sessions_override, int, minimum=1)

        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", self.LOG_LEVEL).upper()
        verbose_override = os.getenv("VERBOSE_ENGINE_LOGS")
        if verbose_override:
            self.VERBOSE_ENGINE_LOGS = _parse_bool("VERBOSE_ENGINE_LOGS", verbose_override)

    @property
    def debounce_seconds(self) -> float:
        return self.SOURCE.debounce_ms / 1000.0


def _config_error(msg: str):
    print(msg, file=sys.stderr, flush=True)
    raise RuntimeError(msg)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    _config_error(f"[CONFIG ERROR] {name}={raw!r} is not a boolean. Use one of: true, false, 1, 0, yes, no.")


def _parse_number(name: str, raw: str, cast, minimum: Optional[float] = None):
    try:
        value = cast(raw.strip())
    except ValueError:
        _config_error(f"[CONFIG ERROR] {name}={raw!r} is not a valid {cast.__name__}.")
    if minimum is not None and value < minimum:
        _config_error(f"[CONFIG ERROR] {name}={raw!r} must be >= {minimum}.")
    return value


def _parse_enum(name: str, raw: str, enum_cls):
    try:
        return enum_cls(raw.strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        _config_error(f"[CONFIG ERROR] {name}={raw!r} is not recognized. Allowed values: {allowed}.")


# Global configuration instance
config = Config()
