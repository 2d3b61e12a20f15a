"""
Suggestion Sources - Where suggestion records come from.

Sources:
1. HttpSuggestionSource - remote suggestion service (aiohttp)
2. RuleBasedSuggestionSource - local demonetization and slang detectors
3. CompositeSuggestionSource - several sources gathered concurrently, with
   slang protection applied to the combined result

Every source returns SuggestionRecord objects with untrusted offsets; the
engine validates them against the live text on ingestion.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, runtime_checkable

import aiohttp
from pydantic import ValidationError

import json_utils as json

from .detectors import demonetization_records, detect_slang, filter_protected, slang_records
from .errors import SourceFetchError
from .locator import DEFAULT_CONTEXT_RADIUS
from .models import Formality, SuggestionRecord

logger = logging.getLogger(__name__)


@runtime_checkable
class SuggestionSource(Protocol):
    """Anything that can produce suggestion records for a text."""

    async def fetch(self, text: str, formality: Formality = Formality.BALANCED) -> List[SuggestionRecord]:
        ...


def parse_records(items: Sequence[Any]) -> List[SuggestionRecord]:
    """Validate raw suggestion dicts, skipping the malformed ones."""
    records = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            logger.warning(f"Skipping suggestion #{index}: expected an object, got {type(item).__name__}")
            continue
        try:
            records.append(SuggestionRecord.model_validate(item))
        except ValidationError as e:
            logger.warning(f"Skipping suggestion #{index}: {e.error_count()} validation error(s)")
    return records


class HttpSuggestionSource:
    """
    Client for the remote suggestion service.

    Usage:
        async with HttpSuggestionSource("http://localhost:3001") as source:
            records = await source.fetch("Their going home", Formality.CASUAL)

    The request body is ``{"text", "formalityLevel"}``; the response body is
    ``{"suggestions": [...]}`` (a bare JSON array is accepted too).
    """

    DEFAULT_BASE_URL = "http://localhost:3001"
    ENDPOINT = "/api/suggestions"
    DEFAULT_TIMEOUT = aiohttp.ClientTimeout(total=30, connect=10)

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[aiohttp.ClientTimeout] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize the source.

        Args:
            base_url: Service base URL (default: http://localhost:3001)
            timeout: Request timeout configuration
            session: Existing session to reuse (not closed by this source)
        """
        self.base_url = (base_url or self.DEFAULT_BASE_URL).rstrip("/")
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> None:
        """Initialize the HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session."""
        if self._session and self._owns_session and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    async def __aenter__(self) -> "HttpSuggestionSource":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def _request(self, json_data: Dict[str, Any]) -> aiohttp.ClientResponse:
        """POST to the suggestion endpoint, mapping transport failures to SourceFetchError."""
        await self.connect()
        url = f"{self.base_url}{self.ENDPOINT}"
        try:
            return await self._session.post(
                url,
                data=json.dumps(json_data),
                headers={"Content-Type": "application/json"},
            )
        except aiohttp.ClientConnectorError as e:
            raise SourceFetchError(
                f"Cannot connect to suggestion service at {self.base_url}. Ensure the server is running."
            ) from e
        except asyncio.TimeoutError as e:
            raise SourceFetchError(f"Request to {self.ENDPOINT} timed out") from e
        except aiohttp.ClientError as e:
            raise SourceFetchError(f"Request failed: {e}") from e

    async def fetch(self, text: str, formality: Formality = Formality.BALANCED) -> List[SuggestionRecord]:
        """
        Request suggestions for ``text``.

        Raises:
            SourceFetchError: Transport failure, non-200 status or undecodable body
        """
        payload = {"text": text, "formalityLevel": Formality(formality).value}
        async with await self._request(payload) as response:
            try:
                body = await response.read()
            except asyncio.TimeoutError as e:
                raise SourceFetchError(
                    f"Reading response from {self.ENDPOINT} timed out", status_code=response.status
                ) from e
            except aiohttp.ClientError as e:
                raise SourceFetchError(
                    f"Reading response failed: {e}", status_code=response.status
                ) from e
            if response.status != 200:
                raise SourceFetchError(
                    f"Suggestion service returned {response.status}",
                    status_code=response.status,
                    details={"body": body[:500].decode("utf-8", errors="replace")},
                )

        try:
            decoded = json.loads_model_output(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SourceFetchError(f"Suggestion service returned invalid JSON: {e}", status_code=200) from e

        items = decoded.get("suggestions") if isinstance(decoded, dict) else decoded
        if not isinstance(items, list):
            raise SourceFetchError(
                "Suggestion service response has no suggestions list",
                status_code=200,
                details={"type": type(decoded).__name__},
            )

        records = parse_records(items)
        logger.debug(f"Fetched {len(records)} suggestion(s) from {self.base_url}")
        return records


class RuleBasedSuggestionSource:
    """Local detectors: demonetization words and protected slang."""

    def __init__(
        self,
        demonetization: bool = True,
        slang: bool = True,
        context_radius: int = DEFAULT_CONTEXT_RADIUS,
    ):
        self.demonetization = demonetization
        self.slang = slang
        self.context_radius = context_radius

    async def fetch(self, text: str, formality: Formality = Formality.BALANCED) -> List[SuggestionRecord]:
        records: List[SuggestionRecord] = []
        if self.demonetization:
            records.extend(demonetization_records(text, self.context_radius))
        if self.slang and Formality(formality) is not Formality.FORMAL:
            records.extend(slang_records(text, self.context_radius))
        return records


class CompositeSuggestionSource:
    """
    Gather several sources concurrently and combine their records.

    Grammar, spelling and style records that would rewrite protected slang
    are removed according to the formality level. A failing source fails the
    whole fetch so a partial batch never replaces a complete one.
    """

    def __init__(self, sources: Sequence[SuggestionSource], slang_protection: bool = True):
        self.sources = list(sources)
        self.slang_protection = slang_protection

    async def fetch(self, text: str, formality: Formality = Formality.BALANCED) -> List[SuggestionRecord]:
        results = await asyncio.gather(*(source.fetch(text, formality) for source in self.sources))
        combined = [record for batch in results for record in batch]

        if self.slang_protection:
            before = len(combined)
            combined = filter_protected(combined, text, detect_slang(text), Formality(formality))
            if len(combined) != before:
                logger.info(f"Slang protection removed {before - len(combined)} suggestion(s)")
        return combined

    async def close(self) -> None:
        """Close every source that holds resources."""
        for source in self.sources:
            close = getattr(source, "close", None)
            if close is not None:
                await close()
