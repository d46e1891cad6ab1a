"""
Abstract base class for format extractors.
"""

from __future__ import annotations

import json
import re
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger
from services import event_datetime_service
from services.base_scraper_service import BaseScraperService
from services.event_datetime_service import ParsedDateTime

logger = get_logger()

RawEvent = Dict[str, Any]


class ExtractionOutcome:
    """Result codes carried on pipeline results and log lines."""

    EMITTED = "emitted"
    NO_ELIGIBLE_EVENT = "no_eligible_event"
    SOURCE_UNRECOGNIZED = "source_unrecognized"
    TRANSIENT_FETCH_FAILURE = "transient_fetch_failure"
    MALFORMED_PAYLOAD = "malformed_payload"
    IDENTITY_INDETERMINATE = "identity_indeterminate"


class EventExtractor(ABC):
    """
    One source shape (JSON-LD, a widget API, an ICS feed, ...).

    ``can_extract`` is a cheap probe over the raw document. ``extract`` never
    raises for bad input; it returns an empty list instead. Secondary fetches
    go through the shared ``BaseScraperService``.
    """

    method: str = ""

    def __init__(
        self,
        http: Optional[BaseScraperService] = None,
        *,
        default_timezone: Optional[str] = None,
    ) -> None:
        self.http = http
        self.default_timezone = default_timezone or settings.EVENT_DEFAULT_TIMEZONE
        # Last degraded branch hit by this extractor; reset by the dispatcher.
        self.failure: Optional[str] = None

    @abstractmethod
    def can_extract(self, content: str) -> bool:
        """Return True when this extractor recognizes the document."""

    @abstractmethod
    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        """Return raw event records; empty when nothing usable was found."""

    def can_extract_with_url(self, content: str, source_url: str) -> bool:
        return self.can_extract(content)

    # -------- Secondary fetches ---------------------------------------------

    def _get_text(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Optional[str]:
        if self.http is None:
            logger.warning("extractor_http_unavailable", extractor=self.method, url=url)
            return None
        try:
            return self.http.fetch_text(url, params=params)
        except httpx.HTTPError as exc:
            self.failure = ExtractionOutcome.TRANSIENT_FETCH_FAILURE
            logger.warning(
                "extractor_fetch_failed",
                extractor=self.method,
                url=url,
                error=str(exc),
            )
            return None

    def _get_json(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        text = self._get_text(url, params=params)
        if text is None:
            return None
        return self._loads(text, url=url)

    def _loads(self, text: str, *, url: str = "") -> Any:
        try:
            return json.loads(text)
        except (TypeError, ValueError, RecursionError) as exc:
            self.failure = ExtractionOutcome.MALFORMED_PAYLOAD
            logger.info(
                "extractor_payload_malformed",
                extractor=self.method,
                url=url,
                error=str(exc),
            )
            return None

    # -------- Datetime helpers ---------------------------------------------

    def _timestamp(self, value: Any, timezone_name: str = "") -> ParsedDateTime:
        return event_datetime_service.parse_timestamp(value, timezone_name or self.default_timezone)

    def _datetime(self, value: Any, fallback_timezone: str = "") -> ParsedDateTime:
        if value is None:
            return event_datetime_service.EMPTY
        return event_datetime_service.parse(str(value), fallback_timezone)

    # -------- Field helpers -------------------------------------------------

    @staticmethod
    def _text(value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, str):
            return " ".join(value.split())
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return ""

    @staticmethod
    def _dig(payload: Any, *keys: Any) -> Any:
        current = payload
        for key in keys:
            if isinstance(current, dict):
                current = current.get(key)
            elif isinstance(current, list) and isinstance(key, int):
                if key < 0 or key >= len(current):
                    return None
                current = current[key]
            else:
                return None
        return current

    @staticmethod
    def _script_json(html_text: str, pattern: str) -> Optional[str]:
        match = re.search(pattern, html_text, re.S)
        return match.group(1) if match else None
