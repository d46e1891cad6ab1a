from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import httpx

from app.core.logging import get_logger
from app.models.event_extraction import VisionExtractionPayload
from services.base_scraper_service import BaseScraperService
from services.event_extractors.base import ExtractionOutcome, RawEvent
from services.event_ledger_service import ProcessedLedger
from services.image_candidate_service import ImageCandidate
from services.openai_service import OpenAIService

logger = get_logger()

DEFAULT_MIME_TYPE = "image/jpeg"


def _build_system_prompt() -> str:
    return (
        "Extract event information from this promotional flyer, poster, or event graphic.\n\n"
        "Look for and extract:\n"
        "- Event title or headliner (usually the largest, most prominent text)\n"
        "- Date and time information (parse into standard formats)\n"
        "- Venue name and address\n"
        "- Ticket prices (advance, door, VIP tiers if shown)\n"
        "- Supporting acts, opening bands, or additional performers\n"
        "- Ticket purchase URLs if visible\n"
        "- Any age restrictions (21+, All Ages, etc.)\n\n"
        "Format guidelines:\n"
        "- Dates should be in YYYY-MM-DD format\n"
        "- Times should be in HH:MM 24-hour format\n"
        "- If information is not clearly visible, leave the field empty\n"
        "- Do not guess or infer information that is not present on the flyer\n\n"
        "Return ONLY valid JSON with the schema:\n"
        "{\n"
        '  "events": [\n'
        "    {\n"
        '      "title": string,\n'
        '      "start_date": "YYYY-MM-DD",\n'
        '      "start_time": "HH:MM",\n'
        '      "end_date": "YYYY-MM-DD",\n'
        '      "end_time": "HH:MM",\n'
        '      "venue": string,\n'
        '      "venue_address": string,\n'
        '      "venue_city": string,\n'
        '      "venue_state": string,\n'
        '      "price": string,\n'
        '      "performer": string,\n'
        '      "ticket_url": string,\n'
        '      "age_restriction": string,\n'
        '      "description": string\n'
        "    }\n"
        "  ],\n"
        '  "confidence": number between 0 and 1,\n'
        '  "notes": string\n'
        "}\n"
        "If the image is not an event flyer, return an empty events array."
    )


def image_identifier(page_url: str, image_url: str) -> str:
    """Ledger key for one image on one page."""
    return hashlib.md5(f"{page_url}{image_url}".encode("utf-8")).hexdigest()


@dataclass
class VisionResult:
    events: List[RawEvent] = field(default_factory=list)
    image_url: str = ""
    analyzed: bool = False
    failure: Optional[str] = None


class EventVisionService:
    """
    Vision fallback for pages without textual event data.

    At most one image is analyzed per call. Every candidate that gets a download
    attempt is marked processed, whatever the outcome, so no image is ever
    analyzed twice.
    """

    def __init__(
        self,
        *,
        http: BaseScraperService,
        ledger: ProcessedLedger,
        openai_client: Optional[OpenAIService] = None,
        openai_factory: Callable[[], OpenAIService] = OpenAIService,
    ) -> None:
        self._http = http
        self._ledger = ledger
        self._openai = openai_client
        self._openai_factory = openai_factory
        self._system_prompt = _build_system_prompt()

    def _client(self) -> OpenAIService:
        # Built on first use; runs that only skip candidates need no API key.
        if self._openai is None:
            self._openai = self._openai_factory()
        return self._openai

    def _build_user_prompt(self, *, page_url: str, image_url: str) -> str:
        return (
            f"Page URL: {page_url}\n"
            f"Image URL: {image_url}\n"
            "Extract every event shown on this image."
        )

    def process(
        self,
        candidates: Sequence[ImageCandidate],
        page_url: str,
        *,
        scope: str,
    ) -> VisionResult:
        if not candidates:
            logger.debug("vision_no_candidates", url=page_url)
            return VisionResult()

        logger.info(
            "vision_candidates_found",
            url=page_url,
            candidate_count=len(candidates),
            top_score=candidates[0].score,
        )
        failure: Optional[str] = None
        for candidate in candidates:
            identifier = image_identifier(page_url, candidate.url)
            if self._ledger.is_processed(identifier, scope):
                logger.debug("vision_candidate_skipped", image_url=candidate.url)
                continue

            image = self._download(candidate.url)
            if image is None:
                self._ledger.mark_processed(identifier, scope)
                failure = ExtractionOutcome.TRANSIENT_FETCH_FAILURE
                continue

            content, mime_type = image
            try:
                events = self._analyze(content, mime_type, page_url=page_url, image_url=candidate.url)
            finally:
                self._ledger.mark_processed(identifier, scope)
            return VisionResult(
                events=events or [],
                image_url=candidate.url,
                analyzed=True,
                failure=ExtractionOutcome.TRANSIENT_FETCH_FAILURE if events is None else None,
            )

        logger.info("vision_candidates_exhausted", url=page_url)
        return VisionResult(failure=failure)

    def _download(self, image_url: str) -> Optional[tuple]:
        try:
            response = self._http.fetch(image_url)
        except httpx.HTTPError as exc:
            logger.warning("vision_image_download_failed", image_url=image_url, error=str(exc))
            return None
        if not response.content:
            logger.warning("vision_image_empty", image_url=image_url)
            return None
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            mime_type = DEFAULT_MIME_TYPE
        return response.content, mime_type

    def _analyze(
        self, content: bytes, mime_type: str, *, page_url: str, image_url: str
    ) -> Optional[List[RawEvent]]:
        """Events read off the image; None when the model call failed."""
        client = self._client()
        try:
            parsed, meta = client.generate_vision_json(
                system_prompt=self._system_prompt,
                user_prompt=self._build_user_prompt(page_url=page_url, image_url=image_url),
                image_bytes=content,
                response_model=VisionExtractionPayload,
                mime_type=mime_type,
            )
        except RuntimeError as exc:
            logger.warning("vision_analysis_failed", image_url=image_url, error=str(exc))
            return None

        payload: VisionExtractionPayload = parsed  # type: ignore[assignment]
        events: List[RawEvent] = []
        for vision_event in payload.events:
            event = vision_event.model_dump(exclude={"age_restriction"})
            event.update(image_url=image_url, source_url=page_url)
            if vision_event.age_restriction and not event["description"]:
                event["description"] = vision_event.age_restriction
            events.append(event)
        logger.info(
            "vision_analysis_completed",
            image_url=image_url,
            event_count=len(events),
            confidence=payload.confidence,
            duration_ms=meta.get("duration_ms"),
        )
        return events
