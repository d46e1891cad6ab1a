from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Type

from app.core.logging import get_logger
from services.base_scraper_service import BaseScraperService
from services.event_extractors import (
    BandzoogleExtractor,
    CraftpeakExtractor,
    DuskFmExtractor,
    ElfsightExtractor,
    EventExtractor,
    GigwellExtractor,
    GoDaddyExtractor,
    IcsExtractor,
    JsonLdExtractor,
    PrekindleExtractor,
    RawEvent,
    SpotHopperExtractor,
    SquareOnlineExtractor,
    SquarespaceExtractor,
    TimelyExtractor,
    VisionExtractor,
)
from services.event_extractors.base import ExtractionOutcome
from services.image_candidate_service import ImageCandidate

logger = get_logger()

# Shapes an extractor did not anticipate in a scraped payload.
PAYLOAD_ERRORS = (
    AttributeError,
    IndexError,
    KeyError,
    OverflowError,
    RecursionError,
    TypeError,
    ValueError,
)

# Structured formats first, platform widgets next, image-only strategies last.
EXTRACTOR_PRIORITY: Tuple[Type[EventExtractor], ...] = (
    JsonLdExtractor,
    IcsExtractor,
    SquarespaceExtractor,
    TimelyExtractor,
    BandzoogleExtractor,
    GoDaddyExtractor,
    DuskFmExtractor,
    ElfsightExtractor,
    GigwellExtractor,
    PrekindleExtractor,
    SpotHopperExtractor,
    CraftpeakExtractor,
    SquareOnlineExtractor,
    VisionExtractor,
)


@dataclass
class DispatchResult:
    method: str = ""
    events: List[RawEvent] = field(default_factory=list)
    image_candidates: List[ImageCandidate] = field(default_factory=list)
    failure: Optional[str] = None

    @property
    def claimed(self) -> bool:
        return bool(self.method)


class ExtractorDispatchService:
    """
    Probes extractors in a fixed order and commits to the first one that
    claims the document. Results from several extractors are never merged.
    """

    def __init__(
        self,
        http: Optional[BaseScraperService] = None,
        *,
        extractors: Optional[Sequence[EventExtractor]] = None,
        default_timezone: Optional[str] = None,
    ) -> None:
        if extractors is None:
            extractors = [cls(http, default_timezone=default_timezone) for cls in EXTRACTOR_PRIORITY]
        self.extractors: List[EventExtractor] = list(extractors)

    def select(self, content: str, source_url: str) -> Optional[EventExtractor]:
        for extractor in self.extractors:
            try:
                claimed = extractor.can_extract_with_url(content, source_url)
            except PAYLOAD_ERRORS as exc:
                logger.warning(
                    "extractor_claim_check_failed",
                    url=source_url,
                    method=extractor.method,
                    error_type=type(exc).__name__,
                )
                continue
            if claimed:
                return extractor
        return None

    def dispatch(self, content: str, source_url: str) -> DispatchResult:
        if not content or not content.strip():
            return DispatchResult()
        extractor = self.select(content, source_url)
        if extractor is None:
            logger.info("extractor_not_found", url=source_url)
            return DispatchResult()

        extractor.failure = None
        events: List[RawEvent] = []
        candidates: List[ImageCandidate] = []
        try:
            events = extractor.extract(content, source_url)
            get_candidates = getattr(extractor, "get_image_candidates", None)
            if not events and get_candidates is not None:
                candidates = get_candidates(content, source_url)
        except PAYLOAD_ERRORS as exc:
            events, candidates = [], []
            extractor.failure = ExtractionOutcome.MALFORMED_PAYLOAD
            logger.warning(
                "extractor_payload_unexpected",
                url=source_url,
                method=extractor.method,
                error_type=type(exc).__name__,
                error=str(exc),
            )
        logger.info(
            "extractor_dispatched",
            url=source_url,
            method=extractor.method,
            event_count=len(events),
            candidate_count=len(candidates),
            failure=extractor.failure,
        )
        return DispatchResult(
            method=extractor.method,
            events=events,
            image_candidates=candidates,
            failure=extractor.failure,
        )
