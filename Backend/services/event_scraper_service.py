from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, List, Mapping, Optional, Union
from zoneinfo import ZoneInfo

from app.config import settings
from app.core.logging import get_logger
from app.core.run_context import scrape_run
from app.models.normalized_event import NormalizedEvent
from app.models.scrape_config import ScrapeConfig
from services import event_identity_service
from services.base_scraper_service import BaseScraperService
from services.event_datetime_service import is_valid_timezone
from services.event_extractors.base import ExtractionOutcome, RawEvent
from services.event_ledger_service import ProcessedLedger
from services.event_normalization_service import normalize_event, sanitize_text
from services.event_vision_service import EventVisionService
from services.extractor_dispatch_service import ExtractorDispatchService
from services.image_candidate_service import ImageCandidateFinder

logger = get_logger()

GLOBAL_EXCLUDED_TITLE_KEYWORDS = ("closed",)
VISION_METHOD = "vision"


@dataclass
class ScrapeResult:
    event: Optional[NormalizedEvent]
    method: str
    outcome: str
    candidates_seen: int = 0
    identifier: str = ""


def _today_in(timezone_name: str) -> date:
    return datetime.now(ZoneInfo(timezone_name)).date()


def should_skip_title(title: str) -> bool:
    lowered = (title or "").lower()
    return any(keyword in lowered for keyword in GLOBAL_EXCLUDED_TITLE_KEYWORDS)


def passes_keyword_filters(text: str, config: ScrapeConfig) -> bool:
    """Include terms: at least one must occur. Exclude terms: none may occur."""
    lowered = (text or "").lower()
    include = config.include_terms
    if include and not any(term in lowered for term in include):
        return False
    return not any(term in lowered for term in config.exclude_terms)


class EventScraperService:
    """
    One scrape invocation: dispatch the fetched document to an extractor, run the
    eligibility checks in order and hand back at most one unprocessed event.
    Pages without textual event data go through the vision fallback.
    """

    def __init__(
        self,
        *,
        ledger: ProcessedLedger,
        http: Optional[BaseScraperService] = None,
        dispatcher: Optional[ExtractorDispatchService] = None,
        finder: Optional[ImageCandidateFinder] = None,
        vision: Optional[EventVisionService] = None,
        today: Callable[[str], date] = _today_in,
        default_timezone: Optional[str] = None,
    ) -> None:
        self.ledger = ledger
        self.http = http or BaseScraperService()
        self.default_timezone = default_timezone or settings.EVENT_DEFAULT_TIMEZONE
        self.dispatcher = dispatcher or ExtractorDispatchService(self.http, default_timezone=self.default_timezone)
        self.finder = finder or ImageCandidateFinder()
        self._vision = vision
        self._today = today

    def __enter__(self) -> "EventScraperService":
        self.http.__enter__()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.http.__exit__(exc_type, exc, tb)

    @property
    def vision(self) -> EventVisionService:
        if self._vision is None:
            self._vision = EventVisionService(http=self.http, ledger=self.ledger)
        return self._vision

    def process(
        self,
        content: str,
        source_url: str,
        config: Union[ScrapeConfig, Mapping[str, Any], None] = None,
    ) -> ScrapeResult:
        cfg = config if isinstance(config, ScrapeConfig) else ScrapeConfig.model_validate(dict(config or {}))
        with scrape_run(source_url, cfg.flow_step_id):
            result = self._process(content, source_url, cfg)
            logger.info(
                "scrape_finished",
                method=result.method,
                outcome=result.outcome,
                candidates_seen=result.candidates_seen,
                identifier=result.identifier or None,
            )
        return result

    def _process(self, content: str, source_url: str, cfg: ScrapeConfig) -> ScrapeResult:
        dispatched = self.dispatcher.dispatch(content, source_url)
        if dispatched.events:
            return self._first_eligible(
                dispatched.events, method=dispatched.method, source_url=source_url, config=cfg
            )

        candidates = dispatched.image_candidates or self.finder.find_candidates(content, source_url)
        if not candidates:
            return ScrapeResult(
                event=None,
                method=dispatched.method,
                outcome=dispatched.failure or ExtractionOutcome.SOURCE_UNRECOGNIZED,
            )

        vision_result = self.vision.process(candidates, source_url, scope=cfg.flow_step_id)
        method = dispatched.method or VISION_METHOD
        if not vision_result.events:
            return ScrapeResult(
                event=None,
                method=method,
                outcome=vision_result.failure or ExtractionOutcome.SOURCE_UNRECOGNIZED,
                candidates_seen=len(candidates),
            )
        result = self._first_eligible(
            vision_result.events, method=VISION_METHOD, source_url=source_url, config=cfg
        )
        result.method = method
        result.candidates_seen = len(candidates)
        return result

    def _first_eligible(
        self,
        events: List[RawEvent],
        *,
        method: str,
        source_url: str,
        config: ScrapeConfig,
    ) -> ScrapeResult:
        indeterminate = False
        for raw in events:
            title = sanitize_text(raw.get("title"))
            if not title or should_skip_title(title):
                continue

            event = normalize_event(raw, method=method, source_url=source_url)
            if self._is_past(event):
                continue
            if not passes_keyword_filters(f"{event.title} {event.description}", config):
                continue

            identifier = event_identity_service.generate(event.title, event.start_date, event.venue)
            if not identifier:
                indeterminate = True
                logger.debug("event_identity_indeterminate", url=source_url, title=event.title)
                continue
            if self.ledger.is_processed(identifier, config.flow_step_id):
                continue
            self.ledger.mark_processed(identifier, config.flow_step_id)

            override = config.venue_override()
            if override:
                event = event.model_copy(update=override)
            elif not event.venue:
                logger.warning(
                    "event_missing_venue",
                    url=source_url,
                    method=method,
                    title=event.title,
                    start_date=event.start_date,
                )
            return ScrapeResult(
                event=event,
                method=method,
                outcome=ExtractionOutcome.EMITTED,
                identifier=identifier,
            )

        outcome = ExtractionOutcome.IDENTITY_INDETERMINATE if indeterminate else ExtractionOutcome.NO_ELIGIBLE_EVENT
        return ScrapeResult(event=None, method=method, outcome=outcome)

    def _is_past(self, event: NormalizedEvent) -> bool:
        if not event.start_date:
            return False
        zone = event.venue_timezone if is_valid_timezone(event.venue_timezone) else self.default_timezone
        return date.fromisoformat(event.start_date) < self._today(zone)
