from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence

from app.core.logging import get_logger
from services.event_identity_service import titles_match, venues_match

logger = get_logger()

STRATEGY_VENUE_DATE = "venue_date_fuzzy_title"
STRATEGY_DATE_VENUE_CONFIRM = "date_fuzzy_title_venue_confirm"
VENUE_DATE_LIMIT = 10
DATE_LIMIT = 20


@dataclass
class ExistingEvent:
    id: str
    title: str
    venue: str
    start_date: str


@dataclass
class DuplicateMatch:
    found: bool
    strategy: Optional[str] = None
    record: Optional[ExistingEvent] = None


class EventSearch(Protocol):
    """Read-only view on previously stored events."""

    def find_by_venue_and_date(self, venue: str, start_date: str, limit: int) -> Sequence[ExistingEvent]: ...

    def find_by_date(self, start_date: str, limit: int) -> Sequence[ExistingEvent]: ...


NOT_FOUND = DuplicateMatch(found=False)


def _match_by_venue_and_date(
    search: EventSearch,
    title: str,
    venue: str,
    start_date: str,
) -> Optional[ExistingEvent]:
    for record in search.find_by_venue_and_date(venue, start_date, VENUE_DATE_LIMIT):
        if titles_match(title, record.title):
            return record
    return None


def _match_by_date(
    search: EventSearch,
    title: str,
    venue: str,
    start_date: str,
) -> Optional[ExistingEvent]:
    for record in search.find_by_date(start_date, DATE_LIMIT):
        if not titles_match(title, record.title):
            continue
        # Conflicting venues veto the match; a missing venue on either side does not.
        if venue and record.venue and not venues_match(venue, record.venue):
            continue
        return record
    return None


def find_duplicate(
    search: EventSearch,
    *,
    title: Optional[str],
    start_date: Optional[str],
    venue: Optional[str] = None,
) -> DuplicateMatch:
    """
    Two-tier lookup for an already stored copy of an event.

    Tier 1 scopes to venue + date when a venue is known. Tier 2 widens to the date
    alone and only requires the venues to agree when both records carry one.
    """
    title = (title or "").strip()
    start_date = (start_date or "").strip()
    venue = (venue or "").strip()
    if not title or not start_date:
        return NOT_FOUND

    if venue:
        record = _match_by_venue_and_date(search, title, venue, start_date)
        if record is not None:
            logger.info(
                "event_dedupe_duplicate_found",
                strategy=STRATEGY_VENUE_DATE,
                record_id=record.id,
                title=title,
            )
            return DuplicateMatch(found=True, strategy=STRATEGY_VENUE_DATE, record=record)

    record = _match_by_date(search, title, venue, start_date)
    if record is not None:
        logger.info(
            "event_dedupe_duplicate_found",
            strategy=STRATEGY_DATE_VENUE_CONFIRM,
            record_id=record.id,
            title=title,
        )
        return DuplicateMatch(found=True, strategy=STRATEGY_DATE_VENUE_CONFIRM, record=record)

    return NOT_FOUND
