from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from itertools import islice
from typing import Any, Dict, List, Optional, Set, Tuple

from dateutil.rrule import rrulestr
from icalendar import Calendar

from app.core.logging import get_logger
from services import event_datetime_service
from services.event_datetime_service import ParsedDateTime, is_valid_timezone
from services.event_extractors.base import EventExtractor, ExtractionOutcome, RawEvent

logger = get_logger()

_CALENDAR_RE = re.compile(r"^BEGIN:VCALENDAR", re.I | re.M)
_CALENDAR_BLOCK_RE = re.compile(r"^BEGIN:VCALENDAR.*?^END:VCALENDAR[^\r\n]*", re.I | re.M | re.S)
_UNTIL_RE = re.compile(r"(?:^|;)UNTIL=([^;]*)", re.I)
_EXPANDED_FREQ_RE = re.compile(r"(?:^|;)FREQ=(DAILY|WEEKLY|MONTHLY|YEARLY)(?:;|$)", re.I)

# Recurring events are expanded from one day back to two years ahead.
RECURRENCE_LOOKBACK_DAYS = 1
RECURRENCE_SPAN_DAYS = 730
MAX_OCCURRENCES = 100
MAX_RULE_STEPS = 20000

Occurrence = Tuple[ParsedDateTime, ParsedDateTime]
OverrideKey = Tuple[str, datetime]


def _first(value: Any) -> Any:
    """Repeated properties come back as a list; the first one wins."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


def _serialized(prop: Any) -> str:
    value = prop.to_ical()
    if isinstance(value, bytes):
        return value.decode("utf-8", "replace")
    return str(value)


def _params(prop: Any) -> Dict[str, Any]:
    return getattr(prop, "params", None) or {}


def _wall_clock(parsed: ParsedDateTime, *, end_of_day: bool = False) -> datetime:
    if parsed.time:
        return datetime.strptime(f"{parsed.date} {parsed.time}", "%Y-%m-%d %H:%M")
    day = datetime.strptime(parsed.date, "%Y-%m-%d").date()
    return datetime.combine(day, time.max if end_of_day else time.min)


class IcsExtractor(EventExtractor):
    """
    iCalendar feeds (``BEGIN:VCALENDAR``).

    Components are read with ``icalendar``; date values keep their wall-clock
    reading (TZID zone, else the calendar zone). RRULE events are expanded with
    ``dateutil.rrule`` inside a bounded window around today, skipping EXDATEs and
    occurrences replaced by a RECURRENCE-ID component.
    """

    method = "ics_feed"

    def __init__(self, *args, today: Optional[date] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.today = today

    def can_extract(self, content: str) -> bool:
        content = (content or "").strip()
        if not content:
            return False
        return bool(_CALENDAR_RE.search(content))

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        calendar = self._read_calendar(content or "", source_url)
        if calendar is None:
            return []
        vevents = calendar.walk("VEVENT")
        if not vevents:
            return []
        calendar_timezone = self._calendar_timezone(calendar)
        overrides = self._overrides(vevents, calendar_timezone)
        events: List[RawEvent] = []
        for vevent in vevents:
            event_timezone = calendar_timezone or self._explicit_timezone(_first(vevent.get("DTSTART")))
            for start, end in self._occurrences(vevent, event_timezone, overrides):
                event = self._normalize_event(vevent, start, end, event_timezone, source_url)
                if event["title"]:
                    events.append(event)
        return events

    def _read_calendar(self, content: str, source_url: str) -> Optional[Calendar]:
        block = _CALENDAR_BLOCK_RE.search(content)
        try:
            if block is None:
                raise ValueError("unterminated VCALENDAR")
            return Calendar.from_ical(block.group(0))
        except ValueError as exc:
            self.failure = ExtractionOutcome.MALFORMED_PAYLOAD
            logger.info(
                "extractor_payload_malformed",
                extractor=self.method,
                url=source_url,
                error=str(exc),
            )
            return None

    @staticmethod
    def _calendar_timezone(calendar: Calendar) -> str:
        candidates = [_first(calendar.get("X-WR-TIMEZONE"))]
        candidates += [_first(tz.get("TZID")) for tz in calendar.walk("VTIMEZONE")[:1]]
        for candidate in candidates:
            if candidate is not None and is_valid_timezone(str(candidate).strip()):
                return str(candidate).strip()
        return ""

    # -------- Date values ---------------------------------------------------

    @staticmethod
    def _explicit_timezone(prop: Any) -> str:
        if prop is None:
            return ""
        tzid = str(_params(prop).get("TZID") or "")
        return tzid if is_valid_timezone(tzid) else ""

    def _parse_value(self, prop: Any, event_timezone: str) -> ParsedDateTime:
        if prop is None:
            return event_datetime_service.EMPTY
        return self._parse_text(_serialized(prop), self._explicit_timezone(prop), event_timezone)

    @staticmethod
    def _parse_text(value: str, tzid: str, event_timezone: str) -> ParsedDateTime:
        value = value.strip()
        if tzid:
            # A TZID wall-clock time is local to that zone, whatever the calendar says.
            return event_datetime_service.parse_ics(value.rstrip("Z"), tzid)
        return event_datetime_service.parse_ics(value, event_timezone)

    def _date_list(self, vevent: Any, name: str, event_timezone: str) -> Set[datetime]:
        values: Set[datetime] = set()
        props = vevent.get(name)
        for prop in props if isinstance(props, list) else [props]:
            if prop is None:
                continue
            tzid = self._explicit_timezone(prop)
            for value in _serialized(prop).split(","):
                parsed = self._parse_text(value, tzid, event_timezone)
                if parsed.date:
                    values.add(_wall_clock(parsed))
        return values

    # -------- Recurrence ----------------------------------------------------

    def _overrides(self, vevents: List[Any], calendar_timezone: str) -> Set[OverrideKey]:
        keys: Set[OverrideKey] = set()
        for vevent in vevents:
            recurrence_id = _first(vevent.get("RECURRENCE-ID"))
            if recurrence_id is None:
                continue
            zone = calendar_timezone or self._explicit_timezone(_first(vevent.get("DTSTART")))
            parsed = self._parse_value(recurrence_id, zone)
            if parsed.date:
                keys.add((str(_first(vevent.get("UID")) or ""), _wall_clock(parsed)))
        return keys

    def _occurrences(self, vevent: Any, event_timezone: str, overrides: Set[OverrideKey]) -> List[Occurrence]:
        start = self._parse_value(_first(vevent.get("DTSTART")), event_timezone)
        end = self._parse_value(_first(vevent.get("DTEND")), event_timezone)
        duration = self._duration(vevent, start, end)
        if end.is_empty and duration is not None:
            end = self._shift(start, _wall_clock(start), duration)

        rule = _first(vevent.get("RRULE"))
        if rule is None or start.is_empty:
            return [(start, end)]
        first = _wall_clock(start)
        uid = str(_first(vevent.get("UID")) or "")
        skip = self._date_list(vevent, "EXDATE", event_timezone)
        skip.update(moment for key, moment in overrides if key == uid)
        occurrences: List[Occurrence] = []
        for moment in self._expand(_serialized(rule), first, start.timezone or event_timezone, skip):
            occurrence_end = self._shift(start, moment, duration) if duration is not None else end
            occurrences.append((self._shift(start, moment), occurrence_end))
        return occurrences

    @staticmethod
    def _duration(vevent: Any, start: ParsedDateTime, end: ParsedDateTime) -> Optional[timedelta]:
        if start.is_empty:
            return None
        if not end.is_empty:
            return _wall_clock(end) - _wall_clock(start)
        length = getattr(_first(vevent.get("DURATION")), "dt", None)
        return length if isinstance(length, timedelta) else None

    @staticmethod
    def _shift(start: ParsedDateTime, moment: datetime, delta: Optional[timedelta] = None) -> ParsedDateTime:
        if delta is not None:
            try:
                moment = moment + delta
            except OverflowError:
                return event_datetime_service.EMPTY
        return ParsedDateTime(
            date=moment.strftime("%Y-%m-%d"),
            time=moment.strftime("%H:%M") if start.time else "",
            timezone=start.timezone,
        )

    def _expand(self, rule_text: str, first: datetime, zone: str, skip: Set[datetime]) -> List[datetime]:
        """Wall-clock occurrences of one RRULE inside the recurrence window."""
        if not _EXPANDED_FREQ_RE.search(rule_text):
            logger.info("ics_rrule_not_expanded", rule=rule_text)
            return [first]
        until = _UNTIL_RE.search(rule_text)
        try:
            rule = rrulestr(_UNTIL_RE.sub("", rule_text).strip(";"), dtstart=first)
            if until:
                limit = event_datetime_service.parse_ics(until.group(1).strip(), zone)
                if limit.date:
                    rule = rule.replace(until=_wall_clock(limit, end_of_day=True))
        except (TypeError, ValueError, OverflowError) as exc:
            logger.info("ics_rrule_unreadable", rule=rule_text, error=str(exc))
            return [first]

        today = self.today or date.today()
        window_start = datetime.combine(today - timedelta(days=RECURRENCE_LOOKBACK_DAYS), time.min)
        window_end = datetime.combine(today + timedelta(days=RECURRENCE_SPAN_DAYS), time.min)
        found: List[datetime] = []
        for moment in islice(rule, MAX_RULE_STEPS):
            if moment >= window_end or len(found) >= MAX_OCCURRENCES:
                break
            if moment >= window_start and moment not in skip:
                found.append(moment)
        return found

    # -------- Field mapping -------------------------------------------------

    def _normalize_event(
        self,
        vevent: Any,
        start: ParsedDateTime,
        end: ParsedDateTime,
        event_timezone: str,
        source_url: str,
    ) -> RawEvent:
        def text(name: str) -> str:
            value = _first(vevent.get(name))
            return str(value).strip() if value is not None else ""

        url = text("URL")
        event: RawEvent = {
            "title": text("SUMMARY"),
            "description": text("DESCRIPTION"),
            "start_date": start.date,
            "start_time": start.time,
            "end_date": end.date,
            "end_time": end.time,
            "venue_timezone": start.timezone or end.timezone or event_timezone,
            "ticket_url": url,
            "organizer": self._organizer(_first(vevent.get("ORGANIZER"))),
            "source_url": url or source_url,
        }
        event.update(self._location(text("LOCATION")))
        return event

    @staticmethod
    def _organizer(prop: Any) -> str:
        if prop is None:
            return ""
        name = _params(prop).get("CN")
        if name:
            return str(name).strip()
        return re.sub(r"^mailto:", "", str(prop).strip(), flags=re.I)

    @staticmethod
    def _location(location: str) -> Dict[str, str]:
        if not location:
            return {}
        venue, sep, address = location.partition(",")
        if not sep:
            return {"venue": venue.strip(), "venue_address": location.strip()}
        return {"venue": venue.strip(), "venue_address": address.strip()}
