from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError, available_timezones

from dateutil import parser as date_parser

MILLISECOND_TIMESTAMP_THRESHOLD = 1_000_000_000_000

_ICS_VALUE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})(?:T(\d{2})(\d{2})(\d{2})?)?(Z)?$")
_BRACKET_ZONE_RE = re.compile(r"\[([A-Za-z_]+(?:/[A-Za-z0-9_+\-]+)+|UTC)\]\s*$")
_TRAILING_UTC_RE = re.compile(r"(?<=\d)\s*Z$", re.IGNORECASE)
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::\d{2})?\s*([ap]\.?m\.?)?$", re.IGNORECASE)
_HAS_TIME_RE = re.compile(r"\d{1,2}:\d{2}|\d\s*[ap]\.?m\b", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedDateTime:
    """Canonical (date, time, timezone) triple; every field may be empty."""

    date: str = ""
    time: str = ""
    timezone: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.date

    def to_datetime(self) -> Optional[datetime]:
        """Rebuild a timezone-aware instant, or None when date or zone is missing."""
        if not self.date or not self.timezone:
            return None
        value = f"{self.date} {self.time or '00:00'}"
        try:
            naive = datetime.strptime(value, "%Y-%m-%d %H:%M")
        except ValueError:
            return None
        return naive.replace(tzinfo=ZoneInfo(self.timezone))


EMPTY = ParsedDateTime()


@lru_cache(maxsize=1)
def _known_zones() -> frozenset[str]:
    return frozenset(available_timezones())


def is_valid_timezone(name: Optional[str]) -> bool:
    """
    True for canonical IANA identifiers only.

    Abbreviations such as "CST" or "EST" are rejected even where the tz database
    ships a legacy alias for them.
    """
    if not name or not isinstance(name, str):
        return False
    candidate = name.strip()
    if candidate != "UTC" and "/" not in candidate:
        return False
    if candidate not in _known_zones():
        return False
    try:
        ZoneInfo(candidate)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def _format(dt: datetime, zone_name: str) -> ParsedDateTime:
    return ParsedDateTime(
        date=dt.strftime("%Y-%m-%d"),
        time=dt.strftime("%H:%M"),
        timezone=zone_name,
    )


def _zone_from_offset(dt: datetime) -> str:
    offset = dt.utcoffset()
    if offset is None:
        return ""
    seconds = int(offset.total_seconds())
    if seconds == 0:
        return "UTC"
    if seconds % 3600:
        return ""
    hours = seconds // 3600
    # Etc/GMT zones use inverted signs: UTC-6 is Etc/GMT+6
    name = f"Etc/GMT{'+' if hours < 0 else '-'}{abs(hours)}"
    return name if is_valid_timezone(name) else ""


def _zone_name(dt: datetime) -> str:
    tz = dt.tzinfo
    if isinstance(tz, ZoneInfo) and is_valid_timezone(tz.key):
        return tz.key
    if tz is timezone.utc:
        return "UTC"
    return _zone_from_offset(dt)


def _safe_parse(value: str) -> Optional[datetime]:
    try:
        return date_parser.parse(value)
    except (ValueError, OverflowError, TypeError):
        return None


def parse_utc(value: Optional[str], timezone_name: str) -> ParsedDateTime:
    """
    Parse a UTC datetime string and convert it to ``timezone_name``.

    Any zone marker on the string itself is ignored in favour of UTC, which is what
    APIs returning "2026-01-04T02:30:00Z" alongside a venue zone mean.
    """
    if not value or not is_valid_timezone(timezone_name):
        return EMPTY
    parsed = _safe_parse(value.strip())
    if parsed is None:
        return EMPTY
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    local = parsed.astimezone(ZoneInfo(timezone_name))
    return _format(local, timezone_name)


def parse_timestamp(value: Any, timezone_name: str) -> ParsedDateTime:
    """Unix timestamp in seconds or milliseconds (detected by magnitude), UTC based."""
    if value is None or isinstance(value, bool) or value == "":
        return EMPTY
    try:
        ts = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return EMPTY
    if ts <= 0:
        return EMPTY
    if ts > MILLISECOND_TIMESTAMP_THRESHOLD:
        ts = ts // 1000
    if not is_valid_timezone(timezone_name):
        return EMPTY
    try:
        instant = datetime.fromtimestamp(ts, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return EMPTY
    return _format(instant.astimezone(ZoneInfo(timezone_name)), timezone_name)


def normalize_time(value: Optional[str]) -> str:
    """'7:30 pm', '19:30:00' and '7pm' become 'HH:MM'; anything else becomes ''."""
    if not value:
        return ""
    candidate = value.strip().lower().replace(".", "")
    if not candidate:
        return ""
    match = _TIME_RE.match(candidate)
    if match:
        hour, minute = int(match.group(1)), int(match.group(2))
        meridiem = match.group(3)
    else:
        short = re.match(r"^(\d{1,2})\s*([ap]m)$", candidate)
        if not short:
            return ""
        hour, minute, meridiem = int(short.group(1)), 0, short.group(2)
    if meridiem:
        if hour < 1 or hour > 12:
            return ""
        if meridiem.startswith("p") and hour != 12:
            hour += 12
        elif meridiem.startswith("a") and hour == 12:
            hour = 0
    if hour > 23 or minute > 59:
        return ""
    return f"{hour:02d}:{minute:02d}"


def parse_local(date_value: Optional[str], time_value: Optional[str], timezone_name: str) -> ParsedDateTime:
    """
    Combine an already-local date and time; no conversion happens.

    The zone is validated separately, so a bad zone keeps date and time with an
    empty timezone.
    """
    if not date_value:
        return EMPTY
    parsed_date = _safe_parse(date_value.strip())
    if parsed_date is None:
        return EMPTY
    zone = timezone_name if is_valid_timezone(timezone_name) else ""
    return ParsedDateTime(
        date=parsed_date.strftime("%Y-%m-%d"),
        time=normalize_time(time_value),
        timezone=zone,
    )


def parse_iso(value: Optional[str]) -> ParsedDateTime:
    """ISO-8601 string carrying its own offset; the zone is taken from the string."""
    if not value:
        return EMPTY
    candidate = value.strip()
    bracket = _BRACKET_ZONE_RE.search(candidate)
    zone_hint = ""
    if bracket:
        zone_hint = bracket.group(1)
        candidate = candidate[: bracket.start()].strip()
    parsed = _safe_parse(candidate)
    if parsed is None:
        return EMPTY
    if zone_hint and is_valid_timezone(zone_hint):
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(ZoneInfo(zone_hint))
        return _format(parsed, zone_hint)
    if parsed.tzinfo is None:
        return ParsedDateTime(date=parsed.strftime("%Y-%m-%d"), time=parsed.strftime("%H:%M"))
    return _format(parsed, _zone_name(parsed))


def parse_ics(value: Optional[str], calendar_timezone: str = "") -> ParsedDateTime:
    """
    iCalendar DATE / DATE-TIME value.

    Floating values are read as local to the calendar zone, values ending in ``Z``
    are converted from UTC into it, DATE values keep an empty time.
    """
    if not value:
        return EMPTY
    match = _ICS_VALUE_RE.match(value.strip())
    if not match:
        return EMPTY
    year, month, day, hour, minute, second, utc_marker = match.groups()
    zone = calendar_timezone if is_valid_timezone(calendar_timezone) else ""
    try:
        naive = datetime(int(year), int(month), int(day), int(hour or 0), int(minute or 0), int(second or 0))
    except ValueError:
        return EMPTY
    if hour is None:
        return ParsedDateTime(date=naive.strftime("%Y-%m-%d"), time="", timezone=zone)
    if utc_marker:
        instant = naive.replace(tzinfo=timezone.utc)
        if zone:
            return _format(instant.astimezone(ZoneInfo(zone)), zone)
        return _format(instant, "UTC")
    return _format(naive, zone)


def parse(
    value: Optional[str],
    fallback_timezone: str = "",
    *,
    ignore_utc_marker: bool = False,
) -> ParsedDateTime:
    """
    Best-effort parse of a datetime in unknown format.

    An embedded zone wins; otherwise the value is read as local to
    ``fallback_timezone``. With ``ignore_utc_marker`` a trailing ``Z`` is dropped
    first, for sources that stamp local wall-clock times as UTC.
    """
    if not value or not str(value).strip():
        return EMPTY
    candidate = str(value).strip()
    if ignore_utc_marker:
        candidate = _TRAILING_UTC_RE.sub("", candidate)
        candidate = re.sub(r"[+-]00:?00$", "", candidate)
    elif _BRACKET_ZONE_RE.search(candidate):
        return parse_iso(candidate)
    parsed = _safe_parse(candidate)
    if parsed is None:
        return EMPTY
    if parsed.tzinfo is not None:
        return _format(parsed, _zone_name(parsed))
    zone = fallback_timezone if is_valid_timezone(fallback_timezone) else ""
    time_value = parsed.strftime("%H:%M") if _HAS_TIME_RE.search(candidate) else ""
    return ParsedDateTime(date=parsed.strftime("%Y-%m-%d"), time=time_value, timezone=zone)


def convert(parsed: ParsedDateTime, timezone_name: str) -> ParsedDateTime:
    """Move an already-parsed value into ``timezone_name`` when both zones are known."""
    if not parsed.time or not is_valid_timezone(timezone_name) or parsed.timezone == timezone_name:
        return parsed
    instant = parsed.to_datetime()
    if instant is None:
        return parsed
    return _format(instant.astimezone(ZoneInfo(timezone_name)), timezone_name)
