from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from services import event_datetime_service
from services.event_datetime_service import is_valid_timezone
from services.event_extractors.base import EventExtractor, RawEvent

GIGWELL_API_URL = "https://api.gigwell.com/api/gigs"
GIGWELL_DEFAULT_TIMEZONE = "America/New_York"
_AGENCY_ATTR_RE = re.compile(r"<gigwell-gigstream[^>]+agency=[\"'](\d+)[\"']")
_AGENCY_LOOSE_RE = re.compile(r"agency[=:][\s\"']*(\d+)")


class GigwellExtractor(EventExtractor):
    """Gigwell gigstream embeds; gigs come from the public agency API."""

    method = "gigwell"

    def can_extract(self, content: str) -> bool:
        return "<gigwell-gigstream" in content or "connect.gigwell.com/gigstream" in content

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        agency_id = self._agency_id(content)
        if not agency_id:
            return []
        data = self._get_json(
            GIGWELL_API_URL,
            params={"agencies": agency_id, "limit": 100, "direction": "ASC"},
        )
        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            return []
        events: List[RawEvent] = []
        for raw in results:
            if not isinstance(raw, dict):
                continue
            event = self._normalize_event(raw, source_url)
            if event["title"]:
                events.append(event)
        return events

    @staticmethod
    def _agency_id(content: str) -> Optional[str]:
        match = _AGENCY_ATTR_RE.search(content) or _AGENCY_LOOSE_RE.search(content)
        return match.group(1) if match else None

    def _normalize_event(self, raw: Dict[str, Any], source_url: str) -> RawEvent:
        title = raw.get("artistTitle") or ""
        artists = raw.get("artists")
        if not title and artists:
            title = ", ".join(str(a) for a in artists) if isinstance(artists, list) else str(artists)
        if raw.get("summary"):
            title = raw["summary"]

        timezone_name = raw.get("eventTimeZone")
        if not isinstance(timezone_name, str) or not is_valid_timezone(timezone_name):
            timezone_name = GIGWELL_DEFAULT_TIMEZONE
        start_date, start_time = "", ""
        if raw.get("startDateTime"):
            start = event_datetime_service.parse_utc(str(raw["startDateTime"]), timezone_name)
            start_date, start_time = start.date, start.time
        elif raw.get("localDate"):
            start_date = str(raw["localDate"])

        return {
            "title": self._text(title),
            "description": raw.get("description") or "",
            "start_date": start_date,
            "start_time": start_time,
            "venue": self._text(raw.get("venueTitle")),
            "venue_address": self._text(raw.get("eventAddress")),
            "venue_city": self._text(raw.get("eventCity")),
            "venue_state": self._text(raw.get("eventState") or raw.get("eventStateName")),
            "venue_zip": self._text(raw.get("eventZipCode")),
            "venue_country": self._text(raw.get("eventCountry")) or "US",
            "venue_timezone": timezone_name,
            "ticket_url": raw.get("ticketUrl") or raw.get("rsvpUrl") or "",
            "performer": self._text(raw.get("artistTitle")),
            "source_url": source_url,
        }
