from __future__ import annotations

import re
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from services.event_datetime_service import normalize_time
from services.event_extractors.base import EventExtractor, RawEvent

SPOTHOPPER_API_URL = "https://www.spothopperapp.com/api/spots/{spot_id}/events"
_URL_SPOT_ID_RE = re.compile(r"spot_id=(\d+)")
_SPOT_ID_PATTERNS = (
    re.compile(r"var\s+spot_id\s*=\s*(\d+)"),
    re.compile(r"spot_id=(\d+)"),
    re.compile(r"ab_websites/(\d+)_website"),
    re.compile(r"api/spots/(\d+)"),
    re.compile(r"data-spot-id=[\"'](\d+)[\"']"),
)


class SpotHopperExtractor(EventExtractor):
    """SpotHopper restaurant/bar sites; events and the venue come from the spots API."""

    method = "spothopper"

    def can_extract(self, content: str) -> bool:
        return "spotapps.co" in content or "spothopperapp.com" in content or "spot_id" in content

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        spot_id = self._spot_id(content, source_url)
        if not spot_id:
            return []
        data = self._get_json(SPOTHOPPER_API_URL.format(spot_id=spot_id))
        if not isinstance(data, dict):
            return []
        raw_events = data.get("events") or []
        linked = data.get("linked") if isinstance(data.get("linked"), dict) else {}
        venue = self._venue_data(linked)
        events: List[RawEvent] = []
        for raw in raw_events if isinstance(raw_events, list) else []:
            if not isinstance(raw, dict):
                continue
            event = self._normalize_event(raw, linked, venue, source_url)
            if event["title"]:
                events.append(event)
        return events

    @staticmethod
    def _spot_id(content: str, source_url: str) -> Optional[str]:
        match = _URL_SPOT_ID_RE.search(source_url or "")
        if match:
            return match.group(1)
        for pattern in _SPOT_ID_PATTERNS:
            match = pattern.search(content)
            if match:
                return match.group(1)
        return None

    def _normalize_event(
        self,
        raw: Dict[str, Any],
        linked: Dict[str, Any],
        venue: Dict[str, str],
        source_url: str,
    ) -> RawEvent:
        start_date = self._datetime(raw.get("event_date")).date if raw.get("event_date") else ""
        start_time = normalize_time(str(raw.get("start_time") or ""))
        event: RawEvent = {
            "title": self._text(raw.get("name")),
            "description": raw.get("text") or "",
            "start_date": start_date,
            "start_time": start_time,
            "end_time": self._end_time(start_date, start_time, raw.get("duration_minutes")),
            "image_url": self._image_url(raw, linked),
            "source_url": source_url,
        }
        event.update(venue)
        return event

    @staticmethod
    def _end_time(start_date: str, start_time: str, duration: Any) -> str:
        if not start_date or not start_time:
            return ""
        try:
            minutes = int(duration)
        except (TypeError, ValueError, OverflowError):
            return ""
        if minutes <= 0:
            return ""
        start = datetime.strptime(f"{start_date} {start_time}", "%Y-%m-%d %H:%M")
        try:
            return (start + timedelta(minutes=minutes)).strftime("%H:%M")
        except OverflowError:
            return ""

    def _venue_data(self, linked: Dict[str, Any]) -> Dict[str, str]:
        spot = self._dig(linked, "spots", 0)
        if not isinstance(spot, dict):
            return {}
        data = {
            "venue": self._text(spot.get("name")),
            "venue_address": self._text(spot.get("address")),
            "venue_city": self._text(spot.get("city")),
            "venue_state": self._text(spot.get("state")),
            "venue_zip": self._text(spot.get("zip")),
            "venue_country": self._text(spot.get("country")) or "US",
            "venue_phone": self._text(spot.get("phone_number")),
            "venue_website": spot.get("website_url") or "",
        }
        if spot.get("latitude") and spot.get("longitude"):
            data["venue_coordinates"] = f"{spot['latitude']},{spot['longitude']}"
        return data

    def _image_url(self, raw: Dict[str, Any], linked: Dict[str, Any]) -> str:
        target_id = self._dig(raw, "links", "images", 0)
        images = linked.get("images")
        if target_id is None or not isinstance(images, list):
            return ""
        for image in images:
            if not isinstance(image, dict) or str(image.get("id")) != str(target_id):
                continue
            urls = image.get("urls") if isinstance(image.get("urls"), dict) else {}
            return urls.get("full") or urls.get("large") or image.get("url") or ""
        return ""
