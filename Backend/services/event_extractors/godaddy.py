from __future__ import annotations

import json
from typing import Any, Dict, List

from services.event_datetime_service import ParsedDateTime
from services.event_extractors.base import EventExtractor, RawEvent

GODADDY_MARKERS = ("godaddy.com", "vnext-events", "events-api.godaddy.com")


class GoDaddyExtractor(EventExtractor):
    """GoDaddy Website Builder events. Only the JSON endpoint body is parsed."""

    method = "godaddy"

    def can_extract(self, content: str) -> bool:
        if content.lstrip().startswith("{"):
            try:
                data = json.loads(content)
            except (ValueError, RecursionError):
                return False
            return isinstance(data, dict) and isinstance(data.get("events"), list)
        return any(marker in content for marker in GODADDY_MARKERS)

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        data = self._loads(content, url=source_url) if content.lstrip().startswith("{") else None
        if not isinstance(data, dict) or not isinstance(data.get("events"), list):
            return []
        events = [self._map_event(raw, source_url) for raw in data["events"] if isinstance(raw, dict)]
        return [event for event in events if event["title"]]

    def _map_event(self, raw: Dict[str, Any], source_url: str) -> RawEvent:
        start = self._moment(raw.get("start"))
        end = self._moment(raw.get("end"))
        return {
            "title": self._text(raw.get("title")),
            "description": raw.get("desc") or "",
            "start_date": start.date,
            "start_time": start.time,
            "end_date": end.date or start.date,
            "end_time": end.time,
            "venue": self._text(raw.get("location")),
            "venue_timezone": start.timezone,
            "source_url": source_url,
        }

    def _moment(self, value: Any) -> ParsedDateTime:
        text = str(value or "").strip()
        parsed = self._datetime(text or None, self.default_timezone)
        if text and "T" not in text:
            # Date-only values are all-day events.
            return ParsedDateTime(date=parsed.date, time="", timezone=parsed.timezone)
        return parsed
