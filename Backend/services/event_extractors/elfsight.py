from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from services import page_venue_service
from services.event_extractors.base import EventExtractor, RawEvent

ELFSIGHT_BOOT_URL = "https://shy.elfsight.com/p/boot/"
FALLBACK_TIMEZONE = "America/Chicago"
_WIDGET_RE = re.compile(r"elfsight-sapp-([a-f0-9-]{36})", re.I)
_SHOPIFY_SHOP_RE = re.compile(r"Shopify\.shop\s*=\s*[\"']([^\"']+)[\"']")
_JSONP_WRAPPER_RE = re.compile(r"^[^(]+\(|\);?\s*$")


def strip_jsonp(response: str) -> str:
    """``jsonp({...});`` -> ``{...}``"""
    return _JSONP_WRAPPER_RE.sub("", response.strip())


class ElfsightExtractor(EventExtractor):
    """Elfsight Event Calendar widgets, loaded from the widget boot API."""

    method = "elfsight"

    def can_extract(self, content: str) -> bool:
        return bool(_WIDGET_RE.search(content))

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        match = _WIDGET_RE.search(content)
        if not match:
            return []
        settings_data = self._widget_settings(match.group(1), content)
        if not settings_data:
            return []
        raw_events = settings_data.get("events") or []
        if not isinstance(raw_events, list) or not raw_events:
            return []
        locations = settings_data.get("locations") or []

        page_venue = page_venue_service.extract(content, source_url)
        timezone_name = page_venue.venue_timezone or FALLBACK_TIMEZONE
        events: List[RawEvent] = []
        for raw in raw_events:
            if not isinstance(raw, dict):
                continue
            event = self._normalize_event(raw, locations, page_venue, timezone_name)
            if event["title"]:
                events.append(event)
        return events

    def _widget_settings(self, widget_id: str, content: str) -> Optional[Dict[str, Any]]:
        params = {"callback": "jsonp", "w": widget_id}
        shop = _SHOPIFY_SHOP_RE.search(content)
        if shop:
            params["shop"] = shop.group(1)
        response = self._get_text(ELFSIGHT_BOOT_URL, params=params)
        if not response:
            return None
        data = self._loads(strip_jsonp(response), url=ELFSIGHT_BOOT_URL)
        if not isinstance(data, dict) or not data.get("status"):
            return None
        widget_settings = self._dig(data, "data", "widgets", widget_id, "data", "settings")
        return widget_settings if isinstance(widget_settings, dict) else None

    def _normalize_event(
        self,
        raw: Dict[str, Any],
        locations: List[Any],
        page_venue: page_venue_service.PageVenue,
        timezone_name: str,
    ) -> RawEvent:
        start = self._timestamp(raw.get("start"), timezone_name)
        end = self._timestamp(raw.get("end"), timezone_name)
        link = raw.get("buttonLink") or ""
        event: RawEvent = {
            "title": self._text(raw.get("name")),
            "description": raw.get("description") or "",
            "start_date": start.date,
            "start_time": start.time,
            "end_date": end.date,
            "end_time": end.time,
            "venue_timezone": timezone_name,
            "image_url": raw.get("media") if isinstance(raw.get("media"), str) else "",
            "ticket_url": link,
            "source_url": link,
        }
        location = self._resolve_location(raw.get("location"), locations)
        if location.get("name"):
            event["venue"] = self._text(location["name"])
            event["venue_address"] = self._text(location.get("address"))
            event["venue_country"] = "US"
        else:
            event.update(
                venue=page_venue.venue,
                venue_address=page_venue.venue_address,
                venue_city=page_venue.venue_city,
                venue_state=page_venue.venue_state,
                venue_zip=page_venue.venue_zip,
                venue_country=page_venue.venue_country or "US",
            )
        return event

    @staticmethod
    def _resolve_location(location_id: Any, locations: List[Any]) -> Dict[str, Any]:
        if not location_id or not isinstance(locations, list):
            return {}
        for location in locations:
            if isinstance(location, dict) and location.get("id") == location_id:
                return location
        return {}
