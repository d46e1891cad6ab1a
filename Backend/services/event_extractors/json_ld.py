from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Optional

from selectolax.parser import HTMLParser

from app.core.logging import get_logger
from services.event_extractors.base import EventExtractor, RawEvent
from services.event_normalization_service import format_price_range
from services import page_venue_service
from services.event_datetime_service import convert

logger = get_logger()

DEFAULT_JSON_LD_SCRIPT = "script[type='application/ld+json']"


def _json_ld_type_matches(item: Dict[str, Any]) -> bool:
    raw_type = item.get("@type")
    if raw_type is None:
        return False
    types = raw_type if isinstance(raw_type, list) else [raw_type]
    return any(str(entry).strip().lower().endswith("event") for entry in types)


def _stringify_value(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    if isinstance(value, list):
        for entry in value:
            candidate = _stringify_value(entry)
            if candidate:
                return candidate
        return None
    if isinstance(value, dict):
        for key in ("name", "url", "@id"):
            if key in value:
                return _stringify_value(value[key])
        return None
    cleaned = str(value).strip()
    return cleaned or None


def _iter_items(payload: Any) -> Iterable[Dict[str, Any]]:
    if isinstance(payload, list):
        for entry in payload:
            yield from _iter_items(entry)
    elif isinstance(payload, dict):
        graph = payload.get("@graph")
        if isinstance(graph, list):
            yield from _iter_items(graph)
        else:
            yield payload


class JsonLdExtractor(EventExtractor):
    """Schema.org Event blocks in ``<script type="application/ld+json">``."""

    method = "json_ld"

    def can_extract(self, content: str) -> bool:
        if "application/ld+json" not in content:
            return False
        return bool(self._event_items(content))

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        items = self._event_items(content)
        if not items:
            return []
        page_timezone = page_venue_service.extract_timezone(content)
        events: List[RawEvent] = []
        for item in items:
            event = self._normalize_item(item, source_url, page_timezone)
            if event["title"]:
                events.append(event)
        return events

    def _event_items(self, html_text: str) -> List[Dict[str, Any]]:
        parser = HTMLParser(html_text)
        found: List[Dict[str, Any]] = []
        for node in parser.css(DEFAULT_JSON_LD_SCRIPT):
            script_text = (node.text() or "").strip()
            if not script_text:
                continue
            try:
                payload = json.loads(script_text)
            except (ValueError, RecursionError):
                logger.info("json_ld_block_malformed", length=len(script_text))
                continue
            found.extend(item for item in _iter_items(payload) if _json_ld_type_matches(item))
        return found

    def _normalize_item(self, item: Dict[str, Any], source_url: str, page_timezone: str) -> RawEvent:
        location = item.get("location")
        if isinstance(location, list):
            location = next((loc for loc in location if isinstance(loc, dict)), None)
        event: RawEvent = {
            "title": _stringify_value(item.get("name")) or "",
            "description": _stringify_value(item.get("description")) or "",
            "source_url": _stringify_value(item.get("url")) or source_url,
            "image_url": self._image(item.get("image")),
            "performer": _stringify_value(item.get("performer")) or "",
            "organizer": _stringify_value(item.get("organizer")) or "",
        }
        event.update(self._location(location))

        zone_hint = page_timezone
        start = convert(self._datetime(item.get("startDate"), zone_hint), zone_hint)
        end = convert(self._datetime(item.get("endDate"), zone_hint), zone_hint)
        event.update(
            start_date=start.date,
            start_time=start.time,
            end_date=end.date,
            end_time=end.time,
            venue_timezone=start.timezone or zone_hint,
        )
        event.update(self._offers(item.get("offers")))
        return event

    @staticmethod
    def _image(value: Any) -> str:
        if isinstance(value, dict):
            return _stringify_value(value.get("url") or value.get("contentUrl")) or ""
        if isinstance(value, list):
            for entry in value:
                resolved = JsonLdExtractor._image(entry)
                if resolved:
                    return resolved
            return ""
        return _stringify_value(value) or ""

    def _location(self, location: Any) -> Dict[str, str]:
        if isinstance(location, str):
            return {"venue": location.strip()}
        if not isinstance(location, dict):
            return {}
        result = {"venue": _stringify_value(location.get("name")) or ""}
        address = location.get("address")
        if isinstance(address, str):
            result["venue_address"] = address.strip()
        elif isinstance(address, dict):
            result.update(
                venue_address=self._text(address.get("streetAddress")),
                venue_city=self._text(address.get("addressLocality")),
                venue_state=self._text(address.get("addressRegion")),
                venue_zip=self._text(address.get("postalCode")),
                venue_country=_stringify_value(address.get("addressCountry")) or "",
            )
        geo = location.get("geo")
        if isinstance(geo, dict) and geo.get("latitude") and geo.get("longitude"):
            result["venue_coordinates"] = f"{geo['latitude']},{geo['longitude']}"
        if location.get("telephone"):
            result["venue_phone"] = self._text(location.get("telephone"))
        if location.get("url"):
            result["venue_website"] = _stringify_value(location.get("url")) or ""
        return result

    def _offers(self, offers: Any) -> Dict[str, str]:
        if isinstance(offers, dict):
            offers = [offers]
        if not isinstance(offers, list):
            return {}
        ticket_url = ""
        prices: List[float] = []
        for offer in offers:
            if not isinstance(offer, dict):
                continue
            if not ticket_url:
                ticket_url = _stringify_value(offer.get("url")) or ""
            for key in ("price", "lowPrice", "highPrice"):
                try:
                    value = float(str(offer.get(key)).replace("$", "").replace(",", ""))
                except (TypeError, ValueError):
                    continue
                prices.append(value)
        price = format_price_range(min(prices), max(prices)) if prices else ""
        return {"ticket_url": ticket_url, "price": price}
