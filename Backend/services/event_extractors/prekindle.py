from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from selectolax.parser import HTMLParser

from services.event_datetime_service import normalize_time
from services.event_extractors.base import EventExtractor, RawEvent
from services.event_extractors.json_ld import _iter_items, _stringify_value
from services.event_normalization_service import normalize_price

PREKINDLE_WIDGET_URL = "https://www.prekindle.com/organizer-grid-widget-main/id/{org_id}/"
_ORG_ID_PATTERNS = (
    re.compile(r"data-org-id=[\"'](\d+)[\"']"),
    re.compile(r"prekindle\.com/widget/id/(\d+)"),
)
_URL_ORG_ID_RE = re.compile(r"prekindle\.com/[^/]+/(\d+)")
_START_TIME_RE = re.compile(r"(?:Start|Doors)\s+(\d{1,2}:\d{2}\s*(?:am|pm))", re.I)
_ANY_TIME_RE = re.compile(r"(\d{1,2}:\d{2}\s*(?:am|pm))", re.I)


def parse_start_time(time_text: str) -> str:
    """'Doors 7:00pm / Start 8:00pm' -> '19:00'; the first labelled time wins over a bare one."""
    match = _START_TIME_RE.search(time_text or "") or _ANY_TIME_RE.search(time_text or "")
    return normalize_time(match.group(1)) if match else ""


class PrekindleExtractor(EventExtractor):
    """
    Prekindle organizer widgets. The widget page carries a JSON-LD graph with
    dates only; start times come from the rendered event blocks, matched by title.
    """

    method = "prekindle"

    def can_extract(self, content: str) -> bool:
        return "prekindle.com" in content or "pk-cal-widget" in content or "data-org-id" in content

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        org_id = self._org_id(content, source_url)
        if not org_id:
            return []
        widget_html = self._get_text(
            PREKINDLE_WIDGET_URL.format(org_id=org_id),
            params={"fp": "false", "thumbs": "false", "style": "null"},
        )
        if not widget_html:
            return []
        tree = HTMLParser(widget_html)
        raw_events = self._json_ld_events(tree)
        if not raw_events:
            return []
        times = self._times_by_title(tree)
        events: List[RawEvent] = []
        for raw in raw_events:
            event = self._normalize_event(raw, times, source_url)
            if event["title"]:
                events.append(event)
        return events

    @staticmethod
    def _org_id(content: str, source_url: str) -> Optional[str]:
        match = _URL_ORG_ID_RE.search(source_url or "")
        if match:
            return match.group(1)
        for pattern in _ORG_ID_PATTERNS:
            match = pattern.search(content)
            if match:
                return match.group(1)
        return None

    def _json_ld_events(self, tree: HTMLParser) -> List[Dict[str, Any]]:
        node = tree.css_first("script[type='application/ld+json']")
        if node is None:
            return []
        payload = self._loads(node.text() or "")
        if payload is None:
            return []
        return list(_iter_items(payload))

    @staticmethod
    def _times_by_title(tree: HTMLParser) -> Dict[str, str]:
        times: Dict[str, str] = {}
        for block in tree.css("div[name='pk-eachevent']"):
            headline = block.css_first("div.pk-headline")
            time_node = block.css_first("div.pk-times div")
            if headline is None or time_node is None:
                continue
            title = headline.text(strip=True)
            if title:
                times[title.lower()] = time_node.text(strip=True)
        return times

    def _normalize_event(self, raw: Dict[str, Any], times: Dict[str, str], source_url: str) -> RawEvent:
        title = self._text(raw.get("name"))
        location = raw.get("location") if isinstance(raw.get("location"), dict) else {}
        address = location.get("address") if isinstance(location.get("address"), dict) else {}
        offers = raw.get("offers")
        if isinstance(offers, list):
            offers = offers[0] if offers else {}
        if not isinstance(offers, dict):
            offers = {}
        start = self._datetime(raw.get("startDate"))
        end = self._datetime(raw.get("endDate"))
        return {
            "title": title,
            "description": raw.get("description") or "",
            "start_date": start.date,
            "start_time": parse_start_time(times.get(title.lower(), "")),
            "end_date": end.date,
            "venue": self._text(location.get("name")),
            "venue_address": self._text(address.get("streetAddress")),
            "venue_city": self._text(address.get("addressLocality")),
            "venue_state": self._text(address.get("addressRegion")),
            "venue_zip": self._text(address.get("postalCode")),
            "venue_country": _stringify_value(address.get("addressCountry")) or "US",
            "ticket_url": offers.get("url") or raw.get("url") or "",
            "image_url": _stringify_value(raw.get("image")) or "",
            "price": normalize_price(offers.get("price") or offers.get("lowPrice")),
            "organizer": _stringify_value(raw.get("organizer")) or "",
            "source_url": source_url,
        }
