from __future__ import annotations

import html
import re
from typing import Any, Dict, List, Optional

from selectolax.parser import HTMLParser, Node

from services.event_extractors.base import EventExtractor, RawEvent

_EVENTS_ARRAY_RES = (
    re.compile(r"events:\s*\[([\s\S]*?)\],\s*eventColor", re.I),
    re.compile(r"events:\s*\[([\s\S]*?)\]\s*,\s*(?:eventColor|timeFormat|eventContent)", re.I),
)
_OBJECT_RE = re.compile(r"\{([^{}]*(?:\{[^{}]*\}[^{}]*)*)\}", re.S)
_PAIR_RES = (
    re.compile(r"(\w+)\s*:\s*'((?:[^'\\]|\\.)*)'", re.S),
    re.compile(r'(\w+)\s*:\s*"((?:[^"\\]|\\.)*)"', re.S),
    re.compile(r"(\w+)\s*:\s*([^,\n\r'\"{}]+?)(?=\s*[,}])", re.S),
)
_DISPLAY_TIME_RE = re.compile(r"(\d{1,2})(?::(\d{2}))?\s*(am|pm)?", re.I)
_IMG_SRC_RE = re.compile(r"src=[\"']([^\"']+)[\"']")
_EVENT_ID_RE = re.compile(r"[\w-]+")

DESCRIPTION_SELECTORS = (".tw-full-description", ".tw-description", ".tw-truncated-description")
TICKET_SELECTORS = (".tw-buy-tix-btn a", "a[href*='ticket']", "a[class*='button']")
VENUE_SELECTORS = (".tw-calendar-venue", ".tw-cal-full-venue")


def parse_js_object(object_text: str) -> Dict[str, str]:
    """Key/value pairs of one JS object literal; the first occurrence of a key wins."""
    result: Dict[str, str] = {}
    for pattern in _PAIR_RES:
        for key, value in pattern.findall(object_text):
            if key in result:
                continue
            cleaned = value.strip().replace("\\'", "'").replace('\\"', '"')
            result[key] = html.unescape(cleaned)
    return result


def parse_display_time(value: str) -> str:
    """'Show: 8:30 PM' -> '20:30'. Without a meridiem the time is read as PM."""
    text = re.sub(r"^(show|doors)\s*:\s*", "", (value or "").strip(), flags=re.I)
    if not text:
        return ""
    match = _DISPLAY_TIME_RE.search(text)
    if not match:
        return ""
    hour = int(match.group(1))
    minute = match.group(2) or "00"
    meridiem = (match.group(3) or "pm").lower()
    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0
    if hour > 23:
        return ""
    return f"{hour:02d}:{minute}"


class TimelyExtractor(EventExtractor):
    """Time.ly calendars rendered through FullCalendar with inline event objects."""

    method = "timely"

    def can_extract(self, content: str) -> bool:
        if "FullCalendar.Calendar" not in content:
            return False
        has_timely_markup = "tw-cal-event" in content or "tw-event-dialog" in content
        return has_timely_markup or "event-discovery" in content

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        raw_events = self._events_array(content)
        if not raw_events:
            return []
        tree = HTMLParser(content)
        events: List[RawEvent] = []
        for raw in raw_events:
            event = self._normalize_event(raw, tree, source_url)
            if event["title"] and event["start_date"]:
                events.append(event)
        return events

    @staticmethod
    def _events_array(content: str) -> List[Dict[str, str]]:
        for pattern in _EVENTS_ARRAY_RES:
            match = pattern.search(content)
            if match:
                body = match.group(1).strip()
                if not body:
                    return []
                return [obj for obj in (parse_js_object(m.group(0)) for m in _OBJECT_RE.finditer(body)) if obj]
        return []

    def _normalize_event(self, raw: Dict[str, str], tree: HTMLParser, source_url: str) -> RawEvent:
        start = raw.get("start", "")
        if re.match(r"^\d{4}-\d{2}-\d{2}$", start):
            start_date = start
        else:
            start_date = self._datetime(start).date
        event: RawEvent = {
            "title": self._text(raw.get("title")),
            "start_date": start_date,
            "start_time": parse_display_time(raw.get("displayTime", "")),
            "image_url": self._image_src(raw.get("imageUrl", "")),
            "venue_timezone": "",
            "source_url": source_url,
        }
        if raw.get("url", "").startswith("#"):
            event["source_url"] = source_url.rstrip("/") + raw["url"]
        if raw.get("showIndicator"):
            event["description"] = self._text(raw["showIndicator"])
        event_id = raw.get("id")
        if event_id and _EVENT_ID_RE.fullmatch(event_id):
            dialog = tree.css_first(f"#tw-event-dialog-{event_id}")
            if dialog is not None:
                event.update(self._dialog_details(dialog))
        return event

    @staticmethod
    def _image_src(img_tag: str) -> str:
        match = _IMG_SRC_RE.search(img_tag or "")
        return match.group(1) if match else ""

    def _dialog_details(self, dialog: Node) -> Dict[str, Any]:
        details: Dict[str, Any] = {}
        for selector in DESCRIPTION_SELECTORS:
            node = dialog.css_first(selector)
            if node is not None and node.text(strip=True):
                details["description"] = node.text(separator="\n").strip()
                break
        for selector in TICKET_SELECTORS:
            node = dialog.css_first(selector)
            href: Optional[str] = node.attributes.get("href") if node is not None else None
            if href and href != "#":
                details["ticket_url"] = href
                break
        for selector in VENUE_SELECTORS:
            node = dialog.css_first(selector)
            if node is not None:
                details["venue"] = self._text(node.text())
                break
        price = dialog.css_first(".tw-info-price")
        if price is not None:
            details["price"] = self._text(price.text())
        return details
