from __future__ import annotations

import html
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from selectolax.parser import HTMLParser

from app.core.logging import get_logger
from services import page_venue_service
from services.event_extractors.base import EventExtractor, RawEvent

logger = get_logger()

CONTEXT_TOKEN = "Static.SQUARESPACE_CONTEXT"
COLLECTION_PATHS = (
    "/events",
    "/event-listings",
    "/calendar",
    "/shows",
    "/upcoming-events",
    "/live-events",
)
_CONTEXT_RE = re.compile(r"Static\.SQUARESPACE_CONTEXT\s*=\s*(\{.*?\});\s*(?:</script>|window)", re.S)
_MONTH_DAY_RE = re.compile(
    r"(January|February|March|April|May|June|July|August|September|October|November|December|"
    r"Jan|Feb|Mar|Apr|Jun|Jul|Aug|Sep|Sept|Oct|Nov|Dec)\s+(\d{1,2})(?:st|nd|rd|th)?(?:,?\s+(\d{4}))?",
    re.I,
)


def with_query(url: str, **params: str) -> str:
    parts = urlsplit(url)
    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    query.update(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class SquarespaceExtractor(EventExtractor):
    """
    Squarespace sites. The page's JSON view (``?format=json``) carries the event
    collection; the inline context is the fallback when that fetch fails.
    """

    method = "squarespace"

    def can_extract(self, content: str) -> bool:
        return CONTEXT_TOKEN in content

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        data = self._fetch_data(content, source_url)
        items = self._find_items(data, content)
        if not items:
            return []
        page_venue = page_venue_service.extract(content, source_url)
        events: List[RawEvent] = []
        for item in items:
            if not isinstance(item, dict):
                continue
            event = self._normalize_item(item, page_venue, source_url)
            if event["title"]:
                events.append(event)
        return events

    # -------- Data discovery ------------------------------------------------

    def _fetch_data(self, content: str, source_url: str) -> Dict[str, Any]:
        data = self._get_json(with_query(source_url, format="json"))
        if isinstance(data, dict) and data:
            if "upcoming" in data or "past" in data:
                return data
            collection_url = self._events_collection_url(content, source_url)
            if collection_url:
                collection = self._get_json(collection_url)
                if isinstance(collection, dict) and collection:
                    return collection
            return data
        logger.info("squarespace_inline_context_fallback", url=source_url, failure=self.failure)
        return self._inline_context(content)

    def _inline_context(self, content: str) -> Dict[str, Any]:
        match = _CONTEXT_RE.search(content)
        if not match:
            return {}
        data = self._loads(match.group(1))
        return data if isinstance(data, dict) else {}

    def _events_collection_url(self, content: str, source_url: str) -> Optional[str]:
        """Summary blocks point at an events collection by id only; probe the usual paths."""
        tree = HTMLParser(content)
        has_events_block = any(
            "showPastOrUpcomingEvents" in (node.attributes.get("data-block-json") or "")
            for node in tree.css("[data-block-json]")
        )
        if not has_events_block:
            return None
        parts = urlsplit(source_url)
        base = f"{parts.scheme or 'https'}://{parts.netloc}"
        current_path = parts.path.rstrip("/")
        for path in COLLECTION_PATHS:
            if path == current_path:
                continue
            candidate = f"{base}{path}?format=json"
            data = self._get_json(candidate)
            if isinstance(data, dict) and data.get("upcoming"):
                return candidate
        return None

    def _find_items(self, data: Dict[str, Any], content: str) -> List[Any]:
        for key in ("upcoming", "past"):
            if isinstance(data.get(key), list) and data[key]:
                return data[key]
        items = self._find_items_recursive(data)
        if items:
            return items
        items = self._parse_html_items(content)
        if items:
            return items
        upcoming = self._dig(data, "website", "upcomingEvents")
        if isinstance(upcoming, list) and upcoming:
            return upcoming
        blocks = data.get("blocks")
        for block in blocks if isinstance(blocks, list) else []:
            if isinstance(block, dict) and isinstance(block.get("items"), list) and block["items"]:
                return block["items"]
        return []

    def _find_items_recursive(self, data: Any) -> List[Any]:
        if not isinstance(data, dict):
            return []
        collection = data.get("collection")
        if isinstance(collection, dict):
            for key in ("userItems", "items"):
                if isinstance(collection.get(key), list):
                    return collection[key]
        for key, value in data.items():
            if key in ("items", "userItems") and isinstance(value, list) and value:
                first = value[0]
                if isinstance(first, dict) and "title" in first:
                    return value
            if isinstance(value, dict):
                found = self._find_items_recursive(value)
                if found:
                    return found
        return []

    @staticmethod
    def _parse_html_items(content: str) -> List[Dict[str, Any]]:
        items: List[Dict[str, Any]] = []
        for article in HTMLParser(content).css("article.eventlist-event"):
            link = article.css_first(".eventlist-title a")
            if link is None:
                continue
            time_node = article.css_first("time[datetime]")
            image = article.css_first("img[data-src]")
            item = {
                "title": link.text(strip=True),
                "fullUrl": link.attributes.get("href") or "",
                "startDate": time_node.attributes.get("datetime") if time_node is not None else "",
                "assetUrl": image.attributes.get("data-src") if image is not None else "",
            }
            if item["title"]:
                items.append(item)
        return items

    # -------- Field mapping -------------------------------------------------

    def _normalize_item(self, item: Dict[str, Any], page_venue: page_venue_service.PageVenue, source_url: str) -> RawEvent:
        event: RawEvent = page_venue.as_dict()
        event.update(
            title=self._text(item.get("title")),
            description=item.get("description") or item.get("body") or item.get("excerpt") or "",
            source_url=self._absolute(item.get("fullUrl"), source_url),
        )
        self._apply_location(event, item.get("location"))

        timezone_name = event.get("venue_timezone") or self.default_timezone
        start = self._parse_moment(item.get("startDate") or item.get("publishOn"), timezone_name)
        end = self._parse_moment(item.get("endDate"), timezone_name)
        event.update(start_date=start.date, start_time=start.time, end_date=end.date, end_time=end.time)
        if start.timezone:
            event["venue_timezone"] = start.timezone
        if not event["start_date"]:
            event["start_date"] = self._date_from_text(str(event["description"]))

        ticket = self._dig(item, "button", "buttonLink") or item.get("clickthroughUrl")
        event["ticket_url"] = self._absolute(ticket, source_url)
        image = item.get("assetUrl") or self._dig(item, "image", "assetUrl")
        event["image_url"] = image or ""
        return event

    def _parse_moment(self, value: Any, timezone_name: str):
        if value is None or value == "":
            return self._datetime(None)
        if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip().isdigit()):
            return self._timestamp(value, timezone_name)
        return self._datetime(value, timezone_name)

    def _apply_location(self, event: RawEvent, location: Any) -> None:
        if not isinstance(location, dict):
            return
        if location.get("addressTitle"):
            event["venue"] = self._text(location["addressTitle"])
        if location.get("addressLine1"):
            event["venue_address"] = self._text(location["addressLine1"])
        if location.get("addressLine2"):
            # "City, ST, 12345"
            parts = [part.strip() for part in str(location["addressLine2"]).split(",")]
            for key, part in zip(("venue_city", "venue_state", "venue_zip"), parts):
                event[key] = part
        if location.get("addressCountry"):
            event["venue_country"] = self._text(location["addressCountry"])
        lat, lng = location.get("mapLat") or location.get("markerLat"), location.get("mapLng") or location.get("markerLng")
        if lat and lng:
            event["venue_coordinates"] = f"{lat},{lng}"

    @staticmethod
    def _absolute(value: Any, source_url: str) -> str:
        if not value or not isinstance(value, str):
            return ""
        if value.startswith(("http://", "https://")):
            return value
        parts = urlsplit(source_url)
        if value.startswith("/"):
            return f"{parts.scheme or 'https'}://{parts.netloc}{value}"
        return value

    @staticmethod
    def _date_from_text(text: str) -> str:
        match = _MONTH_DAY_RE.search(html.unescape(text or ""))
        if not match:
            return ""
        month, day, year = match.groups()
        explicit_year = bool(year)
        year_value = int(year) if year else date.today().year
        try:
            parsed = datetime.strptime(f"{month[:3]} {day} {year_value}", "%b %d %Y").date()
        except ValueError:
            return ""
        if not explicit_year and parsed < date.today():
            try:
                parsed = parsed.replace(year=parsed.year + 1)
            except ValueError:
                return ""
        return parsed.isoformat()
