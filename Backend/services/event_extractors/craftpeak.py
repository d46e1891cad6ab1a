from __future__ import annotations

import re
from datetime import date, datetime
from typing import List, Optional
from urllib.parse import urljoin

from selectolax.parser import HTMLParser, Node

from services import page_venue_service
from services.event_datetime_service import normalize_time
from services.event_extractors.base import EventExtractor, RawEvent

CRAFTPEAK_MARKERS = ("craftpeak-cooler-images.imgix.net", "/app/themes/label/")
_EVENT_LINK_RE = re.compile(r"href=['\"](?:https?://[^'\"]+)?/event/[a-z0-9-]+-\d{4}-\d{2}-\d{2}/['\"]")
_URL_DATE_RE = re.compile(r"/event/[a-z0-9-]+-(\d{4}-\d{2}-\d{2})/?$", re.I)
# "Live Music January 16 7:00 pm - 9:00 pm"
_CARD_DATETIME_RE = re.compile(
    r"([A-Za-z]+)\s+(\d{1,2})\s+(\d{1,2}:\d{2}\s*[ap]m)\s*[-–]\s*(\d{1,2}:\d{2}\s*[ap]m)",
    re.I,
)
HEADING_SELECTORS = ("h2", "h3", "h4", "h5", "h6")


def infer_date(month: str, day: str, today: Optional[date] = None) -> str:
    """Month/day without a year: this year, or next year once the date has passed."""
    today = today or date.today()
    try:
        parsed = datetime.strptime(f"{month[:3].title()} {int(day)} {today.year}", "%b %d %Y").date()
    except ValueError:
        return ""
    if parsed < today:
        try:
            parsed = parsed.replace(year=parsed.year + 1)
        except ValueError:
            return ""
    return parsed.isoformat()


class CraftpeakExtractor(EventExtractor):
    """Craftpeak (Label theme) brewery sites: event cards link to /event/<slug>-<date>/."""

    method = "craftpeak"

    def can_extract(self, content: str) -> bool:
        if any(marker in content for marker in CRAFTPEAK_MARKERS):
            return True
        return bool(_EVENT_LINK_RE.search(content))

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        page_venue = page_venue_service.extract(content, source_url)
        events: List[RawEvent] = []
        seen: set = set()
        for anchor in HTMLParser(content).css("a[href]"):
            href = (anchor.attributes.get("href") or "").strip()
            if "/event/" not in href:
                continue
            try:
                event_url = urljoin(source_url, href)
            except ValueError:
                continue
            if event_url in seen:
                continue
            seen.add(event_url)
            event = self._parse_card(anchor, event_url)
            if event is None:
                continue
            event.update({k: v for k, v in page_venue.as_dict().items() if v})
            if event["title"] and event["start_date"]:
                events.append(event)
        return events

    def _parse_card(self, anchor: Node, event_url: str) -> Optional[RawEvent]:
        title = ""
        for selector in HEADING_SELECTORS:
            heading = anchor.css_first(selector)
            if heading is not None:
                title = self._text(heading.text())
                break
        image = anchor.css_first("img[src]")
        match = _CARD_DATETIME_RE.search(self._text(anchor.text(separator=" ")))
        if not title and not match:
            return None

        start_date = ""
        url_date = _URL_DATE_RE.search(event_url)
        if url_date:
            start_date = url_date.group(1)
        elif match:
            start_date = infer_date(match.group(1), match.group(2))
        return {
            "title": title,
            "start_date": start_date,
            "start_time": normalize_time(match.group(3)) if match else "",
            "end_time": normalize_time(match.group(4)) if match else "",
            "image_url": (image.attributes.get("src") or "") if image is not None else "",
            "source_url": event_url,
        }
