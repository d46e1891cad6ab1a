from __future__ import annotations

import hashlib
import html
import re
from datetime import datetime
from typing import List, Optional, Set, Tuple
from urllib.parse import urlsplit

from selectolax.parser import HTMLParser

from app.config import settings
from app.core.logging import get_logger
from services.event_datetime_service import normalize_time
from services.event_extractors.base import EventExtractor, RawEvent

logger = get_logger()

_OCCURRENCE_RE = re.compile(r"href=[\"'](/go/events/\d+\?[^\"']*occurrence_id=\d+[^\"']*)[\"']", re.I)
_CALENDAR_PATH_RE = re.compile(r"/go/calendar/\d+/(\d{4})/(\d{1,2})")
_MONTH_LABEL_RE = re.compile(r"^([A-Za-z]+)\s+(\d{4})$")
_MONTH_DAY_RE = re.compile(r"([A-Za-z]+)\s+(\d{1,2})$")

MonthContext = Tuple[int, int]


def _month_number(name: str) -> int:
    try:
        return datetime.strptime(name[:3].title(), "%b").month
    except ValueError:
        return 0


def _origin(url: str) -> Tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme or "https", parts.netloc


class BandzoogleExtractor(EventExtractor):
    """
    Bandzoogle month calendars. Each month page lists occurrence popups; the
    crawler follows the "next" link month by month up to ``max_pages``.
    """

    method = "bandzoogle"

    def __init__(self, *args, max_pages: Optional[int] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.max_pages = max_pages if max_pages is not None else settings.EVENT_CRAWL_MAX_PAGES

    def can_extract(self, content: str) -> bool:
        return (
            ('class="month-name"' in content and "/go/calendar/" in content)
            or ('class="event-title"' in content and 'class="event-notes"' in content)
            or "bandzoogle.com" in content
        )

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        events: List[RawEvent] = []
        visited: Set[str] = set()
        current_url = source_url
        current_html: Optional[str] = content
        page_count = 1

        while current_html and page_count <= self.max_pages:
            url_hash = hashlib.md5(current_url.encode("utf-8")).hexdigest()
            if url_hash in visited:
                break
            visited.add(url_hash)

            context = self._month_context(current_html) or self._month_context_from_url(current_url)
            for occurrence_url in self._occurrence_urls(current_html, current_url):
                detail_html = self._get_text(occurrence_url)
                if not detail_html:
                    continue
                event = self._parse_occurrence(detail_html, occurrence_url, context)
                if event["title"] and event["start_date"]:
                    events.append(event)

            next_url = self._next_month_url(current_html, current_url)
            if not next_url:
                break
            if page_count >= self.max_pages:
                logger.info("bandzoogle_page_ceiling_reached", url=source_url, max_pages=self.max_pages)
                break
            current_url = next_url
            current_html = self._get_text(current_url)
            page_count += 1

        return events

    # -------- Month navigation ----------------------------------------------

    @staticmethod
    def _month_context(content: str) -> Optional[MonthContext]:
        node = HTMLParser(content).css_first("span.month-name")
        if node is None:
            return None
        match = _MONTH_LABEL_RE.match(html.unescape(node.text()).strip())
        if not match:
            return None
        month = _month_number(match.group(1))
        year = int(match.group(2))
        return (year, month) if month and year else None

    @staticmethod
    def _month_context_from_url(url: str) -> Optional[MonthContext]:
        match = _CALENDAR_PATH_RE.search(urlsplit(url).path)
        if not match:
            return None
        return int(match.group(1)), int(match.group(2))

    @staticmethod
    def _occurrence_urls(content: str, current_url: str) -> List[str]:
        scheme, host = _origin(current_url)
        urls: List[str] = []
        for relative in _OCCURRENCE_RE.findall(content):
            relative = html.unescape(relative)
            if "popup=1" not in relative:
                relative += ("&" if "?" in relative else "?") + "popup=1"
            url = f"{scheme}://{host}{relative}"
            if url not in urls:
                urls.append(url)
        return urls

    @staticmethod
    def _next_month_url(content: str, current_url: str) -> str:
        link = None
        for anchor in HTMLParser(content).css("a[href]"):
            if re.search(r"\bnext\b", anchor.attributes.get("class") or ""):
                link = anchor
                break
        if link is None:
            return ""
        href = html.unescape(link.attributes.get("href") or "").strip()
        if not href:
            return ""
        if href.startswith("//"):
            return "https:" + href
        if re.match(r"^https?://", href, re.I):
            return href
        scheme, host = _origin(current_url)
        if not host:
            return ""
        if not href.startswith("/"):
            href = "/" + href
        return f"{scheme}://{host}{href}"

    # -------- Occurrence popups ---------------------------------------------

    def _parse_occurrence(self, content: str, occurrence_url: str, context: Optional[MonthContext]) -> RawEvent:
        tree = HTMLParser(content)
        title = ""
        source_url = occurrence_url
        heading = tree.css_first("h2.event-title")
        if heading is not None:
            link = heading.css_first("a[href]")
            if link is not None:
                source_url = html.unescape(link.attributes.get("href") or "") or occurrence_url
            title = self._text(heading.text())

        date_node = tree.css_first("time.from span.date") or tree.css_first("span.date")
        time_node = tree.css_first("time.from span.time") or tree.css_first("span.time")
        date_text = self._text(date_node.text()) if date_node is not None else ""
        time_text = self._text(time_node.text()) if time_node is not None else ""

        notes = tree.css_first("div.event-notes")
        image = tree.css_first("div.event-image img[src]")
        image_url = html.unescape(image.attributes.get("src") or "") if image is not None else ""
        if image_url.startswith("//"):
            image_url = "https:" + image_url

        start_date = self._resolve_date(date_text, context)
        return {
            "title": title,
            "description": notes.html if notes is not None else "",
            "start_date": start_date,
            "end_date": start_date,
            "start_time": normalize_time(time_text),
            "ticket_url": source_url,
            "image_url": image_url,
            "source_url": source_url,
        }

    @staticmethod
    def _resolve_date(date_text: str, context: Optional[MonthContext]) -> str:
        """'Sat, Jan 3' in the December page belongs to the following year."""
        if not date_text or not context:
            return ""
        match = _MONTH_DAY_RE.search(date_text)
        if not match:
            return ""
        month = _month_number(match.group(1))
        day = int(match.group(2))
        if not month or not day:
            return ""
        year, context_month = context
        if month == 12 and context_month == 1:
            year -= 1
        elif month == 1 and context_month == 12:
            year += 1
        try:
            return datetime(year, month, day).strftime("%Y-%m-%d")
        except ValueError:
            return ""
