"""
Flyer-likelihood scoring for images on pages without structured event data.

Signals are collected from the DOM into an ``ImageSignals`` record and scored by
``score_signals``, a pure function, so each weight can be tested on its own.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urljoin, urlsplit

from selectolax.parser import HTMLParser, Node

from app.config import settings

FLYER_KEYWORDS = ("flyer", "poster", "flier")
EVENT_KEYWORDS = ("event", "show", "concert", "live", "music", "gig")
CALENDAR_KEYWORDS = ("calendar", "schedule")
LOGO_KEYWORDS = ("logo", "brand", "icon", "avatar", "profile", "sponsor")
UI_KEYWORDS = ("button", "arrow", "chevron", "nav", "menu", "close", "search")
CONTENT_KEYWORDS = ("thumbnail", "thumb", "avatar", "gravatar", "author")
EVENT_CONTAINER_KEYWORDS = ("event", "show", "concert")
CHROME_TAGS = ("header", "footer", "nav")

_MONTH_DAY_RE = re.compile(r"\b(jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\s+\d{1,2}", re.I)
_MERIDIEM_RE = re.compile(r"\d{1,2}\s*(am|pm)", re.I)


@dataclass(frozen=True)
class ImageCandidate:
    url: str
    score: int
    width: int = 0
    height: int = 0
    alt: str = ""


@dataclass(frozen=True)
class ImageSignals:
    """Everything the score depends on, lowercased where text."""

    alt: str = ""
    src: str = ""
    css_class: str = ""
    width: int = 0
    height: int = 0
    in_event_container: bool = False
    parent_text: str = ""
    link_href: Optional[str] = None
    in_page_chrome: bool = False
    in_aside: bool = False


def _contains(haystack: str, keyword: str) -> bool:
    return keyword in haystack


def score_flyer_keywords(signals: ImageSignals) -> int:
    for keyword in FLYER_KEYWORDS:
        if _contains(signals.alt, keyword):
            return 30
        if _contains(signals.src, keyword):
            return 25
    return 0


def score_event_keywords(signals: ImageSignals) -> int:
    for keyword in EVENT_KEYWORDS:
        if _contains(signals.alt, keyword):
            return 20
        if _contains(signals.css_class, keyword):
            return 15
    return 0


def score_calendar_keywords(signals: ImageSignals) -> int:
    for keyword in CALENDAR_KEYWORDS:
        if _contains(signals.alt, keyword) or _contains(signals.src, keyword):
            return 25
    return 0


def score_dimensions(signals: ImageSignals) -> int:
    width, height = signals.width, signals.height
    if not width or not height:
        return 0
    if width >= 600 and height >= 400:
        return 25
    if width >= 400 and height >= 300:
        return 10
    if width < 300 or height < 200:
        return -40
    return 0


def score_context(signals: ImageSignals) -> int:
    score = 20 if signals.in_event_container else 0
    if _MONTH_DAY_RE.search(signals.parent_text):
        score += 15
    if _MERIDIEM_RE.search(signals.parent_text):
        score += 10
    return score


def score_link(signals: ImageSignals) -> int:
    if signals.link_href is None:
        return 0
    if "event" in signals.link_href or "ticket" in signals.link_href:
        return 15
    return 5


def score_negative_keywords(signals: ImageSignals) -> int:
    score = 0
    for keyword in LOGO_KEYWORDS:
        if _contains(signals.src, keyword):
            score -= 50
            break
        if _contains(signals.css_class, keyword):
            score -= 40
            break
    if any(_contains(signals.css_class, k) or _contains(signals.src, k) for k in UI_KEYWORDS):
        score -= 60
    if any(_contains(signals.css_class, k) or _contains(signals.src, k) for k in CONTENT_KEYWORDS):
        score -= 30
    return score


def score_location(signals: ImageSignals) -> int:
    score = 0
    if signals.in_page_chrome:
        score -= 30
    if signals.in_aside:
        score -= 20
    return score


SCORERS = (
    score_flyer_keywords,
    score_event_keywords,
    score_calendar_keywords,
    score_dimensions,
    score_context,
    score_link,
    score_negative_keywords,
    score_location,
)


def score_signals(signals: ImageSignals) -> int:
    return max(0, sum(scorer(signals) for scorer in SCORERS))


def resolve_url(src: str, page_url: str) -> str:
    """Absolute URL for an ``<img src>``; '' for data URIs or when there is no base host."""
    src = (src or "").strip()
    if not src or src.startswith("data:"):
        return ""
    if re.match(r"^https?://", src, re.I):
        return src
    try:
        if not urlsplit(page_url or "").netloc:
            return ""
        return urljoin(page_url, src)
    except ValueError:
        return ""


def _dimension(node: Node, name: str) -> int:
    value = (node.attributes.get(name) or "").strip()
    if re.fullmatch(r"\d+(?:\.\d+)?", value):
        return int(float(value))
    style = node.attributes.get("style") or ""
    match = re.search(name + r"\s*:\s*(\d+)", style)
    return int(match.group(1)) if match else 0


def _ancestors(node: Node):
    current = node.parent
    while current is not None and current.tag not in ("html", "-undef"):
        yield current
        current = current.parent


def collect_signals(node: Node, url: str) -> ImageSignals:
    in_event_container = False
    in_page_chrome = False
    in_aside = False
    link_href: Optional[str] = None
    for ancestor in _ancestors(node):
        css_class = (ancestor.attributes.get("class") or "").lower()
        element_id = (ancestor.attributes.get("id") or "").lower()
        if any(k in css_class or k in element_id for k in EVENT_CONTAINER_KEYWORDS):
            in_event_container = True
        if ancestor.tag in CHROME_TAGS:
            in_page_chrome = True
        elif ancestor.tag == "aside":
            in_aside = True
        elif ancestor.tag == "a" and link_href is None:
            link_href = (ancestor.attributes.get("href") or "").lower()
    parent = node.parent
    return ImageSignals(
        alt=(node.attributes.get("alt") or "").lower(),
        src=url.lower(),
        css_class=(node.attributes.get("class") or "").lower(),
        width=_dimension(node, "width"),
        height=_dimension(node, "height"),
        in_event_container=in_event_container,
        parent_text=parent.text(separator=" ") if parent is not None else "",
        link_href=link_href,
        in_page_chrome=in_page_chrome,
        in_aside=in_aside,
    )


class ImageCandidateFinder:
    def __init__(self, *, min_score: Optional[int] = None, max_candidates: Optional[int] = None) -> None:
        self.min_score = settings.EVENT_IMAGE_MIN_SCORE if min_score is None else min_score
        self.max_candidates = settings.EVENT_IMAGE_MAX_CANDIDATES if max_candidates is None else max_candidates

    def find_candidates(self, html_text: str, page_url: str) -> List[ImageCandidate]:
        candidates: List[ImageCandidate] = []
        for node in HTMLParser(html_text or "").css("img[src]"):
            url = resolve_url(node.attributes.get("src") or "", page_url)
            if not url:
                continue
            signals = collect_signals(node, url)
            score = score_signals(signals)
            if score < self.min_score:
                continue
            candidates.append(
                ImageCandidate(
                    url=url,
                    score=score,
                    width=signals.width,
                    height=signals.height,
                    alt=node.attributes.get("alt") or "",
                )
            )
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[: self.max_candidates]

    def has_viable_candidates(self, html_text: str, page_url: str) -> bool:
        return bool(self.find_candidates(html_text, page_url))
