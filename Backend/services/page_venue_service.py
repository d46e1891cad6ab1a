from __future__ import annotations

import html
import re
from dataclasses import asdict, dataclass
from typing import Dict, Optional

from selectolax.parser import HTMLParser

US_STATES = (
    "AL|AK|AZ|AR|CA|CO|CT|DE|FL|GA|HI|ID|IL|IN|IA|KS|KY|LA|ME|MD|MA|MI|MN|MS|MO|MT|NE|NV|NH|NJ|NM|"
    "NY|NC|ND|OH|OK|OR|PA|RI|SC|SD|TN|TX|UT|VT|VA|WA|WV|WI|WY"
)
TITLE_SEPARATORS = (" — ", " - ", " | ", ": ")
TITLE_FILTER_WORDS = frozenset({"events", "calendar", "shows", "upcoming events", "concerts", "schedule"})

_SQUARESPACE_TZ_RE = re.compile(r'Static\.SQUARESPACE_CONTEXT\s*=\s*\{[^}]*"timeZone"\s*:\s*"([^"]+)"', re.S)
_JSON_TZ_RE = re.compile(r'"timezone"\s*:\s*"([^"]+)"', re.I)
_STREET_RE = re.compile(
    r"(\d+[^,\n]+(?:Street|St|Avenue|Ave|Road|Rd|Drive|Dr|Boulevard|Blvd|Lane|Ln|Way|Court|Ct|"
    r"Circle|Cir|Highway|Hwy|Pkwy|Parkway)\b[^,\n]*)",
    re.I,
)
_LOOSE_STREET_RE = re.compile(r"(\d+\s+[A-Za-z0-9 ]+)")
_CITY_STATE_ZIP_RE = re.compile(
    r"^\s*([A-Za-z ]+),?\s*(" + US_STATES + r")\s+(\d{5}(?:-\d{4})?)",
    re.I | re.M,
)


@dataclass
class PageVenue:
    venue: str = ""
    venue_address: str = ""
    venue_city: str = ""
    venue_state: str = ""
    venue_zip: str = ""
    venue_country: str = "US"
    venue_timezone: str = ""

    def as_dict(self) -> Dict[str, str]:
        return asdict(self)


def extract_venue_name(tree: HTMLParser) -> str:
    """Site name from <title>, skipping parts like "Events" or "Calendar"."""
    node = tree.css_first("title")
    if node is None:
        return ""
    title = html.unescape(node.text() or "").strip()
    if not title:
        return ""
    for separator in TITLE_SEPARATORS:
        if separator not in title:
            continue
        for part in title.split(separator):
            part = part.strip()
            if part and part.lower() not in TITLE_FILTER_WORDS:
                return part
    return title


def extract_timezone(html_text: str, tree: Optional[HTMLParser] = None) -> str:
    match = _SQUARESPACE_TZ_RE.search(html_text)
    if match:
        return match.group(1)
    match = _JSON_TZ_RE.search(html_text)
    if match and "/" in match.group(1):
        return match.group(1)
    tree = tree or HTMLParser(html_text)
    meta = tree.css_first('meta[name="timezone"]')
    if meta is not None:
        return (meta.attributes.get("content") or "").strip()
    return ""


def _footer_text(tree: HTMLParser) -> str:
    for selector in ("footer", 'section[id^="footer"]', "#footer-sections", 'div[class*="footer"]'):
        node = tree.css_first(selector)
        if node is None:
            continue
        for br in node.css("br"):
            br.replace_with("\n")
        text = node.text(separator="\n")
        if text.strip():
            return text
    return ""


def _street_address(text: str) -> str:
    match = _STREET_RE.search(text)
    if match:
        return " ".join(match.group(1).split())
    match = _LOOSE_STREET_RE.search(text)
    if match:
        candidate = " ".join(match.group(1).split())
        if 10 < len(candidate) < 100:
            return candidate
    return ""


def extract(html_text: str, source_url: str = "") -> PageVenue:
    """
    Venue details a listing page gives away outside its event markup.

    Extractors use the result to fill blanks, never to overwrite what the
    event data itself says.
    """
    venue = PageVenue()
    if not html_text:
        return venue
    tree = HTMLParser(html_text)
    venue.venue = extract_venue_name(tree)
    venue.venue_timezone = extract_timezone(html_text, tree)
    footer = _footer_text(tree)
    if footer:
        venue.venue_address = _street_address(footer)
        match = _CITY_STATE_ZIP_RE.search(footer)
        if match:
            venue.venue_city = match.group(1).strip()
            venue.venue_state = match.group(2).upper()
            venue.venue_zip = match.group(3)
    return venue
