from __future__ import annotations

import html
import math
import re
from typing import Any, Mapping, Optional, Tuple
from urllib.parse import urljoin

from selectolax.parser import HTMLParser

from app.models.normalized_event import NormalizedEvent

_HTML_TAG_RE = re.compile(r"<[^>]+>")
_WHITESPACE_RE = re.compile(r"\s+")
_BLANK_LINES_RE = re.compile(r"\n\s*\n+")
_PRICE_NUMBER_RE = re.compile(r"\d[\d,]*(?:\.\d{1,2})?")

TEXT_FIELDS = (
    "title",
    "venue",
    "venue_address",
    "venue_city",
    "venue_state",
    "venue_zip",
    "venue_country",
    "venue_phone",
    "venue_coordinates",
    "price",
    "performer",
    "organizer",
)
URL_FIELDS = ("ticket_url", "image_url", "venue_website")
PASSTHROUGH_FIELDS = ("start_date", "start_time", "end_date", "end_time", "venue_timezone")


class EventNormalizationError(Exception):
    """
    Raised when a raw extractor record cannot be turned into a NormalizedEvent.
    """


def _sanitize_null_bytes(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    return text.replace("\x00", "")


def sanitize_text(value: Any) -> str:
    """Single-line plain text: tags removed, entities decoded, whitespace collapsed."""
    if value is None:
        return ""
    text = _sanitize_null_bytes(str(value)) or ""
    without_tags = _HTML_TAG_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", html.unescape(without_tags)).strip()


def clean_html(value: Any) -> str:
    """
    Multi-line description text from an HTML fragment.

    Scripts and styles are dropped, block boundaries become line breaks.
    """
    if value is None:
        return ""
    text = _sanitize_null_bytes(str(value)) or ""
    if not text.strip():
        return ""
    if "<" not in text:
        return html.unescape(text).strip()
    tree = HTMLParser(text)
    tree.strip_tags(["script", "style", "iframe", "noscript"])
    root = tree.body or tree.root
    if root is None:
        return ""
    plain = root.text(separator="\n")
    lines = [_WHITESPACE_RE.sub(" ", line).strip() for line in plain.splitlines()]
    joined = "\n".join(lines)
    return _BLANK_LINES_RE.sub("\n\n", joined).strip()


def _normalize_optional_url(value: Any, base_url: str) -> str:
    if not value or not isinstance(value, str):
        return ""
    candidate = value.strip()
    if not candidate or any(ch.isspace() for ch in candidate):
        return ""
    if candidate.startswith(("data:", "javascript:", "mailto:")):
        return ""
    if candidate.startswith("//"):
        return "https:" + candidate
    if candidate.startswith(("http://", "https://")):
        return candidate
    if not base_url:
        return ""
    try:
        return urljoin(base_url, candidate)
    except ValueError:
        return ""


def format_price_range(min_price: Optional[float], max_price: Optional[float] = None) -> str:
    """'$10.00', '$10.00 - $25.00', or '' when neither bound is positive."""
    low = min_price or 0.0
    high = max_price or 0.0
    if not math.isfinite(low) or not math.isfinite(high):
        return ""
    if low <= 0 and high <= 0:
        return ""
    if low > 0 and (high <= 0 or abs(low - high) < 0.01):
        return f"${low:,.2f}"
    if low <= 0:
        return f"${high:,.2f}"
    if low > high:
        low, high = high, low
    return f"${low:,.2f} - ${high:,.2f}"


def parse_price(raw: Optional[str]) -> Tuple[Optional[float], Optional[float], bool]:
    """Returns (min, max, is_free) from strings like '$10 - $15' or 'Free'."""
    text = (raw or "").strip()
    if not text:
        return None, None, False
    if text.lower() == "free":
        return None, None, True
    values = [float(v.replace(",", "")) for v in _PRICE_NUMBER_RE.findall(text)]
    low = values[0] if values else None
    high = values[1] if len(values) > 1 else None
    return low, high, False


def normalize_price(raw: Any) -> str:
    """Display price for a free-form or numeric value."""
    if raw is None or raw == "":
        return ""
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return format_price_range(float(raw))
    text = sanitize_text(raw)
    low, high, is_free = parse_price(text)
    if is_free:
        return "Free"
    if low is None:
        return text
    formatted = format_price_range(low, high)
    return formatted or text


def normalize_event(
    raw: Mapping[str, Any],
    *,
    method: str,
    source_url: str = "",
) -> NormalizedEvent:
    """
    Sanitize one extractor record into a NormalizedEvent.

    Invalid dates, times and zones are blanked by the model; only a missing
    title is fatal.
    """
    if not isinstance(raw, Mapping):
        raise EventNormalizationError(f"raw event must be a mapping, got {type(raw).__name__}")

    payload = {field: sanitize_text(raw.get(field)) for field in TEXT_FIELDS}
    if not payload["title"]:
        raise EventNormalizationError("raw event has no title")

    payload["description"] = clean_html(raw.get("description"))
    payload["price"] = normalize_price(raw.get("price"))
    base_url = str(raw.get("source_url") or source_url or "")
    for field in URL_FIELDS:
        payload[field] = _normalize_optional_url(raw.get(field), base_url)
    for field in PASSTHROUGH_FIELDS:
        value = raw.get(field)
        payload[field] = str(value).strip() if value else ""

    image_urls = raw.get("image_urls")
    if not isinstance(image_urls, (list, tuple)):
        image_urls = []
    payload["image_urls"] = [
        url for url in (_normalize_optional_url(u, base_url) for u in image_urls) if url
    ]
    payload["method"] = method
    payload["source_url"] = _normalize_optional_url(raw.get("source_url"), source_url) or source_url
    return NormalizedEvent(**payload)
