from __future__ import annotations

import hashlib
import html
import re
from typing import Optional, Tuple

_WHITESPACE_RE = re.compile(r"\s+")
_LEADING_ARTICLE_RE = re.compile(r"^(the|a|an)\s+", re.IGNORECASE)
_ARTICLE_RE = re.compile(r"\b(the|a|an)\b", re.IGNORECASE)
_NON_ALNUM_RE = re.compile(r"[^a-z0-9\s]")
_BRACKETED_RE = re.compile(r"\s*[\(\[][^\)\]]*[\)\]]")
_VENUE_QUALIFIER_RE = re.compile(r"\s+[-–—]\s+.*$")

# Split points between the headliner and tour/support information. A plain
# hyphen is left out so names like "Run-DMC" survive.
TITLE_DELIMITERS: Tuple[str, ...] = (
    " — ",
    "—",
    " – ",
    "–",
    " - ",
    " : ",
    ": ",
    " | ",
    "|",
    " featuring ",
    " feat. ",
    " feat ",
    " ft. ",
    " ft ",
    " with ",
    " w/ ",
    " + ",
)

MIN_CORE_TITLE_LENGTH = 3


def _collapse(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, collapse whitespace, drop one leading article."""
    if not text:
        return ""
    collapsed = _collapse(text.lower())
    return _LEADING_ARTICLE_RE.sub("", collapsed)


def _split_on_delimiter(text: str) -> str:
    earliest: Optional[int] = None
    for delimiter in TITLE_DELIMITERS:
        position = text.find(delimiter)
        if position > 0 and (earliest is None or position < earliest):
            earliest = position
    return text if earliest is None else text[:earliest]


def extract_core_title(title: Optional[str]) -> str:
    """
    Reduce a title to the part that names the event.

    "Andy Frasco & the U.N. — Growing Pains Tour" -> "andy frasco un"
    "Jazz Night: Holiday Special" -> "jazz night"
    """
    if not title:
        return ""
    text = html.unescape(title).lower()
    text = _BRACKETED_RE.sub(" ", text)
    text = _split_on_delimiter(text)
    text = _ARTICLE_RE.sub("", text)
    core = _collapse(_NON_ALNUM_RE.sub("", text))
    if len(core) < MIN_CORE_TITLE_LENGTH:
        return normalize_text(title)
    return core


def titles_match(title_a: Optional[str], title_b: Optional[str]) -> bool:
    """Equal core titles; no similarity scoring beyond the core extraction."""
    core_a = extract_core_title(title_a)
    core_b = extract_core_title(title_b)
    return bool(core_a) and core_a == core_b


def normalize_venue(venue: Optional[str]) -> str:
    """
    Venue key: entities decoded, "(Main Room)" and " - Upstairs" qualifiers
    dropped, leading article stripped, casefolded.
    """
    if not venue:
        return ""
    text = html.unescape(html.unescape(venue))
    text = _BRACKETED_RE.sub(" ", text)
    text = _VENUE_QUALIFIER_RE.sub("", text)
    text = _collapse(text).casefold()
    text = _LEADING_ARTICLE_RE.sub("", text)
    text = re.sub(r"[^\w\s&]", "", text)
    return _collapse(text)


def venues_match(venue_a: Optional[str], venue_b: Optional[str]) -> bool:
    norm_a = normalize_venue(venue_a)
    norm_b = normalize_venue(venue_b)
    if not norm_a or not norm_b:
        return False
    return norm_a == norm_b


def generate(title: Optional[str], start_date: Optional[str], venue: Optional[str]) -> str:
    """
    Stable identifier for one real-world event.

    Returns an empty string when title or start date is missing; such events
    cannot be deduplicated.
    """
    if not title or not title.strip() or not start_date or not start_date.strip():
        return ""
    key = extract_core_title(title) + start_date.strip() + normalize_venue(venue)
    return hashlib.md5(key.encode("utf-8")).hexdigest()
