from __future__ import annotations

import re
from typing import Any, Dict, List
from urllib.parse import urlsplit

from services.event_extractors.base import EventExtractor, RawEvent
from services.image_candidate_service import ImageCandidate

MIN_IMAGE_WIDTH = 400
MIN_IMAGE_HEIGHT = 300
MAX_CANDIDATES = 5
SQUARE_HOST_MARKERS = ("square.site", "editmysite.com", "squareup.com")
POSITIVE_KEYWORDS = ("poster", "flyer", "event", "show", "concert", "live", "music", "calendar")
NEGATIVE_KEYWORDS = ("logo", "icon", "avatar", "profile", "thumb", "menu", "nav", "button")
_BOOTSTRAP_RE = r"__BOOTSTRAP_STATE__\s*=\s*(\{.+?\});?\s*(?:</script>|window\.)"


def score_bootstrap_image(image: Dict[str, Any]) -> int:
    width, height = image["width"], image["height"]
    score = 30
    if width >= 1000 and height >= 1000:
        score += 30
    elif width >= 600 and height >= 600:
        score += 20
    ratio = width / height if height > 0 else 1
    # Portrait flyers
    if 0.5 <= ratio <= 0.9:
        score += 15
    text = f"{image['source']} {image['alt']}".lower()
    if any(keyword in text for keyword in POSITIVE_KEYWORDS):
        score += 20
    if any(keyword in text for keyword in NEGATIVE_KEYWORDS):
        score -= 40
    return max(0, score)


class SquareOnlineExtractor(EventExtractor):
    """
    Square Online sites publish events as marketing images only. ``extract`` always
    returns an empty list; ``get_image_candidates`` hands the images to vision.
    """

    method = "square_online"

    def can_extract(self, content: str) -> bool:
        if "__BOOTSTRAP_STATE__" not in content:
            return False
        return any(marker in content for marker in SQUARE_HOST_MARKERS)

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        return []

    def get_image_candidates(self, content: str, source_url: str) -> List[ImageCandidate]:
        raw = self._script_json(content, _BOOTSTRAP_RE)
        state = self._loads(raw, url=source_url) if raw else None
        if not isinstance(state, dict):
            return []
        base_url = self._base_url(source_url, state)
        candidates: List[ImageCandidate] = []
        seen = set()
        for image in self._find_images(state):
            if image["width"] < MIN_IMAGE_WIDTH or image["height"] < MIN_IMAGE_HEIGHT:
                continue
            url = self._resolve(image["source"], base_url)
            if not url or url in seen:
                continue
            seen.add(url)
            candidates.append(
                ImageCandidate(
                    url=url,
                    score=score_bootstrap_image(image),
                    width=image["width"],
                    height=image["height"],
                    alt=image["alt"],
                )
            )
        candidates.sort(key=lambda c: c.score, reverse=True)
        return candidates[:MAX_CANDIDATES]

    def _find_images(self, data: Any) -> List[Dict[str, Any]]:
        images: List[Dict[str, Any]] = []
        self._search(data, images)
        return images

    def _search(self, data: Any, images: List[Dict[str, Any]]) -> None:
        if isinstance(data, list):
            for value in data:
                self._search(value, images)
            return
        if not isinstance(data, dict):
            return
        sources = (
            (data.get("figure"), True),
            (self._dig(data, "image", "figure"), True),
            (data.get("backgroundImage"), False),
        )
        for figure, has_alt in sources:
            if isinstance(figure, dict) and figure.get("source"):
                images.append(
                    {
                        "source": str(figure["source"]),
                        "width": self._int(figure.get("width")),
                        "height": self._int(figure.get("height")),
                        "alt": str(figure.get("alt") or "") if has_alt else "",
                    }
                )
        for value in data.values():
            if isinstance(value, (dict, list)):
                self._search(value, images)

    @staticmethod
    def _int(value: Any) -> int:
        try:
            return int(value or 0)
        except (TypeError, ValueError, OverflowError):
            return 0

    def _base_url(self, source_url: str, state: Dict[str, Any]) -> str:
        base_uri = self._dig(state, "siteData", "business", "baseUri")
        if isinstance(base_uri, str) and base_uri:
            return base_uri.rstrip("/")
        for url in (self._dig(state, "siteData", "meta", "canonical"), source_url):
            if isinstance(url, str):
                try:
                    parts = urlsplit(url)
                except ValueError:
                    continue
                if parts.netloc:
                    return f"{parts.scheme or 'https'}://{parts.netloc}"
        return ""

    @staticmethod
    def _resolve(source: str, base_url: str) -> str:
        source = source.strip()
        if not source:
            return ""
        if re.match(r"^https?://", source, re.I):
            return source
        if source.startswith("//"):
            return "https:" + source
        if source.startswith("/"):
            return base_url + source
        return f"{base_url}/{source}"
