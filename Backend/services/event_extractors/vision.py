from __future__ import annotations

from typing import List, Optional

from services.event_extractors.base import EventExtractor, RawEvent
from services.image_candidate_service import ImageCandidate, ImageCandidateFinder


class VisionExtractor(EventExtractor):
    """
    Image-only pages. Claims a document when it has at least one viable flyer
    candidate; the events themselves come from the vision fallback.
    """

    method = "vision"

    def __init__(self, *args, finder: Optional[ImageCandidateFinder] = None, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.finder = finder or ImageCandidateFinder()

    def can_extract(self, content: str) -> bool:
        return self.finder.has_viable_candidates(content, "")

    def can_extract_with_url(self, content: str, source_url: str) -> bool:
        return self.finder.has_viable_candidates(content, source_url)

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        return []

    def get_image_candidates(self, content: str, source_url: str) -> List[ImageCandidate]:
        return self.finder.find_candidates(content, source_url)
