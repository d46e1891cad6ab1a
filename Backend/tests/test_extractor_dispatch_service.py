from __future__ import annotations

import json
from typing import List

from services.event_extractors import (
    BandzoogleExtractor,
    CraftpeakExtractor,
    DuskFmExtractor,
    ElfsightExtractor,
    EventExtractor,
    GigwellExtractor,
    GoDaddyExtractor,
    IcsExtractor,
    JsonLdExtractor,
    PrekindleExtractor,
    SpotHopperExtractor,
    SquareOnlineExtractor,
    SquarespaceExtractor,
    TimelyExtractor,
    VisionExtractor,
)
from services.event_extractors.base import ExtractionOutcome
from services.extractor_dispatch_service import EXTRACTOR_PRIORITY, ExtractorDispatchService


class FakeExtractor(EventExtractor):
    def __init__(self, method: str, *, claims: bool, events: List[dict] | None = None, failure: str | None = None) -> None:
        super().__init__(default_timezone="America/Chicago")
        self.method = method
        self.claims = claims
        self.events = events or []
        self.failure_on_extract = failure
        self.extract_calls = 0

    def can_extract(self, content: str) -> bool:
        return self.claims

    def extract(self, content: str, source_url: str):
        self.extract_calls += 1
        self.failure = self.failure_on_extract
        return list(self.events)


def test_priority_order() -> None:
    assert EXTRACTOR_PRIORITY == (
        JsonLdExtractor,
        IcsExtractor,
        SquarespaceExtractor,
        TimelyExtractor,
        BandzoogleExtractor,
        GoDaddyExtractor,
        DuskFmExtractor,
        ElfsightExtractor,
        GigwellExtractor,
        PrekindleExtractor,
        SpotHopperExtractor,
        CraftpeakExtractor,
        SquareOnlineExtractor,
        VisionExtractor,
    )


def test_first_claiming_extractor_wins() -> None:
    skipped = FakeExtractor("json_ld", claims=False)
    winner = FakeExtractor("ics_feed", claims=True, events=[{"title": "A"}])
    later = FakeExtractor("timely", claims=True, events=[{"title": "B"}])
    service = ExtractorDispatchService(extractors=[skipped, winner, later])

    result = service.dispatch("BEGIN:VCALENDAR", "https://x.org/cal.ics")

    assert result.claimed
    assert result.method == "ics_feed"
    assert result.events == [{"title": "A"}]
    assert later.extract_calls == 0


def test_claimed_extractor_without_events_is_not_merged_with_later_ones() -> None:
    empty = FakeExtractor("gigwell", claims=True, failure=ExtractionOutcome.TRANSIENT_FETCH_FAILURE)
    later = FakeExtractor("timely", claims=True, events=[{"title": "B"}])
    service = ExtractorDispatchService(extractors=[empty, later])

    result = service.dispatch("<gigwell-gigstream agency='1'>", "https://x.org/")

    assert result.method == "gigwell"
    assert result.events == []
    assert result.failure == ExtractionOutcome.TRANSIENT_FETCH_FAILURE
    assert later.extract_calls == 0


def test_failure_is_reset_between_dispatches() -> None:
    extractor = FakeExtractor("gigwell", claims=True, events=[{"title": "A"}])
    extractor.failure = ExtractionOutcome.MALFORMED_PAYLOAD
    service = ExtractorDispatchService(extractors=[extractor])

    assert service.dispatch("page", "https://x.org/").failure is None


def test_empty_or_unrecognized_content() -> None:
    service = ExtractorDispatchService(extractors=[FakeExtractor("json_ld", claims=False)])
    assert not service.dispatch("", "https://x.org/").claimed
    assert not service.dispatch("   ", "https://x.org/").claimed
    assert not service.dispatch("<html>plain</html>", "https://x.org/").claimed


def test_default_chain_dispatches_json_ld() -> None:
    payload = {"@type": "Event", "name": "Jazz Night", "startDate": "2026-08-01T20:00:00"}
    page = f'<html><body><script type="application/ld+json">{json.dumps(payload)}</script></body></html>'

    result = ExtractorDispatchService(default_timezone="America/Chicago").dispatch(page, "https://x.org/")

    assert result.method == "json_ld"
    assert [e["title"] for e in result.events] == ["Jazz Night"]


def test_default_chain_collects_square_online_images() -> None:
    state = {"blocks": [{"figure": {"source": "https://cdn.example.org/flyer.jpg", "width": 800, "height": 1000}}]}
    page = (
        "<html><body>"
        f"<script>window.__BOOTSTRAP_STATE__ = {json.dumps(state)};</script>"
        '<a href="https://shop.square.site">Shop</a>'
        "</body></html>"
    )

    result = ExtractorDispatchService().dispatch(page, "https://shop.square.site/events")

    assert result.method == "square_online"
    assert result.events == []
    assert [c.url for c in result.image_candidates] == ["https://cdn.example.org/flyer.jpg"]


def test_default_chain_falls_back_to_vision_for_flyers() -> None:
    page = '<html><body><div><img src="/media/flyer.jpg" alt="event flyer" width="800" height="600"></div></body></html>'

    result = ExtractorDispatchService().dispatch(page, "https://venue.example.org/")

    assert result.method == "vision"
    assert result.image_candidates[0].url == "https://venue.example.org/media/flyer.jpg"


class ExplodingExtractor(FakeExtractor):
    def extract(self, content: str, source_url: str):
        self.extract_calls += 1
        raise AttributeError("'list' object has no attribute 'get'")


def test_unexpected_payload_shape_is_a_malformed_failure() -> None:
    broken = ExplodingExtractor("dusk_fm", claims=True)
    later = FakeExtractor("timely", claims=True, events=[{"title": "B"}])
    service = ExtractorDispatchService(extractors=[broken, later])

    result = service.dispatch("<html>__NEXT_DATA__</html>", "https://x.org/")

    assert result.method == "dusk_fm"
    assert result.events == []
    assert result.image_candidates == []
    assert result.failure == ExtractionOutcome.MALFORMED_PAYLOAD
    assert later.extract_calls == 0
