from __future__ import annotations

import json

from services.event_extractors import SquarespaceExtractor
from services.event_extractors.base import ExtractionOutcome
from services.event_extractors.squarespace import with_query

SOURCE_URL = "https://venue.example.org/events"


def _page(context: dict) -> str:
    return (
        "<html><head><title>Events - The Pour House</title>"
        f"<script>Static.SQUARESPACE_CONTEXT = {json.dumps(context)};</script>"
        "</head><body>"
        "<footer>1200 Main Street<br>Columbia, MO 65201</footer>"
        "</body></html>"
    )


PAGE = _page({"website": {"timeZone": "America/Chicago"}})


def test_with_query_keeps_existing_params() -> None:
    assert with_query("https://x.org/events?view=list", format="json") == "https://x.org/events?view=list&format=json"


def test_can_extract() -> None:
    assert SquarespaceExtractor().can_extract(PAGE)
    assert not SquarespaceExtractor().can_extract("<html></html>")


def test_extract_from_json_view(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url="https://venue.example.org/events?format=json",
        json={
            "upcoming": [
                {
                    "title": "Jazz Night",
                    # 2026-06-01 01:00 UTC
                    "startDate": 1780275600000,
                    "endDate": 1780286400000,
                    "fullUrl": "/events/jazz-night",
                    "body": "<p>Quartet</p>",
                    "assetUrl": "https://images.example.org/jazz.jpg",
                    "location": {
                        "addressTitle": "Back Room",
                        "addressLine1": "1200 Main Street",
                        "addressLine2": "Columbia, MO, 65201",
                        "mapLat": 38.95,
                        "mapLng": -92.33,
                    },
                    "button": {"buttonLink": "https://tickets.example.org/jazz"},
                },
                {"title": "", "startDate": 1780275600000},
            ]
        },
    )

    events = SquarespaceExtractor(http).extract(PAGE, SOURCE_URL)

    assert len(events) == 1
    event = events[0]
    assert event["title"] == "Jazz Night"
    assert (event["start_date"], event["start_time"]) == ("2026-05-31", "20:00")
    assert (event["end_date"], event["end_time"]) == ("2026-05-31", "23:00")
    assert event["venue_timezone"] == "America/Chicago"
    assert event["venue"] == "Back Room"
    assert (event["venue_city"], event["venue_state"], event["venue_zip"]) == ("Columbia", "MO", "65201")
    assert event["venue_coordinates"] == "38.95,-92.33"
    assert event["source_url"] == "https://venue.example.org/events/jazz-night"
    assert event["ticket_url"] == "https://tickets.example.org/jazz"
    assert event["image_url"] == "https://images.example.org/jazz.jpg"


def test_page_venue_fills_missing_location(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url="https://venue.example.org/events?format=json",
        json={"upcoming": [{"title": "Trivia", "startDate": "2026-06-03T19:00:00"}]},
    )

    event = SquarespaceExtractor(http).extract(PAGE, SOURCE_URL)[0]

    assert event["venue"] == "The Pour House"
    assert event["venue_address"] == "1200 Main Street"
    assert event["venue_city"] == "Columbia"
    assert (event["start_date"], event["start_time"]) == ("2026-06-03", "19:00")


def test_inline_context_is_used_when_json_view_fails(httpx_mock, http) -> None:
    httpx_mock.add_response(url="https://venue.example.org/events?format=json", status_code=503)
    page = _page(
        {
            "website": {
                "timeZone": "America/Chicago",
                "upcomingEvents": [{"title": "Inline Show", "startDate": "2026-09-01T20:00:00"}],
            }
        }
    )

    extractor = SquarespaceExtractor(http)
    events = extractor.extract(page, SOURCE_URL)

    assert [e["title"] for e in events] == ["Inline Show"]
    assert extractor.failure == ExtractionOutcome.TRANSIENT_FETCH_FAILURE


def test_date_from_text_with_explicit_year() -> None:
    assert SquarespaceExtractor._date_from_text("Join us March 14th, 2031!") == "2031-03-14"
    assert SquarespaceExtractor._date_from_text("no date here") == ""
