"""Each extractor claims a document whose payload has the wrong shape and degrades to empty fields."""

from __future__ import annotations

import json

from services.event_extractors import (
    BandzoogleExtractor,
    CraftpeakExtractor,
    DuskFmExtractor,
    ElfsightExtractor,
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
from services.extractor_dispatch_service import ExtractorDispatchService

SOURCE_URL = "https://venue.example.org/events"
WIDGET_ID = "0f3c1e2a-1b2c-4d5e-8f90-a1b2c3d4e5f6"


def _ld_json_page(payload: str) -> str:
    return f'<html><body><script type="application/ld+json">{payload}</script></body></html>'


def test_json_ld_wrong_field_types() -> None:
    item = {
        "@type": "Event",
        "name": "Jazz Night",
        "startDate": {"when": "soon"},
        "location": [1, 2],
        "offers": [{"price": "1e999"}, "free"],
    }
    events = JsonLdExtractor().extract(_ld_json_page(json.dumps(item)), SOURCE_URL)

    assert [e["title"] for e in events] == ["Jazz Night"]
    assert events[0]["start_date"] == ""
    assert events[0]["price"] == ""
    assert "venue" not in events[0]


def test_json_ld_deeply_nested_block_is_not_claimed() -> None:
    page = _ld_json_page("[" * 100_000 + "]" * 100_000)

    assert not JsonLdExtractor().can_extract(page)
    assert not ExtractorDispatchService().dispatch(page, SOURCE_URL).claimed


def test_ics_unreadable_values() -> None:
    feed = "\r\n".join(
        [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            "BEGIN:VEVENT",
            "SUMMARY:Someday Show",
            "DTSTART:tomorrow",
            "END:VEVENT",
            "BEGIN:VEVENT",
            "SUMMARY:Hourly Happy Hour",
            "DTSTART:20261105T170000",
            "RRULE:FREQ=HOURLY",
            "END:VEVENT",
            "END:VCALENDAR",
        ]
    )
    events = IcsExtractor().extract(feed, SOURCE_URL)

    assert [(e["title"], e["start_date"]) for e in events] == [
        ("Someday Show", ""),
        ("Hourly Happy Hour", "2026-11-05"),
    ]


def test_squarespace_collection_of_wrong_shapes(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url=f"{SOURCE_URL}?format=json",
        json={
            "upcoming": [1, "x", {"title": ["a"], "startDate": {"x": 1}, "fullUrl": 7}],
            "blocks": 5,
        },
    )
    page = '<script>Static.SQUARESPACE_CONTEXT = {"website": []};</script>'

    assert SquarespaceExtractor(http).extract(page, SOURCE_URL) == []


def test_squarespace_non_list_blocks(httpx_mock, http) -> None:
    httpx_mock.add_response(url=f"{SOURCE_URL}?format=json", json={"past": "none", "blocks": 5})
    page = '<script>Static.SQUARESPACE_CONTEXT = {"website": []};</script>'

    assert SquarespaceExtractor(http).extract(page, SOURCE_URL) == []


def test_timely_event_id_is_not_a_selector() -> None:
    page = """
    <div class="tw-cal-event"></div>
    <script>
    new FullCalendar.Calendar(el, {
      events: [
        {id: 'x"], div', title: 'Show', start: '2026-04-02'}
      ],
      eventColor: '#333'
    });
    </script>
    """
    events = TimelyExtractor().extract(page, SOURCE_URL)

    assert [(e["title"], e["start_date"]) for e in events] == [("Show", "2026-04-02")]
    assert "description" not in events[0]


def test_bandzoogle_bad_dates_and_next_link(httpx_mock, http) -> None:
    host = "https://band.example.com"
    httpx_mock.add_response(
        url=f"{host}/go/events/55?occurrence_id=9&popup=1",
        text=(
            '<h2 class="event-title"><a href="/go/events/55">Leap Show</a></h2>'
            '<time class="from"><span class="date">Feb 31</span><span class="time">8 PM</span></time>'
        ),
    )
    page = (
        '<span class="month-name">Smarch 2026</span>'
        '<a class="next" href="http://[::1/go/calendar/123/2026/7">Next</a>'
        '<a href="/go/events/55?occurrence_id=9">Show</a>'
    )
    extractor = BandzoogleExtractor(http, max_pages=3)

    assert extractor.extract(page, f"{host}/go/calendar/123/2026/6") == []
    assert extractor.failure == ExtractionOutcome.TRANSIENT_FETCH_FAILURE


def test_godaddy_events_of_wrong_shapes() -> None:
    body = json.dumps({"events": [1, "x", {"title": ["a"], "start": {"a": 1}}, {"title": "Tasting", "start": 5}]})
    events = GoDaddyExtractor(default_timezone="America/Chicago").extract(body, SOURCE_URL)

    assert [e["title"] for e in events] == ["Tasting"]


def _next_data(page_props) -> str:
    data = json.dumps({"props": {"pageProps": page_props}})
    return f'<meta content="https://dusk.fm"><script id="__NEXT_DATA__" type="application/json">{data}</script>'


def test_dusk_fm_page_props_not_an_object() -> None:
    extractor = DuskFmExtractor()
    page = _next_data(["bookingsJsonLdString"])

    assert extractor.can_extract(page)
    assert extractor.extract(page, SOURCE_URL) == []


def test_dusk_fm_booking_of_wrong_shapes() -> None:
    booking = {
        "name": "Show",
        "startDate": {"when": "soon"},
        "eventSchedule": [1],
        "offers": {"price": "NaN"},
        "performer": "someone",
    }
    page = _next_data({"bookingsJsonLdString": json.dumps([booking, 7]), "venueJsonLdString": "[]"})

    (event,) = DuskFmExtractor().extract(page, SOURCE_URL)

    assert (event["title"], event["start_date"], event["price"]) == ("Show", "", "")
    assert event["performer"] == ""


def test_elfsight_widgets_not_an_object(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url=f"https://shy.elfsight.com/p/boot/?callback=jsonp&w={WIDGET_ID}",
        text='jsonp({"status": 1, "data": {"widgets": [1, 2]}});',
    )
    page = f'<div class="elfsight-sapp-{WIDGET_ID}"></div>'

    assert ElfsightExtractor(http).extract(page, SOURCE_URL) == []


def test_elfsight_event_values_out_of_range(httpx_mock, http) -> None:
    settings = {"events": [1, {"name": "Trivia", "start": "1e999", "location": ["x"]}], "locations": "none"}
    payload = {"status": 1, "data": {"widgets": {WIDGET_ID: {"data": {"settings": settings}}}}}
    httpx_mock.add_response(
        url=f"https://shy.elfsight.com/p/boot/?callback=jsonp&w={WIDGET_ID}",
        text=f"jsonp({json.dumps(payload)});",
    )
    page = f'<div class="elfsight-sapp-{WIDGET_ID}"></div>'

    (event,) = ElfsightExtractor(http).extract(page, SOURCE_URL)

    assert (event["title"], event["start_date"]) == ("Trivia", "")


def test_gigwell_results_of_wrong_shapes(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url="https://api.gigwell.com/api/gigs?agencies=4321&limit=100&direction=ASC",
        json={
            "results": [
                1,
                {"summary": {"x": 1}, "startDateTime": "soon"},
                {"artistTitle": "DJ Nova", "startDateTime": "not a date", "eventTimeZone": ["UTC"]},
            ]
        },
    )
    page = '<gigwell-gigstream agency="4321"></gigwell-gigstream>'

    (event,) = GigwellExtractor(http).extract(page, SOURCE_URL)

    assert (event["title"], event["start_date"]) == ("DJ Nova", "")
    assert event["venue_timezone"] == "America/New_York"


def test_prekindle_json_ld_of_wrong_shapes(httpx_mock, http) -> None:
    graph = [1, "x", {"name": "Bingo", "offers": ["free"], "location": "Basement", "startDate": {"d": 1}}]
    httpx_mock.add_response(
        url="https://www.prekindle.com/organizer-grid-widget-main/id/531433/?fp=false&thumbs=false&style=null",
        text=_ld_json_page(json.dumps(graph)),
    )
    page = '<div class="pk-cal-widget" data-org-id="531433"></div>'

    (event,) = PrekindleExtractor(http).extract(page, SOURCE_URL)

    assert (event["title"], event["start_date"], event["venue"], event["price"]) == ("Bingo", "", "", "")


def test_spothopper_events_of_wrong_shapes(httpx_mock, http) -> None:
    httpx_mock.add_response(
        url="https://www.spothopperapp.com/api/spots/8812/events",
        json={
            "events": [
                "x",
                {
                    "name": "Trivia",
                    "event_date": "2026-06-02",
                    "start_time": "19:00",
                    "duration_minutes": 10**12,
                    "links": {"images": "77"},
                },
            ],
            "linked": {"spots": "x", "images": {"77": 1}},
        },
    )
    page = "<script>var spot_id = 8812;</script>"

    (event,) = SpotHopperExtractor(http).extract(page, SOURCE_URL)

    assert (event["title"], event["start_time"], event["end_time"]) == ("Trivia", "19:00", "")
    assert event["image_url"] == ""
    assert "venue" not in event


def test_spothopper_events_not_a_list(httpx_mock, http) -> None:
    httpx_mock.add_response(url="https://www.spothopperapp.com/api/spots/8812/events", json={"events": {"a": 1}})

    assert SpotHopperExtractor(http).extract("<script>var spot_id = 8812;</script>", SOURCE_URL) == []


def test_craftpeak_unjoinable_event_link_is_skipped() -> None:
    page = (
        '<img src="https://craftpeak-cooler-images.imgix.net/logo.png">'
        '<a href="http://[::1/event/broken-2026-06-01/"><h3>Broken</h3></a>'
        '<a href="/event/trivia-2026-06-02/"><h3>Trivia</h3></a>'
    )
    events = CraftpeakExtractor().extract(page, "https://brew.example.com/events/")

    assert [(e["title"], e["start_date"]) for e in events] == [("Trivia", "2026-06-02")]


def test_square_online_bad_canonical_and_dimensions() -> None:
    state = {
        "siteData": {"meta": {"canonical": "http://[::1"}},
        "blocks": [
            {"figure": {"source": "/img/huge.jpg", "width": float("inf"), "height": 1200}},
            {"figure": {"source": "/img/flyer.jpg", "width": 800, "height": 1000}},
        ],
    }
    page = f"<script>window.__BOOTSTRAP_STATE__ = {json.dumps(state)};</script>square.site"
    extractor = SquareOnlineExtractor()

    assert extractor.can_extract(page)
    candidates = extractor.get_image_candidates(page, "https://shop.square.site/events")

    assert [c.url for c in candidates] == ["https://shop.square.site/img/flyer.jpg"]


def test_vision_ignores_unjoinable_image_sources() -> None:
    page = '<div><img src="//[::1/flyer.jpg" alt="event flyer" width="800" height="600"></div>'

    assert not VisionExtractor().can_extract_with_url(page, SOURCE_URL)
