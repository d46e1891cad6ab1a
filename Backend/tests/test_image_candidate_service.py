from __future__ import annotations

import pytest
from selectolax.parser import HTMLParser

from services import image_candidate_service as ics
from services.image_candidate_service import ImageCandidateFinder, ImageSignals

PAGE_URL = "https://example.org/calendar"


def test_flyer_image_is_scored_and_returned() -> None:
    html = '<html><body><div><img src="/media/summer.jpg" alt="Event Flyer" width="800" height="600"></div></body></html>'

    candidates = ImageCandidateFinder(min_score=20, max_candidates=5).find_candidates(html, PAGE_URL)

    assert len(candidates) == 1
    candidate = candidates[0]
    assert candidate.url == "https://example.org/media/summer.jpg"
    assert candidate.score == 75
    assert (candidate.width, candidate.height) == (800, 600)
    assert candidate.alt == "Event Flyer"


def test_header_logo_is_excluded() -> None:
    html = (
        "<html><body>"
        '<header><img src="/img/logo-icon.png" class="logo-icon" width="50" height="50"></header>'
        "</body></html>"
    )
    finder = ImageCandidateFinder(min_score=20, max_candidates=5)
    assert finder.find_candidates(html, PAGE_URL) == []
    assert not finder.has_viable_candidates(html, PAGE_URL)


def test_candidates_are_sorted_and_capped() -> None:
    posters = "".join(f'<div><img src="/media/p{i}.jpg" alt="poster"></div>' for i in range(6))
    html = (
        "<html><body>"
        + posters
        + '<div><img src="/media/best.jpg" alt="event flyer" width="800" height="600"></div>'
        + "</body></html>"
    )

    candidates = ImageCandidateFinder(min_score=20, max_candidates=5).find_candidates(html, PAGE_URL)

    assert len(candidates) == 5
    assert candidates[0].url == "https://example.org/media/best.jpg"
    assert [c.score for c in candidates] == sorted((c.score for c in candidates), reverse=True)


def test_data_uri_images_are_ignored() -> None:
    html = '<html><body><div><img src="data:image/png;base64,AAAA" alt="event flyer"></div></body></html>'
    assert ImageCandidateFinder(min_score=0, max_candidates=5).find_candidates(html, PAGE_URL) == []


def test_collect_signals_reads_context() -> None:
    html = (
        "<html><body>"
        '<div class="event-list"><a href="/tickets/42"><span>Sat Mar 14 8pm'
        '<img src="/media/x.jpg" style="width: 700px; height: 500px"></span></a></div>'
        "<aside><p><img src='/media/side.jpg'></p></aside>"
        "</body></html>"
    )
    tree = HTMLParser(html)
    main, side = tree.css("img")

    signals = ics.collect_signals(main, "https://example.org/media/x.jpg")
    assert signals.in_event_container
    assert signals.link_href == "/tickets/42"
    assert (signals.width, signals.height) == (700, 500)
    assert ics.score_context(signals) == 45
    assert ics.score_link(signals) == 15

    side_signals = ics.collect_signals(side, "https://example.org/media/side.jpg")
    assert side_signals.in_aside
    assert not side_signals.in_page_chrome
    assert ics.score_location(side_signals) == -20


@pytest.mark.parametrize(
    "signals,expected",
    [
        (ImageSignals(alt="tour poster"), 30),
        (ImageSignals(src="https://x.org/flyer.jpg"), 25),
        (ImageSignals(alt="sunset"), 0),
    ],
)
def test_score_flyer_keywords(signals: ImageSignals, expected: int) -> None:
    assert ics.score_flyer_keywords(signals) == expected


def test_score_event_keywords() -> None:
    assert ics.score_event_keywords(ImageSignals(alt="live music")) == 20
    assert ics.score_event_keywords(ImageSignals(css_class="concert-img")) == 15
    assert ics.score_event_keywords(ImageSignals(alt="patio")) == 0


def test_score_calendar_keywords() -> None:
    assert ics.score_calendar_keywords(ImageSignals(src="https://x.org/june-calendar.png")) == 25
    assert ics.score_calendar_keywords(ImageSignals(alt="schedule")) == 25


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (800, 600, 25),
        (500, 350, 10),
        (250, 600, -40),
        (350, 250, 0),
        (0, 0, 0),
    ],
)
def test_score_dimensions(width: int, height: int, expected: int) -> None:
    assert ics.score_dimensions(ImageSignals(width=width, height=height)) == expected


def test_score_link() -> None:
    assert ics.score_link(ImageSignals(link_href=None)) == 0
    assert ics.score_link(ImageSignals(link_href="/events/5")) == 15
    assert ics.score_link(ImageSignals(link_href="/gallery")) == 5


def test_score_negative_keywords() -> None:
    assert ics.score_negative_keywords(ImageSignals(src="https://x.org/logo.png")) == -50
    assert ics.score_negative_keywords(ImageSignals(css_class="brand-mark")) == -40
    assert ics.score_negative_keywords(ImageSignals(css_class="menu-toggle")) == -60
    assert ics.score_negative_keywords(ImageSignals(src="https://x.org/thumb/a.jpg")) == -30
    assert ics.score_negative_keywords(ImageSignals(src="https://x.org/a.jpg")) == 0


def test_score_location() -> None:
    assert ics.score_location(ImageSignals(in_page_chrome=True)) == -30
    assert ics.score_location(ImageSignals(in_page_chrome=True, in_aside=True)) == -50


def test_score_signals_never_negative() -> None:
    assert ics.score_signals(ImageSignals(src="https://x.org/logo-search.png", width=20, height=20)) == 0


@pytest.mark.parametrize(
    "src,page_url,expected",
    [
        ("data:image/png;base64,AAAA", PAGE_URL, ""),
        ("https://cdn.example.org/a.jpg", "", "https://cdn.example.org/a.jpg"),
        ("/a.jpg", "", ""),
        ("a.jpg", "https://example.org/events/", "https://example.org/events/a.jpg"),
        ("//cdn.example.org/a.jpg", "https://example.org/", "https://cdn.example.org/a.jpg"),
        ("", PAGE_URL, ""),
    ],
)
def test_resolve_url(src: str, page_url: str, expected: str) -> None:
    assert ics.resolve_url(src, page_url) == expected
