from __future__ import annotations

import pytest

from services.event_normalization_service import (
    EventNormalizationError,
    clean_html,
    format_price_range,
    normalize_event,
    normalize_price,
    sanitize_text,
)


def test_normalize_event_sanitizes_fields():
    raw = {
        "title": "  Jazz &amp; Blues <b>Night</b> ",
        "description": "<p>Line one</p><script>alert(1)</script><p>Line two</p>",
        "start_date": "2026-03-14",
        "start_time": "20:00",
        "end_date": "2026-02-30",
        "end_time": "25:00",
        "venue": "The Blue Note",
        "venue_timezone": "CST",
        "price": "$10 - $15",
        "ticket_url": "/tickets/1",
        "image_url": "//cdn.example.org/a.jpg",
        "image_urls": ["https://cdn.example.org/b.jpg", "javascript:void(0)"],
    }

    event = normalize_event(raw, method="json_ld", source_url="https://venue.example.org/events")

    assert event.title == "Jazz & Blues Night"
    assert event.description == "Line one\nLine two"
    assert (event.start_date, event.start_time) == ("2026-03-14", "20:00")
    assert (event.end_date, event.end_time) == ("", "")
    assert event.venue_timezone == ""
    assert event.price == "$10.00 - $15.00"
    assert event.ticket_url == "https://venue.example.org/tickets/1"
    assert event.image_url == "https://cdn.example.org/a.jpg"
    assert event.image_urls == ["https://cdn.example.org/a.jpg", "https://cdn.example.org/b.jpg"]
    assert event.method == "json_ld"
    assert event.source_url == "https://venue.example.org/events"


def test_normalize_event_prefers_event_source_url():
    event = normalize_event(
        {"title": "Show", "source_url": "/events/show"},
        method="craftpeak",
        source_url="https://brew.example.com/events/",
    )
    assert event.source_url == "https://brew.example.com/events/show"


def test_normalize_event_requires_title():
    with pytest.raises(EventNormalizationError):
        normalize_event({"title": "<br>"}, method="json_ld")
    with pytest.raises(EventNormalizationError):
        normalize_event(["not", "a", "mapping"], method="json_ld")  # type: ignore[arg-type]


def test_sanitize_text():
    assert sanitize_text("  a\x00b <i>c</i>\n d ") == "ab c d"
    assert sanitize_text(None) == ""


def test_clean_html_plain_text_passthrough():
    assert clean_html("Tom &amp; Jerry") == "Tom & Jerry"
    assert clean_html("   ") == ""


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Free", "Free"),
        ("$10", "$10.00"),
        ("$10 - $25", "$10.00 - $25.00"),
        (12.5, "$12.50"),
        (0, ""),
        ("Donation at door", "Donation at door"),
        ("", ""),
        (None, ""),
    ],
)
def test_normalize_price(raw, expected):
    assert normalize_price(raw) == expected


def test_format_price_range():
    assert format_price_range(25, 10) == "$10.00 - $25.00"
    assert format_price_range(10, 10) == "$10.00"
    assert format_price_range(None, 30) == "$30.00"
    assert format_price_range(1500) == "$1,500.00"
    assert format_price_range(None, None) == ""
    assert format_price_range(float("inf")) == ""
    assert format_price_range(10, float("nan")) == ""


def test_normalize_event_drops_unjoinable_urls():
    event = normalize_event(
        {"title": "Show", "ticket_url": "ftp://[::1/tickets", "image_urls": ["ftp://[x/b.jpg", "/a.jpg"]},
        method="json_ld",
        source_url="https://venue.example.org/events",
    )
    assert event.ticket_url == ""
    assert event.image_urls == ["https://venue.example.org/a.jpg"]
