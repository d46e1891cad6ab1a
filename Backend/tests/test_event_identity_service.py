from __future__ import annotations

import pytest

from services import event_identity_service as identity


def test_generate_is_deterministic() -> None:
    first = identity.generate("Jazz Night", "2026-06-01", "The Blue Note")
    second = identity.generate("Jazz Night", "2026-06-01", "The Blue Note")
    assert first == second
    assert len(first) == 32


def test_generate_ignores_case_whitespace_and_entities() -> None:
    base = identity.generate("Rock &amp; Roll Night", "2026-06-01", "Blue Note")
    assert identity.generate("  ROCK & ROLL   night ", "2026-06-01", "the blue note") == base


def test_generate_collapses_tour_suffix_and_venue_room() -> None:
    plain = identity.generate("Andy Frasco", "2026-06-01", "The Fillmore")
    suffixed = identity.generate("Andy Frasco — Growing Pains Tour", "2026-06-01", "The Fillmore (Main Room)")
    assert plain == suffixed


def test_generate_changes_with_date() -> None:
    assert identity.generate("Jazz Night", "2026-06-01", "") != identity.generate("Jazz Night", "2026-06-02", "")


@pytest.mark.parametrize("title,start_date", [("", "2026-06-01"), ("Jazz Night", ""), ("   ", "2026-06-01"), (None, None)])
def test_generate_without_title_or_date_is_empty(title, start_date) -> None:
    assert identity.generate(title, start_date, "Blue Note") == ""


@pytest.mark.parametrize(
    "title,expected",
    [
        ("Andy Frasco & the U.N. — Growing Pains Tour", "andy frasco un"),
        ("Jazz Night: Holiday Special", "jazz night"),
        ("Burgundy: Soul Nite", "burgundy"),
        ("Artist X : Live in Concert", "artist x"),
        ("Run-DMC", "rundmc"),
        ("The Wailers (Live)", "wailers"),
        ("Artist X w/ Special Guest", "artist x"),
        ("DJ Shadow | Late Show", "dj shadow"),
    ],
)
def test_extract_core_title(title: str, expected: str) -> None:
    assert identity.extract_core_title(title) == expected


def test_extract_core_title_keeps_short_cores_intact() -> None:
    # "u2" is shorter than the minimum core length, so the full title is kept
    assert identity.extract_core_title("U2 - Joshua Tree") == "u2 - joshua tree"


def test_titles_match_support_act_suffix() -> None:
    assert identity.titles_match("Artist X", "Artist X w/ Special Guest")
    assert identity.titles_match("Artist X w/ Special Guest", "artist x")


def test_titles_match_colon_subtitle() -> None:
    assert identity.titles_match("Artist X: Live in Concert", "Artist X")
    assert identity.titles_match("Jazz Night: Holiday Special", "Jazz Night")


def test_titles_match_requires_equal_cores() -> None:
    # "prince" vs "prince royce": a shared leading word is not a match
    assert not identity.titles_match("Prince - Tribute Night", "Prince Royce")
    assert not identity.titles_match("Artist X w/ Special Guest", "Artist X Special Guest")


def test_titles_do_not_match_different_artists() -> None:
    assert not identity.titles_match("Artist X", "Artist Y")
    assert not identity.titles_match("Artist X", "")
    assert not identity.titles_match(None, "Artist X")


def test_venues_match_ignores_qualifiers() -> None:
    assert identity.venues_match("The Fillmore (Main Room)", "The Fillmore")
    assert identity.venues_match("Blue Note - Upstairs", "blue note")
    assert identity.venues_match("Ben &amp;amp; Jerry's Hall", "Ben & Jerrys Hall")
    assert not identity.venues_match("The Fillmore", "The Roxy")
    assert not identity.venues_match("", "The Roxy")


def test_normalize_text() -> None:
    assert identity.normalize_text("  The   Blue NOTE ") == "blue note"
    assert identity.normalize_text(None) == ""
