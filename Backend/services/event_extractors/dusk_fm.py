from __future__ import annotations

import re
from typing import Any, Dict, List
from urllib.parse import quote

from services import event_datetime_service
from services.event_datetime_service import is_valid_timezone
from services.event_extractors.base import EventExtractor, RawEvent
from services.event_normalization_service import format_price_range

DUSK_EMBED_BASE = "https://dusk.fm/embed/venue-calendar/"
_NEXT_DATA_RE = r"<script\s+id=\"__NEXT_DATA__\"[^>]*>(.*?)</script>"
_BEATGIG_EMBED_RE = re.compile(r"data-beatgig-embed=[\"']venue-calendar[\"']")
_VENUE_SLUG_RE = re.compile(r"data-beatgig-venue-slug=[\"']([^\"']+)[\"']")


class DuskFmExtractor(EventExtractor):
    """
    Dusk.fm venue calendars (Next.js). Bookings are schema.org JSON-LD strings
    inside ``__NEXT_DATA__``; BeatGig embeds point at the Dusk calendar by slug.
    """

    method = "dusk_fm"

    def can_extract(self, content: str) -> bool:
        if _BEATGIG_EMBED_RE.search(content):
            return True
        if "__NEXT_DATA__" not in content:
            return False
        return (
            "dusk.fm" in content
            or 'site_name" content="Dusk"' in content
            or "bookingsJsonLdString" in content
        )

    def extract(self, content: str, source_url: str) -> List[RawEvent]:
        if _BEATGIG_EMBED_RE.search(content):
            return self._extract_from_embed(content)
        return self._extract_from_next_data(content)

    def _extract_from_embed(self, content: str) -> List[RawEvent]:
        match = _VENUE_SLUG_RE.search(content)
        if not match:
            return []
        embed_url = DUSK_EMBED_BASE + quote(match.group(1), safe="")
        embed_html = self._get_text(embed_url)
        if not embed_html:
            return []
        return self._extract_from_next_data(embed_html, source_url=embed_url)

    def _extract_from_next_data(self, content: str, source_url: str = "") -> List[RawEvent]:
        raw = self._script_json(content, _NEXT_DATA_RE)
        next_data = self._loads(raw, url=source_url) if raw else None
        if not isinstance(next_data, dict):
            return []
        page_props = self._dig(next_data, "props", "pageProps")
        if not isinstance(page_props, dict):
            return []
        bookings = page_props.get("bookingsJsonLdString")
        if isinstance(bookings, str):
            bookings = self._loads(bookings, url=source_url)
        if not isinstance(bookings, list) or not bookings:
            return []

        venue = self._venue_data(page_props)
        events: List[RawEvent] = []
        for booking in bookings:
            data = self._loads(booking, url=source_url) if isinstance(booking, str) else booking
            if not isinstance(data, dict):
                continue
            event = self._parse_booking(data, venue)
            if event["title"]:
                events.append(event)
        return events

    def _venue_data(self, page_props: Dict[str, Any]) -> Dict[str, str]:
        venue_json = page_props.get("venueJsonLdString")
        venue = self._loads(venue_json) if isinstance(venue_json, str) and venue_json else None
        if not isinstance(venue, dict):
            return {}
        address = venue.get("address") if isinstance(venue.get("address"), dict) else {}
        timezone_name = page_props.get("icannTz") or ""
        if not timezone_name:
            timezone_name = self._dig(venue, "eventSchedule", "scheduleTimezone") or ""
        data = {
            "venue": self._text(venue.get("name")),
            "venue_address": self._text(address.get("streetAddress")),
            "venue_city": self._text(address.get("addressLocality")),
            "venue_state": self._text(address.get("addressRegion")),
            "venue_zip": self._text(address.get("postalCode")),
            "venue_country": self._text(address.get("addressCountry")) or "US",
            "venue_timezone": timezone_name if is_valid_timezone(timezone_name) else "",
        }
        lat = venue.get("latitude") or self._dig(venue, "geo", "latitude")
        lng = venue.get("longitude") or self._dig(venue, "geo", "longitude")
        if lat and lng:
            data["venue_coordinates"] = f"{lat},{lng}"
        return data

    def _parse_booking(self, booking: Dict[str, Any], venue: Dict[str, str]) -> RawEvent:
        event: RawEvent = dict(venue)
        performer = booking.get("performer")
        image_url = ""
        performer_name = ""
        if isinstance(performer, dict):
            image_url = self._dig(performer, "logo", "contentUrl") or ""
            performer_name = self._text(performer.get("name"))

        timezone_name = self._dig(booking, "eventSchedule", "scheduleTimezone") or venue.get("venue_timezone", "")
        # Times carry a "Z" but are wall-clock times in the schedule zone.
        start = event_datetime_service.parse(booking.get("startDate"), timezone_name, ignore_utc_marker=True)
        end = event_datetime_service.parse(booking.get("endDate"), timezone_name, ignore_utc_marker=True)

        event.update(
            title=self._text(booking.get("name")),
            description=booking.get("description") or "",
            start_date=start.date,
            start_time=start.time,
            end_date=end.date,
            end_time=end.time,
            venue_timezone=start.timezone or timezone_name,
            image_url=image_url,
            price=self._price(booking),
            ticket_url=booking.get("url") or "",
            performer=performer_name,
        )
        return event

    @staticmethod
    def _price(booking: Dict[str, Any]) -> str:
        offers = booking.get("offers")
        offer = offers[0] if isinstance(offers, list) and offers else offers
        price = ""
        if isinstance(offer, dict) and offer.get("price") not in (None, ""):
            try:
                price = format_price_range(float(offer["price"]))
            except (TypeError, ValueError):
                price = ""
        if not price and booking.get("isAccessibleForFree"):
            price = "Free"
        return price
