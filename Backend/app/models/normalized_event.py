from __future__ import annotations

import re
from datetime import date
from typing import List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from services.event_datetime_service import is_valid_timezone

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]):[0-5]\d$")

ExtractionMethod = Literal[
    "json_ld",
    "ics_feed",
    "squarespace",
    "timely",
    "bandzoogle",
    "godaddy",
    "dusk_fm",
    "elfsight",
    "gigwell",
    "prekindle",
    "spothopper",
    "craftpeak",
    "square_online",
    "vision",
]


class NormalizedEvent(BaseModel):
    """
    Canonical event record handed to the storage collaborator.

    Dates are ``YYYY-MM-DD`` or empty, times ``HH:MM`` (24h) or empty and the
    venue timezone is an IANA identifier or empty. Values that do not fit are
    blanked rather than rejected.
    """

    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1)
    description: str = ""
    start_date: str = ""
    start_time: str = ""
    end_date: str = ""
    end_time: str = ""
    venue: str = ""
    venue_address: str = ""
    venue_city: str = ""
    venue_state: str = ""
    venue_zip: str = ""
    venue_country: str = ""
    venue_phone: str = ""
    venue_website: str = ""
    venue_coordinates: str = ""
    venue_timezone: str = ""
    ticket_url: str = ""
    price: str = ""
    performer: str = ""
    organizer: str = ""
    image_url: str = ""
    image_urls: List[str] = Field(default_factory=list)
    method: ExtractionMethod
    source_url: str = ""

    @field_validator("title")
    @classmethod
    def _normalize_title(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("title cannot be empty")
        return cleaned

    @field_validator("start_date", "end_date")
    @classmethod
    def _validate_date(cls, value: str) -> str:
        cleaned = (value or "").strip()
        if not _DATE_RE.match(cleaned):
            return ""
        try:
            date.fromisoformat(cleaned)
        except ValueError:
            return ""
        return cleaned

    @field_validator("start_time", "end_time")
    @classmethod
    def _validate_time(cls, value: str) -> str:
        cleaned = (value or "").strip()
        return cleaned if _TIME_RE.match(cleaned) else ""

    @field_validator("venue_timezone")
    @classmethod
    def _validate_timezone(cls, value: str) -> str:
        cleaned = (value or "").strip()
        return cleaned if is_valid_timezone(cleaned) else ""

    @model_validator(mode="after")
    def _primary_image_first(self) -> "NormalizedEvent":
        if self.image_url and self.image_url not in self.image_urls:
            self.image_urls.insert(0, self.image_url)
        elif not self.image_url and self.image_urls:
            self.image_url = self.image_urls[0]
        return self
