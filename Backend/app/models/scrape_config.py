from __future__ import annotations

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, field_validator

VENUE_OVERRIDE_FIELDS = (
    "venue_address",
    "venue_city",
    "venue_state",
    "venue_zip",
    "venue_country",
    "venue_phone",
    "venue_website",
)


def _split_keywords(value: str) -> List[str]:
    return [part.strip().lower() for part in (value or "").split(",") if part.strip()]


class ScrapeConfig(BaseModel):
    """Per-source settings for one scrape invocation."""

    model_config = ConfigDict(extra="ignore")

    flow_step_id: str = "default"
    search: str = ""
    exclude_keywords: str = ""
    venue_name: str = ""
    venue_address: str = ""
    venue_city: str = ""
    venue_state: str = ""
    venue_zip: str = ""
    venue_country: str = ""
    venue_phone: str = ""
    venue_website: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def include_terms(self) -> List[str]:
        return _split_keywords(self.search)

    @property
    def exclude_terms(self) -> List[str]:
        return _split_keywords(self.exclude_keywords)

    def venue_override(self) -> Dict[str, str]:
        """Fields to force onto every event; empty unless a venue name is configured."""
        if not self.venue_name.strip():
            return {}
        override = {"venue": self.venue_name.strip()}
        for name in VENUE_OVERRIDE_FIELDS:
            value = getattr(self, name).strip()
            if value:
                override[name] = value
        return override
