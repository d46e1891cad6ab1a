from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VisionEvent(BaseModel):
    """One event as read off a flyer by the vision model."""

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    start_date: str = ""
    start_time: str = ""
    end_date: str = ""
    end_time: str = ""
    venue: str = ""
    venue_address: str = ""
    venue_city: str = ""
    venue_state: str = ""
    price: str = ""
    performer: str = ""
    ticket_url: str = ""
    age_restriction: str = ""
    description: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        if value is None:
            return ""
        if isinstance(value, (list, tuple)):
            return ", ".join(str(v).strip() for v in value if v is not None and str(v).strip())
        return str(value).strip()


class VisionExtractionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    events: List[VisionEvent] = Field(default_factory=list)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    notes: Optional[str] = None

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: object) -> Optional[float]:
        if value is None or value == "":
            return None
        try:
            number = float(value)  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return None
        return min(max(number, 0.0), 1.0)

    @field_validator("events", mode="before")
    @classmethod
    def _drop_non_objects(cls, value: object) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, dict)]
