# app/config.py
from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Absoluut pad naar Backend/.env (dit bestand staat in Backend/app/config.py)
ENV_FILE = Path(__file__).resolve().parents[1] / ".env"
load_dotenv(ENV_FILE, override=False)  # pre-load in procesomgeving

class Settings(BaseSettings):
    APP_VERSION: str = "0.3.0"

    # ---- OpenAI (vision fallback) ----
    # Niet hard-required; de vision service valideert runtime.
    OPENAI_API_KEY: Optional[str] = Field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    OPENAI_VISION_MODEL: str = "gpt-4o-mini"

    # ---- Outbound HTTP ----
    EVENT_HTTP_TIMEOUT_S: int = 30
    EVENT_HTTP_MAX_RETRIES: int = 0
    EVENT_HTTP_USER_AGENT: str = "event-ingest/1.0"

    # ---- Extraction ----
    EVENT_DEFAULT_TIMEZONE: str = "America/Chicago"
    EVENT_CRAWL_MAX_PAGES: int = 12
    EVENT_IMAGE_MIN_SCORE: int = 20
    EVENT_IMAGE_MAX_CANDIDATES: int = 5

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",                  # negeer overige .env-keys
    )

settings = Settings()

def require_openai() -> None:
    """
    Runtime-check die een duidelijke foutmelding geeft als de key ontbreekt.
    """
    if not settings.OPENAI_API_KEY:
        raise RuntimeError(
            "OPENAI_API_KEY ontbreekt. Controleer Backend/.env "
            f"(geprobeerd te laden vanaf: {ENV_FILE})."
        )
