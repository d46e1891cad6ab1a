# Backend/app/core/logging.py
from __future__ import annotations

import logging
import sys
from typing import Any, Dict, Optional
from datetime import datetime, timezone

import structlog

from app.core.run_context import current_context

# Ruwe pagina-inhoud hoort niet integraal in een logregel.
MAX_VALUE_CHARS = 500


# -------- Processors ---------------------------------------------------------

def _add_ts(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("ts", datetime.now(timezone.utc).isoformat(timespec="milliseconds"))
    return event_dict

def _add_level(_: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict["level"] = str(event_dict.get("level") or method_name or "info").lower()
    return event_dict

def _add_service(service_name: str):
    def _inner(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return _inner

def _add_run_context(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in current_context().items():
        event_dict.setdefault(key, value)
    return event_dict

_SECRET_KEYS = {
    "authorization", "api_key", "apikey", "openai_api_key",
    "token", "access_token", "password", "secret",
}

def _secret_guard(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k in list(event_dict.keys()):
        if str(k).lower() in _SECRET_KEYS:
            event_dict[k] = "***redacted***"
    return event_dict

def _truncate_long_values(_: Any, __: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for k, v in event_dict.items():
        if isinstance(v, str) and len(v) > MAX_VALUE_CHARS:
            event_dict[k] = f"{v[:MAX_VALUE_CHARS]}...[{len(v)} chars]"
    return event_dict


# -------- Public API ---------------------------------------------------------

_logger: Optional[structlog.BoundLogger] = None

def configure_logging(
    service_name: str = "event-ingest",
    *,
    level: int = logging.INFO,
    json_output: bool = True,
) -> None:
    """
    Configureer één globale structlog stack voor scrape-runs.

    ``json_output=False`` geeft leesbare console-output voor lokaal debuggen.
    """
    global _logger

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr, force=True)

    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            _add_ts,
            _add_level,
            _add_service(service_name),
            _add_run_context,
            _secret_guard,
            _truncate_long_values,
            structlog.processors.EventRenamer("event"),
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _logger = structlog.get_logger()

def get_logger() -> structlog.BoundLogger:
    if _logger is None:
        configure_logging()
    return _logger
