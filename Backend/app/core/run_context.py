# Backend/app/core/run_context.py
from __future__ import annotations

import contextvars
import uuid
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

_run_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("scrape_run_id", default=None)
_source_url_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("scrape_source_url", default=None)
_scope_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("scrape_scope", default=None)


def get_run_id() -> Optional[str]:
    return _run_id_ctx.get()


def current_context() -> Dict[str, str]:
    """Velden van de lopende scrape-run, alleen wat gezet is."""
    fields = {
        "run_id": _run_id_ctx.get(),
        "source_url": _source_url_ctx.get(),
        "scope": _scope_ctx.get(),
    }
    return {key: value for key, value in fields.items() if value}


@contextmanager
def scrape_run(
    source_url: str,
    scope: Optional[str] = None,
    *,
    run_id: Optional[str] = None,
) -> Iterator[str]:
    """
    Eén scrape-invocatie = één run. Een geneste run erft de run id van de
    buitenste, tenzij er expliciet een wordt meegegeven:

        with scrape_run(url, scope="step-1"):
            service.process(...)
    """
    rid = run_id or _run_id_ctx.get() or uuid.uuid4().hex
    tokens = (
        _run_id_ctx.set(rid),
        _source_url_ctx.set(source_url or None),
        _scope_ctx.set(scope or None),
    )
    try:
        yield rid
    finally:
        for var, token in zip((_run_id_ctx, _source_url_ctx, _scope_ctx), tokens):
            var.reset(token)
