from __future__ import annotations

import threading
from datetime import datetime, timezone
from typing import Dict, Protocol, Tuple, runtime_checkable

from app.core.logging import get_logger

logger = get_logger()


@runtime_checkable
class ProcessedLedger(Protocol):
    """
    Externally owned record of identifiers that were already handled.

    Implementations must make check-then-mark atomic per scope and keep
    ``mark_processed`` idempotent.
    """

    def is_processed(self, identifier: str, scope: str) -> bool: ...

    def mark_processed(self, identifier: str, scope: str) -> None: ...


class InMemoryLedger:
    """Process-local ledger for one-off runs and tests."""

    def __init__(self) -> None:
        self._entries: Dict[Tuple[str, str], datetime] = {}
        self._lock = threading.Lock()

    def is_processed(self, identifier: str, scope: str) -> bool:
        with self._lock:
            return (scope, identifier) in self._entries

    def mark_processed(self, identifier: str, scope: str) -> None:
        with self._lock:
            self._entries.setdefault((scope, identifier), datetime.now(timezone.utc))
        logger.debug("ledger_marked", identifier=identifier, scope=scope)

    def __len__(self) -> int:
        return len(self._entries)
