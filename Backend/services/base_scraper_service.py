from __future__ import annotations

import time
from typing import Any, Dict, Optional

import httpx

from app.config import settings
from app.core.logging import get_logger

logger = get_logger()


class BaseScraperService:
    """
    Shared blocking HTTP client for secondary fetches.

    Extractors use it for API calls and pagination, the vision processor for
    image downloads. Calls are serial; every request carries the configured
    timeout and a bounded retry budget with exponential backoff.
    """

    def __init__(
        self,
        *,
        user_agent: Optional[str] = None,
        timeout_s: Optional[float] = None,
        max_retries: Optional[int] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        """
        Initialize base scraper service.

        Args:
            user_agent: User-Agent string for HTTP requests
            timeout_s: Request timeout in seconds
            max_retries: Maximum retry attempts for failed requests
            client: Pre-built client; the caller keeps ownership
        """
        self.user_agent = user_agent or settings.EVENT_HTTP_USER_AGENT
        self.timeout_s = timeout_s if timeout_s is not None else settings.EVENT_HTTP_TIMEOUT_S
        self.max_retries = max(0, max_retries if max_retries is not None else settings.EVENT_HTTP_MAX_RETRIES)
        self._client: Optional[httpx.Client] = client
        self._owns_client = client is None

    def __enter__(self) -> "BaseScraperService":
        """Initialize HTTP client on context entry."""
        if self._client is None:
            self._client = httpx.Client(
                timeout=self.timeout_s,
                headers={"User-Agent": self.user_agent},
                follow_redirects=True,
            )
            self._owns_client = True
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        """Close HTTP client on context exit."""
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None

    def fetch(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """
        Fetch URL with retry logic.

        Raises:
            httpx.HTTPError: If all retry attempts fail, or at once for a malformed URL
        """
        if self._client is None:
            raise RuntimeError(f"{self.__class__.__name__} HTTP client not initialized")

        attempt = 0
        delay = 1.0
        last_exc: Optional[httpx.HTTPError] = None

        while attempt <= self.max_retries:
            try:
                response = self._client.get(url, params=params)
                response.raise_for_status()
                return response
            except httpx.InvalidURL as exc:
                # malformed URLs are never retried
                logger.warning("http_invalid_url", url=url, error=str(exc))
                raise httpx.RequestError(f"invalid URL {url!r}: {exc}") from exc
            except httpx.HTTPError as exc:
                last_exc = exc
                attempt += 1
                if attempt > self.max_retries:
                    break
                time.sleep(delay)
                delay = min(delay * 2, 10)

        assert last_exc is not None
        logger.warning(
            "http_fetch_failed",
            url=url,
            attempts=attempt,
            error=str(last_exc),
        )
        raise last_exc

    def fetch_text(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> str:
        """Fetch URL and return response text."""
        return self.fetch(url, params=params).text

    def fetch_json(self, url: str, *, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Fetch URL and decode the body as JSON.

        Raises:
            httpx.HTTPError: If the request fails
            ValueError: If the body is not valid JSON
        """
        return self.fetch(url, params=params).json()

    def fetch_bytes(self, url: str) -> bytes:
        return self.fetch(url).content
