from __future__ import annotations

import pytest

import httpx

from services import base_scraper_service
from services.base_scraper_service import BaseScraperService


@pytest.fixture(autouse=True)
def _no_backoff(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(base_scraper_service.time, "sleep", lambda _seconds: None)


def test_base_scraper_context_manager():
    """Test that BaseScraperService works as context manager."""
    with BaseScraperService(user_agent="test-agent/1.0") as service:
        assert service._client is not None
        assert isinstance(service._client, httpx.Client)

    # Client should be closed after context exit
    assert service._client is None


def test_base_scraper_fetch_requires_context():
    """Test that fetch() raises error if client not initialized."""
    service = BaseScraperService(user_agent="test-agent/1.0")
    with pytest.raises(RuntimeError, match="not initialized"):
        service.fetch("https://example.com")


def test_base_scraper_fetch_text(httpx_mock):
    """Test fetch_text convenience method."""
    httpx_mock.add_response(
        url="https://example.com",
        text="<html>Test</html>",
    )

    with BaseScraperService(user_agent="test-agent/1.0") as service:
        html = service.fetch_text("https://example.com")
        assert html == "<html>Test</html>"

    request = httpx_mock.get_requests()[0]
    assert request.headers["User-Agent"] == "test-agent/1.0"


def test_base_scraper_fetch_json_with_params(httpx_mock):
    httpx_mock.add_response(
        url="https://api.example.com/events?limit=100",
        json={"events": []},
    )

    with BaseScraperService(user_agent="test-agent/1.0") as service:
        assert service.fetch_json("https://api.example.com/events", params={"limit": 100}) == {"events": []}


def test_base_scraper_retry_logic(httpx_mock):
    """Test that retry logic works on failures."""
    # First two requests fail, third succeeds
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(text="Success")

    with BaseScraperService(
        user_agent="test-agent/1.0",
        max_retries=2,
    ) as service:
        response = service.fetch("https://example.com")
        assert response.text == "Success"
        assert len(httpx_mock.get_requests()) == 3


def test_base_scraper_retry_exhausted(httpx_mock):
    """Test that the last HTTP error is raised when retries are exhausted."""
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(status_code=500)
    httpx_mock.add_response(status_code=500)

    with BaseScraperService(
        user_agent="test-agent/1.0",
        max_retries=2,
    ) as service:
        with pytest.raises(httpx.HTTPStatusError):
            service.fetch("https://example.com")


def test_base_scraper_external_client_is_not_closed(httpx_mock):
    httpx_mock.add_response(url="https://example.com", text="ok")
    client = httpx.Client()

    with BaseScraperService(client=client, max_retries=0) as service:
        assert service.fetch_text("https://example.com") == "ok"

    assert not client.is_closed
    client.close()


def test_base_scraper_malformed_url_raises_http_error():
    """A malformed URL surfaces as httpx.HTTPError, without retries."""
    with BaseScraperService(user_agent="test-agent/1.0", max_retries=2) as service:
        with pytest.raises(httpx.HTTPError, match="invalid URL"):
            service.fetch("http://[::1/flyer.jpg")
