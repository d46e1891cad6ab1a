from __future__ import annotations

import pytest

from services.base_scraper_service import BaseScraperService


@pytest.fixture
def http():
    """Live client without retries; requests are answered by httpx_mock."""
    with BaseScraperService(user_agent="test-agent/1.0", max_retries=0) as service:
        yield service
