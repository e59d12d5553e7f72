"""
Shared fixtures: test settings and an app whose outbound HTTP goes to an
``httpx.MockTransport`` instead of the network.
"""

import os

# Keep test runs from writing an error.log next to the checkout
os.environ["ERROR_LOG_FILE"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient

from enhancer.config import Settings
from enhancer.main import create_app, get_http_client


@pytest.fixture
def settings() -> Settings:
    return Settings(
        grok_api_key="grok-test-key",
        gemini_api_key="gemini-test-key",
        github_token=None,
        retry_delay_seconds=0.05,
        error_log_file=None,
    )


class Upstream:
    """Records outbound requests and answers them with a handler function."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.handler = lambda request: httpx.Response(500)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def client(settings, upstream):
    app = create_app(settings)

    async def mock_http_client():
        async with upstream.client() as c:
            yield c

    app.dependency_overrides[get_http_client] = mock_http_client
    return TestClient(app)
