"""Shared pytest fixtures for S-Image tests."""

from __future__ import annotations

import json
import shutil
import tempfile
from collections.abc import Generator
from pathlib import Path
from typing import Any

import httpx
import pytest
from fastapi.testclient import TestClient

from simage.api.main import create_app
from simage.core.config import SimageConfig
from simage.core.upstream import UpstreamClient

UPSTREAM_BASE_URL = "https://upstream.test/api/v1"

# Leading characters of real files, padded to valid base64.
PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
JPEG_B64 = "/9j/4AAQSkZJRgABAQAAAQABAAD/"


class FakeUpstream:
    """Stand-in for the provider, served through :class:`httpx.MockTransport`.

    Every request is recorded.  The next response is whatever was configured
    last with :meth:`respond` or :meth:`fail_with`.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Any = {"images": ["https://cdn.test/image.png"]}
        self.error: type[httpx.TransportError] | None = None

    def respond(self, body: Any, status_code: int = 200) -> None:
        self.body = body
        self.status_code = status_code
        self.error = None

    def fail_with(self, error: type[httpx.TransportError]) -> None:
        self.error = error

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error("simulated network failure", request=request)
        if isinstance(self.body, (str, bytes)):
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    @property
    def last_request(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> Any:
        return json.loads(self.last_request.content)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> SimageConfig:
    """Create a test configuration pointing at the fake provider.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        SimageConfig instance for testing
    """
    return SimageConfig(
        _env_file=None,
        upstream_base_url=UPSTREAM_BASE_URL,
        app_url="http://localhost:3000",
        app_title="S-Image",
        preferences_file=temp_dir / "preferences.json",
    )


@pytest.fixture
def fake_upstream() -> FakeUpstream:
    """Provider stub returning a single image URL by default."""
    return FakeUpstream()


@pytest.fixture
def upstream_client(test_config: SimageConfig, fake_upstream: FakeUpstream) -> UpstreamClient:
    """Upstream client wired to the fake provider."""
    return UpstreamClient(test_config, transport=fake_upstream.transport)


@pytest.fixture
def test_client(
    test_config: SimageConfig, fake_upstream: FakeUpstream
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient with the lifespan running against the fake provider."""
    app = create_app(test_config, transport=fake_upstream.transport)
    with TestClient(app) as client:
        yield client
