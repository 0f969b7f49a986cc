"""Pytest fixtures and shared test configuration.

Fixtures:
    - pdf_bytes / png_bytes: Small valid attachments
    - preview_store: Fresh preview store per test
    - scripted_agent: Agno agent double with a single successful reply
    - async_client: HTTPX client for API testing, with the composition
      service replaced by one driving the scripted agent
"""

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from diagram_chat.agent.chat_agent import get_composition_service
from diagram_chat.api import app
from diagram_chat.client.attachments import PreviewStore
from tests.helpers import PNG_BYTES, ScriptedAgent, make_pdf, make_service


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf(pages=2)


@pytest.fixture
def png_bytes() -> bytes:
    return PNG_BYTES


@pytest.fixture
def preview_store() -> PreviewStore:
    return PreviewStore()


@pytest.fixture
def scripted_agent() -> ScriptedAgent:
    """Agent double that streams "Hel", "lo" once."""
    return ScriptedAgent(["Hel", "lo"])


@pytest.fixture
async def async_client(scripted_agent: ScriptedAgent) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    service = make_service(scripted_agent)
    app.dependency_overrides[get_composition_service] = lambda: service
    transport = ASGITransport(app=app)
    try:
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
