"""End-to-end tests with a real upstream provider."""

import os
import pytest
import httpx
from httpx import AsyncClient, ASGITransport
from enhance_gateway.main import app as main_app, create_http_client, wire_state
from enhance_gateway.config import load_config


UPSTREAM_TEST_KEY = os.getenv("UPSTREAM_TEST_KEY", "")


@pytest.mark.e2e
@pytest.mark.asyncio
@pytest.mark.skipif(not UPSTREAM_TEST_KEY, reason="UPSTREAM_TEST_KEY not set")
async def test_e2e_enhance_real_provider(monkeypatch):
    """Smoke test: enhance a real prompt through the provider."""
    monkeypatch.setenv("UPSTREAM_API_KEYS", UPSTREAM_TEST_KEY)

    config = load_config(use_dotenv=False)
    http_client = create_http_client(config)
    wire_state(main_app, config, http_client)

    try:
        async with AsyncClient(
            transport=ASGITransport(app=main_app), base_url="http://test"
        ) as client:
            response = await client.post(
                "/enhance",
                json={"text": "write a haiku about autumn"},
                timeout=httpx.Timeout(60.0),
            )

            assert response.status_code == 200
            data = response.json()
            assert isinstance(data["enhancedText"], str)
            assert data["enhancedText"].strip()
    finally:
        await http_client.aclose()

        for name in (
            "config",
            "clock",
            "http_client",
            "admission",
            "key_manager",
            "dispatcher",
            "reaper",
        ):
            if hasattr(main_app.state, name):
                delattr(main_app.state, name)
