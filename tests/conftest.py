from __future__ import annotations

import os

os.environ["AMOCRM_SUBDOMAIN"] = "test"
os.environ["AMOCRM_LOGIN"] = "manager@example.com"
os.environ["AMOCRM_API_KEY"] = "test-key"

from collections.abc import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from amoform.main import app


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
