"""
Pytest configuration and fixtures for API Gateway tests.
"""

import asyncio
import json
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from api_gateway.dependencies import get_current_user
from api_gateway.main import app
from api_gateway.services.pipeline_service import PipelineService, PipelineSessionStore, get_pipeline_service
from api_gateway.services.upload_staging import TempUploadStore
from modules.render import ExportService

USER_ID = "550e8400-e29b-41d4-a716-446655440000"
PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


class FakeRedis:
    """Dict-backed stand-in for RedisClient's JSON helpers and locks."""

    def __init__(self):
        self.values: Dict[str, str] = {}
        self.ttls: Dict[str, Optional[int]] = {}
        self.locks: Dict[str, asyncio.Lock] = {}
        self.lock_calls: list = []

    @asynccontextmanager
    async def lock(self, key: str, timeout=None, blocking_timeout=None):
        self.lock_calls.append((key, timeout, blocking_timeout))
        lock = self.locks.setdefault(key, asyncio.Lock())
        async with lock:
            yield

    async def get_json(self, key: str) -> Optional[Any]:
        # Yield like a network round trip so concurrent tasks interleave
        await asyncio.sleep(0)
        raw = self.values.get(key)
        return json.loads(raw) if raw is not None else None

    async def set_json(self, key: str, data: Any, ttl: Optional[int] = None) -> bool:
        await asyncio.sleep(0)
        self.values[key] = json.dumps(data, default=str)
        self.ttls[key] = ttl
        return True

    async def delete(self, key: str) -> bool:
        self.ttls.pop(key, None)
        return self.values.pop(key, None) is not None


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_storage():
    """Configured storage that records uploads instead of sending them."""
    storage = MagicMock()
    storage.is_configured = True
    storage.put = AsyncMock(side_effect=lambda path, data, content_type=None: f"https://cdn.test/{path}")
    storage.delete = AsyncMock(return_value=None)
    storage.path_from_url = MagicMock(
        side_effect=lambda url: url[len("https://cdn.test/"):]
        if isinstance(url, str) and url.startswith("https://cdn.test/") else None
    )
    return storage


@pytest.fixture
def mock_shotstack():
    client = MagicMock()
    client.submit = AsyncMock(return_value="render-1")
    client.get_status = AsyncMock(return_value={"id": "render-1", "status": "saving", "url": None, "error": None})
    return client


@pytest.fixture
def uploads():
    return TempUploadStore(ttl_seconds=60, sweep_interval_seconds=60, max_size_mb=1)


@pytest.fixture
def pipeline_service(fake_db, repository, store, fake_agents, fake_redis, mock_storage, mock_shotstack, uploads):
    fake_db.add_member("ws-1", USER_ID)
    service = PipelineService(
        repository=repository,
        store=store,
        agents=fake_agents,
        sessions=PipelineSessionStore(fake_redis, ttl=600),
        storage_client=mock_storage,
        exports=ExportService(store, mock_shotstack),
        uploads=uploads
    )
    service.controller.disabled_flags = set()
    return service


@pytest.fixture
def client(pipeline_service):
    """Test client with auth and the pipeline service overridden."""
    app.dependency_overrides[get_current_user] = lambda: {"user_id": USER_ID}
    app.dependency_overrides[get_pipeline_service] = lambda: pipeline_service
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def anonymous_client():
    return TestClient(app)
