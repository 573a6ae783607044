"""
Pytest configuration and shared fixtures.
"""
import json
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

import httpx
import pytest
import redis

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared.config import settings
from shared.models import NotificationRecord, UserProfile
from services.credential_store.store import CredentialStore
from services.request_executor.api_client import ApiClient
from services.request_executor.executor import RequestExecutor

TEST_BASE_URL = "http://test/api"


class MockRedis:
    """In-memory stand-in for the redis.asyncio client."""

    def __init__(self):
        self._data: Dict[str, str] = {}
        self.fail_deletes = False

    async def get(self, key: str):
        return self._data.get(key)

    async def set(self, key: str, value: str, ex: int = None):
        self._data[key] = value
        return True

    async def delete(self, key: str):
        if self.fail_deletes:
            raise redis.ConnectionError("redis is down")
        return self._data.pop(key, None) is not None

    async def exists(self, key: str):
        return key in self._data


class FakeServer:
    """
    Routes httpx.MockTransport requests to canned responses.

    A route value may be an httpx.Response, a list of them (consumed in order,
    the last one repeats) or a callable taking the request.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Any] = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, response: Any) -> None:
        self.routes[(method.upper(), path)] = response

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> List[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method.upper())
            and (path is None or self.path_of(r) == path)
        ]

    @staticmethod
    def path_of(request: httpx.Request) -> str:
        path = request.url.path
        return path[len("/api"):] if path.startswith("/api/") else path

    @staticmethod
    def body_of(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get((request.method, self.path_of(request)))
        if route is None:
            return httpx.Response(404, json={"error": "Route not found"})
        if isinstance(route, list):
            return route.pop(0) if len(route) > 1 else route[0]
        if callable(route):
            result = route(request)
            if hasattr(result, "__await__"):
                result = await result
            return result
        return route


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client for tests."""
    return MockRedis()


@pytest.fixture(scope="function")
def store(mock_redis):
    return CredentialStore(mock_redis, key_prefix="test:")


@pytest.fixture
def vendor_profile() -> UserProfile:
    return UserProfile.model_validate({
        "_id": "vendor-1",
        "name": "Arena Owner",
        "email": "owner@arena.test",
        "role": "vendor",
    })


@pytest.fixture
def customer_profile() -> UserProfile:
    return UserProfile.model_validate({
        "_id": "user-1",
        "name": "Player One",
        "email": "player@gamezone.test",
        "role": "user",
    })


@pytest.fixture
async def vendor_store(store, vendor_profile):
    await store.save("vendor-token", vendor_profile)
    return store


@pytest.fixture
async def customer_store(store, customer_profile):
    await store.save("customer-token", customer_profile)
    return store


@pytest.fixture
def fake_server() -> FakeServer:
    return FakeServer()


@pytest.fixture
def sleeps() -> List[float]:
    """Backoff delays requested by executors built with make_executor."""
    return []


@pytest.fixture
def make_executor(fake_server, sleeps) -> Callable[..., RequestExecutor]:
    """Build a RequestExecutor wired to the fake server, with instant backoff."""
    async def no_sleep(delay: float) -> None:
        sleeps.append(delay)

    def _make(store, **overrides) -> RequestExecutor:
        options = {
            "base_url": TEST_BASE_URL,
            "timeout": 5.0,
            "max_retries": 3,
            "backoff_seconds": 1.0,
            "transport": httpx.MockTransport(fake_server.handler),
            "sleep": no_sleep,
        }
        options.update(overrides)
        return RequestExecutor(store, **options)

    return _make


@pytest.fixture
async def vendor_api(vendor_store, make_executor):
    api = ApiClient(make_executor(vendor_store))
    yield api
    await api.close()


@pytest.fixture
async def customer_api(customer_store, make_executor):
    api = ApiClient(make_executor(customer_store))
    yield api
    await api.close()


@pytest.fixture
def record_factory() -> Callable[..., Dict[str, Any]]:
    """Build wire-format notification dicts; newer ids get later timestamps by default."""
    base = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(
        notification_id: str,
        type: str = "system_announcement",
        data: Optional[Dict[str, Any]] = None,
        is_read: bool = False,
        created_at: Optional[datetime] = None,
        **extra: Any,
    ) -> Dict[str, Any]:
        counter["n"] += 1
        return {
            "_id": notification_id,
            "type": type,
            "title": extra.pop("title", type.replace("_", " ").title()),
            "message": extra.pop("message", f"Message for {notification_id}"),
            "data": data or {},
            "isRead": is_read,
            "createdAt": (created_at or base + timedelta(minutes=counter["n"])).isoformat(),
            **extra,
        }

    return _make


@pytest.fixture
def record(record_factory) -> Callable[..., NotificationRecord]:
    """Same as record_factory but returns parsed NotificationRecords."""
    def _make(*args, **kwargs) -> NotificationRecord:
        return NotificationRecord.model_validate(record_factory(*args, **kwargs))
    return _make


@pytest.fixture(autouse=True)
def reset_settings(monkeypatch):
    """Keep external services out of tests."""
    monkeypatch.setenv("SENTRY_DSN", "")  # Disable Sentry in tests
    monkeypatch.setenv("PUSH_STREAM_URL", "")
    monkeypatch.setattr(settings, "SENTRY_DSN", "")
    monkeypatch.setattr(settings, "PUSH_STREAM_URL", "")
