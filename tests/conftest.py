from __future__ import annotations

import os
import time
from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from taskminder.observability import reset_metrics
from tests.helpers.store import FakeClock, InMemoryOwnerDirectory, InMemoryTaskStore


def _wait_until(timeout_s: float, pause_s: float, check: Callable[[], bool]) -> bool:
    deadline = time.time() + timeout_s
    while time.time() < deadline:
        if check():
            return True
        time.sleep(pause_s)
    return False


def _redis_ping(url: str) -> bool:
    try:
        import redis

        r = redis.Redis.from_url(url)
        return bool(r.ping())
    except Exception:
        return False


def _redis_available() -> bool:
    return _redis_ping(os.getenv("REDIS_URL", "redis://localhost:6379/0"))


@pytest.fixture(scope="session")
def redis_url() -> str:
    """Provide a reachable Redis URL (REDIS_URL, then localhost) or skip."""
    env_url = os.getenv("REDIS_URL")
    if env_url and _wait_until(5.0, 0.2, lambda: _redis_ping(env_url)):
        return env_url
    local_url = "redis://localhost:6379/0"
    if _wait_until(1.0, 0.2, lambda: _redis_ping(local_url)):
        return local_url
    pytest.skip("Redis not available; set REDIS_URL or start a local Redis")


@pytest.fixture()
def unique_prefix() -> str:
    # millisecond prefix to avoid collisions
    return f"test:{int(time.time() * 1000)}"


@pytest.fixture(autouse=True)
def _fresh_metrics() -> None:
    reset_metrics()


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 3, 2, 9, 0, tzinfo=UTC))


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryTaskStore:
    return InMemoryTaskStore(clock=clock)


@pytest.fixture()
def owners() -> InMemoryOwnerDirectory:
    return InMemoryOwnerDirectory()


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip Redis-backed tests up front when no Redis is reachable."""
    if _redis_available() or os.getenv("REDIS_URL"):
        return
    for item in items:
        fixtures = set(getattr(item, "fixturenames", []) or [])
        if "redis_url" in fixtures:
            item.add_marker(
                pytest.mark.skip(reason="Redis not available; set REDIS_URL or start local Redis")
            )
