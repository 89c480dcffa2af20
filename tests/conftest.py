"""Shared fixtures for paperhub tests."""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from paperhub.schemas.repository import RepositoryInfo
from paperhub.services.cache_scope import CacheScope


class FakeRedis:
    """In-memory stand-in for the async Redis client used by CacheScope.

    Supports GET and SET with EX/NX/XX, records TTLs and counts calls.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple] = []
        self.fail = False

    def _check(self):
        if self.fail:
            raise RedisConnectionError("Connection refused")

    async def get(self, key):
        self.calls.append(("get", key))
        self._check()
        return self.data.get(key)

    async def set(self, key, value, ex=None, nx=False, xx=False):
        self.calls.append(("set", key, ex, nx, xx))
        self._check()
        if xx and key not in self.data:
            return None
        if nx and key in self.data:
            return None
        self.data[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def aclose(self):
        pass


@pytest.fixture
def redis_factory():
    """The FakeRedis class, for tests that need fresh or customized instances."""
    return FakeRedis


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def scope(fake_redis):
    return CacheScope(fake_redis, "octocat/papers", ttl_seconds=7776000, key_prefix="test:")


@pytest.fixture
def repository():
    return RepositoryInfo(
        name="papers",
        full_name="octocat/papers",
        owner="octocat",
        default_branch="main",
    )


@pytest.fixture
def mock_github():
    """GitHubService double with every remote call as an AsyncMock."""
    github = AsyncMock()
    github.get_branch = AsyncMock()
    github.get_tree = AsyncMock()
    github.list_file_commits = AsyncMock()
    github.compare_commits = AsyncMock()
    github.get_file_content = AsyncMock()
    github.download_raw = AsyncMock()
    github.get_repository = AsyncMock()
    github.list_user_repositories = AsyncMock()
    return github
