"""Tests for CacheScope.

Covers record initialization, create-vs-replace writes, TTL refresh, error
wrapping, and a property-based store/retrieve round trip.
"""

import asyncio
import json

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from paperhub.core.errors import CacheError
from paperhub.services.cache_scope import CacheScope


# =============================================================================
# Custom Strategies
# =============================================================================


def json_values() -> st.SearchStrategy:
    """Generate JSON-compatible values."""
    scalars = st.one_of(
        st.none(),
        st.booleans(),
        st.integers(min_value=-(2**53), max_value=2**53),
        st.text(max_size=20),
    )
    return st.recursive(
        scalars,
        lambda children: st.one_of(
            st.lists(children, max_size=4),
            st.dictionaries(st.text(max_size=8), children, max_size=4),
        ),
        max_leaves=12,
    )


# =============================================================================
# retrieve
# =============================================================================


class TestRetrieve:
    """Tests for CacheScope.retrieve()."""

    @pytest.mark.asyncio
    async def test_retrieve_on_new_scope_returns_none(self, scope, fake_redis):
        """A brand-new scope reports the key as not found."""
        assert await scope.retrieve("k") is None

    @pytest.mark.asyncio
    async def test_retrieve_on_new_scope_creates_empty_record(self, scope, fake_redis):
        """The first retrieve creates an empty record with the scope TTL."""
        await scope.retrieve("branches")

        assert json.loads(fake_redis.data["test:octocat/papers"]) == {}
        assert fake_redis.ttls["test:octocat/papers"] == 7776000

    @pytest.mark.asyncio
    async def test_retrieve_missing_bucket_in_existing_scope(self, scope, fake_redis):
        """A missing bucket and a new scope are both reported as None."""
        fake_redis.data["test:octocat/papers"] = json.dumps({"trees": {}})

        assert await scope.retrieve("branches") is None
        # No write happens when the record already exists
        assert [call for call in fake_redis.calls if call[0] == "set"] == []

    @pytest.mark.asyncio
    async def test_retrieve_wraps_redis_errors(self, scope, fake_redis):
        """Redis failures surface as CacheError."""
        fake_redis.fail = True

        with pytest.raises(CacheError):
            await scope.retrieve("k")

    @pytest.mark.asyncio
    async def test_retrieve_rejects_corrupt_record(self, scope, fake_redis):
        """A record that is not a JSON object is a CacheError."""
        fake_redis.data["test:octocat/papers"] = "not json"

        with pytest.raises(CacheError):
            await scope.retrieve("k")


# =============================================================================
# store
# =============================================================================


class TestStore:
    """Tests for CacheScope.store()."""

    @pytest.mark.asyncio
    async def test_store_then_retrieve(self, scope):
        """After store("k", "v"), retrieve("k") returns "v"."""
        await scope.retrieve("k")
        await scope.store("k", "v")

        assert await scope.retrieve("k") == "v"

    @pytest.mark.asyncio
    async def test_store_without_record_uses_creating_write(self, scope, fake_redis):
        """Storing into a missing record issues a plain SET."""
        result = await scope.store("k", {"a": 1})

        assert result == {"a": 1}
        set_calls = [call for call in fake_redis.calls if call[0] == "set"]
        assert set_calls == [("set", "test:octocat/papers", 7776000, False, False)]

    @pytest.mark.asyncio
    async def test_store_with_record_uses_replacing_write(self, scope, fake_redis):
        """Storing into an existing record issues SET ... XX."""
        await scope.retrieve("k")
        fake_redis.calls.clear()

        await scope.store("k", "v")

        set_calls = [call for call in fake_redis.calls if call[0] == "set"]
        assert set_calls == [("set", "test:octocat/papers", 7776000, False, True)]

    @pytest.mark.asyncio
    async def test_store_keeps_other_buckets(self, scope):
        """Buckets are added incrementally, never removed."""
        await scope.store("branches", {"main": {"name": "main", "commit_sha": "abc"}})
        await scope.store("trees", {"t1": []})

        assert await scope.retrieve("branches") == {"main": {"name": "main", "commit_sha": "abc"}}
        assert await scope.retrieve("trees") == {"t1": []}

    @pytest.mark.asyncio
    async def test_store_refreshes_ttl(self, scope, fake_redis):
        """Every store rewrites the record with the full TTL."""
        await scope.store("k", 1)
        fake_redis.ttls["test:octocat/papers"] = 10

        await scope.store("k", 2)

        assert fake_redis.ttls["test:octocat/papers"] == 7776000

    @pytest.mark.asyncio
    async def test_store_raises_when_record_vanishes_before_replace(self, redis_factory):
        """A refused replace (record expired mid-store) is a CacheError."""

        class ExpiringRedis(redis_factory):
            async def get(self, key):
                value = await super().get(key)
                self.data.pop(key, None)
                return value

        redis_client = ExpiringRedis()
        redis_client.data["test:s"] = json.dumps({})
        scope = CacheScope(redis_client, "s", key_prefix="test:")

        with pytest.raises(CacheError):
            await scope.store("k", "v")

    @pytest.mark.asyncio
    async def test_store_rejects_unserializable_values(self, scope):
        """Values that cannot be JSON-encoded are rejected."""
        with pytest.raises(CacheError):
            await scope.store("k", object())

    @pytest.mark.asyncio
    async def test_store_wraps_redis_errors(self, scope, fake_redis):
        """Redis failures surface as CacheError without retry."""
        fake_redis.fail = True

        with pytest.raises(CacheError):
            await scope.store("k", "v")
        assert len(fake_redis.calls) == 1

    @pytest.mark.asyncio
    async def test_concurrent_stores_can_lose_an_update(self, redis_factory):
        """Read-modify-write has no compare-and-swap: interleaved stores drop a bucket."""

        class InterleavingRedis(redis_factory):
            def __init__(self):
                super().__init__()
                self.both_read = asyncio.Event()
                self.reads = 0

            async def get(self, key):
                value = await super().get(key)
                self.reads += 1
                if self.reads == 2:
                    self.both_read.set()
                await self.both_read.wait()
                return value

        redis_client = InterleavingRedis()
        scope = CacheScope(redis_client, "s", key_prefix="test:")

        await asyncio.gather(scope.store("a", 1), scope.store("b", 2))

        record = json.loads(redis_client.data["test:s"])
        assert len(record) == 1


def test_scope_id_cannot_be_empty(fake_redis):
    with pytest.raises(ValueError):
        CacheScope(fake_redis, "")


# =============================================================================
# Property: store/retrieve round trip
# =============================================================================


class TestRoundTripProperty:
    """Property-based round trip of store and retrieve."""

    @given(
        scope_id=st.text(min_size=1, max_size=30),
        key=st.text(min_size=1, max_size=15),
        value=json_values(),
    )
    @settings(max_examples=100, deadline=None, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_store_then_retrieve_is_deep_equal(self, redis_factory, scope_id, key, value):
        """For any scope id and key, retrieve after store returns an equal value."""

        async def run():
            scope = CacheScope(redis_factory(), scope_id, key_prefix="test:")
            await scope.store(key, value)
            return await scope.retrieve(key)

        assert asyncio.run(run()) == value
