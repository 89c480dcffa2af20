"""Per-client cache scope stored in Redis.

A scope is one Redis record (a JSON object) keyed by an opaque client id. It
holds named buckets such as "branches", "trees" or "revisions". Buckets are
added incrementally and never removed; the whole record expires after the
configured TTL unless a later store refreshes it.

Writes are read-modify-write with no compare-and-swap, so two concurrent
stores on the same scope can drop one writer's update.
"""

import json
import logging
from typing import Any

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from paperhub.core.config import settings
from paperhub.core.errors import CacheError

logger = logging.getLogger(__name__)


class CacheScope:
    """Cache namespace of a single client."""

    def __init__(
        self,
        redis_client: aioredis.Redis,
        scope_id: str,
        ttl_seconds: int | None = None,
        key_prefix: str | None = None,
    ):
        """Initialize the scope.

        Args:
            redis_client: Async Redis client (decode_responses=True).
            scope_id: Opaque client identifier. Cannot be empty.
            ttl_seconds: Record lifetime (default from settings, 90 days).
            key_prefix: Redis key prefix (default from settings).
        """
        if not scope_id:
            raise ValueError("scope_id cannot be empty")
        self._redis = redis_client
        self.scope_id = scope_id
        self.ttl_seconds = ttl_seconds or settings.cache_ttl_seconds
        self._key = f"{key_prefix if key_prefix is not None else settings.cache_key_prefix}{scope_id}"

    @property
    def redis_key(self) -> str:
        return self._key

    async def _read_record(self) -> dict[str, Any] | None:
        try:
            raw = await self._redis.get(self._key)
        except RedisError as e:
            logger.error(f"Failed to read cache scope {self.scope_id}: {e}")
            raise CacheError(f"Failed to read cache scope: {e}") from e

        if raw is None:
            return None
        try:
            record = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error(f"Corrupt cache record for scope {self.scope_id}: {e}")
            raise CacheError(f"Corrupt cache record: {e}") from e
        if not isinstance(record, dict):
            raise CacheError(f"Corrupt cache record: expected an object, got {type(record).__name__}")
        return record

    async def _write_record(self, record: dict[str, Any], replace: bool) -> None:
        try:
            payload = json.dumps(record)
        except (TypeError, ValueError) as e:
            raise CacheError(f"Cache value is not JSON serializable: {e}") from e

        try:
            written = await self._redis.set(
                self._key,
                payload,
                ex=self.ttl_seconds,
                xx=replace,
            )
        except RedisError as e:
            logger.error(f"Failed to write cache scope {self.scope_id}: {e}")
            raise CacheError(f"Failed to write cache scope: {e}") from e

        if not written:
            # A replace is refused when the record expired after it was read.
            logger.warning(f"Cache scope {self.scope_id} vanished before replace")
            raise CacheError(f"Cache scope {self.scope_id} expired during store")

    async def retrieve(self, key: str) -> Any | None:
        """Retrieve a bucket from the scope.

        Creates an empty record when the scope does not exist yet. A missing
        bucket and a freshly created scope both return None.

        Args:
            key: Bucket name.

        Returns:
            The stored value, or None if not found.

        Raises:
            CacheError: If the cache service fails.
        """
        record = await self._read_record()
        if record is None:
            logger.debug(f"Initializing cache scope {self.scope_id}")
            await self._write_record({}, replace=False)
            return None

        value = record.get(key)
        logger.debug(f"Cache {'hit' if value is not None else 'miss'}: {self.scope_id}/{key}")
        return value

    async def store(self, key: str, value: Any) -> Any:
        """Store a bucket in the scope.

        The record is re-read, the bucket is set, and the record is written
        back: a creating write when no record existed, a replacing write
        otherwise. Both refresh the TTL.

        Args:
            key: Bucket name.
            value: Any JSON-serializable value.

        Returns:
            The stored value.

        Raises:
            CacheError: If the cache service fails or the value cannot be encoded.
        """
        current = await self._read_record()
        record = dict(current) if current is not None else {}
        record[key] = value
        await self._write_record(record, replace=current is not None)
        logger.debug(f"Stored {self.scope_id}/{key}")
        return value
