"""Shared state store: the one place orders, products and users live.

All writes that other requests may race on go through ``compare_and_set``,
which only replaces a document when its stored ``version`` still equals the
version the caller read.
"""

import json
from abc import ABC, abstractmethod
from typing import Any

import redis.asyncio as redis

from orderflow.config import get_settings
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)


# KEYS[1] document key; ARGV[1] expected version; ARGV[2] new JSON document.
_COMPARE_AND_SET = """
local current = redis.call('GET', KEYS[1])
local expected = tonumber(ARGV[1])
if current then
    local doc = cjson.decode(current)
    if tonumber(doc['version']) ~= expected then
        return 0
    end
elseif expected ~= 0 then
    return 0
end
redis.call('SET', KEYS[1], ARGV[2])
return 1
"""


def encode_value(value: Any) -> str:
    return json.dumps(value) if not isinstance(value, str) else value


def decode_value(value: Any) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except (json.JSONDecodeError, TypeError):
        return value


class StateManager(ABC):
    """Key-value store interface used by the repositories."""

    @abstractmethod
    async def connect(self) -> None:
        """Open the underlying connection."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the underlying connection."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Get a value, JSON-decoded when possible."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Set a value with optional TTL."""

    @abstractmethod
    async def set_if_absent(self, key: str, value: Any) -> bool:
        """Set a value only if the key does not exist yet."""

    @abstractmethod
    async def compare_and_set(
        self, key: str, expected_version: int, document: dict[str, Any]
    ) -> bool:
        """Write ``document`` if the stored version equals ``expected_version``.

        A missing key counts as version 0, so creation is
        ``compare_and_set(key, 0, doc)``.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete a key."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if a key exists."""

    @abstractmethod
    async def hset(self, key: str, field: str, value: Any) -> None:
        """Set a hash field."""

    @abstractmethod
    async def hget(self, key: str, field: str) -> Any:
        """Get a hash field."""

    @abstractmethod
    async def hgetall(self, key: str) -> dict[str, Any]:
        """Get all hash fields."""

    @abstractmethod
    async def hdel(self, key: str, *fields: str) -> None:
        """Delete hash fields."""

    @abstractmethod
    async def zadd(self, key: str, mapping: dict[str, float]) -> None:
        """Add members to a sorted set."""

    @abstractmethod
    async def zrange(
        self,
        key: str,
        start: int = 0,
        end: int = -1,
        desc: bool = False,
    ) -> list[str]:
        """Get members from a sorted set."""

    @abstractmethod
    async def zrem(self, key: str, *members: str) -> None:
        """Remove members from a sorted set."""

    @abstractmethod
    async def zcard(self, key: str) -> int:
        """Count members of a sorted set."""

    @abstractmethod
    async def publish(self, channel: str, message: str) -> None:
        """Publish a message to a channel."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove every key."""


class RedisStateManager(StateManager):
    """State store backed by Redis."""

    def __init__(self, redis_url: str | None = None) -> None:
        settings = get_settings()
        self.redis_client: redis.Redis | None = None
        self.redis_url = redis_url or settings.redis_url
        self._compare_and_set = None

    async def connect(self) -> None:
        """Establish Redis connection."""
        if self.redis_client is None:
            self.redis_client = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            self._compare_and_set = self.redis_client.register_script(_COMPARE_AND_SET)
            logger.info("redis_connected", url=self.redis_url)

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self.redis_client:
            await self.redis_client.aclose()
            self.redis_client = None
            self._compare_and_set = None
            logger.info("redis_disconnected")

    async def _client(self) -> redis.Redis:
        if not self.redis_client:
            await self.connect()
        return self.redis_client

    async def get(self, key: str) -> Any:
        client = await self._client()
        return decode_value(await client.get(key))

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        client = await self._client()
        await client.set(key, encode_value(value), ex=ttl)
        logger.debug("state_set", key=key, ttl=ttl)

    async def set_if_absent(self, key: str, value: Any) -> bool:
        client = await self._client()
        return bool(await client.set(key, encode_value(value), nx=True))

    async def compare_and_set(
        self, key: str, expected_version: int, document: dict[str, Any]
    ) -> bool:
        await self._client()
        written = await self._compare_and_set(
            keys=[key], args=[expected_version, json.dumps(document)]
        )
        return bool(written)

    async def delete(self, key: str) -> None:
        client = await self._client()
        await client.delete(key)
        logger.debug("state_deleted", key=key)

    async def exists(self, key: str) -> bool:
        client = await self._client()
        return bool(await client.exists(key))

    async def hset(self, key: str, field: str, value: Any) -> None:
        client = await self._client()
        await client.hset(key, field, encode_value(value))

    async def hget(self, key: str, field: str) -> Any:
        client = await self._client()
        return decode_value(await client.hget(key, field))

    async def hgetall(self, key: str) -> dict[str, Any]:
        client = await self._client()
        data = await client.hgetall(key)
        return {field: decode_value(value) for field, value in data.items()}

    async def hdel(self, key: str, *fields: str) -> None:
        if not fields:
            return
        client = await self._client()
        await client.hdel(key, *fields)

    async def zadd(self, key: str, mapping: dict[str, float]) -> None:
        client = await self._client()
        await client.zadd(key, mapping)

    async def zrange(
        self,
        key: str,
        start: int = 0,
        end: int = -1,
        desc: bool = False,
    ) -> list[str]:
        client = await self._client()
        return await client.zrange(key, start, end, desc=desc)

    async def zrem(self, key: str, *members: str) -> None:
        if not members:
            return
        client = await self._client()
        await client.zrem(key, *members)

    async def zcard(self, key: str) -> int:
        client = await self._client()
        return await client.zcard(key)

    async def publish(self, channel: str, message: str) -> None:
        client = await self._client()
        await client.publish(channel, message)
        logger.debug("message_published", channel=channel)

    async def flush(self) -> None:
        client = await self._client()
        await client.flushdb()


# Global state manager instance
_state_manager: StateManager | None = None


async def get_state_manager() -> StateManager:
    """Get the global state manager instance for the configured backend."""
    global _state_manager
    if _state_manager is None:
        settings = get_settings()
        if settings.state_backend == "redis":
            _state_manager = RedisStateManager()
        else:
            from orderflow.state.memory import MemoryStateManager

            _state_manager = MemoryStateManager()
        await _state_manager.connect()
    return _state_manager


async def close_state_manager() -> None:
    """Disconnect and forget the global state manager."""
    global _state_manager
    if _state_manager is not None:
        await _state_manager.disconnect()
        _state_manager = None
