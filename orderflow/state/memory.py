"""In-process state store for tests and single-process deployments."""

import asyncio
import json
from collections import defaultdict
from typing import Any

from orderflow.state.manager import StateManager, encode_value, decode_value
from orderflow.utils.logging import get_logger

logger = get_logger(__name__)

LOCK_STRIPES = 64


class MemoryStateManager(StateManager):
    """State store held in dictionaries, serialized like the Redis backend.

    Values are stored as JSON text so documents never alias between callers.
    Conditional writes hold a lock across the read and the write. Keys share
    a fixed set of lock stripes, so the lock table does not grow with the
    number of keys.
    """

    def __init__(self) -> None:
        self._values: dict[str, str] = {}
        self._hashes: dict[str, dict[str, str]] = defaultdict(dict)
        self._sorted: dict[str, dict[str, float]] = defaultdict(dict)
        self._locks = [asyncio.Lock() for _ in range(LOCK_STRIPES)]
        self.published: list[tuple[str, str]] = []

    def _lock_for(self, key: str) -> asyncio.Lock:
        return self._locks[hash(key) % len(self._locks)]

    async def connect(self) -> None:
        logger.debug("memory_state_ready")

    async def disconnect(self) -> None:
        logger.debug("memory_state_closed")

    async def get(self, key: str) -> Any:
        return decode_value(self._values.get(key))

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        # TTLs are not enforced in memory
        self._values[key] = encode_value(value)

    async def set_if_absent(self, key: str, value: Any) -> bool:
        async with self._lock_for(key):
            if key in self._values:
                return False
            self._values[key] = encode_value(value)
            return True

    async def compare_and_set(
        self, key: str, expected_version: int, document: dict[str, Any]
    ) -> bool:
        async with self._lock_for(key):
            current = self._values.get(key)
            stored_version = json.loads(current)["version"] if current else 0
            # Give other tasks a chance to interleave, as a network round trip would
            await asyncio.sleep(0)
            if stored_version != expected_version:
                return False
            self._values[key] = json.dumps(document)
            return True

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)
        self._hashes.pop(key, None)
        self._sorted.pop(key, None)

    async def exists(self, key: str) -> bool:
        return key in self._values or bool(self._hashes.get(key)) or bool(self._sorted.get(key))

    async def hset(self, key: str, field: str, value: Any) -> None:
        self._hashes[key][field] = encode_value(value)

    async def hget(self, key: str, field: str) -> Any:
        return decode_value(self._hashes.get(key, {}).get(field))

    async def hgetall(self, key: str) -> dict[str, Any]:
        return {field: decode_value(value) for field, value in self._hashes.get(key, {}).items()}

    async def hdel(self, key: str, *fields: str) -> None:
        bucket = self._hashes.get(key, {})
        for field in fields:
            bucket.pop(field, None)

    async def zadd(self, key: str, mapping: dict[str, float]) -> None:
        self._sorted[key].update(mapping)

    async def zrange(
        self,
        key: str,
        start: int = 0,
        end: int = -1,
        desc: bool = False,
    ) -> list[str]:
        members = sorted(
            self._sorted.get(key, {}).items(),
            key=lambda pair: (pair[1], pair[0]),
            reverse=desc,
        )
        names = [member for member, _ in members]
        # Redis ranges are inclusive at both ends
        stop = None if end == -1 else end + 1
        return names[start:stop]

    async def zrem(self, key: str, *members: str) -> None:
        bucket = self._sorted.get(key, {})
        for member in members:
            bucket.pop(member, None)

    async def zcard(self, key: str) -> int:
        return len(self._sorted.get(key, {}))

    async def publish(self, channel: str, message: str) -> None:
        self.published.append((channel, message))
        logger.debug("message_published", channel=channel)

    async def flush(self) -> None:
        self._values.clear()
        self._hashes.clear()
        self._sorted.clear()
        self.published.clear()
