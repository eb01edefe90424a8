"""Tests for the in-memory state store."""

import asyncio

import pytest

from orderflow.state.memory import LOCK_STRIPES, MemoryStateManager


@pytest.mark.asyncio
async def test_compare_and_set_treats_missing_key_as_version_zero(
    state_manager: MemoryStateManager,
) -> None:
    assert await state_manager.compare_and_set("doc:1", 1, {"version": 2}) is False
    assert await state_manager.compare_and_set("doc:1", 0, {"version": 1, "name": "a"}) is True
    assert await state_manager.compare_and_set("doc:1", 0, {"version": 1, "name": "b"}) is False

    assert await state_manager.get("doc:1") == {"version": 1, "name": "a"}


@pytest.mark.asyncio
async def test_compare_and_set_has_one_winner(state_manager: MemoryStateManager) -> None:
    await state_manager.compare_and_set("doc:1", 0, {"version": 1})

    results = await asyncio.gather(
        *(state_manager.compare_and_set("doc:1", 1, {"version": 2, "writer": i}) for i in range(5))
    )

    assert results.count(True) == 1
    assert (await state_manager.get("doc:1"))["version"] == 2


@pytest.mark.asyncio
async def test_lock_table_does_not_grow_with_keys(state_manager: MemoryStateManager) -> None:
    for index in range(500):
        await state_manager.compare_and_set(f"doc:{index}", 0, {"version": 1})
        await state_manager.set_if_absent(f"order_number:{index}", "x")

    assert len(state_manager._locks) == LOCK_STRIPES
    assert await state_manager.get("doc:499") == {"version": 1}


@pytest.mark.asyncio
async def test_set_if_absent(state_manager: MemoryStateManager) -> None:
    assert await state_manager.set_if_absent("order_number:EL1", "first") is True
    assert await state_manager.set_if_absent("order_number:EL1", "second") is False
    assert await state_manager.get("order_number:EL1") == "first"


@pytest.mark.asyncio
async def test_values_do_not_alias(state_manager: MemoryStateManager) -> None:
    document = {"version": 1, "items": [1, 2]}
    await state_manager.set("doc:2", document)

    document["items"].append(3)
    loaded = await state_manager.get("doc:2")
    loaded["items"].append(4)

    assert await state_manager.get("doc:2") == {"version": 1, "items": [1, 2]}


@pytest.mark.asyncio
async def test_zrange_is_inclusive_and_ordered(state_manager: MemoryStateManager) -> None:
    await state_manager.zadd("index", {"a": 1, "b": 2, "c": 3, "d": 4})

    assert await state_manager.zrange("index") == ["a", "b", "c", "d"]
    assert await state_manager.zrange("index", 0, 1) == ["a", "b"]
    assert await state_manager.zrange("index", desc=True) == ["d", "c", "b", "a"]
    assert await state_manager.zrange("index", 2, -1, desc=True) == ["b", "a"]

    await state_manager.zrem("index", "a", "missing")
    assert await state_manager.zcard("index") == 3


@pytest.mark.asyncio
async def test_hash_operations(state_manager: MemoryStateManager) -> None:
    await state_manager.hset("inbox", "n1", {"title": "one"})
    await state_manager.hset("inbox", "n2", {"title": "two"})

    assert await state_manager.hget("inbox", "n1") == {"title": "one"}
    assert set(await state_manager.hgetall("inbox")) == {"n1", "n2"}

    await state_manager.hdel("inbox", "n1")
    assert await state_manager.hget("inbox", "n1") is None
    assert await state_manager.exists("inbox") is True

    await state_manager.delete("inbox")
    assert await state_manager.exists("inbox") is False


@pytest.mark.asyncio
async def test_flush_clears_everything(state_manager: MemoryStateManager) -> None:
    await state_manager.set("key", "value")
    await state_manager.zadd("index", {"a": 1})
    await state_manager.publish("channel", "message")

    await state_manager.flush()

    assert await state_manager.get("key") is None
    assert await state_manager.zrange("index") == []
    assert state_manager.published == []
