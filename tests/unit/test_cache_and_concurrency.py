"""Unit tests for MemoryCacheProvider and BackgroundDispatcher."""

from __future__ import annotations

import asyncio

import pytest

from pharmaroute.providers.cache.memory_cache import MemoryCacheProvider
from pharmaroute.utils.concurrency import BackgroundDispatcher


class _FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


# ======================================================================
# MemoryCacheProvider
# ======================================================================


class TestMemoryCacheProvider:
    @pytest.fixture()
    def cache(self) -> MemoryCacheProvider:
        return MemoryCacheProvider(max_size=100, ttl=3600)

    @pytest.mark.asyncio
    async def test_get_missing_key_returns_none(self, cache: MemoryCacheProvider) -> None:
        assert await cache.get("nonexistent") is None

    @pytest.mark.asyncio
    async def test_set_and_get(self, cache: MemoryCacheProvider) -> None:
        await cache.set("free:ocr", ("google", "tesseract"))
        assert await cache.get("free:ocr") == ("google", "tesseract")

    @pytest.mark.asyncio
    async def test_delete_removes_key(self, cache: MemoryCacheProvider) -> None:
        await cache.set("key1", "value1")
        await cache.delete("key1")
        assert await cache.get("key1") is None

    @pytest.mark.asyncio
    async def test_delete_nonexistent_is_noop(self, cache: MemoryCacheProvider) -> None:
        await cache.delete("nonexistent")

    @pytest.mark.asyncio
    async def test_clear_prefix(self, cache: MemoryCacheProvider) -> None:
        await cache.set("free:ocr", 1)
        await cache.set("free:verify", 2)
        await cache.set("business:ocr", 3)

        await cache.clear("free:")

        assert await cache.get("free:ocr") is None
        assert await cache.get("free:verify") is None
        assert await cache.get("business:ocr") == 3

    @pytest.mark.asyncio
    async def test_clear_all(self, cache: MemoryCacheProvider) -> None:
        await cache.set("free:ocr", 1)
        await cache.set("business:ocr", 3)
        await cache.clear()
        assert await cache.get("business:ocr") is None

    @pytest.mark.asyncio
    async def test_entries_expire_after_ttl(self) -> None:
        clock = _FakeClock()
        cache = MemoryCacheProvider(ttl=300, timer=clock)
        await cache.set("free:ocr", 1)

        clock.now = 299.0
        assert await cache.get("free:ocr") == 1

        clock.now = 301.0
        assert await cache.get("free:ocr") is None


# ======================================================================
# BackgroundDispatcher
# ======================================================================


class TestBackgroundDispatcher:
    @pytest.mark.asyncio
    async def test_dispatch_runs_and_drains(self) -> None:
        dispatcher = BackgroundDispatcher(name="test")
        results: list[int] = []

        async def _work(n: int) -> None:
            await asyncio.sleep(0)
            results.append(n)

        for n in range(3):
            dispatcher.dispatch(_work(n), label=str(n))
        assert dispatcher.pending == 3

        await dispatcher.drain()

        assert sorted(results) == [0, 1, 2]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_failing_task_does_not_propagate(self) -> None:
        dispatcher = BackgroundDispatcher()

        async def _boom() -> None:
            raise RuntimeError("store exploded")

        dispatcher.dispatch(_boom())
        await dispatcher.drain()

        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_drain_timeout_leaves_task_pending(self) -> None:
        dispatcher = BackgroundDispatcher()
        gate = asyncio.Event()
        task = dispatcher.dispatch(gate.wait(), label="blocked")

        await dispatcher.drain(timeout=0.01)
        assert dispatcher.pending == 1

        gate.set()
        await dispatcher.drain()
        assert task.done()

    @pytest.mark.asyncio
    async def test_drain_with_nothing_pending(self) -> None:
        await BackgroundDispatcher().drain()
