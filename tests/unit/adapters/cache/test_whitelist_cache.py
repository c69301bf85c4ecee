"""Unit tests for WhitelistCache."""

from __future__ import annotations

import asyncio

import pytest

from auditwhitelist.adapters.cache.whitelist_cache import WhitelistCache
from auditwhitelist.adapters.store.memory import InMemoryWhitelistStore
from auditwhitelist.core.exceptions import StoreUnavailableError
from auditwhitelist.core.permissions import Permission
from auditwhitelist.core.resources import DataResource

SCHOOL = DataResource.for_keyspace("school")
SELECT = frozenset({Permission.SELECT})


class FakeClock:
    """Manually advanced clock."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class GatedStore(InMemoryWhitelistStore):
    """Memory store whose loads wait until released."""

    def __init__(self) -> None:
        super().__init__()
        self.gates: dict[str, asyncio.Event] = {}
        self.failures: dict[str, Exception] = {}

    def gate(self, role: str) -> asyncio.Event:
        return self.gates.setdefault(role, asyncio.Event())

    async def get_whitelist(self, role: str):
        self.loads.append(role)
        if role in self.gates:
            await self.gates[role].wait()
        if role in self.failures:
            raise self.failures[role]
        return dict(self.rows.get(role, {}))


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake clock."""
    return FakeClock()


@pytest.fixture
def store() -> GatedStore:
    """Return a gated store."""
    return GatedStore()


@pytest.fixture
def cache(store: GatedStore, clock: FakeClock) -> WhitelistCache:
    """Return a cache with a 10 second validity."""
    return WhitelistCache(store, validity_seconds=10, max_entries=3, clock=clock)


class TestSingleFlight:
    """Tests for shared loads."""

    async def test_concurrent_misses_load_once(
        self, cache: WhitelistCache, store: GatedStore
    ) -> None:
        """Test that concurrent misses for one role share a single load."""
        await store.add_to_whitelist("bob", SCHOOL, SELECT)
        gate = store.gate("bob")

        pending = [asyncio.ensure_future(cache.get("bob")) for _ in range(5)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*pending)

        assert store.load_count("bob") == 1
        assert all(r == {SCHOOL: SELECT} for r in results)

    async def test_roles_do_not_wait_on_each_other(
        self, cache: WhitelistCache, store: GatedStore
    ) -> None:
        """Test that a slow load for one role does not block another role."""
        gate = store.gate("bob")
        bob = asyncio.ensure_future(cache.get("bob"))
        await asyncio.sleep(0)

        alice = await asyncio.wait_for(cache.get("alice"), timeout=1)

        assert alice == {}
        assert not bob.done()
        gate.set()
        assert await bob == {}

    async def test_failure_reaches_every_waiter_and_is_not_cached(
        self, cache: WhitelistCache, store: GatedStore
    ) -> None:
        """Test that a failed load is raised to all waiters and retried next time."""
        gate = store.gate("bob")
        store.failures["bob"] = StoreUnavailableError("down")

        pending = [asyncio.ensure_future(cache.get("bob")) for _ in range(3)]
        await asyncio.sleep(0)
        gate.set()
        results = await asyncio.gather(*pending, return_exceptions=True)

        assert all(isinstance(r, StoreUnavailableError) for r in results)
        assert store.load_count("bob") == 1
        assert "bob" not in cache

        del store.failures["bob"]
        assert await cache.get("bob") == {}
        assert store.load_count("bob") == 2


class TestExpiry:
    """Tests for validity and background refresh."""

    async def test_fresh_entry_is_served(
        self, cache: WhitelistCache, store: GatedStore, clock: FakeClock
    ) -> None:
        """Test that a fresh entry does not hit the store."""
        await cache.get("bob")
        clock.advance(9)
        await cache.get("bob")

        assert store.load_count("bob") == 1

    async def test_expired_entry_reloads(
        self, cache: WhitelistCache, store: GatedStore, clock: FakeClock
    ) -> None:
        """Test that an expired entry is reloaded before use."""
        await cache.get("bob")
        await store.add_to_whitelist("bob", SCHOOL, SELECT)
        clock.advance(10)

        assert await cache.get("bob") == {SCHOOL: SELECT}
        assert store.load_count("bob") == 2

    async def test_zero_validity_disables_caching(self, store: GatedStore) -> None:
        """Test that every lookup loads when caching is disabled."""
        cache = WhitelistCache(store, validity_seconds=0)

        await cache.get("bob")
        await cache.get("bob")

        assert store.load_count("bob") == 2
        assert len(cache) == 0

    async def test_background_refresh(self, store: GatedStore, clock: FakeClock) -> None:
        """Test that an entry past the update interval is served and refreshed once."""
        cache = WhitelistCache(store, validity_seconds=10, update_interval_seconds=2, clock=clock)
        await cache.get("bob")
        await store.add_to_whitelist("bob", SCHOOL, SELECT)
        clock.advance(3)
        gate = store.gate("bob")

        assert await cache.get("bob") == {}
        assert await cache.get("bob") == {}
        await asyncio.sleep(0)
        assert store.load_count("bob") == 2

        gate.set()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert await cache.get("bob") == {SCHOOL: SELECT}
        assert store.load_count("bob") == 2


class TestEviction:
    """Tests for eviction and invalidation."""

    async def test_least_recently_used_evicted(
        self, cache: WhitelistCache, store: GatedStore
    ) -> None:
        """Test LRU eviction beyond max_entries."""
        for role in ["a", "b", "c"]:
            await cache.get(role)
        await cache.get("a")
        await cache.get("d")

        assert "b" not in cache
        assert all(role in cache for role in ["a", "c", "d"])

    async def test_invalidate(self, cache: WhitelistCache, store: GatedStore) -> None:
        """Test that an invalidated role is reloaded."""
        await cache.get("bob")
        await cache.get("alice")

        cache.invalidate("bob")

        assert "bob" not in cache
        assert "alice" in cache
        await cache.get("bob")
        assert store.load_count("bob") == 2

    async def test_invalidate_all(self, cache: WhitelistCache) -> None:
        """Test dropping every entry."""
        await cache.get("bob")
        await cache.get("alice")

        cache.invalidate_all()

        assert len(cache) == 0

    async def test_invalidate_during_load(self, cache: WhitelistCache, store: GatedStore) -> None:
        """Test that a load started before an invalidation is not cached or shared."""
        gate = store.gate("bob")
        stale = asyncio.ensure_future(cache.get("bob"))
        await asyncio.sleep(0)

        cache.invalidate("bob")
        await store.add_to_whitelist("bob", SCHOOL, SELECT)
        fresh = asyncio.ensure_future(cache.get("bob"))
        await asyncio.sleep(0)
        gate.set()

        await stale
        assert await fresh == {SCHOOL: SELECT}
        assert store.load_count("bob") == 2
        assert "bob" in cache

    async def test_close_cancels_refresh(self, store: GatedStore, clock: FakeClock) -> None:
        """Test that close cancels pending background refreshes."""
        cache = WhitelistCache(store, validity_seconds=10, update_interval_seconds=1, clock=clock)
        await cache.get("bob")
        clock.advance(2)
        store.gate("bob")
        await cache.get("bob")
        await asyncio.sleep(0)

        await cache.close()

        assert len(cache) == 0
        assert store.load_count("bob") == 2

    async def test_invalidated_roles_leave_no_state(self, cache: WhitelistCache) -> None:
        """Test that dropped roles do not accumulate bookkeeping."""
        for i in range(50):
            role = f"temp_{i}"
            await cache.get(role)
            cache.invalidate(role)

        assert len(cache) == 0
        assert cache._inflight == {}
        assert {k for k, v in vars(cache).items() if isinstance(v, dict) and v} == set()
