"""Per-role whitelist cache with single-flight loads.

Entries are valid for `validity_seconds`. Once an entry is older than
`update_interval_seconds` it is still served, and one background reload
replaces it. Concurrent misses for the same role share one store load.
Misses for different roles never wait on each other.
"""

from __future__ import annotations

import asyncio
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass

import structlog

from auditwhitelist.core.domain_types import RoleWhitelist
from auditwhitelist.core.interfaces import WhitelistStore

logger = structlog.get_logger()

DEFAULT_VALIDITY_SECONDS = 2.0
DEFAULT_MAX_ENTRIES = 1000


@dataclass(frozen=True)
class CacheEntry:
    """A loaded whitelist and the clock reading when it was loaded."""

    whitelist: RoleWhitelist
    loaded_at: float


class WhitelistCache:
    """Caches role whitelists in front of a store.

    Attributes:
        store: Store the whitelists are loaded from.
        validity_seconds: Age after which an entry is reloaded before use.
            Zero disables caching.
        update_interval_seconds: Age after which an entry is refreshed in
            the background while still being served.
        max_entries: Number of roles kept, least recently used evicted first.
    """

    def __init__(
        self,
        store: WhitelistStore,
        validity_seconds: float = DEFAULT_VALIDITY_SECONDS,
        update_interval_seconds: float | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the cache.

        Args:
            store: Store the whitelists are loaded from.
            validity_seconds: Entry validity. Zero disables caching.
            update_interval_seconds: Background refresh age. Defaults to
                the validity, which disables background refresh.
            max_entries: Maximum number of cached roles.
            clock: Monotonic clock, replaceable in tests.
        """
        self.store = store
        self.validity_seconds = validity_seconds
        self.update_interval_seconds = (
            validity_seconds if update_interval_seconds is None else update_interval_seconds
        )
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._inflight: dict[str, asyncio.Task[RoleWhitelist]] = {}
        self._refreshes: set[asyncio.Task[RoleWhitelist]] = set()

    @property
    def enabled(self) -> bool:
        return self.validity_seconds > 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, role: object) -> bool:
        return role in self._entries

    async def get(self, role: str) -> RoleWhitelist:
        """Return the whitelist of a role, loading it if needed.

        Raises:
            StoreUnavailableError: If a load was needed and failed. Failed
                loads are not cached.
        """
        if not self.enabled:
            return await self.store.get_whitelist(role)

        entry = self._entries.get(role)
        if entry is not None:
            age = self._clock() - entry.loaded_at
            if age < self.validity_seconds:
                self._entries.move_to_end(role)
                if age >= self.update_interval_seconds:
                    self._schedule_refresh(role)
                return entry.whitelist
            del self._entries[role]

        logger.debug("whitelist_cache_miss", role=role)
        return await asyncio.shield(self._load_task(role))

    def invalidate(self, role: str) -> None:
        """Drop the entry of a role.

        A load already in flight still completes for its callers but its
        result is not cached.
        """
        self._entries.pop(role, None)
        self._inflight.pop(role, None)

    def invalidate_all(self) -> None:
        """Drop every entry."""
        self._entries.clear()
        self._inflight.clear()

    async def close(self) -> None:
        """Cancel background refreshes and drop every entry."""
        refreshes = list(self._refreshes)
        for task in refreshes:
            task.cancel()
        await asyncio.gather(*refreshes, return_exceptions=True)
        self._refreshes.clear()
        self.invalidate_all()

    def _load_task(self, role: str) -> asyncio.Task[RoleWhitelist]:
        task = self._inflight.get(role)
        if task is None:
            task = asyncio.ensure_future(self._fetch(role))
            self._inflight[role] = task
            task.add_done_callback(lambda t: self._finish(role, t))
        return task

    def _schedule_refresh(self, role: str) -> None:
        if role in self._inflight:
            return
        task = self._load_task(role)
        self._refreshes.add(task)
        task.add_done_callback(self._on_refresh_done)

    async def _fetch(self, role: str) -> RoleWhitelist:
        whitelist = await self.store.get_whitelist(role)
        # Loads detached by an invalidation are returned but not cached
        if self._inflight.get(role) is asyncio.current_task():
            self._entries[role] = CacheEntry(whitelist=whitelist, loaded_at=self._clock())
            self._entries.move_to_end(role)
            while len(self._entries) > self.max_entries:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("whitelist_cache_evicted", role=evicted)
        return whitelist

    def _finish(self, role: str, task: asyncio.Task[RoleWhitelist]) -> None:
        if self._inflight.get(role) is task:
            del self._inflight[role]

    def _on_refresh_done(self, task: asyncio.Task[RoleWhitelist]) -> None:
        self._refreshes.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("whitelist_refresh_failed", error=str(error))
