# storeplex/domains/resolver.py
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Set

from .models import StoreContext, normalize_hostname
from .storage_interfaces import AbstractDomainStore

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    context: StoreContext
    cached_at: float


class DomainResolver:
    """
    Maps inbound hostnames to store identities through a TTL cache.

    Only positive lookups are cached, so a newly verified domain is routable
    on its next request while an existing mapping may be served stale for at
    most ``ttl_seconds``. ``resolve`` never raises; any failure is treated as
    "no mapping".
    """

    def __init__(
        self,
        domain_store: AbstractDomainStore,
        ttl_seconds: float = 300.0,
        sweep_interval_seconds: float = 60.0,
        internal_hosts: Iterable[str] = (),
        internal_host_suffixes: Iterable[str] = (),
        clock: Callable[[], float] = time.monotonic,
    ):
        self.domain_store = domain_store
        self.ttl_seconds = ttl_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.internal_hosts = {h.lower() for h in internal_hosts}
        self.internal_host_suffixes = tuple(s.lower() for s in internal_host_suffixes)
        self._clock = clock
        self._cache: Dict[str, _CacheEntry] = {}
        self._pending: Set[asyncio.Task] = set()
        self._sweep_task: Optional[asyncio.Task] = None

    def __len__(self) -> int:
        return len(self._cache)

    def is_internal_host(self, hostname: str) -> bool:
        return hostname in self.internal_hosts or hostname.endswith(self.internal_host_suffixes)

    def _is_fresh(self, entry: _CacheEntry, now: float) -> bool:
        return now - entry.cached_at < self.ttl_seconds

    async def resolve(self, hostname: str) -> Optional[StoreContext]:
        """Resolve a Host header value (port allowed) to a StoreContext, or None."""
        try:
            host = normalize_hostname(hostname)
            if not host or self.is_internal_host(host):
                return None

            now = self._clock()
            entry = self._cache.get(host)
            if entry is not None:
                if self._is_fresh(entry, now):
                    return entry.context
                del self._cache[host]

            context = await self.domain_store.find_active_mapping(host)
            if context is None:
                logger.debug(f"No store mapping for hostname '{host}'.")
                return None

            self._cache[host] = _CacheEntry(context=context, cached_at=now)
            self._track_access(host)
            return context
        except Exception as e:
            logger.warning(f"Domain resolution for '{hostname}' failed; treating as unmapped: {e}")
            return None

    def _track_access(self, hostname: str) -> None:
        task = asyncio.create_task(self._increment_access(hostname))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _increment_access(self, hostname: str) -> None:
        try:
            await self.domain_store.increment_access_count(hostname)
        except Exception as e:
            logger.debug(f"Access count update for '{hostname}' failed: {e}")

    async def wait_for_pending(self) -> None:
        """Wait until in-flight access count updates have finished."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def invalidate(self, hostname: str) -> None:
        self._cache.pop(normalize_hostname(hostname), None)

    def invalidate_store(self, store_id: str) -> int:
        """Drop every cached hostname of a store; returns the number removed."""
        hosts = [h for h, entry in self._cache.items() if entry.context.store_id == store_id]
        for host in hosts:
            del self._cache[host]
        return len(hosts)

    def clear(self) -> None:
        self._cache.clear()

    def sweep(self) -> int:
        """Evict expired entries; returns the number evicted."""
        now = self._clock()
        expired = [h for h, entry in self._cache.items() if not self._is_fresh(entry, now)]
        for host in expired:
            del self._cache[host]
        if expired:
            logger.debug(f"Domain cache sweep evicted {len(expired)} entr{'y' if len(expired) == 1 else 'ies'}.")
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            self.sweep()

    def start(self) -> None:
        """Start the background sweep task on the running event loop."""
        if self._sweep_task is None:
            self._sweep_task = asyncio.create_task(self._sweep_loop())
            logger.info(
                f"Domain cache sweep started (ttl={self.ttl_seconds}s, interval={self.sweep_interval_seconds}s)."
            )

    async def stop(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            try:
                await self._sweep_task
            except asyncio.CancelledError:
                pass
            self._sweep_task = None
            logger.info("Domain cache sweep stopped.")
        await self.wait_for_pending()
