# tests/test_domain_resolver.py
import asyncio

import pytest

from storeplex.domains import DomainResolver, StoreContext, normalize_hostname


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryDomainStore:
    """Just enough of the domain store for the resolver."""

    def __init__(self, mappings=None, fail=False):
        self.mappings = dict(mappings or {})
        self.fail = fail
        self.lookups = []
        self.access_counts = {}

    async def find_active_mapping(self, hostname):
        self.lookups.append(hostname)
        if self.fail:
            raise RuntimeError("master database unavailable")
        return self.mappings.get(hostname)

    async def increment_access_count(self, hostname):
        self.access_counts[hostname] = self.access_counts.get(hostname, 0) + 1


def _context(store_id="store-1", hostname="shop.storeplex.test"):
    return StoreContext(store_id=store_id, hostname=hostname, slug=hostname.split(".")[0])


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def domain_store():
    return InMemoryDomainStore({
        "shop.storeplex.test": _context(),
        "www.shop.example": _context(hostname="www.shop.example"),
        "other.storeplex.test": _context(store_id="store-2", hostname="other.storeplex.test"),
    })


@pytest.fixture
def resolver(domain_store, clock):
    return DomainResolver(
        domain_store,
        ttl_seconds=300,
        internal_hosts=["localhost", "127.0.0.1", "storeplex.test"],
        internal_host_suffixes=[".onrender.com"],
        clock=clock,
    )


@pytest.mark.parametrize("raw, expected", [
    ("Shop.StorePlex.Test", "shop.storeplex.test"),
    ("shop.storeplex.test:8443", "shop.storeplex.test"),
    ("shop.storeplex.test.", "shop.storeplex.test"),
    ("[::1]:8000", "::1"),
    ("", ""),
])
def test_normalize_hostname(raw, expected):
    assert normalize_hostname(raw) == expected


async def test_resolves_and_caches_positive_lookups(resolver, domain_store):
    context = await resolver.resolve("SHOP.storeplex.test:443")
    assert context.store_id == "store-1"
    assert await resolver.resolve("shop.storeplex.test") == context
    assert domain_store.lookups == ["shop.storeplex.test"]
    assert len(resolver) == 1


async def test_misses_are_not_cached(resolver, domain_store):
    assert await resolver.resolve("unknown.example") is None
    domain_store.mappings["unknown.example"] = _context(store_id="store-3", hostname="unknown.example")
    context = await resolver.resolve("unknown.example")
    assert context.store_id == "store-3"
    assert domain_store.lookups == ["unknown.example", "unknown.example"]


async def test_entries_expire_after_ttl(resolver, domain_store, clock):
    await resolver.resolve("shop.storeplex.test")
    clock.advance(299)
    await resolver.resolve("shop.storeplex.test")
    assert len(domain_store.lookups) == 1

    domain_store.mappings["shop.storeplex.test"] = _context(store_id="store-9")
    clock.advance(2)
    context = await resolver.resolve("shop.storeplex.test")
    assert context.store_id == "store-9"
    assert len(domain_store.lookups) == 2


@pytest.mark.parametrize("host", ["localhost:8000", "127.0.0.1", "storeplex.test", "my-app.onrender.com"])
async def test_platform_hosts_are_never_looked_up(resolver, domain_store, host):
    assert await resolver.resolve(host) is None
    assert domain_store.lookups == []


async def test_lookup_failures_resolve_to_none(clock):
    resolver = DomainResolver(InMemoryDomainStore(fail=True), clock=clock)
    assert await resolver.resolve("shop.storeplex.test") is None
    assert len(resolver) == 0


async def test_invalidate_and_clear(resolver, domain_store):
    for host in ("shop.storeplex.test", "www.shop.example", "other.storeplex.test"):
        await resolver.resolve(host)
    assert len(resolver) == 3

    resolver.invalidate("Other.StorePlex.Test")
    assert len(resolver) == 2
    assert resolver.invalidate_store("store-1") == 2
    assert len(resolver) == 0

    await resolver.resolve("shop.storeplex.test")
    resolver.clear()
    assert len(resolver) == 0


async def test_sweep_evicts_only_expired_entries(resolver, clock):
    await resolver.resolve("shop.storeplex.test")
    clock.advance(200)
    await resolver.resolve("www.shop.example")
    clock.advance(150)
    assert resolver.sweep() == 1
    assert len(resolver) == 1


async def test_access_count_tracked_on_database_hits(resolver, domain_store):
    await resolver.resolve("shop.storeplex.test")
    await resolver.resolve("shop.storeplex.test")
    await resolver.wait_for_pending()
    assert domain_store.access_counts == {"shop.storeplex.test": 1}


async def test_background_sweep_runs_until_stopped(domain_store, clock):
    resolver = DomainResolver(domain_store, ttl_seconds=10, sweep_interval_seconds=0.01, clock=clock)
    resolver.start()
    await resolver.resolve("shop.storeplex.test")
    clock.advance(11)
    await asyncio.sleep(0.05)
    assert len(resolver) == 0
    await resolver.stop()
    assert resolver._sweep_task is None
