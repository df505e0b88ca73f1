"""Tests for remote/resolver.py"""

import asyncio

import pytest

from fleetmux.errors import ResolutionError
from fleetmux.models import HostConfig, SshOptions
from fleetmux.remote.resolver import HostResolver
from fleetmux.telemetry import metrics

from conftest import FakeExecutor

DB1 = HostConfig(name="db1", targets=("a", "b"))
SSH = SshOptions(connect_timeout=1)


class TestHostResolver:
    """Tests for HostResolver class."""

    @pytest.mark.asyncio
    async def test_first_reachable_target_wins(self, clock):
        """targets [a, b], only b reachable → b"""
        executor = FakeExecutor(reachable={"b"})
        resolver = HostResolver(executor, clock=clock)

        assert await resolver.resolve(DB1, SSH) == "b"
        assert executor.probes() == ["a", "b"]
        assert resolver.cached_target("db1") == "b"

    @pytest.mark.asyncio
    async def test_declared_order_not_fastest(self, clock):
        """Both reachable → first declared wins, second never probed."""
        executor = FakeExecutor(reachable={"a", "b"})
        resolver = HostResolver(executor, clock=clock)

        assert await resolver.resolve(DB1, SSH) == "a"
        assert executor.probes() == ["a"]

    @pytest.mark.asyncio
    async def test_cache_hit_within_ttl(self, clock):
        executor = FakeExecutor(reachable={"b"})
        resolver = HostResolver(executor, clock=clock)

        await resolver.resolve(DB1, SSH)
        clock.advance(59.0)
        assert await resolver.resolve(DB1, SSH) == "b"

        assert executor.probes() == ["a", "b"]
        assert metrics.get_counter("resolver.cache_hit", {"host": "db1"}) == 1

    @pytest.mark.asyncio
    async def test_cache_expiry_reprobes(self, clock):
        executor = FakeExecutor(reachable={"b"})
        resolver = HostResolver(executor, clock=clock)

        await resolver.resolve(DB1, SSH)
        clock.advance(60.0)
        assert resolver.cached_target("db1") is None
        assert await resolver.resolve(DB1, SSH) == "b"

        assert executor.probes() == ["a", "b", "a", "b"]

    @pytest.mark.asyncio
    async def test_no_reachable_target(self, clock):
        executor = FakeExecutor(reachable=set())
        resolver = HostResolver(executor, clock=clock)

        with pytest.raises(ResolutionError, match="no reachable target for host db1"):
            await resolver.resolve(DB1, SSH)

        assert resolver.cached_target("db1") is None
        assert metrics.get_counter("resolver.failed", {"host": "db1"}) == 1

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self, clock):
        executor = FakeExecutor(reachable=set())
        resolver = HostResolver(executor, clock=clock)

        with pytest.raises(ResolutionError):
            await resolver.resolve(DB1, SSH)
        executor.reachable.add("a")

        assert await resolver.resolve(DB1, SSH) == "a"

    @pytest.mark.asyncio
    async def test_invalidate(self, clock):
        executor = FakeExecutor(reachable={"b"})
        resolver = HostResolver(executor, clock=clock)

        await resolver.resolve(DB1, SSH)
        resolver.invalidate("db1")
        assert resolver.cached_target("db1") is None

        await resolver.resolve(DB1, SSH)
        resolver.invalidate()
        assert resolver.cached_target("db1") is None

    @pytest.mark.asyncio
    async def test_probe_is_time_bounded(self, clock):
        """A hung probe counts as unreachable after the connect timeout."""
        executor = FakeExecutor(reachable={"a"}, delay=5.0)
        resolver = HostResolver(executor, clock=clock)
        host = HostConfig(name="slow", targets=("a",))

        with pytest.raises(ResolutionError):
            await asyncio.wait_for(resolver.resolve(host, SshOptions(connect_timeout=0)), timeout=3.0)

    @pytest.mark.asyncio
    async def test_same_host_serializes(self, clock):
        """Concurrent resolves on one host probe once; the rest hit the cache."""
        executor = FakeExecutor(reachable={"b"}, delay=0.05)
        resolver = HostResolver(executor, clock=clock)

        results = await asyncio.gather(*(resolver.resolve(DB1, SSH) for _ in range(5)))

        assert results == ["b"] * 5
        assert executor.probes() == ["a", "b"]

    @pytest.mark.asyncio
    async def test_different_hosts_run_concurrently(self, clock):
        executor = FakeExecutor(reachable={"x", "y"}, delay=0.2)
        resolver = HostResolver(executor, clock=clock)
        hosts = [HostConfig(name="h1", targets=("x",)), HostConfig(name="h2", targets=("y",))]

        loop = asyncio.get_running_loop()
        started = loop.time()
        results = await asyncio.gather(*(resolver.resolve(host, SSH) for host in hosts))
        elapsed = loop.time() - started

        assert results == ["x", "y"]
        assert elapsed < 0.35
