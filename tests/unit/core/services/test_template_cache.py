from __future__ import annotations

"""
Unit tests for the Template Cache Service.

Verifies:
1. Hit/miss accounting and hit rate.
2. mtime-based staleness with in-place reload and cascading invalidation.
3. Cascading, cycle-safe invalidation through the dependency graph.
4. Negative caching of parse failures.
5. Missing and disappearing files.
6. Bounded-resource cleanup (LRU, expiry, memory pressure).
7. Introspection snapshots and clear().
"""

import asyncio
import os
from typing import Callable, List

import pytest

from textui_templates.core.services.cache import TemplateCacheService
from textui_templates.domain.cache_models import CacheConfig
from textui_templates.domain.errors import TemplateFileNotFoundError


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_cache(config: CacheConfig = CacheConfig(), memory_mb: float = 1.0) -> TemplateCacheService:
    return TemplateCacheService(config, clock=FakeClock(), memory_probe=lambda: memory_mb)


def write_chain(write_template: Callable[[str, str], str]) -> List[str]:
    """A includes B includes C."""
    a = write_template("a.yml", "- $include:\n    template: b.yml\n")
    b = write_template("b.yml", "- $include:\n    template: c.yml\n")
    c = write_template("c.yml", "- Text:\n    value: leaf\n")
    return [a, b, c]


# -----------------------------------------------------------------------------
# Hit / miss
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_first_call_miss_then_hit(write_template: Callable[[str, str], str]) -> None:
    """TC-01: A miss followed by a hit yields a 0.5 hit rate."""
    path = write_template("t.yml", "- Text:\n    value: x\n")
    cache = make_cache()

    first = await cache.get_template(path)
    second = await cache.get_template(path)

    stats = cache.get_stats()
    assert (stats.misses, stats.hits) == (1, 1)
    assert stats.hit_rate == 0.5
    assert second is first
    assert second.access_count == 2
    assert first.parsed_data == [{"Text": {"value": "x"}}]


@pytest.mark.asyncio
async def test_entry_fields(write_template: Callable[[str, str], str]) -> None:
    a, b, _ = write_chain(write_template)
    cache = make_cache()

    entry = await cache.get_template(a)

    assert entry.file_path == a
    assert entry.dependencies == frozenset({b})
    assert entry.size == len(entry.content.encode("utf-8"))
    assert entry.last_modified == os.stat(a).st_mtime_ns
    assert entry.is_parsed


# -----------------------------------------------------------------------------
# Staleness
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_stale_entry_is_reloaded_as_miss(
        write_template: Callable[[str, str], str],
        rewrite_template: Callable[[str, str], str],
) -> None:
    path = write_template("t.yml", "value: 1\n")
    cache = make_cache()
    await cache.get_template(path)

    rewrite_template("t.yml", "value: 2\n")
    entry = await cache.get_template(path)

    assert entry.parsed_data == {"value": 2}
    assert cache.get_stats().misses == 2
    assert cache.get_stats().hits == 0


@pytest.mark.asyncio
async def test_stale_dependency_cascades_to_ancestors(
        write_template: Callable[[str, str], str],
        rewrite_template: Callable[[str, str], str],
) -> None:
    """Reloading a changed leaf drops every template that includes it."""
    a, b, c = write_chain(write_template)
    cache = make_cache()
    for path in (a, b, c):
        await cache.get_template(path)

    rewrite_template("c.yml", "- Text:\n    value: changed\n")
    await cache.get_template(c)

    assert cache.get_cached_templates() == [c]
    assert cache.get_stats().invalidations == 2
    assert cache.graph.is_consistent()


# -----------------------------------------------------------------------------
# Invalidation
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_invalidate_standalone_template(write_template: Callable[[str, str], str]) -> None:
    """Invalidating a template with no references removes exactly one entry."""
    path = write_template("solo.yml", "- Text:\n    value: x\n")
    other = write_template("other.yml", "a: 1\n")
    cache = make_cache()
    await cache.get_template(path)
    await cache.get_template(other)

    removed = cache.invalidate_template(path)

    assert removed == 1
    assert cache.get_stats().invalidations == 1
    assert cache.get_cached_templates() == [other]


@pytest.mark.asyncio
async def test_invalidate_chain_cascades(write_template: Callable[[str, str], str]) -> None:
    """A includes B includes C: invalidating C removes all three; A then misses."""
    a, b, c = write_chain(write_template)
    cache = make_cache()
    for path in (a, b, c):
        await cache.get_template(path)
    misses_before = cache.get_stats().misses

    removed = cache.invalidate_template(c)

    assert removed == 3
    assert cache.get_cached_templates() == []
    assert cache.graph.is_consistent()

    await cache.get_template(a)
    assert cache.get_stats().misses == misses_before + 1


@pytest.mark.asyncio
async def test_invalidate_uncached_dependency_still_cascades(write_template: Callable[[str, str], str]) -> None:
    """A file only known as an include target still invalidates its includers."""
    a, _, c = write_chain(write_template)
    cache = make_cache()
    await cache.get_template(a)

    assert c not in cache
    assert cache.invalidate_template(os.path.join(os.path.dirname(a), "b.yml")) == 1
    assert a not in cache


@pytest.mark.asyncio
async def test_invalidate_cycle_terminates(write_template: Callable[[str, str], str]) -> None:
    a = write_template("a.yml", "- $include:\n    template: b.yml\n")
    b = write_template("b.yml", "- $include:\n    template: a.yml\n")
    cache = make_cache()
    await cache.get_template(a)
    await cache.get_template(b)

    assert cache.invalidate_template(a) == 2
    assert len(cache) == 0


def test_invalidate_unknown_path_is_noop() -> None:
    cache = make_cache()
    assert cache.invalidate_template("/nowhere/x.yml") == 0
    assert cache.get_stats().invalidations == 0


# -----------------------------------------------------------------------------
# Errors
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_missing_file_raises_file_not_found(tmp_path) -> None:
    cache = make_cache()
    with pytest.raises(TemplateFileNotFoundError) as exc:
        await cache.get_template(str(tmp_path / "nope.yml"))
    assert exc.value.template_path == str(tmp_path / "nope.yml")
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_disappearing_file_is_invalidated(write_template: Callable[[str, str], str]) -> None:
    a, b, _ = write_chain(write_template)
    cache = make_cache()
    await cache.get_template(a)
    await cache.get_template(b)

    os.remove(b)
    with pytest.raises(TemplateFileNotFoundError):
        await cache.get_template(b)

    assert b not in cache
    assert a not in cache, "dependents of a vanished file are dropped"


@pytest.mark.asyncio
async def test_parse_failure_is_cached_negatively(write_template: Callable[[str, str], str]) -> None:
    path = write_template(
        "bad.yml",
        "- $include:\n    template: part.yml\n- key: [unclosed\n",
    )
    cache = make_cache()

    entry = await cache.get_template(path)
    again = await cache.get_template(path)

    assert entry.parsed_data is None
    assert not entry.is_parsed
    assert "line" in (entry.parse_error or "")
    assert entry.dependencies == frozenset({os.path.join(os.path.dirname(path), "part.yml")})
    assert again is entry
    assert cache.get_stats().hits == 1


# -----------------------------------------------------------------------------
# Bounded resources
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_max_entries_evicts_least_recently_used(write_template: Callable[[str, str], str]) -> None:
    clock = FakeClock()
    cache = TemplateCacheService(CacheConfig(max_entries=2), clock=clock, memory_probe=lambda: 1.0)
    paths = [write_template(f"t{i}.yml", f"v: {i}\n") for i in range(3)]

    await cache.get_template(paths[0])
    clock.advance(1)
    await cache.get_template(paths[1])
    clock.advance(1)
    await cache.get_template(paths[0])  # refresh t0
    clock.advance(1)
    await cache.get_template(paths[2])

    assert cache.get_cached_templates() == sorted([paths[0], paths[2]])
    assert cache.get_stats().evictions == 1
    assert cache.get_stats().invalidations == 0


@pytest.mark.asyncio
async def test_size_limit_shrinks_to_eighty_percent(write_template: Callable[[str, str], str]) -> None:
    clock = FakeClock()
    # ~1000 byte limit, each file ~300 bytes
    config = CacheConfig(max_cache_size_mb=1000 / (1024 * 1024))
    cache = TemplateCacheService(config, clock=clock, memory_probe=lambda: 1.0)
    paths = [write_template(f"s{i}.yml", "v: " + "x" * 297 + "\n") for i in range(4)]

    for path in paths:
        await cache.get_template(path)
        clock.advance(1)

    stats = cache.get_stats()
    assert stats.total_size <= 800
    assert paths[-1] in cache
    assert paths[0] not in cache
    assert stats.evictions >= 1


@pytest.mark.asyncio
async def test_eviction_keeps_graph_for_cascade(write_template: Callable[[str, str], str]) -> None:
    """Evicting an include target must not forget who includes it."""
    a, b, _ = write_chain(write_template)
    clock = FakeClock()
    cache = TemplateCacheService(CacheConfig(max_entries=1), clock=clock, memory_probe=lambda: 1.0)

    await cache.get_template(b)
    clock.advance(1)
    await cache.get_template(a)  # evicts b

    assert b not in cache and a in cache
    assert cache.graph.dependents_of(b) == {a}
    assert cache.invalidate_template(b) == 1
    assert a not in cache


@pytest.mark.asyncio
async def test_cleanup_expired(write_template: Callable[[str, str], str]) -> None:
    clock = FakeClock()
    cache = TemplateCacheService(
        CacheConfig(max_age_seconds=100, cleanup_interval_seconds=1_000),
        clock=clock,
        memory_probe=lambda: 1.0,
    )
    old = write_template("old.yml", "a: 1\n")
    new = write_template("new.yml", "b: 2\n")
    await cache.get_template(old)
    clock.advance(90)
    await cache.get_template(new)
    clock.advance(20)

    assert cache.run_cleanup() == 1
    assert cache.get_cached_templates() == [new]
    assert cache.get_stats().evictions == 1


@pytest.mark.asyncio
async def test_cleanup_is_triggered_by_lookup_after_interval(write_template: Callable[[str, str], str]) -> None:
    clock = FakeClock()
    cache = TemplateCacheService(
        CacheConfig(max_age_seconds=10, cleanup_interval_seconds=5),
        clock=clock,
        memory_probe=lambda: 1.0,
    )
    stale = write_template("stale.yml", "a: 1\n")
    fresh = write_template("fresh.yml", "b: 2\n")
    await cache.get_template(stale)
    clock.advance(30)

    await cache.get_template(fresh)

    assert stale not in cache
    assert fresh in cache


@pytest.mark.asyncio
async def test_memory_pressure_runs_aggressive_cleanup(write_template: Callable[[str, str], str]) -> None:
    clock = FakeClock()
    config = CacheConfig(
        max_age_seconds=100,
        memory_pressure_threshold_mb=50,
        aggressive_retain_entries=2,
    )
    cache = TemplateCacheService(config, clock=clock, memory_probe=lambda: 500.0)
    paths = [write_template(f"m{i}.yml", f"v: {i}\n") for i in range(5)]

    await cache.get_template(paths[0])
    clock.advance(60)  # paths[0] idle for more than max_age / 2
    for path in paths[1:]:
        await cache.get_template(path)
        clock.advance(1)

    evicted = cache.run_cleanup()

    assert evicted == 3
    assert cache.get_cached_templates() == sorted(paths[3:])
    stats = cache.get_stats()
    assert stats.memory_usage_mb == 500.0
    assert stats.evictions == 3


# -----------------------------------------------------------------------------
# Preloading
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_preload_dependencies(write_template: Callable[[str, str], str]) -> None:
    a, b, c = write_chain(write_template)
    write_template("c.yml", "- $include:\n    template: a.yml\n")  # close a cycle
    cache = TemplateCacheService(
        CacheConfig(preload_dependencies=True), clock=FakeClock(), memory_probe=lambda: 1.0
    )

    await cache.get_template(a)

    assert cache.get_cached_templates() == sorted([a, b, c])
    assert cache.get_stats().misses == 3


@pytest.mark.asyncio
async def test_preload_skips_missing_dependency(write_template: Callable[[str, str], str]) -> None:
    a = write_template("a.yml", "- $include:\n    template: ghost.yml\n")
    cache = TemplateCacheService(
        CacheConfig(preload_dependencies=True), clock=FakeClock(), memory_probe=lambda: 1.0
    )

    await cache.get_template(a)
    assert cache.get_cached_templates() == [a]


# -----------------------------------------------------------------------------
# Introspection and lifecycle
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_template_info_snapshot(write_template: Callable[[str, str], str]) -> None:
    a, b, _ = write_chain(write_template)
    cache = make_cache()
    await cache.get_template(a)
    await cache.get_template(b)

    info = cache.get_template_info(b)

    assert info is not None
    assert info.dependents == {a}
    assert info.access_count == 1
    assert cache.get_template_info("/not/cached.yml") is None


@pytest.mark.asyncio
async def test_clear_resets_everything(write_template: Callable[[str, str], str]) -> None:
    a, _, _ = write_chain(write_template)
    cache = make_cache()
    await cache.get_template(a)
    await cache.get_template(a)

    cache.clear()

    stats = cache.get_stats()
    assert (stats.hits, stats.misses, stats.total_entries, stats.total_size) == (0, 0, 0, 0)
    assert cache.graph.nodes() == set()


@pytest.mark.asyncio
async def test_cleanup_timer_start_and_dispose(write_template: Callable[[str, str], str]) -> None:
    cache = TemplateCacheService(
        CacheConfig(cleanup_interval_seconds=0.01), memory_probe=lambda: 1.0
    )
    await cache.get_template(write_template("t.yml", "a: 1\n"))

    task = cache.start_cleanup_timer()
    assert cache.start_cleanup_timer() is task
    await asyncio.sleep(0.05)

    await cache.dispose()
    assert task.cancelled() or task.done()
    assert len(cache) == 0


@pytest.mark.asyncio
async def test_concurrent_lookups_share_entries(write_template: Callable[[str, str], str]) -> None:
    """Interleaved lookups of the same file end with one consistent entry."""
    a, b, c = write_chain(write_template)
    cache = make_cache()

    results = await asyncio.gather(*(cache.get_template(p) for p in (a, b, c, a, b, c)))

    assert len(cache) == 3
    assert all(r.parsed_data is not None for r in results)
    assert cache.graph.is_consistent()
