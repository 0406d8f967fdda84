from __future__ import annotations

"""
Template Cache Service.

In-memory, dependency-aware cache of parsed template files. Entries are
keyed by absolute path and validated against the file's mtime on every
lookup. Invalidation cascades through the reverse edges of the dependency
graph, so editing a deeply nested include drops every template that
(transitively) includes it even though their own files did not change.

Resource usage is bounded by entry count, aggregate content size, entry age
and a process memory-pressure threshold. Cleanup is cache-triggered and can
additionally be scheduled on the running event loop.
"""

import asyncio
import logging
import os
import time
from typing import Callable, Dict, List, Optional, Set

import psutil

from textui_templates.core.services.dependency_tracker import (
    DependencyGraph,
    extract_dependencies,
    extract_dependencies_from_text,
)
from textui_templates.core.services.loader import (
    LoadedDocument,
    parse_document,
    read_document,
    stat_mtime,
)
from textui_templates.domain.cache_models import (
    MB,
    CacheConfig,
    CacheEntry,
    CacheStats,
    TemplateInfo,
)
from textui_templates.domain.errors import TemplateFileNotFoundError, TemplateParseError

logger = logging.getLogger(__name__)

# Fraction of the size limit standard cleanup shrinks down to
_STANDARD_CLEANUP_TARGET = 0.8
# I/O attempts before a read failure surfaces as FileNotFound
_IO_ATTEMPTS = 2


def process_memory_mb() -> float:
    """Resident set size of the current process in megabytes."""
    return psutil.Process(os.getpid()).memory_info().rss / MB


class TemplateCacheService:
    """
    Parsed-template store with cascading, graph-based invalidation.

    The cache is an explicit object: the host builds one and hands it to
    every TemplateParser that should share it. Statistics are per instance.
    """

    def __init__(
            self,
            config: Optional[CacheConfig] = None,
            *,
            clock: Callable[[], float] = time.time,
            memory_probe: Callable[[], float] = process_memory_mb,
    ) -> None:
        """
        Initialize an empty cache.

        Args:
            config: Resource limits. Defaults to CacheConfig().
            clock: Wall-clock source in seconds (injectable for tests).
            memory_probe: Returns current process memory in MB.
        """
        self._config = config or CacheConfig()
        self._clock = clock
        self._memory_probe = memory_probe

        self._entries: Dict[str, CacheEntry] = {}
        self._graph = DependencyGraph()
        self._total_size = 0

        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._evictions = 0
        self._memory_usage_mb = 0.0

        self._last_cleanup = self._clock()
        self._cleanup_running = False
        self._cleanup_task: Optional[asyncio.Task] = None

    @property
    def config(self) -> CacheConfig:
        return self._config

    @property
    def graph(self) -> DependencyGraph:
        return self._graph

    # -------------------------------------------------------------------------
    # LOOKUP
    # -------------------------------------------------------------------------

    async def get_template(self, path: str) -> CacheEntry:
        """
        Return the cache entry for a template file, loading it if needed.

        A present entry whose stored mtime still matches the file is a hit.
        Anything else is a miss: the file is read, parsed and its static
        dependencies extracted. A stale reload also invalidates every
        transitive dependent.

        Args:
            path: Template file path (normalized to absolute).

        Returns:
            CacheEntry: Current entry. A parse failure is returned as an entry
            with parsed_data None and parse_error set.

        Raises:
            TemplateFileNotFoundError: When the file cannot be read after one
            retry, or a cached file has disappeared.
        """
        abs_path = os.path.abspath(path)
        self._maybe_cleanup()

        stale = False
        if abs_path in self._entries:
            try:
                mtime = await self._stat_with_retry(abs_path)
            except OSError as e:
                logger.info(f"Cached template disappeared: {abs_path}")
                self.invalidate_template(abs_path)
                raise TemplateFileNotFoundError(abs_path, str(e)) from e

            # Another expansion may have replaced or dropped the entry while
            # this one was suspended on the stat call
            entry = self._entries.get(abs_path)
            if entry is not None and entry.last_modified == mtime:
                self._hits += 1
                entry.touch(self._clock())
                logger.debug(f"Cache hit: {abs_path}")
                return entry
            stale = entry is not None

        self._misses += 1
        entry = await self._load(abs_path)

        if stale:
            logger.debug(f"Cache entry stale, reloaded: {abs_path}")
            self._invalidate_dependents(abs_path)
        else:
            logger.debug(f"Cache miss: {abs_path}")

        if self._config.preload_dependencies and entry.dependencies:
            await self._preload(entry, {abs_path})

        return entry

    def peek(self, path: str) -> Optional[CacheEntry]:
        """Return the stored entry without touching statistics or the disk."""
        return self._entries.get(os.path.abspath(path))

    def __contains__(self, path: object) -> bool:
        return isinstance(path, str) and os.path.abspath(path) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    # -------------------------------------------------------------------------
    # INVALIDATION
    # -------------------------------------------------------------------------

    def invalidate_template(self, path: str) -> int:
        """
        Remove a template and, transitively, every template that includes it.

        The cascade follows the dependency graph even when path itself is not
        cached (a file watcher may report a change to a file that was only
        ever seen as an include target). Cycle-safe.

        Args:
            path: Template file path.

        Returns:
            int: Number of entries removed. Each removal counts as one
            invalidation in the statistics.
        """
        abs_path = os.path.abspath(path)
        targets = [abs_path] + self._graph.transitive_dependents(abs_path)

        removed = 0
        for target in targets:
            if self._remove_entry(target):
                removed += 1
        self._invalidations += removed

        if removed:
            logger.debug(f"Invalidated {removed} template(s) starting at {abs_path}")
        return removed

    def clear(self) -> None:
        """Drop every entry, the dependency graph and all counters."""
        self._entries.clear()
        self._graph.clear()
        self._total_size = 0
        self._hits = 0
        self._misses = 0
        self._invalidations = 0
        self._evictions = 0
        self._memory_usage_mb = 0.0
        logger.info("Template cache cleared.")

    def _invalidate_dependents(self, path: str) -> None:
        removed = 0
        for dependent in self._graph.transitive_dependents(path):
            if self._remove_entry(dependent):
                removed += 1
        self._invalidations += removed

    # -------------------------------------------------------------------------
    # INTROSPECTION
    # -------------------------------------------------------------------------

    def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=self._hits,
            misses=self._misses,
            invalidations=self._invalidations,
            evictions=self._evictions,
            total_entries=len(self._entries),
            total_size=self._total_size,
            memory_usage_mb=self._memory_usage_mb,
        )

    def get_template_info(self, path: str) -> Optional[TemplateInfo]:
        """Snapshot of one entry with its dependents, or None if not cached."""
        abs_path = os.path.abspath(path)
        entry = self._entries.get(abs_path)
        if entry is None:
            return None
        return TemplateInfo.from_entry(entry, self._graph.dependents_of(abs_path))

    def get_cached_templates(self) -> List[str]:
        return sorted(self._entries)

    # -------------------------------------------------------------------------
    # LOADING
    # -------------------------------------------------------------------------

    async def _load(self, abs_path: str) -> CacheEntry:
        document = await self._read_with_retry(abs_path)
        entry = self._build_entry(document)
        self._store(entry)
        return entry

    async def _read_with_retry(self, abs_path: str) -> LoadedDocument:
        last_error: Optional[OSError] = None
        for attempt in range(1, _IO_ATTEMPTS + 1):
            try:
                return await read_document(abs_path)
            except UnicodeDecodeError as e:
                raise TemplateFileNotFoundError(abs_path, f"not UTF-8 text: {e.reason}") from e
            except OSError as e:
                last_error = e
                logger.debug(f"Read attempt {attempt} failed for {abs_path}: {e}")
        detail = last_error.strerror if last_error and last_error.strerror else str(last_error)
        raise TemplateFileNotFoundError(abs_path, detail) from last_error

    async def _stat_with_retry(self, abs_path: str) -> int:
        try:
            return await stat_mtime(abs_path)
        except OSError as e:
            logger.debug(f"Stat failed for {abs_path}, retrying: {e}")
            return await stat_mtime(abs_path)

    def _build_entry(self, document: LoadedDocument) -> CacheEntry:
        now = self._clock()
        parse_error: Optional[str] = None
        try:
            parsed = parse_document(document.content, document.path)
            dependencies = extract_dependencies(parsed, document.path)
        except TemplateParseError as e:
            logger.warning(f"Template failed to parse, caching error: {document.path}: {e.detail}")
            parsed = None
            parse_error = _format_parse_error(e)
            dependencies = extract_dependencies_from_text(document.content, document.path)

        return CacheEntry(
            file_path=document.path,
            content=document.content,
            parsed_data=parsed,
            last_modified=document.last_modified,
            cached_at=now,
            dependencies=frozenset(dependencies),
            size=document.size,
            parse_error=parse_error,
            access_count=1,
            last_accessed=now,
        )

    def _store(self, entry: CacheEntry) -> None:
        previous = self._entries.get(entry.file_path)
        if previous is not None:
            self._total_size -= previous.size
        self._entries[entry.file_path] = entry
        self._total_size += entry.size
        self._graph.set_dependencies(entry.file_path, entry.dependencies)
        self._enforce_limits(protect=entry.file_path)

    async def _preload(self, entry: CacheEntry, loading: Set[str]) -> None:
        for dependency in sorted(entry.dependencies):
            if dependency in loading or dependency in self._entries:
                continue
            loading.add(dependency)
            try:
                document = await self._read_with_retry(dependency)
            except TemplateFileNotFoundError:
                logger.debug(f"Skipping preload of missing dependency: {dependency}")
                continue
            self._misses += 1
            child = self._build_entry(document)
            self._store(child)
            await self._preload(child, loading)

    def _remove_entry(self, path: str) -> bool:
        entry = self._entries.pop(path, None)
        self._graph.remove_node(path)
        if entry is None:
            return False
        self._total_size -= entry.size
        return True

    # -------------------------------------------------------------------------
    # CLEANUP
    # -------------------------------------------------------------------------

    def run_cleanup(self) -> int:
        """
        Run one cleanup pass.

        Sweeps expired entries, then either performs an aggressive cleanup
        when process memory is above the pressure threshold or a standard
        LRU cleanup when the cache is over its limits.

        Returns:
            int: Number of entries evicted. Zero when a pass is already running.
        """
        if self._cleanup_running:
            return 0

        self._cleanup_running = True
        try:
            self._last_cleanup = self._clock()
            evicted = self.cleanup_expired()

            self._memory_usage_mb = self._memory_probe()
            if self._memory_usage_mb > self._config.memory_pressure_threshold_mb:
                logger.info(
                    f"Memory pressure detected ({self._memory_usage_mb:.1f}MB > "
                    f"{self._config.memory_pressure_threshold_mb}MB), running aggressive cleanup"
                )
                evicted += self._aggressive_cleanup()
            else:
                evicted += self._enforce_limits()
            return evicted
        finally:
            self._cleanup_running = False

    def cleanup_expired(self) -> int:
        """Evict entries cached longer than max_age_seconds."""
        cutoff = self._clock() - self._config.max_age_seconds
        expired = [p for p, e in self._entries.items() if e.cached_at < cutoff]
        for path in expired:
            self._evict(path)
        if expired:
            logger.debug(f"Expired {len(expired)} template cache entries")
        return len(expired)

    def _maybe_cleanup(self) -> None:
        if self._clock() - self._last_cleanup >= self._config.cleanup_interval_seconds:
            self.run_cleanup()

    def _enforce_limits(self, protect: Optional[str] = None) -> int:
        over_count = len(self._entries) > self._config.max_entries
        over_size = self._total_size > self._config.max_cache_size_bytes
        if not over_count and not over_size:
            return 0

        target_size = self._config.max_cache_size_bytes * _STANDARD_CLEANUP_TARGET
        evicted = 0
        for path in self._lru_order():
            if path == protect:
                continue
            if len(self._entries) <= self._config.max_entries and self._total_size <= target_size:
                break
            self._evict(path)
            evicted += 1

        if evicted:
            logger.info(f"Standard cleanup evicted {evicted} template cache entries")
        return evicted

    def _aggressive_cleanup(self) -> int:
        idle_cutoff = self._clock() - self._config.max_age_seconds * 0.5
        evicted = 0
        for path in [p for p, e in self._entries.items() if e.last_accessed < idle_cutoff]:
            self._evict(path)
            evicted += 1

        for path in self._lru_order():
            if len(self._entries) <= self._config.aggressive_retain_entries:
                break
            self._evict(path)
            evicted += 1

        logger.info(f"Aggressive cleanup evicted {evicted} template cache entries")
        return evicted

    def _lru_order(self) -> List[str]:
        return sorted(self._entries, key=lambda p: self._entries[p].last_accessed)

    def _evict(self, path: str) -> None:
        if self._remove_entry(path):
            self._evictions += 1

    # -------------------------------------------------------------------------
    # BACKGROUND TIMER
    # -------------------------------------------------------------------------

    def start_cleanup_timer(self) -> asyncio.Task:
        """
        Schedule periodic cleanup on the running event loop.

        Idempotent: returns the existing task when one is already active.

        Raises:
            RuntimeError: When called without a running event loop.
        """
        if self._cleanup_task is not None and not self._cleanup_task.done():
            return self._cleanup_task
        self._cleanup_task = asyncio.get_running_loop().create_task(self._cleanup_loop())
        return self._cleanup_task

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.cleanup_interval_seconds)
            try:
                self.run_cleanup()
            except Exception as e:
                logger.error(f"Scheduled template cache cleanup failed: {e}")

    async def dispose(self) -> None:
        """Cancel the background cleanup task and drop all entries."""
        task, self._cleanup_task = self._cleanup_task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.clear()


def _format_parse_error(error: TemplateParseError) -> str:
    if error.line is not None:
        return f"{error.detail} (line {error.line}, column {error.column})"
    return error.detail
