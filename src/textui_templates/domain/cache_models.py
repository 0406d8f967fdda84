from __future__ import annotations

"""
Template Cache Domain Models.

Defines the cache entry stored per template file, the read-only snapshots
handed out to introspection callers, the statistics counters, and the
bounded-resource settings of the cache.
"""

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Optional

MB = 1024 * 1024


# -----------------------------------------------------------------------------
# CACHE ENTRY
# -----------------------------------------------------------------------------
@dataclass
class CacheEntry:
    """
    One parsed template file.

    Attributes:
        file_path: Absolute path (identity key).
        content: Raw text as last read.
        parsed_data: Structural parse, or None when parsing failed.
        last_modified: Filesystem mtime (ns) captured at load time.
        cached_at: Wall-clock time the entry was stored.
        dependencies: Absolute paths referenced by static `$include` directives.
        size: UTF-8 byte length of content.
        parse_error: Parser message when parsed_data is None because of an error.
        access_count: 1 on load, incremented on every cache hit.
        last_accessed: Wall-clock time of the last load or hit.
    """
    file_path: str
    content: str
    parsed_data: Any
    last_modified: int
    cached_at: float
    dependencies: FrozenSet[str] = frozenset()
    size: int = 0
    parse_error: Optional[str] = None
    access_count: int = 1
    last_accessed: float = 0.0

    @property
    def is_parsed(self) -> bool:
        return self.parse_error is None

    def touch(self, now: float) -> None:
        self.access_count += 1
        self.last_accessed = now


@dataclass(frozen=True)
class TemplateInfo:
    """Immutable snapshot of an entry plus its graph neighbourhood."""
    file_path: str
    size: int
    last_modified: int
    cached_at: float
    access_count: int
    last_accessed: float
    dependencies: FrozenSet[str]
    dependents: FrozenSet[str]
    parse_error: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: CacheEntry, dependents: FrozenSet[str]) -> TemplateInfo:
        return cls(
            file_path=entry.file_path,
            size=entry.size,
            last_modified=entry.last_modified,
            cached_at=entry.cached_at,
            access_count=entry.access_count,
            last_accessed=entry.last_accessed,
            dependencies=entry.dependencies,
            dependents=dependents,
            parse_error=entry.parse_error,
        )


# -----------------------------------------------------------------------------
# STATISTICS
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class CacheStats:
    hits: int = 0
    misses: int = 0
    invalidations: int = 0
    evictions: int = 0
    total_entries: int = 0
    total_size: int = 0
    memory_usage_mb: float = 0.0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hit_rate,
            "invalidations": self.invalidations,
            "evictions": self.evictions,
            "total_entries": self.total_entries,
            "total_size": self.total_size,
            "memory_usage_mb": round(self.memory_usage_mb, 2),
        }


# -----------------------------------------------------------------------------
# SETTINGS
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class CacheConfig:
    """
    Bounded-resource policy of the template cache.

    Attributes:
        max_cache_size_mb: Aggregate content size limit.
        max_entries: Entry count limit.
        max_age_seconds: Entries older than this are swept by cleanup.
        cleanup_interval_seconds: Minimum spacing between scheduled sweeps.
        memory_pressure_threshold_mb: Process RSS that triggers aggressive cleanup.
        aggressive_retain_entries: Entries kept after an aggressive cleanup.
        preload_dependencies: Eagerly load static dependencies on a miss.
    """
    max_cache_size_mb: float = 50.0
    max_entries: int = 1000
    max_age_seconds: float = 30 * 60
    cleanup_interval_seconds: float = 5 * 60
    memory_pressure_threshold_mb: float = 100.0
    aggressive_retain_entries: int = 100
    preload_dependencies: bool = False

    @property
    def max_cache_size_bytes(self) -> int:
        return int(self.max_cache_size_mb * MB)

    @classmethod
    def from_dict(cls, cfg: Dict[str, Any]) -> CacheConfig:
        """
        Build settings from a (validated) configuration dictionary.

        Unknown keys are ignored; missing keys keep their defaults.
        """
        defaults = cls()
        return cls(
            max_cache_size_mb=float(cfg.get("cache_max_size_mb", defaults.max_cache_size_mb)),
            max_entries=int(cfg.get("cache_max_entries", defaults.max_entries)),
            max_age_seconds=float(cfg.get("cache_max_age_seconds", defaults.max_age_seconds)),
            cleanup_interval_seconds=float(
                cfg.get("cache_cleanup_interval_seconds", defaults.cleanup_interval_seconds)
            ),
            memory_pressure_threshold_mb=float(
                cfg.get("cache_memory_pressure_threshold_mb", defaults.memory_pressure_threshold_mb)
            ),
            aggressive_retain_entries=int(
                cfg.get("cache_aggressive_retain_entries", defaults.aggressive_retain_entries)
            ),
            preload_dependencies=bool(
                cfg.get("cache_preload_dependencies", defaults.preload_dependencies)
            ),
        )
