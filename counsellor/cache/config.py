"""
Cache Configuration

Centralized configuration for the caching layer.
TTLs decide when a cached enrichment or analysis must be recomputed.

Note: Both caches live in the application database (enrichment_cache
and ai_analysis_cache tables). No Redis required.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta
from functools import lru_cache


@dataclass(frozen=True)
class CacheTTL:
    """
    Cache TTL configuration by record tier.

    Enrichment rows are tiered by trust: admin-verified facts live the
    longest, hand-entered ones next, machine-generated ones the shortest.
    The sweep deletes unverified rows older than the longest tier.
    """

    # University enrichment
    ENRICHMENT_VERIFIED: timedelta = timedelta(days=30)
    ENRICHMENT_MANUAL: timedelta = timedelta(days=14)
    ENRICHMENT_AI: timedelta = timedelta(days=7)

    # Per-user analyses
    DISCOVERY_ANALYSIS: timedelta = timedelta(days=7)
    SHORTLIST_ANALYSIS: timedelta = timedelta(days=7)

    @classmethod
    def for_enrichment(cls, source: str, is_verified: bool) -> timedelta:
        """Get TTL for an enrichment row."""
        if is_verified:
            return cls.ENRICHMENT_VERIFIED
        if (source or "").upper() == "MANUAL":
            return cls.ENRICHMENT_MANUAL
        return cls.ENRICHMENT_AI

    @classmethod
    def longest_enrichment(cls) -> timedelta:
        return max(cls.ENRICHMENT_VERIFIED, cls.ENRICHMENT_MANUAL, cls.ENRICHMENT_AI)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass
class CacheConfig:
    """
    Main cache configuration.

    Settings can be overridden via environment variables:
    - CACHE_ENABLED: Enable/disable cache reads and writes globally
    - CACHE_SINGLE_FLIGHT: Share one LLM call between concurrent misses
    - ENRICHMENT_BATCH_LIMIT: Max entities sent to the model per batch
    - ENRICHMENT_CONCURRENCY: Window size for concurrent enrichment
    """

    # Global cache toggle
    enabled: bool = field(default_factory=lambda: _env_bool("CACHE_ENABLED", "true"))

    # Concurrent misses on one key share a single computation
    single_flight: bool = field(default_factory=lambda: _env_bool("CACHE_SINGLE_FLIGHT", "false"))

    # Batch prompt cap
    batch_limit: int = field(default_factory=lambda: int(os.getenv(
        "ENRICHMENT_BATCH_LIMIT",
        "50"
    )))

    # Concurrent enrichment window
    concurrency: int = field(default_factory=lambda: int(os.getenv(
        "ENRICHMENT_CONCURRENCY",
        "10"
    )))


@lru_cache(maxsize=1)
def get_cache_config() -> CacheConfig:
    """Get singleton cache configuration."""
    return CacheConfig()
