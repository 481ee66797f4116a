"""
Caching Layer

Database-backed caches for university enrichment and per-user
analyses, plus invalidation events and opt-in single-flight.

Usage:
    from counsellor.cache import EnrichmentCache, CacheTTL

    cache = EnrichmentCache(session_factory)
    cached = await cache.lookup("ETH Zurich", "Switzerland")
"""

from counsellor.cache.config import CacheTTL, CacheConfig, get_cache_config
from counsellor.cache.base import SqlCache, CacheIOError, as_utc
from counsellor.cache.enrichment_cache import EnrichmentCache, CACHE_META_KEY, clean_payload
from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.single_flight import SingleFlight
from counsellor.cache.invalidation import CacheEvent, CacheInvalidator, InvalidationResult

__all__ = [
    # Config
    "CacheTTL",
    "CacheConfig",
    "get_cache_config",
    # Base
    "SqlCache",
    "CacheIOError",
    "as_utc",
    # Caches
    "EnrichmentCache",
    "CACHE_META_KEY",
    "clean_payload",
    "AnalysisCache",
    # Coalescing
    "SingleFlight",
    # Invalidation
    "CacheEvent",
    "CacheInvalidator",
    "InvalidationResult",
]
