"""
Cache Invalidation Service

Event-driven cache invalidation with minimal scope.
Principle: Invalidate as narrowly as possible.

Events trigger targeted cache invalidation:
- PROFILE_UPDATED: Delete every cached analysis (all kinds) for the user
- ENRICHMENT_SWEEP: Delete unverified enrichment rows past the longest TTL
- ENRICHMENT_VERIFIED: Mark one enrichment row verified and rescore it
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence

from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.enrichment_cache import EnrichmentCache
from counsellor.database.models import utcnow

logger = logging.getLogger(__name__)


class CacheEvent(Enum):
    """Events that trigger cache invalidation."""

    # User lifecycle
    PROFILE_UPDATED = "profile_updated"

    # Enrichment maintenance
    ENRICHMENT_SWEEP = "enrichment_sweep"
    ENRICHMENT_VERIFIED = "enrichment_verified"


@dataclass
class InvalidationResult:
    """Result of a cache invalidation operation."""
    event: CacheEvent
    success: bool
    keys_invalidated: int
    duration_ms: float
    errors: List[str] = field(default_factory=list)


class CacheInvalidator:
    """
    Routes invalidation events to the caches they affect.

    Each event type has a specific invalidation scope.
    """

    def __init__(
        self,
        enrichment_cache: Optional[EnrichmentCache] = None,
        analysis_caches: Sequence[AnalysisCache] = (),
    ):
        self.enrichment_cache = enrichment_cache
        self.analysis_caches = list(analysis_caches)

    async def handle_event(
        self,
        event: CacheEvent,
        user_id: Optional[str] = None,
        university_name: Optional[str] = None,
        country: Optional[str] = None,
        verified_by: Optional[str] = None,
    ) -> InvalidationResult:
        """
        Handle cache invalidation for an event.

        Raises:
            ValueError: required identifiers for the event are missing
        """
        start_time = utcnow()
        errors: List[str] = []
        keys_invalidated = 0

        logger.info(f"Cache invalidation event: {event.value}, user={user_id}")

        if event == CacheEvent.PROFILE_UPDATED:
            if not user_id:
                raise ValueError("PROFILE_UPDATED requires user_id")
            # Profile mapping changed - every fit assessment is now suspect
            for cache in self.analysis_caches:
                deleted = await cache.invalidate_all(user_id)
                if deleted is None:
                    errors.append(f"Failed to invalidate {cache.kind} analyses for {user_id}")
                else:
                    keys_invalidated += deleted

        elif event == CacheEvent.ENRICHMENT_SWEEP:
            if self.enrichment_cache is None:
                errors.append("No enrichment cache configured")
            else:
                deleted = await self.enrichment_cache.sweep_expired()
                if deleted is None:
                    errors.append("Enrichment sweep failed")
                else:
                    keys_invalidated += deleted

        elif event == CacheEvent.ENRICHMENT_VERIFIED:
            if not university_name or not country:
                raise ValueError("ENRICHMENT_VERIFIED requires university_name and country")
            if self.enrichment_cache is None:
                errors.append("No enrichment cache configured")
            elif await self.enrichment_cache.mark_verified(university_name, country, verified_by):
                keys_invalidated += 1
            else:
                errors.append(f"{university_name}, {country} is not cached")

        duration = (utcnow() - start_time).total_seconds() * 1000

        result = InvalidationResult(
            event=event,
            success=len(errors) == 0,
            keys_invalidated=keys_invalidated,
            duration_ms=duration,
            errors=errors,
        )

        logger.info(
            f"Invalidation complete: {keys_invalidated} keys, duration: {duration:.2f}ms"
        )
        if errors:
            logger.warning(f"Invalidation {event.value} incomplete: {errors}")

        return result
