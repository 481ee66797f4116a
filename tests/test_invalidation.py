"""
Tests for Event-Driven Cache Invalidation
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from counsellor.analysis.defaults import default_shortlist_analysis
from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.config import CacheTTL
from counsellor.cache.enrichment_cache import CACHE_META_KEY, EnrichmentCache
from counsellor.cache.invalidation import CacheEvent, CacheInvalidator


@pytest.fixture
def invalidator(enrichment_cache, discovery_cache, shortlist_cache):
    return CacheInvalidator(enrichment_cache, [discovery_cache, shortlist_cache])


def locked_session_factory():
    def factory():
        session = MagicMock()
        session.query.side_effect = OperationalError("DELETE", {}, Exception("database is locked"))
        return session
    return factory


class TestProfileUpdated:

    @pytest.mark.asyncio
    async def test_clears_every_analysis_kind(
        self, invalidator, discovery_cache, shortlist_cache, discovery_analysis,
    ):
        await discovery_cache.store("user-1", "uni-1", discovery_analysis)
        await discovery_cache.store("user-1", "uni-2", discovery_analysis)
        await shortlist_cache.store("user-1", "uni-1", default_shortlist_analysis())
        await discovery_cache.store("user-2", "uni-1", discovery_analysis)

        result = await invalidator.handle_event(CacheEvent.PROFILE_UPDATED, user_id="user-1")

        assert result.success
        assert result.event == CacheEvent.PROFILE_UPDATED
        assert result.keys_invalidated == 3
        assert result.duration_ms >= 0
        assert await discovery_cache.lookup("user-2", "uni-1", has_profile=True) is not None

    @pytest.mark.asyncio
    async def test_store_failure_is_reported(self, cache_config, shortlist_cache):
        broken = AnalysisCache(
            locked_session_factory(), "discovery", ("summary",), CacheTTL.DISCOVERY_ANALYSIS,
            config=cache_config,
        )
        invalidator = CacheInvalidator(analysis_caches=[broken, shortlist_cache])

        result = await invalidator.handle_event(CacheEvent.PROFILE_UPDATED, user_id="u1")

        assert not result.success
        assert result.keys_invalidated == 0
        assert len(result.errors) == 1
        assert "discovery" in result.errors[0]
        assert broken.get_stats()["errors"] == 1

    @pytest.mark.asyncio
    async def test_requires_user_id(self, invalidator):
        with pytest.raises(ValueError):
            await invalidator.handle_event(CacheEvent.PROFILE_UPDATED)


class TestEnrichmentEvents:

    @pytest.mark.asyncio
    async def test_sweep(self, invalidator, enrichment_cache, clock):
        await enrichment_cache.store("Old U", "Canada", {"city": "x"})
        clock.advance(days=40)

        result = await invalidator.handle_event(CacheEvent.ENRICHMENT_SWEEP)

        assert result.success
        assert result.keys_invalidated == 1

    @pytest.mark.asyncio
    async def test_sweep_failure_is_reported(self, cache_config):
        invalidator = CacheInvalidator(EnrichmentCache(locked_session_factory(), config=cache_config))

        result = await invalidator.handle_event(CacheEvent.ENRICHMENT_SWEEP)

        assert not result.success
        assert result.errors == ["Enrichment sweep failed"]

    @pytest.mark.asyncio
    async def test_verify(self, invalidator, enrichment_cache):
        await enrichment_cache.store("KTH", "Sweden", {"city": "Stockholm"})

        result = await invalidator.handle_event(
            CacheEvent.ENRICHMENT_VERIFIED,
            university_name="KTH", country="Sweden", verified_by="admin",
        )

        assert result.success
        assert result.keys_invalidated == 1
        cached = await enrichment_cache.lookup("KTH", "Sweden")
        assert cached[CACHE_META_KEY]["is_verified"] is True

    @pytest.mark.asyncio
    async def test_verify_missing_record(self, invalidator):
        result = await invalidator.handle_event(
            CacheEvent.ENRICHMENT_VERIFIED, university_name="Ghost U", country="Nowhere",
        )

        assert not result.success
        assert result.keys_invalidated == 0
        assert "not cached" in result.errors[0]

    @pytest.mark.asyncio
    async def test_verify_requires_identity(self, invalidator):
        with pytest.raises(ValueError):
            await invalidator.handle_event(CacheEvent.ENRICHMENT_VERIFIED, university_name="KTH")

    @pytest.mark.asyncio
    async def test_no_enrichment_cache(self, discovery_cache):
        invalidator = CacheInvalidator(analysis_caches=[discovery_cache])

        result = await invalidator.handle_event(CacheEvent.ENRICHMENT_SWEEP)

        assert not result.success
        assert result.errors == ["No enrichment cache configured"]
