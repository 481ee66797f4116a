"""
Pytest Configuration and Shared Fixtures

Provides common fixtures and configuration for all test modules.
"""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict
from unittest.mock import MagicMock, AsyncMock

from counsellor.analysis.defaults import DISCOVERY_SECTIONS, SHORTLIST_SECTIONS
from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.config import CacheConfig, CacheTTL
from counsellor.cache.enrichment_cache import EnrichmentCache
from counsellor.database.session import create_db_engine, get_session_factory, init_db
from counsellor.llm.router import LLMRouter, LLMResponse, SOURCE_TAGS


# ============================================================================
# Clock
# ============================================================================

class FrozenClock:
    """Controllable clock for TTL tests."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc))


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine with cache tables."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'cache.db'}")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return get_session_factory(db_engine)


@pytest.fixture
def cache_config() -> CacheConfig:
    """Explicit config so tests never depend on the environment."""
    return CacheConfig(enabled=True, single_flight=False, batch_limit=50, concurrency=10)


@pytest.fixture
def enrichment_cache(session_factory, cache_config, clock) -> EnrichmentCache:
    return EnrichmentCache(session_factory, config=cache_config, clock=clock)


@pytest.fixture
def discovery_cache(session_factory, cache_config, clock) -> AnalysisCache:
    return AnalysisCache(
        session_factory, "discovery", DISCOVERY_SECTIONS, CacheTTL.DISCOVERY_ANALYSIS,
        config=cache_config, clock=clock,
    )


@pytest.fixture
def shortlist_cache(session_factory, cache_config, clock) -> AnalysisCache:
    return AnalysisCache(
        session_factory, "shortlist", SHORTLIST_SECTIONS, CacheTTL.SHORTLIST_ANALYSIS,
        config=cache_config, clock=clock,
    )


# ============================================================================
# Mock LLM Router
# ============================================================================

@pytest.fixture
def llm_response():
    """Factory for successful router responses."""
    def _make(text: str = "", data: Any = None, provider: str = "GEMINI") -> LLMResponse:
        return LLMResponse(
            text=text,
            data=data,
            provider=provider,
            model="test-model",
            source_tag=SOURCE_TAGS[provider],
        )
    return _make


@pytest.fixture
def unavailable_response() -> LLMResponse:
    return LLMResponse(
        text="I'm having trouble connecting to my AI services. Please check your connection.",
        error=True,
        error_type="all_providers_unavailable",
    )


@pytest.fixture
def mock_router(llm_response):
    """Mock LLMRouter; set router.generate.return_value/side_effect per test."""
    router = MagicMock(spec=LLMRouter)
    router.generate = AsyncMock(return_value=llm_response("{}", data={}))
    return router


# ============================================================================
# Domain Data Fixtures
# ============================================================================

@pytest.fixture
def full_enrichment() -> Dict[str, Any]:
    """Payload with every confidence field populated."""
    return {
        "name": "Technical University of Munich",
        "country": "Germany",
        "city": "Munich",
        "domain": "tum.de",
        "tuition_estimate": 1500,
        "acceptance_rate": 8.0,
        "rank": 37,
        "description": "Leading German technical university.",
    }


@pytest.fixture
def student_profile() -> Dict[str, Any]:
    return {
        "gpa": 3.7,
        "field_of_study": "Computer Science",
        "budget_max": 30000,
        "preferred_countries": ["Germany", "Canada"],
        "gre_score": 320,
        "ielts_score": 7.5,
    }


@pytest.fixture
def universities():
    return [
        {"id": "uni-1", "name": "University of Toronto", "country": "Canada", "tuition_estimate": 45000},
        {"id": "uni-2", "name": "RWTH Aachen", "country": "Germany", "tuition_estimate": 1500},
        {"id": "uni-3", "name": "University of Melbourne", "country": "Australia"},
    ]


@pytest.fixture
def discovery_analysis() -> Dict[str, Any]:
    """Complete discovery analysis as a model would return it."""
    return {
        "profile_fit": {"reasons": ["Strong CS program", "GPA above median"], "score": 78},
        "budget_analysis": {"tuition": 1500, "user_budget": 30000, "within_budget": True, "gap": 0,
                            "recommendation": "Affordable"},
        "country_preference": {"matches": True, "message": "Germany is in your preferences"},
        "acceptance_score": {"percentage": 45, "category": "TARGET", "reasoning": "Competitive"},
        "risk_level": "medium",
        "cost_level": "low",
    }


# ============================================================================
# Test Markers
# ============================================================================

def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
