"""
Counsellor Core

Composition root: builds every component from Settings and exposes the
operations calling features use (enrichment, analyses, guidance,
invalidation). Holds the only references to the HTTP clients and the
database engine, and closes them.

Usage:
    core = CounsellorCore.from_settings()
    data = await core.enrich("University of Toronto", "Canada")
    await core.close()
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import httpx
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from counsellor.analysis.batch import BatchAnalyzer
from counsellor.analysis.defaults import DISCOVERY_SECTIONS, SHORTLIST_SECTIONS
from counsellor.analysis.discovery import DiscoveryAnalyzer
from counsellor.analysis.guidance import GuidanceGenerator
from counsellor.analysis.shortlist import ShortlistAnalyzer
from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.config import CacheConfig, CacheTTL, get_cache_config
from counsellor.cache.enrichment_cache import EnrichmentCache
from counsellor.cache.invalidation import CacheEvent, CacheInvalidator, InvalidationResult
from counsellor.cache.single_flight import SingleFlight
from counsellor.database.session import create_db_engine, get_session_factory, init_db
from counsellor.enrichment.batch import BatchEnricher
from counsellor.enrichment.enricher import UniversityEnricher
from counsellor.llm.providers import GeminiClient, GroqClient
from counsellor.llm.router import LLMRouter, LLMResponse, RoutingPolicy
from counsellor.utils.config import Settings, get_settings, load_key_pools

logger = logging.getLogger(__name__)


class CounsellorCore:
    """Wires caches, LLM router, enrichers and analyzers together."""

    def __init__(
        self,
        router: LLMRouter,
        session_factory: sessionmaker,
        config: Optional[CacheConfig] = None,
        enrichment_model: Optional[str] = None,
        engine: Optional[Engine] = None,
    ):
        self.router = router
        self.config = config or get_cache_config()
        self._engine = engine

        self.single_flight = SingleFlight() if self.config.single_flight else None

        self.enrichment_cache = EnrichmentCache(session_factory, config=self.config)
        self.discovery_cache = AnalysisCache(
            session_factory, "discovery", DISCOVERY_SECTIONS, CacheTTL.DISCOVERY_ANALYSIS,
            config=self.config,
        )
        self.shortlist_cache = AnalysisCache(
            session_factory, "shortlist", SHORTLIST_SECTIONS, CacheTTL.SHORTLIST_ANALYSIS,
            config=self.config,
        )

        enricher_kwargs = {"model": enrichment_model} if enrichment_model else {}
        self.enricher = UniversityEnricher(
            router, self.enrichment_cache, config=self.config,
            single_flight=self.single_flight, **enricher_kwargs,
        )
        self.batch_enricher = BatchEnricher(router, self.enrichment_cache, config=self.config)
        self.discovery = DiscoveryAnalyzer(
            router, self.discovery_cache, config=self.config, single_flight=self.single_flight,
        )
        self.shortlist = ShortlistAnalyzer(
            router, self.shortlist_cache, config=self.config, single_flight=self.single_flight,
        )
        self.batch_analyzer = BatchAnalyzer(router, self.discovery_cache, config=self.config)
        self.guidance = GuidanceGenerator(router)
        self.invalidator = CacheInvalidator(
            self.enrichment_cache, [self.discovery_cache, self.shortlist_cache],
        )

    @classmethod
    def from_settings(
        cls,
        settings: Optional[Settings] = None,
        config: Optional[CacheConfig] = None,
        session_factory: Optional[sessionmaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        create_tables: bool = True,
    ) -> "CounsellorCore":
        """
        Build the full core from process configuration.

        Args:
            settings: Settings (defaults to get_settings())
            config: Cache configuration (defaults to get_cache_config())
            session_factory: Existing session factory; when omitted an
                engine is created from DATABASE_URL
            transport: Optional httpx transport shared by both vendors
            create_tables: Create cache tables on a new engine
        """
        settings = settings or get_settings()
        pools = load_key_pools(settings)

        gemini = GeminiClient(
            pools["GEMINI"],
            default_model=settings.GEMINI_MODEL,
            fallback_model=settings.GEMINI_LITE_MODEL,
            timeout=settings.LLM_TIMEOUT,
            transport=transport,
        )
        groq = GroqClient(
            pools["GROQ"],
            default_model=settings.GROQ_MODEL,
            temperature=settings.GROQ_TEMPERATURE,
            max_tokens=settings.GROQ_MAX_TOKENS,
            timeout=settings.LLM_TIMEOUT,
            transport=transport,
        )
        for name, pool in pools.items():
            if not pool.is_configured:
                logger.warning(f"No API keys configured for {name}")

        router = LLMRouter(
            {"GEMINI": gemini, "GROQ": groq},
            policy=RoutingPolicy(providers=["GEMINI", "GROQ"]),
            default_provider=settings.DEFAULT_PROVIDER.upper(),
        )

        engine = None
        if session_factory is None:
            engine = create_db_engine(settings.DATABASE_URL)
            if create_tables:
                init_db(engine)
            session_factory = get_session_factory(engine)

        return cls(
            router,
            session_factory,
            config=config,
            enrichment_model=settings.GEMINI_LITE_MODEL,
            engine=engine,
        )

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def generate(
        self,
        messages: List[Dict[str, str]],
        system_prompt: str = "",
        provider: Optional[str] = None,
        model: Optional[str] = None,
    ) -> LLMResponse:
        """Free-form generation with provider fallback."""
        return await self.router.generate(messages, system_prompt, provider=provider, model=model)

    async def enrich(self, name: str, country: str) -> Dict[str, Any]:
        return await self.enricher.enrich(name, country)

    async def enrich_many(self, items: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
        return await self.enricher.enrich_many(items)

    async def enrich_batch(self, items: Sequence[Tuple[str, str]]) -> List[Dict[str, Any]]:
        return await self.batch_enricher.enrich_batch(items)

    async def analyze(
        self,
        user_id: str,
        university: Mapping[str, Any],
        profile: Optional[Mapping[str, Any]] = None,
        kind: str = "discovery",
    ) -> Dict[str, Any]:
        """Discovery (default) or shortlist analysis for one university."""
        analyzers = {"discovery": self.discovery, "shortlist": self.shortlist}
        if kind not in analyzers:
            raise ValueError(f"Unknown analysis kind: {kind}")
        return await analyzers[kind].analyze(user_id, university, profile)

    async def analyze_batch(
        self,
        user_id: str,
        universities: Sequence[Mapping[str, Any]],
        profile: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        return await self.batch_analyzer.analyze_batch(user_id, universities, profile)

    async def generate_guidance(
        self,
        university_name: str,
        country: str,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.guidance.generate(university_name, country, profile)

    async def on_profile_updated(self, user_id: str) -> InvalidationResult:
        """Hard-invalidate every cached analysis for the user."""
        return await self.invalidator.handle_event(CacheEvent.PROFILE_UPDATED, user_id=user_id)

    async def get_stats(self) -> Dict[str, Any]:
        return {
            "enrichment": await self.enrichment_cache.get_stats(),
            "discovery": self.discovery_cache.get_stats(),
            "shortlist": self.shortlist_cache.get_stats(),
        }

    async def close(self):
        """Close HTTP clients and dispose of an owned engine."""
        await self.router.close()
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
