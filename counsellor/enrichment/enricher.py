"""
University Enricher

Fills in missing facts about one university with an LLM, through the
enrichment cache:

    lookup -> (miss) LLM -> parse -> store -> payload + _cache_meta

Never raises for upstream or storage failures. When the model is down
or its output is unusable, the country-based default record comes back
tagged DEFAULT and is not cached, so the next call retries.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from counsellor.cache.config import CacheConfig, get_cache_config
from counsellor.cache.enrichment_cache import EnrichmentCache, CACHE_META_KEY
from counsellor.cache.single_flight import SingleFlight
from counsellor.database.models import normalize_key, utcnow
from counsellor.enrichment.defaults import default_record, DEFAULT_SOURCE
from counsellor.enrichment.prompts import build_enrichment_prompt
from counsellor.llm.router import LLMRouter
from counsellor.output.parser import ResponseParser, EXPECT_OBJECT
from counsellor.scoring.confidence import calculate_confidence
from counsellor.utils.concurrency import gather_in_windows, safe_result

logger = logging.getLogger(__name__)

# Fast and cheap model for data enrichment
ENRICHMENT_MODEL = "gemini-2.5-flash-lite"
ENRICHMENT_PROVIDER = "GEMINI"

_SHAPE_FIELDS = ("name", "tuition_estimate", "city")


def looks_like_enrichment(value: Any) -> bool:
    return isinstance(value, Mapping) and any(value.get(k) for k in _SHAPE_FIELDS)


def with_meta(
    payload: Mapping[str, Any],
    *,
    cached: bool,
    confidence: float,
    source: str,
    access_count: int,
) -> Dict[str, Any]:
    """Attach fresh (non-cached) metadata to a payload."""
    return {
        **payload,
        CACHE_META_KEY: {
            "cached": cached,
            "confidence_score": confidence,
            "source": source,
            "is_verified": False,
            "created_at": utcnow().isoformat(),
            "access_count": access_count,
        },
    }


def default_result(name: str, country: str) -> Dict[str, Any]:
    """Default record tagged as an uncached, zero-confidence answer."""
    return with_meta(
        default_record(name, country),
        cached=False,
        confidence=0.0,
        source=DEFAULT_SOURCE,
        access_count=0,
    )


class UniversityEnricher:
    """
    Single-university enrichment service.

    Usage:
        enricher = UniversityEnricher(router, cache)
        data = await enricher.enrich("KTH Royal Institute of Technology", "Sweden")
        print(data["_cache_meta"]["confidence_score"])
    """

    def __init__(
        self,
        router: LLMRouter,
        cache: EnrichmentCache,
        config: Optional[CacheConfig] = None,
        single_flight: Optional[SingleFlight] = None,
        model: str = ENRICHMENT_MODEL,
        parser: Optional[ResponseParser] = None,
    ):
        self.router = router
        self.cache = cache
        self.config = config or get_cache_config()
        self.model = model
        self.parser = parser or ResponseParser()

        if single_flight is None and self.config.single_flight:
            single_flight = SingleFlight()
        self.single_flight = single_flight

    async def enrich(self, name: str, country: str) -> Dict[str, Any]:
        """
        Enrich one university.

        Returns:
            Payload plus `_cache_meta` (cached, confidence_score, source,
            is_verified, created_at, access_count)
        """
        if not name or not country:
            raise ValueError("name and country are required")

        cached = await self.cache.lookup(name, country)
        if cached is not None:
            return cached

        if self.single_flight is not None:
            key = ("enrichment", normalize_key(name), normalize_key(country))
            return await self.single_flight.do(key, lambda: self._enrich_miss(name, country))
        return await self._enrich_miss(name, country)

    async def enrich_many(
        self,
        items: Sequence[Tuple[str, str]],
        window: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Enrich many universities concurrently, one window at a time.

        Args:
            items: (name, country) pairs
            window: Max concurrent enrichments (defaults to config)

        Returns:
            Results in input order
        """
        items = list(items)
        window = window or self.config.concurrency
        logger.info(f"Enriching {len(items)} universities in windows of {window}")

        factories = [
            (lambda n=name, c=country: self.enrich(n, c))
            for name, country in items
        ]
        results = await gather_in_windows(factories, window=window)

        return [
            safe_result(results, idx, default_result(name, country))
            for idx, (name, country) in enumerate(items)
        ]

    async def _enrich_miss(self, name: str, country: str) -> Dict[str, Any]:
        logger.info(f"Cache miss for {name}, {country} - calling AI...")

        messages = [{"role": "user", "content": f"Enrich data for {name} in {country}"}]
        response = await self.router.generate(
            messages,
            build_enrichment_prompt(name, country),
            provider=ENRICHMENT_PROVIDER,
            model=self.model,
        )
        if response.error:
            logger.warning(f"Enrichment unavailable for {name}, {country}; using defaults")
            return default_result(name, country)

        raw = response.data if looks_like_enrichment(response.data) else response.text
        parsed = self.parser.parse(raw, expect=EXPECT_OBJECT, shape_check=looks_like_enrichment)
        if not parsed.success:
            logger.warning(f"Enrichment parse failed for {name}, {country}; using defaults")
            return default_result(name, country)

        data = {k: v for k, v in parsed.value.items() if k != CACHE_META_KEY}
        source = response.source_tag
        await self.cache.store(name, country, data, source=source)

        return with_meta(
            data,
            cached=False,
            confidence=calculate_confidence(data, source, is_verified=False),
            source=source,
            access_count=1,
        )
