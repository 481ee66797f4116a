"""
Batch Discovery Analysis

Analyzes many universities for one user with a SINGLE model call,
then fans the indexed array back out to per-university cache writes.

Universities without a model result (omitted index, unparseable reply,
provider outage, past the batch cap) get the default analysis, stored
as a placeholder so it is recomputed on the next lookup once the user
has a profile.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from counsellor.analysis.base import university_key
from counsellor.analysis.defaults import (
    DISCOVERY_SECTIONS,
    default_discovery_analysis,
    merge_with_defaults,
)
from counsellor.analysis.prompts import build_batch_discovery_prompt
from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.config import CacheConfig, get_cache_config
from counsellor.enrichment.defaults import DEFAULT_SOURCE
from counsellor.llm.router import LLMRouter
from counsellor.output.parser import ResponseParser, EXPECT_ARRAY, map_by_index
from counsellor.utils.concurrency import gather_in_windows, safe_result

logger = logging.getLogger(__name__)

# (analysis, is_placeholder, source)
_Fresh = Tuple[Dict[str, Any], bool, str]


class BatchAnalyzer:
    """
    Batch discovery analysis for one user.

    Usage:
        batch = BatchAnalyzer(router, discovery_cache)
        analyses = await batch.analyze_batch(user_id, universities, profile)
        analyses[university["id"]]["acceptance_score"]
    """

    def __init__(
        self,
        router: LLMRouter,
        cache: AnalysisCache,
        config: Optional[CacheConfig] = None,
        provider: str = "GROQ",
        parser: Optional[ResponseParser] = None,
    ):
        self.router = router
        self.cache = cache
        self.config = config or get_cache_config()
        self.provider = provider
        self.parser = parser or ResponseParser()

    async def analyze_batch(
        self,
        user_id: str,
        universities: Sequence[Mapping[str, Any]],
        profile: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Dict[str, Any]]:
        """
        Analyze many universities with one model call.

        Returns:
            {university id: analysis} covering every input
        """
        if not user_id:
            raise ValueError("user_id is required")
        universities = list(universities)
        ids = [university_key(uni) for uni in universities]

        logger.info(f"Batch analysis of {len(universities)} universities for user {user_id}")
        if not universities:
            return {}

        if not profile:
            logger.warning("No profile found, using defaults for all")
            fresh = {idx: self._default() for idx in range(len(universities))}
            await self._write_through(user_id, ids, fresh)
            return {ids[idx]: analysis for idx, (analysis, _, _) in fresh.items()}

        results = await self._lookup_all(user_id, ids)
        misses = [idx for idx, r in enumerate(results) if r is None]
        limit = self.config.batch_limit
        to_send, overflow = misses[:limit], misses[limit:]
        if overflow:
            logger.warning(f"Batch cap {limit} exceeded; {len(overflow)} universities get defaults")

        fresh: Dict[int, _Fresh] = {idx: self._default() for idx in overflow}
        if to_send:
            fresh.update(await self._analyze_misses(universities, to_send, profile))

        await self._write_through(user_id, ids, fresh)

        for idx, (analysis, _, _) in fresh.items():
            results[idx] = analysis

        defaults = sum(1 for _, placeholder, _ in fresh.values() if placeholder)
        logger.info(
            f"Batch analysis complete: {len(universities) - len(misses)} cached, "
            f"{len(fresh) - defaults} analyzed, {defaults} defaults"
        )
        return {ids[idx]: results[idx] for idx in range(len(universities))}

    @staticmethod
    def _default() -> _Fresh:
        return default_discovery_analysis(), True, DEFAULT_SOURCE

    async def _lookup_all(self, user_id: str, ids: List[str]) -> List[Optional[Dict[str, Any]]]:
        factories = [
            (lambda u=uni_id: self.cache.lookup(user_id, u, has_profile=True))
            for uni_id in ids
        ]
        looked_up = await gather_in_windows(factories, window=self.config.concurrency)
        return [safe_result(looked_up, idx, None) for idx in range(len(ids))]

    async def _analyze_misses(
        self,
        universities: List[Mapping[str, Any]],
        positions: List[int],
        profile: Mapping[str, Any],
    ) -> Dict[int, _Fresh]:
        batch = [universities[idx] for idx in positions]
        defaults = {idx: self._default() for idx in positions}

        logger.info(f"Calling AI for batch analysis of {len(batch)} universities...")
        response = await self.router.generate(
            [{"role": "user", "content": f"Analyze all {len(batch)} universities for this student's profile."}],
            build_batch_discovery_prompt(profile, batch),
            provider=self.provider,
        )
        if response.error:
            logger.warning("Batch analysis unavailable; using defaults for all")
            return defaults

        raw = response.data if isinstance(response.data, list) else response.text
        parsed = self.parser.parse(raw, expect=EXPECT_ARRAY)
        if not parsed.success:
            logger.warning("Batch analysis response unparseable; using defaults for all")
            return defaults

        by_position = map_by_index(parsed.value, len(batch), label="batch analysis")

        fresh = dict(defaults)
        for offset, idx in enumerate(positions):
            analysis = by_position.get(offset)
            if analysis is None:
                continue
            if not self.cache.is_complete(analysis):
                analysis = merge_with_defaults(
                    analysis, default_discovery_analysis(), DISCOVERY_SECTIONS
                )
            fresh[idx] = (analysis, False, response.source_tag)
        return fresh

    async def _write_through(
        self,
        user_id: str,
        ids: List[str],
        fresh: Dict[int, _Fresh],
    ) -> None:
        if not self.cache.enabled:
            return

        positions = sorted(fresh)
        factories = [
            (lambda i=idx: self.cache.store(
                user_id, ids[i], fresh[i][0], is_placeholder=fresh[i][1], source=fresh[i][2],
            ))
            for idx in positions
        ]
        logger.info(f"Caching {len(positions)} analyses...")
        written = await gather_in_windows(factories, window=self.config.concurrency)

        for idx, outcome in zip(positions, written):
            if outcome is not True:
                logger.warning(f"Failed to cache analysis for {ids[idx]}")
