"""
Fit Analyzer Base

Shared flow for per-user university analyses:

    cache lookup -> (no profile) placeholder
                 -> (miss) LLM -> parse -> complete with defaults -> store

Subclasses choose the kind, vendor, prompt and default analysis.
analyze() never raises for upstream or storage failures; the worst
case is the kind's default analysis.
"""

import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from counsellor.cache.analysis_cache import AnalysisCache
from counsellor.cache.config import CacheConfig, get_cache_config
from counsellor.cache.single_flight import SingleFlight
from counsellor.llm.router import LLMRouter
from counsellor.output.parser import ResponseParser, EXPECT_OBJECT
from counsellor.analysis.defaults import merge_with_defaults

logger = logging.getLogger(__name__)


def university_key(university: Mapping[str, Any]) -> str:
    """Stable cache identity for a university mapping."""
    key = university.get("id")
    if key in (None, ""):
        raise ValueError("university must have an 'id'")
    return str(key)


class FitAnalyzer:
    """Base class for cached per-user fit analyses."""

    kind: str = ""
    provider: str = "GEMINI"
    model: Optional[str] = None
    sections: Sequence[str] = ()

    def __init__(
        self,
        router: LLMRouter,
        cache: AnalysisCache,
        config: Optional[CacheConfig] = None,
        single_flight: Optional[SingleFlight] = None,
        parser: Optional[ResponseParser] = None,
    ):
        self.router = router
        self.cache = cache
        self.config = config or get_cache_config()
        self.parser = parser or ResponseParser()

        if single_flight is None and self.config.single_flight:
            single_flight = SingleFlight()
        self.single_flight = single_flight

    # Subclass hooks
    def build_prompt(self, profile: Mapping[str, Any], university: Mapping[str, Any]) -> str:
        raise NotImplementedError

    def default_analysis(self) -> Dict[str, Any]:
        raise NotImplementedError

    def user_message(self, university: Mapping[str, Any]) -> str:
        return f"Analyze fit for {university.get('name')}"

    def looks_like_analysis(self, value: Any) -> bool:
        """Shape test for structured provider output."""
        return isinstance(value, Mapping) and any(value.get(s) for s in self.sections[:2])

    async def analyze(
        self,
        user_id: str,
        university: Mapping[str, Any],
        profile: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Analyze one university for one user.

        Args:
            user_id: Requesting user
            university: Mapping with at least id and name
            profile: The user's current profile, or None if they have none

        Returns:
            Complete analysis dict (default analysis on any failure)
        """
        if not user_id:
            raise ValueError("user_id is required")
        uni_id = university_key(university)
        has_profile = bool(profile)

        cached = await self.cache.lookup(user_id, uni_id, has_profile=has_profile)
        if cached is not None:
            return cached

        if not has_profile:
            # Don't spend tokens without a profile to assess against
            logger.info(f"No profile for user {user_id}, returning default {self.kind} analysis")
            return self.default_analysis()

        if self.single_flight is not None:
            key = (self.kind, str(user_id), uni_id)
            return await self.single_flight.do(
                key, lambda: self._analyze_miss(user_id, uni_id, university, profile)
            )
        return await self._analyze_miss(user_id, uni_id, university, profile)

    async def _analyze_miss(
        self,
        user_id: str,
        uni_id: str,
        university: Mapping[str, Any],
        profile: Mapping[str, Any],
    ) -> Dict[str, Any]:
        logger.info(f"Calling AI for {self.kind} analysis of {university.get('name')}...")

        response = await self.router.generate(
            [{"role": "user", "content": self.user_message(university)}],
            self.build_prompt(profile, university),
            provider=self.provider,
            model=self.model,
        )
        if response.error:
            logger.warning(f"{self.kind} analysis unavailable; using default analysis")
            return self.default_analysis()

        raw = response.data if self.looks_like_analysis(response.data) else response.text
        parsed = self.parser.parse(raw, expect=EXPECT_OBJECT, shape_check=self.looks_like_analysis)
        if not parsed.success:
            logger.warning(f"Failed to parse {self.kind} analysis; using default analysis")
            return self.default_analysis()

        analysis = parsed.value
        if not self.cache.is_complete(analysis):
            logger.warning(f"Generated {self.kind} analysis incomplete, merging with defaults")
            analysis = merge_with_defaults(analysis, self.default_analysis(), self.sections)

        await self.cache.store(user_id, uni_id, analysis, source=response.source_tag)
        logger.info(f"{self.kind} analysis complete for {university.get('name')}")
        return analysis
