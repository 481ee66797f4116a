"""
Tests for Per-User Fit Analyses and Application Guidance
"""

import asyncio

import pytest
from unittest.mock import AsyncMock

from counsellor.analysis.defaults import (
    DISCOVERY_SECTIONS,
    PROFILE_PROMPT,
    default_discovery_analysis,
    default_shortlist_analysis,
    merge_with_defaults,
)
from counsellor.analysis.discovery import DiscoveryAnalyzer
from counsellor.analysis.guidance import GuidanceGenerator, fallback_guidance
from counsellor.analysis.prompts import build_discovery_prompt, build_guidance_prompt
from counsellor.analysis.shortlist import ShortlistAnalyzer
from counsellor.cache.single_flight import SingleFlight


TORONTO = {"id": "uni-1", "name": "University of Toronto", "country": "Canada", "tuition_estimate": 45000}


@pytest.fixture
def discovery(mock_router, discovery_cache, cache_config):
    return DiscoveryAnalyzer(mock_router, discovery_cache, config=cache_config)


@pytest.fixture
def shortlist(mock_router, shortlist_cache, cache_config):
    return ShortlistAnalyzer(mock_router, shortlist_cache, config=cache_config)


class TestDefaults:

    def test_defaults_are_fresh_copies(self):
        first = default_discovery_analysis()
        first["profile_fit"]["reasons"].append("mutated")

        assert default_discovery_analysis()["profile_fit"]["reasons"] == [PROFILE_PROMPT]

    def test_merge_keeps_model_values(self):
        merged = merge_with_defaults(
            {"profile_fit": {"reasons": ["Fit"], "score": 80}, "risk_level": "", "extra": 1},
            default_discovery_analysis(),
            DISCOVERY_SECTIONS,
        )

        assert merged["profile_fit"]["score"] == 80
        assert merged["risk_level"] == "medium"
        assert merged["extra"] == 1


class TestDiscoveryAnalyzer:

    @pytest.mark.asyncio
    async def test_analysis_cached_after_miss(
        self, discovery, mock_router, llm_response, discovery_analysis, student_profile,
    ):
        mock_router.generate.return_value = llm_response(data=discovery_analysis, provider="GROQ")

        first = await discovery.analyze("user-1", TORONTO, student_profile)
        second = await discovery.analyze("user-1", TORONTO, student_profile)

        assert first == discovery_analysis
        assert second == discovery_analysis
        mock_router.generate.assert_awaited_once()
        assert mock_router.generate.call_args.kwargs["provider"] == "GROQ"

    @pytest.mark.asyncio
    async def test_no_profile_skips_model(self, discovery, mock_router, discovery_cache):
        result = await discovery.analyze("user-1", TORONTO, profile=None)

        assert result == default_discovery_analysis()
        mock_router.generate.assert_not_called()
        assert await discovery_cache.lookup("user-1", "uni-1", has_profile=False) is None

    @pytest.mark.asyncio
    async def test_incomplete_analysis_merged(
        self, discovery, mock_router, llm_response, discovery_cache, student_profile,
    ):
        mock_router.generate.return_value = llm_response(
            text='{"profile_fit": {"reasons": ["Strong match"], "score": 88}}',
        )

        result = await discovery.analyze("user-1", TORONTO, student_profile)

        assert result["profile_fit"]["score"] == 88
        assert result["acceptance_score"] == default_discovery_analysis()["acceptance_score"]
        assert await discovery_cache.lookup("user-1", "uni-1", has_profile=True) == result

    @pytest.mark.asyncio
    async def test_outage_not_cached(
        self, discovery, mock_router, unavailable_response, discovery_cache, student_profile,
    ):
        mock_router.generate.return_value = unavailable_response

        result = await discovery.analyze("user-1", TORONTO, student_profile)

        assert result == default_discovery_analysis()
        assert await discovery_cache.lookup("user-1", "uni-1", has_profile=False) is None

    @pytest.mark.asyncio
    async def test_unparseable_returns_default(self, discovery, mock_router, llm_response, student_profile):
        mock_router.generate.return_value = llm_response(text="This university looks great!")

        result = await discovery.analyze("user-1", TORONTO, student_profile)

        assert result == default_discovery_analysis()

    @pytest.mark.asyncio
    async def test_profile_supersedes_placeholder(
        self, discovery, mock_router, llm_response, discovery_cache, discovery_analysis, student_profile,
    ):
        await discovery_cache.store("user-1", "uni-1", default_discovery_analysis(), is_placeholder=True)
        mock_router.generate.return_value = llm_response(data=discovery_analysis)

        result = await discovery.analyze("user-1", TORONTO, student_profile)

        assert result == discovery_analysis
        mock_router.generate.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_requires_university_id(self, discovery, student_profile):
        with pytest.raises(ValueError):
            await discovery.analyze("user-1", {"name": "No Id"}, student_profile)

    @pytest.mark.asyncio
    async def test_concurrent_requests_coalesce(
        self, mock_router, discovery_cache, cache_config, llm_response, discovery_analysis, student_profile,
    ):
        release = asyncio.Event()

        async def answer(*args, **kwargs):
            await release.wait()
            return llm_response(data=discovery_analysis)

        mock_router.generate = AsyncMock(side_effect=answer)
        flights = SingleFlight()
        analyzer = DiscoveryAnalyzer(mock_router, discovery_cache, config=cache_config, single_flight=flights)

        tasks = [asyncio.create_task(analyzer.analyze("user-1", TORONTO, student_profile)) for _ in range(2)]
        while flights.get_stats()["shared"] < 1:
            await asyncio.sleep(0.01)
        release.set()
        results = await asyncio.gather(*tasks)

        assert results[0] == results[1] == discovery_analysis
        assert mock_router.generate.await_count == 1


class TestShortlistAnalyzer:

    @pytest.mark.asyncio
    async def test_uses_gemini(self, shortlist, mock_router, llm_response, student_profile):
        analysis = default_shortlist_analysis()
        analysis["key_risks"] = {"reasons": ["High competition"], "severity": "high"}
        mock_router.generate.return_value = llm_response(data=analysis)

        result = await shortlist.analyze("user-1", TORONTO, student_profile)

        assert result["key_risks"]["severity"] == "high"
        kwargs = mock_router.generate.call_args.kwargs
        assert kwargs["provider"] == "GEMINI"
        assert kwargs["model"] is None

    @pytest.mark.asyncio
    async def test_separate_from_discovery(
        self, shortlist, discovery_cache, discovery_analysis, mock_router, llm_response, student_profile,
    ):
        await discovery_cache.store("user-1", "uni-1", discovery_analysis)
        mock_router.generate.return_value = llm_response(data=default_shortlist_analysis())

        await shortlist.analyze("user-1", TORONTO, student_profile)

        mock_router.generate.assert_awaited_once()


class TestPrompts:

    def test_discovery_prompt_includes_profile_and_budget(self, student_profile):
        prompt = build_discovery_prompt(student_profile, TORONTO)

        assert "University of Toronto" in prompt
        assert "Computer Science" in prompt
        assert "30000" in prompt or "30,000" in prompt

    def test_guidance_prompt_mentions_country(self, student_profile):
        prompt = build_guidance_prompt("TU Delft", "Netherlands", student_profile)

        assert "TU Delft" in prompt
        assert "Netherlands" in prompt


class TestGuidanceGenerator:

    @pytest.mark.asyncio
    async def test_success(self, mock_router, llm_response, student_profile):
        guidance = {
            "required_documents": ["Transcripts", "IELTS"],
            "timeline": [{"phase": "Apply", "date_range": "Jan", "description": "Submit"}],
            "application_tips": ["Start early"],
        }
        mock_router.generate.return_value = llm_response(data=guidance)

        result = await GuidanceGenerator(mock_router).generate("TU Delft", "Netherlands", student_profile)

        assert result["required_documents"] == ["Transcripts", "IELTS"]
        assert "_generated_at" in result
        assert "error" not in result
        assert mock_router.generate.call_args.kwargs["provider"] == "GEMINI"

    @pytest.mark.asyncio
    async def test_outage_returns_fallback(self, mock_router, unavailable_response):
        mock_router.generate.return_value = unavailable_response

        result = await GuidanceGenerator(mock_router).generate("TU Delft", "Netherlands")

        assert result == fallback_guidance()
        assert result["error"] is True

    @pytest.mark.asyncio
    async def test_garbage_returns_fallback(self, mock_router, llm_response):
        mock_router.generate.return_value = llm_response(text='{"unrelated": true}')

        result = await GuidanceGenerator(mock_router).generate("TU Delft", "Netherlands")

        assert result["error"] is True

    @pytest.mark.asyncio
    async def test_requires_name_and_country(self, mock_router):
        with pytest.raises(ValueError):
            await GuidanceGenerator(mock_router).generate("TU Delft", "")
