"""
Application Guidance

Country-aware list of required documents, an application timeline and
tips for one university. Not cached: guidance is generated on demand.
On any failure the caller gets generic fallback guidance with
error=True.
"""

import logging
from typing import Any, Dict, Mapping, Optional

from counsellor.analysis.prompts import build_guidance_prompt
from counsellor.database.models import utcnow
from counsellor.llm.router import LLMRouter
from counsellor.output.parser import ResponseParser, EXPECT_OBJECT

logger = logging.getLogger(__name__)

GUIDANCE_SECTIONS = ("required_documents", "timeline", "application_tips")


def fallback_guidance() -> Dict[str, Any]:
    return {
        "required_documents": [
            "Official Transcripts",
            "Resume/CV",
            "Statement of Purpose (SOP)",
            "Letters of Recommendation",
        ],
        "timeline": [
            {
                "phase": "Apply",
                "date_range": "Check Website",
                "description": "Visit university website for official deadlines",
            },
        ],
        "application_tips": ["Please verify all requirements on the official website."],
        "error": True,
    }


def looks_like_guidance(value: Any) -> bool:
    return isinstance(value, Mapping) and bool(
        value.get("required_documents") or value.get("timeline")
    )


class GuidanceGenerator:
    """Generates application guidance with Gemini."""

    provider = "GEMINI"

    def __init__(
        self,
        router: LLMRouter,
        model: Optional[str] = None,
        parser: Optional[ResponseParser] = None,
    ):
        self.router = router
        self.model = model
        self.parser = parser or ResponseParser()

    async def generate(
        self,
        university_name: str,
        country: str,
        profile: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Generate guidance for one university.

        Returns:
            required_documents, timeline, application_tips and
            _generated_at; or the fallback guidance with error=True
        """
        if not university_name or not country:
            raise ValueError("university_name and country are required")

        response = await self.router.generate(
            [{"role": "user", "content": f"Generate application guidance for {university_name}"}],
            build_guidance_prompt(university_name, country, profile or {}),
            provider=self.provider,
            model=self.model,
        )
        if response.error:
            logger.error(f"Application guidance unavailable for {university_name}")
            return fallback_guidance()

        raw = response.data if looks_like_guidance(response.data) else response.text
        parsed = self.parser.parse(raw, expect=EXPECT_OBJECT, shape_check=looks_like_guidance)
        if not parsed.success or not looks_like_guidance(parsed.value):
            logger.error(f"Application guidance generation failed for {university_name}")
            return fallback_guidance()

        return {
            **parsed.value,
            "_generated_at": utcnow().isoformat(),
        }
