"""
Shortlist Analysis

Detailed fit analysis for universities the student has shortlisted,
including key risks and a cost breakdown. Uses Gemini's default model.
"""

from typing import Any, Dict, Mapping

from counsellor.analysis.base import FitAnalyzer
from counsellor.analysis.defaults import SHORTLIST_SECTIONS, default_shortlist_analysis
from counsellor.analysis.prompts import build_shortlist_prompt


class ShortlistAnalyzer(FitAnalyzer):
    """Detailed per-user analysis for shortlisted universities."""

    kind = "shortlist"
    provider = "GEMINI"
    sections = SHORTLIST_SECTIONS

    def build_prompt(self, profile: Mapping[str, Any], university: Mapping[str, Any]) -> str:
        return build_shortlist_prompt(profile, university)

    def default_analysis(self) -> Dict[str, Any]:
        return default_shortlist_analysis()
