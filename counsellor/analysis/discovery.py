"""
Discovery Analysis

Lighter fit analysis used while browsing. Runs on Groq because
browsing needs speed more than depth.
"""

from typing import Any, Dict, Mapping

from counsellor.analysis.base import FitAnalyzer
from counsellor.analysis.defaults import DISCOVERY_SECTIONS, default_discovery_analysis
from counsellor.analysis.prompts import build_discovery_prompt


class DiscoveryAnalyzer(FitAnalyzer):
    """Quick per-user analysis for the discovery page."""

    kind = "discovery"
    provider = "GROQ"
    sections = DISCOVERY_SECTIONS

    def build_prompt(self, profile: Mapping[str, Any], university: Mapping[str, Any]) -> str:
        return build_discovery_prompt(profile, university)

    def default_analysis(self) -> Dict[str, Any]:
        return default_discovery_analysis()

    def user_message(self, university: Mapping[str, Any]) -> str:
        return f"Analyze {university.get('name')} for discovery browsing"
