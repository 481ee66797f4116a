"""
Per-User Analyses

Discovery and shortlist fit analyses (single and batched) backed by
the analysis cache, plus application guidance.
"""

from counsellor.analysis.defaults import (
    DISCOVERY_SECTIONS,
    SHORTLIST_SECTIONS,
    default_discovery_analysis,
    default_shortlist_analysis,
    merge_with_defaults,
)
from counsellor.analysis.base import FitAnalyzer, university_key
from counsellor.analysis.discovery import DiscoveryAnalyzer
from counsellor.analysis.shortlist import ShortlistAnalyzer
from counsellor.analysis.batch import BatchAnalyzer
from counsellor.analysis.guidance import GuidanceGenerator, fallback_guidance, GUIDANCE_SECTIONS

__all__ = [
    "DISCOVERY_SECTIONS",
    "SHORTLIST_SECTIONS",
    "default_discovery_analysis",
    "default_shortlist_analysis",
    "merge_with_defaults",
    "FitAnalyzer",
    "university_key",
    "DiscoveryAnalyzer",
    "ShortlistAnalyzer",
    "BatchAnalyzer",
    "GuidanceGenerator",
    "fallback_guidance",
    "GUIDANCE_SECTIONS",
]
