"""
Default Analyses

Placeholder analyses returned when there is no profile to assess
against or when the model cannot produce a usable one. Each call
returns a fresh copy so callers can mutate it safely.
"""

from typing import Any, Dict, Mapping, Sequence

from counsellor.scoring.confidence import has_value

DISCOVERY_SECTIONS = (
    "profile_fit",
    "budget_analysis",
    "country_preference",
    "acceptance_score",
    "risk_level",
)

SHORTLIST_SECTIONS = (
    "profile_fit",
    "key_risks",
    "acceptance_score",
    "cost_analysis",
)

PROFILE_PROMPT = "Complete your profile to see personalized insights"


def default_discovery_analysis() -> Dict[str, Any]:
    return {
        "profile_fit": {
            "reasons": [PROFILE_PROMPT],
            "score": 50,
        },
        "budget_analysis": {
            "tuition": 0,
            "user_budget": 0,
            "within_budget": True,
            "gap": 0,
            "recommendation": "Set your budget in profile to see cost analysis",
        },
        "country_preference": {
            "matches": False,
            "message": "Set country preferences to see matches",
        },
        "acceptance_score": {
            "percentage": 50,
            "category": "TARGET",
            "reasoning": "Complete profile for accurate assessment",
        },
        "risk_level": "medium",
        "cost_level": "medium",
    }


def default_shortlist_analysis() -> Dict[str, Any]:
    return {
        "profile_fit": {
            "reasons": [PROFILE_PROMPT],
            "score": 50,
        },
        "key_risks": {
            "reasons": ["Complete your profile to see specific risks"],
            "severity": "medium",
        },
        "acceptance_score": {
            "percentage": 50,
            "category": "TARGET",
            "reasoning": "Complete profile for accurate assessment",
        },
        "cost_analysis": {
            "level": "Medium",
            "within_budget": True,
            "reasoning": "Set your budget in profile to see cost analysis",
        },
    }


def merge_with_defaults(
    analysis: Mapping[str, Any],
    defaults: Mapping[str, Any],
    sections: Sequence[str],
) -> Dict[str, Any]:
    """
    Complete a partial analysis.

    Model-supplied keys win; required sections that are missing or empty
    take the default section.
    """
    merged = {**defaults, **analysis}
    for section in sections:
        if not has_value(merged.get(section)):
            merged[section] = defaults[section]
    return merged
