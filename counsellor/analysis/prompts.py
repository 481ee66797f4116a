"""
Analysis Prompts

Prompt builders for discovery (quick, browsing), shortlist (detailed),
batch discovery, and application guidance. Profiles and universities
are plain mappings; absent values render as N/A.
"""

import json
from typing import Any, Mapping, Optional, Sequence

from counsellor.output.parser import parse_number


def _val(mapping: Optional[Mapping[str, Any]], key: str, default: str = "N/A") -> Any:
    value = (mapping or {}).get(key)
    return value if value not in (None, "") else default


def _preferred_countries(profile: Mapping[str, Any]) -> list:
    countries = profile.get("preferred_countries") or []
    if isinstance(countries, str):
        return [c.strip() for c in countries.split(",") if c.strip()]
    return list(countries)


def _profile_block(profile: Mapping[str, Any]) -> str:
    countries = ", ".join(_preferred_countries(profile)) or "Any"
    return f"""STUDENT PROFILE:
- GPA: {_val(profile, 'gpa')}
- Major: {_val(profile, 'field_of_study')}
- Budget: ${_val(profile, 'budget_max')}/year
- Preferred Countries: {countries}
- Test Scores: GRE {_val(profile, 'gre_score')}, IELTS {_val(profile, 'ielts_score')}"""


def build_discovery_prompt(profile: Mapping[str, Any], university: Mapping[str, Any]) -> str:
    """Quick single-university fit prompt for browsing."""
    country = university.get("country") or "Unknown"
    matches = country in _preferred_countries(profile)
    tuition = parse_number(university.get("tuition_estimate"))
    budget = parse_number(profile.get("budget_max"))

    within_budget = json.dumps(tuition <= budget) if tuition and budget else "null"
    gap = json.dumps(max(0, tuition - budget)) if tuition and budget else "null"
    message = (
        f"{country} is in your preferences" if matches
        else f"{country} is not in your preferred countries"
    )

    return f"""You are a university matching expert. Provide a QUICK analysis for discovery browsing.

{_profile_block(profile)}

UNIVERSITY:
- Name: {university.get('name')}
- Country: {country}
- Tuition: ${_val(university, 'tuition_estimate')}/year
- Acceptance Rate: {_val(university, 'acceptance_rate')}%
- Rank: {_val(university, 'rank')}

Return ONLY this JSON (no markdown, keep it brief):
{{
  "profile_fit": {{
    "reasons": ["Brief reason 1", "Brief reason 2"],
    "score": 0-100
  }},
  "budget_analysis": {{
    "tuition": {json.dumps(tuition)},
    "user_budget": {json.dumps(budget or 0)},
    "within_budget": {within_budget},
    "gap": {gap},
    "recommendation": "Brief one-liner"
  }},
  "country_preference": {{
    "matches": {json.dumps(matches)},
    "message": {json.dumps(message)}
  }},
  "acceptance_score": {{
    "percentage": 0-100,
    "category": "DREAM|TARGET|SAFE",
    "reasoning": "One sentence max"
  }},
  "risk_level": "low|medium|high",
  "cost_level": "low|medium|high"
}}

IMPORTANT: If tuition is null, estimate it based on university type and country. Public US universities: $10k-30k, Private: $40k-70k, European: $0-20k."""


def build_shortlist_prompt(profile: Mapping[str, Any], university: Mapping[str, Any]) -> str:
    """Detailed fit prompt for a shortlisted university."""
    details = university.get("detailed_info")
    detail_block = (
        f"\nDETAILED UNIVERSITY DATA:\n{json.dumps(details, indent=2)}" if details else ""
    )

    return f"""You are an expert university admissions counselor. Analyze the fit between this student and university.

STUDENT PROFILE:
- GPA: {_val(profile, 'gpa')}
- Field of Study: {_val(profile, 'field_of_study')}
- Degree: {_val(profile, 'degree_level')}
- Budget: ${_val(profile, 'budget_max')}
- Test Scores: GRE {_val(profile, 'gre_score')}, IELTS {_val(profile, 'ielts_score')}, TOEFL {_val(profile, 'toefl_score')}
- Experience: {_val(profile, 'work_experience_years', '0')} years

UNIVERSITY PROFILE:
- Name: {university.get('name')}
- Country: {_val(university, 'country')}
- Rank: {_val(university, 'rank')}
- Tuition: ${_val(university, 'tuition_estimate')}
- Acceptance Rate: {_val(university, 'acceptance_rate')}%{detail_block}

Provide a personalized analysis in JSON format.
CRITICAL: Keep reasoning "medium length" - concise and direct (max 2-3 sentences per point).

{{
  "profile_fit": {{
    "reasons": ["Reason matching profile to university", "Reason about program fit", "Third reason"],
    "score": 0-100
  }},
  "key_risks": {{
    "reasons": ["Specific risk description", "Academic or financial risk"],
    "severity": "low|medium|high"
  }},
  "acceptance_score": {{
    "percentage": 0-100,
    "category": "DREAM|TARGET|SAFE",
    "reasoning": "Concise explanation of chance calculation"
  }},
  "cost_analysis": {{
    "level": "Low|Medium|High",
    "within_budget": true|false,
    "reasoning": "Brief budget breakdown"
  }}
}}
Be realistic and honest. If data is missing (e.g. N/A), make reasonable estimates based on general knowledge of the university but note that it's an estimate."""


def build_batch_discovery_prompt(
    profile: Mapping[str, Any],
    universities: Sequence[Mapping[str, Any]],
) -> str:
    """One prompt covering many universities, indexed from 1."""
    university_list = "\n".join(
        f"{position}. {uni.get('name')} ({_val(uni, 'country')}) - "
        f"${_val(uni, 'tuition_estimate')}/year, {_val(uni, 'acceptance_rate')}% acceptance"
        for position, uni in enumerate(universities, start=1)
    )

    return f"""You are a university matching expert. Analyze ALL universities for this student.

{_profile_block(profile)}

UNIVERSITIES TO ANALYZE:
{university_list}

Return ONLY a JSON array matching this EXACT structure:
[
  {{
    "index": 1,
    "profile_fit": {{ "reasons": ["reason1", "reason2"], "score": 75 }},
    "budget_analysis": {{ "within_budget": true, "gap": 0, "recommendation": "Affordable" }},
    "country_preference": {{ "matches": true, "message": "Matches your preference" }},
    "acceptance_score": {{ "percentage": 65, "category": "TARGET", "reasoning": "Good fit" }},
    "risk_level": "medium",
    "cost_level": "low"
  }},
  ...
]

IMPORTANT:
- Return ONLY valid JSON array, no markdown
- One object per university, ordered by index
- Use categories: DREAM (10-40%), TARGET (40-70%), SAFE (70%+)
- risk_level: low|medium|high
- cost_level: low|medium|high (relative to student budget)"""


def build_guidance_prompt(
    university_name: str,
    country: str,
    profile: Optional[Mapping[str, Any]] = None,
) -> str:
    """Application documents, timeline and tips for one university."""
    return f"""You are an expert Study Abroad Application Counsellor.
Create a detailed application guide for "{university_name}" in "{country}".

Target Student Profile:
- Current Level: {_val(profile, 'education_level', 'Student')}
- Target Degree: {_val(profile, 'target_degree', 'Masters')}
- Major: {_val(profile, 'field_of_study', 'General')}

Return a STRICT JSON object with this structure:
{{
  "required_documents": [
    "Detailed document 1 (e.g. 'Official Transcripts with WES evaluation')",
    "Detailed document 2"
  ],
  "timeline": [
    {{ "phase": "Preparation", "date_range": "Aug - Sep", "description": "Prepare standardized tests (GRE/IELTS)" }},
    {{ "phase": "Application", "date_range": "Oct - Dec", "description": "Submit main application and pay fees" }},
    {{ "phase": "Decision", "date_range": "Mar - Apr", "description": "Receive admission decision" }}
  ],
  "application_tips": [
    "Tip 1 specific to this university/country",
    "Tip 2"
  ]
}}

Be specific to the country (e.g. USA needs WES, UK needs CAS, Germany needs VPS/APS)."""
