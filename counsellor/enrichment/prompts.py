"""
Enrichment Prompts

Prompt builders for single-university and batch enrichment. Batch
prompts enumerate universities with a 1-based index that the model
must echo back on every array element.
"""

from typing import Sequence, Tuple

ENRICHMENT_SYSTEM_PROMPT = "You are a university database expert. Return only valid JSON."
BATCH_SYSTEM_PROMPT = "You are a university database expert. Return only valid JSON array."


def build_enrichment_prompt(name: str, country: str) -> str:
    return f"""You are a university data expert. Provide detailed information for "{name}" in "{country}" as a strictly formatted JSON object.

Return ONLY this JSON structure (no markdown, no extra text):
{{
    "name": "Official Name",
    "country": "{country}",
    "city": "City Name (e.g. London, Boston)",
    "domain": "university-website.edu (or .com/etc)",
    "tuition_estimate": 0 (integer USD per year estimate for international students),
    "acceptance_rate": 0.0 (percentage estimate, e.g. 25.5),
    "rank": 0 (integer global rank estimate, e.g. 50),
    "description": "Short description (max 200 chars)",
    "popular_majors": ["Major 1", "Major 2"]
}}

If exact data is unknown, provide a reasonable estimate based on similar institutions in that region."""


def format_university_list(items: Sequence[Tuple[str, str]]) -> str:
    return "\n".join(
        f"{position}. {name} ({country})"
        for position, (name, country) in enumerate(items, start=1)
    )


def build_batch_prompt(items: Sequence[Tuple[str, str]]) -> str:
    return f"""Provide tuition and acceptance rate estimates for the following universities. Return ONLY a JSON array with this exact structure:

[
  {{
    "index": 1,
    "tuition_estimate": estimated annual tuition in USD (number only, no strings),
    "acceptance_rate": acceptance rate as percentage (number only, e.g., 15.5 for 15.5%),
    "ranking": approximate world ranking (number, null if unknown)
  }},
  ...
]

Universities to enrich:
{format_university_list(items)}

IMPORTANT:
- Return ONLY valid JSON array, no markdown, no explanation
- Use numbers only, not strings like "~2000"
- If you don't know exact data, provide reasonable estimates
- Index matches the university number in the list above"""
