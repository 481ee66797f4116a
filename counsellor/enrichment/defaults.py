"""
Default Enrichment Records

Deterministic fallback facts used whenever the model cannot supply
them: the per-country tuition estimate and a neutral acceptance rate.
"""

from typing import Any, Dict, Optional

# Typical annual international tuition in USD
DEFAULT_TUITION_BY_COUNTRY: Dict[str, int] = {
    "United Kingdom": 25000,
    "Canada": 20000,
    "Australia": 28000,
    "Germany": 1500,  # Often free or very low
    "France": 3000,
    "Netherlands": 12000,
    "Singapore": 15000,
    "Ireland": 18000,
    "New Zealand": 22000,
    "Switzerland": 1500,
    "Sweden": 0,  # Free for EU students
    "Norway": 0,
    "Denmark": 0,
    "Finland": 0,
    "Spain": 4000,
    "Italy": 4000,
    "India": 5000,
    "China": 8000,
    "Japan": 12000,
    "South Korea": 10000,
    "Brazil": 3000,
    "Mexico": 4000,
}
FALLBACK_TUITION = 15000
DEFAULT_ACCEPTANCE_RATE = 50
DEFAULT_SOURCE = "DEFAULT"

COUNTRY_ALIASES: Dict[str, str] = {
    "uk": "United Kingdom",
    "england": "United Kingdom",
    "great britain": "United Kingdom",
    "deutschland": "Germany",
    "holland": "Netherlands",
    "the netherlands": "Netherlands",
    "eire": "Ireland",
    "nz": "New Zealand",
    "korea": "South Korea",
    "republic of korea": "South Korea",
    "bharat": "India",
}

_CANONICAL = {name.casefold(): name for name in DEFAULT_TUITION_BY_COUNTRY}


def canonical_country(country: Optional[str]) -> Optional[str]:
    """Map common spellings onto the tuition table's country names."""
    if not country:
        return None
    key = " ".join(country.split()).casefold()
    return COUNTRY_ALIASES.get(key) or _CANONICAL.get(key) or country.strip()


def default_tuition(country: Optional[str]) -> int:
    return DEFAULT_TUITION_BY_COUNTRY.get(canonical_country(country), FALLBACK_TUITION)


def default_record(name: str, country: str) -> Dict[str, Any]:
    """Country-based default enrichment for one university."""
    return {
        "name": name,
        "country": country,
        "tuition_estimate": default_tuition(country),
        "acceptance_rate": DEFAULT_ACCEPTANCE_RATE,
        "rank": None,
    }
