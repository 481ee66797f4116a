"""
Enrichment Confidence Scoring

Deterministic [0, 1] quality score for one enrichment record:

    confidence = completeness * 0.4
               + source reliability * 0.3
               + verification * 0.2
               + recency * 0.1

Recency is always 1.0 because the score is computed at write time and
never decayed afterwards. Pure functions only, no I/O.
"""

from typing import Any, Dict, Mapping, Optional

REQUIRED_FIELDS = (
    "name",
    "country",
    "city",
    "domain",
    "tuition_estimate",
    "acceptance_rate",
    "rank",
)

WEIGHTS = {
    "completeness": 0.4,
    "source": 0.3,
    "verification": 0.2,
    "recency": 0.1,
}

# Source tag -> reliability
SOURCE_RELIABILITY: Dict[str, float] = {
    "VERIFIED": 1.0,
    "MANUAL": 0.85,
    "GEMINI": 0.75,
    "AI": 0.70,
    "LLAMA": 0.65,
}
UNKNOWN_SOURCE_RELIABILITY = 0.5


def has_value(value: Any) -> bool:
    """Present and meaningful: not None, blank, empty, zero or False."""
    if value is None or value is False:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    if isinstance(value, (list, dict, tuple, set)) and not value:
        return False
    if isinstance(value, (int, float)) and value == 0:
        return False
    return True


def completeness(payload: Optional[Mapping[str, Any]]) -> float:
    """Fraction of REQUIRED_FIELDS present in the payload."""
    if not payload:
        return 0.0
    present = sum(1 for name in REQUIRED_FIELDS if has_value(payload.get(name)))
    return present / len(REQUIRED_FIELDS)


def source_reliability(source: Optional[str]) -> float:
    return SOURCE_RELIABILITY.get((source or "").upper(), UNKNOWN_SOURCE_RELIABILITY)


def calculate_confidence(
    payload: Optional[Mapping[str, Any]],
    source: Optional[str],
    is_verified: bool = False,
) -> float:
    """
    Compute the confidence score for an enrichment payload.

    Args:
        payload: Enriched fields (may be partial or empty)
        source: Provenance tag (VERIFIED, MANUAL, GEMINI, LLAMA, ...)
        is_verified: Whether an admin verified the record

    Returns:
        Score rounded to two decimals, clamped to [0, 1]
    """
    score = (
        completeness(payload) * WEIGHTS["completeness"]
        + source_reliability(source) * WEIGHTS["source"]
        + (1.0 if is_verified else 0.0) * WEIGHTS["verification"]
        + 1.0 * WEIGHTS["recency"]
    )
    return min(1.0, max(0.0, round(score, 2)))
