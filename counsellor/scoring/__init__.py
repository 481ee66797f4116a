"""
Scoring

Confidence scoring for cached enrichment records.
"""

from counsellor.scoring.confidence import (
    calculate_confidence,
    completeness,
    source_reliability,
    has_value,
    REQUIRED_FIELDS,
    SOURCE_RELIABILITY,
    UNKNOWN_SOURCE_RELIABILITY,
    WEIGHTS,
)

__all__ = [
    "calculate_confidence",
    "completeness",
    "source_reliability",
    "has_value",
    "REQUIRED_FIELDS",
    "SOURCE_RELIABILITY",
    "UNKNOWN_SOURCE_RELIABILITY",
    "WEIGHTS",
]
