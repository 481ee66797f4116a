"""
University Enrichment

LLM-backed enrichment of university facts, single and batched, with
country-based defaults when the model cannot help.
"""

from counsellor.enrichment.defaults import (
    DEFAULT_TUITION_BY_COUNTRY,
    FALLBACK_TUITION,
    DEFAULT_ACCEPTANCE_RATE,
    DEFAULT_SOURCE,
    canonical_country,
    default_tuition,
    default_record,
)
from counsellor.enrichment.enricher import UniversityEnricher, default_result
from counsellor.enrichment.batch import BatchEnricher, BatchSummary, build_batch_record

__all__ = [
    "DEFAULT_TUITION_BY_COUNTRY",
    "FALLBACK_TUITION",
    "DEFAULT_ACCEPTANCE_RATE",
    "DEFAULT_SOURCE",
    "canonical_country",
    "default_tuition",
    "default_record",
    "UniversityEnricher",
    "default_result",
    "BatchEnricher",
    "BatchSummary",
    "build_batch_record",
]
