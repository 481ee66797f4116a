"""
Tests for Confidence Scoring

Scores must be deterministic, rounded to two decimals and within [0, 1].
"""

import pytest

from counsellor.scoring.confidence import (
    REQUIRED_FIELDS,
    calculate_confidence,
    completeness,
    has_value,
    source_reliability,
)


class TestHasValue:

    @pytest.mark.parametrize("value", ["Munich", 1, 0.5, ["x"], {"a": 1}, True])
    def test_present(self, value):
        assert has_value(value)

    @pytest.mark.parametrize("value", [None, "", "   ", [], {}, 0, 0.0, False])
    def test_missing(self, value):
        assert not has_value(value)


class TestCompleteness:

    def test_empty(self):
        assert completeness({}) == 0.0
        assert completeness(None) == 0.0

    def test_partial(self):
        payload = {"tuition_estimate": 12000, "acceptance_rate": 30}
        assert completeness(payload) == pytest.approx(2 / len(REQUIRED_FIELDS))

    def test_zero_tuition_counts_as_missing(self):
        assert completeness({"tuition_estimate": 0}) == 0.0

    def test_extra_fields_ignored(self, full_enrichment):
        assert completeness(full_enrichment) == 1.0


class TestSourceReliability:

    def test_known_sources(self):
        assert source_reliability("VERIFIED") == 1.0
        assert source_reliability("MANUAL") == 0.85
        assert source_reliability("GEMINI") == 0.75
        assert source_reliability("LLAMA") == 0.65

    def test_case_insensitive(self):
        assert source_reliability("gemini") == 0.75

    def test_unknown_source(self):
        assert source_reliability("vendor-A") == 0.5
        assert source_reliability(None) == 0.5


class TestCalculateConfidence:

    def test_partial_gemini_record(self):
        """2/7 fields from Gemini: 0.114 + 0.225 + 0 + 0.1."""
        payload = {"tuition_estimate": 12000, "acceptance_rate": 30}
        assert calculate_confidence(payload, "GEMINI") == 0.44

    def test_partial_unknown_source(self):
        payload = {"tuition_estimate": 12000, "acceptance_rate": 30}
        assert calculate_confidence(payload, "vendor-A") == 0.36

    def test_empty_unknown_source(self):
        assert calculate_confidence({}, "UNKNOWN") == 0.25

    def test_full_verified_manual_record(self, full_enrichment):
        assert calculate_confidence(full_enrichment, "MANUAL", is_verified=True) >= 0.9

    def test_full_verified_record_is_clamped(self, full_enrichment):
        assert calculate_confidence(full_enrichment, "VERIFIED", is_verified=True) == 1.0

    def test_verification_raises_score(self, full_enrichment):
        unverified = calculate_confidence(full_enrichment, "GEMINI")
        verified = calculate_confidence(full_enrichment, "GEMINI", is_verified=True)

        assert verified == pytest.approx(unverified + 0.2, abs=0.011)

    def test_deterministic(self, full_enrichment):
        scores = {calculate_confidence(full_enrichment, "LLAMA") for _ in range(5)}
        assert len(scores) == 1
