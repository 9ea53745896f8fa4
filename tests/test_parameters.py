"""
tests/test_parameters.py
========================
Canonical parameter keys, scored resolution and legacy substring lookup.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from risk_platform.parameters import (
    ParameterKey,
    available_in_category,
    find_parameter_details,
    find_parameter_score,
    identify_parameter,
    match_score,
    parameter_category,
    resolve_parameter,
)


GSTIN = {"parameter": "GSTIN Validity", "score": 3, "maxScore": 5, "available": True, "details": "gstin"}
GST = {"parameter": "GST Compliance", "score": 9, "maxScore": 10, "available": True, "details": "gst"}


class TestMatchScore:
    def test_exact_alias(self):
        assert match_score("GST Compliance", ParameterKey.GST_COMPLIANCE) == pytest.approx(0.98)

    def test_alias_ignores_case_and_punctuation(self):
        assert match_score("  gst-compliance ", ParameterKey.GST_COMPLIANCE) == pytest.approx(0.98)

    def test_gstin_is_not_gst_compliance(self):
        assert match_score("GSTIN Validity", ParameterKey.GST_COMPLIANCE) == 0.0

    def test_pattern_match_scores_below_alias(self):
        score = match_score("GSTR-3B Filing Regularity", ParameterKey.GST_COMPLIANCE)
        assert 0.85 <= score < 0.98

    def test_exclude_pattern(self):
        assert match_score("Revenue Growth", ParameterKey.REVENUE) == 0.0

    def test_word_token(self):
        assert match_score("PF Dues", ParameterKey.EPFO_COMPLIANCE) == pytest.approx(0.70)

    @pytest.mark.parametrize("label", [None, "", "   ", 12])
    def test_unusable_labels(self, label):
        assert match_score(label, ParameterKey.GST_COMPLIANCE) == 0.0


class TestResolveParameter:
    def test_specific_label_beats_earlier_loose_one(self):
        assert resolve_parameter([GSTIN, GST], ParameterKey.GST_COMPLIANCE) is GST

    def test_order_independent(self):
        assert resolve_parameter([GST, GSTIN], ParameterKey.GST_COMPLIANCE) is GST

    def test_first_entry_wins_ties(self):
        a = dict(GST, score=1)
        b = dict(GST, score=2)
        assert resolve_parameter([a, b], ParameterKey.GST_COMPLIANCE) is a

    def test_no_match(self):
        assert resolve_parameter([GSTIN], ParameterKey.GST_COMPLIANCE) is None

    @pytest.mark.parametrize("scores", [None, "x", {}, [None, 3, "GST"]])
    def test_malformed_scores(self, scores):
        assert resolve_parameter(scores, ParameterKey.GST_COMPLIANCE) is None


class TestLegacyLookup:
    def test_first_substring_match_in_array_order(self):
        assert find_parameter_score([GSTIN, GST], "gst") == 3.0
        assert find_parameter_details([GSTIN, GST], "GST") == "gstin"

    def test_missing(self):
        assert find_parameter_score([GST], "epfo") is None
        assert find_parameter_details(None, "gst") is None

    def test_non_numeric_score(self):
        assert find_parameter_score([{"parameter": "GST", "score": "high"}], "gst") is None


class TestIdentifyParameter:
    @pytest.mark.parametrize("label,expected", [
        ("PF Compliance", ParameterKey.EPFO_COMPLIANCE),
        ("PAT Margin", ParameterKey.NET_PROFIT_MARGIN),
        ("Revenue Growth", ParameterKey.REVENUE_GROWTH),
        ("Annual Revenue", ParameterKey.REVENUE),
        ("Cheque Bounces", ParameterKey.CHEQUE_BOUNCES),
        ("Auditor Opinion", ParameterKey.AUDIT_QUALIFICATION),
    ])
    def test_known_labels(self, label, expected):
        assert identify_parameter(label) == expected

    def test_unknown_label(self):
        assert identify_parameter("Zzz Widget") is None


class TestParameterCategory:
    def test_key_category(self):
        assert ParameterKey.GST_COMPLIANCE.category == "Hygiene"
        assert ParameterKey.CHEQUE_BOUNCES.category == "Banking"

    def test_record_category_list_wins(self):
        record = {"hygieneScores": [{"parameter": "EBITDA Margin"}]}
        assert parameter_category("EBITDA Margin", record) == "Hygiene"

    def test_falls_back_to_canonical_definition(self):
        assert parameter_category("EBITDA Margin") == "Financial"
        assert parameter_category("EBITDA Margin", {"hygieneScores": "bad"}) == "Financial"

    def test_unknown(self):
        assert parameter_category("Zzz Widget") == "Unknown"


class TestAvailableInCategory:
    def test_counts_available_entries(self, sample_risk_analysis):
        assert available_in_category(sample_risk_analysis, "hygieneScores") == 3
        assert available_in_category(sample_risk_analysis, "bankingScores") == 0

    def test_missing_list(self):
        assert available_in_category({}, "businessScores") == 0
        assert available_in_category(None, "businessScores") == 0
