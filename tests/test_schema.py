"""
tests/test_schema.py
====================
Lenient section-by-section validation of raw risk records.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from risk_platform.schema import parse_risk_record, parse_risk_record_result


class TestParseRiskRecord:
    @pytest.mark.parametrize("raw", [None, "text", 42, [1, 2], True])
    def test_non_object_input_returns_none(self, raw):
        assert parse_risk_record(raw) is None

    def test_non_object_result_records_parse_failure(self):
        result = parse_risk_record_result([1, 2])
        assert result.value is None
        assert not result.ok
        assert result.issues[0].kind == "parse_failure"

    def test_well_formed_record_is_ok(self, sample_risk_analysis):
        result = parse_risk_record_result(sample_risk_analysis)
        assert result.ok
        assert result.value["allScores"][1]["parameter"] == "GST Compliance"

    def test_pin_code_coerced_to_text(self, sample_risk_analysis):
        parsed = parse_risk_record(sample_risk_analysis)
        registered = parsed["companyData"]["addresses"]["registered_address"]
        assert registered["pin_code"] == "400093"

    def test_integer_years_coerced_to_text(self):
        parsed = parse_risk_record({"financialData": {"years": [2023, 2024]}})
        assert parsed["financialData"]["years"] == ["2023", "2024"]

    def test_unknown_keys_are_preserved(self, sample_risk_analysis):
        sample_risk_analysis["customSection"] = {"anything": [1, 2, 3]}
        sample_risk_analysis["allScores"][0]["extraField"] = "kept"
        parsed = parse_risk_record(sample_risk_analysis)
        assert parsed["customSection"] == {"anything": [1, 2, 3]}
        assert parsed["allScores"][0]["extraField"] == "kept"

    def test_bad_score_entry_keeps_original_value(self):
        bad = {"parameter": "GST Compliance", "score": 5, "maxScore": -10, "available": True}
        good = {"parameter": "EPFO Compliance", "score": 5, "maxScore": 10, "available": True}
        result = parse_risk_record_result({"allScores": [bad, good]})
        assert result.value["allScores"][0] == bad
        assert result.value["allScores"][1]["maxScore"] == 10
        assert not result.ok
        assert [i.context for i in result.issues] == ["allScores[0]"]

    def test_blank_parameter_name_is_a_parse_failure(self):
        result = parse_risk_record_result({"allScores": [{"parameter": "   ", "available": True}]})
        assert result.issues[0].kind == "parse_failure"

    def test_score_list_that_is_not_a_list(self):
        result = parse_risk_record_result({"allScores": "oops"})
        assert result.value["allScores"] == "oops"
        assert result.issues[0].context == "allScores"

    def test_invalid_risk_multiplier_keeps_section(self):
        eligibility = {"finalEligibility": 500000, "riskMultiplier": 0}
        result = parse_risk_record_result({"eligibility": eligibility})
        assert result.value["eligibility"] == eligibility
        assert result.issues[0].context == "eligibility"

    def test_input_is_not_mutated(self, sample_risk_analysis):
        parse_risk_record(sample_risk_analysis)
        registered = sample_risk_analysis["companyData"]["addresses"]["registered_address"]
        assert registered["pin_code"] == 400093
