"""
tests/test_regions.py
=====================
State / city normalization and region extraction fallback order.
"""
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from risk_platform.normalization import normalize_city, normalize_state_name
from risk_platform.regions import (
    extract_region,
    extract_region_result,
    region_display_string,
    regions_equivalent,
)
from risk_platform.types import NormalizedRegion


def _record(**addresses):
    return {"companyData": {"addresses": addresses}}


# ─── Normalization ────────────────────────────────────────────────────────────

class TestNormalizeStateName:
    @pytest.mark.parametrize("raw,expected", [
        ("tamilnadu", "Tamil Nadu"),
        ("  ORISSA ", "Odisha"),
        ("new delhi", "Delhi"),
        ("Jammu & Kashmir", "Jammu and Kashmir"),
        ("maharashtra", "Maharashtra"),
        ("west   bengal", "West Bengal"),
        ("new state", "New State"),
    ])
    def test_mapping(self, raw, expected):
        assert normalize_state_name(raw) == expected

    @pytest.mark.parametrize("raw", [None, "", "   ", 42])
    def test_empty(self, raw):
        assert normalize_state_name(raw) == ""


class TestNormalizeCity:
    @pytest.mark.parametrize("raw,expected", [
        ("bombay", "Mumbai"),
        ("Bangalore", "Bengaluru"),
        ("gurgaon", "Gurugram"),
        ("PIMPRI  CHINCHWAD", "Pimpri-Chinchwad"),
        ("some town", "Some Town"),
    ])
    def test_mapping(self, raw, expected):
        assert normalize_city(raw) == expected


IDEMPOTENCE_INPUTS = [
    "tamilnadu", "TAMIL NADU", "orissa", "Delhi", "new delhi", "mumbai", "bombay",
    "kalyan dombivali", "Kalyan-Dombivli", "o'neil nagar", "mcDonald", "ßtraße",
    "123abc", "  spaced   out  ", "İstanbul", "x", "Jammu and Kashmir",
]


class TestIdempotence:
    @pytest.mark.parametrize("raw", IDEMPOTENCE_INPUTS)
    def test_state(self, raw):
        once = normalize_state_name(raw)
        assert normalize_state_name(once) == once

    @pytest.mark.parametrize("raw", IDEMPOTENCE_INPUTS)
    def test_city(self, raw):
        once = normalize_city(raw)
        assert normalize_city(once) == once


# ─── Extraction ───────────────────────────────────────────────────────────────

class TestExtractRegion:
    def test_registered_address_wins(self, sample_risk_analysis):
        region = extract_region(sample_risk_analysis)
        assert region == NormalizedRegion("Maharashtra", "Mumbai", "registered", "high")

    def test_business_address_when_registered_missing(self):
        record = _record(business_address={"state": "karnataka", "city": "bangalore"})
        assert extract_region(record) == NormalizedRegion("Karnataka", "Bengaluru", "business", "high")

    def test_state_without_city_is_medium(self):
        record = _record(registered_address={"state": "Gujarat"})
        assert extract_region(record) == NormalizedRegion("Gujarat", None, "registered", "medium")

    def test_company_info_fallback(self):
        record = {"companyData": {"company_info": {"state": "gujarat"}}}
        assert extract_region(record) == NormalizedRegion("Gujarat", None, "unknown", "low")

    def test_location_fallback_with_city(self):
        record = {"location": {"stateName": "Kerala", "cityName": "cochin"}}
        assert extract_region(record) == NormalizedRegion("Kerala", "Kochi", "unknown", "medium")

    def test_address_text_scan(self):
        record = _record(registered_address={"address_line_1": "Plot 12, MIDC, Pune, Maharashtra 411001"})
        assert extract_region(record) == NormalizedRegion("Maharashtra", "Pune", "unknown", "low")

    def test_address_text_scan_city_suffix(self):
        record = _record(business_address={"address_line_1": "Sector 5, Rampur Road", "address_line_2": "Uttar Pradesh"})
        assert extract_region(record) == NormalizedRegion("Uttar Pradesh", "Rampur", "unknown", "low")

    def test_city_only_is_last_resort(self):
        record = _record(registered_address={"city": "bombay"})
        result = extract_region_result(record)
        assert result.value == NormalizedRegion(None, "Mumbai", "registered", "medium")
        assert result.ok

    @pytest.mark.parametrize("record", [None, "junk", 7, {}, {"companyData": "x"}, {"companyData": {"addresses": []}}])
    def test_nothing_found(self, record):
        assert extract_region(record) == NormalizedRegion()

    def test_missing_data_is_not_a_failure(self):
        result = extract_region_result({})
        assert result.ok
        assert result.issues[0].kind == "missing_data"


class TestRegionHelpers:
    def test_display_string(self):
        assert region_display_string(NormalizedRegion("Maharashtra", "Mumbai")) == "Mumbai, Maharashtra"
        assert region_display_string(NormalizedRegion("Goa")) == "Goa"
        assert region_display_string(NormalizedRegion()) == "Unknown"
        assert region_display_string(None) == "Unknown"

    def test_equivalent(self):
        a = NormalizedRegion("Maharashtra", "Mumbai")
        assert regions_equivalent(a, NormalizedRegion("maharashtra", "bombay"))
        assert regions_equivalent(a, NormalizedRegion("Maharashtra"))
        assert not regions_equivalent(a, NormalizedRegion("Karnataka", "Mumbai"))
        assert not regions_equivalent(a, None)
