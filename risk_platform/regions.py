"""
risk_platform/regions.py
========================
Region (state + city) extraction from a raw risk-analysis record.

Sources are tried in order:
  1. companyData.addresses.registered_address
  2. companyData.addresses.business_address
  3. alternative objects: companyData.addresses, companyData.company_info,
     top-level addresses, location
  4. regex scan of free-text address lines for Indian state names
The first source that yields a state wins.
"""
from __future__ import annotations
import re
from typing import Any, Dict, List, Optional, Tuple

from .diagnostics import ExtractionResult, run_extractor
from .normalization import CITY_NAMES, normalize_city, normalize_state_name
from .types import NormalizedRegion, RawRiskRecord

ADDRESS_SOURCES = (("registered_address", "registered"), ("business_address", "business"))

STATE_PATTERNS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"\bmaharashtra\b", re.I), "Maharashtra"),
    (re.compile(r"\bkarnataka\b", re.I), "Karnataka"),
    (re.compile(r"\btamil\s*nadu\b", re.I), "Tamil Nadu"),
    (re.compile(r"\buttar\s*pradesh\b", re.I), "Uttar Pradesh"),
    (re.compile(r"\bwest\s*bengal\b", re.I), "West Bengal"),
    (re.compile(r"\bandhra\s*pradesh\b", re.I), "Andhra Pradesh"),
    (re.compile(r"\bmadhya\s*pradesh\b", re.I), "Madhya Pradesh"),
    (re.compile(r"\bgujarat\b", re.I), "Gujarat"),
    (re.compile(r"\brajasthan\b", re.I), "Rajasthan"),
    (re.compile(r"\bpunjab\b", re.I), "Punjab"),
    (re.compile(r"\bharyana\b", re.I), "Haryana"),
    (re.compile(r"\bkerala\b", re.I), "Kerala"),
    (re.compile(r"\b(?:odisha|orissa)\b", re.I), "Odisha"),
    (re.compile(r"\bjharkhand\b", re.I), "Jharkhand"),
    (re.compile(r"\bchhattisgarh\b", re.I), "Chhattisgarh"),
    (re.compile(r"\bassam\b", re.I), "Assam"),
    (re.compile(r"\bbihar\b", re.I), "Bihar"),
    (re.compile(r"\bgoa\b", re.I), "Goa"),
    (re.compile(r"\b(?:new\s+)?delhi\b", re.I), "Delhi"),
    (re.compile(r"\btelangana\b", re.I), "Telangana"),
]

CITY_SUFFIXES = ("nagar", "pur", "bad", "ganj", "garh")


def _text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value.strip() else None


def _first(obj: Dict[str, Any], *keys: str) -> Optional[str]:
    for k in keys:
        v = _text(obj.get(k))
        if v:
            return v
    return None


def _addresses(record: RawRiskRecord) -> Dict[str, Any]:
    company = record.get("companyData")
    if not isinstance(company, dict):
        return {}
    addresses = company.get("addresses")
    return addresses if isinstance(addresses, dict) else {}


def _city_from_text(text: str) -> Optional[str]:
    words = [w for w in re.split(r"[,\s]+", text) if len(w) > 2]
    for w in words:
        if w.lower() in CITY_NAMES:
            return CITY_NAMES[w.lower()]
    for w in words:
        lw = w.lower()
        if w.isalpha() and any(lw.endswith(sfx) and lw != sfx for sfx in CITY_SUFFIXES):
            return normalize_city(w)
    return None


def _scan_address_text(addresses: Dict[str, Any]) -> NormalizedRegion:
    for key, _ in ADDRESS_SOURCES:
        addr = addresses.get(key)
        if not isinstance(addr, dict):
            continue
        text = " ".join(t for t in (_text(addr.get("address_line_1")), _text(addr.get("address_line_2"))) if t)
        if not text:
            continue
        for pattern, state in STATE_PATTERNS:
            if pattern.search(text):
                return NormalizedRegion(state, _city_from_text(text), "unknown", "low")
    return NormalizedRegion()


def _extract_region(record: Any) -> ExtractionResult:
    result: ExtractionResult = ExtractionResult(NormalizedRegion())
    if not isinstance(record, dict):
        result.record("missing_data", "extract_region", "no risk analysis record")
        return result

    addresses = _addresses(record)
    city_only: Optional[NormalizedRegion] = None

    for key, source in ADDRESS_SOURCES:
        addr = addresses.get(key)
        if not isinstance(addr, dict):
            continue
        state = normalize_state_name(addr.get("state")) or None
        city = normalize_city(addr.get("city")) or None
        if state:
            result.value = NormalizedRegion(state, city, source, "high" if city else "medium")
            return result
        if city and city_only is None:
            city_only = NormalizedRegion(None, city, source, "medium")

    company = record.get("companyData") if isinstance(record.get("companyData"), dict) else {}
    for candidate in (addresses, company.get("company_info"), record.get("addresses"), record.get("location")):
        if not isinstance(candidate, dict):
            continue
        state = normalize_state_name(_first(candidate, "state", "stateName")) or None
        city = normalize_city(_first(candidate, "city", "cityName")) or None
        if state:
            result.value = NormalizedRegion(state, city, "unknown", "medium" if city else "low")
            return result

    scanned = _scan_address_text(addresses)
    if scanned.state:
        result.value = scanned
        return result

    if city_only is not None:
        result.record("missing_data", "extract_region", "state not found; city only")
        result.value = city_only
        return result

    result.record("missing_data", "extract_region", "no region information")
    return result


def extract_region_result(record: Any) -> ExtractionResult:
    return run_extractor(lambda: _extract_region(record), NormalizedRegion, "extract_region")


def extract_region(record: Any) -> NormalizedRegion:
    """Never raises; returns an all-null low-confidence region when nothing is found."""
    return extract_region_result(record).value


# ─── Region Helpers ───────────────────────────────────────────────────────────

def is_region_resolved(region: Optional[NormalizedRegion]) -> bool:
    return region is not None and bool(region.state)


def region_display_string(region: Optional[NormalizedRegion]) -> str:
    if region is None:
        return "Unknown"
    parts = [p for p in (region.city, region.state) if p]
    return ", ".join(parts) if parts else "Unknown"


def regions_equivalent(a: Optional[NormalizedRegion], b: Optional[NormalizedRegion]) -> bool:
    """Same state and city after normalization; missing cities are ignored."""
    if a is None or b is None:
        return False
    if normalize_state_name(a.state) != normalize_state_name(b.state):
        return False
    if a.city and b.city:
        return normalize_city(a.city) == normalize_city(b.city)
    return True
