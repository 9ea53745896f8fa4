"""
risk_platform/normalization.py
==============================
Canonical Indian state and city names.

Lookup is case-insensitive and whitespace-tolerant; unmapped names fall back
to per-word capitalisation. Both normalizers are idempotent: every canonical
value maps to itself, and the fallback only emits words that are already
stable under capitalisation.
"""
from __future__ import annotations
from typing import Any, Dict

# ─── Canonical Tables ─────────────────────────────────────────────────────────

_STATE_ALIASES: Dict[str, str] = {
    "tamilnadu": "Tamil Nadu",
    "uttarpradesh": "Uttar Pradesh",
    "westbengal": "West Bengal",
    "andhrapradesh": "Andhra Pradesh",
    "madhyapradesh": "Madhya Pradesh",
    "himachalpradesh": "Himachal Pradesh",
    "arunachalpradesh": "Arunachal Pradesh",
    "new delhi": "Delhi",
    "ncr": "Delhi",
    "nct of delhi": "Delhi",
    "orissa": "Odisha",
    "pondicherry": "Puducherry",
    "uttaranchal": "Uttarakhand",
    "j&k": "Jammu and Kashmir",
    "jammu & kashmir": "Jammu and Kashmir",
}

_STATES = (
    "Andhra Pradesh", "Arunachal Pradesh", "Assam", "Bihar", "Chhattisgarh", "Delhi",
    "Goa", "Gujarat", "Haryana", "Himachal Pradesh", "Jammu and Kashmir", "Jharkhand",
    "Karnataka", "Kerala", "Ladakh", "Madhya Pradesh", "Maharashtra", "Manipur",
    "Meghalaya", "Mizoram", "Nagaland", "Odisha", "Puducherry", "Punjab", "Rajasthan",
    "Sikkim", "Tamil Nadu", "Telangana", "Tripura", "Uttar Pradesh", "Uttarakhand",
    "West Bengal", "Chandigarh",
)

_CITY_ALIASES: Dict[str, str] = {
    "bombay": "Mumbai",
    "bangalore": "Bengaluru",
    "calcutta": "Kolkata",
    "madras": "Chennai",
    "pimpri chinchwad": "Pimpri-Chinchwad",
    "kalyan dombivali": "Kalyan-Dombivli",
    "kalyan dombivli": "Kalyan-Dombivli",
    "vasai virar": "Vasai-Virar",
    "allahabad": "Prayagraj",
    "hubli dharwad": "Hubli-Dharwad",
    "hubballi dharwad": "Hubli-Dharwad",
    "mysore": "Mysuru",
    "gurgaon": "Gurugram",
    "mira bhayandar": "Mira-Bhayandar",
    "trivandrum": "Thiruvananthapuram",
    "bhilai nagar": "Bhilai",
    "cochin": "Kochi",
    "nanded waghala": "Nanded",
    "gulbarga": "Kalaburagi",
    "sangli miraj kupwad": "Sangli",
    "belgaum": "Belagavi",
    "mangalore": "Mangaluru",
    "baroda": "Vadodara",
    "poona": "Pune",
    "trichy": "Tiruchirappalli",
    "vizag": "Visakhapatnam",
}

_CITIES = (
    "Mumbai", "Bengaluru", "Kolkata", "Chennai", "New Delhi", "Delhi", "Hyderabad", "Pune",
    "Ahmedabad", "Surat", "Jaipur", "Lucknow", "Kanpur", "Nagpur", "Indore", "Thane", "Bhopal",
    "Visakhapatnam", "Pimpri-Chinchwad", "Patna", "Vadodara", "Ghaziabad", "Ludhiana", "Agra",
    "Nashik", "Faridabad", "Meerut", "Rajkot", "Kalyan-Dombivli", "Vasai-Virar", "Varanasi",
    "Srinagar", "Aurangabad", "Dhanbad", "Amritsar", "Navi Mumbai", "Prayagraj", "Howrah",
    "Ranchi", "Gwalior", "Jabalpur", "Coimbatore", "Vijayawada", "Jodhpur", "Madurai", "Raipur",
    "Kota", "Chandigarh", "Guwahati", "Solapur", "Hubli-Dharwad", "Tiruchirappalli", "Bareilly",
    "Mysuru", "Tiruppur", "Gurugram", "Aligarh", "Jalandhar", "Bhubaneswar", "Salem", "Warangal",
    "Mira-Bhayandar", "Thiruvananthapuram", "Bhiwandi", "Saharanpur", "Guntur", "Amravati",
    "Bikaner", "Noida", "Jamshedpur", "Bhilai", "Cuttack", "Firozabad", "Kochi", "Bhavnagar",
    "Dehradun", "Durgapur", "Asansol", "Nanded", "Kolhapur", "Ajmer", "Akola", "Kalaburagi",
    "Jamnagar", "Ujjain", "Loni", "Siliguri", "Jhansi", "Ulhasnagar", "Nellore", "Jammu",
    "Sangli", "Belagavi", "Mangaluru", "Ambattur", "Tirunelveli", "Malegaon", "Gaya", "Jalgaon",
    "Udaipur", "Maheshtala",
)


def _build(aliases: Dict[str, str], canonical: tuple) -> Dict[str, str]:
    table = dict(aliases)
    # canonical values must map to themselves
    table.update({name.lower(): name for name in canonical})
    return table


STATE_NAMES: Dict[str, str] = _build(_STATE_ALIASES, _STATES)
CITY_NAMES: Dict[str, str] = _build(_CITY_ALIASES, _CITIES)


# ─── Normalizers ──────────────────────────────────────────────────────────────

def _key(s: str) -> str:
    return " ".join(s.split()).lower()


def _capitalize_word(word: str) -> str:
    cap = word.capitalize()
    return cap if cap.capitalize() == cap else word


def _normalize(value: Any, table: Dict[str, str]) -> str:
    if not isinstance(value, str):
        return ""
    key = _key(value)
    if not key:
        return ""
    if key in table:
        return table[key]
    titled = " ".join(_capitalize_word(w) for w in value.split())
    return table.get(_key(titled), titled)


def normalize_state_name(state: Any) -> str:
    """'tamilnadu' → 'Tamil Nadu', 'orissa' → 'Odisha', 'new  state' → 'New State'."""
    return _normalize(state, STATE_NAMES)


def normalize_city(city: Any) -> str:
    """'bombay' → 'Mumbai', 'gurgaon' → 'Gurugram', unmapped names are capitalised."""
    return _normalize(city, CITY_NAMES)
