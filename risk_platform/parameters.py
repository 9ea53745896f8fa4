"""
risk_platform/parameters.py
===========================
Canonical risk-parameter keys and lookups over a record's ``allScores``.

Two lookup styles are offered:
  - find_parameter_score / find_parameter_details: first case-insensitive
    substring match in array order (the legacy behaviour).
  - resolve_parameter: scored match against a ParameterKey definition, so a
    specific label ("GST Compliance") beats a loose one ("GSTIN Validity")
    no matter where each sits in the array.
"""
from __future__ import annotations
import re
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .types import ParameterCategory, RawRiskRecord

# ─── Parameter Definitions ────────────────────────────────────────────────────

class ParameterDef:
    __slots__ = ("category", "aliases", "patterns", "word_tokens", "exclude_patterns", "priority")

    def __init__(
        self,
        category: ParameterCategory,
        aliases: List[str],
        patterns: Optional[List[str]] = None,
        word_tokens: Optional[List[str]] = None,
        exclude_patterns: Optional[List[str]] = None,
        priority: int = 5,
    ):
        self.category = category
        self.aliases = aliases
        self.patterns = patterns or []
        self.word_tokens = word_tokens or []
        self.exclude_patterns = exclude_patterns or []
        self.priority = priority


class ParameterKey(str, Enum):
    GST_COMPLIANCE = "gst_compliance"
    EPFO_COMPLIANCE = "epfo_compliance"
    AUDIT_QUALIFICATION = "audit_qualification"
    EBITDA_MARGIN = "ebitda_margin"
    NET_PROFIT_MARGIN = "net_profit_margin"
    DEBT_EQUITY = "debt_equity"
    CURRENT_RATIO = "current_ratio"
    REVENUE = "revenue"
    REVENUE_GROWTH = "revenue_growth"
    BUSINESS_VINTAGE = "business_vintage"
    PROMOTER_EXPERIENCE = "promoter_experience"
    BANKING_CONDUCT = "banking_conduct"
    CHEQUE_BOUNCES = "cheque_bounces"

    @property
    def definition(self) -> ParameterDef:
        return PARAMETER_DEFS[self]

    @property
    def category(self) -> ParameterCategory:
        return PARAMETER_DEFS[self].category


PARAMETER_DEFS: Dict[ParameterKey, ParameterDef] = {
    # ── Hygiene ─────────────────────────────────────────────────────────────
    ParameterKey.GST_COMPLIANCE: ParameterDef(
        "Hygiene",
        ["gst compliance", "gst filing compliance", "gst return compliance"],
        ["gst compliance", "gst filing", "gst return", "gstr"],
        word_tokens=["gst"],
        priority=9,
    ),
    ParameterKey.EPFO_COMPLIANCE: ParameterDef(
        "Hygiene",
        ["epfo compliance", "pf compliance", "provident fund compliance"],
        ["epfo", "provident fund", "epf"],
        word_tokens=["pf"],
        priority=9,
    ),
    ParameterKey.AUDIT_QUALIFICATION: ParameterDef(
        "Hygiene",
        ["audit qualification", "auditor qualification", "audit opinion", "auditor opinion"],
        ["audit qualification", "auditor", "audit", "qualification"],
        priority=8,
    ),
    # ── Financial ───────────────────────────────────────────────────────────
    ParameterKey.EBITDA_MARGIN: ParameterDef(
        "Financial", ["ebitda margin"], ["ebitda", "operating margin"], priority=7,
    ),
    ParameterKey.NET_PROFIT_MARGIN: ParameterDef(
        "Financial", ["net profit margin", "pat margin"], ["net margin", "net profit"],
        word_tokens=["pat"], priority=6,
    ),
    ParameterKey.DEBT_EQUITY: ParameterDef(
        "Financial", ["debt equity ratio", "debt to equity"], ["debt equity", "gearing", "leverage"], priority=7,
    ),
    ParameterKey.CURRENT_RATIO: ParameterDef(
        "Financial", ["current ratio"], ["current ratio", "liquidity"], priority=7,
    ),
    ParameterKey.REVENUE_GROWTH: ParameterDef(
        "Financial", ["revenue growth", "sales growth"], ["revenue growth", "sales growth", "turnover growth"], priority=6,
    ),
    ParameterKey.REVENUE: ParameterDef(
        "Financial", ["revenue", "turnover"], ["revenue", "turnover", "sales"],
        exclude_patterns=["growth"], priority=5,
    ),
    # ── Business ────────────────────────────────────────────────────────────
    ParameterKey.BUSINESS_VINTAGE: ParameterDef(
        "Business", ["business vintage", "company age"],
        ["vintage", "years in business", "years of operation", "incorporation"], priority=5,
    ),
    ParameterKey.PROMOTER_EXPERIENCE: ParameterDef(
        "Business", ["promoter experience"], ["promoter", "management experience", "director experience"], priority=5,
    ),
    # ── Banking ─────────────────────────────────────────────────────────────
    ParameterKey.BANKING_CONDUCT: ParameterDef(
        "Banking", ["banking conduct", "account conduct"],
        ["banking conduct", "bank statement", "account conduct", "bank balance"], priority=6,
    ),
    ParameterKey.CHEQUE_BOUNCES: ParameterDef(
        "Banking", ["cheque bounces", "cheque bounce"], ["cheque bounce", "bounced", "inward return"], priority=6,
    ),
}

CATEGORY_LISTS: Tuple[Tuple[str, ParameterCategory], ...] = (
    ("financialScores", "Financial"),
    ("businessScores", "Business"),
    ("hygieneScores", "Hygiene"),
    ("bankingScores", "Banking"),
)


# ─── Legacy Substring Lookup ──────────────────────────────────────────────────

def find_parameter(all_scores: Any, name: str) -> Optional[Dict[str, Any]]:
    """First entry whose ``parameter`` contains ``name`` (case-insensitive)."""
    if not isinstance(all_scores, list) or not isinstance(name, str):
        return None
    needle = name.lower()
    for entry in all_scores:
        if not isinstance(entry, dict):
            continue
        label = entry.get("parameter")
        if isinstance(label, str) and needle in label.lower():
            return entry
    return None


def find_parameter_score(all_scores: Any, name: str) -> Optional[float]:
    entry = find_parameter(all_scores, name)
    if entry is None:
        return None
    score = entry.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        return None
    return float(score)


def find_parameter_details(all_scores: Any, name: str) -> Any:
    entry = find_parameter(all_scores, name)
    return entry.get("details") if entry is not None else None


# ─── Canonical Resolution ─────────────────────────────────────────────────────

def _normalize_text(s: str) -> str:
    s = s.lower().strip()
    s = re.sub(r"[^a-z0-9]+", " ", s)
    return re.sub(r"\s+", " ", s).strip()


def match_score(label: str, key: ParameterKey) -> float:
    """How well a parameter label fits a canonical key; 0 means no match."""
    if not isinstance(label, str):
        return 0.0
    clean = _normalize_text(label)
    if not clean:
        return 0.0
    defn = key.definition
    if any(_normalize_text(ep) in clean for ep in defn.exclude_patterns):
        return 0.0

    best = 0.0
    for alias in defn.aliases:
        if clean == _normalize_text(alias):
            return 0.98
    for pattern in defn.patterns:
        pat = _normalize_text(pattern)
        if re.search(rf"(?<![a-z0-9]){re.escape(pat)}", clean):
            best = max(best, 0.85 + (len(pat) / max(len(clean), 1)) * 0.10)
        elif pat in clean:
            best = max(best, 0.75 + (len(pat) / max(len(clean), 1)) * 0.10)
    for token in defn.word_tokens:
        if re.search(rf"\b{re.escape(token)}\b", clean):
            best = max(best, 0.70)
    return min(best, 0.98)


def resolve_parameter(all_scores: Any, key: ParameterKey) -> Optional[Dict[str, Any]]:
    """
    Best-matching ``allScores`` entry for a canonical key.
    Array position only breaks exact score ties.
    """
    if not isinstance(all_scores, list):
        return None
    best_entry = None
    best_score = 0.0
    for entry in all_scores:
        if not isinstance(entry, dict):
            continue
        score = match_score(entry.get("parameter"), key)
        if score > best_score:
            best_entry, best_score = entry, score
    return best_entry


def identify_parameter(label: str) -> Optional[ParameterKey]:
    """Canonical key a free-text parameter label most likely refers to."""
    ranked = [(match_score(label, key), key.definition.priority, key) for key in ParameterKey]
    ranked = [r for r in ranked if r[0] > 0]
    if not ranked:
        return None
    ranked.sort(key=lambda r: (r[0], r[1]), reverse=True)
    return ranked[0][2]


def parameter_category(parameter: str, record: Optional[RawRiskRecord] = None) -> ParameterCategory:
    """
    Category of a parameter: the record's own category lists win, then the
    canonical definitions, else ``"Unknown"``.
    """
    if isinstance(record, dict):
        for list_key, category in CATEGORY_LISTS:
            entries = record.get(list_key)
            if isinstance(entries, list) and any(
                isinstance(e, dict) and e.get("parameter") == parameter for e in entries
            ):
                return category
    key = identify_parameter(parameter) if isinstance(parameter, str) else None
    return key.category if key is not None else "Unknown"


def available_in_category(record: Optional[RawRiskRecord], list_key: str) -> int:
    """Number of available entries in one of the record's category lists."""
    if not isinstance(record, dict):
        return 0
    entries = record.get(list_key)
    if not isinstance(entries, list):
        return 0
    return sum(1 for e in entries if isinstance(e, dict) and e.get("available"))
