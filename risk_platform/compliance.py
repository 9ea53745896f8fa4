"""
risk_platform/compliance.py
===========================
GST, EPFO and audit compliance classification.

A compliance rate (0-100) is read from the parameter's ``details`` when the
upstream pipeline reported one, otherwise derived from score / maxScore.
The rate is then mapped through a threshold ladder to a status and a
confidence tier. Audit opinions are classified by keyword.
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .diagnostics import ExtractionResult, never_raises, run_extractor
from .parameters import ParameterKey, resolve_parameter
from .types import (
    AuditOutcome, AuditStatus, ComplianceData, ComplianceStatus, ComplianceSummary,
    Confidence, EPFOCompliance, GSTCompliance,
)

logger = logging.getLogger(__name__)

# ─── Thresholds ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ComplianceLadder:
    compliant: float
    partial: float
    non_compliant: float
    # below non_compliant, rates down to this floor are still medium confidence
    confident_floor: float


@dataclass(frozen=True)
class ComplianceThresholds:
    gst: ComplianceLadder = field(default_factory=lambda: ComplianceLadder(95.0, 80.0, 60.0, 50.0))
    epfo: ComplianceLadder = field(default_factory=lambda: ComplianceLadder(95.0, 85.0, 70.0, 70.0))


DEFAULT_THRESHOLDS = ComplianceThresholds()

GST_RATE_PATHS = (
    ("compliance_rate",),
    ("gstr1_analysis", "compliance_rate"),
    ("gstr3b_analysis", "compliance_rate"),
)
EPFO_RATE_PATHS = (
    ("compliance_rate",),
    ("epfo_analysis", "compliance_rate"),
    ("effective_compliance_rate",),
)
AUDIT_TEXT_KEYS = ("qualification", "audit_qualification", "opinion")

# evaluated in order; "unqualified" must be tested before "qualified"
AUDIT_KEYWORDS: Tuple[Tuple[AuditOutcome, Tuple[str, ...]], ...] = (
    ("unqualified", ("unqualified", "clean", "standard", "regular")),
    ("qualified", ("qualified", "except for", "subject to")),
    ("adverse", ("adverse", "negative")),
    ("disclaimer", ("disclaimer", "unable to express", "scope limitation")),
)

AUDIT_AS_COMPLIANCE: Dict[str, ComplianceStatus] = {
    "unqualified": "compliant",
    "qualified": "partial",
    "adverse": "non-compliant",
    "disclaimer": "non-compliant",
}


# ─── Status Mapping ───────────────────────────────────────────────────────────

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value)


def _map_rate(rate: Any, ladder: ComplianceLadder, label: str) -> Tuple[ComplianceStatus, Confidence]:
    if not _is_number(rate) or rate < 0 or rate > 100:
        logger.warning("%s compliance rate %r is outside expected range [0, 100]", label, rate)
        return "unknown", "low"
    if rate >= ladder.compliant:
        return "compliant", "high"
    if rate >= ladder.partial:
        return "partial", "medium"
    if rate >= min(ladder.non_compliant, ladder.confident_floor):
        return "non-compliant", "medium"
    return "non-compliant", "high"


def map_gst_score_to_status(
    rate: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[ComplianceStatus, Confidence]:
    """96 → compliant/high, 85 → partial/medium, 50 → non-compliant/medium, 150 → unknown/low."""
    return _map_rate(rate, thresholds.gst, "GST")


def map_epfo_score_to_status(
    rate: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS,
) -> Tuple[ComplianceStatus, Confidence]:
    return _map_rate(rate, thresholds.epfo, "EPFO")


def map_audit_qualification_to_status(qualification: Any) -> Tuple[AuditOutcome, Confidence]:
    if not isinstance(qualification, str):
        return "unknown", "low"
    text = qualification.lower().strip()
    for outcome, keywords in AUDIT_KEYWORDS:
        if any(k in text for k in keywords):
            return outcome, "high"
    return "unknown", "low"


# ─── Extraction ───────────────────────────────────────────────────────────────

def _dig(obj: Any, path: Tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(key)
    return obj


def _compliance_rate(entry: Dict[str, Any], paths: Tuple[Tuple[str, ...], ...]) -> Tuple[Optional[float], str]:
    details = entry.get("details")
    for path in paths:
        value = _dig(details, path)
        if _is_number(value):
            return float(value), ".".join(path)
    score, max_score = entry.get("score"), entry.get("maxScore")
    if _is_number(score) and _is_number(max_score) and max_score > 0:
        return score / max_score * 100, "score_ratio"
    return None, "none"


def _scores(record: Any) -> Any:
    return record.get("allScores") if isinstance(record, dict) else None


def _rate_compliance(record: Any, key: ParameterKey, paths, mapper, thresholds, result: ExtractionResult):
    entry = resolve_parameter(_scores(record), key)
    if entry is None:
        result.record("missing_data", key.value, "parameter not found")
        return None
    if not entry.get("available"):
        result.record("missing_data", key.value, f"{entry.get('parameter')} not available")
        return None
    rate, source = _compliance_rate(entry, paths)
    if rate is None:
        result.record("missing_data", key.value, "no compliance rate or score")
        return None
    status, confidence = mapper(rate, thresholds)
    details = {"parameter": entry.get("parameter"), "rate_source": source}
    if isinstance(entry.get("details"), dict):
        details["raw"] = entry["details"]
    return status, (rate if status != "unknown" else None), confidence, details


def _rated_result(record: Any, thresholds: ComplianceThresholds, key: ParameterKey,
                  paths: Tuple[Tuple[str, ...], ...], mapper, cls) -> ExtractionResult:
    result: ExtractionResult = ExtractionResult(cls())
    rated = _rate_compliance(record, key, paths, mapper, thresholds, result)
    if rated:
        result.value = cls(*rated)
    return result


def extract_gst_compliance_result(
    record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS,
) -> ExtractionResult:
    return run_extractor(
        lambda: _rated_result(record, thresholds, ParameterKey.GST_COMPLIANCE, GST_RATE_PATHS,
                              map_gst_score_to_status, GSTCompliance),
        GSTCompliance, "extract_gst_compliance",
    )


def extract_gst_compliance(record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS) -> GSTCompliance:
    return extract_gst_compliance_result(record, thresholds).value


def extract_epfo_compliance_result(
    record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS,
) -> ExtractionResult:
    return run_extractor(
        lambda: _rated_result(record, thresholds, ParameterKey.EPFO_COMPLIANCE, EPFO_RATE_PATHS,
                              map_epfo_score_to_status, EPFOCompliance),
        EPFOCompliance, "extract_epfo_compliance",
    )


def extract_epfo_compliance(record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS) -> EPFOCompliance:
    return extract_epfo_compliance_result(record, thresholds).value


@never_raises(AuditStatus)
def extract_audit_status(record: Any) -> AuditStatus:
    entry = resolve_parameter(_scores(record), ParameterKey.AUDIT_QUALIFICATION)
    if entry is None or not entry.get("available"):
        return AuditStatus()
    details = entry.get("details")
    text = None
    for key in AUDIT_TEXT_KEYS:
        candidate = details.get(key) if isinstance(details, dict) else None
        if isinstance(candidate, str) and candidate.strip():
            text = candidate
            break
    if text is None and isinstance(entry.get("value"), str):
        text = entry["value"]
    status, confidence = map_audit_qualification_to_status(text)
    return AuditStatus(
        status=status,
        qualification=text,
        confidence=confidence,
        details={"parameter": entry.get("parameter")},
    )


def _extract_compliance_data(record: Any, thresholds: ComplianceThresholds) -> ExtractionResult:
    gst = extract_gst_compliance_result(record, thresholds)
    epfo = extract_epfo_compliance_result(record, thresholds)
    audit = extract_audit_status(record)
    result: ExtractionResult = ExtractionResult(ComplianceData(gst=gst.value, epfo=epfo.value, audit=audit))
    result.issues.extend(gst.issues + epfo.issues)
    if audit.status == "unknown":
        result.record("missing_data", ParameterKey.AUDIT_QUALIFICATION.value, "no classifiable audit opinion")
    return result


def extract_compliance_data_result(
    record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS,
) -> ExtractionResult:
    return run_extractor(lambda: _extract_compliance_data(record, thresholds), ComplianceData, "extract_compliance_data")


def extract_compliance_data(record: Any, thresholds: ComplianceThresholds = DEFAULT_THRESHOLDS) -> ComplianceData:
    """GST, EPFO and audit status for one record. Never raises."""
    return extract_compliance_data_result(record, thresholds).value


# ─── Summaries ────────────────────────────────────────────────────────────────

def validate_compliance_data(data: ComplianceData) -> Dict[str, bool]:
    has_gst = data.gst.status != "unknown"
    has_epfo = data.epfo.status != "unknown"
    has_audit = data.audit.status != "unknown"
    return {
        "is_valid": has_gst or has_epfo or has_audit,
        "has_gst_data": has_gst,
        "has_epfo_data": has_epfo,
        "has_audit_data": has_audit,
    }


def get_compliance_summary(data: ComplianceData) -> ComplianceSummary:
    """
    Overall status across the three checks. Audit outcomes are folded into the
    compliance scale first: unqualified → compliant, qualified → partial,
    adverse / disclaimer → non-compliant.
    """
    statuses: List[ComplianceStatus] = [
        data.gst.status,
        data.epfo.status,
        AUDIT_AS_COMPLIANCE.get(data.audit.status, "unknown"),
    ]
    known = [s for s in statuses if s != "unknown"]

    if not known:
        overall: ComplianceStatus = "unknown"
    elif "non-compliant" in known:
        overall = "non-compliant"
    elif "partial" in known:
        overall = "partial"
    else:
        overall = "compliant"

    details: List[str] = []
    if data.gst.status != "unknown":
        details.append(f"GST: {data.gst.status}")
    if data.epfo.status != "unknown":
        details.append(f"EPFO: {data.epfo.status}")
    if data.audit.status != "unknown":
        details.append(f"Audit: {data.audit.status}")

    return ComplianceSummary(
        overall_status=overall,
        compliant_count=sum(1 for s in known if s == "compliant"),
        total_checks=len(known),
        details=details,
    )


def meets_compliance_requirements(
    data: ComplianceData,
    gst_required: bool = False,
    epfo_required: bool = False,
    audit_required: bool = False,
    minimum_compliant_count: int = 0,
) -> bool:
    check = validate_compliance_data(data)
    if gst_required and not check["has_gst_data"]:
        return False
    if epfo_required and not check["has_epfo_data"]:
        return False
    if audit_required and not check["has_audit_data"]:
        return False
    if minimum_compliant_count and get_compliance_summary(data).compliant_count < minimum_compliant_count:
        return False
    return True
