"""
risk_platform/extraction.py
===========================
One-call extraction of region, compliance and headline financials for a
company, with a data-quality verdict and batch statistics.

Overall confidence averages five tiers (region, GST, EPFO, audit,
financials) scored high=3 / medium=2 / low=1:
    ≥ 2.5 → high,  ≥ 2.0 → medium,  else low
"""
from __future__ import annotations
import logging
from typing import Any, Iterable, List, Optional, Tuple

from .compliance import extract_compliance_data_result
from .financials import extract_financial_metrics_result
from .regions import extract_region_result
from .types import (
    ComplianceData, Confidence, DataQuality, ExtractedCompanyData, ExtractionStatistics,
    RecordLike, coerce_records,
)

logger = logging.getLogger(__name__)

CONFIDENCE_POINTS = {"high": 3, "medium": 2, "low": 1}
HIGH_CONFIDENCE_AVG = 2.5
MEDIUM_CONFIDENCE_AVG = 2.0


def _has_compliance(data: ComplianceData) -> bool:
    return any(s != "unknown" for s in (data.gst.status, data.epfo.status, data.audit.status))


def _overall_confidence(tiers: Iterable[Confidence]) -> Confidence:
    points = [CONFIDENCE_POINTS.get(t, 1) for t in tiers]
    avg = sum(points) / len(points) if points else 1.0
    if avg >= HIGH_CONFIDENCE_AVG:
        return "high"
    if avg >= MEDIUM_CONFIDENCE_AVG:
        return "medium"
    return "low"


def extract_company_data(record: Any) -> ExtractedCompanyData:
    """Run every extractor over one raw risk analysis. Never raises."""
    results = (
        extract_region_result(record),
        extract_compliance_data_result(record),
        extract_financial_metrics_result(record),
    )
    region, compliance, financial = (r.value for r in results)
    failures = sum(1 for r in results if not r.ok)
    if failures:
        logger.debug("extract_company_data: %d extractor(s) reported parse problems", failures)

    quality = DataQuality(
        has_region_data=bool(region.state or region.city),
        has_compliance_data=_has_compliance(compliance),
        has_financial_data=financial.confidence != "low",
        overall_confidence=_overall_confidence((
            region.confidence,
            compliance.gst.confidence,
            compliance.epfo.confidence,
            compliance.audit.confidence,
            financial.confidence,
        )),
    )
    return ExtractedCompanyData(region=region, compliance=compliance, financial=financial, data_quality=quality)


def meets_filtering_requirements(
    data: ExtractedCompanyData,
    require_region: bool = False,
    require_compliance: bool = False,
    require_financial: bool = False,
    minimum_confidence: Optional[Confidence] = None,
) -> bool:
    quality = data.data_quality
    if require_region and not quality.has_region_data:
        return False
    if require_compliance and not quality.has_compliance_data:
        return False
    if require_financial and not quality.has_financial_data:
        return False
    if minimum_confidence is not None:
        return CONFIDENCE_POINTS[quality.overall_confidence] >= CONFIDENCE_POINTS[minimum_confidence]
    return True


def extract_batch_company_data(records: Iterable[RecordLike]) -> List[Tuple[str, ExtractedCompanyData]]:
    """(id, extracted data) per record, in input order."""
    return [(r.id, extract_company_data(r.risk_analysis)) for r in coerce_records(records)]


def get_extraction_statistics(extracted: Iterable[ExtractedCompanyData]) -> ExtractionStatistics:
    items = list(extracted)
    stats = ExtractionStatistics(total_companies=len(items))
    if not items:
        return stats

    for data in items:
        quality = data.data_quality
        stats.region_data_available += quality.has_region_data
        stats.compliance_data_available += quality.has_compliance_data
        stats.financial_data_available += quality.has_financial_data
        stats.confidence_counts[quality.overall_confidence] += 1

    n = len(items)
    available = (stats.region_data_available, stats.compliance_data_available, stats.financial_data_available)
    stats.success_rates = {
        "region": available[0] / n * 100,
        "compliance": available[1] / n * 100,
        "financial": available[2] / n * 100,
        "overall": sum(available) / (n * 3) * 100,
    }
    return stats
