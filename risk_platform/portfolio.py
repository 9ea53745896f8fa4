"""
risk_platform/portfolio.py
==========================
Portfolio-level aggregation over many company records.

Covers:
  - Risk-grade distribution (CM1..CM5 plus ungraded)
  - Industry and regional (state → city) breakdowns
  - GST / EPFO / audit compliance counts
  - Eligibility totals and exposure concentration (Herfindahl index)
  - Peer percentile and risk-adjusted comparison
  - Monthly eligibility trends and yearly financial metric trends
  - Overview bundle combining the above

Every percentage in this module uses the full input length as denominator,
so ungraded and unresolved companies always count toward the total.
"""
from __future__ import annotations
import logging
import math
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

from .compliance import extract_compliance_data
from .financials import extract_financial_history, extract_financial_metrics, extract_year_number
from .formatting import financial_year_label, format_percent
from .regions import extract_region, is_region_resolved
from .repository import parse_timestamp
from .types import (
    RISK_GRADES, UNGRADED, CityStats, ComplianceMetrics, ConcentrationRisk,
    EligibilityAnalysis, IndustryBreakdown, IndustryStats, NormalizedRegion,
    PeerComparisonResult, PortfolioExposure, PortfolioRecord, RecordLike,
    RegionalDistribution, RiskDistribution, StateStats, coerce_records, METRIC_FIELDS,
)

logger = logging.getLogger(__name__)

# Risk multiplier applied to eligibility when a record carries none of its own
GRADE_MULTIPLIERS: Dict[str, float] = {"CM1": 1.0, "CM2": 0.9, "CM3": 0.8, "CM4": 0.6, "CM5": 0.4}

UNKNOWN = "Unknown"
TOP_N = 10
PEER_METRICS = ("risk_score", "exposure") + METRIC_FIELDS


# ─── Record Accessors ─────────────────────────────────────────────────────────

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


def _eligibility(record: PortfolioRecord) -> Dict[str, Any]:
    ra = record.risk_analysis
    elig = ra.get("eligibility") if isinstance(ra, dict) else None
    return elig if isinstance(elig, dict) else {}


def record_grade(record: PortfolioRecord) -> str:
    """CM1..CM5, or ``Ungraded`` when there is no analysis or no recognised grade."""
    if record.risk_analysis is None:
        return UNGRADED
    grade = record.risk_grade
    if not grade:
        overall = record.risk_analysis.get("overallGrade")
        grade = overall.get("grade") if isinstance(overall, dict) else None
    grade = grade.strip().upper() if isinstance(grade, str) else ""
    return grade if grade in RISK_GRADES else UNGRADED


def final_eligibility(record: PortfolioRecord) -> Optional[float]:
    return _number(_eligibility(record).get("finalEligibility"))


def record_exposure(record: PortfolioRecord) -> float:
    """Final eligibility when known, else the recommended credit limit."""
    value = final_eligibility(record)
    if value is None:
        value = _number(record.recommended_limit)
    return value if value is not None and value > 0 else 0.0


def risk_multiplier(record: PortfolioRecord) -> float:
    multiplier = _number(_eligibility(record).get("riskMultiplier"))
    if multiplier is None and isinstance(record.risk_analysis, dict):
        overall = record.risk_analysis.get("overallGrade")
        multiplier = _number(overall.get("multiplier")) if isinstance(overall, dict) else None
    if multiplier is None or multiplier <= 0:
        multiplier = GRADE_MULTIPLIERS.get(record_grade(record), 1.0)
    return multiplier


def record_region(record: PortfolioRecord) -> NormalizedRegion:
    if is_region_resolved(record.region):
        return record.region
    return extract_region(record.risk_analysis)


def _frame(records: List[PortfolioRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        region = record_region(r)
        rows.append({
            "id": r.id,
            "industry": r.industry or UNKNOWN,
            "state": region.state or UNKNOWN,
            "city": region.city or UNKNOWN,
            "grade": record_grade(r),
            "risk_score": _number(r.risk_score),
            "exposure": record_exposure(r),
        })
    columns = ["id", "industry", "state", "city", "grade", "risk_score", "exposure"]
    df = pd.DataFrame(rows, columns=columns)
    df["risk_score"] = pd.to_numeric(df["risk_score"], errors="coerce")
    return df


def _mean(series: pd.Series) -> float:
    value = series.mean()
    return 0.0 if pd.isna(value) else float(value)


# ─── Distributions ────────────────────────────────────────────────────────────

def calculate_risk_distribution(records: Iterable[RecordLike]) -> RiskDistribution:
    items = coerce_records(records)
    dist = RiskDistribution(total_count=len(items))
    for r in items:
        grade = record_grade(r)
        if grade == UNGRADED:
            dist.ungraded_count += 1
        else:
            attr = f"{grade.lower()}_count"
            setattr(dist, attr, getattr(dist, attr) + 1)

    if dist.total_count:
        counts = {g: getattr(dist, f"{g.lower()}_count") for g in RISK_GRADES}
        counts[UNGRADED] = dist.ungraded_count
        dist.distribution_percentages = {g: c / dist.total_count * 100 for g, c in counts.items()}
    return dist


def calculate_industry_breakdown(records: Iterable[RecordLike]) -> IndustryBreakdown:
    items = coerce_records(records)
    if not items:
        return IndustryBreakdown()
    df = _frame(items)
    total = len(df)

    industries: List[IndustryStats] = []
    for industry, group in df.groupby("industry", sort=False):
        grades = group["grade"].value_counts(normalize=True) * 100
        industries.append(IndustryStats(
            industry=str(industry),
            count=len(group),
            percentage=len(group) / total * 100,
            average_risk_score=_mean(group["risk_score"]),
            total_exposure=float(group["exposure"].sum()),
            risk_distribution={str(g): float(p) for g, p in grades.items()},
        ))
    industries.sort(key=lambda s: (-s.count, s.industry))
    return IndustryBreakdown(industries=industries, total_industries=len(industries))


def calculate_regional_distribution(records: Iterable[RecordLike]) -> RegionalDistribution:
    items = coerce_records(records)
    if not items:
        return RegionalDistribution()
    df = _frame(items)
    total = len(df)

    states: List[StateStats] = []
    for state, group in df.groupby("state", sort=False):
        city_counts = group["city"].value_counts()
        cities = [
            CityStats(city=str(c), count=int(n), percentage=int(n) / total * 100)
            for c, n in city_counts.items()
        ]
        cities.sort(key=lambda c: (-c.count, c.city))
        states.append(StateStats(
            state=str(state),
            count=len(group),
            percentage=len(group) / total * 100,
            average_risk_score=_mean(group["risk_score"]),
            total_exposure=float(group["exposure"].sum()),
            cities=cities,
        ))
    states.sort(key=lambda s: (-s.count, s.state))
    return RegionalDistribution(
        states=states,
        total_states=sum(1 for s in states if s.state != UNKNOWN),
        unresolved_count=int((df["state"] == UNKNOWN).sum()),
    )


def calculate_compliance_metrics(records: Iterable[RecordLike]) -> ComplianceMetrics:
    """
    Two-state counts per check. Partial GST/EPFO compliance counts as
    non-compliant; only a qualified audit opinion counts as qualified.
    """
    metrics = ComplianceMetrics()
    for r in coerce_records(records):
        data = extract_compliance_data(r.risk_analysis)
        for status, bucket in ((data.gst.status, metrics.gst_compliance),
                               (data.epfo.status, metrics.epfo_compliance)):
            if status == "compliant":
                bucket["compliant"] += 1
            elif status in ("partial", "non-compliant"):
                bucket["non_compliant"] += 1
            else:
                bucket["unknown"] += 1
        if data.audit.status == "qualified":
            metrics.audit_qualification["qualified"] += 1
        else:
            metrics.audit_qualification["unqualified"] += 1
    return metrics


# ─── Eligibility & Exposure ───────────────────────────────────────────────────

def calculate_eligibility_analysis(records: Iterable[RecordLike]) -> EligibilityAnalysis:
    analysis = EligibilityAnalysis()
    for r in coerce_records(records):
        amount = final_eligibility(r)
        if amount is None:
            continue
        grade = _eligibility(r).get("riskGrade") or r.risk_grade or UNKNOWN
        analysis.companies_with_eligibility += 1
        analysis.total_eligible_amount += amount
        analysis.eligibility_distribution[grade] = analysis.eligibility_distribution.get(grade, 0.0) + amount
        analysis.risk_adjusted_exposure += amount * risk_multiplier(r)

    if analysis.companies_with_eligibility:
        analysis.average_eligibility = analysis.total_eligible_amount / analysis.companies_with_eligibility
    return analysis


def calculate_concentration_risk(exposures: Iterable[float]) -> ConcentrationRisk:
    """HHI on the 0-10,000 scale plus top-10 and largest single share."""
    values = sorted((float(e) for e in exposures if _number(e) is not None and e > 0), reverse=True)
    total = sum(values)
    if total <= 0:
        return ConcentrationRisk()
    shares = [v / total * 100 for v in values]
    return ConcentrationRisk(
        top_10_exposure_percentage=sum(shares[:TOP_N]),
        herfindahl_index=sum(s * s for s in shares),
        max_single_exposure_percentage=shares[0],
    )


def calculate_portfolio_exposure(records: Iterable[RecordLike]) -> PortfolioExposure:
    items = coerce_records(records)
    out = PortfolioExposure()
    exposures: List[float] = []
    for r in items:
        limit = _number(r.recommended_limit)
        if limit is not None and limit > 0:
            out.total_recommended_limit += limit
        final = final_eligibility(r)
        if final is not None and final > 0:
            out.total_final_eligibility += final

        exposure = record_exposure(r)
        if exposure <= 0:
            continue
        exposures.append(exposure)
        out.total_exposure += exposure
        out.risk_weighted_exposure += exposure * risk_multiplier(r)
        grade = record_grade(r)
        out.exposure_by_risk_grade[grade] = out.exposure_by_risk_grade.get(grade, 0.0) + exposure

    out.concentration_risk = calculate_concentration_risk(exposures)
    return out


# ─── Peer Comparison ──────────────────────────────────────────────────────────

def _metric_value(record: PortfolioRecord, metric: str) -> Optional[float]:
    if metric == "risk_score":
        return _number(record.risk_score)
    if metric == "exposure":
        value = record_exposure(record)
        return value if value > 0 else None
    metrics = extract_financial_metrics(record.risk_analysis)
    return getattr(metrics, metric, None)


def benchmark_category(percentile: float, risk_score: Optional[float]) -> str:
    score = risk_score if risk_score is not None else 0.0
    if score < 30:
        return "Critical Risk"
    if percentile >= 90 and score >= 80:
        return "Excellent"
    if percentile >= 75 and score >= 70:
        return "Good"
    if percentile >= 50 and score >= 60:
        return "Average"
    return "Poor"


def calculate_peer_comparison(
    records: Iterable[RecordLike],
    metric: str = "total_revenue",
    by_industry: bool = False,
) -> List[PeerComparisonResult]:
    """
    Percentile of each company against its peers (other companies with a
    value for ``metric``, optionally restricted to the same industry).
    percentile = peers with a strictly lower value / peer count × 100.
    """
    if metric not in PEER_METRICS:
        logger.warning("Unsupported peer comparison metric %r", metric)
        return []
    items = coerce_records(records)
    valued = [(r, _metric_value(r, metric)) for r in items]
    valued = [(r, v) for r, v in valued if v is not None]

    results: List[PeerComparisonResult] = []
    for i, (record, value) in enumerate(valued):
        peers = [
            v for j, (other, v) in enumerate(valued)
            if j != i and (not by_industry or (other.industry or UNKNOWN) == (record.industry or UNKNOWN))
        ]
        lower = sum(1 for v in peers if v < value)
        percentile = lower / len(peers) * 100 if peers else 0.0
        multiplier = risk_multiplier(record)
        results.append(PeerComparisonResult(
            company_id=record.id,
            metric=metric,
            value=value,
            percentile=percentile,
            peer_count=len(peers),
            peer_median=float(pd.Series(peers).median()) if peers else None,
            risk_multiplier=multiplier,
            risk_adjusted_performance=value / multiplier,
            benchmark_category=benchmark_category(percentile, _number(record.risk_score)),
        ))
    return results


# ─── Trends ───────────────────────────────────────────────────────────────────

def group_by_month(records: Iterable[RecordLike]) -> Dict[str, List[PortfolioRecord]]:
    """Completion month (YYYY-MM, UTC) → records, months ascending. Undated records are skipped."""
    months: Dict[str, List[PortfolioRecord]] = {}
    for r in coerce_records(records):
        ts = parse_timestamp(r.completed_at)
        if ts is not None:
            months.setdefault(ts.strftime("%Y-%m"), []).append(r)
    return dict(sorted(months.items()))


def calculate_eligibility_trends(records: Iterable[RecordLike]) -> Dict[str, Any]:
    """Monthly total, average and risk-adjusted eligibility with the grade mix."""
    eligible = [r for r in coerce_records(records) if final_eligibility(r) is not None]
    trends = []
    for month, members in group_by_month(eligible).items():
        total = adjusted = 0.0
        grades: Dict[str, int] = {}
        for r in members:
            amount = final_eligibility(r)
            total += amount
            adjusted += amount * risk_multiplier(r)
            grade = _eligibility(r).get("riskGrade") or r.risk_grade or UNKNOWN
            grades[grade] = grades.get(grade, 0) + 1
        trends.append({
            "period": month,
            "company_count": len(members),
            "total_eligibility": total,
            "average_eligibility": total / len(members),
            "risk_adjusted_eligibility": adjusted,
            "grade_distribution": grades,
        })

    change = trends[-1]["total_eligibility"] - trends[0]["total_eligibility"] if len(trends) > 1 else 0.0
    return {
        "eligibility_trends": trends,
        "trend_summary": {"total_periods": len(trends), "total_eligibility_change": change},
    }


def _correlation(x: pd.Series, y: pd.Series) -> float:
    if len(x) < 2:
        return 0.0
    r = x.corr(y)
    return 0.0 if pd.isna(r) else float(r)


def calculate_financial_trends(
    records: Iterable[RecordLike], metrics: Iterable[str] = METRIC_FIELDS,
) -> List[Dict[str, Any]]:
    """
    Portfolio average of each financial metric per year, oldest first, with
    year-over-year change and the Pearson correlation between the metric and
    risk score across the companies reporting it that year.
    """
    rows = []
    for r in coerce_records(records):
        if r.risk_analysis is None:
            continue
        score = _number(r.risk_score)
        seen = set()
        for yearly in extract_financial_history(r.risk_analysis):
            year = extract_year_number(yearly.year)
            if year is None or year in seen:
                continue
            seen.add(year)
            for metric in METRIC_FIELDS:
                value = getattr(yearly, metric)
                if value is not None:
                    rows.append({"metric": metric, "year": year, "label": yearly.year,
                                 "value": value, "risk_score": score})
    if not rows:
        return []

    df = pd.DataFrame(rows)
    df["risk_score"] = df["risk_score"].astype("float64")
    trends: List[Dict[str, Any]] = []
    for metric in metrics:
        previous: Optional[float] = None
        for year, group in df[df["metric"] == metric].groupby("year", sort=True):
            value = float(group["value"].mean())
            scored = group.dropna(subset=["risk_score"])
            change = (value - previous) / abs(previous) * 100 if previous else None
            trends.append({
                "metric": metric,
                "year": int(year),
                "fy_label": financial_year_label(group["label"].iloc[0]),
                "value": value,
                "company_count": len(group),
                "risk_correlation": _correlation(scored["value"], scored["risk_score"]),
                "change_percentage": change,
                "change_display": format_percent(change),
            })
            previous = value
    return trends


# ─── Overview ─────────────────────────────────────────────────────────────────

def calculate_overview_metrics(records: Iterable[RecordLike]) -> Dict[str, Any]:
    """
    Headline numbers for completed companies. Records without a status are
    treated as completed.
    """
    items = [r for r in coerce_records(records) if r.status in (None, "completed")]
    total = len(items)
    if not total:
        return {
            "total_companies": 0,
            "total_exposure": 0.0,
            "average_risk_score": 0.0,
            "risk_distribution": RiskDistribution(),
            "industry_summary": {"total_industries": 0, "top_industries": []},
            "regional_summary": {"total_regions": 0, "top_regions": []},
            "eligibility_overview": EligibilityAnalysis(),
            "compliance_overview": ComplianceMetrics(),
        }

    df = _frame(items)
    industries = calculate_industry_breakdown(items).industries
    regions = calculate_regional_distribution(items).states
    return {
        "total_companies": total,
        "total_exposure": sum(_number(r.recommended_limit) or 0.0 for r in items),
        "average_risk_score": round(float(df["risk_score"].fillna(0).mean()), 2),
        "risk_distribution": calculate_risk_distribution(items),
        "industry_summary": {
            "total_industries": len(industries),
            "top_industries": [
                {"name": s.industry, "count": s.count, "percentage": s.percentage,
                 "avg_risk_score": s.average_risk_score}
                for s in industries[:TOP_N]
            ],
        },
        "regional_summary": {
            "total_regions": len(regions),
            "top_regions": [
                {"name": s.state, "count": s.count, "percentage": s.percentage,
                 "avg_risk_score": s.average_risk_score}
                for s in regions[:TOP_N]
            ],
        },
        "eligibility_overview": calculate_eligibility_analysis(items),
        "compliance_overview": calculate_compliance_metrics(items),
    }
