"""
risk_platform/types.py
======================
Dataclasses for every value the analytics core produces or consumes.
Raw risk-analysis records stay plain dicts; everything derived from them
is one of the structures below.
"""
from __future__ import annotations
import math
from dataclasses import dataclass, field, fields, asdict
from typing import Dict, List, Optional, Literal, Any, Iterable, Mapping, Union

# ─── Tag Sets ─────────────────────────────────────────────────────────────────

# RawRiskRecord: opaque nested JSON from the extraction pipeline
RawRiskRecord = Dict[str, Any]

Confidence = Literal["high", "medium", "low"]
RegionSource = Literal["registered", "business", "unknown"]
ComplianceStatus = Literal["compliant", "partial", "non-compliant", "unknown"]
AuditOutcome = Literal["qualified", "unqualified", "adverse", "disclaimer", "unknown"]
DataSource = Literal["latest", "fallback", "calculated", "unknown"]
HealthCategory = Literal["excellent", "good", "fair", "poor", "critical"]
ParameterCategory = Literal["Financial", "Business", "Hygiene", "Banking", "Unknown"]
DriftSeverity = Literal["High", "Medium", "Low"]

RISK_GRADES = ("CM1", "CM2", "CM3", "CM4", "CM5")
UNGRADED = "Ungraded"
COUNT_FIELDS = ("total_parameters", "available_parameters", "financial_parameters",
                "business_parameters", "hygiene_parameters", "banking_parameters")


# ─── Extraction Outputs ───────────────────────────────────────────────────────

@dataclass
class NormalizedRegion:
    state: Optional[str] = None
    city: Optional[str] = None
    source: RegionSource = "unknown"
    confidence: Confidence = "low"


@dataclass
class GSTCompliance:
    status: ComplianceStatus = "unknown"
    score: Optional[float] = None
    confidence: Confidence = "low"
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class EPFOCompliance:
    status: ComplianceStatus = "unknown"
    score: Optional[float] = None
    confidence: Confidence = "low"
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class AuditStatus:
    status: AuditOutcome = "unknown"
    qualification: Optional[str] = None
    confidence: Confidence = "low"
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ComplianceData:
    gst: GSTCompliance = field(default_factory=GSTCompliance)
    epfo: EPFOCompliance = field(default_factory=EPFOCompliance)
    audit: AuditStatus = field(default_factory=AuditStatus)


@dataclass
class ComplianceSummary:
    overall_status: ComplianceStatus = "unknown"
    compliant_count: int = 0
    total_checks: int = 0
    details: List[str] = field(default_factory=list)


METRIC_FIELDS = (
    "ebitda_margin",
    "debt_equity_ratio",
    "current_ratio",
    "total_revenue",
    "net_profit",
    "total_assets",
    "total_liabilities",
)


@dataclass
class FinancialMetrics:
    ebitda_margin: Optional[float] = None
    debt_equity_ratio: Optional[float] = None
    current_ratio: Optional[float] = None
    total_revenue: Optional[float] = None
    net_profit: Optional[float] = None
    total_assets: Optional[float] = None
    total_liabilities: Optional[float] = None
    year: Optional[str] = None
    confidence: Confidence = "low"
    data_source: DataSource = "unknown"

    def available_count(self) -> int:
        return sum(1 for name in METRIC_FIELDS if getattr(self, name) is not None)

    def missing(self) -> List[str]:
        return [name for name in METRIC_FIELDS if getattr(self, name) is None]


@dataclass
class FinancialQualityReport:
    completeness: float
    reliability: Confidence
    missing_metrics: List[str] = field(default_factory=list)
    is_valid: bool = False


@dataclass
class HealthFactors:
    profitability: float = 0.0
    liquidity: float = 0.0
    leverage: float = 0.0
    efficiency: float = 0.0


@dataclass
class FinancialHealthScore:
    score: int = 0
    category: HealthCategory = "critical"
    factors: HealthFactors = field(default_factory=HealthFactors)


@dataclass
class DataQuality:
    has_region_data: bool = False
    has_compliance_data: bool = False
    has_financial_data: bool = False
    overall_confidence: Confidence = "low"


@dataclass
class ExtractedCompanyData:
    region: NormalizedRegion = field(default_factory=NormalizedRegion)
    compliance: ComplianceData = field(default_factory=ComplianceData)
    financial: FinancialMetrics = field(default_factory=FinancialMetrics)
    data_quality: DataQuality = field(default_factory=DataQuality)


@dataclass
class ExtractionStatistics:
    total_companies: int = 0
    region_data_available: int = 0
    compliance_data_available: int = 0
    financial_data_available: int = 0
    confidence_counts: Dict[str, int] = field(default_factory=lambda: {"high": 0, "medium": 0, "low": 0})
    success_rates: Dict[str, float] = field(
        default_factory=lambda: {"region": 0.0, "compliance": 0.0, "financial": 0.0, "overall": 0.0})


# ─── Portfolio Input ──────────────────────────────────────────────────────────

@dataclass
class PortfolioRecord:
    """
    One company as seen by the aggregator and the validation engine.
    Only ``id`` is required; a record with no ``risk_analysis`` is ungraded.
    """
    id: str
    company_name: Optional[str] = None
    risk_score: Optional[float] = None
    risk_grade: Optional[str] = None
    industry: Optional[str] = None
    region: Optional[NormalizedRegion] = None
    model_type: Optional[str] = None
    total_parameters: int = 0
    available_parameters: int = 0
    financial_parameters: int = 0
    business_parameters: int = 0
    hygiene_parameters: int = 0
    banking_parameters: int = 0
    recommended_limit: Optional[float] = None
    status: Optional[str] = None
    risk_analysis: Optional[RawRiskRecord] = None
    completed_at: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PortfolioRecord":
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in known}
        kwargs["id"] = str(data.get("id") or data.get("request_id") or "")
        region = kwargs.get("region")
        if isinstance(region, Mapping):
            kwargs["region"] = NormalizedRegion(
                state=region.get("state"),
                city=region.get("city"),
                source=region.get("source", "unknown"),
                confidence=region.get("confidence", "low"),
            )
        elif region is not None and not isinstance(region, NormalizedRegion):
            kwargs["region"] = None
        from .financials import to_numeric  # financials imports this module
        for count_field in COUNT_FIELDS:
            if count_field not in kwargs:
                continue
            count = to_numeric(kwargs[count_field])
            if count is None or math.isinf(count):
                kwargs.pop(count_field)
            else:
                kwargs[count_field] = int(count)
        for amount_field in ("risk_score", "recommended_limit"):
            if amount_field in kwargs:
                amount = to_numeric(kwargs[amount_field])
                kwargs[amount_field] = None if amount is None or math.isinf(amount) else amount
        if not isinstance(kwargs.get("risk_analysis"), Mapping):
            kwargs["risk_analysis"] = None
        completed = kwargs.get("completed_at")
        if completed is not None and not isinstance(completed, str):
            kwargs["completed_at"] = completed.isoformat() if hasattr(completed, "isoformat") else str(completed)
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


RecordLike = Union[PortfolioRecord, Mapping[str, Any]]


def coerce_records(records: Optional[Iterable[RecordLike]]) -> List[PortfolioRecord]:
    """Accept PortfolioRecords or loose mappings; skip anything else."""
    out: List[PortfolioRecord] = []
    for r in records or []:
        if isinstance(r, PortfolioRecord):
            out.append(r)
        elif isinstance(r, Mapping):
            out.append(PortfolioRecord.from_dict(r))
    return out


# ─── Portfolio Aggregates ─────────────────────────────────────────────────────

@dataclass
class RiskDistribution:
    cm1_count: int = 0
    cm2_count: int = 0
    cm3_count: int = 0
    cm4_count: int = 0
    cm5_count: int = 0
    ungraded_count: int = 0
    total_count: int = 0
    distribution_percentages: Dict[str, float] = field(default_factory=dict)


@dataclass
class IndustryStats:
    industry: str
    count: int
    percentage: float
    average_risk_score: float
    total_exposure: float = 0.0
    risk_distribution: Dict[str, float] = field(default_factory=dict)


@dataclass
class IndustryBreakdown:
    industries: List[IndustryStats] = field(default_factory=list)
    total_industries: int = 0


@dataclass
class CityStats:
    city: str
    count: int
    percentage: float


@dataclass
class StateStats:
    state: str
    count: int
    percentage: float
    average_risk_score: float
    total_exposure: float = 0.0
    cities: List[CityStats] = field(default_factory=list)


@dataclass
class RegionalDistribution:
    states: List[StateStats] = field(default_factory=list)
    total_states: int = 0
    unresolved_count: int = 0


@dataclass
class ComplianceMetrics:
    gst_compliance: Dict[str, int] = field(default_factory=lambda: {"compliant": 0, "non_compliant": 0, "unknown": 0})
    epfo_compliance: Dict[str, int] = field(default_factory=lambda: {"compliant": 0, "non_compliant": 0, "unknown": 0})
    audit_qualification: Dict[str, int] = field(default_factory=lambda: {"qualified": 0, "unqualified": 0})


@dataclass
class EligibilityAnalysis:
    total_eligible_amount: float = 0.0
    average_eligibility: float = 0.0
    eligibility_distribution: Dict[str, float] = field(default_factory=dict)
    companies_with_eligibility: int = 0
    risk_adjusted_exposure: float = 0.0


@dataclass
class ConcentrationRisk:
    top_10_exposure_percentage: float = 0.0
    herfindahl_index: float = 0.0
    max_single_exposure_percentage: float = 0.0


@dataclass
class PortfolioExposure:
    total_exposure: float = 0.0
    total_recommended_limit: float = 0.0
    total_final_eligibility: float = 0.0
    risk_weighted_exposure: float = 0.0
    exposure_by_risk_grade: Dict[str, float] = field(default_factory=dict)
    concentration_risk: ConcentrationRisk = field(default_factory=ConcentrationRisk)


@dataclass
class PeerComparisonResult:
    company_id: str
    metric: str
    value: float
    percentile: float
    peer_count: int
    peer_median: Optional[float]
    risk_multiplier: float
    risk_adjusted_performance: float
    benchmark_category: str


# ─── Validation Reports ───────────────────────────────────────────────────────

@dataclass
class ParameterPerformance:
    parameter: str
    category: ParameterCategory
    availability_rate: float
    performance_rate: float
    average_score: float
    average_max_score: float
    companies_with_data: int
    total_companies: int
    impact_score: float
    underperforming: bool = False


@dataclass
class ParameterPerformanceReport:
    parameter_performance: List[ParameterPerformance] = field(default_factory=list)
    category_performance: Dict[str, List[ParameterPerformance]] = field(default_factory=dict)
    top_performing_parameters: List[ParameterPerformance] = field(default_factory=list)
    underperforming_parameters: List[ParameterPerformance] = field(default_factory=list)
    performance_summary: Dict[str, int] = field(default_factory=dict)


@dataclass
class FoldResult:
    fold: int
    test_coverage: float
    train_coverage: float
    test_companies: int
    train_companies: int


@dataclass
class FoldValidationReport:
    fold_results: List[FoldResult] = field(default_factory=list)
    average_test_coverage: float = 0.0
    average_train_coverage: float = 0.0
    overfitting_indicator: float = 0.0
    cross_validation_score: float = 0.0


@dataclass
class HoldoutValidationReport:
    train_set_size: int = 0
    test_set_size: int = 0
    train_coverage: float = 0.0
    test_coverage: float = 0.0
    generalization_gap: float = 0.0
    holdout_score: float = 0.0


@dataclass
class TemporalValidationReport:
    early_period_companies: int = 0
    late_period_companies: int = 0
    early_period_coverage: float = 0.0
    late_period_coverage: float = 0.0
    temporal_drift: float = 0.0
    temporal_stability: Literal["Stable", "Unstable", "Insufficient Data"] = "Insufficient Data"


@dataclass
class PeriodMetrics:
    company_count: int = 0
    coverage: float = 0.0
    average_risk_score: float = 0.0
    parameter_availability: float = 0.0


@dataclass
class ModelDriftReport:
    early_period: PeriodMetrics = field(default_factory=PeriodMetrics)
    recent_period: PeriodMetrics = field(default_factory=PeriodMetrics)
    coverage_drift: float = 0.0
    risk_score_drift: float = 0.0
    parameter_availability_drift: float = 0.0
    drift_severity: DriftSeverity = "Low"
    sufficient_data: bool = False
    # signed percent strings for coverage and parameter availability drift
    drift_display: Dict[str, str] = field(default_factory=dict)


@dataclass
class ParameterImportance:
    parameter: str
    category: ParameterCategory
    companies_with_parameter: int
    average_risk_when_present: float
    risk_variance: float
    importance_score: float


@dataclass
class ParameterImportanceReport:
    parameter_importance: List[ParameterImportance] = field(default_factory=list)
    most_important_parameters: List[ParameterImportance] = field(default_factory=list)
    least_important_parameters: List[ParameterImportance] = field(default_factory=list)
    category_importance: Dict[str, Dict[str, float]] = field(default_factory=dict)
