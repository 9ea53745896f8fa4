"""Portfolio Risk Analytics: extraction, compliance, health scoring, aggregation and model validation."""
from .types import *
from .formatting import *
from .diagnostics import (
    BoundaryError,
    ExtractionError,
    ExtractionIssue,
    ExtractionResult,
    NoDataFound,
    ParseFailure,
    RangeViolation,
    Unauthenticated,
    safe_extract,
)
from .schema import parse_risk_record, parse_risk_record_result
from .normalization import normalize_city, normalize_state_name
from .regions import extract_region, extract_region_result, region_display_string
from .financials import (
    extract_financial_history,
    extract_financial_metrics,
    extract_financial_metrics_result,
    get_latest_financial_year,
    validate_financial_metric,
    validate_financial_metrics_quality,
)
from .compliance import (
    ComplianceThresholds,
    extract_audit_status,
    extract_compliance_data,
    extract_epfo_compliance,
    extract_epfo_compliance_result,
    extract_gst_compliance,
    extract_gst_compliance_result,
    get_compliance_summary,
    map_audit_qualification_to_status,
    map_epfo_score_to_status,
    map_gst_score_to_status,
    meets_compliance_requirements,
    validate_compliance_data,
)
from .extraction import (
    extract_batch_company_data,
    extract_company_data,
    get_extraction_statistics,
    meets_filtering_requirements,
)
from .health import HealthScoreConfig, compute_health_score, financial_metrics_summary
from .portfolio import (
    calculate_compliance_metrics,
    calculate_concentration_risk,
    calculate_eligibility_analysis,
    calculate_eligibility_trends,
    calculate_financial_trends,
    calculate_industry_breakdown,
    calculate_overview_metrics,
    calculate_peer_comparison,
    calculate_portfolio_exposure,
    calculate_regional_distribution,
    calculate_risk_distribution,
    group_by_month,
)
from .validation import (
    ValidationConfig,
    calculate_accuracy_trends,
    calculate_fold_validation,
    calculate_holdout_validation,
    calculate_industry_validation,
    calculate_model_benchmarks,
    calculate_model_drift,
    calculate_model_performance,
    calculate_model_type_comparison,
    calculate_parameter_importance,
    calculate_parameter_performance,
    calculate_temporal_validation,
    calculate_validation_analysis,
    parameter_coverage,
)
from .repository import FilterCriteria, InMemoryPortfolioRepository, PortfolioPage, parse_timestamp
