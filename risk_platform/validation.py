"""
risk_platform/validation.py
===========================
Model validation diagnostics for the risk scoring model.

No trained model is evaluated here. Every "accuracy" style figure is the
parameter coverage of a subset of companies:

    coverage = Σ available_parameters / Σ total_parameters × 100

and the fold, holdout, temporal and drift reports compare that coverage
across different splits of the portfolio.

Covers:
  - Per-parameter availability / performance / impact ranking
  - Contiguous k-fold, seeded holdout and temporal splits
  - Early vs recent period drift
  - Parameter importance (risk score where a parameter is available)
  - Monthly coverage trends, model-type comparison, industry benchmarks
  - Model performance bundle (category availability, grade spread, consistency)
"""
from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from .parameters import available_in_category, parameter_category
from .formatting import format_percent
from .portfolio import calculate_risk_distribution, group_by_month
from .repository import parse_timestamp
from .types import (
    FoldResult, FoldValidationReport, HoldoutValidationReport, ModelDriftReport,
    ParameterImportance, ParameterImportanceReport, ParameterPerformance,
    ParameterPerformanceReport, PeriodMetrics, PortfolioRecord, RecordLike,
    TemporalValidationReport, coerce_records,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationConfig:
    folds: int = 5
    holdout_train_fraction: float = 0.8
    holdout_seed: int = 42
    temporal_train_fraction: float = 0.7
    stability_threshold: float = 5.0
    drift_high: float = 10.0
    drift_medium: float = 5.0
    drift_min_records: int = 20
    low_availability: float = 50.0
    low_performance: float = 60.0
    high_impact: float = 70.0
    min_group_size: int = 5
    top_n: int = 20
    bottom_n: int = 10


DEFAULT_CONFIG = ValidationConfig()
MODEL_TYPES = ("with_banking", "without_banking")


# ─── Shared Helpers ───────────────────────────────────────────────────────────

def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return None if math.isnan(value) or math.isinf(value) else float(value)


def _safe_div(a: float, b: float) -> float:
    return a / b if b else 0.0


def _variance(values: List[float]) -> float:
    """Population variance; 0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return sum((v - mean) ** 2 for v in values) / len(values)


def _average_risk(records: List[PortfolioRecord]) -> float:
    scores = [s for s in (_number(r.risk_score) for r in records) if s is not None]
    return sum(scores) / len(scores) if scores else 0.0


def parameter_coverage(records: Iterable[RecordLike]) -> float:
    """Σ available / Σ total parameters over records with a parameter count."""
    counted = [r for r in coerce_records(records) if r.total_parameters and r.total_parameters > 0]
    total = sum(r.total_parameters for r in counted)
    available = sum(r.available_parameters or 0 for r in counted)
    return _safe_div(available, total) * 100


def _score_entries(record: PortfolioRecord) -> List[Dict[str, Any]]:
    ra = record.risk_analysis
    scores = ra.get("allScores") if isinstance(ra, dict) else None
    if not isinstance(scores, list):
        return []
    return [e for e in scores if isinstance(e, dict) and isinstance(e.get("parameter"), str)]


def _dated(records: List[PortfolioRecord]) -> List[PortfolioRecord]:
    """Records with a parseable completed_at, oldest first."""
    stamps = [(parse_timestamp(r.completed_at), i) for i, r in enumerate(records)]
    dated = sorted((ts, i) for ts, i in stamps if ts is not None)
    if len(dated) < len(records):
        logger.debug("%d of %d records have no parseable completed_at", len(records) - len(dated), len(records))
    return [records[i] for _, i in dated]


# ─── Parameter Performance ────────────────────────────────────────────────────

def _parameter_frame(records: List[PortfolioRecord]) -> pd.DataFrame:
    rows = []
    for r in records:
        for entry in _score_entries(r):
            available = bool(entry.get("available"))
            score = _number(entry.get("score"))
            max_score = _number(entry.get("maxScore"))
            ratio = None
            if available and score is not None and max_score:
                ratio = score / max_score
            rows.append({
                "parameter": entry["parameter"],
                "category": parameter_category(entry["parameter"], r.risk_analysis),
                "company": r.company_name or r.id,
                "available": available,
                "score": score if available else None,
                "max_score": max_score,
                "ratio": ratio,
                "risk_score": _number(r.risk_score) or 0.0,
            })
    columns = ["parameter", "category", "company", "available", "score", "max_score", "ratio", "risk_score"]
    df = pd.DataFrame(rows, columns=columns)
    for col in ("score", "max_score", "ratio", "risk_score"):
        df[col] = pd.to_numeric(df[col], errors="coerce")
    return df


def _mean(series: pd.Series) -> float:
    value = series.mean()
    return 0.0 if pd.isna(value) else float(value)


def calculate_parameter_performance(
    records: Iterable[RecordLike], config: ValidationConfig = DEFAULT_CONFIG,
) -> ParameterPerformanceReport:
    """
    Availability and performance per distinct parameter name, ranked by
    impact = availability × performance / 100.
    """
    items = coerce_records(records)
    df = _parameter_frame(items)
    if df.empty:
        return ParameterPerformanceReport(performance_summary={
            "total_parameters": 0, "high_impact_parameters": 0,
            "low_availability_parameters": 0, "low_performance_parameters": 0,
        })

    performance: List[ParameterPerformance] = []
    for name, group in df.groupby("parameter", sort=False):
        seen = len(group)
        available = group[group["available"]]
        availability_rate = len(available) / seen * 100
        performance_rate = _mean(group["ratio"]) * 100
        performance.append(ParameterPerformance(
            parameter=str(name),
            category=group["category"].iloc[0],
            availability_rate=availability_rate,
            performance_rate=performance_rate,
            average_score=_mean(available["score"]),
            average_max_score=_mean(group["max_score"]),
            companies_with_data=len(available),
            total_companies=seen,
            impact_score=availability_rate * performance_rate / 100,
            underperforming=availability_rate < config.low_availability or performance_rate < config.low_performance,
        ))
    performance.sort(key=lambda p: p.impact_score, reverse=True)

    by_category: Dict[str, List[ParameterPerformance]] = {}
    for p in performance:
        by_category.setdefault(p.category, []).append(p)

    underperforming = [p for p in performance if p.underperforming]
    return ParameterPerformanceReport(
        parameter_performance=performance,
        category_performance=by_category,
        top_performing_parameters=performance[:config.top_n],
        underperforming_parameters=underperforming[:config.top_n],
        performance_summary={
            "total_parameters": len(performance),
            "high_impact_parameters": sum(1 for p in performance if p.impact_score >= config.high_impact),
            "low_availability_parameters": sum(1 for p in performance if p.availability_rate < config.low_availability),
            "low_performance_parameters": sum(1 for p in performance if p.performance_rate < config.low_performance),
        },
    )


# ─── Split Validation ─────────────────────────────────────────────────────────

def calculate_fold_validation(
    records: Iterable[RecordLike], folds: Optional[int] = None, config: ValidationConfig = DEFAULT_CONFIG,
) -> FoldValidationReport:
    """Contiguous folds of size n // k; the last fold takes the remainder."""
    items = coerce_records(records)
    k = max(folds or config.folds, 1)
    if not items:
        return FoldValidationReport()

    fold_size = len(items) // k
    splits = [
        items[i * fold_size:(i + 1) * fold_size if i < k - 1 else len(items)]
        for i in range(k)
    ]
    results: List[FoldResult] = []
    for i, test in enumerate(splits):
        train = [r for j, fold in enumerate(splits) if j != i for r in fold]
        results.append(FoldResult(
            fold=i + 1,
            test_coverage=parameter_coverage(test),
            train_coverage=parameter_coverage(train),
            test_companies=len(test),
            train_companies=len(train),
        ))
    avg_test = sum(f.test_coverage for f in results) / len(results)
    avg_train = sum(f.train_coverage for f in results) / len(results)
    return FoldValidationReport(
        fold_results=results,
        average_test_coverage=avg_test,
        average_train_coverage=avg_train,
        overfitting_indicator=avg_train - avg_test,
        cross_validation_score=avg_test,
    )


def calculate_holdout_validation(
    records: Iterable[RecordLike],
    train_fraction: Optional[float] = None,
    seed: Optional[int] = None,
    config: ValidationConfig = DEFAULT_CONFIG,
) -> HoldoutValidationReport:
    """Seeded shuffle, then a train / test split; the same seed gives the same split."""
    items = coerce_records(records)
    if not items:
        return HoldoutValidationReport()
    seed = config.holdout_seed if seed is None else seed
    order = pd.Series(range(len(items))).sample(frac=1, random_state=seed).tolist()
    shuffled = [items[i] for i in order]
    fraction = config.holdout_train_fraction if train_fraction is None else train_fraction
    split = int(len(items) * fraction)
    train, test = shuffled[:split], shuffled[split:]
    train_cov, test_cov = parameter_coverage(train), parameter_coverage(test)
    return HoldoutValidationReport(
        train_set_size=len(train),
        test_set_size=len(test),
        train_coverage=train_cov,
        test_coverage=test_cov,
        generalization_gap=train_cov - test_cov,
        holdout_score=test_cov,
    )


def calculate_temporal_validation(
    records: Iterable[RecordLike],
    train_fraction: Optional[float] = None,
    config: ValidationConfig = DEFAULT_CONFIG,
) -> TemporalValidationReport:
    dated = _dated(coerce_records(records))
    if not dated:
        return TemporalValidationReport()
    fraction = config.temporal_train_fraction if train_fraction is None else train_fraction
    split = int(len(dated) * fraction)
    early, late = dated[:split], dated[split:]
    early_cov, late_cov = parameter_coverage(early), parameter_coverage(late)
    return TemporalValidationReport(
        early_period_companies=len(early),
        late_period_companies=len(late),
        early_period_coverage=early_cov,
        late_period_coverage=late_cov,
        temporal_drift=late_cov - early_cov,
        temporal_stability="Stable" if abs(late_cov - early_cov) < config.stability_threshold else "Unstable",
    )


def calculate_industry_validation(
    records: Iterable[RecordLike], config: ValidationConfig = DEFAULT_CONFIG,
) -> Dict[str, Dict[str, Any]]:
    """Coverage per industry with at least ``min_group_size`` companies."""
    groups: Dict[str, List[PortfolioRecord]] = {}
    for r in coerce_records(records):
        groups.setdefault(r.industry or "Unknown", []).append(r)

    out: Dict[str, Dict[str, Any]] = {}
    for industry, members in groups.items():
        if len(members) < config.min_group_size:
            continue
        coverage = parameter_coverage(members)
        out[industry] = {
            "company_count": len(members),
            "model_coverage": coverage,
            "average_risk_score": _average_risk(members),
            "validation_status": "Good" if coverage >= 70 else "Fair" if coverage >= 50 else "Poor",
        }
    return out


# ─── Drift ────────────────────────────────────────────────────────────────────

def _period_metrics(records: List[PortfolioRecord]) -> PeriodMetrics:
    total = sum(r.total_parameters or 0 for r in records)
    available = sum(r.available_parameters or 0 for r in records)
    return PeriodMetrics(
        company_count=len(records),
        coverage=parameter_coverage(records),
        average_risk_score=_average_risk(records),
        parameter_availability=_safe_div(available, total) * 100,
    )


def drift_severity(delta: float, config: ValidationConfig = DEFAULT_CONFIG) -> str:
    if abs(delta) > config.drift_high:
        return "High"
    if abs(delta) > config.drift_medium:
        return "Medium"
    return "Low"


def calculate_model_drift(
    records: Iterable[RecordLike], config: ValidationConfig = DEFAULT_CONFIG,
) -> ModelDriftReport:
    """
    Early half vs recent half by completion date. Computed from two dated
    records up; ``sufficient_data`` is False below ``drift_min_records``.
    """
    dated = _dated(coerce_records(records))
    if len(dated) < 2:
        logger.warning("Model drift needs at least two dated records, got %d", len(dated))
        return ModelDriftReport()

    split = len(dated) // 2
    early, recent = _period_metrics(dated[:split]), _period_metrics(dated[split:])
    coverage_drift = recent.coverage - early.coverage
    availability_drift = recent.parameter_availability - early.parameter_availability
    return ModelDriftReport(
        early_period=early,
        recent_period=recent,
        coverage_drift=coverage_drift,
        risk_score_drift=recent.average_risk_score - early.average_risk_score,
        parameter_availability_drift=availability_drift,
        drift_severity=drift_severity(coverage_drift, config),
        sufficient_data=len(dated) >= config.drift_min_records,
        drift_display={
            "coverage_drift": format_percent(coverage_drift),
            "parameter_availability_drift": format_percent(availability_drift),
        },
    )


# ─── Importance & Trends ──────────────────────────────────────────────────────

def calculate_parameter_importance(
    records: Iterable[RecordLike], config: ValidationConfig = DEFAULT_CONFIG,
) -> ParameterImportanceReport:
    """
    Average risk score of companies where a parameter is available, scaled by
    sqrt(sample size). Correlational only.
    """
    df = _parameter_frame(coerce_records(records))
    df = df[df["available"]] if not df.empty else df
    if df.empty:
        return ParameterImportanceReport()

    ranked: List[ParameterImportance] = []
    for name, group in df.groupby("parameter", sort=False):
        risks = group["risk_score"].fillna(0).tolist()
        avg = sum(risks) / len(risks)
        ranked.append(ParameterImportance(
            parameter=str(name),
            category=group["category"].iloc[0],
            companies_with_parameter=len(risks),
            average_risk_when_present=avg,
            risk_variance=_variance(risks),
            importance_score=avg * math.sqrt(len(risks)),
        ))
    ranked.sort(key=lambda p: p.importance_score, reverse=True)

    categories: Dict[str, Dict[str, float]] = {}
    for p in ranked:
        c = categories.setdefault(p.category, {"parameter_count": 0, "total_importance": 0.0, "avg_importance": 0.0})
        c["parameter_count"] += 1
        c["total_importance"] += p.importance_score
    for c in categories.values():
        c["avg_importance"] = c["total_importance"] / c["parameter_count"]

    return ParameterImportanceReport(
        parameter_importance=ranked,
        most_important_parameters=ranked[:config.top_n],
        least_important_parameters=ranked[-config.bottom_n:] if config.bottom_n > 0 else [],
        category_importance=categories,
    )


def calculate_accuracy_trends(records: Iterable[RecordLike]) -> Dict[str, Any]:
    """Coverage and average risk score per completion month (YYYY-MM)."""
    months = group_by_month(records)
    trends = [
        {
            "month": month,
            "company_count": len(members),
            "model_coverage": parameter_coverage(members),
            "average_risk_score": _average_risk(members),
        }
        for month, members in months.items()
    ]
    coverage_trend = trends[-1]["model_coverage"] - trends[0]["model_coverage"] if len(trends) > 1 else 0.0
    risk_trend = trends[-1]["average_risk_score"] - trends[0]["average_risk_score"] if len(trends) > 1 else 0.0
    return {
        "monthly_trends": trends,
        "trend_analysis": {"coverage_trend": coverage_trend, "risk_score_trend": risk_trend},
        "trend_summary": {
            "total_months": len(trends),
            "coverage_improving": coverage_trend > 0,
            "risk_scores_improving": risk_trend > 0,
        },
    }


def calculate_model_type_comparison(records: Iterable[RecordLike]) -> Dict[str, Dict[str, Any]]:
    groups: Dict[str, List[PortfolioRecord]] = {}
    for r in coerce_records(records):
        groups.setdefault(r.model_type or "unknown", []).append(r)

    comparison: Dict[str, Dict[str, Any]] = {}
    for model_type, members in groups.items():
        scores = pd.Series([s for s in (_number(r.risk_score) for r in members) if s is not None], dtype="float64")
        grades: Dict[str, int] = {}
        for r in members:
            if r.risk_grade:
                grades[r.risk_grade] = grades.get(r.risk_grade, 0) + 1
        availability = _period_metrics(members).parameter_availability
        avg_risk = float(scores.mean()) if not scores.empty else 0.0
        comparison[model_type] = {
            "company_count": len(members),
            "parameter_availability": availability,
            "average_risk_score": avg_risk,
            "risk_score_statistics": {
                "min": float(scores.min()) if not scores.empty else 0.0,
                "max": float(scores.max()) if not scores.empty else 0.0,
                "median": float(scores.median()) if not scores.empty else 0.0,
                "std_dev": float(scores.std(ddof=0)) if not scores.empty else 0.0,
            },
            "grade_distribution": grades,
            "model_performance_score": (availability + avg_risk) / 2,
        }
    return comparison


def calculate_model_benchmarks(
    records: Iterable[RecordLike], config: ValidationConfig = DEFAULT_CONFIG,
) -> Dict[str, Any]:
    items = coerce_records(records)
    benchmarks = {}
    for industry, stats in calculate_industry_validation(items, config).items():
        coverage = stats["model_coverage"]
        benchmarks[industry] = {
            "company_count": stats["company_count"],
            "model_coverage": coverage,
            "average_risk_score": stats["average_risk_score"],
            "benchmark_category": (
                "Excellent" if coverage >= 80 else "Good" if coverage >= 70
                else "Fair" if coverage >= 60 else "Poor"
            ),
        }
    return {
        "industry_benchmarks": benchmarks,
        "portfolio_benchmark": {
            "overall_coverage": parameter_coverage(items),
            "total_companies": len(items),
            "benchmark_status": "Portfolio Average",
        },
    }


# ─── Data Quality & Model Performance ─────────────────────────────────────────

CATEGORY_COUNT_FIELDS: Tuple[Tuple[str, str, str], ...] = (
    ("financial", "financialScores", "financial_parameters"),
    ("business", "businessScores", "business_parameters"),
    ("hygiene", "hygieneScores", "hygiene_parameters"),
    ("banking", "bankingScores", "banking_parameters"),
)


def _completeness(record: PortfolioRecord) -> float:
    return _safe_div(record.available_parameters or 0, record.total_parameters or 0) * 100


def calculate_validation_analysis(records: Iterable[RecordLike]) -> Dict[str, Any]:
    """Data quality, category coverage and confidence bands as portfolio rates."""
    items = coerce_records(records)
    n = len(items)
    complete = {name: 0 for name, _, _ in CATEGORY_COUNT_FIELDS}
    missing = {name: 0 for name, _, _ in CATEGORY_COUNT_FIELDS}
    all_categories = overall_complete = 0
    bands = {"high": 0, "medium": 0, "low": 0}

    for r in items:
        counts = {}
        for name, list_key, count_field in CATEGORY_COUNT_FIELDS:
            available = available_in_category(r.risk_analysis, list_key)
            counts[name] = available
            expected = getattr(r, count_field) or 0
            if expected > 0 and available / expected >= 0.8:
                complete[name] += 1
            if available == 0:
                missing[name] += 1
        if all(counts.values()):
            all_categories += 1
        completeness = _completeness(r)
        if completeness >= 80:
            overall_complete += 1
            bands["high"] += 1
        elif completeness >= 60:
            bands["medium"] += 1
        else:
            bands["low"] += 1

    def rate(count: int) -> float:
        return _safe_div(count, n) * 100

    return {
        "data_quality_rates": {
            **{f"complete_{name}_rate": rate(c) for name, c in complete.items()},
            "overall_completeness_rate": rate(overall_complete),
        },
        "model_coverage_analysis": {
            "full_coverage_rate": rate(all_categories),
            **{f"missing_{name}_rate": rate(c) for name, c in missing.items()},
        },
        "prediction_confidence": {f"{band}_confidence_rate": rate(c) for band, c in bands.items()},
        "validation_summary": {
            "total_companies": n,
            "companies_ready_for_production": bands["high"],
            "companies_needing_improvement": bands["low"],
        },
    }


def _empty_model_performance() -> Dict[str, Any]:
    return {
        "overall_coverage": 0.0,
        "parameter_availability": {"financial": 0.0, "business": 0.0, "hygiene": 0.0, "banking": 0.0, "overall": 0.0},
        "grade_distribution": {},
        "model_consistency": {"score_variance": 0.0, "grade_stability": 0.0, "prediction_confidence": 0.0},
        "validation_metrics": {
            "companies_with_complete_data": 0,
            "data_completeness_percentage": 0.0,
            "model_coverage": {},
        },
    }


def calculate_model_performance(records: Iterable[RecordLike]) -> Dict[str, Any]:
    items = [r for r in coerce_records(records) if r.risk_analysis is not None]
    if not items:
        return _empty_model_performance()
    n = len(items)

    totals = {name: 0 for name, _, _ in CATEGORY_COUNT_FIELDS}
    available = {name: 0 for name, _, _ in CATEGORY_COUNT_FIELDS}
    for r in items:
        for name, list_key, count_field in CATEGORY_COUNT_FIELDS:
            totals[name] += getattr(r, count_field) or 0
            available[name] += available_in_category(r.risk_analysis, list_key)
    overall_total = sum(r.total_parameters or 0 for r in items)
    overall_available = sum(r.available_parameters or 0 for r in items)
    availability = {name: _safe_div(available[name], totals[name]) * 100 for name in totals}
    availability["overall"] = _safe_div(overall_available, overall_total) * 100

    grade_scores: Dict[str, List[float]] = {}
    for r in items:
        overall = r.risk_analysis.get("overallGrade")
        grade = overall.get("grade") if isinstance(overall, dict) and overall.get("grade") else "Unknown"
        grade_scores.setdefault(str(grade), []).append(_number(r.risk_score) or 0.0)
    grade_distribution = {
        grade: {
            "count": len(scores),
            "percentage": len(scores) / n * 100,
            "avg_score": sum(scores) / len(scores),
            "score_range": [min(scores), max(scores)],
        }
        for grade, scores in grade_scores.items()
    }

    scores = [s for s in (_number(r.risk_score) for r in items) if s is not None]
    percentages = list(calculate_risk_distribution(items).distribution_percentages.values())
    consistency = {
        "score_variance": _variance(scores),
        "grade_stability": max(0.0, 100 - (max(percentages) - min(percentages))) if scores and percentages else 0.0,
        "prediction_confidence": sum(_completeness(r) for r in items) / n if scores else 0.0,
    }

    complete = sum(
        1 for r in items
        if r.risk_analysis.get("financialData") is not None and r.company_name and r.industry
    )
    return {
        "overall_coverage": parameter_coverage(items),
        "parameter_availability": availability,
        "grade_distribution": grade_distribution,
        "model_consistency": consistency,
        "validation_metrics": {
            "companies_with_complete_data": complete,
            "data_completeness_percentage": complete / n * 100,
            "model_coverage": {
                mt: sum(1 for r in items if r.model_type == mt) / n * 100 for mt in MODEL_TYPES
            },
        },
    }
