"""
risk_platform/health.py
=======================
Financial health score: four factor sub-scores (profitability, liquidity,
leverage, efficiency), each starting at 50 and moved by fixed metric tiers,
combined into one weighted 0-100 score.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .financials import validate_financial_metrics_quality
from .formatting import format_indian_currency, format_percent_plain, format_ratio
from .types import FinancialHealthScore, FinancialMetrics, HealthCategory, HealthFactors

# ─── Tier Tables ──────────────────────────────────────────────────────────────
# (threshold, adjustment); first matching tier wins, the last entry is the floor

EBITDA_MARGIN_TIERS: List[Tuple[float, float]] = [(20, 25), (15, 20), (10, 15), (5, 10), (0, 5)]
EBITDA_MARGIN_FLOOR = -20.0

NET_MARGIN_TIERS: List[Tuple[float, float]] = [(10, 25), (5, 15), (0, 5)]
NET_MARGIN_FLOOR = -15.0

CURRENT_RATIO_TIERS: List[Tuple[float, float]] = [(2.0, 30), (1.5, 25), (1.2, 20), (1.0, 10), (0.8, -10)]
CURRENT_RATIO_FLOOR = -30.0

# lower is better
DEBT_EQUITY_TIERS: List[Tuple[float, float]] = [(0.3, 30), (0.5, 25), (1.0, 15), (2.0, 5), (3.0, -10)]
DEBT_EQUITY_CEILING = -30.0

ASSET_TURNOVER_TIERS: List[Tuple[float, float]] = [(1.5, 25), (1.0, 20), (0.7, 15), (0.5, 10)]
ASSET_TURNOVER_FLOOR = 5.0

CATEGORY_BANDS: List[Tuple[float, HealthCategory]] = [(80, "excellent"), (65, "good"), (50, "fair"), (30, "poor")]


@dataclass(frozen=True)
class HealthScoreConfig:
    base_score: float = 50.0
    profitability_weight: float = 0.3
    liquidity_weight: float = 0.2
    leverage_weight: float = 0.3
    efficiency_weight: float = 0.2


def _at_least(value: float, tiers: List[Tuple[float, float]], floor: float) -> float:
    for threshold, adjustment in tiers:
        if value >= threshold:
            return adjustment
    return floor


def _at_most(value: float, tiers: List[Tuple[float, float]], ceiling: float) -> float:
    for threshold, adjustment in tiers:
        if value <= threshold:
            return adjustment
    return ceiling


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def _profitability(m: FinancialMetrics, base: float) -> float:
    score = base
    if m.ebitda_margin is not None:
        score += _at_least(m.ebitda_margin, EBITDA_MARGIN_TIERS, EBITDA_MARGIN_FLOOR)
    if m.net_profit is not None and m.total_revenue:
        net_margin = m.net_profit / m.total_revenue * 100
        score += _at_least(net_margin, NET_MARGIN_TIERS, NET_MARGIN_FLOOR)
    return _clamp(score)


def _liquidity(m: FinancialMetrics, base: float) -> float:
    if m.current_ratio is None:
        return _clamp(base)
    return _clamp(base + _at_least(m.current_ratio, CURRENT_RATIO_TIERS, CURRENT_RATIO_FLOOR))


def _leverage(m: FinancialMetrics, base: float) -> float:
    if m.debt_equity_ratio is None:
        return _clamp(base)
    return _clamp(base + _at_most(m.debt_equity_ratio, DEBT_EQUITY_TIERS, DEBT_EQUITY_CEILING))


def _efficiency(m: FinancialMetrics, base: float) -> float:
    if m.total_revenue is None or not m.total_assets:
        return _clamp(base)
    turnover = m.total_revenue / m.total_assets
    return _clamp(base + _at_least(turnover, ASSET_TURNOVER_TIERS, ASSET_TURNOVER_FLOOR))


def health_category(score: float) -> HealthCategory:
    for threshold, category in CATEGORY_BANDS:
        if score >= threshold:
            return category
    return "critical"


def compute_health_score(
    metrics: FinancialMetrics, config: Optional[HealthScoreConfig] = None,
) -> FinancialHealthScore:
    """
    Low-confidence metrics short-circuit to a zero, critical score; otherwise
    the weighted sum of the four factors is rounded to an integer.
    """
    cfg = config or HealthScoreConfig()
    if metrics is None or metrics.confidence == "low":
        return FinancialHealthScore()

    factors = HealthFactors(
        profitability=_profitability(metrics, cfg.base_score),
        liquidity=_liquidity(metrics, cfg.base_score),
        leverage=_leverage(metrics, cfg.base_score),
        efficiency=_efficiency(metrics, cfg.base_score),
    )
    total = (
        factors.profitability * cfg.profitability_weight
        + factors.liquidity * cfg.liquidity_weight
        + factors.leverage * cfg.leverage_weight
        + factors.efficiency * cfg.efficiency_weight
    )
    score = int(round(total))
    return FinancialHealthScore(score=score, category=health_category(score), factors=factors)


def financial_metrics_summary(metrics: FinancialMetrics) -> Dict[str, Any]:
    """Display rows plus the health score and data-quality verdict."""
    quality = validate_financial_metrics_quality(metrics)
    health = compute_health_score(metrics)
    return {
        "year": metrics.year,
        "rows": [
            {"label": "Revenue", "value": format_indian_currency(metrics.total_revenue)},
            {"label": "Net Profit", "value": format_indian_currency(metrics.net_profit)},
            {"label": "EBITDA Margin", "value": format_percent_plain(metrics.ebitda_margin)},
            {"label": "Current Ratio", "value": format_ratio(metrics.current_ratio)},
            {"label": "Debt / Equity", "value": format_ratio(metrics.debt_equity_ratio)},
            {"label": "Total Assets", "value": format_indian_currency(metrics.total_assets)},
            {"label": "Total Liabilities", "value": format_indian_currency(metrics.total_liabilities)},
        ],
        "health_score": health.score,
        "health_category": health.category,
        "data_quality": "Valid" if quality.is_valid else "Insufficient",
        "completeness": quality.completeness,
        "data_source": metrics.data_source,
    }
