"""
risk_platform/financials.py
===========================
Multi-year financial metric extraction from ``financialData``.

Year labels vary between sources ("2024", "31 Mar, 2024", "2023-24", "FY24"),
so every lookup goes through the embedded year number. Each metric is range
checked; out-of-range values are dropped to None and recorded, never raised.
"""
from __future__ import annotations
import logging
import math
import re
from typing import Any, Dict, List, Optional, Tuple

from .diagnostics import ExtractionResult, RangeViolation, run_extractor
from .types import FinancialMetrics, FinancialQualityReport, METRIC_FIELDS, Confidence

logger = logging.getLogger(__name__)

# ─── Constants ────────────────────────────────────────────────────────────────

METRIC_RANGES: Dict[str, Tuple[float, float]] = {
    "ebitda_margin": (-100.0, 100.0),
    "debt_equity_ratio": (0.0, 50.0),
    "current_ratio": (0.0, 20.0),
    "total_revenue": (0.0, 1e12),
    "net_profit": (-1e12, 1e12),
    "total_assets": (0.0, 1e12),
    "total_liabilities": (-1e12, 1e12),
}

# camelCase names used by the upstream JSON
METRIC_ALIASES: Dict[str, str] = {
    "ebitdaMargin": "ebitda_margin",
    "debtEquityRatio": "debt_equity_ratio",
    "currentRatio": "current_ratio",
    "totalRevenue": "total_revenue",
    "netProfit": "net_profit",
    "totalAssets": "total_assets",
    "totalLiabilities": "total_liabilities",
}

# metric → path of the year table inside financialData
METRIC_PATHS: Dict[str, Tuple[str, ...]] = {
    "ebitda_margin": ("ratios", "profitability_ratios", "ebitda_margin_"),
    "debt_equity_ratio": ("ratios", "leverage_ratios", "debt_equity"),
    "current_ratio": ("ratios", "liquidity_ratios", "current_ratio"),
    "total_revenue": ("profit_loss", "revenue", "net_revenue"),
    "net_profit": ("profit_loss", "profitability", "profit_for_the_period"),
    "total_assets": ("balance_sheet", "totals", "total_assets"),
    "total_liabilities": ("balance_sheet", "totals", "total_liabilities"),
}

TOTAL_EQUITY_PATH = ("balance_sheet", "totals", "total_equity")
OPERATING_PROFIT_PATH = ("profit_loss", "profitability", "operating_profit_")
CURRENT_ASSETS_PATH = ("balance_sheet", "totals", "total_current_assets")
CURRENT_LIABILITIES_PATH = ("balance_sheet", "totals", "total_current_liabilities")

YEAR_KEY_TABLES = ("ebitda_margin", "debt_equity_ratio", "current_ratio")

HIGH_CONFIDENCE_MIN = 5
MEDIUM_CONFIDENCE_MIN = 3


# ─── Value Helpers ────────────────────────────────────────────────────────────

def to_numeric(val: Any) -> Optional[float]:
    """Convert diverse string formats to float, handling Indian notations."""
    if val is None or val == "" or isinstance(val, bool):
        return None
    if isinstance(val, (int, float)):
        return None if math.isnan(val) else float(val)
    if not isinstance(val, str):
        return None
    s = val.strip()
    # Parenthetical negatives: (1234) → -1234
    if s.startswith('(') and s.endswith(')'):
        s = '-' + s[1:-1]
    s = (s.replace(',', '').replace('₹', '').replace('Rs.', '').replace('Rs', '')
         .replace('%', '').strip())
    if s.lower() in ('', '-', '--', 'n/a', 'na', 'nan', 'none'):
        return None
    if s.lower() == 'nil':
        return 0.0
    try:
        return float(s)
    except ValueError:
        return None


def extract_year_number(label: Any) -> Optional[int]:
    """
    First 4-digit year embedded in a label.
    "31 Mar, 2024" → 2024, "2023-24" → 2023, "FY24" → 2024.
    """
    if isinstance(label, int) and not isinstance(label, bool):
        return label if 1900 <= label <= 2099 else None
    if not isinstance(label, str):
        return None
    m = re.search(r'(?<!\d)((?:19|20)\d{2})(?!\d)', label)
    if m:
        return int(m.group(1))
    m = re.search(r'FY\s*(\d{2})(?!\d)', label, re.IGNORECASE)
    if m:
        return 2000 + int(m.group(1))
    return None


def _table(financial_data: Dict[str, Any], path: Tuple[str, ...]) -> Optional[Dict[str, Any]]:
    node: Any = financial_data
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node if isinstance(node, dict) else None


def _lookup(table: Optional[Dict[str, Any]], year: str) -> Optional[float]:
    """Exact year key first, then any key with the same embedded year."""
    if not table:
        return None
    if year in table:
        return to_numeric(table[year])
    target = extract_year_number(year)
    if target is None:
        return None
    for key, value in table.items():
        if extract_year_number(key) == target:
            return to_numeric(value)
    return None


# ─── Range Validation ─────────────────────────────────────────────────────────

def _check_range(value: Any, metric_type: str) -> Optional[float]:
    """Raises RangeViolation for out-of-range numbers; None for non-numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    bounds = METRIC_RANGES.get(METRIC_ALIASES.get(metric_type, metric_type))
    if bounds is None:
        return float(value)
    if value < bounds[0] or value > bounds[1]:
        raise RangeViolation(metric_type, value, bounds)
    return float(value)


def validate_financial_metric(value: Any, metric_type: str) -> Optional[float]:
    """
    The value as a float when it is a finite number inside the range for
    ``metric_type``; None otherwise. Unknown metric types are not range checked.
    """
    try:
        return _check_range(value, metric_type)
    except RangeViolation as exc:
        logger.warning("Financial metric %s", exc)
        return None


def _validated(value: Optional[float], metric: str, result: ExtractionResult) -> Optional[float]:
    try:
        return _check_range(value, metric)
    except RangeViolation as exc:
        result.record_error("extract_financial_metrics", exc)
        return None


# ─── Year Detection ───────────────────────────────────────────────────────────

def _latest(labels: List[Any]) -> Optional[str]:
    best: Optional[str] = None
    best_year = -1
    for label in labels:
        y = extract_year_number(label)
        if y is not None and y > best_year:
            best, best_year = str(label), y
    return best


def _years_desc(financial_data: Dict[str, Any]) -> List[str]:
    years = financial_data.get("years")
    if not isinstance(years, list):
        return []
    labelled = [(extract_year_number(y), str(y)) for y in years if isinstance(y, (str, int)) and not isinstance(y, bool)]
    labelled = [(y, label) for y, label in labelled if y is not None]
    labelled.sort(key=lambda t: t[0], reverse=True)
    return [label for _, label in labelled]


def get_latest_financial_year(financial_data: Any) -> Optional[str]:
    """Label with the largest embedded year, from ``years[]`` or the ratio-table keys."""
    if not isinstance(financial_data, dict):
        return None
    years = financial_data.get("years")
    if isinstance(years, list) and years:
        latest = _latest(years)
        if latest is not None:
            return latest
        first = years[0]
        return str(first) if isinstance(first, (str, int)) else None

    keys: List[str] = []
    for metric in YEAR_KEY_TABLES:
        table = _table(financial_data, METRIC_PATHS[metric])
        if table:
            keys.extend(k for k in table if re.search(r'\d{4}', str(k)))
    return _latest(keys)


# ─── Metric Extraction ────────────────────────────────────────────────────────

def _confidence(count: int) -> Confidence:
    if count >= HIGH_CONFIDENCE_MIN:
        return "high"
    if count >= MEDIUM_CONFIDENCE_MIN:
        return "medium"
    return "low"


def _metrics_for_year(financial_data: Dict[str, Any], year: str, result: ExtractionResult) -> FinancialMetrics:
    raw = {m: _lookup(_table(financial_data, path), year) for m, path in METRIC_PATHS.items()}

    if raw["total_liabilities"] is None:
        assets = raw["total_assets"]
        equity = _lookup(_table(financial_data, TOTAL_EQUITY_PATH), year)
        if assets is not None and equity is not None:
            raw["total_liabilities"] = assets - equity

    values = {m: _validated(v, m, result) for m, v in raw.items()}
    derived = False

    if values["ebitda_margin"] is None and raw["ebitda_margin"] is None:
        op = _lookup(_table(financial_data, OPERATING_PROFIT_PATH), year)
        revenue = values["total_revenue"]
        if op is not None and revenue:
            values["ebitda_margin"] = _validated(op / revenue * 100, "ebitda_margin", result)
            derived = derived or values["ebitda_margin"] is not None

    if values["current_ratio"] is None and raw["current_ratio"] is None:
        ca = _lookup(_table(financial_data, CURRENT_ASSETS_PATH), year)
        cl = _lookup(_table(financial_data, CURRENT_LIABILITIES_PATH), year)
        if ca is not None and cl:
            values["current_ratio"] = _validated(ca / cl, "current_ratio", result)
            derived = derived or values["current_ratio"] is not None

    metrics = FinancialMetrics(**values, year=year)
    metrics.confidence = _confidence(metrics.available_count())
    metrics.data_source = "calculated" if derived else "latest"
    for name in metrics.missing():
        result.record("missing_data", "extract_financial_metrics", f"{name} missing for {year}")
    return metrics


def _extract_financial_metrics(record: Any) -> ExtractionResult:
    result: ExtractionResult = ExtractionResult(FinancialMetrics())
    financial_data = record.get("financialData") if isinstance(record, dict) else None
    if not isinstance(financial_data, dict):
        result.record("missing_data", "extract_financial_metrics", "no financialData")
        return result

    latest = get_latest_financial_year(financial_data)
    if latest is None:
        result.record("missing_data", "extract_financial_metrics", "no financial year found")
        return result

    metrics = _metrics_for_year(financial_data, latest, result)
    if metrics.confidence == "low":
        latest_number = extract_year_number(latest)
        for year in _years_desc(financial_data):
            if year == latest or extract_year_number(year) == latest_number:
                continue
            candidate = _metrics_for_year(financial_data, year, result)
            if candidate.confidence != "low":
                candidate.data_source = "fallback"
                metrics = candidate
                break

    result.value = metrics
    return result


def extract_financial_metrics_result(record: Any) -> ExtractionResult:
    return run_extractor(lambda: _extract_financial_metrics(record), FinancialMetrics, "extract_financial_metrics")


def extract_financial_metrics(record: Any) -> FinancialMetrics:
    """
    Seven headline metrics for the latest year. Falls back to earlier years
    when fewer than three metrics are available. Never raises.
    """
    return extract_financial_metrics_result(record).value


def _financial_history(record: Any) -> ExtractionResult:
    result: ExtractionResult = ExtractionResult([])
    financial_data = record.get("financialData") if isinstance(record, dict) else None
    if not isinstance(financial_data, dict):
        result.record("missing_data", "extract_financial_history", "no financialData")
        return result
    result.value = [_metrics_for_year(financial_data, year, result) for year in reversed(_years_desc(financial_data))]
    return result


def extract_financial_history(record: Any) -> List[FinancialMetrics]:
    """Metrics for every labelled year in ``years[]``, oldest first. Never raises."""
    return run_extractor(lambda: _financial_history(record), list, "extract_financial_history").value


def validate_financial_metrics_quality(metrics: FinancialMetrics) -> FinancialQualityReport:
    count = metrics.available_count()
    return FinancialQualityReport(
        completeness=count / len(METRIC_FIELDS) * 100,
        reliability=metrics.confidence,
        missing_metrics=metrics.missing(),
        is_valid=count >= MEDIUM_CONFIDENCE_MIN,
    )
