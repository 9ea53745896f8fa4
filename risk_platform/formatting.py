"""
risk_platform/formatting.py
===========================
Display strings for report and API fields: Indian notation (Cr / L / K),
percents, ratios and FY labels.
"""
from __future__ import annotations
import re
from typing import Any, Optional

from .financials import extract_year_number

MISSING = "—"

# largest unit first; values below the last scale print as-is
INDIAN_SCALES = (
    (1_00_00_000, "Cr"),
    (1_00_000, "L"),
    (1_000, "K"),
)


def format_indian_number(value: Optional[float], decimals: int = 2) -> str:
    """
    Scale into the largest Indian unit the value reaches.
    e.g. 1,50,000 → 1.50 L, 25,00,00,000 → 25.00 Cr, 1500 Cr → 1,500 Cr
    """
    if value is None:
        return MISSING
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    magnitude = abs(value)
    for size, unit in INDIAN_SCALES:
        if magnitude >= size:
            scaled = magnitude / size
            places = 0 if unit == "Cr" and scaled >= 1_000 else decimals
            return f"{sign}{scaled:,.{places}f} {unit}"
    return f"{sign}{magnitude:,.{decimals}f}"


def format_indian_currency(value: Optional[float], decimals: int = 2) -> str:
    """Rupee-prefixed Indian notation: ₹25.00 Cr, -₹1.50 L."""
    text = format_indian_number(value, decimals)
    if text == MISSING:
        return text
    return f"-₹{text[1:]}" if text.startswith("-") else f"₹{text}"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """Signed percent for deltas and drift; the sign is dropped past ±1000."""
    if value is None:
        return MISSING
    fmt = f",.{decimals}f" if abs(value) >= 1000 else f"+.{decimals}f"
    return f"{value:{fmt}}%"


def format_percent_plain(value: Optional[float], decimals: int = 1) -> str:
    return MISSING if value is None else f"{value:.{decimals}f}%"


def format_ratio(value: Optional[float], decimals: int = 2) -> str:
    return MISSING if value is None else f"{value:.{decimals}f}x"


def financial_year_label(label: Any) -> str:
    """
    Year-table label → FY label.
    e.g. "31 Mar, 2024" → "FY24", "2023-24" → "FY24"
    """
    year = extract_year_number(label)
    if year is None:
        return str(label) if label is not None else MISSING
    m = re.search(r"((?:19|20)\d{2})\s*[-/]\s*(\d{4}|\d{2})(?!\d)", label) if isinstance(label, str) else None
    if m and int(m.group(2)) % 100 == (int(m.group(1)) + 1) % 100:
        # "2023-24" closes in the second year
        year = int(m.group(1)) + 1
    return f"FY{str(year)[2:]}"
