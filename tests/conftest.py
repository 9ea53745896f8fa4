"""
tests/conftest.py
=================
Shared pytest fixtures for the risk analytics test suite.
"""
import copy
import sys
import os

# Ensure the project root is on the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest


def score_entry(parameter, score, max_score, available=True, details=None):
    entry = {"parameter": parameter, "score": score, "maxScore": max_score, "available": available}
    if details is not None:
        entry["details"] = details
    return entry


SAMPLE_RISK_ANALYSIS = {
    "companyData": {
        "name": "Acme Castings Pvt Ltd",
        "addresses": {
            "registered_address": {
                "address_line_1": "Plot 12, MIDC Andheri",
                "city": "bombay",
                "state": "maharashtra",
                "pin_code": 400093,
            },
            "business_address": {"city": "Bangalore", "state": "Karnataka"},
        },
    },
    "financialData": {
        "years": ["2022", "2023", "2024"],
        "ratios": {
            "profitability_ratios": {"ebitda_margin_": {"2023": 15.0, "2024": 18.0}},
            "leverage_ratios": {"debt_equity": {"2023": 0.6, "2024": 0.4}},
            "liquidity_ratios": {"current_ratio": {"2023": 1.3, "2024": 1.6}},
        },
        "profit_loss": {
            "revenue": {"net_revenue": {"2023": 4_200_000, "2024": 5_000_000}},
            "profitability": {"profit_for_the_period": {"2023": 300_000, "2024": 400_000}},
        },
        "balance_sheet": {
            "totals": {
                "total_assets": {"2023": 3_600_000, "2024": 4_000_000},
                "total_equity": {"2023": 2_200_000, "2024": 2_500_000},
            }
        },
    },
    "allScores": [
        score_entry("GSTIN Validity", 3, 5),
        score_entry("GST Compliance", 9, 10, details={"compliance_rate": 96}),
        score_entry("EPFO Compliance", 8, 10, details={"epfo_analysis": {"compliance_rate": 90}}),
        score_entry("Audit Qualification", 5, 5, details={"qualification": "Unqualified opinion"}),
        score_entry("EBITDA Margin", 7, 10),
        score_entry("Cheque Bounces", 0, 5, available=False),
    ],
    "financialScores": [score_entry("EBITDA Margin", 7, 10)],
    "hygieneScores": [
        score_entry("GST Compliance", 9, 10),
        score_entry("EPFO Compliance", 8, 10),
        score_entry("Audit Qualification", 5, 5),
    ],
    "bankingScores": [score_entry("Cheque Bounces", 0, 5, available=False)],
    "eligibility": {"finalEligibility": 1_080_000, "riskGrade": "CM2", "riskMultiplier": 0.9},
    "overallGrade": {"grade": "CM2", "multiplier": 0.9},
}


@pytest.fixture
def sample_risk_analysis():
    """One realistic raw risk-analysis record (latest year 2024, 7 of 7 metrics)."""
    return copy.deepcopy(SAMPLE_RISK_ANALYSIS)


_GRADED = object()


def make_record(
    id,
    risk_grade="CM2",
    risk_score=70.0,
    industry="Manufacturing",
    total=10,
    available=8,
    completed_at=None,
    model_type="with_banking",
    risk_analysis=_GRADED,
    **extra
):
    """Portfolio record dict; ``risk_analysis`` defaults to a bare graded analysis."""
    if risk_analysis is _GRADED:
        risk_analysis = {"overallGrade": {"grade": risk_grade}} if risk_grade else {}
    record = {
        "id": id,
        "company_name": f"Company {id}",
        "risk_grade": risk_grade,
        "risk_score": risk_score,
        "industry": industry,
        "total_parameters": total,
        "available_parameters": available,
        "completed_at": completed_at,
        "model_type": model_type,
        "risk_analysis": risk_analysis,
    }
    record.update(extra)
    return record


@pytest.fixture
def record_factory():
    return make_record
