"""
tests/test_portfolio.py
=======================
Portfolio distributions, exposure concentration, trends and peer comparison.
"""
import copy
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from risk_platform.portfolio import (
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
    record_grade,
    risk_multiplier,
)
from risk_platform.types import PortfolioRecord


def _eligible(record_factory, id, grade, amount, **kw):
    analysis = {"overallGrade": {"grade": grade}, "eligibility": {"finalEligibility": amount, "riskGrade": grade}}
    return record_factory(id, risk_grade=grade, risk_analysis=analysis, **kw)


class TestRecordAccessors:
    def test_grade_from_overall_grade(self, record_factory):
        record = PortfolioRecord.from_dict(record_factory("a", risk_grade=None, risk_analysis={"overallGrade": {"grade": "cm3"}}))
        assert record_grade(record) == "CM3"

    def test_unrecognised_grade_is_ungraded(self, record_factory):
        assert record_grade(PortfolioRecord.from_dict(record_factory("a", risk_grade="AAA"))) == "Ungraded"

    def test_no_analysis_is_ungraded(self, record_factory):
        assert record_grade(PortfolioRecord.from_dict(record_factory("a", risk_analysis=None))) == "Ungraded"

    def test_multiplier_fallbacks(self, record_factory):
        own = {"overallGrade": {"grade": "CM2"}, "eligibility": {"riskMultiplier": 0.75}}
        assert risk_multiplier(PortfolioRecord.from_dict(record_factory("a", risk_analysis=own))) == 0.75
        assert risk_multiplier(PortfolioRecord.from_dict(record_factory("b", risk_grade="CM4"))) == 0.6
        assert risk_multiplier(PortfolioRecord.from_dict(record_factory("c", risk_analysis=None))) == 1.0

    def test_from_dict_uses_request_id(self):
        record = PortfolioRecord.from_dict({"request_id": "req-9", "total_parameters": None, "risk_analysis": "bad"})
        assert record.id == "req-9"
        assert record.total_parameters == 0
        assert record.risk_analysis is None

    def test_from_dict_coerces_numeric_strings(self):
        record = PortfolioRecord.from_dict({
            "id": "a", "total_parameters": "10", "available_parameters": "8.0", "banking_parameters": " 2 ",
            "risk_score": "72.5", "recommended_limit": "₹1,50,000",
        })
        assert (record.total_parameters, record.available_parameters, record.banking_parameters) == (10, 8, 2)
        assert record.risk_score == 72.5
        assert record.recommended_limit == 150000.0

    def test_from_dict_unparseable_numbers_fall_back(self):
        record = PortfolioRecord.from_dict({
            "id": "a", "total_parameters": "n/a", "available_parameters": float("inf"),
            "risk_score": "high", "recommended_limit": True,
        })
        assert (record.total_parameters, record.available_parameters) == (0, 0)
        assert record.risk_score is None
        assert record.recommended_limit is None


class TestRiskDistribution:
    def test_two_graded(self, record_factory):
        dist = calculate_risk_distribution([record_factory("a", "CM2"), record_factory("b", "CM4")])
        assert dist.total_count == 2
        assert dist.cm2_count == 1
        assert dist.cm4_count == 1
        assert dist.distribution_percentages["CM2"] == 50
        assert dist.distribution_percentages["CM4"] == 50

    def test_ungraded_counts_toward_total(self, record_factory):
        dist = calculate_risk_distribution([record_factory("a", risk_analysis=None), record_factory("b", "CM4")])
        assert dist.ungraded_count == 1
        assert dist.cm4_count == 1
        assert dist.distribution_percentages["Ungraded"] == 50

    def test_percentages_sum_to_100(self, record_factory):
        records = [record_factory(str(i), g) for i, g in enumerate(["CM1", "CM1", "CM3", "CM5", "CM2", None])]
        dist = calculate_risk_distribution(records)
        assert sum(dist.distribution_percentages.values()) == pytest.approx(100.0)

    def test_empty(self):
        dist = calculate_risk_distribution([])
        assert dist.total_count == 0
        assert dist.distribution_percentages == {}


class TestBreakdowns:
    def test_industry(self, record_factory):
        records = [
            record_factory("a", "CM1", 70.0, "Manufacturing"),
            record_factory("b", "CM3", 80.0, "Manufacturing"),
            record_factory("c", "CM2", 60.0, "Retail"),
            record_factory("d", "CM2", None, None),
        ]
        breakdown = calculate_industry_breakdown(records)
        assert breakdown.total_industries == 3
        top = breakdown.industries[0]
        assert top.industry == "Manufacturing"
        assert top.count == 2
        assert top.percentage == pytest.approx(50.0)
        assert top.average_risk_score == pytest.approx(75.0)
        assert top.risk_distribution == {"CM1": 50.0, "CM3": 50.0}
        assert {s.industry for s in breakdown.industries} == {"Manufacturing", "Retail", "Unknown"}

    def test_regional(self, record_factory, sample_risk_analysis):
        records = [
            record_factory("a", region={"state": "Maharashtra", "city": "Mumbai"}),
            record_factory("b", risk_analysis=sample_risk_analysis),
            record_factory("c", region={"state": "Karnataka", "city": "Bengaluru"}),
            record_factory("d", risk_analysis=None),
        ]
        regional = calculate_regional_distribution(records)
        assert regional.total_states == 2
        assert regional.unresolved_count == 1
        top = regional.states[0]
        assert top.state == "Maharashtra"
        assert top.count == 2
        assert top.percentage == pytest.approx(50.0)
        assert top.cities[0].city == "Mumbai"
        assert sum(s.percentage for s in regional.states) == pytest.approx(100.0)

    def test_empty(self):
        assert calculate_industry_breakdown([]).total_industries == 0
        assert calculate_regional_distribution([]).states == []


class TestComplianceMetrics:
    def test_counts(self, record_factory, sample_risk_analysis):
        records = [record_factory("a", risk_analysis=sample_risk_analysis), record_factory("b", risk_analysis=None)]
        metrics = calculate_compliance_metrics(records)
        assert metrics.gst_compliance == {"compliant": 1, "non_compliant": 0, "unknown": 1}
        assert metrics.epfo_compliance == {"compliant": 0, "non_compliant": 1, "unknown": 1}
        assert metrics.audit_qualification == {"qualified": 0, "unqualified": 2}


class TestEligibilityAndExposure:
    def test_eligibility_analysis(self, record_factory):
        records = [
            _eligible(record_factory, "a", "CM2", 1_080_000),
            _eligible(record_factory, "b", "CM4", 560_000),
            record_factory("c", "CM1"),
        ]
        analysis = calculate_eligibility_analysis(records)
        assert analysis.total_eligible_amount == 1_640_000
        assert analysis.average_eligibility == 820_000
        assert analysis.eligibility_distribution == {"CM2": 1_080_000, "CM4": 560_000}
        assert analysis.companies_with_eligibility == 2
        assert analysis.risk_adjusted_exposure == pytest.approx(1_080_000 * 0.9 + 560_000 * 0.6)

    def test_single_exposure_is_fully_concentrated(self):
        risk = calculate_concentration_risk([500_000])
        assert risk.herfindahl_index == pytest.approx(10_000)
        assert risk.max_single_exposure_percentage == pytest.approx(100)
        assert risk.top_10_exposure_percentage == pytest.approx(100)

    def test_equal_exposures(self):
        risk = calculate_concentration_risk([100.0] * 4)
        assert risk.herfindahl_index == pytest.approx(2_500)
        assert risk.max_single_exposure_percentage == pytest.approx(25)

    def test_top_10_share(self):
        risk = calculate_concentration_risk([10.0] * 20)
        assert risk.top_10_exposure_percentage == pytest.approx(50)

    def test_no_positive_exposure(self):
        risk = calculate_concentration_risk([0, -5, None])
        assert risk.herfindahl_index == 0.0

    def test_portfolio_exposure(self, record_factory):
        records = [
            _eligible(record_factory, "a", "CM2", 1_080_000, recommended_limit=1_200_000),
            record_factory("b", "CM4", recommended_limit=400_000),
            record_factory("c", "CM1"),
        ]
        exposure = calculate_portfolio_exposure(records)
        assert exposure.total_exposure == 1_480_000
        assert exposure.total_recommended_limit == 1_600_000
        assert exposure.total_final_eligibility == 1_080_000
        assert exposure.risk_weighted_exposure == pytest.approx(1_080_000 * 0.9 + 400_000 * 0.6)
        assert exposure.exposure_by_risk_grade == {"CM2": 1_080_000, "CM4": 400_000}
        assert exposure.concentration_risk.herfindahl_index > 0
        assert 0 < exposure.concentration_risk.max_single_exposure_percentage <= 100


class TestTrends:
    def test_group_by_month_mixed_precision(self, record_factory):
        records = [
            record_factory("a", completed_at="2024-01-31T10:00:00.123456+00:00"),
            record_factory("b", completed_at="2024-01-02T10:00:00+00:00"),
            record_factory("c", completed_at="2024-02-01T10:00:00.5+00:00"),
            record_factory("d"),
        ]
        months = group_by_month(records)
        assert list(months) == ["2024-01", "2024-02"]
        assert [r.id for r in months["2024-01"]] == ["a", "b"]

    def test_eligibility_trends(self, record_factory):
        records = [
            _eligible(record_factory, "a", "CM2", 1_080_000, completed_at="2024-01-05T09:00:00+00:00"),
            _eligible(record_factory, "b", "CM4", 560_000, completed_at="2024-01-20T10:00:00.5+00:00"),
            _eligible(record_factory, "c", "CM2", 900_000, completed_at="2024-03-01"),
            record_factory("d", "CM1", completed_at="2024-03-02"),
            _eligible(record_factory, "e", "CM3", 500_000),
        ]
        trends = calculate_eligibility_trends(records)
        january, march = trends["eligibility_trends"]
        assert january["period"] == "2024-01"
        assert january["company_count"] == 2
        assert january["total_eligibility"] == 1_640_000
        assert january["average_eligibility"] == 820_000
        assert january["risk_adjusted_eligibility"] == pytest.approx(1_080_000 * 0.9 + 560_000 * 0.6)
        assert january["grade_distribution"] == {"CM2": 1, "CM4": 1}
        assert march["period"] == "2024-03"
        assert march["risk_adjusted_eligibility"] == pytest.approx(810_000)
        assert trends["trend_summary"] == {"total_periods": 2, "total_eligibility_change": -740_000}

    def test_eligibility_trends_empty(self, record_factory):
        trends = calculate_eligibility_trends([record_factory("a", completed_at="2024-01-01")])
        assert trends == {"eligibility_trends": [], "trend_summary": {"total_periods": 0, "total_eligibility_change": 0.0}}

    def test_financial_trends(self, record_factory, sample_risk_analysis):
        larger = copy.deepcopy(sample_risk_analysis)
        larger["financialData"]["profit_loss"]["revenue"]["net_revenue"]["2024"] = 6_000_000
        records = [
            record_factory("a", risk_score=70.0, risk_analysis=sample_risk_analysis),
            record_factory("b", risk_score=50.0, risk_analysis=larger),
            record_factory("c", risk_analysis=None),
        ]
        earlier, latest = calculate_financial_trends(records, metrics=("total_revenue",))
        assert (earlier["year"], earlier["fy_label"]) == (2023, "FY23")
        assert earlier["value"] == pytest.approx(4_200_000)
        assert earlier["company_count"] == 2
        assert earlier["risk_correlation"] == 0.0
        assert earlier["change_percentage"] is None
        assert latest["value"] == pytest.approx(5_500_000)
        assert latest["risk_correlation"] == pytest.approx(-1.0)
        assert latest["change_percentage"] == pytest.approx(1_300_000 / 4_200_000 * 100)
        assert latest["change_display"] == "+31.0%"

    def test_financial_trends_cover_every_metric(self, record_factory, sample_risk_analysis):
        trends = calculate_financial_trends([record_factory("a", risk_analysis=sample_risk_analysis)])
        liabilities = [t for t in trends if t["metric"] == "total_liabilities"]
        assert [t["value"] for t in liabilities] == [1_400_000, 1_500_000]
        assert {t["metric"] for t in trends} == {
            "ebitda_margin", "debt_equity_ratio", "current_ratio", "total_revenue",
            "net_profit", "total_assets", "total_liabilities",
        }

    def test_financial_trends_without_financials(self, record_factory):
        assert calculate_financial_trends([record_factory("a")]) == []

class TestPeerComparison:
    def test_risk_score_percentiles(self, record_factory):
        records = [
            record_factory("a", "CM2", 50.0),
            record_factory("b", "CM2", 60.0),
            record_factory("c", "CM2", 70.0),
        ]
        results = {r.company_id: r for r in calculate_peer_comparison(records, metric="risk_score")}
        assert results["a"].percentile == 0.0
        assert results["b"].percentile == 50.0
        assert results["c"].percentile == 100.0
        assert results["b"].peer_count == 2
        assert results["b"].peer_median == 60.0
        assert results["b"].risk_adjusted_performance == pytest.approx(60.0 / 0.9)
        assert results["c"].benchmark_category == "Good"
        assert results["a"].benchmark_category == "Poor"

    def test_percentiles_bounded(self, record_factory):
        records = [record_factory(str(i), "CM3", float(s)) for i, s in enumerate([55, 55, 90, 10, 72, 38])]
        for result in calculate_peer_comparison(records, metric="risk_score"):
            assert 0 <= result.percentile <= 100

    def test_by_industry(self, record_factory):
        records = [
            record_factory("a", "CM2", 50.0, "Retail"),
            record_factory("b", "CM2", 90.0, "Steel"),
            record_factory("c", "CM2", 70.0, "Retail"),
        ]
        results = {r.company_id: r for r in calculate_peer_comparison(records, "risk_score", by_industry=True)}
        assert results["c"].peer_count == 1
        assert results["c"].percentile == 100.0
        assert results["b"].peer_count == 0
        assert results["b"].percentile == 0.0
        assert results["b"].peer_median is None

    def test_financial_metric(self, record_factory, sample_risk_analysis):
        records = [record_factory("a", risk_analysis=sample_risk_analysis), record_factory("b")]
        results = calculate_peer_comparison(records, "total_revenue")
        assert [r.company_id for r in results] == ["a"]
        assert results[0].value == 5_000_000

    def test_unsupported_metric(self, record_factory):
        assert calculate_peer_comparison([record_factory("a")], metric="shoe_size") == []


class TestOverview:
    def test_overview(self, record_factory):
        records = [
            record_factory("a", "CM2", 60.0, recommended_limit=100.0),
            record_factory("b", "CM4", 40.0, status="completed", recommended_limit=50.0),
            record_factory("c", "CM1", 90.0, status="processing"),
        ]
        overview = calculate_overview_metrics(records)
        assert overview["total_companies"] == 2
        assert overview["total_exposure"] == 150.0
        assert overview["average_risk_score"] == 50.0
        assert overview["risk_distribution"].total_count == 2
        assert overview["industry_summary"]["top_industries"][0]["name"] == "Manufacturing"

    def test_empty_overview(self):
        overview = calculate_overview_metrics([])
        assert overview["total_companies"] == 0
        assert overview["industry_summary"]["top_industries"] == []
