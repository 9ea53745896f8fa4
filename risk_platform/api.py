"""
risk_platform/api.py
====================
FastAPI router for model performance analytics under ``/api/analytics``.

  GET  /api/analytics/model-performance   filtered portfolio, query params
  POST /api/analytics/model-performance   filters or explicit company ids

Success: ``{"success": true, "data": {...}, "metadata": {...}}``
Failure: ``{"error": str, "details": str?}`` with 401 / 404 / 500.
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from .diagnostics import BoundaryError, NoDataFound, Unauthenticated
from .repository import (
    FilterCriteria, Pagination, PortfolioRepository, SortCriteria, split_csv,
)
from .types import PortfolioRecord
from .validation import (
    MODEL_TYPES, calculate_accuracy_trends, calculate_fold_validation,
    calculate_holdout_validation, calculate_model_benchmarks, calculate_model_drift,
    calculate_model_performance, calculate_model_type_comparison,
    calculate_parameter_importance, calculate_parameter_performance,
    calculate_temporal_validation, calculate_validation_analysis,
)

logger = logging.getLogger(__name__)

UserResolver = Callable[[Request], Optional[str]]

USER_HEADER = "X-User-Id"
FAILURE_MESSAGE = "Failed to calculate model performance analytics"
POST_PAGE_LIMIT = 1000


# ──────────────────────────────────────────────
# Request Models
# ──────────────────────────────────────────────
class FilterBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    industries: Optional[List[str]] = None
    risk_grades: Optional[List[str]] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    model_type: Optional[str] = None

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(**self.model_dump())


class ModelPerformanceRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    filters: Optional[FilterBody] = None
    company_ids: Optional[List[str]] = None
    model_types: List[str] = Field(default_factory=lambda: list(MODEL_TYPES))
    include_validation_details: bool = False
    include_parameter_importance: bool = False
    include_accuracy_trends: bool = False
    calculate_model_drift: bool = False
    benchmark_comparison: bool = False


# ──────────────────────────────────────────────
# Dependencies
# ──────────────────────────────────────────────
def header_user_resolver(request: Request) -> Optional[str]:
    return request.headers.get(USER_HEADER) or None


def get_repository(request: Request) -> PortfolioRepository:
    return request.app.state.repository


def require_user(request: Request) -> str:
    user_id = request.app.state.user_resolver(request)
    if not user_id:
        raise Unauthenticated("Unauthorized")
    return user_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _success(data: Dict[str, Any], metadata: Dict[str, Any]) -> Dict[str, Any]:
    return jsonable_encoder({"success": True, "data": data, "metadata": metadata})


def _with_analysis(companies: List[PortfolioRecord]) -> List[PortfolioRecord]:
    analysed = [c for c in companies if c.risk_analysis is not None]
    if not analysed:
        raise NoDataFound("No companies found with risk analysis data")
    return analysed


def _guarded(label: str, fn: Callable[[], Dict[str, Any]]) -> Dict[str, Any]:
    """BoundaryErrors pass through; anything else becomes a logged 500."""
    try:
        return fn()
    except BoundaryError:
        raise
    except Exception as exc:
        logger.exception("%s failed", label)
        raise BoundaryError(FAILURE_MESSAGE, str(exc)) from exc


# ──────────────────────────────────────────────
# Router
# ──────────────────────────────────────────────
router = APIRouter(prefix="/api/analytics", tags=["Model Performance"])


@router.get("/model-performance")
def get_model_performance(
    limit: int = Query(1000, ge=1),
    page: int = Query(1, ge=1),
    model_type: Optional[str] = Query(None, description="with_banking or without_banking"),
    include_validation: bool = Query(False),
    include_parameter_analysis: bool = Query(False),
    industries: Optional[str] = Query(None, description="comma separated"),
    risk_grades: Optional[str] = Query(None, description="comma separated"),
    date_from: Optional[str] = Query(None),
    date_to: Optional[str] = Query(None),
    user_id: str = Depends(require_user),
    repository: PortfolioRepository = Depends(get_repository),
):
    """Model performance for one page of the user's portfolio."""
    filters = FilterCriteria(
        industries=split_csv(industries),
        risk_grades=split_csv(risk_grades),
        date_from=date_from,
        date_to=date_to,
    )

    def build() -> Dict[str, Any]:
        portfolio = repository.get_portfolio_overview(filters, SortCriteria(), Pagination(page, limit), user_id)
        if not portfolio.companies:
            return _success(
                {"model_performance": calculate_model_performance([])},
                {"total_companies_analyzed": 0, "generated_at": _now()},
            )

        scoped = portfolio.companies
        if model_type:
            scoped = [c for c in scoped if c.model_type == model_type]
        analysed = _with_analysis(scoped)

        data: Dict[str, Any] = {"model_performance": calculate_model_performance(analysed)}
        if include_validation:
            data["validation_analysis"] = calculate_validation_analysis(analysed)
        if include_parameter_analysis:
            data["parameter_analysis"] = calculate_parameter_performance(analysed)
        comparison = calculate_model_type_comparison(portfolio.companies)
        if len(comparison) > 1:
            data["model_comparison"] = comparison

        return _success(data, {
            "total_companies_analyzed": len(analysed),
            "total_companies_in_portfolio": portfolio.total_count,
            "companies_without_analysis": len(scoped) - len(analysed),
            "model_type_filter": model_type,
            "include_validation": include_validation,
            "include_parameter_analysis": include_parameter_analysis,
            "filters_applied": not filters.is_empty(),
            "generated_at": _now(),
        })

    return _guarded("Model performance analytics", build)


@router.post("/model-performance")
def post_model_performance(
    body: ModelPerformanceRequest,
    user_id: str = Depends(require_user),
    repository: PortfolioRepository = Depends(get_repository),
):
    """Model performance for explicit company ids, or a filtered portfolio."""
    def build() -> Dict[str, Any]:
        if body.company_ids is not None:
            companies = [repository.get_company_by_request_id(cid) for cid in body.company_ids]
            companies = [c for c in companies if c is not None]
        else:
            filters = body.filters.to_criteria() if body.filters else FilterCriteria()
            companies = repository.get_portfolio_overview(
                filters, SortCriteria(), Pagination(1, POST_PAGE_LIMIT), user_id,
            ).companies
        if not companies:
            raise NoDataFound("No companies found matching the criteria")

        analysed = _with_analysis(companies)
        data: Dict[str, Any] = {
            "model_performance": calculate_model_performance(analysed),
            "model_comparison": calculate_model_type_comparison(analysed),
        }
        if body.include_validation_details:
            data["validation_details"] = {
                "cross_validation": calculate_fold_validation(analysed),
                "holdout_validation": calculate_holdout_validation(analysed),
                "temporal_validation": calculate_temporal_validation(analysed),
            }
        if body.include_parameter_importance:
            data["parameter_importance"] = calculate_parameter_importance(analysed)
        if body.include_accuracy_trends:
            data["accuracy_trends"] = calculate_accuracy_trends(analysed)
        if body.calculate_model_drift:
            data["model_drift"] = calculate_model_drift(analysed)
        if body.benchmark_comparison:
            data["benchmark_comparison"] = calculate_model_benchmarks(analysed)

        return _success(data, {
            "companies_analyzed": len(analysed),
            "model_types_analyzed": body.model_types,
            "request_type": "specific_companies" if body.company_ids is not None else "filtered_portfolio",
            "include_validation_details": body.include_validation_details,
            "include_parameter_importance": body.include_parameter_importance,
            "include_accuracy_trends": body.include_accuracy_trends,
            "calculate_model_drift": body.calculate_model_drift,
            "benchmark_comparison": body.benchmark_comparison,
            "generated_at": _now(),
        })

    return _guarded("Model performance analytics POST", build)


# ──────────────────────────────────────────────
# App Factory
# ──────────────────────────────────────────────
def _boundary_error_handler(request: Request, exc: BoundaryError) -> JSONResponse:
    content: Dict[str, Any] = {"error": exc.message}
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


def create_app(repository: PortfolioRepository, user_resolver: Optional[UserResolver] = None) -> FastAPI:
    app = FastAPI(title="Portfolio Risk Analytics API", version="1.0.0")
    app.state.repository = repository
    app.state.user_resolver = user_resolver or header_user_resolver
    app.add_exception_handler(BoundaryError, _boundary_error_handler)
    app.include_router(router)
    return app
