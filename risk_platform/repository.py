"""
risk_platform/repository.py
===========================
Portfolio data access seen from the analytics boundary.

``PortfolioRepository`` is the collaborator the HTTP layer reads from; the
storage behind it lives outside this package. ``InMemoryPortfolioRepository``
serves a fixed list of records and is what the tests and local runs use.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional, Protocol

import pandas as pd

from .types import PortfolioRecord, RecordLike, coerce_records

logger = logging.getLogger(__name__)


@dataclass
class FilterCriteria:
    industries: Optional[List[str]] = None
    risk_grades: Optional[List[str]] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None
    model_type: Optional[str] = None

    def is_empty(self) -> bool:
        return not any((self.industries, self.risk_grades, self.date_from, self.date_to, self.model_type))


@dataclass
class SortCriteria:
    field: str = "completed_at"
    direction: str = "desc"


@dataclass
class Pagination:
    page: int = 1
    limit: int = 1000


@dataclass
class PortfolioPage:
    companies: List[PortfolioRecord] = field(default_factory=list)
    total_count: int = 0


class PortfolioRepository(Protocol):
    def get_portfolio_overview(
        self,
        filters: Optional[FilterCriteria] = None,
        sort: Optional[SortCriteria] = None,
        pagination: Optional[Pagination] = None,
        user_id: Optional[str] = None,
    ) -> PortfolioPage:
        ...

    def get_company_by_request_id(self, request_id: str) -> Optional[PortfolioRecord]:
        ...


# ─── In-Memory Implementation ─────────────────────────────────────────────────

def parse_timestamp(value: Any) -> Optional[pd.Timestamp]:
    """Parse one timestamp to UTC; None when missing or unparseable."""
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, errors="coerce", utc=True)
    return None if pd.isna(ts) else ts


def _matches(record: PortfolioRecord, filters: FilterCriteria) -> bool:
    if filters.industries and record.industry not in filters.industries:
        return False
    if filters.risk_grades:
        wanted = {g.upper() for g in filters.risk_grades}
        if not record.risk_grade or record.risk_grade.upper() not in wanted:
            return False
    if filters.model_type and record.model_type != filters.model_type:
        return False
    start, end = parse_timestamp(filters.date_from), parse_timestamp(filters.date_to)
    if start is not None or end is not None:
        completed = parse_timestamp(record.completed_at)
        if completed is None:
            return False
        if start is not None and completed < start:
            return False
        if end is not None and completed > end:
            return False
    return True


def _sort_key(record: PortfolioRecord, field_name: str):
    value = getattr(record, field_name, None)
    if field_name == "completed_at":
        ts = parse_timestamp(value)
        return (ts is not None, ts.value if ts is not None else 0)
    return (value is not None, value if value is not None else 0)


class InMemoryPortfolioRepository:
    """List-backed repository; ``user_id`` is accepted and not used for scoping."""

    def __init__(self, records: Optional[Iterable[RecordLike]] = None):
        self._records: List[PortfolioRecord] = coerce_records(records)

    def add(self, record: RecordLike) -> None:
        self._records.extend(coerce_records([record]))

    def get_portfolio_overview(
        self,
        filters: Optional[FilterCriteria] = None,
        sort: Optional[SortCriteria] = None,
        pagination: Optional[Pagination] = None,
        user_id: Optional[str] = None,
    ) -> PortfolioPage:
        filters = filters or FilterCriteria()
        sort = sort or SortCriteria()
        pagination = pagination or Pagination()

        matched = [r for r in self._records if _matches(r, filters)]
        try:
            matched.sort(key=lambda r: _sort_key(r, sort.field), reverse=sort.direction == "desc")
        except TypeError:
            logger.warning("Cannot sort portfolio by %r; keeping insertion order", sort.field)

        page = max(pagination.page, 1)
        limit = max(pagination.limit, 0)
        start = (page - 1) * limit
        return PortfolioPage(companies=matched[start:start + limit], total_count=len(matched))

    def get_company_by_request_id(self, request_id: str) -> Optional[PortfolioRecord]:
        for r in self._records:
            if r.id == request_id:
                return r
        return None

    def __len__(self) -> int:
        return len(self._records)


def split_csv(value: Optional[str]) -> Optional[List[str]]:
    """'a, b,,c' → ['a', 'b', 'c']; None or blank → None."""
    if not value:
        return None
    parts = [p.strip() for p in value.split(",") if p.strip()]
    return parts or None
