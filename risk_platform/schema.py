"""
risk_platform/schema.py
=======================
Lenient structural validation of raw risk-analysis records.

Each known section is validated on its own. A section that validates is
replaced by its normalized form; a section that fails keeps its original
value and the failure is recorded. Unknown keys are carried through as-is,
so a record that is only partly well-formed is still usable.
"""
from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .diagnostics import ExtractionResult
from .types import RawRiskRecord

logger = logging.getLogger(__name__)

SCORE_LISTS = ("allScores", "financialScores", "businessScores", "hygieneScores", "bankingScores")


# ── Section Models ─────────────────────────────────────────────

class ParameterScore(BaseModel):
    model_config = ConfigDict(extra="allow")

    parameter:  str
    score:      Optional[float] = None
    maxScore:   Optional[float] = Field(default=None, ge=0)
    weightage:  Optional[float] = None
    available:  bool            = False
    benchmark:  Optional[str]   = None
    value:      Any             = None
    details:    Any             = None

    @field_validator("parameter")
    @classmethod
    def parameter_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("parameter name is blank")
        return v


class Address(BaseModel):
    model_config = ConfigDict(extra="allow")

    state:          Optional[str] = None
    city:           Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    pin_code:       Optional[str] = None

    @field_validator("pin_code", mode="before")
    @classmethod
    def pin_code_as_text(cls, v: Any) -> Any:
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v


class FinancialDataSection(BaseModel):
    model_config = ConfigDict(extra="allow")

    years: List[str] = Field(default_factory=list)

    @field_validator("years", mode="before")
    @classmethod
    def years_as_text(cls, v: Any) -> Any:
        if isinstance(v, list):
            return [str(y) if isinstance(y, int) and not isinstance(y, bool) else y for y in v]
        return v


class Eligibility(BaseModel):
    model_config = ConfigDict(extra="allow")

    finalEligibility: Optional[float] = None
    baseEligibility:  Optional[float] = None
    riskGrade:        Optional[str]   = None
    riskMultiplier:   Optional[float] = Field(default=None, gt=0)


class OverallGrade(BaseModel):
    model_config = ConfigDict(extra="allow")

    grade:      Optional[str]   = None
    multiplier: Optional[float] = Field(default=None, gt=0)


# ── Lenient Parsing ────────────────────────────────────────────

def _validate(model: type, value: Any, context: str, result: ExtractionResult) -> Any:
    """Return the normalized dump, or the original value if it does not validate."""
    try:
        normalized = model.model_validate(value).model_dump(exclude_unset=True)
    except ValidationError as exc:
        result.record("parse_failure", context, f"{exc.error_count()} validation error(s)")
        return value
    return {**value, **normalized}


def _validate_scores(entries: Any, context: str, result: ExtractionResult) -> Any:
    if not isinstance(entries, list):
        result.record("parse_failure", context, f"expected a list, got {type(entries).__name__}")
        return entries
    return [_validate(ParameterScore, e, f"{context}[{i}]", result) for i, e in enumerate(entries)]


def parse_risk_record_result(raw: Any) -> ExtractionResult:
    """Validate known sections of ``raw``; the value is None only for non-dict input."""
    if not isinstance(raw, dict):
        result: ExtractionResult = ExtractionResult(None)
        result.record("parse_failure", "risk_record", f"expected an object, got {type(raw).__name__}")
        return result

    result = ExtractionResult(dict(raw))
    record: Dict[str, Any] = result.value

    for key in SCORE_LISTS:
        if key in record and record[key] is not None:
            record[key] = _validate_scores(record[key], key, result)

    company = record.get("companyData")
    if isinstance(company, dict):
        company = dict(company)
        addresses = company.get("addresses")
        if isinstance(addresses, dict):
            addresses = dict(addresses)
            for name in ("registered_address", "business_address"):
                if addresses.get(name) is not None:
                    addresses[name] = _validate(Address, addresses[name], f"companyData.addresses.{name}", result)
            company["addresses"] = addresses
        record["companyData"] = company

    if record.get("financialData") is not None:
        record["financialData"] = _validate(FinancialDataSection, record["financialData"], "financialData", result)
    if record.get("eligibility") is not None:
        record["eligibility"] = _validate(Eligibility, record["eligibility"], "eligibility", result)
    if record.get("overallGrade") is not None:
        record["overallGrade"] = _validate(OverallGrade, record["overallGrade"], "overallGrade", result)

    return result


def parse_risk_record(raw: Any) -> Optional[RawRiskRecord]:
    """
    Permissive parse of one raw record. Never raises.
    Returns None for anything that is not a JSON object.
    """
    try:
        return parse_risk_record_result(raw).value
    except Exception as exc:
        logger.warning("parse_risk_record failed: %s", exc)
        return raw if isinstance(raw, dict) else None
