"""
risk_platform/diagnostics.py
============================
Error taxonomy and the result wrapper every extractor reports through.

  - ParseFailure    malformed or unexpected shape; absorbed, default returned
  - RangeViolation  numeric value outside its documented domain; dropped to None
  - MissingData     absent field; not an exception, only lowers confidence
  - BoundaryError   raised by the HTTP layer alone (401 / 404 / 500)
"""
from __future__ import annotations
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Literal, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

IssueKind = Literal["parse_failure", "range_violation", "missing_data"]


# ─── Exceptions ───────────────────────────────────────────────────────────────

class ExtractionError(Exception):
    kind: IssueKind = "parse_failure"


class ParseFailure(ExtractionError):
    kind = "parse_failure"


class RangeViolation(ExtractionError):
    kind = "range_violation"

    def __init__(self, metric: str, value: Any, bounds: tuple):
        super().__init__(f"{metric}={value!r} outside [{bounds[0]}, {bounds[1]}]")
        self.metric = metric
        self.value = value
        self.bounds = bounds


class BoundaryError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class Unauthenticated(BoundaryError):
    status_code = 401


class NoDataFound(BoundaryError):
    status_code = 404


# ─── Result Wrapper ───────────────────────────────────────────────────────────

@dataclass
class ExtractionIssue:
    kind: IssueKind
    context: str
    message: str


@dataclass
class ExtractionResult(Generic[T]):
    value: T
    issues: List[ExtractionIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not any(i.kind != "missing_data" for i in self.issues)

    def record(self, kind: IssueKind, context: str, message: str) -> None:
        """Append an issue; anything worse than missing data is also logged."""
        self.issues.append(ExtractionIssue(kind, context, message))
        if kind != "missing_data":
            logger.warning("%s: %s", context, message)

    def record_error(self, context: str, exc: ExtractionError) -> None:
        self.record(exc.kind, context, str(exc))


def _default(default: Any) -> Any:
    return default() if callable(default) else default


def safe_extract(fn: Callable[[], T], default: Any, context: str) -> T:
    """Run ``fn``; on any exception log a warning and return ``default``."""
    try:
        return fn()
    except Exception as exc:
        logger.warning("%s failed: %s", context, exc)
        return _default(default)


def run_extractor(fn: Callable[[], Any], default: Any, context: str) -> ExtractionResult:
    """Like :func:`safe_extract` but keeps the failure as a recorded issue."""
    try:
        value = fn()
    except ExtractionError as exc:
        result = ExtractionResult(_default(default))
        result.record_error(context, exc)
        return result
    except Exception as exc:
        result = ExtractionResult(_default(default))
        result.record("parse_failure", context, f"{type(exc).__name__}: {exc}")
        return result
    if isinstance(value, ExtractionResult):
        return value
    return ExtractionResult(value)


def never_raises(default: Any, context: Optional[str] = None):
    """
    Decorator form of :func:`safe_extract` for public extractors.
    ``default`` may be a zero-argument factory so mutable defaults stay fresh.
    """
    def decorator(fn):
        label = context or fn.__name__

        @functools.wraps(fn)
        def wrapper(*args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                logger.warning("%s failed: %s", label, exc)
                return _default(default)
        return wrapper
    return decorator
