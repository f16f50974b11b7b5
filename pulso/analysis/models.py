"""Data structures returned by the distribution aggregator.

These are plain dataclasses (not Pydantic); they're built fresh for every
query and never persisted.  ``to_dict()`` produces the camelCase shape the
presentation layer consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar


@dataclass(frozen=True)
class DistributionItem:
    """One response value's bucket."""

    value: int | float
    count: int
    percentage: float  # 0 for NS/NC buckets
    is_ns_nc: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "count": self.count,
            "percentage": self.percentage,
            "isNsNc": self.is_ns_nc,
        }


@dataclass(frozen=True)
class QuestionDistribution:
    """Response distribution for a single question."""

    question_id: int
    column: str
    n: int  # all tallied responses, NS/NC included
    n_valid: int  # percentage denominator, NS/NC excluded
    distribution: tuple[DistributionItem, ...]
    truncated: bool = False  # store hit the row cap

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "column": self.column,
            "n": self.n,
            "nValid": self.n_valid,
            "distribution": [item.to_dict() for item in self.distribution],
            "truncated": self.truncated,
        }


@dataclass(frozen=True)
class GroupedDistributionItem:
    """Distribution for one partition of a grouping dimension."""

    key: dict[str, str]  # e.g. {"sexo": "Hombre"}
    n: int
    n_valid: int
    distribution: tuple[DistributionItem, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": dict(self.key),
            "n": self.n,
            "nValid": self.n_valid,
            "distribution": [item.to_dict() for item in self.distribution],
        }


@dataclass(frozen=True)
class GroupedQuestionDistribution:
    """Per-group distributions, one entry per declared partition."""

    question_id: int
    column: str
    group_by: tuple[str, ...]
    groups: tuple[GroupedDistributionItem, ...]
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "column": self.column,
            "groupBy": list(self.group_by),
            "groups": [g.to_dict() for g in self.groups],
            "truncated": self.truncated,
        }


@dataclass(frozen=True)
class BarDatum:
    """One bar (or pie slice) ready for a chart component."""

    label: str
    value: float  # percentage 0-100

    def to_dict(self) -> dict[str, Any]:
        return {"label": self.label, "value": self.value}


class OutcomeStatus(str, Enum):
    """How an aggregation call ended."""

    OK = "ok"
    NO_DATA = "no_data"
    FAILED = "failed"


T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of an aggregation call: success, no data, or failure.

    ``retryable`` is only meaningful for failures: True when the store could
    not be reached (worth retrying), False when the request itself is invalid.
    """

    status: OutcomeStatus
    result: T | None = None
    error: str | None = None
    retryable: bool = False

    @classmethod
    def ok(cls, result: T) -> Outcome[T]:
        return cls(OutcomeStatus.OK, result=result)

    @classmethod
    def no_data(cls) -> Outcome[T]:
        return cls(OutcomeStatus.NO_DATA)

    @classmethod
    def failed(cls, error: str, *, retryable: bool) -> Outcome[T]:
        return cls(OutcomeStatus.FAILED, error=error, retryable=retryable)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"status": self.status.value}
        to_dict = getattr(self.result, "to_dict", None)
        payload["result"] = to_dict() if callable(to_dict) else None
        if self.status is OutcomeStatus.FAILED:
            payload["error"] = self.error
            payload["retryable"] = self.retryable
        return payload


@dataclass
class TallySummary:
    """Intermediate per-partition tally: totals plus sorted buckets."""

    n: int = 0
    n_valid: int = 0
    items: list[DistributionItem] = field(default_factory=list)
