"""Adapters from distributions to chart-ready data.

Chart components want ``{label, value}`` pairs with percentages; these
functions do that reshaping without touching any rendering library.
``chart_for_question`` picks the adapter from the question's catalog entry.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from pulso.analysis.models import BarDatum, DistributionItem, Outcome, QuestionDistribution
from pulso.analysis.segments import DistributionFilters
from pulso.analysis.tally import mean_value, percentage
from pulso.store import StoreError

if TYPE_CHECKING:
    from pulso.analysis.distribution import DistributionAggregator
    from pulso.catalog import QuestionCatalog

logger = logging.getLogger(__name__)

# Questions whose scale goes above this are drawn as range bars
SCALE_MAX_THRESHOLD = 10

# Upper bound on range bars for wide-scale questions
MAX_RANGE_GROUPS = 4

YES_VALUE = 1
NO_VALUE = 2
YES_LABEL = "Sí"
NO_LABEL = "No"


def distribution_to_bar_data(
    distribution: QuestionDistribution,
    *,
    include_ns_nc: bool = False,
    ns_nc_label: str = "NS/NC",
    labels: Mapping[int, str] | None = None,
) -> list[BarDatum]:
    """One bar per bucket, valued at its percentage.

    NS/NC buckets are dropped unless *include_ns_nc*, in which case they
    carry *ns_nc_label*.  *labels* maps raw codes to display text; unmapped
    codes fall back to the code itself.
    """
    labels = labels or {}
    bars = []
    for item in distribution.distribution:
        if item.is_ns_nc and not include_ns_nc:
            continue
        if item.is_ns_nc:
            label = ns_nc_label
        else:
            label = labels.get(item.value, str(item.value))  # type: ignore[call-overload]
        bars.append(BarDatum(label=label, value=item.percentage))
    return bars


@dataclass(frozen=True)
class YesNoSplit:
    """Slices for a yes/no pie chart."""

    yes_percentage: float
    no_percentage: float
    yes_count: int
    no_count: int

    def slices(self) -> list[BarDatum]:
        """Pie slices with at least one response, yes first."""
        out = []
        if self.yes_count > 0:
            out.append(BarDatum(YES_LABEL, self.yes_percentage))
        if self.no_count > 0:
            out.append(BarDatum(NO_LABEL, self.no_percentage))
        return out


def yes_no_split(distribution: QuestionDistribution) -> YesNoSplit:
    """Yes (1) vs No (2) shares.

    Percentages are relative to yes + no only, so any other substantive
    code a yes/no question picked up does not dilute the pie.
    """
    yes = _count_of(distribution.distribution, YES_VALUE)
    no = _count_of(distribution.distribution, NO_VALUE)
    return YesNoSplit(
        yes_percentage=percentage(yes, yes + no),
        no_percentage=percentage(no, yes + no),
        yes_count=yes,
        no_count=no,
    )


def _count_of(items: tuple[DistributionItem, ...], value: int) -> int:
    for item in items:
        if item.value == value and not item.is_ns_nc:
            return item.count
    return 0


@dataclass(frozen=True)
class RangeBar:
    """A contiguous value range on a wide-scale question."""

    low: int
    high: int
    count: int
    percentage: float

    @property
    def label(self) -> str:
        return str(self.low) if self.low == self.high else f"{self.low}-{self.high}"


def range_bounds(escala_max: int, max_groups: int = MAX_RANGE_GROUPS) -> list[tuple[int, int]]:
    """Split ``1..escala_max`` into at most *max_groups* near-equal ranges.

    Earlier ranges absorb the remainder, so 1..10 in 4 groups is
    ``1-3, 4-6, 7-8, 9-10``.
    """
    if escala_max < 1:
        return []
    groups = min(max_groups, escala_max)
    base, extra = divmod(escala_max, groups)
    bounds = []
    low = 1
    for i in range(groups):
        width = base + (1 if i < extra else 0)
        bounds.append((low, low + width - 1))
        low += width
    return bounds


def range_bars(
    distribution: QuestionDistribution,
    escala_max: int,
    *,
    threshold: int = SCALE_MAX_THRESHOLD,
    max_groups: int = MAX_RANGE_GROUPS,
) -> list[RangeBar] | None:
    """Collapse a wide-scale distribution into a handful of range bars.

    Returns None when the question's scale is within *threshold* (draw one
    bar per value instead).  NS/NC buckets and values outside
    ``1..escala_max`` are left out of every range; percentages are taken
    against the valid-response count, like the per-value bars.
    """
    if escala_max <= threshold:
        return None
    bars = []
    for low, high in range_bounds(escala_max, max_groups):
        count = sum(
            item.count
            for item in distribution.distribution
            if not item.is_ns_nc and low <= item.value <= high
        )
        bars.append(
            RangeBar(low=low, high=high, count=count, percentage=percentage(count, distribution.n_valid))
        )
    return bars


def range_bar_data(bars: list[RangeBar]) -> list[BarDatum]:
    return [BarDatum(label=b.label, value=b.percentage) for b in bars]


def mean_response(distribution: QuestionDistribution) -> float | None:
    """Mean answer over the substantive buckets, or None without any."""
    return mean_value(distribution.distribution)


# ---------------------------------------------------------------------------
# Question charts
# ---------------------------------------------------------------------------


class ChartKind(str, Enum):
    BARS = "bars"
    YES_NO = "yes_no"
    RANGES = "ranges"


@dataclass(frozen=True)
class QuestionChart:
    """Chart-ready data for one question, shaped by its catalog metadata."""

    question_id: int
    column: str
    kind: ChartKind
    data: tuple[BarDatum, ...]
    n: int
    n_valid: int
    mean: float | None = None  # substantive answers only; None for yes/no
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "questionId": self.question_id,
            "column": self.column,
            "kind": self.kind.value,
            "data": [d.to_dict() for d in self.data],
            "n": self.n,
            "nValid": self.n_valid,
            "mean": self.mean,
            "truncated": self.truncated,
        }


def question_chart(
    distribution: QuestionDistribution,
    *,
    is_yes_or_no: bool = False,
    escala_max: int | None = None,
    include_ns_nc: bool = False,
    ns_nc_label: str = "NS/NC",
    labels: Mapping[int, str] | None = None,
) -> QuestionChart:
    """Pick the chart adapter for a question.

    - yes/no questions: ``yes_no_split`` slices;
    - ``escala_max`` above ``SCALE_MAX_THRESHOLD``: range bars;
    - otherwise one bar per answer code.

    *include_ns_nc*, *ns_nc_label* and *labels* only affect per-code bars.
    """
    mean = mean_response(distribution)
    bars = range_bars(distribution, escala_max) if escala_max is not None else None
    if is_yes_or_no:
        kind = ChartKind.YES_NO
        data = yes_no_split(distribution).slices()
        mean = None
    elif bars is not None:
        kind = ChartKind.RANGES
        data = range_bar_data(bars)
    else:
        kind = ChartKind.BARS
        data = distribution_to_bar_data(
            distribution, include_ns_nc=include_ns_nc, ns_nc_label=ns_nc_label, labels=labels,
        )
    return QuestionChart(
        question_id=distribution.question_id,
        column=distribution.column,
        kind=kind,
        data=tuple(data),
        n=distribution.n,
        n_valid=distribution.n_valid,
        mean=mean,
        truncated=distribution.truncated,
    )


def chart_for_question(
    aggregator: DistributionAggregator,
    catalog: QuestionCatalog | None,
    question_id: int,
    column: str,
    filters: DistributionFilters | None = None,
    *,
    include_ns_nc: bool = False,
    ns_nc_label: str = "NS/NC",
) -> Outcome[QuestionChart]:
    """Distribution of *column* drawn the way its catalog entry asks for.

    Non-ok distribution outcomes pass through unchanged.  A column with no
    catalog entry (or no catalog) is drawn as per-code bars; a catalog
    lookup that hits a store error fails the call as retryable.
    """
    outcome = aggregator.compute_distribution(question_id, column, filters)
    if outcome.result is None:
        return Outcome(outcome.status, error=outcome.error, retryable=outcome.retryable)

    try:
        question = catalog.question(column) if catalog is not None else None
    except StoreError as exc:
        logger.error("Question lookup for %s failed: %s", column, exc)
        return Outcome.failed(str(exc), retryable=True)
    if question is None:
        logger.debug("No catalog entry for %s; drawing per-code bars", column)

    return Outcome.ok(
        question_chart(
            outcome.result,
            is_yes_or_no=question.is_yes_or_no if question else False,
            escala_max=question.escala_max if question else None,
            include_ns_nc=include_ns_nc,
            ns_nc_label=ns_nc_label,
        )
    )
