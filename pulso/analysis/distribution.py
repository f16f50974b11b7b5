"""Distribution aggregator: question + filters in, percentages out.

Pipeline for one call:

1. resolve filters into server predicates and client-only row filters;
2. fetch the minimal projection from the store, capped at ``row_limit`` rows;
3. drop rows that fail the client-only filters;
4. tally the target column (and partition by a grouping dimension if asked);
5. compute percentages over the non-NS/NC subset, sorted by value.

The row-level functions (``distribution_from_rows`` and
``grouped_distribution_from_rows``) are pure; ``DistributionAggregator``
wraps them with the store fetch and converts every failure into an
``Outcome`` so nothing escapes to the presentation layer.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from pulso.analysis.models import (
    GroupedDistributionItem,
    GroupedQuestionDistribution,
    Outcome,
    QuestionDistribution,
)
from pulso.analysis.segments import (
    DEFAULT_SCHEMA,
    DistributionFilters,
    FilterPlan,
    GroupingDimension,
    SurveySchema,
    UnknownSegmentError,
    plan_filters,
    projection,
)
from pulso.analysis.tally import partition, summarise, tally
from pulso.config import DEFAULT_ROW_LIMIT, PulsoSettings
from pulso.store import Predicate, Row, RowQuery, RowStore, StoreError

logger = logging.getLogger(__name__)


def distribution_from_rows(
    question_id: int,
    column: str,
    rows: Sequence[Mapping[str, Any]],
    ns_nc_values: Collection[int],
    *,
    truncated: bool = False,
) -> QuestionDistribution | None:
    """Build a ``QuestionDistribution`` from already-filtered rows.

    Returns None when no row carries a numeric value for *column*.
    """
    summary = summarise(tally(rows, column), ns_nc_values)
    if summary.n == 0:
        return None
    return QuestionDistribution(
        question_id=question_id,
        column=column,
        n=summary.n,
        n_valid=summary.n_valid,
        distribution=tuple(summary.items),
        truncated=truncated,
    )


def grouped_distribution_from_rows(
    question_id: int,
    column: str,
    rows: Sequence[Mapping[str, Any]],
    dimension: GroupingDimension,
    ns_nc_values: Collection[int],
    *,
    truncated: bool = False,
) -> GroupedQuestionDistribution:
    """Partition rows by *dimension* and summarise each partition.

    One group per declared code of the dimension, in declared order, even
    when a partition is empty (``n = 0``, no buckets).
    """
    buckets = partition(rows, dimension.column, dimension.codes)
    groups = []
    for code, label in dimension.domain:
        summary = summarise(tally(buckets[code], column), ns_nc_values)
        groups.append(
            GroupedDistributionItem(
                key={dimension.name: label},
                n=summary.n,
                n_valid=summary.n_valid,
                distribution=tuple(summary.items),
            )
        )
    return GroupedQuestionDistribution(
        question_id=question_id,
        column=column,
        group_by=(dimension.name,),
        groups=tuple(groups),
        truncated=truncated,
    )


class DistributionAggregator:
    """Fetches survey rows and turns them into distributions.

    Holds no state between calls beyond its configuration; every call does
    its own fetch.
    """

    def __init__(
        self,
        store: RowStore,
        *,
        table: str = "encuestalol",
        schema: SurveySchema = DEFAULT_SCHEMA,
        row_limit: int = DEFAULT_ROW_LIMIT,
    ) -> None:
        if row_limit < 1:
            raise ValueError(f"row_limit must be positive, got {row_limit}")
        self.store = store
        self.table = table
        self.schema = schema
        self.row_limit = row_limit

    @classmethod
    def from_settings(cls, store: RowStore, settings: PulsoSettings) -> DistributionAggregator:
        """Aggregator wired to the configured table, sentinels and row cap."""
        return cls(
            store,
            table=settings.survey_table,
            schema=DEFAULT_SCHEMA.with_ns_nc(settings.ns_nc_values),
            row_limit=settings.row_limit,
        )

    def compute_distribution(
        self,
        question_id: int,
        column: str,
        filters: DistributionFilters | None = None,
    ) -> Outcome[QuestionDistribution]:
        """Distribution of *column* over respondents matching *filters*."""
        try:
            plan = plan_filters(filters, self.schema)
        except UnknownSegmentError as exc:
            logger.warning("Rejected filters for %s: %s", column, exc)
            return Outcome.failed(str(exc), retryable=False)

        try:
            rows, truncated = self._fetch(projection(column, plan), plan.server)
        except StoreError as exc:
            logger.error("Fetching distribution for %s failed: %s", column, exc)
            return Outcome.failed(str(exc), retryable=True)

        rows = plan.apply_client(rows)
        if not rows:
            logger.info("No rows for %s after filtering", column)
            return Outcome.no_data()

        result = distribution_from_rows(
            question_id, column, rows, self.schema.ns_nc_values, truncated=truncated,
        )
        if result is None:
            logger.info("No numeric responses for %s", column)
            return Outcome.no_data()
        return Outcome.ok(result)

    def compute_grouped_distribution(
        self,
        question_id: int,
        column: str,
        group_by: str = "sexo",
        filters: DistributionFilters | None = None,
    ) -> Outcome[GroupedQuestionDistribution]:
        """Distribution of *column* split by the *group_by* dimension.

        A filter on the grouping dimension itself is ignored; grouping
        already covers it.
        """
        try:
            dimension = self.schema.dimension(group_by)
            if filters is not None:
                narrowed = filters.without_dimension(dimension)
                if narrowed != filters:
                    logger.debug("Dropping %s filter: grouping by %s", dimension.name, dimension.name)
                filters = narrowed
            plan = plan_filters(filters, self.schema)
        except UnknownSegmentError as exc:
            logger.warning("Rejected grouping for %s: %s", column, exc)
            return Outcome.failed(str(exc), retryable=False)

        # Constrain the grouping column to its valid domain
        domain = (
            Predicate(dimension.column, "gte", min(dimension.codes)),
            Predicate(dimension.column, "lte", max(dimension.codes)),
        )
        try:
            rows, truncated = self._fetch(
                projection(column, plan, dimension.column), plan.server + domain,
            )
        except StoreError as exc:
            logger.error("Fetching grouped distribution for %s failed: %s", column, exc)
            return Outcome.failed(str(exc), retryable=True)

        rows = plan.apply_client(rows)
        if not rows:
            logger.info("No rows for %s by %s after filtering", column, dimension.name)
            return Outcome.no_data()

        return Outcome.ok(
            grouped_distribution_from_rows(
                question_id, column, rows, dimension, self.schema.ns_nc_values,
                truncated=truncated,
            )
        )

    def fetch_filtered_rows(
        self,
        columns: tuple[str, ...],
        filters: DistributionFilters | None = None,
    ) -> tuple[list[Row], bool]:
        """Fetch *columns* for respondents matching *filters*, client filters applied.

        Lower-level than the ``compute_*`` methods: raises ``StoreError`` and
        ``UnknownSegmentError`` instead of wrapping them in an ``Outcome``.
        """
        plan: FilterPlan = plan_filters(filters, self.schema)
        rows, truncated = self._fetch(projection(columns[0], plan, *columns[1:]), plan.server)
        return plan.apply_client(rows), truncated

    def _fetch(
        self,
        columns: tuple[str, ...],
        predicates: tuple[Predicate, ...],
    ) -> tuple[list[Row], bool]:
        """Run one capped fetch.  Returns ``(rows, truncated)``."""
        query = RowQuery(
            table=self.table,
            columns=columns,
            predicates=predicates,
            limit=self.row_limit,
        )
        rows = self.store.fetch_rows(query)
        truncated = len(rows) >= self.row_limit
        if truncated:
            logger.warning(
                "Row cap reached (%d rows) for %s; results may undercount",
                self.row_limit, ",".join(columns),
            )
        return rows, truncated
