"""Low-level tally and percentage functions.

Pure arithmetic over already-fetched rows, free of I/O and logging.
Higher-level code (the aggregator, chart adapters) calls these.
"""

from __future__ import annotations

import math
from collections import Counter
from collections.abc import Collection, Iterable, Mapping, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from pulso.analysis.models import DistributionItem, TallySummary

_ONE_DECIMAL = Decimal("0.1")


def column_value(row: Mapping[str, Any], column: str) -> int | float | None:
    """Numeric value of *column* in *row*, or None.

    Null, text, booleans and non-finite floats all read as None.  Integral
    floats are normalised to int so ``3`` and ``3.0`` share a bucket.
    """
    value = row.get(column)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    return None


def round1(x: float) -> float:
    """Round to one decimal, halves away from zero.

    Works on the exact binary value of *x*, so ``12.25`` becomes ``12.3``
    rather than banker's-rounding to ``12.2``.
    """
    return float(Decimal(x).quantize(_ONE_DECIMAL, rounding=ROUND_HALF_UP))


def percentage(count: int, n_valid: int) -> float:
    """``round1(100 * count / n_valid)``; 0 when there is no denominator."""
    if n_valid <= 0:
        return 0.0
    return round1(100 * count / n_valid)


def tally(rows: Iterable[Mapping[str, Any]], column: str) -> Counter[int | float]:
    """Count occurrences of each numeric value of *column*.

    Rows whose value is null or non-numeric are skipped entirely.
    """
    counts: Counter[int | float] = Counter()
    for row in rows:
        value = column_value(row, column)
        if value is not None:
            counts[value] += 1
    return counts


def summarise(counts: Mapping[int | float, int], ns_nc_values: Collection[int]) -> TallySummary:
    """Turn a tally into totals plus percentage-annotated buckets.

    ``n`` counts everything; ``n_valid`` leaves NS/NC codes out and is the
    denominator for every non-NS/NC percentage.  Buckets come back sorted
    ascending by value.
    """
    n = sum(counts.values())
    n_valid = sum(c for v, c in counts.items() if v not in ns_nc_values)
    items = []
    for value in sorted(counts):
        is_ns_nc = value in ns_nc_values
        items.append(
            DistributionItem(
                value=value,
                count=counts[value],
                percentage=0.0 if is_ns_nc else percentage(counts[value], n_valid),
                is_ns_nc=is_ns_nc,
            )
        )
    return TallySummary(n=n, n_valid=n_valid, items=items)


def partition(
    rows: Iterable[Mapping[str, Any]],
    column: str,
    codes: Sequence[int],
) -> dict[int, list[Mapping[str, Any]]]:
    """Split rows by *column* into one bucket per declared code.

    Every code gets a bucket, empty or not.  Rows whose value is outside the
    declared codes are dropped.
    """
    buckets: dict[int, list[Mapping[str, Any]]] = {code: [] for code in codes}
    for row in rows:
        value = column_value(row, column)
        if value is not None and value in buckets:
            buckets[value].append(row)  # type: ignore[index]
    return buckets


def mean_value(items: Iterable[DistributionItem]) -> float | None:
    """Count-weighted mean of the non-NS/NC values, or None if there are none."""
    total = 0.0
    n = 0
    for item in items:
        if item.is_ns_nc:
            continue
        total += item.value * item.count
        n += item.count
    if n == 0:
        return None
    return total / n
