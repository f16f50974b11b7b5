"""Category dashboards: a fixed set of charts per survey theme.

Each category lists chart specs.  Two kinds of computation:

- ``DISTRIBUTION`` / ``BINARY_COUNT``: respondent counts per answer code,
  ascending by code, with optional human-readable labels;
- ``AVERAGE_BY_MUNI``: mean of a 1-5 rating per municipality, highest first.

Charts are computed independently: one failing chart is reported on that
chart and does not sink the rest of the dashboard.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pulso.analysis.distribution import DistributionAggregator
from pulso.analysis.models import OutcomeStatus
from pulso.analysis.segments import DistributionFilters, UnknownSegmentError
from pulso.analysis.tally import column_value, tally
from pulso.catalog import Municipality, QuestionCatalog
from pulso.store import StoreError

logger = logging.getLogger(__name__)

# Ratings outside this range are noise for averages
RATING_MIN = 1
RATING_MAX = 5


class ChartLogic(str, Enum):
    DISTRIBUTION = "DISTRIBUTION"
    BINARY_COUNT = "BINARY_COUNT"
    AVERAGE_BY_MUNI = "AVERAGE_BY_MUNI"


class UnknownCategoryError(LookupError):
    """No dashboard is defined for the requested category."""


@dataclass(frozen=True)
class ChartSpec:
    id: str
    title: str
    chart_type: str  # "PIE", "BAR", "DONUT"
    logic: ChartLogic
    column: str
    labels: Mapping[int, str] = field(default_factory=dict)


DASHBOARDS: dict[str, tuple[ChartSpec, ...]] = {
    "economia": (
        ChartSpec(
            id="autos_distribucion",
            title="Automóviles por Hogar",
            chart_type="PIE",
            logic=ChartLogic.DISTRIBUTION,
            column="Q_87",
            labels={0: "0 Autos", 1: "1 Auto", 2: "2 Autos", 3: "3+ Autos"},
        ),
        ChartSpec(
            id="riqueza_focos",
            title="Nivel Socioeconómico (Focos)",
            chart_type="BAR",
            logic=ChartLogic.DISTRIBUTION,
            column="Q_86",
            labels={1: "0-5", 2: "6-10", 3: "11-15", 4: "16-20", 5: "21+"},
        ),
    ),
    "bienestar": (
        ChartSpec(
            id="calidad_vida_promedio",
            title="Promedio Calidad de Vida (1-5)",
            chart_type="BAR",
            logic=ChartLogic.AVERAGE_BY_MUNI,
            column="Q_2",
        ),
        ChartSpec(
            id="felicidad_promedio",
            title="Promedio Felicidad (1-5)",
            chart_type="BAR",
            logic=ChartLogic.AVERAGE_BY_MUNI,
            column="Q_3",
        ),
    ),
    "conectividad": (
        ChartSpec(
            id="internet_acceso",
            title="Acceso a Internet",
            chart_type="DONUT",
            logic=ChartLogic.BINARY_COUNT,
            column="Q_88",
            labels={1: "Sí", 2: "No"},
        ),
    ),
}


@dataclass(frozen=True)
class ChartPoint:
    label: str
    value: float


@dataclass(frozen=True)
class DashboardChart:
    id: str
    title: str
    chart_type: str
    status: OutcomeStatus
    data: tuple[ChartPoint, ...] = ()
    error: str | None = None
    truncated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.chart_type,
            "status": self.status.value,
            "data": [{"label": p.label, "value": p.value} for p in self.data],
            "error": self.error,
            "truncated": self.truncated,
        }


@dataclass(frozen=True)
class Dashboard:
    category: str
    charts: tuple[DashboardChart, ...]

    def to_dict(self) -> dict[str, Any]:
        return {"category": self.category, "charts": [c.to_dict() for c in self.charts]}


def value_counts(rows: Iterable[Mapping[str, Any]], column: str, labels: Mapping[int, str]) -> list[ChartPoint]:
    """Respondent count per code, ascending by code, nulls excluded."""
    counts = tally(rows, column)
    return [
        ChartPoint(label=labels.get(value, str(value)), value=float(counts[value]))  # type: ignore[call-overload]
        for value in sorted(counts)
    ]


def average_by_municipality(
    rows: Iterable[Mapping[str, Any]],
    column: str,
    municipio_column: str,
    municipalities: Iterable[Municipality],
) -> list[ChartPoint]:
    """Mean 1-5 rating per named municipality, highest first.

    Rows with ratings outside 1-5 or with a municipality id that has no name
    are left out.
    """
    names = {m.id: m.name for m in municipalities}
    sums: dict[str, float] = defaultdict(float)
    counts: dict[str, int] = defaultdict(int)
    for row in rows:
        rating = column_value(row, column)
        muni = column_value(row, municipio_column)
        if rating is None or muni is None or not RATING_MIN <= rating <= RATING_MAX:
            continue
        name = names.get(muni)  # type: ignore[call-overload]
        if name is None:
            continue
        sums[name] += rating
        counts[name] += 1
    points = [ChartPoint(label=name, value=sums[name] / counts[name]) for name in sums]
    points.sort(key=lambda p: (-p.value, p.label))
    return points


def build_dashboard(
    category: str,
    aggregator: DistributionAggregator,
    catalog: QuestionCatalog | None = None,
    filters: DistributionFilters | None = None,
) -> Dashboard:
    """Compute every chart of *category*.

    *catalog* supplies municipality names for the average-by-municipality
    charts; it is only queried when the category has one.

    Raises ``UnknownCategoryError`` for a category with no dashboard.
    """
    specs = DASHBOARDS.get(category)
    if specs is None:
        raise UnknownCategoryError(f"unknown dashboard category: {category}")
    names = _MunicipalityNames(catalog)
    charts = tuple(_build_chart(spec, aggregator, names, filters) for spec in specs)
    return Dashboard(category=category, charts=charts)


class _MunicipalityNames:
    """Loads the municipality table at most once per dashboard."""

    def __init__(self, catalog: QuestionCatalog | None) -> None:
        self._catalog = catalog
        self._loaded: list[Municipality] | None = None

    def get(self) -> list[Municipality]:
        if self._loaded is None:
            self._loaded = self._catalog.municipalities() if self._catalog else []
        return self._loaded


def _build_chart(
    spec: ChartSpec,
    aggregator: DistributionAggregator,
    names: _MunicipalityNames,
    filters: DistributionFilters | None,
) -> DashboardChart:
    municipio_column = aggregator.schema.municipio_column
    by_muni = spec.logic is ChartLogic.AVERAGE_BY_MUNI
    columns = (spec.column, municipio_column) if by_muni else (spec.column,)

    try:
        rows, truncated = aggregator.fetch_filtered_rows(columns, filters)
        municipalities = names.get() if by_muni else []
    except StoreError as exc:
        logger.error("Dashboard chart %s failed: %s", spec.id, exc)
        return _failed(spec, str(exc))
    except UnknownSegmentError as exc:
        return _failed(spec, str(exc))

    if by_muni:
        data = average_by_municipality(rows, spec.column, municipio_column, municipalities)
    else:
        data = value_counts(rows, spec.column, spec.labels)

    status = OutcomeStatus.OK if data else OutcomeStatus.NO_DATA
    return DashboardChart(
        id=spec.id,
        title=spec.title,
        chart_type=spec.chart_type,
        status=status,
        data=tuple(data),
        truncated=truncated,
    )


def _failed(spec: ChartSpec, error: str) -> DashboardChart:
    return DashboardChart(
        id=spec.id,
        title=spec.title,
        chart_type=spec.chart_type,
        status=OutcomeStatus.FAILED,
        error=error,
    )
