"""Distribution API endpoints.

- ``GET /api/distribution/{column}``: percentages for one question column
- ``GET /api/distribution/{column}/grouped``: the same, split by a
  grouping dimension (``sexo`` by default)
- ``GET /api/distribution/{column}/chart``: chart-ready data, shaped by the
  question's catalog entry (yes/no split, range bars or per-code bars)

All three take the demographic filters as query parameters.  The body always
carries the outcome status; the HTTP status mirrors it: 200 for ``ok`` and
``no_data``, 422 for filters the survey does not declare, 502 when the store
could not be reached.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Path, Query, Request, Response
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from pulso.analysis.chart import ChartKind, chart_for_question
from pulso.analysis.distribution import DistributionAggregator
from pulso.analysis.models import Outcome, OutcomeStatus
from pulso.analysis.segments import DistributionFilters

router = APIRouter(prefix="/api")

# Respondent-table columns are plain identifiers (Q_31, Q_2, ...)
COLUMN_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class CamelModel(BaseModel):
    """Serialises snake_case fields under camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DistributionItemResponse(CamelModel):
    value: int | float
    count: int
    percentage: float
    is_ns_nc: bool


class QuestionDistributionResponse(CamelModel):
    question_id: int
    column: str
    n: int
    n_valid: int
    distribution: list[DistributionItemResponse]
    truncated: bool = False


class GroupResponse(CamelModel):
    key: dict[str, str]
    n: int
    n_valid: int
    distribution: list[DistributionItemResponse]


class GroupedDistributionResponse(CamelModel):
    question_id: int
    column: str
    group_by: list[str]
    groups: list[GroupResponse]
    truncated: bool = False


class DistributionOutcomeResponse(CamelModel):
    status: OutcomeStatus
    result: QuestionDistributionResponse | None = None
    error: str | None = None
    retryable: bool = False


class GroupedOutcomeResponse(CamelModel):
    status: OutcomeStatus
    result: GroupedDistributionResponse | None = None
    error: str | None = None
    retryable: bool = False


class BarResponse(CamelModel):
    label: str
    value: float


class QuestionChartResponse(CamelModel):
    question_id: int
    column: str
    kind: ChartKind
    data: list[BarResponse]
    n: int
    n_valid: int
    mean: float | None = None
    truncated: bool = False


class ChartOutcomeResponse(CamelModel):
    status: OutcomeStatus
    result: QuestionChartResponse | None = None
    error: str | None = None
    retryable: bool = False


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def filters_from_query(
    municipio: int | None = Query(default=None, description="Municipality id (Q_94)"),
    sexo: int | None = Query(default=None, description="1 Hombre, 2 Mujer (Q_74)"),
    edad: int | None = Query(default=None, description="Age range id 1-4 (Q_75)"),
    escolaridad: int | None = Query(default=None, description="Education group id 1-3 (Q_76)"),
    calidad_vida: int | None = Query(default=None, description="Quality-of-life group id 1-3 (Q_2)"),
) -> DistributionFilters:
    """Demographic filters from query parameters."""
    return DistributionFilters(
        municipio_id=municipio,
        sexo_id=sexo,
        edad_range_id=edad,
        escolaridad_group_id=escolaridad,
        calidad_vida_group_id=calidad_vida,
    )


def _get_aggregator(request: Request) -> DistributionAggregator:
    return request.app.state.aggregator


def outcome_status_code(outcome: Outcome) -> int:
    """HTTP status for an aggregation outcome."""
    if outcome.status is not OutcomeStatus.FAILED:
        return 200
    return 502 if outcome.retryable else 422


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/distribution/{column}", response_model=DistributionOutcomeResponse)
def get_distribution(
    request: Request,
    response: Response,
    column: str = Path(pattern=COLUMN_PATTERN),
    question_id: int = Query(default=0, alias="questionId"),
    filters: DistributionFilters = Depends(filters_from_query),
) -> DistributionOutcomeResponse:
    """Percentage distribution of *column* for the filtered respondents."""
    outcome = _get_aggregator(request).compute_distribution(question_id, column, filters)
    response.status_code = outcome_status_code(outcome)
    return DistributionOutcomeResponse.model_validate(outcome.to_dict())


@router.get("/distribution/{column}/grouped", response_model=GroupedOutcomeResponse)
def get_grouped_distribution(
    request: Request,
    response: Response,
    column: str = Path(pattern=COLUMN_PATTERN),
    question_id: int = Query(default=0, alias="questionId"),
    group_by: str = Query(default="sexo", alias="groupBy"),
    filters: DistributionFilters = Depends(filters_from_query),
) -> GroupedOutcomeResponse:
    """Distribution of *column* split by *group_by*.  A filter on the grouping dimension is ignored."""
    outcome = _get_aggregator(request).compute_grouped_distribution(
        question_id, column, group_by, filters,
    )
    response.status_code = outcome_status_code(outcome)
    return GroupedOutcomeResponse.model_validate(outcome.to_dict())


@router.get("/distribution/{column}/chart", response_model=ChartOutcomeResponse)
def get_distribution_chart(
    request: Request,
    response: Response,
    column: str = Path(pattern=COLUMN_PATTERN),
    question_id: int = Query(default=0, alias="questionId"),
    include_ns_nc: bool = Query(default=False, alias="includeNsNc"),
    ns_nc_label: str = Query(default="NS/NC", alias="nsNcLabel", max_length=40),
    filters: DistributionFilters = Depends(filters_from_query),
) -> ChartOutcomeResponse:
    """Chart data for *column*, using the adapter its catalog entry calls for."""
    outcome = chart_for_question(
        _get_aggregator(request),
        request.app.state.catalog,
        question_id,
        column,
        filters,
        include_ns_nc=include_ns_nc,
        ns_nc_label=ns_nc_label,
    )
    response.status_code = outcome_status_code(outcome)
    return ChartOutcomeResponse.model_validate(outcome.to_dict())
