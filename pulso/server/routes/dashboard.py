"""Category dashboard endpoint: every chart of one survey theme."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from pulso.analysis.models import OutcomeStatus
from pulso.analysis.segments import DistributionFilters, UnknownSegmentError, plan_filters
from pulso.dashboard import DASHBOARDS, UnknownCategoryError, build_dashboard
from pulso.server.routes.distribution import CamelModel, filters_from_query

router = APIRouter(prefix="/api")


class ChartPointResponse(CamelModel):
    label: str
    value: float


class DashboardChartResponse(CamelModel):
    id: str
    title: str
    type: str
    status: OutcomeStatus
    data: list[ChartPointResponse]
    error: str | None = None
    truncated: bool = False


class DashboardResponse(CamelModel):
    category: str
    charts: list[DashboardChartResponse]


@router.get("/dashboard", response_model=list[str])
def list_dashboards() -> list[str]:
    """Categories that have a dashboard."""
    return list(DASHBOARDS)


@router.get("/dashboard/{category}", response_model=DashboardResponse)
def get_dashboard(
    category: str,
    request: Request,
    filters: DistributionFilters = Depends(filters_from_query),
) -> DashboardResponse:
    """Charts for *category*; a failing chart is reported on that chart alone."""
    aggregator = request.app.state.aggregator
    try:
        plan_filters(filters, aggregator.schema)
    except UnknownSegmentError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    try:
        dashboard = build_dashboard(category, aggregator, request.app.state.catalog, filters)
    except UnknownCategoryError as exc:
        raise HTTPException(status_code=404, detail=f"No dashboard for category {category!r}") from exc
    return DashboardResponse.model_validate(dashboard.to_dict())
