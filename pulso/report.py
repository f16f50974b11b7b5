"""HTML export of a single question's distribution.

Renders a self-contained page (question header, sample sizes, the
distribution table and the active filters) via Jinja2.  The page is meant to
be printed to PDF or attached as-is.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from pathlib import Path

import jinja2

from pulso.analysis.models import QuestionDistribution
from pulso.analysis.segments import DEFAULT_SCHEMA, SEXO, DistributionFilters, SurveySchema
from pulso.catalog import Municipality, Question

logger = logging.getLogger(__name__)

NO_FILTERS_TEXT = "Sin filtros activos"

_MONTHS_ES = (
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)

# ---------------------------------------------------------------------------
# Jinja2 template environment
# ---------------------------------------------------------------------------

_TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
_jinja_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=True,
    keep_trailing_newline=True,
)


@dataclass(frozen=True)
class ReportRow:
    label: str
    count: int
    percentage: float
    is_ns_nc: bool


def format_date_es(day: date) -> str:
    """``2026-10-19`` -> ``19 de octubre de 2026``."""
    return f"{day.day} de {_MONTHS_ES[day.month - 1]} de {day.year}"


def describe_filters(
    filters: DistributionFilters | None,
    schema: SurveySchema = DEFAULT_SCHEMA,
    municipalities: Iterable[Municipality] = (),
) -> str:
    """Human-readable summary of the active filters.

    Municipality ids are shown by name when *municipalities* knows them.
    Ids the schema does not declare are shown raw rather than raising.
    """
    if filters is None or filters.is_empty():
        return NO_FILTERS_TEXT

    parts: list[str] = []
    if filters.municipio_id is not None:
        names = {m.id: m.name for m in municipalities}
        parts.append(f"Municipio: {names.get(filters.municipio_id, filters.municipio_id)}")
    if filters.sexo_id is not None:
        sexo = dict(SEXO.domain).get(filters.sexo_id, str(filters.sexo_id))
        parts.append(f"Sexo: {sexo}")
    if filters.edad_range_id is not None:
        ages = {r.id: r.label for r in schema.age_ranges}
        parts.append(f"Edad: {ages.get(filters.edad_range_id, filters.edad_range_id)}")
    if filters.escolaridad_group_id is not None:
        groups = {g.id: g.label for g in schema.education_groups}
        parts.append(f"Escolaridad: {groups.get(filters.escolaridad_group_id, filters.escolaridad_group_id)}")
    if filters.calidad_vida_group_id is not None:
        groups = {g.id: g.label for g in schema.quality_of_life_groups}
        parts.append(
            f"Calidad de vida: {groups.get(filters.calidad_vida_group_id, filters.calidad_vida_group_id)}"
        )
    return " · ".join(parts)


def report_rows(
    distribution: QuestionDistribution,
    labels: Mapping[int, str] | None = None,
    ns_nc_label: str = "NS/NC",
) -> list[ReportRow]:
    labels = labels or {}
    rows = []
    for item in distribution.distribution:
        if item.is_ns_nc:
            label = f"{ns_nc_label} ({item.value})"
        else:
            label = labels.get(item.value, str(item.value))  # type: ignore[call-overload]
        rows.append(ReportRow(label, item.count, item.percentage, item.is_ns_nc))
    return rows


def render_distribution_report(
    distribution: QuestionDistribution,
    *,
    question: Question | None = None,
    filters_text: str = NO_FILTERS_TEXT,
    row_limit: int | None = None,
    generated: date | None = None,
    labels: Mapping[int, str] | None = None,
) -> str:
    """Render the distribution as a standalone HTML page."""
    title = distribution.column
    description = None
    if question is not None:
        title = question.text or question.column
        description = question.description

    return _jinja_env.get_template("distribution_report.html").render(
        question_id=distribution.column,
        title=title,
        description=description,
        n=distribution.n,
        n_valid=distribution.n_valid,
        truncated=distribution.truncated,
        row_limit=row_limit,
        rows=report_rows(distribution, labels),
        filters_text=filters_text,
        NO_FILTERS_TEXT=NO_FILTERS_TEXT,
        generated=format_date_es(generated or date.today()),
    )


def write_distribution_report(html: str, output_dir: Path, column: str) -> Path:
    """Write *html* to ``<output_dir>/reports/<column>.html`` and return the path."""
    report_dir = output_dir / "reports"
    report_dir.mkdir(parents=True, exist_ok=True)
    path = report_dir / f"{column}.html"
    path.write_text(html, encoding="utf-8")
    logger.info("Wrote report %s", path)
    return path
