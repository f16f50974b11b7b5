"""Command-line interface for Pulso."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from pulso import __version__
from pulso.analysis.distribution import DistributionAggregator
from pulso.analysis.models import DistributionItem, Outcome, OutcomeStatus
from pulso.analysis.segments import DistributionFilters
from pulso.catalog import Municipality, Question, QuestionCatalog
from pulso.config import PulsoSettings, load_settings
from pulso.store import MemoryStore, RestStore, StoreError, build_store

app = typer.Typer(
    name="pulso",
    help="Response distributions for citizen-perception surveys.",
    no_args_is_help=True,
)
console = Console(width=min(100, Console().width))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"pulso {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version", "-V",
            help="Show version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Response distributions for citizen-perception surveys."""


# ---------------------------------------------------------------------------
# Shared options
# ---------------------------------------------------------------------------

MunicipioOpt = Annotated[int | None, typer.Option("--municipio", "-m", help="Municipality id (Q_94).")]
SexoOpt = Annotated[int | None, typer.Option("--sexo", "-s", help="1 Hombre, 2 Mujer (Q_74).")]
EdadOpt = Annotated[int | None, typer.Option("--edad", "-e", help="Age range id: 1 18-29, 2 30-44, 3 45-59, 4 60+.")]
EscolaridadOpt = Annotated[
    int | None, typer.Option("--escolaridad", help="Education group id: 1 Sec<, 2 Prep, 3 Univ+.")
]
CalidadVidaOpt = Annotated[
    int | None, typer.Option("--calidad-vida", help="Quality-of-life group id: 1 Baja, 2 Media, 3 Alta.")
]
RowsOpt = Annotated[
    Path | None,
    typer.Option("--rows", help="Read rows from a JSON file instead of the REST store.", exists=True, dir_okay=False),
]
JsonOpt = Annotated[bool, typer.Option("--json", help="Print machine-readable JSON.")]
VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Enable verbose logging.")]
QuestionIdOpt = Annotated[int, typer.Option("--question-id", help="Numeric question id echoed in the result.")]


def _filters(
    municipio: int | None,
    sexo: int | None,
    edad: int | None,
    escolaridad: int | None,
    calidad_vida: int | None,
) -> DistributionFilters:
    return DistributionFilters(
        municipio_id=municipio,
        sexo_id=sexo,
        edad_range_id=edad,
        escolaridad_group_id=escolaridad,
        calidad_vida_group_id=calidad_vida,
    )


def _setup(rows: Path | None, verbose: bool) -> tuple[PulsoSettings, RestStore | MemoryStore]:
    """Configure logging and open the row store.

    Exits 1 on invalid settings or an unusable store.  Callers close the
    returned store.
    """
    from pulso.logging import setup_logging

    try:
        settings = load_settings()
    except ValidationError as exc:
        console.print(f"[red]Invalid settings:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc
    setup_logging(settings, verbose=verbose)
    try:
        store = build_store(settings, rows)
    except StoreError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc
    return settings, store


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


def _finish(outcome: Outcome, *, quiet: bool = False) -> None:
    """Report no-data and failure outcomes; exit 1 on failure."""
    if quiet:
        if outcome.status is OutcomeStatus.FAILED:
            raise typer.Exit(1)
        return
    if outcome.status is OutcomeStatus.NO_DATA:
        console.print("[yellow]No data for these filters.[/yellow]")
    elif outcome.status is OutcomeStatus.FAILED:
        hint = " (store unreachable; try again)" if outcome.retryable else ""
        console.print(f"[red]Error:[/red] {escape(outcome.error or '')}{hint}")
        raise typer.Exit(1)


def _distribution_table(items: tuple[DistributionItem, ...], title: str) -> Table:
    table = Table(title=title)
    table.add_column("Value", justify="right")
    table.add_column("Count", justify="right")
    table.add_column("%", justify="right")
    for item in items:
        pct = "NS/NC" if item.is_ns_nc else f"{item.percentage:.1f}"
        table.add_row(str(item.value), str(item.count), pct)
    return table


def _truncation_notice(truncated: bool, row_limit: int) -> None:
    if truncated:
        console.print(f"[yellow]Row cap of {row_limit} reached; counts may be incomplete.[/yellow]")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command()
def distribution(
    column: Annotated[str, typer.Argument(help="Question column, e.g. Q_31.")],
    question_id: QuestionIdOpt = 0,
    municipio: MunicipioOpt = None,
    sexo: SexoOpt = None,
    edad: EdadOpt = None,
    escolaridad: EscolaridadOpt = None,
    calidad_vida: CalidadVidaOpt = None,
    rows: RowsOpt = None,
    as_json: JsonOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """Percentage distribution of one question for the filtered respondents."""
    settings, store = _setup(rows, verbose)
    with store:
        aggregator = DistributionAggregator.from_settings(store, settings)
        outcome = aggregator.compute_distribution(
            question_id, column, _filters(municipio, sexo, edad, escolaridad, calidad_vida),
        )

    if as_json:
        _echo_json(outcome.to_dict())
    elif outcome.result is not None:
        result = outcome.result
        console.print(_distribution_table(result.distribution, f"{column}  n={result.n}  nValid={result.n_valid}"))
        _truncation_notice(result.truncated, settings.row_limit)
    _finish(outcome, quiet=as_json)


@app.command()
def grouped(
    column: Annotated[str, typer.Argument(help="Question column, e.g. Q_31.")],
    by: Annotated[str, typer.Option("--by", help="Grouping dimension.")] = "sexo",
    question_id: QuestionIdOpt = 0,
    municipio: MunicipioOpt = None,
    sexo: SexoOpt = None,
    edad: EdadOpt = None,
    escolaridad: EscolaridadOpt = None,
    calidad_vida: CalidadVidaOpt = None,
    rows: RowsOpt = None,
    as_json: JsonOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """Distribution of one question split by a demographic dimension."""
    settings, store = _setup(rows, verbose)
    with store:
        aggregator = DistributionAggregator.from_settings(store, settings)
        outcome = aggregator.compute_grouped_distribution(
            question_id, column, by, _filters(municipio, sexo, edad, escolaridad, calidad_vida),
        )

    if as_json:
        _echo_json(outcome.to_dict())
    elif outcome.result is not None:
        result = outcome.result
        for group in result.groups:
            label = ", ".join(f"{k}={v}" for k, v in group.key.items())
            console.print(
                _distribution_table(group.distribution, f"{column} ({label})  n={group.n}  nValid={group.n_valid}")
            )
        _truncation_notice(result.truncated, settings.row_limit)
    _finish(outcome, quiet=as_json)


@app.command()
def chart(
    column: Annotated[str, typer.Argument(help="Question column, e.g. Q_31.")],
    question_id: QuestionIdOpt = 0,
    include_ns_nc: Annotated[
        bool, typer.Option("--include-ns-nc", help="Add NS/NC bars to per-code charts.")
    ] = False,
    ns_nc_label: Annotated[str, typer.Option("--ns-nc-label", help="Label for NS/NC bars.")] = "NS/NC",
    municipio: MunicipioOpt = None,
    sexo: SexoOpt = None,
    edad: EdadOpt = None,
    escolaridad: EscolaridadOpt = None,
    calidad_vida: CalidadVidaOpt = None,
    rows: RowsOpt = None,
    as_json: JsonOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """Chart data for one question, shaped by its catalog entry."""
    from pulso.analysis.chart import chart_for_question

    settings, store = _setup(rows, verbose)
    with store:
        outcome = chart_for_question(
            DistributionAggregator.from_settings(store, settings),
            QuestionCatalog(store, settings),
            question_id,
            column,
            _filters(municipio, sexo, edad, escolaridad, calidad_vida),
            include_ns_nc=include_ns_nc,
            ns_nc_label=ns_nc_label,
        )

    if as_json:
        _echo_json(outcome.to_dict())
    elif outcome.result is not None:
        result = outcome.result
        table = Table(title=f"{column} ({result.kind.value})  n={result.n}  nValid={result.n_valid}")
        table.add_column("Label")
        table.add_column("%", justify="right")
        for bar in result.data:
            table.add_row(bar.label, f"{bar.value:.1f}")
        console.print(table)
        if result.mean is not None:
            console.print(f"Mean: {result.mean:.2f}")
        _truncation_notice(result.truncated, settings.row_limit)
    _finish(outcome, quiet=as_json)


@app.command()
def questions(
    category: Annotated[str | None, typer.Option("--category", "-c", help="Only this category.")] = None,
    rows: RowsOpt = None,
    as_json: JsonOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """List catalog questions."""
    settings, store = _setup(rows, verbose)
    try:
        with store:
            found = QuestionCatalog(store, settings).questions(category)
    except StoreError as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(1) from exc

    if as_json:
        _echo_json([q.to_dict() for q in found])
        return
    if not found:
        console.print("[dim]No questions found.[/dim]")
        return
    table = Table()
    table.add_column("Column")
    table.add_column("Category")
    table.add_column("Text")
    for q in found:
        table.add_row(q.column, q.category, q.text or "")
    console.print(table)


@app.command()
def dashboard(
    category: Annotated[str, typer.Argument(help="Dashboard category, e.g. economia.")],
    municipio: MunicipioOpt = None,
    sexo: SexoOpt = None,
    edad: EdadOpt = None,
    escolaridad: EscolaridadOpt = None,
    calidad_vida: CalidadVidaOpt = None,
    rows: RowsOpt = None,
    as_json: JsonOpt = False,
    verbose: VerboseOpt = False,
) -> None:
    """Every chart of one category dashboard."""
    from pulso.dashboard import DASHBOARDS, UnknownCategoryError, build_dashboard

    settings, store = _setup(rows, verbose)
    try:
        with store:
            result = build_dashboard(
                category,
                DistributionAggregator.from_settings(store, settings),
                QuestionCatalog(store, settings),
                _filters(municipio, sexo, edad, escolaridad, calidad_vida),
            )
    except UnknownCategoryError as exc:
        console.print(f"[red]Unknown category {category!r}.[/red] Known: {', '.join(DASHBOARDS)}")
        raise typer.Exit(1) from exc

    if as_json:
        _echo_json(result.to_dict())
    else:
        for chart_result in result.charts:
            if chart_result.status is OutcomeStatus.FAILED:
                console.print(f"[red]{chart_result.title}: {chart_result.error}[/red]")
                continue
            if chart_result.status is OutcomeStatus.NO_DATA:
                console.print(f"[yellow]{chart_result.title}: no data[/yellow]")
                continue
            table = Table(title=f"{chart_result.title} ({chart_result.chart_type})")
            table.add_column("Label")
            table.add_column("Value", justify="right")
            for point in chart_result.data:
                table.add_row(point.label, f"{point.value:g}")
            console.print(table)

    if any(c.status is OutcomeStatus.FAILED for c in result.charts):
        raise typer.Exit(1)


@app.command()
def report(
    column: Annotated[str, typer.Argument(help="Question column, e.g. Q_31.")],
    question_id: QuestionIdOpt = 0,
    municipio: MunicipioOpt = None,
    sexo: SexoOpt = None,
    edad: EdadOpt = None,
    escolaridad: EscolaridadOpt = None,
    calidad_vida: CalidadVidaOpt = None,
    output_dir: Annotated[
        Path | None, typer.Option("--output", "-o", help="Output directory (default: PULSO_OUTPUT_DIR).")
    ] = None,
    rows: RowsOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Write an HTML report of one question's distribution."""
    from pulso.report import describe_filters, render_distribution_report, write_distribution_report

    settings, store = _setup(rows, verbose)
    filters = _filters(municipio, sexo, edad, escolaridad, calidad_vida)
    with store:
        aggregator = DistributionAggregator.from_settings(store, settings)
        outcome = aggregator.compute_distribution(question_id, column, filters)
        if outcome.result is None:
            _finish(outcome)
            return
        question, municipalities = _catalog_context(QuestionCatalog(store, settings), column, filters)

    html = render_distribution_report(
        outcome.result,
        question=question,
        filters_text=describe_filters(filters, aggregator.schema, municipalities),
        row_limit=settings.row_limit,
    )
    path = write_distribution_report(html, output_dir or settings.output_dir, column)
    console.print(f"Report: [bold cyan]{path}[/bold cyan]")


def _catalog_context(
    catalog: QuestionCatalog,
    column: str,
    filters: DistributionFilters,
) -> tuple[Question | None, list[Municipality]]:
    """Question metadata and municipality names for a report, when the catalog has them."""
    try:
        question = catalog.question(column)
        municipalities = catalog.municipalities() if filters.municipio_id is not None else []
    except StoreError as exc:
        console.print(f"[dim]Catalog unavailable ({exc}); using bare column names.[/dim]")
        return None, []
    return question, municipalities


@app.command()
def serve(
    port: Annotated[int, typer.Option("--port", "-p", help="Port to serve on.")] = 8160,
    host: Annotated[str, typer.Option("--host", help="Interface to bind.")] = "127.0.0.1",
    dev: Annotated[bool, typer.Option("--dev", help="Development mode: auto-reload on Python changes.")] = False,
    rows: RowsOpt = None,
    verbose: VerboseOpt = False,
) -> None:
    """Launch the HTTP API."""
    import uvicorn

    settings, store = _setup(rows, verbose)
    console.print(f"\n  API: [bold cyan]http://{host}:{port}/api/docs[/bold cyan]\n")

    if dev:
        # uvicorn calls create_app() itself on reload and builds its own store
        import os

        store.close()
        if rows is not None:
            os.environ["_PULSO_ROWS_FILE"] = str(rows.resolve())
        uvicorn.run(
            "pulso.server.app:create_app",
            host=host,
            port=port,
            reload=True,
            factory=True,
            log_level="info" if verbose else "warning",
        )
    else:
        from pulso.server.app import create_app

        # The app closes the store on shutdown
        uvicorn.run(
            create_app(settings=settings, store=store),
            host=host,
            port=port,
            log_level="info" if verbose else "warning",
        )
