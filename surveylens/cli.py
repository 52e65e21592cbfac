"""Command-line interface for surveylens."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, TypeVar

import typer
from pydantic import TypeAdapter, ValidationError
from rich.console import Console
from rich.table import Table

from surveylens import __version__
from surveylens.config import load_settings
from surveylens.models import (
    ComparisonSet,
    Dataset,
    LegacyCohortSpec,
    ProductBucket,
    QuestionType,
    SegmentCohortSpec,
    SegmentDef,
    SegmentMode,
    SortOrder,
)

if TYPE_CHECKING:
    from surveylens.analysis.models import SeriesResult

T = TypeVar("T")

app = typer.Typer(
    name="surveylens",
    help="Survey response aggregation and cohort comparison engine.",
    no_args_is_help=True,
)
console = Console(width=min(100, Console().width))


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"surveylens {__version__}")
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
    """Survey response aggregation and cohort comparison engine."""


# ---------------------------------------------------------------------------
# Input helpers
# ---------------------------------------------------------------------------


def _read_json(path: Path, what: str) -> object:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        console.print(f"[red]Cannot read {what}:[/red] {path} ({exc.strerror or exc})")
        raise typer.Exit(1)
    except json.JSONDecodeError as exc:
        console.print(f"[red]Invalid JSON in {what}:[/red] {path} ({exc})")
        raise typer.Exit(1)


def _validate(adapter: TypeAdapter[T], payload: object, what: str) -> T:
    try:
        return adapter.validate_python(payload)
    except ValidationError as exc:
        console.print(f"[red]Invalid {what}:[/red]")
        for err in exc.errors():
            loc = ".".join(str(p) for p in err["loc"]) or "(root)"
            console.print(f"  [red]{loc}[/red]: {err['msg']}")
        raise typer.Exit(1)


def _parse_segment(raw: str) -> SegmentDef:
    column, sep, value = raw.partition("=")
    if not sep or not column.strip():
        console.print(f"[red]Segment must look like COLUMN=VALUE, got {raw!r}[/red]")
        raise typer.Exit(1)
    return SegmentDef(column=column.strip(), value=value.strip())


def _fmt(value: float | None, *, percent: bool) -> str:
    if value is None:
        return "[dim]n/a[/dim]"
    return f"{value:.1f}%" if percent else f"{value:.2f}"


def _print_table(title: str, result: SeriesResult, *, percent: bool) -> None:
    table = Table(title=title, title_justify="left", show_lines=False)
    table.add_column("Option", style="bold")
    for group in result.groups:
        table.add_column(group.label, justify="right")
    table.add_column("Sig", justify="center")

    for point in result.data:
        name = point.option_display
        if not point.is_top_n_default:
            name = f"[dim]{name}[/dim]"
        cells = [_fmt(point.values.get(g.key), percent=percent) for g in result.groups]
        sig = "[green]*[/green]" if point.any_significant else ""
        table.add_row(name, *cells, sig)

    console.print(table)


# ---------------------------------------------------------------------------
# Series command
# ---------------------------------------------------------------------------


@app.command()
def series(
    dataset_path: Annotated[
        Path,
        typer.Argument(
            help="Structured dataset JSON (rows, columns, questions).",
            exists=True,
            dir_okay=False,
            resolve_path=True,
        ),
    ],
    question: Annotated[
        str,
        typer.Option("--question", "-q", help="Question id to chart."),
    ],
    segment: Annotated[
        list[str] | None,
        typer.Option("--segment", "-s", help="Cohort as COLUMN=VALUE (repeatable). Use Overall for all rows."),
    ] = None,
    mode: Annotated[
        SegmentMode,
        typer.Option("--mode", "-m", help="compare: one cohort per segment; filter: segments narrow one cohort."),
    ] = SegmentMode.COMPARE,
    segment_column: Annotated[
        str | None,
        typer.Option("--segment-column", help="Legacy cohorts: one column plus --group values."),
    ] = None,
    group: Annotated[
        list[str] | None,
        typer.Option("--group", "-g", help="Legacy cohort value in --segment-column (repeatable)."),
    ] = None,
    sets_path: Annotated[
        Path | None,
        typer.Option("--sets", help="JSON list of comparison sets (id, label, filters).", exists=True, dir_okay=False),
    ] = None,
    buckets_path: Annotated[
        Path | None,
        typer.Option("--buckets", help="JSON list of product buckets (id, label, products).", exists=True, dir_okay=False),
    ] = None,
    product_column: Annotated[
        str | None,
        typer.Option("--product-column", help="Column naming the product (defaults to the dataset's)."),
    ] = None,
    sort: Annotated[
        SortOrder,
        typer.Option("--sort", help="Option order: default, ascending, descending."),
    ] = SortOrder.DEFAULT,
    top_n: Annotated[
        int | None,
        typer.Option("--top-n", help="Options pre-selected for display.", min=1),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print flattened records as JSON instead of a table."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Compute one question's option-by-cohort series with significance markers."""
    from surveylens.analysis import (
        build_series,
        build_series_from_comparison_sets,
        build_series_from_product_buckets,
    )
    from surveylens.logging import setup_logging

    setup_logging(verbose=verbose)

    if sets_path is not None and buckets_path is not None:
        console.print("[red]--sets and --buckets are mutually exclusive.[/red]")
        raise typer.Exit(1)

    try:
        settings = load_settings(top_n_default=top_n)
    except ValidationError as exc:
        console.print(f"[red]Invalid configuration: {exc.errors()[0]['msg']}[/red]")
        raise typer.Exit(1)
    options = settings.engine_options()

    dataset: Dataset = _validate(
        TypeAdapter(Dataset), _read_json(dataset_path, "dataset"), "dataset",
    )
    question_def = dataset.question(question)
    if question_def is None:
        known = ", ".join(q.qid for q in dataset.questions) or "none"
        console.print(f"[red]Question {question!r} not found.[/red] Known: {known}")
        raise typer.Exit(1)

    segments = [_parse_segment(s) for s in segment or []]

    if sets_path is not None:
        sets = _validate(
            TypeAdapter(list[ComparisonSet]), _read_json(sets_path, "comparison sets"), "comparison sets",
        )
        result = build_series_from_comparison_sets(
            dataset, question_def, sets, sort, options=options,
        )
    elif buckets_path is not None:
        buckets = _validate(
            TypeAdapter(list[ProductBucket]), _read_json(buckets_path, "product buckets"), "product buckets",
        )
        result = build_series_from_product_buckets(
            dataset,
            question_def,
            buckets,
            sort,
            product_column=product_column,
            segments=segments,
            options=options,
        )
    else:
        if segment_column is not None and not segments:
            spec: LegacyCohortSpec | SegmentCohortSpec = LegacyCohortSpec(
                segment_column=segment_column, groups=group or [],
            )
        else:
            spec = SegmentCohortSpec(segments=segments, mode=mode)
        result = build_series(dataset, question_def, spec, sort, options=options)

    if as_json:
        payload = {
            "data": [p.as_record() for p in result.data],
            "groups": [{"key": g.key, "label": g.label} for g in result.groups],
        }
        # plain print: rich would wrap and highlight the JSON
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return

    if result.is_empty:
        console.print("[yellow]No cohorts to compare.[/yellow]")
        return

    percent = question_def.type is not QuestionType.RANKING
    _print_table(f"{question_def.qid}: {question_def.label}", result, percent=percent)
    if not percent:
        console.print("[dim]Values are mean rank (lower is better).[/dim]")


# ---------------------------------------------------------------------------
# Serve command
# ---------------------------------------------------------------------------


@app.command()
def serve(
    port: Annotated[
        int,
        typer.Option("--port", "-p", help="Port to serve on."),
    ] = 8160,
    log_dir: Annotated[
        Path | None,
        typer.Option("--log-dir", help="Write a rotating log file under this directory."),
    ] = None,
    dev: Annotated[
        bool,
        typer.Option("--dev", help="Development mode: auto-reload on Python changes."),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable verbose logging."),
    ] = False,
) -> None:
    """Launch the surveylens HTTP API."""
    try:
        import uvicorn  # noqa: F401 (serve extra)
    except ImportError:
        console.print("[red]Server dependencies not installed.[/red]")
        console.print("Install with: [bold]pip install surveylens[serve][/bold]")
        raise typer.Exit(1)

    console.print(f"\n  API: [bold cyan]http://127.0.0.1:{port}/api/docs[/bold cyan]\n")

    if dev:
        # uvicorn calls create_app() itself on reload; the factory reads
        # these back from the environment
        import os

        if log_dir is not None:
            os.environ["_SURVEYLENS_LOG_DIR"] = str(log_dir.resolve())
        if verbose:
            os.environ["_SURVEYLENS_VERBOSE"] = "1"

        uvicorn.run(
            "surveylens.server.app:create_app",
            host="127.0.0.1",
            port=port,
            reload=True,
            factory=True,
            log_level="info" if verbose else "warning",
        )
    else:
        from surveylens.server.app import create_app

        app_instance = create_app(log_dir=log_dir, verbose=verbose)

        uvicorn.run(
            app_instance,
            host="127.0.0.1",
            port=port,
            log_level="info" if verbose else "warning",
        )
