"""Typer CLI entrypoint for signature-builder."""

from __future__ import annotations

import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from .config import ConfigLocator, ConfigRepository, GlobalConfig
from .engine import FetchReport, IngestReport
from .errors import SignatureBuilderError
from .logging_conf import bind_command, configure_logging, tail_log
from .orchestrator import Orchestrator

app = typer.Typer(
    help="Fetch, merge, patch and export published malware hash lists.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
config_app = typer.Typer(
    name="config",
    help="Inspect or create the configuration file.",
    no_args_is_help=True,
    rich_markup_mode=None,
)
log_app = typer.Typer(
    name="log",
    help="Inspect log files.",
    no_args_is_help=True,
    rich_markup_mode=None,
)

console = Console()


@dataclass
class AppState:
    repository: ConfigRepository
    config: GlobalConfig
    orchestrator: Orchestrator
    started_at: float = field(default_factory=time.perf_counter)


def build_state(
    verbose: bool = False,
    config_path: Path | None = None,
    show_progress: bool | None = None,
    **overrides: object,
) -> AppState:
    locator = ConfigLocator(config_path=config_path)
    repository = ConfigRepository(locator)
    config = repository.resolved(show_progress=show_progress, **overrides)
    configure_logging(verbose=verbose, log_dir=locator.logs_dir)
    return AppState(
        repository=repository,
        config=config,
        orchestrator=Orchestrator(config),
    )


def _get_state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if state is None:
        state = build_state()
        ctx.obj = state
    return state


@contextmanager
def _fatal_errors() -> Iterator[None]:
    """Turn fatal errors into a red message and exit code 1."""
    try:
        yield
    except SignatureBuilderError as exc:
        console.print(f"Error: {exc}", style="red", markup=False)
        raise typer.Exit(code=1)
    except OSError as exc:
        console.print(f"I/O error: {exc}", style="red", markup=False)
        raise typer.Exit(code=1)


def _print_elapsed(state: AppState) -> None:
    elapsed = time.perf_counter() - state.started_at
    console.print(f"Total time was {elapsed:.2f}s", style="dim")


def _render_fetch(report: FetchReport) -> Table:
    summary = report.summary()
    table = Table(title="Fetch results", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Remote files", str(summary["total"]))
    table.add_row("Downloaded", str(summary["success"]))
    table.add_row("Failed", str(summary["failed"]))
    return table


def _render_ingest(report: IngestReport) -> Table:
    summary = report.summary()
    table = Table(title="Insert results", box=box.SIMPLE_HEAD)
    table.add_column("Metric", style="cyan")
    table.add_column("Count", style="green", justify="right")
    table.add_row("Files read", str(summary["files"] - summary["skipped_files"]))
    table.add_row("Files skipped", str(summary["skipped_files"]))
    table.add_row("Chunks committed", str(summary["chunks"] - summary["failed_chunks"]))
    table.add_row("Chunks failed", str(summary["failed_chunks"]))
    table.add_row("Hashes read", str(summary["hashes"]))
    table.add_row("New hashes", str(summary["inserted"]))
    return table


def _report_failed_downloads(report: FetchReport) -> None:
    for outcome in report.failed:
        console.print(
            f"Failed to download {outcome.url}: {outcome.error}", style="yellow", markup=False
        )
    if report.outcomes and not report.succeeded:
        console.print("Every download failed; check your network.", style="red")
        raise typer.Exit(code=1)


app.add_typer(config_app, name="config")
app.add_typer(log_app, name="log")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Configuration file (default: ./signature_builder.yaml)."
    ),
    work_dir: Optional[Path] = typer.Option(
        None, "--work-dir", "-t", help="Directory for downloaded files (default: ./tmp)."
    ),
    database: Optional[Path] = typer.Option(
        None, "--database", "-d", help="SQLite database file (default: hashes_db)."
    ),
    table: Optional[str] = typer.Option(
        None, "--table", help="Table holding the hashes (default: hashes)."
    ),
    max_workers: Optional[int] = typer.Option(
        None, "--max-workers", help="Concurrent download workers (default: 20)."
    ),
    max_retries: Optional[int] = typer.Option(
        None, "--max-retries", help="Retries per download and per probe phase (default: 5)."
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", help="Files combined into one insert transaction (default: 8)."
    ),
    page_size: Optional[int] = typer.Option(
        None, "--page-size", "-l", help="Hashes per exported file (default: 1000000)."
    ),
    output_dir: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Export directory (default: ./hashes)."
    ),
    no_progress: bool = typer.Option(False, "--no-progress", help="Hide progress bars."),
) -> None:
    with _fatal_errors():
        ctx.obj = build_state(
            verbose=verbose,
            config_path=config_path,
            show_progress=False if no_progress else None,
            work_dir=work_dir,
            database=database,
            table=table,
            max_workers=max_workers,
            max_retries=max_retries,
            chunk_size=chunk_size,
            page_size=page_size,
            output_dir=output_dir,
        )
    bind_command(ctx.invoked_subcommand)
    ctx.call_on_close(ctx.obj.orchestrator.close)


@app.command("fetch", help="Download every hash file currently published upstream.")
def fetch(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        report = state.orchestrator.fetch()
    console.print(_render_fetch(report))
    _print_elapsed(state)
    _report_failed_downloads(report)


@app.command("insert", help="Insert all downloaded files into the database.")
def insert(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        report = state.orchestrator.insert()
    console.print(_render_ingest(report))
    _print_elapsed(state)
    if report.failed_chunks:
        raise typer.Exit(code=1)


@app.command("insert-file", help="Insert a single hash-list file into the database.")
def insert_file(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="File with one hash per line."),
) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        outcome = state.orchestrator.insert_file(path)
    console.print(
        f"Inserted {outcome.inserted} new of {outcome.hashes} hashes from {path}.",
        style="green",
    )
    _print_elapsed(state)


@app.command("update", help="Fetch the latest files and insert them.")
def update(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        fetch_report, ingest_report = state.orchestrator.update()
    console.print(_render_fetch(fetch_report))
    console.print(_render_ingest(ingest_report))
    _print_elapsed(state)
    _report_failed_downloads(fetch_report)
    if ingest_report.failed_chunks:
        raise typer.Exit(code=1)


@app.command("export", help="Write all hashes to fixed-size numbered files.")
def export(
    ctx: typer.Context,
    resume: bool = typer.Option(
        False, "--resume", help="Keep existing files and continue their numbering."
    ),
    timestamp: bool = typer.Option(
        False, "--timestamp", help="Also write a 'timestamp' file with the export time."
    ),
) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        report = state.orchestrator.export(resume=resume, timestamp=timestamp)
    console.print(
        f"Exported {report.rows} hashes into {len(report.files)} file(s) "
        f"under {state.config.output_dir}.",
        style="green",
    )
    _print_elapsed(state)


@app.command("patch", help="Apply a patch file of +hash / -hash lines.")
def patch(
    ctx: typer.Context,
    path: Path = typer.Argument(..., help="Patch file."),
) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        report = state.orchestrator.patch(path)
    console.print(
        f"Patch applied: {report.added} added, {report.removed} removed, "
        f"{len(report.ignored)} line(s) ignored.",
        style="green" if report.ok else "yellow",
    )
    for error in (report.add_error, report.remove_error):
        if error:
            console.print(f"Error: {error}", style="red", markup=False)
    _print_elapsed(state)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command("clean", help="Delete the working directory and the database.")
def clean(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation prompt."),
) -> None:
    state = _get_state(ctx)
    if not yes:
        confirm = typer.confirm(
            f"Delete {state.config.work_dir} and {state.config.database}?", default=False
        )
        if not confirm:
            console.print("Cancelled.", style="yellow")
            raise typer.Exit(code=0)
    with _fatal_errors():
        removed = state.orchestrator.clean()
    for name, path in (("work_dir", state.config.work_dir), ("database", state.config.database)):
        if removed[name]:
            console.print(f"Deleted {path}.", style="green")
        else:
            console.print(f"{path} does not exist; skipping.", style="yellow")


@app.command("count", help="Print the number of hashes currently in the database.")
def count(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    with _fatal_errors():
        total = state.orchestrator.count()
    console.print(f"There are currently {total} hashes in DB")


@config_app.command("show", help="Print the effective configuration.")
def config_show(ctx: typer.Context) -> None:
    state = _get_state(ctx)
    console.print(f"# {state.repository.path}", style="dim")
    console.print(
        yaml.safe_dump(state.config.model_dump(mode="json"), sort_keys=False),
        markup=False,
        highlight=False,
    )


@config_app.command("init", help="Write a configuration file with default values.")
def config_init(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Overwrite an existing file."),
) -> None:
    state = _get_state(ctx)
    path = state.repository.path
    if path.exists() and not force:
        console.print(f"{path} already exists; use --force to overwrite.", style="yellow")
        raise typer.Exit(code=1)
    with _fatal_errors():
        state.repository.save(GlobalConfig())
    console.print(f"Wrote {path}.", style="green")


@log_app.command("tail", help="Show the last lines of the application log.")
def log_tail(
    ctx: typer.Context,
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show."),
    errors: bool = typer.Option(False, "--errors", help="Show the error log instead."),
) -> None:
    state = _get_state(ctx)
    logs_dir = state.repository.locator.logs_dir
    assert logs_dir is not None
    path = logs_dir / ("error.log" if errors else "signature_builder.log")
    content = tail_log(path, lines)
    if not content:
        console.print(f"No log entries in {path}.", style="dim")
        return
    for line in content:
        console.print(line.rstrip("\n"), markup=False, highlight=False)


if __name__ == "__main__":  # pragma: no cover
    app()
