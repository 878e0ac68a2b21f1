from __future__ import annotations

import logging
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from markfiles.config import PROGRAM_NAME, PROGRAM_VERSION, MarkFilesConfig, build_config
from markfiles.errors import MarkFilesError
from markfiles.models import RestorationRecord
from markfiles.pipeline import check_drift, run_inventory
from markfiles.restore import DiffResult


app = typer.Typer(help="Inventory a directory tree and undo spurious timestamp drift.")
console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def _format_timestamp(timestamp: int) -> str:
    try:
        return time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(timestamp))
    except (OverflowError, OSError, ValueError):
        return str(timestamp)


def _render_restorations(records: list[RestorationRecord]) -> None:
    if not records:
        return

    table = Table(title="Restored timestamps")
    table.add_column("FILE", justify="left", style="bold")
    table.add_column("CTIME", justify="center")
    table.add_column("RESTORED CTIME", justify="center")
    table.add_column("MTIME", justify="center")
    table.add_column("RESTORED MTIME", justify="center")

    for record in records:
        table.add_row(
            Text(record.path),
            _format_timestamp(record.new_ctime) if record.ctime_changed else "",
            _format_timestamp(record.old_ctime) if record.ctime_changed else "",
            _format_timestamp(record.new_mtime) if record.mtime_changed else "",
            _format_timestamp(record.old_mtime) if record.mtime_changed else "",
        )

    console.print(table)


def _render_path_summary(title: str, paths: list[str], style: str) -> None:
    if not paths:
        return
    console.print(Text(f"{title} ({len(paths)}):", style=style))
    for path in paths:
        console.print(f"  {escape(path)}")


def _render_diff_counts(result: DiffResult) -> None:
    table = Table(title="Compared to stored snapshot")
    table.add_column("State")
    table.add_column("Files", justify="right")
    table.add_row("New", str(len(result.new_paths)))
    table.add_row("Content changed", str(len(result.changed_paths)))
    table.add_row("Content unchanged", str(len(result.unchanged_paths)))
    table.add_row("Timestamp drift", str(len(result.drifted)))
    table.add_row("Removed", str(len(result.removed_paths)))
    console.print(table)


def _print_error(exc: Exception) -> None:
    console.print(f"[bold red]error:[/bold red] {escape(str(exc))}")


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{PROGRAM_NAME} {PROGRAM_VERSION}")
        raise typer.Exit()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging."),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the program version and exit.",
    ),
) -> None:
    _configure_logging(verbose)


def _snapshot(config_args: dict, *, show_progress: bool) -> int:
    try:
        config: MarkFilesConfig = build_config(**config_args)
        console.print(f"Scanning [bold]{escape(str(config.root))}[/bold] ...")
        result = run_inventory(config, console=console, show_progress=show_progress)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted.[/yellow] Snapshot was not updated.")
        return 130
    except MarkFilesError as exc:
        _print_error(exc)
        return 1

    _render_restorations(result.restorations)
    _render_path_summary("Restore failed", result.failed_restores, "red")
    _render_path_summary(
        "Creation time not restorable on this platform", result.unrestorable_ctime, "yellow"
    )
    _render_path_summary("Skipped (unreadable)", result.failed_probes, "yellow")
    if config.restore and not (result.restorations or result.failed_restores or result.unrestorable_ctime):
        console.print("[green]No timestamp drift to restore.[/green]")
    console.print(
        f"Snapshot written: {result.file_count} file(s) in {escape(str(result.output))}"
    )
    return 0


@app.command()
def snapshot(
    path: Path = typer.Option(..., "--path", "-p", help="Directory to analyze."),
    output: Path = typer.Option(..., "--output", "-o", help="JSON file storing the extracted file properties."),
    restore: bool = typer.Option(
        False,
        "--restore",
        "-r",
        help="Restore the timestamps of all files whose content is unchanged.",
    ),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of probe workers (default: available CPUs).",
    ),
    include_hidden: bool = typer.Option(
        False,
        "--include-hidden",
        help="Also inventory files and directories whose name starts with a dot.",
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar."),
) -> None:
    """Write a snapshot of every file under PATH, optionally restoring drifted timestamps."""
    raise typer.Exit(
        code=_snapshot(
            {
                "root": path,
                "output": output,
                "restore": restore,
                "workers": workers,
                "include_hidden": include_hidden,
            },
            show_progress=progress,
        )
    )


def _status(config_args: dict, *, show_progress: bool) -> int:
    try:
        config = build_config(**config_args)
        result = check_drift(config, console=console, show_progress=show_progress)
    except KeyboardInterrupt:
        console.print("[yellow]Status interrupted.[/yellow]")
        return 130
    except MarkFilesError as exc:
        _print_error(exc)
        return 1

    _render_diff_counts(result)
    _render_restorations(result.drifted)
    if not result.has_drift:
        console.print("[green]No timestamp drift detected.[/green]")
    else:
        console.print(f"Run with [bold]--restore[/bold] to restore {len(result.drifted)} file(s).")
    return 0


@app.command()
def status(
    path: Path = typer.Option(..., "--path", "-p", help="Directory to analyze."),
    output: Path = typer.Option(..., "--output", "-o", help="Previously written snapshot file."),
    workers: int | None = typer.Option(
        None,
        "--workers",
        "-w",
        help="Number of probe workers (default: available CPUs).",
    ),
    include_hidden: bool = typer.Option(
        False,
        "--include-hidden",
        help="Also consider files and directories whose name starts with a dot.",
    ),
    progress: bool = typer.Option(True, "--progress/--no-progress", help="Show a progress bar."),
) -> None:
    """Show which files drifted since the stored snapshot without changing anything."""
    raise typer.Exit(
        code=_status(
            {
                "root": path,
                "output": output,
                "workers": workers,
                "include_hidden": include_hidden,
            },
            show_progress=progress,
        )
    )
