"""
CLI Interface
=============
Command-line interface for the PDF signature scanner.

Usage:
    python -m sigscan.cli check <pdf_path>
    python -m sigscan.cli details <pdf_path> [--json-output]
    python -m sigscan.cli batch <directory> [options]
    python -m sigscan.cli scan [--entity N] [--limit N]
    python -m sigscan.cli stats [--entity N]
"""

from __future__ import annotations

import json
import os
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table

from . import __version__
from .engine import ScannerConfig, SignatureEngine
from .models import SignatureDetails, SignatureStatistics
from .scanner import SignatureScanner
from .store import SqliteSignatureStore

console = Console()

# Exit code of `check` for a readable but unsigned document
EXIT_NOT_SIGNED = 2


@click.group()
@click.version_option(version=__version__, prog_name="sigscan")
@click.option(
    "--db",
    "db_path",
    default=None,
    envvar="SIGSCAN_DB_PATH",
    help="Path to the SQLite tracking database",
)
@click.option(
    "--data-root",
    default=None,
    envvar="SIGSCAN_DATA_ROOT",
    help="Root directory holding registered documents (ecm/...)",
)
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level",
)
@click.option("--log-file", default=None, help="Path to log file")
@click.pass_context
def cli(ctx, db_path: str, data_root: str, log_level: str, log_file: str):
    """PDF Signature Scanner — detect and track digital signatures in PDFs."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = ScannerConfig(
        db_path=db_path,
        data_root=data_root,
        log_level=log_level,
        log_file=log_file,
    )


def _engine(ctx) -> SignatureEngine:
    return SignatureEngine(ctx.obj["config"])


def _store(ctx) -> SqliteSignatureStore:
    return SqliteSignatureStore(ctx.obj["config"].db_path)


# ─── Single Document ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def check(ctx, pdf_path: str):
    """Check whether a PDF carries a digital signature."""
    try:
        signed = _engine(ctx).check_file(pdf_path)
    except OSError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    name = os.path.basename(pdf_path)
    if signed:
        console.print(f"[green]✓[/] {name}: digitally signed")
        return

    console.print(f"[yellow]✗[/] {name}: no digital signature")
    sys.exit(EXIT_NOT_SIGNED)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON result to stdout (for programmatic use)",
)
@click.pass_context
def details(ctx, pdf_path: str, json_output: bool):
    """Show signature type, signer and signing date of a PDF."""
    if json_output:
        # Suppress console logging for JSON mode
        ctx.obj["config"].log_level = "ERROR"

    try:
        result = _engine(ctx).get_details(pdf_path)
    except OSError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    if json_output:
        print(json.dumps(
            result.model_dump(mode="json"),
            indent=2,
            ensure_ascii=False,
        ))
        return

    _display_details(os.path.basename(pdf_path), result)


@cli.command()
@click.argument("pdf_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def info(ctx, pdf_path: str):
    """Display PDF file information and signature summary."""

    import fitz

    try:
        doc = fitz.open(pdf_path)
    except Exception as e:
        console.print(f"[red]Error:[/] cannot open PDF: {e}")
        sys.exit(1)

    console.print()
    table = Table(title="PDF Information", border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row("File", os.path.basename(pdf_path))
    table.add_row("Pages", str(doc.page_count))
    table.add_row(
        "File Size",
        f"{os.path.getsize(pdf_path) / 1024 / 1024:.2f} MB",
    )

    metadata = doc.metadata or {}
    for key in ["title", "author", "subject", "creator", "producer"]:
        val = metadata.get(key, "")
        if val:
            table.add_row(key.title(), val)

    doc.close()

    result = _engine(ctx).get_details(pdf_path)
    table.add_row("Digitally Signed", "Yes" if result.has_signature else "No")
    if result.has_signature:
        table.add_row("Signature Type", result.signature_type.value)

    console.print(table)
    console.print()


# ─── Directory Batch ──────────────────────────────────────────────────────────


@cli.command()
@click.argument("directory", type=click.Path(exists=True, file_okay=False))
@click.option(
    "--parallel", "-j",
    default=1,
    type=click.IntRange(min=1),
    help="Number of parallel workers (1 = sequential)",
)
@click.option(
    "--json-output",
    is_flag=True,
    default=False,
    help="Output only JSON results to stdout",
)
@click.pass_context
def batch(ctx, directory: str, parallel: int, json_output: bool):
    """Inspect all PDFs in a directory (no database involved)."""

    pdf_files = sorted(
        p for p in Path(directory).iterdir()
        if p.is_file() and p.suffix.lower() == ".pdf"
    )

    if not pdf_files:
        console.print(f"[yellow]No PDF files found in: {directory}[/]")
        return

    if json_output:
        ctx.obj["config"].log_level = "ERROR"

    engine = _engine(ctx)
    results = []
    errors = []

    def _inspect(pdf_file: Path):
        try:
            return pdf_file, engine.get_details(pdf_file), None
        except OSError as e:
            return pdf_file, None, str(e)

    with ThreadPoolExecutor(max_workers=max(1, parallel)) as pool:
        if json_output:
            outcomes = list(pool.map(_inspect, pdf_files))
        else:
            outcomes = []
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                MofNCompleteColumn(),
                TimeRemainingColumn(),
                console=console,
            ) as progress:
                task = progress.add_task(
                    "Inspecting PDFs...", total=len(pdf_files)
                )
                for outcome in pool.map(_inspect, pdf_files):
                    outcomes.append(outcome)
                    progress.advance(task)

    for pdf_file, result, error in outcomes:
        if error is None:
            results.append((pdf_file.name, result))
        else:
            errors.append((pdf_file.name, error))

    if json_output:
        print(json.dumps(
            {
                "results": {
                    name: result.model_dump(mode="json")
                    for name, result in results
                },
                "errors": dict(errors),
            },
            indent=2,
            ensure_ascii=False,
        ))
        return

    _display_batch_summary(results, errors)


# ─── Tracking Database ────────────────────────────────────────────────────────


@cli.command()
@click.argument("filepath")
@click.argument("filename")
@click.option("--entity", default=1, type=int, help="Owning entity")
@click.pass_context
def register(ctx, filepath: str, filename: str, entity: int):
    """Register a document stored under <data-root>/ecm/FILEPATH/FILENAME."""
    document_id = _store(ctx).register_document(filepath, filename, entity)
    console.print(f"[green]Registered[/] document {document_id}: {filepath}/{filename}")


@cli.command()
@click.option("--entity", default=1, type=int, help="Entity to scan")
@click.option(
    "--limit",
    default=100,
    type=click.IntRange(min=0),
    help="Maximum documents per run",
)
@click.option(
    "--parallel", "-j",
    default=1,
    type=click.IntRange(min=1),
    help="Number of parallel workers (1 = sequential)",
)
@click.pass_context
def scan(ctx, entity: int, limit: int, parallel: int):
    """Scan registered documents that have no signature record yet."""
    config = ctx.obj["config"]
    scanner = SignatureScanner(_store(ctx), _engine(ctx))

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]Signature Scan v{__version__}[/]\n"
            f"[dim]Entity {entity} | limit {limit} | data root: "
            f"{config.data_root or '(default)'}[/]",
            border_style="cyan",
        )
    )
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Scanning documents...", total=None)

        def on_progress(done: int, total: int):
            progress.update(task, completed=done, total=total)

        summary = scanner.scan(
            entity=entity,
            limit=limit,
            parallel=parallel,
            progress_callback=on_progress,
        )

    table = Table(title="Scan Summary", border_style="cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Processed", str(summary.processed))
    table.add_row("Signatures Found", str(summary.signatures_found))
    table.add_row("Missing Files", str(summary.missing_files))
    table.add_row("Failed", str(summary.failed))
    console.print(table)

    for error in summary.errors:
        console.print(f"[red]✗[/] {error}")

    console.print(f"[bold]{summary.message}[/]")
    console.print()

    if not summary.success:
        sys.exit(1)


@cli.command()
@click.argument("document_id", type=int)
@click.pass_context
def status(ctx, document_id: int):
    """Show the stored signature record of a document."""
    record = _store(ctx).get_record(document_id)
    if record is None:
        console.print(f"[yellow]No signature record for document {document_id}[/]")
        sys.exit(1)

    _display_details(f"Document {document_id}", record.details)
    console.print(f"[dim]Checked: {record.date_checked} | Entity: {record.entity}[/]")


@cli.command()
@click.option("--entity", default=1, type=int, help="Entity to report on")
@click.pass_context
def stats(ctx, entity: int):
    """Show signed/unsigned statistics for an entity."""
    _display_statistics(_store(ctx).statistics(entity), entity)


@cli.command()
@click.option("--host", default="0.0.0.0", help="Server host")
@click.option("--port", default=5000, type=int, help="Server port")
@click.option("--debug", is_flag=True, default=False, help="Debug mode")
@click.pass_context
def serve(ctx, host: str, port: int, debug: bool):
    """Start the HTTP microservice."""
    from .server import run_server

    console.print()
    console.print(
        Panel.fit(
            f"[bold cyan]PDF Signature Microservice[/]\n"
            f"[dim]Starting on {host}:{port}[/]",
            border_style="cyan",
        )
    )
    console.print()

    config = ctx.obj["config"]
    run_server(
        host=host,
        port=port,
        debug=debug,
        config={"DB_PATH": config.db_path, "DATA_ROOT": config.data_root},
    )


# ─── Display Helpers ──────────────────────────────────────────────────────────


def _display_details(title: str, result: SignatureDetails):
    """Display signature details in a formatted table."""
    console.print()
    table = Table(title=title, border_style="cyan")
    table.add_column("Property", style="bold")
    table.add_column("Value")

    table.add_row(
        "Digitally Signed",
        "[green]Yes[/]" if result.has_signature else "[yellow]No[/]",
    )
    if result.has_signature:
        table.add_row("Signature Type", result.signature_type.value)
        table.add_row("Signer", result.signer_name or "[dim](not found)[/]")
        table.add_row("Signed At", result.signature_date or "[dim](not found)[/]")

    console.print(table)
    console.print()


def _display_statistics(stats: SignatureStatistics, entity: int):
    """Display signature statistics as a rich table."""
    table = Table(title=f"Signature Statistics (entity {entity})", border_style="green")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Total PDFs", str(stats.total_pdfs))
    table.add_row("Signed PDFs", str(stats.signed_pdfs))
    table.add_row("Unsigned PDFs", str(stats.unsigned_pdfs))
    table.add_row("Signed", f"{stats.percentage_signed}%")

    console.print()
    console.print(table)
    console.print()


def _display_batch_summary(results, errors):
    """Display batch inspection summary."""
    console.print()

    table = Table(title="Batch Signature Summary", border_style="cyan")
    table.add_column("PDF", style="bold")
    table.add_column("Signed", justify="center")
    table.add_column("Type")
    table.add_column("Signer")
    table.add_column("Signed At")

    signed = 0
    for name, result in results:
        if result.has_signature:
            signed += 1
            table.add_row(
                name,
                "[green]✓[/]",
                result.signature_type.value,
                result.signer_name or "-",
                result.signature_date or "-",
            )
        else:
            table.add_row(name, "[yellow]✗[/]", "-", "-", "-")

    for name, error in errors:
        table.add_row(name, "[red]✗ FAILED[/]", "-", "-", "-")

    console.print(table)
    console.print()
    console.print(
        f"[bold]Total:[/] {len(results)} PDFs inspected, "
        f"{signed} signed, {len(errors)} failures"
    )
    console.print()


# ─── Entry point (for python -m sigscan.cli) ──────────────────────────────────


if __name__ == "__main__":
    cli()
