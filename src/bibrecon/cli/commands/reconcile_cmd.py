# ABOUTME: The `bibrecon reconcile` command for merging provider records into one answer.
# ABOUTME: Prints every reconciled field with its confidence, sources, and conflicts.

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bibrecon.cli.loader import RecordFileError, load_records
from bibrecon.cli.options import json_option, records_argument
from bibrecon.cli.render import describe, to_json
from bibrecon.reconciliation.coordinator import ReconciliationConfig, ReconciliationCoordinator

_DOMAINS = ("publication", "subjects", "identifiers", "physical", "content", "series")


@click.command("reconcile")
@records_argument
@json_option
@click.option(
    "--skip",
    type=click.Choice(_DOMAINS),
    multiple=True,
    help="Leave a dimension unreconciled (repeatable).",
)
@click.option(
    "--min-confidence",
    type=click.FloatRange(0.0, 1.0),
    default=0.5,
    show_default=True,
    help="Flag fields below this confidence.",
)
def reconcile(records_path: Path, as_json: bool, skip: tuple[str, ...], min_confidence: float) -> None:
    """Reconcile the provider records in RECORDS.json."""
    console = Console()
    try:
        records = load_records(records_path)
    except RecordFileError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    if not records:
        console.print("[yellow]No records to reconcile.[/yellow]")
        return

    config = ReconciliationConfig(
        **{f"reconcile_{domain}": False for domain in skip},
        min_confidence_threshold=min_confidence,
    )
    result = asyncio.run(ReconciliationCoordinator(config).reconcile(records))

    if as_json:
        click.echo(to_json(result))
        return

    table = Table(title=f"Reconciled metadata from {len(records)} record(s)")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_column("Conf.", justify="right", width=6)
    table.add_column("Sources", style="dim")
    table.add_column("Conflicts", justify="right", width=9)

    low = 0
    for name, field in result.named_fields():
        if field.confidence == 0:
            continue
        style = ""
        if field.confidence < config.min_confidence_threshold:
            style = "yellow"
            low += 1
        table.add_row(
            name,
            describe(field.value),
            f"[{style}]{field.confidence:.2f}[/{style}]" if style else f"{field.confidence:.2f}",
            ", ".join(sorted({s.name for s in field.sources})),
            str(len(field.conflicts)) if field.conflicts else "",
        )

    console.print(table)
    stats = result.stats
    console.print(
        f"\n[bold]Overall confidence:[/bold] {result.overall_confidence:.2f}  "
        f"[dim]{stats.fields_reconciled} fields, {stats.total_sources} sources, "
        f"{stats.conflicts_detected} conflicts, {stats.processing_time_ms:.0f} ms[/dim]"
    )
    if low:
        console.print(f"[yellow]{low} field(s) below confidence {config.min_confidence_threshold:.2f}[/yellow]")
