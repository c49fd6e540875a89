# ABOUTME: The `bibrecon preview` command for reviewing a book before adding it to a library.
# ABOUTME: Shows fields, duplicates, the chosen edition, recommendations, and optional conflicts.

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from bibrecon.cli.loader import RecordFileError, load_library, load_records
from bibrecon.cli.options import json_option, records_argument
from bibrecon.cli.render import describe, to_json
from bibrecon.preview.conflicts import render_report
from bibrecon.preview.generator import PreviewGenerator
from bibrecon.preview.types import LibraryPreview, PreviewContext
from bibrecon.reconciliation.coordinator import ReconciliationCoordinator

_PRIORITY_STYLES = {"high": "red", "medium": "yellow", "low": "dim"}


def _print_preview(console: Console, preview: LibraryPreview) -> None:
    table = Table(title=f"Preview: {preview.entry.title}")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_column("Conf.", justify="right", width=6)
    table.add_column("Quality", width=9)
    table.add_column("Primary source", style="dim")
    for name, field in preview.metadata.fields.items():
        if not field.has_value:
            continue
        primary = next((a.source.name for a in field.sources if a.is_primary), "")
        table.add_row(
            name,
            describe(field.value),
            f"{field.confidence:.2f}",
            field.quality.level,
            primary,
        )
    console.print(table)

    summary = preview.summary
    console.print(
        f"\n[bold]Confidence:[/bold] {preview.confidence:.2f}  "
        f"[bold]Quality:[/bold] {preview.quality.level} ({preview.quality.score:.2f})  "
        f"[dim]{summary.fields_with_data}/{summary.total_fields} fields, "
        f"{summary.conflicted_fields} conflicted[/dim]"
    )

    if preview.duplicates:
        dupes = Table(title="Possible duplicates")
        dupes.add_column("Entry", style="dim")
        dupes.add_column("Title", style="bold")
        dupes.add_column("Match")
        dupes.add_column("Similarity", justify="right")
        dupes.add_column("Recommendation")
        for match in preview.duplicates:
            dupes.add_row(
                match.existing_entry.id,
                match.existing_entry.title,
                match.match_type,
                f"{match.similarity:.2f}",
                match.recommendation,
            )
        console.print(dupes)

    selection = preview.edition_selection
    edition = selection.selected_edition
    isbn = ", ".join(edition.isbn) if edition.isbn else "no ISBN"
    console.print(f"\n[bold]Edition:[/bold] {edition.title or preview.entry.title} ({isbn})")
    console.print(f"  [dim]{selection.selection_reason}[/dim]")

    for relationship in preview.series_relationships:
        console.print(
            f"[bold]Series:[/bold] {relationship.series.name} #{relationship.position:g}"
            f"  [dim]{len(relationship.missing_works)} missing[/dim]"
        )

    if preview.recommendations:
        console.print("\n[bold]Recommendations[/bold]")
        for rec in preview.recommendations:
            style = _PRIORITY_STYLES[rec.priority]
            console.print(f"  [{style}]{rec.priority.upper()}[/{style}] {rec.message}")
            recommended = [a.label for a in rec.actions if a.is_recommended]
            if recommended:
                console.print(f"    [dim]Suggested: {', '.join(recommended)}[/dim]")


@click.command("preview")
@records_argument
@click.option(
    "--library",
    "library_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON file of existing library entries to check for duplicates.",
)
@click.option("--conflicts", "show_conflicts", is_flag=True, default=False, help="Print a conflict report.")
@click.option("--language", default=None, help="Preferred edition language (e.g. en).")
@click.option(
    "--years",
    type=(int, int),
    default=None,
    help="Expected publication year range, e.g. --years 1960 1970.",
)
@json_option
def preview(
    records_path: Path,
    library_path: Path | None,
    show_conflicts: bool,
    language: str | None,
    years: tuple[int, int] | None,
    as_json: bool,
) -> None:
    """Preview adding the book described by RECORDS.json to a library."""
    console = Console()
    try:
        records = load_records(records_path)
        library = load_library(library_path) if library_path else []
    except RecordFileError as exc:
        console.print(f"[red]{exc}[/red]")
        raise SystemExit(1) from exc

    if not records:
        console.print("[red]No records to preview.[/red]")
        raise SystemExit(1)

    reconciled = asyncio.run(ReconciliationCoordinator().reconcile(records))
    generator = PreviewGenerator()
    context = PreviewContext(expected_language=language, expected_year_range=years)
    result = generator.generate_preview(records, reconciled, library, context)

    if as_json:
        click.echo(to_json(result))
        return

    _print_preview(console, result)
    if show_conflicts:
        console.print()
        console.print(render_report(generator.conflict_report(result)), markup=False, highlight=False)
