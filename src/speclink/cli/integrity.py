"""
speclink CLI - integrity commands.

check, repair, normalize and validate all work on the documents directory
and the local store; none of them talks to GitHub.
"""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from speclink.cli.context import project_context, warn_on_drift
from speclink.cli.errors import ExitCode, print_user_error
from speclink.core.integrity.checker import document_ids, document_path
from speclink.core.integrity.models import IntegrityReport
from speclink.core.specs.normalizer import normalize_file
from speclink.core.specs.validator import ValidationReport, validate_file

console = Console()


def _report_table(report: IntegrityReport) -> Table:
    table = Table(title="Integrity", show_header=True)
    table.add_column("Spec", style="cyan", no_wrap=True)
    table.add_column("State")
    table.add_column("Details")
    for spec_id in report.files_only:
        table.add_row(spec_id, "[yellow]file only[/yellow]", "No store record")
    for spec_id in report.store_only:
        table.add_row(spec_id, "[red]store only[/red]", "No document (flagged, never deleted)")
    for entry in report.mismatch:
        table.add_row(entry.id, "[magenta]mismatch[/magenta]", escape("\n".join(entry.differences)))
    return table


def check(
    ctx: typer.Context,
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the report as JSON",
    ),
) -> None:
    """
    Compare spec documents with the local store.

    Read-only. Lists specs that exist only as a document, only in the
    store, or in both with differing values.

    Examples:
        speclink check            # Summary and table of problems
        speclink check --json     # Machine-readable report
    """
    with project_context(ctx) as app_ctx:
        report = app_ctx.checker().check(app_ctx.config.documents_dir)

    if as_json:
        typer.echo(report.model_dump_json(indent=2))
        return

    if report.is_clean:
        console.print(f"[green]✓[/green] {report.summary()}")
        return

    console.print(f"[yellow]⚠[/yellow]  {report.summary()}")
    console.print(_report_table(report))
    console.print("\n[dim]→ Run [bold]speclink repair[/bold] to bring the store in line[/dim]")


def repair(ctx: typer.Context) -> None:
    """
    Repair the local store from the spec documents.

    Documents without a store record are imported, and mismatched records
    are overwritten from their document (the document always wins).
    Store-only records are flagged and left alone.

    Examples:
        speclink repair
    """
    with project_context(ctx) as app_ctx:
        report = app_ctx.checker().check(app_ctx.config.documents_dir)
        result = app_ctx.repair_service().repair(report)
        for spec_id in result.imported:
            console.print(f"[green]✓[/green] Imported {spec_id}")
        for spec_id in result.updated:
            console.print(f"[green]✓[/green] Updated {spec_id} from its document")

        for error in result.errors:
            console.print(f"[red]✗[/red] {error.id}: {escape(error.error)}")
        for spec_id in result.flagged:
            console.print(
                f"[yellow]⚠[/yellow]  {spec_id} has no document; "
                "restore the file or remove the record by hand"
            )
        console.print(result.summary())

        if result.failed:
            raise typer.Exit(ExitCode.GENERAL_ERROR)


def normalize(
    ctx: typer.Context,
    spec_id: str | None = typer.Argument(None, help="Spec to normalize (default: all)"),
    write: bool = typer.Option(
        False,
        "--write",
        "-w",
        help="Write the changes back (default is a dry run showing a diff)",
    ),
) -> None:
    """
    Fix common header formatting drift in spec documents.

    Only formatting changes: label spelling, colon placement, zero padding
    and a missing time of day. Values are never altered.

    Examples:
        speclink normalize              # Show what would change
        speclink normalize --write      # Apply the changes
        speclink normalize 3f2b6c1e     # One document only
    """
    with project_context(ctx) as app_ctx:
        documents_dir = app_ctx.config.documents_dir
        ids = [spec_id] if spec_id else document_ids(documents_dir)
        if spec_id and not document_path(documents_dir, spec_id).exists():
            raise print_user_error(f"No document for spec {spec_id}", solution="speclink check")

        changed = 0
        for current in ids:
            result = normalize_file(document_path(documents_dir, current), write=write)
            if not result.changed:
                continue
            changed += 1
            verb = "Normalized" if write else "Would normalize"
            console.print(f"[green]✓[/green] {verb} {current}")
            for change in result.changes:
                console.print(f"  [dim]{escape(change)}[/dim]")
            if not write:
                typer.echo(result.diff())

        if changed == 0:
            console.print("[green]✓[/green] Nothing to normalize")
        elif not write:
            console.print("\n[dim]→ Run with [bold]--write[/bold] to apply[/dim]")
        else:
            warn_on_drift(app_ctx)


def _print_validation(report: ValidationReport) -> None:
    mark = "[green]✓[/green]" if report.is_valid else "[red]✗[/red]"
    console.print(f"{mark} {escape(report.summary())}")
    for error in report.errors:
        console.print(f"  [red]error:[/red] {escape(error)}")
    for warning in report.warnings:
        console.print(f"  [yellow]warning:[/yellow] {escape(warning)}")


def validate(
    ctx: typer.Context,
    spec_id: str | None = typer.Argument(None, help="Spec to validate (default: all)"),
) -> None:
    """
    Check spec documents against the canonical header format.

    Exits non-zero if any document has errors. Warnings alone do not fail.

    Examples:
        speclink validate
        speclink validate 3f2b6c1e-8d4a-4f7b-9c2e-1a5d6e7f8a9b
    """
    with project_context(ctx) as app_ctx:
        documents_dir = app_ctx.config.documents_dir
        ids = [spec_id] if spec_id else document_ids(documents_dir)
        if spec_id and not document_path(documents_dir, spec_id).exists():
            raise print_user_error(f"No document for spec {spec_id}", solution="speclink check")
        if not ids:
            console.print(f"[dim]No spec documents in {documents_dir}[/dim]")
            return

        reports = [validate_file(document_path(documents_dir, i)) for i in ids]
        for report in reports:
            _print_validation(report)

        invalid = sum(1 for r in reports if not r.is_valid)
        if invalid:
            console.print(f"\n{invalid} of {len(reports)} document(s) invalid")
            raise typer.Exit(ExitCode.GENERAL_ERROR)
