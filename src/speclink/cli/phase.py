"""
speclink CLI - phase command.
"""

import typer
from rich.console import Console
from rich.markup import escape

from speclink.cli.context import project_context, warn_on_drift
from speclink.cli.errors import ExitCode, err_console
from speclink.core.context import AppContext
from speclink.core.errors import DocumentError, ExternalAPIError, NotLinkedError
from speclink.core.integrity.checker import document_path
from speclink.core.specs.models import Phase
from speclink.core.store.models import EntityType
from speclink.core.store.specs import SpecStore
from speclink.core.store.sync_records import SyncRecordStore
from speclink.core.workflow.transitions import TransitionResult

console = Console()


def _resolve(app_ctx: AppContext, spec_id: str) -> str:
    if document_path(app_ctx.config.documents_dir, spec_id).exists():
        return spec_id
    return SpecStore(app_ctx.conn).resolve_id(spec_id)


def _print_blocked(transition: TransitionResult) -> None:
    err_console.print(f"[red]✗[/red] {escape(transition.message)}")
    for section in transition.missing:
        err_console.print(f"  [yellow]missing:[/yellow] {escape(section)}")
    for placeholder in transition.placeholders:
        err_console.print(
            f"  [yellow]placeholder:[/yellow] line {placeholder.line} "
            f"({escape(placeholder.section)}): {escape(placeholder.text)}"
        )
    err_console.print("[dim]→ Fill in the document, or use [bold]--force[/bold] to skip[/dim]")


def _push_if_linked(app_ctx: AppContext, spec_id: str) -> None:
    """Best effort: a failed push is reported as a warning only."""
    if SyncRecordStore(app_ctx.conn).get_active(EntityType.SPEC, spec_id) is None:
        return
    try:
        record = app_ctx.sync_service().sync_to_remote(spec_id)
    except (DocumentError, ExternalAPIError, NotLinkedError) as e:
        err_console.print(f"[yellow]⚠[/yellow]  Issue not updated: {escape(str(e))}")
        return
    console.print(f"[green]✓[/green] Updated issue #{record.issue_number}")


def phase(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
    to_phase: Phase = typer.Argument(..., help="Phase to move to", case_sensitive=False),
    force: bool = typer.Option(
        False,
        "--force",
        "-f",
        help="Skip the sequence rule and document completeness checks",
    ),
    push: bool = typer.Option(
        True,
        "--push/--no-push",
        help="Update the linked GitHub issue afterwards",
    ),
) -> None:
    """
    Move a spec to another phase.

    Phases advance one step at a time:
    requirements -> design -> tasks -> implementation -> review -> completed.
    Leaving a phase requires the matching document sections to be filled in.

    Examples:
        speclink phase 3f2b6c1e design
        speclink phase 3f2b6c1e completed --force
    """
    with project_context(ctx) as app_ctx:
        resolved = _resolve(app_ctx, spec_id)
        result = app_ctx.lifecycle().change_phase(resolved, to_phase, force=force)

        if not result.changed:
            if result.transition is not None and not result.transition.is_valid:
                _print_blocked(result.transition)
                raise typer.Exit(ExitCode.GENERAL_ERROR)
            console.print(f"[blue]{resolved} is already in {to_phase.value}[/blue]")
            return

        console.print(
            f"[green]✓[/green] {resolved}: {result.from_phase.value} → {result.to_phase.value}"
        )
        if result.workflow_cleared:
            console.print("[dim]Cleared saved workflow state[/dim]")
        if push:
            _push_if_linked(app_ctx, resolved)
        warn_on_drift(app_ctx)
