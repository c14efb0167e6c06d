"""
speclink CLI - workflow state commands.

Save where you stopped in a spec's task list and pick it up again in the
next session.
"""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from speclink.cli.context import project_context
from speclink.cli.errors import ExitCode
from speclink.core.specs.parser import format_timestamp
from speclink.core.store.specs import SpecStore
from speclink.core.workflow.state import NextAction, WorkflowStateStore

console = Console()
app = typer.Typer(
    name="workflow",
    help="Save and restore progress through a spec's tasks",
    no_args_is_help=True,
)


@app.command()
def save(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
    task: int = typer.Option(..., "--task", "-t", help="Current task number (1-based)"),
    title: str = typer.Option(..., "--title", help="Current task title"),
    next_action: NextAction = typer.Option(
        NextAction.TASK_START,
        "--next",
        "-n",
        help="What to do when resuming",
    ),
    issue: int | None = typer.Option(
        None,
        "--issue",
        help="Issue tracking the current task",
    ),
) -> None:
    """
    Save the current position in a spec's tasks.

    Examples:
        speclink workflow save 3f2b6c1e --task 3 --title "Add login form"
        speclink workflow save 3f2b6c1e -t 3 --title "Add login form" --next task_done
    """
    with project_context(ctx) as app_ctx:
        resolved = SpecStore(app_ctx.conn).resolve_id(spec_id)
        state, updated = WorkflowStateStore(app_ctx.conn).save(
            resolved, task, title, next_action, issue
        )
    verb = "Updated" if updated else "Saved"
    console.print(
        f"[green]✓[/green] {verb} workflow state: task {state.current_task_number} "
        f"({escape(state.current_task_title)}), next: {state.next_action.value}"
    )


@app.command()
def restore(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
) -> None:
    """
    Show the saved position for a spec.

    Examples:
        speclink workflow restore 3f2b6c1e
    """
    with project_context(ctx) as app_ctx:
        resolved = SpecStore(app_ctx.conn).resolve_id(spec_id)
        state = WorkflowStateStore(app_ctx.conn).find(resolved)

    if state is None:
        console.print(f"[blue]No saved workflow state for {resolved}[/blue]")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    table = Table(title=f"Workflow state: {resolved}", show_header=False)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Task", f"{state.current_task_number}. {escape(state.current_task_title)}")
    table.add_row("Next action", state.next_action.value)
    if state.remote_issue_number is not None:
        table.add_row("Issue", f"#{state.remote_issue_number}")
    table.add_row("Saved", f"{format_timestamp(state.updated_at)} UTC")
    console.print(table)


@app.command()
def clear(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
) -> None:
    """
    Delete the saved position for a spec.

    Examples:
        speclink workflow clear 3f2b6c1e
    """
    with project_context(ctx) as app_ctx:
        resolved = SpecStore(app_ctx.conn).resolve_id(spec_id)
        deleted = WorkflowStateStore(app_ctx.conn).delete(resolved)
    if deleted:
        console.print(f"[green]✓[/green] Cleared workflow state for {resolved}")
    else:
        console.print(f"[blue]No saved workflow state for {resolved}[/blue]")


@app.command(name="list")
def list_states(ctx: typer.Context) -> None:
    """
    List every saved workflow state, most recent first.
    """
    with project_context(ctx) as app_ctx:
        states = WorkflowStateStore(app_ctx.conn).list()

    if not states:
        console.print("[dim]No saved workflow state[/dim]")
        return

    table = Table(show_header=True)
    table.add_column("Spec", style="cyan", no_wrap=True)
    table.add_column("Task")
    table.add_column("Next")
    table.add_column("Saved")
    for state in states:
        table.add_row(
            state.spec_id,
            f"{state.current_task_number}. {escape(state.current_task_title)}",
            state.next_action.value,
            format_timestamp(state.saved_at),
        )
    console.print(table)
