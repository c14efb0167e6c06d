"""
speclink CLI - GitHub commands.

Link specs to issues, push document changes to them, pull issue state
back, and manage the project board and pull requests.
"""

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from speclink.cli.context import project_context, warn_on_drift
from speclink.cli.errors import ExitCode, print_user_error
from speclink.core.github.sync import BulkSyncResult, SyncDirection
from speclink.core.integrity.github_checker import GitHubSyncChecker

console = Console()
app = typer.Typer(
    name="github",
    help="Sync specs with GitHub issues, projects and pull requests",
    no_args_is_help=True,
)


def _print_bulk(result: BulkSyncResult) -> None:
    for spec_id in result.succeeded:
        console.print(f"[green]✓[/green] {spec_id}")
    for failure in result.failed:
        console.print(f"[red]✗[/red] {failure.spec_id}: {escape(failure.error)}")
    console.print(result.summary())


@app.command()
def link(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID (a unique prefix is enough)"),
) -> None:
    """
    Create a GitHub issue for a spec and link the two.

    A spec can be linked only once; use push to update its issue.

    Examples:
        speclink github link 3f2b6c1e
    """
    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        record = service.create_link(service.specs.resolve_id(spec_id))
        console.print(f"[green]✓[/green] Linked to issue #{record.issue_number}")
        if record.issue_url:
            console.print(f"  {record.issue_url}")


@app.command()
def push(
    ctx: typer.Context,
    spec_id: str | None = typer.Argument(None, help="Spec ID to push"),
    all_specs: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Push every linked spec",
    ),
) -> None:
    """
    Overwrite linked issues with the current spec documents.

    Title, phase label and body are replaced; the document always wins.

    Examples:
        speclink github push 3f2b6c1e
        speclink github push --all
    """
    if bool(spec_id) == all_specs:
        raise print_user_error("Give either a spec ID or --all")

    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        if all_specs:
            result = service.sync_all(SyncDirection.PUSH)
            _print_bulk(result)
            if result.failed:
                raise typer.Exit(ExitCode.GENERAL_ERROR)
            return

        assert spec_id is not None
        record = service.sync_to_remote(service.specs.resolve_id(spec_id))
        console.print(f"[green]✓[/green] Pushed to issue #{record.issue_number}")


@app.command()
def pull(
    ctx: typer.Context,
    issue_number: int | None = typer.Argument(None, help="Issue number to pull"),
    all_issues: bool = typer.Option(
        False,
        "--all",
        "-a",
        help="Pull every linked issue",
    ),
) -> None:
    """
    Bring issue state back to the linked specs.

    A closed issue marks its spec completed. The issue title (minus its
    [phase] prefix) becomes the spec name.

    Examples:
        speclink github pull 42
        speclink github pull --all
    """
    if (issue_number is not None) == all_issues:
        raise print_user_error("Give either an issue number or --all")

    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        if all_issues:
            result = service.sync_all(SyncDirection.PULL)
            _print_bulk(result)
            warn_on_drift(app_ctx)
            if result.failed:
                raise typer.Exit(ExitCode.GENERAL_ERROR)
            return

        assert issue_number is not None
        spec = service.sync_from_remote(issue_number)
        console.print(
            f"[green]✓[/green] {spec.id}: {escape(spec.name)} ({spec.phase.value})"
        )
        warn_on_drift(app_ctx)


@app.command()
def project(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
    project_number: int | None = typer.Argument(
        None, help="Project number (default: github.project_number from config)"
    ),
) -> None:
    """
    Add a linked spec's issue to a project board and set its status.

    Examples:
        speclink github project 3f2b6c1e 4
    """
    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        resolved = service.specs.resolve_id(spec_id)
        record = service.add_to_project(resolved, project_number)
        console.print(f"[green]✓[/green] Added to project #{record.external_number}")
        status = service.update_project_status(resolved)
        console.print(f"[green]✓[/green] Status set to {escape(status)}")


@app.command()
def pr(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
    head: str | None = typer.Option(
        None,
        "--head",
        help="Branch with the changes (default: the spec's branch)",
    ),
    base: str | None = typer.Option(
        None,
        "--base",
        "-b",
        help="Branch to merge into (default: github.base_branch)",
    ),
) -> None:
    """
    Open a pull request for a linked spec.

    Examples:
        speclink github pr 3f2b6c1e
        speclink github pr 3f2b6c1e --head feature/login --base main
    """
    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        record = service.create_pull_request(service.specs.resolve_id(spec_id), head, base)
        console.print(f"[green]✓[/green] Opened pull request #{record.pr_number}")
        if record.pr_url:
            console.print(f"  {record.pr_url}")


@app.command(name="pr-status")
def pr_status(
    ctx: typer.Context,
    spec_id: str = typer.Argument(..., help="Spec ID"),
) -> None:
    """
    Check whether a spec's pull request has been merged.

    Examples:
        speclink github pr-status 3f2b6c1e
    """
    with project_context(ctx) as app_ctx:
        service = app_ctx.sync_service()
        if service.refresh_pull_request(service.specs.resolve_id(spec_id)):
            console.print("[green]✓[/green] Merged")
        else:
            console.print("[blue]Not merged yet[/blue]")


@app.command()
def status(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="List unlinked specs too",
    ),
) -> None:
    """
    Show which specs are linked to GitHub issues.

    Reads the local store only; no API calls are made.

    Examples:
        speclink github status
        speclink github status -v
    """
    with project_context(ctx) as app_ctx:
        report = GitHubSyncChecker(app_ctx.conn).check()

    table = Table(title="GitHub links", show_header=True)
    table.add_column("Spec", style="cyan", no_wrap=True)
    table.add_column("Name")
    table.add_column("Phase")
    table.add_column("Issue")

    for item in report.linked:
        table.add_row(item.spec_id, escape(item.name), item.phase, f"#{item.issue_number}")
    for item in report.failed:
        error = escape(item.error_message or "")
        table.add_row(item.spec_id, escape(item.name), item.phase, f"[red]failed:[/red] {error}")
    if verbose:
        failed_ids = {f.spec_id for f in report.failed}
        for item in report.unlinked:
            if item.spec_id not in failed_ids:
                table.add_row(item.spec_id, escape(item.name), item.phase, "[dim]-[/dim]")

    if table.row_count:
        console.print(table)
    console.print(report.summary())
