"""
Per-command access to the project context.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.markup import escape

from speclink.cli.errors import cli_errors, err_console
from speclink.core.context import AppContext


def is_debug(ctx: typer.Context) -> bool:
    return bool((ctx.obj or {}).get("debug", False))


@contextmanager
def project_context(ctx: typer.Context) -> Iterator[AppContext]:
    """
    Open the AppContext for the current invocation.

    Errors raised while opening it or inside the block are reported by
    cli_errors; the context is always closed.
    """
    obj = ctx.obj or {}
    project_dir: Path | None = obj.get("project_dir")
    with cli_errors(is_debug(ctx)):
        with AppContext.from_project_dir(project_dir) as app_ctx:
            yield app_ctx


def warn_on_drift(app_ctx: AppContext) -> None:
    """Run a quiet integrity check after a mutating command; only ever warns."""
    report = app_ctx.checker().check_quietly(app_ctx.config.documents_dir)
    if report is None or report.is_clean:
        return
    err_console.print(
        f"[yellow]⚠[/yellow]  Documents and store have drifted: {escape(report.summary())}"
    )
    err_console.print("[dim]→ Run [bold]speclink repair[/bold] to bring the store in line[/dim]")
