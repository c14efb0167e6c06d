"""
speclink CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging
import sys
from pathlib import Path

import typer

from speclink import __version__
from speclink.cli import backup, github, integrity, phase, workflow

# Help panel names for command grouping
PANEL_INTEGRITY = "Keep Documents and Store in Step"
PANEL_LIFECYCLE = "Move Specs Through Their Phases"
PANEL_REMOTE = "Work with GitHub"
PANEL_STORE = "Manage the Local Store"

app = typer.Typer(
    name="speclink",
    help="Keep spec documents, a local store and GitHub issues consistent",
    no_args_is_help=True,
    add_completion=False,
    context_settings={"help_option_names": ["--help", "-h"]},
)


def configure_logging(debug: bool) -> None:
    """
    Configure logging for all commands.

    Args:
        debug: If True, enable DEBUG level logging; otherwise only warnings
    """
    level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"speclink {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    project_dir: Path | None = typer.Option(
        None,
        "--project-dir",
        "-C",
        help="Project root (default: current directory)",
        file_okay=False,
        dir_okay=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    speclink - spec lifecycle and sync.

    Each spec is a markdown document under .speclink/specs/{id}.md. The
    document is the source of truth; the local store mirrors its header,
    and a linked GitHub issue mirrors the whole document.

    Common Workflows:
        speclink check                  # Compare documents with the store
        speclink repair                 # Bring the store in line
        speclink phase <id> design      # Advance a spec
        speclink github link <id>       # Create and link an issue
        speclink github push --all      # Update every linked issue
        speclink github pull --all      # Pick up closed issues
    """
    configure_logging(debug)
    ctx.obj = {"debug": debug, "project_dir": project_dir}


# =============================================================================
# Keep Documents and Store in Step
# =============================================================================

app.command(name="check", rich_help_panel=PANEL_INTEGRITY)(integrity.check)
app.command(name="repair", rich_help_panel=PANEL_INTEGRITY)(integrity.repair)
app.command(name="normalize", rich_help_panel=PANEL_INTEGRITY)(integrity.normalize)
app.command(name="validate", rich_help_panel=PANEL_INTEGRITY)(integrity.validate)


# =============================================================================
# Move Specs Through Their Phases
# =============================================================================

app.command(name="phase", rich_help_panel=PANEL_LIFECYCLE)(phase.phase)
app.add_typer(workflow.app, name="workflow", rich_help_panel=PANEL_LIFECYCLE)


# =============================================================================
# Work with GitHub
# =============================================================================

app.add_typer(github.app, name="github", rich_help_panel=PANEL_REMOTE)


# =============================================================================
# Manage the Local Store
# =============================================================================

app.add_typer(backup.app, name="backup", rich_help_panel=PANEL_STORE)

