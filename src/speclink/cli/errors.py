"""
Standardized error handling and exit codes for the speclink CLI.

Every command runs its body inside ``cli_errors()`` so that core failures
are reported the same way everywhere: one line naming the problem, an
optional hint underneath, and a non-zero exit code.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum

import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.markup import escape

from speclink.core.errors import SpecLinkError

err_console = Console(stderr=True)


class ExitCode(IntEnum):
    """Standard exit codes for speclink CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """A core operation failed (store, document, remote, ...)."""

    USER_ERROR = 2
    """Invalid command-line input (actionable by the user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "Spec not found: 3f2b",
        ...     solution="speclink check  # to list known specs",
        ... )
    """
    err_console.print(f"[red]Error:[/red] {escape(problem)}")

    if reason:
        err_console.print(f"[dim]{escape(reason)}[/dim]")

    if solution:
        err_console.print(f"[cyan]→ Try:[/cyan] {escape(solution)}")


def print_user_error(problem: str, solution: str | None = None) -> typer.Exit:
    """Print an input error and return the Exit to raise."""
    print_error(problem, solution=solution)
    return typer.Exit(ExitCode.USER_ERROR)


@contextmanager
def cli_errors(debug: bool = False) -> Iterator[None]:
    """
    Map exceptions raised by a command body to messages and exit codes.

    SpecLinkError prints its message and hint and exits 1. Invalid model
    input exits 2. Anything else prints ``Error: ...`` and exits 1, with a
    traceback when debug is on.
    """
    try:
        yield
    except typer.Exit:
        raise
    except SpecLinkError as e:
        print_error(str(e), solution=e.hint)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
    except PydanticValidationError as e:
        for err in e.errors():
            field = ".".join(str(p) for p in err["loc"]) or "input"
            print_error(f"Invalid {field}: {err['msg']}")
        raise typer.Exit(ExitCode.USER_ERROR) from e
    except KeyboardInterrupt as e:
        err_console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(ExitCode.SIGINT) from e
    except Exception as e:
        if debug:
            err_console.print_exception()
        print_error(str(e) or type(e).__name__)
        raise typer.Exit(ExitCode.GENERAL_ERROR) from e
