"""
Console report for evaluation results.

Renders a Result with Rich: a verdict header, then one row per validation
with a status icon, its qualified name and the explanation or error.
"""

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from permgate.engine import Result

# Status icons
ICON_PASSED = "[green]✓[/green]"
ICON_FAILED = "[yellow]✗[/yellow]"
ICON_RAISED = "[red]![/red]"


def print_result(
    result: Result,
    console: Console | None = None,
    title: str | None = None,
    verbose: bool = False,
) -> None:
    """
    Print a console report for a Result.

    Args:
        result: The evaluation result
        console: Rich Console instance (creates one if not provided)
        title: Optional label shown in the header (e.g. the policy file)
        verbose: Show full explanations and error notes
    """
    if console is None:
        console = Console()

    _print_header(console, result, title)
    console.print()

    table = Table(show_header=True, header_style="bold", expand=True)
    table.add_column("Status", width=6, justify="center")
    table.add_column("Validation", style="cyan")
    table.add_column("Details", overflow="fold")

    for name in result.passed_validations:
        table.add_row(ICON_PASSED, name, "")
    for failed in result.failed_validations:
        details = "" if failed.explanation is None else _format_value(failed.explanation, verbose)
        table.add_row(ICON_FAILED, failed.name, details)
    for error in result.thrown_errors:
        table.add_row(ICON_RAISED, _raised_by(error), _format_error(error, verbose))

    console.print(table)
    console.print(
        f"[dim]Passed: {len(result.passed_validations)} | "
        f"Failed: {len(result.failed_validations)} | "
        f"Raised: {len(result.thrown_errors)}[/dim]"
    )


def _print_header(console: Console, result: Result, title: str | None) -> None:
    """Print the verdict panel."""
    header = Text()
    if title:
        header.append(f" {title} ", style="bold")
        header.append("│ ", style="dim")
    if result.has_passed:
        header.append("PASSED", style="bold green")
    else:
        header.append("DENIED", style="bold red")
    console.print(Panel(header, expand=False))


def _raised_by(error: BaseException) -> str:
    """Recover the qualified validation name from the error's note."""
    for note in getattr(error, "__notes__", ()):
        if note.startswith("raised by validation "):
            return note.removeprefix("raised by validation ")
    return type(error).__name__


def _format_error(error: BaseException, verbose: bool) -> str:
    text = f"{type(error).__name__}: {error}"
    if not verbose:
        text = _truncate(text, 80)
    return f"[red]{escape(text)}[/red]"


def _format_value(value: Any, verbose: bool) -> str:
    text = repr(value)
    if not verbose:
        text = _truncate(text, 60)
    return escape(text)


def _truncate(s: str, max_len: int) -> str:
    """Truncate string with ellipsis."""
    if len(s) <= max_len:
        return s
    return s[: max_len - 3] + "..."
