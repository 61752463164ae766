"""
CLI entry point for permgate.

Commands:
    check       Evaluate a policy file against a request-context file
    providers   List the providers a registration hook contributes

Providers are wired in with ``--provider package.module:function``; the
function receives the Registry and registers whatever it needs. The CLI is
thin: it loads files, delegates to Permissions and renders the Result.

Exit codes:
    0   policy passed
    1   policy denied
    2   configuration or loading error
"""

import asyncio
import json
import traceback
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from permgate import __version__
from permgate.config import EngineConfig, load_config
from permgate.errors import PermgateError
from permgate.log import setup_logger
from permgate.params import RequestContext
from permgate.permissions import Permissions
from permgate.providers import load_providers
from permgate.report import generate_json_report, print_result
from permgate.schema import load_context, load_policy

EXIT_DENIED = 1
EXIT_ERROR = 2

# Initialize Typer app with metadata
app = typer.Typer(
    name="permgate",
    help="Evaluate permission policies against request contexts.",
    add_completion=False,
    no_args_is_help=True,
)

# Rich console for formatted output
console = Console()

ProviderOption = Annotated[
    Optional[list[str]],
    typer.Option(
        "--provider",
        "-p",
        help="Registration hook as 'package.module:function'. Repeatable.",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"[bold]permgate[/bold] version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """
    permgate - declarative permission policies for request pipelines.
    """


def _build_permissions(providers: list[str] | None, config: EngineConfig) -> Permissions:
    perms = Permissions(config=config)
    for target in providers or []:
        load_providers(target, perms.registry)
    return perms


def _fail(error_type: str, error: Exception, json_output: bool, debug: bool) -> None:
    """Report a loading or configuration error and exit."""
    if json_output:
        output = {
            "error": True,
            "error_type": error_type,
            "message": str(error),
        }
        if isinstance(error, PermgateError):
            output["details"] = error.to_dict()
        if debug:
            output["traceback"] = traceback.format_exc()
        print(json.dumps(output, indent=2, default=str))
    else:
        console.print(f"[red]{error_type.replace('_', ' ').capitalize()}: {escape(str(error))}[/red]")
        if debug:
            console.print(f"[dim]{escape(traceback.format_exc())}[/dim]")
    raise typer.Exit(code=EXIT_ERROR)


@app.command()
def check(
    policy_path: Annotated[
        Path,
        typer.Argument(
            help="Path to the policy YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ],
    providers: ProviderOption = None,
    context_path: Annotated[
        Optional[Path],
        typer.Option(
            "--context",
            "-c",
            help="Path to a request-context YAML file (params, cookies, fields).",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            help="Path to an engine configuration YAML file.",
            exists=True,
            readable=True,
            resolve_path=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging and full details."),
    ] = False,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show full error tracebacks."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output results in JSON format."),
    ] = False,
) -> None:
    """
    Evaluate a policy against a request context.

    Example:
        $ permgate check policy.yaml -p myapp.permissions:register -c request.yaml
    """
    try:
        config = load_config(config_path) if config_path else EngineConfig()
        setup_logger("DEBUG" if verbose else config.log_level)
        perms = _build_permissions(providers, config)
        descriptor = load_policy(policy_path)
        context = load_context(context_path) if context_path else RequestContext()
        perms.verify(descriptor)
    except Exception as e:
        _fail("load_error", e, json_output, debug)

    try:
        result = asyncio.run(perms.evaluate(context, descriptor))
    except Exception as e:
        _fail("evaluation_error", e, json_output, debug)

    if json_output:
        print(generate_json_report(result, policy=descriptor.to_dict()))
    else:
        print_result(result, console=console, title=policy_path.name, verbose=verbose)

    if not result.has_passed:
        raise typer.Exit(code=EXIT_DENIED)


@app.command("providers")
def list_providers(
    providers: ProviderOption = None,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output in JSON format."),
    ] = False,
) -> None:
    """
    List registered providers, their validations and default parameters.

    Example:
        $ permgate providers -p myapp.permissions:register
    """
    try:
        perms = _build_permissions(providers, EngineConfig())
    except Exception as e:
        _fail("load_error", e, json_output, debug=False)

    entries = sorted(perms.registry, key=lambda p: (p.namespace, p.name))

    if json_output:
        output = [
            {
                "namespace": p.namespace,
                "name": p.name,
                "validations": list(p.validation_names),
                "params": {k: d.to_raw() for k, d in p.default_params.items()},
                "parallel": p.parallel_default,
            }
            for p in entries
        ]
        print(json.dumps(output, indent=2))
        return

    if not entries:
        console.print("[dim]No providers registered.[/dim]")
        return

    table = Table(title="Providers", show_header=True, header_style="bold")
    table.add_column("Namespace", style="dim")
    table.add_column("Scheme", style="cyan")
    table.add_column("Validations")
    table.add_column("Params")
    table.add_column("Parallel", justify="center")

    for p in entries:
        table.add_row(
            p.namespace,
            p.name,
            ", ".join(p.validation_names) or "[dim]none[/dim]",
            ", ".join(f"{k}={d.to_raw()}" for k, d in p.default_params.items()) or "[dim]none[/dim]",
            "[green]yes[/green]" if p.parallel_default else "no",
        )

    console.print(table)


if __name__ == "__main__":
    app()
