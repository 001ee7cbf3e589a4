"""Root callback: global options shared by every subcommand."""

from pathlib import Path
from typing import Optional

import typer

from . import app
from ._common import console


@app.callback(invoke_without_command=True, no_args_is_help=False)
def main(
    ctx: typer.Context,
    path: Optional[Path] = typer.Option(
        None,
        "-C",
        "--path",
        help="PHP project root (default: current directory)",
        exists=True,
        file_okay=False,
        dir_okay=True,
        readable=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """
    Live dashboard for PHPStan results.

    [bold cyan]Examples:[/bold cyan]

      phpstan-hub serve

      phpstan-hub serve --watch

      phpstan-hub -C /path/to/project serve --port 9000 --ws-port 9001
    """
    ctx.ensure_object(dict)
    ctx.obj["path"] = path

    from .. import __version__

    if version:
        console.print(f"[bold cyan]PhpStanHub[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
