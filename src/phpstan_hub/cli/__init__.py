"""CLI entry point: registers all subcommands."""

import typer

from ._common import console

app = typer.Typer(
    name="phpstan-hub",
    help="PhpStanHub - live PHPStan dashboard",
    add_completion=False,
    rich_markup_mode="rich",
)


# Import subcommands to register them
from .root import main as _main_callback  # noqa: F401, E402
from .serve import serve as _serve  # noqa: F401, E402


def main() -> None:
    """Console script entry point."""
    app()
