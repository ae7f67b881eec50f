"""Main Typer application — imports and registers all CLI commands.

Entry point: ``wdkforge`` (configured via pyproject.toml project.scripts).
"""

from __future__ import annotations

import typer

from wdkforge.cli.commands.build import build_cmd
from wdkforge.cli.commands.new import new_cmd

app = typer.Typer(
    name="wdkforge",
    help="wdkforge: build and package Rust Windows driver projects.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# Register subcommands
app.command(name="new", help="Create a new Windows driver project.")(new_cmd)
app.command(name="build", help="Build and package driver projects.")(build_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
