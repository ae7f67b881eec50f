"""``wdkforge new PATH`` — scaffold a new Windows driver project."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from wdkforge.config import settings
from wdkforge.core.exec import CommandExec
from wdkforge.core.scaffold import DriverScaffolder
from wdkforge.errors import ScaffoldError
from wdkforge.log import configure_logging
from wdkforge.models.project import DriverModel

console = Console()


def create_scaffolder() -> DriverScaffolder:
    return DriverScaffolder(
        CommandExec(timeout=settings.command_timeout_seconds), settings.cargo_command
    )


def new_cmd(
    path: Path = typer.Argument(
        ...,
        help="Directory to create; its name is the driver crate name.",
    ),
    kmdf: bool = typer.Option(False, "--kmdf", help="Create a KMDF driver."),
    umdf: bool = typer.Option(False, "--umdf", help="Create a UMDF driver."),
    wdm: bool = typer.Option(False, "--wdm", help="Create a WDM driver."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """Create a new Windows driver project.

    Exactly one of ``--kmdf``, ``--umdf`` or ``--wdm`` must be given.
    """
    configure_logging(verbose)

    selected = [
        model
        for model, flag in ((DriverModel.KMDF, kmdf), (DriverModel.UMDF, umdf), (DriverModel.WDM, wdm))
        if flag
    ]
    if len(selected) != 1:
        console.print(
            "[bold red]Error:[/bold red] exactly one of --kmdf, --umdf or --wdm is required"
        )
        raise typer.Exit(code=1)
    model = selected[0]

    try:
        project_dir = create_scaffolder().create(path, model)
    except ScaffoldError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    console.print(
        Panel(
            "\n".join([
                "[bold green]New driver project created![/bold green]",
                "",
                f"[bold]Name:[/bold]         {escape(project_dir.name)}",
                f"[bold]Driver type:[/bold]  {model.value}",
                f"[bold]Location:[/bold]     {escape(str(project_dir))}",
                "",
                f"[dim]Build it with: wdkforge build --cwd {escape(str(project_dir))}[/dim]",
            ]),
            title="[bold]wdkforge[/bold]",
            border_style="green",
            padding=(1, 2),
        )
    )
