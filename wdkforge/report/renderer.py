"""Rich terminal renderer for the wdkforge run report.

Turns a ``RunResult`` into a Rich Panel containing one row per project,
followed by the diagnostics of every failed project.

Color scheme
------------
- green     : success / packaged
- red       : failure / failed
- dim       : skipped / not applicable
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from wdkforge.models.results import (
    BuildStatus,
    PackageStatus,
    ProjectResult,
    RunResult,
)

# ---------------------------------------------------------------------------
# Status -> Rich markup mapping
# ---------------------------------------------------------------------------

_BUILD_ICONS: dict[BuildStatus, str] = {
    BuildStatus.SUCCESS: "[green]SUCCESS[/green]",
    BuildStatus.FAILURE: "[bold red]FAILURE[/bold red]",
    BuildStatus.SKIPPED: "[dim]SKIPPED[/dim]",
}

_PACKAGE_ICONS: dict[PackageStatus, str] = {
    PackageStatus.PACKAGED: "[green]PACKAGED[/green]",
    PackageStatus.FAILED: "[bold red]FAILED[/bold red]",
    PackageStatus.NOT_APPLICABLE: "[dim]N/A[/dim]",
    PackageStatus.SKIPPED: "[dim]SKIPPED[/dim]",
}


class RunReportRenderer:
    """Renders ``RunResult`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render(self, result: RunResult) -> Panel:
        """Render a RunResult as a Rich Panel containing a Table."""
        table = self._build_project_table(result)

        total = len(result.results)
        failed = len(result.failed_projects)
        status = (
            "[bold green]SUCCEEDED[/bold green]"
            if result.succeeded
            else "[bold red]FAILED[/bold red]"
        )
        summary = "  |  ".join([
            f"[bold]Root:[/bold] {escape(str(result.root))}",
            f"[bold]Projects:[/bold] {total}",
            f"[bold]Failed:[/bold] {failed}",
            f"[bold]Result:[/bold] {status}",
        ])

        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]wdkforge build report[/bold]",
            subtitle=f"Completed: {result.completed_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
            border_style="green" if result.succeeded else "red",
            padding=(1, 2),
        )

    def _build_project_table(self, result: RunResult) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)

        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Workspace", min_width=12)
        table.add_column("Project", min_width=16)
        table.add_column("Kind", min_width=12)
        table.add_column("Build", justify="center")
        table.add_column("Package", justify="center")
        table.add_column("Details", min_width=20)

        for i, project in enumerate(result.results):
            table.add_row(
                str(i),
                escape(project.workspace_id),
                escape(project.project_name),
                escape(project.kind_label) or "[dim]-[/dim]",
                _BUILD_ICONS[project.build.status],
                _PACKAGE_ICONS[project.package.status],
                _details(project),
            )
        return table

    def print_report(self, result: RunResult) -> None:
        """Print the report panel and the diagnostics of failed projects."""
        self.console.print(self.render(result))
        for project in result.failed_projects:
            diagnostic = _diagnostic(project)
            if diagnostic:
                self.console.print(
                    Panel(
                        Text(diagnostic),
                        title=f"[bold red]{escape(project.project_name)}[/bold red]",
                        border_style="red",
                    )
                )


def _details(project: ProjectResult) -> str:
    if project.error_stage:
        return f"[red]{project.error_stage}: {escape(project.error)}[/red]"
    package = project.package
    if package.status is PackageStatus.FAILED:
        stage = package.failed_stage.value if package.failed_stage else "package"
        return f"[red]{package.error_type} at {stage}[/red]"
    if package.status is PackageStatus.PACKAGED and package.package_dir is not None:
        return f"[dim]{escape(str(package.package_dir))}[/dim]"
    return "[dim]-[/dim]"


def _diagnostic(project: ProjectResult) -> str:
    if project.build.status is BuildStatus.FAILURE:
        return project.build.diagnostic_text
    if project.package.status is PackageStatus.FAILED:
        return project.package.cause
    return project.error
