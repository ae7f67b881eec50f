"""``wdkforge build`` — build and package every project under a directory.

Resolves the topology of ``--cwd``, builds each project in order, packages
the drivers, prints the run report and exits non-zero if any project failed.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape

from wdkforge.config import settings
from wdkforge.core.orchestrator import Orchestrator
from wdkforge.errors import DiscoveryError, MetadataError
from wdkforge.log import configure_logging
from wdkforge.models.config import BuildConfig, CpuArchitecture, Profile, TargetArch
from wdkforge.report.renderer import RunReportRenderer

logger = logging.getLogger(__name__)

console = Console()


def create_orchestrator(config: BuildConfig) -> Orchestrator:
    """Build the orchestrator wired to the real toolchain."""
    return Orchestrator(config, settings=settings)


def build_cmd(
    cwd: Path = typer.Option(
        Path("."),
        "--cwd",
        help="Directory holding the driver project, workspace or emulated workspace.",
    ),
    profile: Profile = typer.Option(
        Profile.DEV,
        "--profile",
        help="Build profile.",
        case_sensitive=False,
    ),
    target_arch: Optional[CpuArchitecture] = typer.Option(
        None,
        "--target-arch",
        help="Target architecture. Defaults to the host architecture.",
        case_sensitive=False,
    ),
    features: Optional[list[str]] = typer.Option(
        None,
        "--features",
        "-F",
        help="Cargo features to enable (repeatable or comma separated).",
    ),
    verify_signature: bool = typer.Option(
        False,
        "--verify-signature",
        help="Verify the signatures of the driver binary and catalog after signing.",
    ),
    sample: bool = typer.Option(
        False,
        "--sample",
        help="Build sample-class drivers.",
    ),
    strict_topology: bool = typer.Option(
        settings.strict_topology,
        "--strict-topology/--no-strict-topology",
        help="Fail when a project directory also contains unrelated sibling projects.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging and verbose cargo output.",
    ),
) -> None:
    """Build and package driver projects.

    Projects are built sequentially. A failed project is reported and the
    remaining projects are still processed.
    """
    configure_logging(verbose)

    config = BuildConfig(
        profile=profile,
        target_arch=TargetArch.from_option(target_arch),
        features=split_features(features or []),
        sample_class=sample,
        verify_signature=verify_signature,
        verbose=verbose,
    )

    orchestrator = create_orchestrator(config)
    try:
        result = orchestrator.resolve_and_run(cwd, strict=strict_topology)
    except (DiscoveryError, MetadataError) as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    RunReportRenderer(console=console).print_report(result)
    raise typer.Exit(code=result.exit_code)


def split_features(values: list[str]) -> tuple[str, ...]:
    """Flatten ``--features a,b --features c`` into ``("a", "b", "c")``."""
    features: list[str] = []
    for value in values:
        features.extend(f.strip() for f in value.split(",") if f.strip())
    return tuple(features)
