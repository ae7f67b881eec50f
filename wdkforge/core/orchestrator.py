"""Build orchestrator — the central coordinator for wdkforge runs.

The Orchestrator wires together the TopologyResolver, BuildTask and
PackageTask into one sequential pass over the discovered work units.

Per-project failures are recorded in the ``RunResult`` and never stop the
traversal; only failures resolving the root topology are fatal.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wdkforge.config import ToolSettings
from wdkforge.config import settings as default_settings
from wdkforge.core.build_task import BuildTask
from wdkforge.core.cert_store import CertificateStore, WindowsCertificateStore
from wdkforge.core.exec import CommandExec, RunCommand
from wdkforge.core.metadata import MetadataReader
from wdkforge.core.package_task import PackageTask
from wdkforge.core.topology import TopologyResolver
from wdkforge.core.wdk import WdkToolchain
from wdkforge.errors import BuildFailure, WdkForgeError
from wdkforge.models.config import BuildConfig
from wdkforge.models.project import Project
from wdkforge.models.results import (
    BuildOutcome,
    BuildStatus,
    PackageOutcome,
    PackageStatus,
    ProjectResult,
    RunResult,
)
from wdkforge.models.topology import Topology, WorkUnit

logger = logging.getLogger(__name__)


class Orchestrator:
    """Runs the build and package pipeline over a topology.

    Parameters
    ----------
    config:
        Run-wide build configuration.
    settings:
        Machine configuration. Uses the module-level settings if not provided.
    command_exec:
        Command backend. A ``CommandExec`` with the WDK tools on PATH is
        created if not provided.
    cert_store:
        Certificate store capability. Defaults to the certmgr-backed store
        named by ``settings.cert_store``.
    wdk:
        WDK toolchain. Created from ``settings`` if not provided.
    """

    def __init__(
        self,
        config: BuildConfig,
        *,
        settings: ToolSettings | None = None,
        command_exec: RunCommand | None = None,
        cert_store: CertificateStore | None = None,
        wdk: WdkToolchain | None = None,
    ) -> None:
        self.config = config
        self.settings = settings or default_settings
        self.wdk = wdk or WdkToolchain(
            content_root=self.settings.wdk_content_root,
            build_number=self.settings.wdk_build_number,
        )
        self.command_exec: RunCommand = command_exec or CommandExec(
            timeout=self.settings.command_timeout_seconds,
            base_env=self.wdk.tool_env(),
        )
        self.cert_store: CertificateStore = cert_store or WindowsCertificateStore(
            self.command_exec, self.settings.cert_store
        )

    # ------------------------------------------------------------------
    # Run lifecycle
    # ------------------------------------------------------------------

    def resolver(self, *, strict: bool | None = None) -> TopologyResolver:
        reader = MetadataReader(self.command_exec, self.settings.cargo_command)
        if strict is None:
            strict = self.settings.strict_topology
        return TopologyResolver(reader, strict=strict)

    def resolve_and_run(self, path: Path, *, strict: bool | None = None) -> RunResult:
        """Resolve the topology at *path*, then run it.

        Discovery and metadata errors for *path* itself propagate.
        """
        topology = self.resolver(strict=strict).resolve(path)
        return self.run(topology)

    def run(self, topology: Topology) -> RunResult:
        """Build and package every work unit of *topology* in order."""
        units = topology.work_units()
        logger.info("Processing %d project(s) under %s", len(units), topology.root)
        results = [self.run_unit(unit) for unit in units]

        run_result = RunResult(root=topology.root, results=results)
        if run_result.succeeded:
            logger.info("Build completed successfully")
        else:
            failed = ", ".join(r.project_name for r in run_result.failed_projects)
            logger.error("Build failed for: %s", failed)
        return run_result

    def run_unit(self, unit: WorkUnit) -> ProjectResult:
        """Build and package one work unit; never raises ``WdkForgeError``."""
        if unit.project is None:
            logger.error(
                "Skipping %s: %s", unit.name, unit.error_message or unit.error_type
            )
            return ProjectResult(
                workspace_id=unit.workspace_id,
                project_name=unit.name,
                build=BuildOutcome(status=BuildStatus.SKIPPED),
                package=PackageOutcome(status=PackageStatus.SKIPPED),
                error_stage=unit.error_stage,
                error=f"{unit.error_type}: {unit.error_message}",
            )

        project = unit.project
        logger.info("Processing package: %s", project.name)
        try:
            build = self.build_project(project)
        except BuildFailure as exc:
            logger.error("%s\n%s", exc, exc.diagnostic_text)
            return self._result(
                unit,
                BuildOutcome(status=BuildStatus.FAILURE, diagnostic_text=exc.diagnostic_text),
                PackageOutcome(status=PackageStatus.SKIPPED),
            )
        except (WdkForgeError, OSError) as exc:
            logger.error("Error building package %s: %s", project.name, exc)
            return self._result(
                unit,
                BuildOutcome(status=BuildStatus.FAILURE, diagnostic_text=str(exc)),
                PackageOutcome(status=PackageStatus.SKIPPED),
            )

        if not project.is_driver:
            logger.warning(
                "Package %s is not a driver project. Skipping driver package workflow",
                project.name,
            )
            return self._result(unit, build, PackageOutcome(status=PackageStatus.NOT_APPLICABLE))

        try:
            package = self.package_project(project)
        except (WdkForgeError, OSError) as exc:
            logger.error("Error packaging %s: %s", project.name, exc)
            return self._result(
                unit,
                build,
                PackageOutcome(
                    status=PackageStatus.FAILED,
                    error_type=type(exc).__name__,
                    cause=str(exc),
                ),
                error_stage="orchestration",
                error=str(exc),
            )
        return self._result(unit, build, package)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def build_project(self, project: Project) -> BuildOutcome:
        task = BuildTask(project, self.config, self.command_exec, self.settings.cargo_command)
        return task.run()

    def package_project(self, project: Project) -> PackageOutcome:
        task = PackageTask(
            project,
            self.config,
            command_exec=self.command_exec,
            cert_store=self.cert_store,
            wdk=self.wdk,
            settings=self.settings,
        )
        return task.run()

    @staticmethod
    def _result(
        unit: WorkUnit,
        build: BuildOutcome,
        package: PackageOutcome,
        *,
        error_stage: str | None = None,
        error: str = "",
    ) -> ProjectResult:
        kind_label = unit.project.kind.label if unit.project is not None else ""
        return ProjectResult(
            workspace_id=unit.workspace_id,
            project_name=unit.name,
            kind_label=kind_label,
            build=build,
            package=package,
            error_stage=error_stage,
            error=error,
        )
