"""Run outcome models — per-project build/package results and the run summary."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from wdkforge.models.package import PackageState


class BuildStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    SKIPPED = "skipped"  # project never reached the compiler


class PackageStatus(str, Enum):
    PACKAGED = "packaged"
    FAILED = "failed"
    NOT_APPLICABLE = "not_applicable"  # non-driver project
    SKIPPED = "skipped"  # build failed or project invalid


class BuildOutcome(BaseModel):
    """Result of the Build Task for one project."""

    model_config = ConfigDict(frozen=True)

    status: BuildStatus
    diagnostic_text: str = ""

    @property
    def ok(self) -> bool:
        return self.status is BuildStatus.SUCCESS


class PackageOutcome(BaseModel):
    """Result of the Package Task for one project."""

    model_config = ConfigDict(frozen=True)

    status: PackageStatus
    states_visited: list[PackageState] = []
    failed_stage: PackageState | None = None
    error_type: str = ""
    cause: str = ""
    package_dir: Path | None = None

    @property
    def ok(self) -> bool:
        return self.status in (PackageStatus.PACKAGED, PackageStatus.NOT_APPLICABLE)


class ProjectResult(BaseModel):
    """Build and package outcome pair for one work unit."""

    model_config = ConfigDict(frozen=True)

    workspace_id: str
    project_name: str
    kind_label: str = ""
    build: BuildOutcome
    package: PackageOutcome
    error_stage: str | None = None  # "metadata" / "classification" / "orchestration"
    error: str = ""

    @property
    def succeeded(self) -> bool:
        return self.error_stage is None and self.build.ok and self.package.ok


class RunResult(BaseModel):
    """Aggregated outcome of one ``build`` invocation."""

    model_config = ConfigDict(frozen=True)

    root: Path
    results: list[ProjectResult] = []
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )

    @property
    def failed_projects(self) -> list[ProjectResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def succeeded(self) -> bool:
        return not self.failed_projects

    @property
    def exit_code(self) -> int:
        """Process exit status: non-zero iff any project failed."""
        return 0 if self.succeeded else 1

    def get(self, project_name: str) -> ProjectResult | None:
        for result in self.results:
            if result.project_name == project_name:
                return result
        return None
