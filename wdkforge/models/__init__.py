"""wdkforge data models — all Pydantic v2, all frozen (immutable)."""

from wdkforge.models.config import BuildConfig, CpuArchitecture, Profile, TargetArch
from wdkforge.models.package import (
    TERMINAL_PACKAGE_STATES,
    VALID_PACKAGE_TRANSITIONS,
    PackageState,
)
from wdkforge.models.project import (
    DriverKind,
    DriverModel,
    KmdfParams,
    NonDriverKind,
    Project,
    ProjectKind,
    UmdfParams,
)
from wdkforge.models.results import (
    BuildOutcome,
    BuildStatus,
    PackageOutcome,
    PackageStatus,
    ProjectResult,
    RunResult,
)
from wdkforge.models.topology import (
    EmulatedWorkspace,
    InvalidProject,
    SingleCrate,
    Topology,
    UnresolvedMember,
    WorkUnit,
    Workspace,
)

__all__ = [
    # config
    "BuildConfig",
    "CpuArchitecture",
    "Profile",
    "TargetArch",
    # package
    "PackageState",
    "VALID_PACKAGE_TRANSITIONS",
    "TERMINAL_PACKAGE_STATES",
    # project
    "DriverKind",
    "DriverModel",
    "KmdfParams",
    "NonDriverKind",
    "Project",
    "ProjectKind",
    "UmdfParams",
    # results
    "BuildOutcome",
    "BuildStatus",
    "PackageOutcome",
    "PackageStatus",
    "ProjectResult",
    "RunResult",
    # topology
    "EmulatedWorkspace",
    "InvalidProject",
    "SingleCrate",
    "Topology",
    "UnresolvedMember",
    "WorkUnit",
    "Workspace",
]
