"""Tests for the wdkforge data models — immutability, derived paths, results."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import TypeAdapter, ValidationError

from wdkforge.models.config import BuildConfig, CpuArchitecture, Profile, TargetArch
from wdkforge.models.package import PackageState
from wdkforge.models.project import (
    DriverKind,
    DriverModel,
    KmdfParams,
    NonDriverKind,
    Project,
    ProjectKind,
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
    UnresolvedMember,
    Workspace,
)


def _project(name: str, root: Path, kind=None) -> Project:
    return Project(
        name=name,
        root=root,
        manifest_path=root / "Cargo.toml",
        kind=kind or DriverKind(model=DriverModel.KMDF),
        target_directory=root / "target",
    )


class TestDriverModel:
    def test_binary_extension(self):
        assert DriverModel.KMDF.binary_extension == "sys"
        assert DriverModel.WDM.binary_extension == "sys"
        assert DriverModel.UMDF.binary_extension == "dll"

    def test_kernel_mode(self):
        assert DriverModel.KMDF.is_kernel_mode
        assert DriverModel.WDM.is_kernel_mode
        assert not DriverModel.UMDF.is_kernel_mode


class TestProject:
    def test_frozen(self, tmp_path: Path):
        project = _project("drv", tmp_path)
        with pytest.raises(ValidationError):
            project.name = "other"

    def test_artifact_stem_replaces_dashes(self, tmp_path: Path):
        assert _project("my-driver", tmp_path).artifact_stem == "my_driver"

    def test_is_driver(self, tmp_path: Path):
        assert _project("drv", tmp_path).is_driver
        assert not _project("lib", tmp_path, NonDriverKind()).is_driver

    def test_kind_discriminated_union(self):
        adapter = TypeAdapter(ProjectKind)
        kind = adapter.validate_python({"kind": "driver", "model": "UMDF"})
        assert isinstance(kind, DriverKind)
        assert kind.model is DriverModel.UMDF
        assert isinstance(adapter.validate_python({"kind": "non_driver"}), NonDriverKind)

    def test_kmdf_params_reject_unknown_fields(self):
        with pytest.raises(ValidationError):
            KmdfParams(kmdf_version_major=1, bogus=True)


class TestBuildConfig:
    def test_default_output_dir(self, tmp_path: Path):
        config = BuildConfig()
        assert config.output_dir(tmp_path) == tmp_path / "debug"

    def test_release_output_dir(self, tmp_path: Path):
        config = BuildConfig(profile=Profile.RELEASE)
        assert config.output_dir(tmp_path) == tmp_path / "release"

    def test_selected_arch_adds_triple(self, tmp_path: Path):
        config = BuildConfig(target_arch=TargetArch.from_option(CpuArchitecture.ARM64))
        assert config.output_dir(tmp_path) == tmp_path / "aarch64-pc-windows-msvc" / "debug"

    def test_from_option_none_is_host(self):
        arch = TargetArch.from_option(None)
        assert arch.selected is False
        assert arch.arch is CpuArchitecture.host()

    def test_inf2cat_os(self):
        assert CpuArchitecture.AMD64.inf2cat_os == "10_x64"
        assert CpuArchitecture.ARM64.inf2cat_os == "Server10_arm64"


class TestTopologyModels:
    def test_single_crate_work_unit(self, tmp_path: Path):
        topology = SingleCrate(project=_project("drv", tmp_path / "drv"))
        units = topology.work_units()
        assert [u.name for u in units] == ["drv"]
        assert units[0].workspace_id == "drv"

    def test_member_crate_uses_workspace_id(self, tmp_path: Path):
        topology = SingleCrate(
            project=_project("drv", tmp_path / "ws" / "drv"), workspace_root=tmp_path / "ws"
        )
        assert topology.work_units()[0].workspace_id == "ws"

    def test_invalid_project_becomes_error_unit(self, tmp_path: Path):
        invalid = InvalidProject(
            name="bad",
            root=tmp_path,
            stage="classification",
            error_type="ClassificationError",
            message="missing driver-type",
        )
        unit = Workspace(root=tmp_path, projects=[invalid]).work_units()[0]
        assert unit.project is None
        assert unit.error_stage == "classification"

    def test_emulated_workspace_flattens_in_member_order(self, tmp_path: Path):
        topology = EmulatedWorkspace(
            root=tmp_path,
            members=[
                Workspace(
                    root=tmp_path / "a",
                    projects=[_project("a1", tmp_path / "a" / "a1"), _project("a2", tmp_path / "a" / "a2")],
                ),
                UnresolvedMember(root=tmp_path / "b", error_type="MetadataError", message="x"),
                SingleCrate(project=_project("c", tmp_path / "c")),
            ],
        )
        units = topology.work_units()
        assert [u.name for u in units] == ["a1", "a2", "b", "c"]
        assert [u.workspace_id for u in units] == ["a", "a", "b", "c"]
        assert units[1].error_stage is None
        assert units[2].error_stage == "metadata"


class TestResults:
    def _result(self, name: str, build: BuildStatus, package: PackageStatus) -> ProjectResult:
        return ProjectResult(
            workspace_id="ws",
            project_name=name,
            build=BuildOutcome(status=build),
            package=PackageOutcome(status=package),
        )

    def test_not_applicable_counts_as_success(self):
        result = self._result("lib", BuildStatus.SUCCESS, PackageStatus.NOT_APPLICABLE)
        assert result.succeeded

    def test_exit_code_nonzero_iff_any_failure(self, tmp_path: Path):
        ok = self._result("a", BuildStatus.SUCCESS, PackageStatus.PACKAGED)
        bad = self._result("b", BuildStatus.FAILURE, PackageStatus.SKIPPED)
        assert RunResult(root=tmp_path, results=[ok]).exit_code == 0
        run = RunResult(root=tmp_path, results=[ok, bad])
        assert run.exit_code == 1
        assert [r.project_name for r in run.failed_projects] == ["b"]
        assert run.get("b") is bad
        assert run.get("missing") is None

    def test_package_state_display_name(self):
        assert PackageState.CATALOG_GENERATED.display_name == "Catalog generated"
