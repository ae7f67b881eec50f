"""Unit tests for the Orchestrator — per-unit dispatch and error capture."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from wdkforge.core.orchestrator import Orchestrator
from wdkforge.errors import AmbiguousTopologyError, MetadataError
from wdkforge.models.config import BuildConfig
from wdkforge.models.package import PackageState
from wdkforge.models.results import BuildStatus, PackageStatus


@pytest.fixture
def make_orchestrator(build_config, cert_store, tool_settings, wdk):
    def _factory(exec_, config: BuildConfig = build_config) -> Orchestrator:
        return Orchestrator(
            config,
            settings=tool_settings,
            command_exec=exec_,
            cert_store=cert_store,
            wdk=wdk,
        )

    return _factory


class TestOrchestrator:
    def test_driver_is_built_then_packaged(self, tmp_dir: Path, fake_exec, make_crate, make_orchestrator):
        crate = make_crate(tmp_dir / "drv", "drv")
        result = make_orchestrator(fake_exec).resolve_and_run(crate)
        assert result.exit_code == 0
        project = result.get("drv")
        assert project.kind_label == "Driver (KMDF)"
        assert project.build.status is BuildStatus.SUCCESS
        assert project.package.status is PackageStatus.PACKAGED
        assert fake_exec.commands()[:2] == ["cargo", "cargo"]

    def test_non_driver_not_packaged(self, tmp_dir: Path, fake_exec, make_crate, make_orchestrator):
        crate = make_crate(tmp_dir / "lib", "lib", driver_type=None)
        result = make_orchestrator(fake_exec).resolve_and_run(crate)
        project = result.get("lib")
        assert project.succeeded
        assert project.package.status is PackageStatus.NOT_APPLICABLE
        assert not (crate / "target" / "debug" / "lib_package").exists()
        assert "stampinf" not in fake_exec.commands()

    def test_driver_metadata_without_cdylib_warns_neutrally(
        self, tmp_dir: Path, fake_exec, make_crate, make_orchestrator, caplog
    ):
        crate = make_crate(tmp_dir / "drv", "drv", cdylib=False)
        with caplog.at_level(logging.WARNING):
            result = make_orchestrator(fake_exec).resolve_and_run(crate)
        assert result.get("drv").package.status is PackageStatus.NOT_APPLICABLE
        assert "No cdylib target found" in caplog.text
        assert "drv is not a driver project" in caplog.text
        assert "No package.metadata.wdk section" not in caplog.text

    def test_build_failure_skips_packaging(
        self, tmp_dir: Path, make_toolchain, make_crate, make_orchestrator
    ):
        crate = make_crate(tmp_dir / "drv", "drv")
        exec_ = make_toolchain(fail_builds={"drv"})
        result = make_orchestrator(exec_).resolve_and_run(crate)
        project = result.get("drv")
        assert project.build.status is BuildStatus.FAILURE
        assert "E0425" in project.build.diagnostic_text
        assert project.package.status is PackageStatus.SKIPPED
        assert result.exit_code == 1
        assert "stampinf" not in exec_.commands()

    def test_package_failure_recorded(
        self, tmp_dir: Path, make_toolchain, make_crate, make_orchestrator
    ):
        crate = make_crate(tmp_dir / "drv", "drv")
        exec_ = make_toolchain(fail_tools={"signtool"})
        result = make_orchestrator(exec_).resolve_and_run(crate)
        package = result.get("drv").package
        assert package.status is PackageStatus.FAILED
        assert package.failed_stage is PackageState.SIGNED
        assert result.exit_code == 1

    def test_invalid_project_recorded(
        self, tmp_dir: Path, fake_exec, make_crate, make_workspace, make_orchestrator
    ):
        ws = make_workspace(tmp_dir / "ws", ["bad", "good"])
        make_crate(ws / "bad", "bad", driver_type="NOPE")
        make_crate(ws / "good", "good")
        result = make_orchestrator(fake_exec).resolve_and_run(ws)
        bad = result.get("bad")
        assert bad.error_stage == "classification"
        assert "ClassificationError" in bad.error
        assert bad.build.status is BuildStatus.SKIPPED
        assert result.get("good").succeeded
        assert fake_exec.built_packages() == ["good"]

    def test_fatal_root_error_propagates(
        self, tmp_dir: Path, make_toolchain, make_crate, make_orchestrator
    ):
        crate = make_crate(tmp_dir / "drv", "drv")
        exec_ = make_toolchain(fail_metadata={crate})
        with pytest.raises(MetadataError):
            make_orchestrator(exec_).resolve_and_run(crate)

    def test_os_error_captured(
        self, tmp_dir: Path, fake_exec, make_crate, make_orchestrator, monkeypatch
    ):
        crate = make_crate(tmp_dir / "drv", "drv")
        orchestrator = make_orchestrator(fake_exec)

        def _boom(project):
            raise PermissionError("target directory is read-only")

        monkeypatch.setattr(orchestrator, "package_project", _boom)
        result = orchestrator.resolve_and_run(crate)
        project = result.get("drv")
        assert project.error_stage == "orchestration"
        assert project.package.error_type == "PermissionError"
        assert result.exit_code == 1

    def test_strict_override(self, tmp_dir: Path, fake_exec, make_crate, make_orchestrator):
        make_crate(tmp_dir, "root-drv")
        make_crate(tmp_dir / "stray", "stray")
        orchestrator = make_orchestrator(fake_exec)
        assert orchestrator.resolve_and_run(tmp_dir).get("root-drv") is not None
        with pytest.raises(AmbiguousTopologyError):
            orchestrator.resolve_and_run(tmp_dir, strict=True)
