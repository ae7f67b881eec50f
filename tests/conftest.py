"""Shared test fixtures for wdkforge."""

from __future__ import annotations

import json
import subprocess
import tomllib
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from wdkforge.config import ToolSettings
from wdkforge.core.cert_store import InMemoryCertificateStore
from wdkforge.core.exec import CommandError
from wdkforge.core.metadata import declared_member_dirs
from wdkforge.core.wdk import WdkToolchain
from wdkforge.models.config import BuildConfig, CpuArchitecture, TargetArch

# ---------------------------------------------------------------------------
# Fake toolchain
# ---------------------------------------------------------------------------


def _load(manifest: Path) -> dict[str, Any]:
    with manifest.open("rb") as handle:
        return tomllib.load(handle)


class FakeToolchain:
    """Scripted ``RunCommand`` standing in for cargo and the WDK tools.

    ``cargo metadata`` answers are computed from the ``Cargo.toml`` files on
    disk, with packages listed alphabetically the way the real tool sorts
    package ids. ``cargo build`` writes the artifacts a cdylib build leaves
    behind; ``inf2cat`` writes the catalog. Every call is recorded.

    Parameters
    ----------
    fail_builds:
        Package names whose ``cargo build`` fails with a compiler error.
    fail_tools:
        Tool names (``stampinf``, ``inf2cat``, ``infverif``, ``signtool``)
        that exit non-zero.
    fail_metadata:
        Directories whose ``cargo metadata`` query fails.
    target_dirs:
        Workspace roots mapped to the target directory the metadata tool
        reports for them, as a ``build.target-dir`` override in
        ``.cargo/config.toml`` would. Others use ``<root>/target``.
    """

    def __init__(
        self,
        *,
        fail_builds: set[str] | None = None,
        fail_tools: set[str] | None = None,
        fail_metadata: set[Path] | None = None,
        target_dirs: dict[Path, Path] | None = None,
    ) -> None:
        self.fail_builds = set(fail_builds or ())
        self.fail_tools = set(fail_tools or ())
        self.fail_metadata = {p.resolve() for p in (fail_metadata or ())}
        self.target_dirs = {k.resolve(): v for k, v in (target_dirs or {}).items()}
        self.calls: list[tuple[str, list[str], Path | None]] = []

    # -- RunCommand ------------------------------------------------------

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Any = None,
    ) -> subprocess.CompletedProcess[str]:
        args = list(args)
        self.calls.append((command, args, cwd))
        if command == "cargo" and args[0] == "metadata":
            return self._ok(command, args, self._metadata(Path(args[args.index("--manifest-path") + 1])))
        if command == "cargo" and args[0] == "build":
            return self._build(command, args)
        if command in self.fail_tools:
            raise CommandError(
                command, args, returncode=1, stdout="", stderr=f"{command}: simulated failure"
            )
        if command == "inf2cat":
            driver_dir = Path(args[0].removeprefix("/driver:"))
            for inf in driver_dir.glob("*.inf"):
                inf.with_suffix(".cat").write_bytes(b"catalog")
        return self._ok(command, args, "")

    # -- Inspection helpers ----------------------------------------------

    def commands(self) -> list[str]:
        return [c for c, _, _ in self.calls]

    def tool_calls(self, command: str) -> list[list[str]]:
        return [a for c, a, _ in self.calls if c == command]

    def built_packages(self) -> list[str]:
        return [a[a.index("-p") + 1] for c, a, _ in self.calls if c == "cargo" and a[0] == "build"]

    # -- cargo simulation ------------------------------------------------

    @staticmethod
    def _ok(command: str, args: list[str], stdout: str) -> subprocess.CompletedProcess[str]:
        return subprocess.CompletedProcess([command, *args], 0, stdout=stdout, stderr="")

    @staticmethod
    def workspace_root_of(crate_dir: Path) -> Path:
        crate_dir = crate_dir.resolve()
        for candidate in (crate_dir, *crate_dir.parents):
            manifest = candidate / "Cargo.toml"
            if not manifest.is_file():
                continue
            table = _load(manifest).get("workspace")
            if not isinstance(table, dict):
                continue
            if candidate == crate_dir or crate_dir in declared_member_dirs(candidate, table):
                return candidate
        return crate_dir

    def target_dir_of(self, root: Path) -> Path:
        return self.target_dirs.get(root, root / "target")

    def _metadata(self, manifest_path: Path) -> str:
        directory = manifest_path.parent.resolve()
        if directory in self.fail_metadata:
            raise CommandError(
                "cargo",
                ["metadata"],
                returncode=101,
                stderr=f"error: failed to load manifest for {directory.name}",
            )
        root = self.workspace_root_of(directory)
        root_manifest = _load(root / "Cargo.toml")
        workspace = root_manifest.get("workspace")

        package_dirs: list[Path] = []
        if "package" in root_manifest:
            package_dirs.append(root)
        if isinstance(workspace, dict):
            package_dirs += [d for d in declared_member_dirs(root, workspace) if d != root]

        packages = sorted(
            (self._package_entry(d) for d in package_dirs), key=lambda p: p["name"]
        )
        metadata = workspace.get("metadata") if isinstance(workspace, dict) else None
        return json.dumps(
            {
                "packages": packages,
                "workspace_root": str(root),
                "target_directory": str(self.target_dir_of(root)),
                "metadata": metadata,
            }
        )

    @staticmethod
    def _package_entry(crate_dir: Path) -> dict[str, Any]:
        manifest = _load(crate_dir / "Cargo.toml")
        package = manifest["package"]
        lib = manifest.get("lib", {})
        kinds = lib.get("crate-type", ["lib"])
        deps = [
            {"name": name, "path": str((crate_dir / spec["path"]).resolve())}
            if isinstance(spec, dict) and "path" in spec
            else {"name": name}
            for name, spec in manifest.get("dependencies", {}).items()
        ]
        return {
            "name": package["name"],
            "version": package.get("version", "0.1.0"),
            "manifest_path": str(crate_dir / "Cargo.toml"),
            "metadata": package.get("metadata"),
            "targets": [{"name": package["name"].replace("-", "_"), "kind": kinds}],
            "dependencies": deps,
        }

    def _build(self, command: str, args: list[str]) -> subprocess.CompletedProcess[str]:
        name = args[args.index("-p") + 1]
        crate_dir = Path(args[args.index("--manifest-path") + 1]).parent.resolve()
        if name in self.fail_builds:
            message = {
                "reason": "compiler-message",
                "message": {
                    "level": "error",
                    "rendered": f"error[E0425]: cannot find value `x` in {name}",
                },
            }
            raise CommandError(
                command,
                args,
                returncode=101,
                stdout=json.dumps(message) + "\n",
                stderr="error: could not compile",
            )

        out = self.target_dir_of(self.workspace_root_of(crate_dir))
        if "--target" in args:
            out = out / args[args.index("--target") + 1]
        out = out / ("release" if args[args.index("--profile") + 1] == "release" else "debug")
        manifest = _load(crate_dir / "Cargo.toml")
        if "cdylib" in manifest.get("lib", {}).get("crate-type", []):
            stem = name.replace("-", "_")
            (out / "deps").mkdir(parents=True, exist_ok=True)
            (out / f"{stem}.dll").write_bytes(f"binary:{name}".encode())
            (out / f"{stem}.pdb").write_bytes(b"pdb")
            (out / "deps" / f"{stem}.map").write_text("map", encoding="utf-8")
        return self._ok(command, args, '{"reason":"build-finished","success":true}\n')


# ---------------------------------------------------------------------------
# Project tree builders
# ---------------------------------------------------------------------------


def write_crate(
    directory: Path,
    name: str,
    *,
    driver_type: str | None = "KMDF",
    cdylib: bool = True,
    inx_class: str = "System",
    extra: str = "",
) -> Path:
    """Write a crate manifest (and ``.inx`` for drivers) into *directory*."""
    directory.mkdir(parents=True, exist_ok=True)
    lines = [f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n']
    if cdylib:
        lines.append('[lib]\ncrate-type = ["cdylib"]\n')
    if driver_type is not None:
        lines.append(f'[package.metadata.wdk.driver-model]\ndriver-type = "{driver_type}"\n')
    if extra:
        lines.append(extra)
    (directory / "Cargo.toml").write_text("\n".join(lines), encoding="utf-8")
    (directory / "src").mkdir(exist_ok=True)
    (directory / "src" / "lib.rs").write_text("", encoding="utf-8")
    if driver_type is not None:
        stem = name.replace("-", "_")
        (directory / f"{stem}.inx").write_text(
            f'[Version]\nSignature="$WINDOWS NT$"\nClass={inx_class}\n'
            f"CatalogFile={stem}.cat\n\n[Strings]\nClass=Ignored\n",
            encoding="utf-8",
        )
    return directory


def write_workspace(directory: Path, members: list[str], *, extra: str = "") -> Path:
    """Write a workspace manifest declaring *members* in the given order."""
    directory.mkdir(parents=True, exist_ok=True)
    quoted = ", ".join(f'"{m}"' for m in members)
    (directory / "Cargo.toml").write_text(
        f'[workspace]\nmembers = [{quoted}]\nresolver = "2"\n{extra}', encoding="utf-8"
    )
    return directory


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def tmp_dir(tmp_path: Path) -> Path:
    """Provide a resolved temporary directory for project trees."""
    return tmp_path.resolve()


@pytest.fixture
def fake_exec() -> FakeToolchain:
    """Provide a fake toolchain with no scripted failures."""
    return FakeToolchain()


@pytest.fixture
def cert_store() -> InMemoryCertificateStore:
    """Provide an empty in-memory certificate store."""
    return InMemoryCertificateStore()


@pytest.fixture
def tool_settings(tmp_dir: Path) -> ToolSettings:
    """Provide settings that do not depend on the machine environment."""
    return ToolSettings(
        _env_file=None,
        wdk_content_root=tmp_dir / "wdk",
        wdk_build_number=22621,
    )


@pytest.fixture
def wdk(tmp_dir: Path) -> WdkToolchain:
    """Provide a WDK toolchain pinned to a pre-25798 build."""
    return WdkToolchain(content_root=tmp_dir / "wdk", build_number=22621)


@pytest.fixture
def build_config() -> BuildConfig:
    """Provide a dev build for an explicit amd64 host."""
    return BuildConfig(target_arch=TargetArch(arch=CpuArchitecture.AMD64))


@pytest.fixture
def make_crate() -> Callable[..., Path]:
    """Factory fixture: write a crate manifest into a directory."""
    return write_crate


@pytest.fixture
def make_workspace() -> Callable[..., Path]:
    """Factory fixture: write a workspace manifest into a directory."""
    return write_workspace


@pytest.fixture
def make_toolchain() -> Callable[..., FakeToolchain]:
    """Factory fixture: build a fake toolchain with scripted failures."""
    return FakeToolchain
