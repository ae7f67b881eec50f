"""Driver project scaffolding for ``wdkforge new``.

Creates a library crate with ``cargo new`` and turns it into a driver
project: ``src/lib.rs`` entry point, ``build.rs``, ``[package.metadata.wdk]``
driver metadata in ``Cargo.toml``, a ``<stem>.inx`` install-description and,
for kernel-mode drivers, ``.cargo/config.toml``.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from wdkforge.core.exec import CommandError, RunCommand
from wdkforge.errors import ScaffoldError
from wdkforge.models.project import DriverModel

logger = logging.getLogger(__name__)

RESERVED_NAMES = frozenset({"crate", "self", "super", "extern", "_", "-", "new", "build"})
_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_-]*$")

WDK_CRATE_VERSIONS = {
    "wdk": "0.3.1",
    "wdk-alloc": "0.3.1",
    "wdk-build": "0.4.0",
    "wdk-panic": "0.3.1",
    "wdk-sys": "0.4.0",
}

BUILD_RS_TEMPLATE = """\
//! Build script for the Windows Rust Driver crate.

fn main() -> Result<(), wdk_build::ConfigError> {
    wdk_build::configure_wdk_binary_build()
}
"""

CARGO_CONFIG_TEMPLATE = """\
[build]
rustflags = ["-C", "target-feature=+crt-static"]
"""

KERNEL_LIB_RS_TEMPLATE = """\
#![no_std]

#[cfg(not(test))]
extern crate wdk_panic;

#[cfg(not(test))]
use wdk_alloc::WdkAllocator;
use wdk_sys::{NTSTATUS, PCUNICODE_STRING, PDRIVER_OBJECT};

#[cfg(not(test))]
#[global_allocator]
static GLOBAL_ALLOCATOR: WdkAllocator = WdkAllocator;

#[unsafe(export_name = "DriverEntry")]
pub unsafe extern "system" fn driver_entry(
    _driver: PDRIVER_OBJECT,
    _registry_path: PCUNICODE_STRING,
) -> NTSTATUS {
    0
}
"""

UMDF_LIB_RS_TEMPLATE = """\
use wdk_sys::{NTSTATUS, PCUNICODE_STRING, PDRIVER_OBJECT};

#[unsafe(export_name = "DriverEntry")]
pub unsafe extern "system" fn driver_entry(
    _driver: PDRIVER_OBJECT,
    _registry_path: PCUNICODE_STRING,
) -> NTSTATUS {
    0
}
"""

_DRIVER_MODEL_TABLES = {
    DriverModel.KMDF: (
        'driver-type = "KMDF"\nkmdf-version-major = 1\ntarget-kmdf-version-minor = 33\n'
    ),
    DriverModel.UMDF: (
        'driver-type = "UMDF"\numdf-version-major = 2\ntarget-umdf-version-minor = 33\n'
    ),
    DriverModel.WDM: 'driver-type = "WDM"\n',
}

INX_CLASS = "System"
INX_CLASS_GUID = "{4d36e97d-e325-11ce-bfc1-08002be10318}"


def validate_project_name(name: str) -> None:
    """Raise ``ScaffoldError`` unless *name* is a usable crate name."""
    if not name:
        raise ScaffoldError("Project name cannot be empty")
    if not _NAME_RE.match(name):
        raise ScaffoldError(
            f"Invalid project name {name!r}: must start with a letter and contain only "
            "alphanumeric characters, '-' or '_'"
        )
    if name in RESERVED_NAMES:
        raise ScaffoldError(f"Invalid project name {name!r}: reserved name")


class DriverScaffolder:
    """Creates new driver projects.

    Parameters
    ----------
    command_exec:
        Command backend used to invoke ``cargo new``.
    cargo_command:
        Name or path of the cargo executable.
    """

    def __init__(self, command_exec: RunCommand, cargo_command: str = "cargo") -> None:
        self._exec = command_exec
        self._cargo = cargo_command

    def create(self, path: Path, model: DriverModel) -> Path:
        """Create a *model* driver project at *path* and return its directory."""
        path = path.absolute()
        name = path.name
        validate_project_name(name)
        if path.exists():
            raise ScaffoldError(f"Destination already exists: {path}")
        stem = name.replace("-", "_")

        path.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Running cargo new for project: %s", name)
        try:
            self._exec.run(self._cargo, ["new", "--lib", name, "--vcs", "none"], cwd=path.parent)
        except CommandError as exc:
            raise ScaffoldError(f"cargo new failed for {name}: {exc.diagnostic}") from exc

        try:
            self._write_lib_rs(path, model)
            self._update_cargo_toml(path, model)
            (path / f"{stem}.inx").write_text(inx_template(stem, model), encoding="utf-8")
            (path / "build.rs").write_text(BUILD_RS_TEMPLATE, encoding="utf-8")
            if model.is_kernel_mode:
                config_dir = path / ".cargo"
                config_dir.mkdir(exist_ok=True)
                (config_dir / "config.toml").write_text(CARGO_CONFIG_TEMPLATE, encoding="utf-8")
        except OSError as exc:
            raise ScaffoldError(f"Failed to write driver project files in {path}: {exc}") from exc

        logger.info("New Driver Project %s created at %s", stem, path)
        return path

    def _write_lib_rs(self, path: Path, model: DriverModel) -> None:
        template = KERNEL_LIB_RS_TEMPLATE if model.is_kernel_mode else UMDF_LIB_RS_TEMPLATE
        (path / "src").mkdir(exist_ok=True)
        (path / "src" / "lib.rs").write_text(template, encoding="utf-8")

    def _update_cargo_toml(self, path: Path, model: DriverModel) -> None:
        manifest = path / "Cargo.toml"
        content = manifest.read_text(encoding="utf-8").replace("[dependencies]\n", "")
        if not content.endswith("\n"):
            content += "\n"
        manifest.write_text(content + cargo_toml_template(model), encoding="utf-8")


def cargo_toml_template(model: DriverModel) -> str:
    """The manifest tables appended to the ``cargo new`` manifest."""
    deps = ["wdk", "wdk-sys"]
    if model.is_kernel_mode:
        deps = ["wdk", "wdk-alloc", "wdk-panic", "wdk-sys"]
    dependencies = "".join(f'{d} = "{WDK_CRATE_VERSIONS[d]}"\n' for d in deps)
    sections = [
        f"[package.metadata.wdk.driver-model]\n{_DRIVER_MODEL_TABLES[model]}",
        '[lib]\ncrate-type = ["cdylib"]\ntest = false\n',
        f'[build-dependencies]\nwdk-build = "{WDK_CRATE_VERSIONS["wdk-build"]}"\n',
        f"[dependencies]\n{dependencies}",
        '[features]\ndefault = []\nnightly = ["wdk/nightly", "wdk-sys/nightly"]\n',
        '[profile.dev]\npanic = "abort"\nlto = true\n',
        '[profile.release]\npanic = "abort"\nlto = true\n',
    ]
    return "\n" + "\n".join(sections)


def inx_template(stem: str, model: DriverModel) -> str:
    """A minimal install-description for a root-enumerated driver."""
    if model is DriverModel.UMDF:
        install = (
            f"[{stem}_Install.NT]\nCopyFiles=UMDriverCopy\n\n"
            f"[{stem}_Install.NT.Wdf]\nUmdfService={stem},{stem}_UmdfInstall\n"
            f"UmdfServiceOrder={stem}\n\n"
            f"[{stem}_UmdfInstall]\nUmdfLibraryVersion=$UMDFVERSION$\n"
            f"ServiceBinary=%13%\\{stem}.dll\n\n"
            f"[UMDriverCopy]\n{stem}.dll\n\n"
            "[DestinationDirs]\nUMDriverCopy=13\n"
        )
    else:
        install = (
            f"[{stem}_Install.NT]\nCopyFiles=Drivers_Dir\n\n"
            f"[{stem}_Install.NT.Services]\nAddService={stem},0x00000002,{stem}_Service_Inst\n\n"
            f"[{stem}_Service_Inst]\nDisplayName=%ServiceDesc%\nServiceType=1\n"
            f"StartType=3\nErrorControl=1\nServiceBinary=%13%\\{stem}.sys\n\n"
            f"[Drivers_Dir]\n{stem}.sys\n\n"
            "[DestinationDirs]\nDefaultDestDir=13\n"
        )
    return (
        "[Version]\n"
        'Signature="$WINDOWS NT$"\n'
        f"Class={INX_CLASS}\n"
        f"ClassGuid={INX_CLASS_GUID}\n"
        "Provider=%ProviderString%\n"
        f"CatalogFile={stem}.cat\n"
        "DriverVer=\n"
        "PnpLockdown=1\n\n"
        "[SourceDisksNames]\n"
        '1 = %DiskName%,,,""\n\n'
        "[SourceDisksFiles]\n"
        f"{stem}.{model.binary_extension} = 1,,\n\n"
        "[Manufacturer]\n"
        "%StdMfg%=Standard,NT$ARCH$.10.0...16299\n\n"
        "[Standard.NT$ARCH$.10.0...16299]\n"
        f"%DeviceDesc%={stem}_Install, root\\{stem}\n\n"
        f"{install}\n"
        "[Strings]\n"
        f'ProviderString="{stem} Provider"\n'
        'StdMfg="(Standard system devices)"\n'
        f'DiskName="{stem} Installation Disk"\n'
        f'DeviceDesc="{stem} Device"\n'
        f'ServiceDesc="{stem} Service"\n'
    )
