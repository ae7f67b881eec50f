"""Build configuration models — created once from CLI input, never mutated."""

from __future__ import annotations

import platform
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Profile(str, Enum):
    """Cargo build profile."""

    DEV = "dev"
    RELEASE = "release"

    @property
    def output_dir_name(self) -> str:
        """Directory cargo writes this profile's artifacts into."""
        return "release" if self is Profile.RELEASE else "debug"


class CpuArchitecture(str, Enum):
    """Driver target CPU architecture."""

    AMD64 = "amd64"
    ARM64 = "arm64"

    @property
    def target_triple(self) -> str:
        return _TARGET_TRIPLES[self]

    @property
    def inf2cat_os(self) -> str:
        """Value passed to ``inf2cat /os:``."""
        return _INF2CAT_OS[self]

    @classmethod
    def host(cls) -> CpuArchitecture:
        """Architecture of the machine running the tool."""
        machine = platform.machine().lower()
        if machine in ("arm64", "aarch64"):
            return cls.ARM64
        return cls.AMD64


_TARGET_TRIPLES: dict[CpuArchitecture, str] = {
    CpuArchitecture.AMD64: "x86_64-pc-windows-msvc",
    CpuArchitecture.ARM64: "aarch64-pc-windows-msvc",
}

_INF2CAT_OS: dict[CpuArchitecture, str] = {
    CpuArchitecture.AMD64: "10_x64",
    CpuArchitecture.ARM64: "Server10_arm64",
}


class TargetArch(BaseModel):
    """Target architecture, either the host default or explicitly selected.

    Only a selected architecture is passed to cargo as ``--target``, which
    also moves the artifacts under a ``<triple>`` subdirectory.
    """

    model_config = ConfigDict(frozen=True)

    arch: CpuArchitecture = Field(default_factory=CpuArchitecture.host)
    selected: bool = False

    @classmethod
    def from_option(cls, arch: CpuArchitecture | None) -> TargetArch:
        if arch is None:
            return cls()
        return cls(arch=arch, selected=True)


class BuildConfig(BaseModel):
    """Immutable configuration threaded through the whole run."""

    model_config = ConfigDict(frozen=True)

    profile: Profile = Profile.DEV
    target_arch: TargetArch = TargetArch()
    features: tuple[str, ...] = ()
    sample_class: bool = False
    verify_signature: bool = False
    verbose: bool = False

    def output_dir(self, target_directory: Path) -> Path:
        """Directory holding the compiled artifacts for this configuration."""
        out = target_directory
        if self.target_arch.selected:
            out = out / self.target_arch.arch.target_triple
        return out / self.profile.output_dir_name
