"""Project models — one compilable unit and its driver classification."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class DriverModel(str, Enum):
    """Windows driver framework a driver crate targets."""

    KMDF = "KMDF"
    UMDF = "UMDF"
    WDM = "WDM"

    @property
    def is_kernel_mode(self) -> bool:
        return self is not DriverModel.UMDF

    @property
    def binary_extension(self) -> str:
        """Extension of the driver binary inside the final package."""
        return "dll" if self is DriverModel.UMDF else "sys"


class KmdfParams(BaseModel):
    """KMDF version parameters from ``[package.metadata.wdk.driver-model]``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    kmdf_version_major: int = 1
    target_kmdf_version_minor: int = 33
    minimum_kmdf_version_minor: int | None = None


class UmdfParams(BaseModel):
    """UMDF version parameters from ``[package.metadata.wdk.driver-model]``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    umdf_version_major: int = 2
    target_umdf_version_minor: int = 33
    minimum_umdf_version_minor: int | None = None


class DriverKind(BaseModel):
    """A package that opted into driver packaging."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["driver"] = "driver"
    model: DriverModel
    params: KmdfParams | UmdfParams | None = None
    sample_class_override: bool | None = None  # package.metadata.wdk.sample-class

    @property
    def label(self) -> str:
        return f"Driver ({self.model.value})"


class NonDriverKind(BaseModel):
    """An ordinary support crate; never packaged."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["non_driver"] = "non_driver"

    @property
    def label(self) -> str:
        return "Non-driver"


ProjectKind = Annotated[Union[DriverKind, NonDriverKind], Field(discriminator="kind")]


class Project(BaseModel):
    """One compilable unit discovered in the input directory.

    The ``kind`` is decided once at discovery time by the classifier and
    is never re-interpreted downstream.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    root: Path
    manifest_path: Path
    kind: ProjectKind
    target_directory: Path
    dependencies: list[str] = []  # package names within the same topology

    @property
    def is_driver(self) -> bool:
        return isinstance(self.kind, DriverKind)

    @property
    def artifact_stem(self) -> str:
        """File stem cargo uses for the crate's artifacts."""
        return self.name.replace("-", "_")
