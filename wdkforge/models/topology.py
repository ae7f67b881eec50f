"""Topology models — the discovered shape of the input directory.

Three shapes are modelled as a tagged union dispatched once by the
resolver. Downstream code only sees the flattened, ordered list of
``WorkUnit`` objects returned by ``work_units()``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from wdkforge.models.project import Project


class InvalidProject(BaseModel):
    """A discovered package that could not be turned into a ``Project``."""

    model_config = ConfigDict(frozen=True)

    name: str
    root: Path
    stage: str  # "metadata" or "classification"
    error_type: str
    message: str


class WorkUnit(BaseModel):
    """One entry of the flattened worklist the orchestrator iterates."""

    model_config = ConfigDict(frozen=True)

    workspace_id: str
    name: str
    root: Path
    project: Project | None = None
    error_stage: str | None = None
    error_type: str | None = None
    error_message: str | None = None

    @classmethod
    def from_member(cls, workspace_id: str, member: Project | InvalidProject) -> WorkUnit:
        if isinstance(member, InvalidProject):
            return cls(
                workspace_id=workspace_id,
                name=member.name,
                root=member.root,
                error_stage=member.stage,
                error_type=member.error_type,
                error_message=member.message,
            )
        return cls(
            workspace_id=workspace_id,
            name=member.name,
            root=member.root,
            project=member,
        )


class SingleCrate(BaseModel):
    """A standalone crate, or one member crate of an enclosing workspace."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["single_crate"] = "single_crate"
    project: Project | InvalidProject
    workspace_root: Path | None = None  # set when resolved as a workspace member

    @property
    def root(self) -> Path:
        return self.project.root

    @property
    def workspace_id(self) -> str:
        return (self.workspace_root or self.project.root).name

    def work_units(self) -> list[WorkUnit]:
        return [WorkUnit.from_member(self.workspace_id, self.project)]


class Workspace(BaseModel):
    """A workspace root; members keep manifest-declared order."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["workspace"] = "workspace"
    root: Path
    projects: list[Project | InvalidProject] = []

    @property
    def workspace_id(self) -> str:
        return self.root.name

    def work_units(self) -> list[WorkUnit]:
        return [WorkUnit.from_member(self.workspace_id, p) for p in self.projects]


class UnresolvedMember(BaseModel):
    """An inner directory of an emulated workspace whose metadata failed."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["unresolved"] = "unresolved"
    root: Path
    error_type: str
    message: str

    @property
    def workspace_id(self) -> str:
        return self.root.name

    def work_units(self) -> list[WorkUnit]:
        return [
            WorkUnit(
                workspace_id=self.workspace_id,
                name=self.root.name,
                root=self.root,
                error_stage="metadata",
                error_type=self.error_type,
                error_message=self.message,
            )
        ]


EmulatedMember = Annotated[
    Union[SingleCrate, Workspace, UnresolvedMember], Field(discriminator="kind")
]


class EmulatedWorkspace(BaseModel):
    """A directory holding several independent workspaces or crates.

    Members are in lexicographic directory order.
    """

    model_config = ConfigDict(frozen=True)

    kind: Literal["emulated_workspace"] = "emulated_workspace"
    root: Path
    members: list[EmulatedMember] = []

    def work_units(self) -> list[WorkUnit]:
        units: list[WorkUnit] = []
        for member in self.members:
            units.extend(member.work_units())
        return units


Topology = Annotated[
    Union[SingleCrate, Workspace, EmulatedWorkspace], Field(discriminator="kind")
]
