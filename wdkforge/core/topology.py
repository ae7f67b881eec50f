"""Topology Resolver — decides how the input directory is built.

Precedence:

1. The directory's manifest declares workspace members  -> ``Workspace``
2. The directory's manifest is a package                -> ``SingleCrate``
   (a crate inside a parent workspace is a workspace member)
3. No manifest: immediate subdirectories holding manifests, in
   lexicographic order; two or more -> ``EmulatedWorkspace``, exactly one
   -> that inner topology is returned as-is
4. Nothing found                                        -> ``NoProjectFoundError``

A root manifest always wins over sibling projects in subdirectories. The
ignored siblings are logged, or rejected with ``AmbiguousTopologyError``
when strict resolution is enabled.
"""

from __future__ import annotations

import logging
from pathlib import Path

from wdkforge.core.classifier import classify
from wdkforge.core.metadata import (
    MetadataReader,
    RawPackage,
    WorkspaceMetadata,
    has_manifest,
)
from wdkforge.errors import (
    AmbiguousTopologyError,
    ClassificationError,
    DiscoveryError,
    MetadataError,
    NoProjectFoundError,
    NotAWorkspaceMemberError,
)
from wdkforge.models.project import Project
from wdkforge.models.topology import (
    EmulatedWorkspace,
    InvalidProject,
    SingleCrate,
    Topology,
    UnresolvedMember,
    Workspace,
)

logger = logging.getLogger(__name__)


class TopologyResolver:
    """Resolves a starting directory into a ``Topology``.

    Parameters
    ----------
    reader:
        Metadata reader used for every manifest directory.
    strict:
        Raise ``AmbiguousTopologyError`` instead of warning when a root
        project directory also holds unrelated sibling projects.
    """

    def __init__(self, reader: MetadataReader, *, strict: bool = False) -> None:
        self._reader = reader
        self._strict = strict

    def resolve(self, start_dir: Path) -> Topology:
        """Return the topology rooted at *start_dir*.

        Raises ``DiscoveryError`` or ``MetadataError`` when the root itself
        cannot be resolved; these are fatal to the run.
        """
        start_dir = start_dir.resolve()
        if not start_dir.is_dir():
            raise NoProjectFoundError(start_dir)

        if has_manifest(start_dir):
            topology = self._resolve_manifest_dir(start_dir)
            self._check_ignored_siblings(start_dir, topology)
            return topology

        logger.info(
            "Checking for valid Rust projects in the working directory: %s", start_dir
        )
        children = project_subdirectories(start_dir)
        if not children:
            raise NoProjectFoundError(start_dir)

        if len(children) == 1:
            logger.debug("Single project directory found: %s", children[0].name)
            return self._resolve_manifest_dir(children[0])

        members: list[SingleCrate | Workspace | UnresolvedMember] = []
        for child in children:
            logger.debug("Resolving emulated workspace member: %s", child.name)
            try:
                members.append(self._resolve_manifest_dir(child))
            except (MetadataError, DiscoveryError) as exc:
                logger.error("Error resolving the child project: %s, error: %s", child.name, exc)
                members.append(
                    UnresolvedMember(
                        root=child,
                        error_type=type(exc).__name__,
                        message=str(exc),
                    )
                )
        return EmulatedWorkspace(root=start_dir, members=members)

    # ------------------------------------------------------------------
    # Single manifest directory
    # ------------------------------------------------------------------

    def _resolve_manifest_dir(self, directory: Path) -> SingleCrate | Workspace:
        directory = directory.resolve()
        metadata = self._reader.read(directory)
        workspace_root = metadata.workspace_root.resolve()

        if metadata.declares_members and workspace_root == directory:
            logger.debug("Running from workspace root: %s", directory)
            projects = [self._make_project(p, metadata) for p in metadata.packages]
            self._check_driver_configurations(directory, projects)
            if not projects:
                raise NoProjectFoundError(directory)
            return Workspace(root=directory, projects=projects)

        if metadata.has_package:
            package = metadata.package_at(directory)
            if package is None:
                raise NotAWorkspaceMemberError(directory)
            project = self._make_project(package, metadata)
            if workspace_root == directory:
                logger.debug("Running from standalone crate: %s", directory)
                return SingleCrate(project=project)
            logger.debug(
                "Running from workspace member %s of workspace %s", directory, workspace_root
            )
            return SingleCrate(project=project, workspace_root=workspace_root)

        # A [workspace] table without members and without a [package].
        raise NoProjectFoundError(directory)

    def _make_project(
        self, package: RawPackage, metadata: WorkspaceMetadata
    ) -> Project | InvalidProject:
        try:
            kind = classify(package, metadata)
        except ClassificationError as exc:
            logger.error("%s", exc)
            return InvalidProject(
                name=package.name,
                root=package.root,
                stage="classification",
                error_type=type(exc).__name__,
                message=str(exc),
            )
        names = set(metadata.package_names)
        return Project(
            name=package.name,
            root=package.root,
            manifest_path=package.manifest_path,
            kind=kind,
            target_directory=metadata.target_directory,
            dependencies=[d.name for d in package.dependencies if d.name in names],
        )

    @staticmethod
    def _check_driver_configurations(
        directory: Path, projects: list[Project | InvalidProject]
    ) -> None:
        configurations = {
            (p.kind.model, p.kind.params)
            for p in projects
            if isinstance(p, Project) and p.is_driver
        }
        if len(configurations) > 1:
            logger.warning(
                "Workspace %s mixes driver configurations (%s); a workspace should "
                "build against a single WDK configuration",
                directory,
                ", ".join(sorted(model.value for model, _ in configurations)),
            )

    # ------------------------------------------------------------------
    # Ambiguity
    # ------------------------------------------------------------------

    def _check_ignored_siblings(self, directory: Path, topology: SingleCrate | Workspace) -> None:
        if isinstance(topology, Workspace):
            claimed = {p.root.resolve() for p in topology.projects}
        else:
            claimed = {topology.project.root.resolve()}

        ignored = [d for d in project_subdirectories(directory) if d.resolve() not in claimed]
        if not ignored:
            return
        if self._strict:
            raise AmbiguousTopologyError(directory, ignored)
        logger.warning(
            "%s has its own manifest; ignoring independent projects in: %s",
            directory,
            ", ".join(d.name for d in ignored),
        )


def project_subdirectories(directory: Path) -> list[Path]:
    """Immediate subdirectories holding a manifest, in lexicographic order."""
    return sorted(
        (child for child in directory.iterdir() if child.is_dir() and has_manifest(child)),
        key=lambda p: p.name,
    )
