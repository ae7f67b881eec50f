"""Project Metadata Reader — normalized view over ``cargo metadata``.

The reader runs the metadata query from the project directory itself so that
project-local configuration (``.cargo/config.toml`` ``build.target-dir``,
``CARGO_TARGET_DIR``) is honoured. The ``target_directory`` it reports is
where the Package Task later looks for build artifacts, so it is taken from
the tool output verbatim and never recomputed.

``cargo metadata`` lists workspace packages in package-id order, not the
order the manifest declares them in. The reader therefore also parses the
manifest with ``tomllib`` and re-orders the packages to follow
``[workspace].members``.
"""

from __future__ import annotations

import json
import logging
import tomllib
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from wdkforge.core.exec import CommandError, RunCommand
from wdkforge.errors import MetadataError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "Cargo.toml"

_GLOB_CHARS = frozenset("*?[")


class RawTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    kind: list[str] = []


class RawDependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    path: Path | None = None  # set for path dependencies


class RawPackage(BaseModel):
    """One package entry as reported by the metadata query tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    version: str = ""
    manifest_path: Path
    metadata: dict[str, Any] | None = None
    targets: list[RawTarget] = []
    dependencies: list[RawDependency] = []

    @property
    def root(self) -> Path:
        return self.manifest_path.parent

    @property
    def has_cdylib_target(self) -> bool:
        return any("cdylib" in t.kind for t in self.targets)


class WorkspaceMetadata(BaseModel):
    """Normalized project graph for one manifest directory."""

    model_config = ConfigDict(frozen=True)

    manifest_path: Path
    workspace_root: Path
    target_directory: Path
    packages: list[RawPackage] = []  # manifest-declared member order
    workspace_metadata: dict[str, Any] | None = None
    declares_members: bool = False  # manifest has a non-empty [workspace].members
    has_package: bool = False  # manifest has a [package] table

    @property
    def package_names(self) -> list[str]:
        return [p.name for p in self.packages]

    def package_at(self, directory: Path) -> RawPackage | None:
        """Return the workspace package whose root is *directory*."""
        directory = directory.resolve()
        for package in self.packages:
            if package.root.resolve() == directory:
                return package
        return None


class MetadataReader:
    """Reads and normalizes package/workspace manifests.

    Parameters
    ----------
    command_exec:
        Command backend used to run the metadata query tool.
    cargo_command:
        Name or path of the cargo executable.
    """

    def __init__(self, command_exec: RunCommand, cargo_command: str = "cargo") -> None:
        self._exec = command_exec
        self._cargo = cargo_command

    def read(self, directory: Path) -> WorkspaceMetadata:
        """Return the normalized metadata for the manifest in *directory*.

        Raises ``MetadataError`` when the manifest is absent or malformed,
        or when the metadata query exits non-zero or prints invalid JSON.
        """
        manifest_path = directory / MANIFEST_NAME
        manifest = read_manifest(manifest_path)
        raw = self._query(directory, manifest_path)

        try:
            packages = [RawPackage.model_validate(p) for p in raw.get("packages", [])]
            workspace_root = Path(raw["workspace_root"])
            target_directory = Path(raw["target_directory"])
        except (KeyError, TypeError, ValidationError) as exc:
            raise MetadataError(
                manifest_path, f"unexpected metadata layout: {exc}"
            ) from exc

        workspace_table = manifest.get("workspace")
        members = workspace_table.get("members", []) if isinstance(workspace_table, dict) else []
        declares_members = bool(members)
        if declares_members:
            order = declared_member_dirs(directory, workspace_table)
            packages = _order_packages(packages, order)

        logger.debug(
            "Metadata for %s: workspace_root=%s target_directory=%s packages=%s",
            directory,
            workspace_root,
            target_directory,
            [p.name for p in packages],
        )
        return WorkspaceMetadata(
            manifest_path=manifest_path,
            workspace_root=workspace_root,
            target_directory=target_directory,
            packages=packages,
            workspace_metadata=raw.get("metadata"),
            declares_members=declares_members,
            has_package="package" in manifest,
        )

    def _query(self, directory: Path, manifest_path: Path) -> dict[str, Any]:
        args = [
            "metadata",
            "--format-version",
            "1",
            "--no-deps",
            "--manifest-path",
            str(manifest_path),
        ]
        try:
            result = self._exec.run(self._cargo, args, cwd=directory)
        except CommandError as exc:
            raise MetadataError(manifest_path, exc.diagnostic) from exc

        try:
            data = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise MetadataError(manifest_path, f"invalid metadata output: {exc}") from exc
        if not isinstance(data, dict):
            raise MetadataError(manifest_path, "metadata output is not a JSON object")
        return data


# ---------------------------------------------------------------------------
# Manifest helpers
# ---------------------------------------------------------------------------


def has_manifest(directory: Path) -> bool:
    return (directory / MANIFEST_NAME).is_file()


def read_manifest(manifest_path: Path) -> dict[str, Any]:
    """Parse a ``Cargo.toml``; raise ``MetadataError`` if absent or malformed."""
    if not manifest_path.is_file():
        raise MetadataError(manifest_path, "manifest not found")
    try:
        with manifest_path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise MetadataError(manifest_path, f"malformed manifest: {exc}") from exc
    except OSError as exc:
        raise MetadataError(manifest_path, str(exc)) from exc


def declared_member_dirs(root: Path, workspace_table: dict[str, Any]) -> list[Path]:
    """Expand ``[workspace].members`` into directories, in declared order.

    Glob entries expand in sorted order; ``exclude`` entries are dropped.
    """
    excluded = {(root / e).resolve() for e in workspace_table.get("exclude", [])}
    ordered: list[Path] = []
    seen: set[Path] = set()
    for entry in workspace_table.get("members", []):
        if _GLOB_CHARS.intersection(entry):
            candidates = sorted(p for p in root.glob(entry) if has_manifest(p))
        else:
            candidates = [root / entry]
        for candidate in candidates:
            resolved = candidate.resolve()
            if resolved in excluded or resolved in seen:
                continue
            seen.add(resolved)
            ordered.append(resolved)
    return ordered


def _order_packages(packages: list[RawPackage], order: list[Path]) -> list[RawPackage]:
    # Packages outside the member list (a root package) sort first; the sort
    # is stable so ties keep the tool's order.
    index = {path: i for i, path in enumerate(order)}
    return sorted(packages, key=lambda p: index.get(p.root.resolve(), -1))
