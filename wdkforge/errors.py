"""Exception taxonomy for wdkforge.

Fatal errors (the run has nothing to iterate over):
    ``DiscoveryError`` and ``MetadataError`` raised while resolving the
    root topology.

Per-project errors (recorded in the run report, never raised past the
Orchestrator):
    ``ClassificationError``, ``BuildFailure`` and the ``PackageTaskError``
    family, plus ``MetadataError`` for an inner directory of an emulated
    workspace.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from wdkforge.models.package import PackageState


class WdkForgeError(RuntimeError):
    """Base class for every error raised by wdkforge."""


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


class DiscoveryError(WdkForgeError):
    """The input directory does not describe a usable project topology."""


class NoProjectFoundError(DiscoveryError):
    """Raised when neither the directory nor its children hold a manifest."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(f"No valid Rust projects in the working directory: {directory}")


class AmbiguousTopologyError(DiscoveryError):
    """Raised when a workspace root also has unrelated sibling projects.

    Only raised when strict topology resolution is enabled; otherwise the
    root workspace wins and the siblings are reported in a warning.
    """

    def __init__(self, directory: Path, ignored: list[Path]) -> None:
        self.directory = directory
        self.ignored = ignored
        names = ", ".join(p.name for p in ignored)
        super().__init__(
            f"{directory} is a Rust project but also contains independent projects "
            f"({names}); run from the intended directory with --cwd"
        )


class NotAWorkspaceMemberError(DiscoveryError):
    """Raised when a crate directory is not a member of its parent workspace."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory
        super().__init__(f"Not a workspace member, working directory: {directory}")


# ---------------------------------------------------------------------------
# Metadata and classification
# ---------------------------------------------------------------------------


class MetadataError(WdkForgeError):
    """Raised when a manifest is absent, malformed, or the metadata query fails."""

    def __init__(self, manifest_path: Path, reason: str) -> None:
        self.manifest_path = manifest_path
        self.reason = reason
        super().__init__(f"Error reading project metadata from {manifest_path}: {reason}")


class ClassificationError(WdkForgeError):
    """Raised when a package has driver metadata with no usable driver model."""

    def __init__(self, package_name: str, reason: str) -> None:
        self.package_name = package_name
        self.reason = reason
        super().__init__(f"Invalid driver metadata for package {package_name}: {reason}")


# ---------------------------------------------------------------------------
# Build
# ---------------------------------------------------------------------------


class BuildFailure(WdkForgeError):
    """Raised when the compiler reports a failed build for a project."""

    def __init__(self, package_name: str, diagnostic_text: str) -> None:
        self.package_name = package_name
        self.diagnostic_text = diagnostic_text
        super().__init__(f"Error building package {package_name}")


# ---------------------------------------------------------------------------
# Packaging
# ---------------------------------------------------------------------------


class PackageTaskError(WdkForgeError):
    """Base for failures of the driver packaging state machine.

    ``stage`` is the state the machine was trying to reach; ``diagnostic``
    preserves the underlying tool output.
    """

    def __init__(self, stage: PackageState, message: str, diagnostic: str = "") -> None:
        self.stage = stage
        self.diagnostic = diagnostic
        super().__init__(message)


class StampError(PackageTaskError):
    """Missing ``.inx`` source, missing build artifacts, or stampinf failure."""


class CatalogError(PackageTaskError):
    """inf2cat failed to generate the catalog."""


class VerificationError(PackageTaskError):
    """infverif rejected the install-description or the class flags conflict."""


class SigningError(PackageTaskError):
    """signtool failed to sign the driver binary or the catalog."""


class CertificateGenerationError(SigningError):
    """The test certificate could not be found, exported or created."""


class SignatureVerificationError(PackageTaskError):
    """signtool could not verify a produced signature."""


class PackageAssemblyError(PackageTaskError):
    """The final package directory is missing an expected file."""


# ---------------------------------------------------------------------------
# Scaffolding
# ---------------------------------------------------------------------------


class ScaffoldError(WdkForgeError):
    """Raised when ``wdkforge new`` cannot create the driver project."""
