"""Package Task — turns a driver's compiled artifacts into a signed package.

The task walks the packaging state machine in a fixed order::

    NOT_STARTED -> STAMPED -> CATALOG_GENERATED -> VERIFIED -> SIGNED
        -> [SIGNATURE_VERIFIED] -> PACKAGED

Any step failure moves the machine to FAILED with the attempted stage and
the tool diagnostic preserved. Every external tool is invoked exactly
once; a failed run leaves the partial package directory on disk.

Layout (``out`` is ``BuildConfig.output_dir(target_directory)``)::

    <root>/<stem>.inx                 install-description template
    out/<stem>.dll, out/<stem>.pdb    compiled artifacts
    out/deps/<stem>.map               linker map (optional)
    out/<cert>.cer                    exported test certificate
    out/<stem>_package/               final package directory
"""

from __future__ import annotations

import logging
import re
import shutil
from collections.abc import Callable
from pathlib import Path

from wdkforge.config import ToolSettings
from wdkforge.core.cert_store import CertificateStore, CertificateStoreError
from wdkforge.core.exec import CommandError, RunCommand
from wdkforge.core.package_machine import PackageStateMachine
from wdkforge.core.wdk import WdkConfigError, WdkToolchain
from wdkforge.errors import (
    CatalogError,
    CertificateGenerationError,
    PackageAssemblyError,
    PackageTaskError,
    SignatureVerificationError,
    SigningError,
    StampError,
    VerificationError,
)
from wdkforge.models.config import BuildConfig
from wdkforge.models.package import PackageState
from wdkforge.models.project import DriverKind, DriverModel, KmdfParams, Project, UmdfParams
from wdkforge.models.results import PackageOutcome, PackageStatus

logger = logging.getLogger(__name__)

# InfVerif shipped with WDK builds from 25798 onwards has no samples flag,
# so sample-class verification is skipped on those builds.
MISSING_SAMPLE_FLAG_WDK_BUILD = 25798
SAMPLE_CLASS_INFVERIF_FLAG = "/msft"

_SECTION_RE = re.compile(r"^\s*\[(?P<name>[^\]]+)\]")
_CLASS_RE = re.compile(r"^\s*Class\s*=\s*(?P<value>[^;\s]+)", re.IGNORECASE)

_STAGE_ERRORS: dict[PackageState, type[PackageTaskError]] = {
    PackageState.STAMPED: StampError,
    PackageState.CATALOG_GENERATED: CatalogError,
    PackageState.VERIFIED: VerificationError,
    PackageState.SIGNED: SigningError,
    PackageState.SIGNATURE_VERIFIED: SignatureVerificationError,
    PackageState.PACKAGED: PackageAssemblyError,
}


class PackageTask:
    """Packages one driver project.

    Parameters
    ----------
    project:
        A project classified as a driver.
    config:
        Run-wide build configuration.
    command_exec:
        Command backend for the WDK and signing tools.
    cert_store:
        The named certificate store capability.
    wdk:
        WDK toolchain, consulted for the build number on sample builds.
    settings:
        Certificate store/name and timestamp service.
    """

    def __init__(
        self,
        project: Project,
        config: BuildConfig,
        *,
        command_exec: RunCommand,
        cert_store: CertificateStore,
        wdk: WdkToolchain,
        settings: ToolSettings,
    ) -> None:
        if not isinstance(project.kind, DriverKind):
            raise ValueError(f"Package {project.name} is not a driver project")
        self.project = project
        self.driver: DriverKind = project.kind
        self.config = config
        self._exec = command_exec
        self._cert_store = cert_store
        self._wdk = wdk
        self._settings = settings
        self.machine = PackageStateMachine(project.name)

        stem = project.artifact_stem
        ext = self.driver.model.binary_extension
        out = config.output_dir(project.target_directory)
        self.output_dir = out

        # src paths
        self.src_inx = project.root / f"{stem}.inx"
        self.src_binary = out / f"{stem}.dll"
        self.src_pdb = out / f"{stem}.pdb"
        self.src_map = out / "deps" / f"{stem}.map"
        self.src_cert = out / settings.cert_file_name

        # destination paths
        self.package_dir = out / f"{stem}_package"
        self.dest_inf = self.package_dir / f"{stem}.inf"
        self.dest_binary = self.package_dir / f"{stem}.{ext}"
        self.dest_pdb = self.package_dir / f"{stem}.pdb"
        self.dest_map = self.package_dir / f"{stem}.map"
        self.dest_cat = self.package_dir / f"{stem}.cat"
        self.dest_cert = self.package_dir / settings.cert_file_name

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def steps(self) -> list[tuple[PackageState, Callable[[], None]]]:
        """The ordered (target state, action) pairs for this configuration."""
        steps: list[tuple[PackageState, Callable[[], None]]] = [
            (PackageState.STAMPED, self.stamp),
            (PackageState.CATALOG_GENERATED, self.generate_catalog),
            (PackageState.VERIFIED, self.verify_inf),
            (PackageState.SIGNED, self.sign),
        ]
        if self.config.verify_signature:
            steps.append((PackageState.SIGNATURE_VERIFIED, self.verify_signatures))
        steps.append((PackageState.PACKAGED, self.assemble))
        return steps

    def run(self) -> PackageOutcome:
        """Run every step; return the outcome, ``FAILED`` on the first error."""
        logger.info("Packaging driver: %s", self.project.name)
        for target, action in self.steps():
            try:
                action()
            except PackageTaskError as exc:
                return self._failed(target, exc)
            except OSError as exc:
                return self._failed(target, _STAGE_ERRORS[target](target, str(exc)))
            self.machine.transition(target)

        logger.info("Driver package created at: %s", self.package_dir)
        return PackageOutcome(
            status=PackageStatus.PACKAGED,
            states_visited=self.machine.history,
            package_dir=self.package_dir,
        )

    def _failed(self, stage: PackageState, exc: PackageTaskError) -> PackageOutcome:
        cause = f"{exc}\n{exc.diagnostic}".strip() if exc.diagnostic else str(exc)
        self.machine.fail(stage, cause)
        logger.error("Packaging %s failed at %s: %s", self.project.name, stage.value, exc)
        return PackageOutcome(
            status=PackageStatus.FAILED,
            states_visited=self.machine.history,
            failed_stage=stage,
            error_type=type(exc).__name__,
            cause=cause,
            package_dir=self.package_dir,
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def stamp(self) -> None:
        """Lay out the package directory and stamp the install-description."""
        stage = PackageState.STAMPED
        logger.debug("Checking for .inx file, path: %s", self.src_inx)
        if not self.src_inx.is_file():
            raise StampError(
                stage,
                f"Missing .inx file in source path: {self.src_inx}, Please ensure you are "
                "in a Rust driver project directory.",
            )

        logger.info("Copying files to target package folder: %s", self.package_dir)
        self.package_dir.mkdir(parents=True, exist_ok=True)
        self._copy(stage, self.src_binary, self.dest_binary)
        self._copy(stage, self.src_pdb, self.dest_pdb)
        self._copy(stage, self.src_inx, self.dest_inf)
        if self.src_map.is_file():
            self._copy(stage, self.src_map, self.dest_map)
        else:
            logger.debug("No linker map file found at %s", self.src_map)

        logger.info("Running stampinf command.")
        args = [
            "-f",
            str(self.dest_inf),
            "-d",
            "*",
            "-a",
            self.config.target_arch.arch.value,
            "-c",
            self.dest_cat.name,
            "-v",
            "*",
            *self.framework_version_flags(),
        ]
        self._run_tool(stage, "stampinf", args, "Error running stampinf command")

    def generate_catalog(self) -> None:
        logger.info("Running inf2cat command.")
        args = [
            f"/driver:{self.package_dir}",
            f"/os:{self.config.target_arch.arch.inf2cat_os}",
            "/uselocaltime",
        ]
        self._run_tool(
            PackageState.CATALOG_GENERATED, "inf2cat", args, "Error running inf2cat command"
        )

    def verify_inf(self) -> None:
        """Run infverif with the flag set matching the driver's class."""
        stage = PackageState.VERIFIED
        sample_class = self.resolve_sample_class()
        args = ["/v", "/u" if self.driver.model is DriverModel.UMDF else "/w"]

        if sample_class:
            try:
                build_number = self._wdk.detect_build_number()
            except WdkConfigError as exc:
                raise VerificationError(stage, f"Unable to detect WDK build number: {exc}") from exc
            if build_number >= MISSING_SAMPLE_FLAG_WDK_BUILD:
                logger.debug(
                    "InfVerif in WDK Build %d is bugged and does not contain the samples flag.",
                    build_number,
                )
                logger.info("Skipping InfVerif for samples class. WDK Build: %d", build_number)
                return
            args.append(SAMPLE_CLASS_INFVERIF_FLAG)

        args.append(str(self.dest_inf))
        logger.info("Running infverif command.")
        self._run_tool(stage, "infverif", args, "Error verifying inf file using infverif")

    def sign(self) -> None:
        """Sign the driver binary and the catalog with the test certificate."""
        self.ensure_certificate()
        for path in (self.dest_binary, self.dest_cat):
            logger.info("Signing %s using signtool.", path.name)
            args = [
                "sign",
                "/v",
                "/s",
                self._settings.cert_store,
                "/n",
                self._settings.cert_name,
                "/t",
                self._settings.timestamp_url,
                "/fd",
                "SHA256",
                str(path),
            ]
            self._run_tool(
                PackageState.SIGNED, "signtool", args, f"Error signing {path.name} using signtool"
            )

    def ensure_certificate(self) -> None:
        """Make the named test certificate available as a file.

        An existing exported certificate is reused untouched; otherwise the
        certificate is exported from the store, or generated when the store
        does not have it.
        """
        stage = PackageState.SIGNED
        if self.src_cert.is_file():
            logger.debug("Reusing certificate file: %s", self.src_cert)
            return
        name = self._settings.cert_name
        try:
            if self._cert_store.exists(name):
                self._cert_store.export(name, self.src_cert)
            else:
                self._cert_store.create(name, self.src_cert)
        except CertificateStoreError as exc:
            raise CertificateGenerationError(stage, str(exc)) from exc
        if not self.src_cert.is_file():
            raise CertificateGenerationError(
                stage, f"Certificate file was not created: {self.src_cert}"
            )

    def verify_signatures(self) -> None:
        logger.info("Verifying signatures for driver binary and cat file using signtool")
        for path in (self.dest_binary, self.dest_cat):
            self._run_tool(
                PackageState.SIGNATURE_VERIFIED,
                "signtool",
                ["verify", "/v", "/pa", str(path)],
                f"Error verifying signed {path.name} using signtool",
            )

    def assemble(self) -> None:
        """Copy the certificate in and check the package is complete."""
        stage = PackageState.PACKAGED
        self._copy(stage, self.src_cert, self.dest_cert)
        required = [self.dest_binary, self.dest_pdb, self.dest_inf, self.dest_cat, self.dest_cert]
        missing = [p.name for p in required if not p.is_file()]
        if missing:
            raise PackageAssemblyError(
                stage, f"Package directory {self.package_dir} is missing: {', '.join(missing)}"
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def framework_version_flags(self) -> list[str]:
        """stampinf flags for the framework version, empty for WDM."""
        params = self.driver.params
        if self.driver.model is DriverModel.KMDF:
            kmdf = params if isinstance(params, KmdfParams) else KmdfParams()
            return ["-k", f"{kmdf.kmdf_version_major}.{kmdf.target_kmdf_version_minor}"]
        if self.driver.model is DriverModel.UMDF:
            umdf = params if isinstance(params, UmdfParams) else UmdfParams()
            return ["-u", f"{umdf.umdf_version_major}.{umdf.target_umdf_version_minor}.0"]
        return []

    def resolve_sample_class(self) -> bool:
        """Decide whether this driver is verified as a sample-class package.

        A per-project ``sample-class`` override wins. Without one, the class
        declared in the ``.inx`` must agree with the run-wide ``--sample``
        flag; a mismatch is a ``VerificationError`` rather than a silent
        switch to the wrong flag set.
        """
        if self.driver.sample_class_override is not None:
            return self.driver.sample_class_override
        detected = inx_declares_sample_class(self.src_inx)
        if detected != self.config.sample_class:
            declared = "Sample" if detected else "a non-sample class"
            requested = "sample" if self.config.sample_class else "non-sample"
            raise VerificationError(
                PackageState.VERIFIED,
                f"{self.src_inx.name} declares {declared} but the build was run as "
                f"{requested}; set [package.metadata.wdk] sample-class for "
                f"{self.project.name} to override",
            )
        return detected

    def _copy(self, stage: PackageState, src: Path, dest: Path) -> None:
        logger.debug("Copying src file %s to dest %s", src, dest)
        try:
            shutil.copy2(src, dest)
        except OSError as exc:
            raise _STAGE_ERRORS[stage](
                stage, f"Failed to copy file, src: {src}, dest: {dest}, error: {exc}"
            ) from exc

    def _run_tool(self, stage: PackageState, command: str, args: list[str], message: str) -> None:
        try:
            self._exec.run(command, args, cwd=self.package_dir)
        except CommandError as exc:
            raise _STAGE_ERRORS[stage](stage, message, exc.diagnostic) from exc


def inx_declares_sample_class(inx_path: Path) -> bool:
    """Return ``True`` if the ``[Version]`` section sets ``Class = Sample``."""
    section = ""
    with inx_path.open(encoding="utf-8", errors="replace") as handle:
        for line in handle:
            header = _SECTION_RE.match(line)
            if header:
                section = header.group("name").strip().lower()
                continue
            if section != "version":
                continue
            match = _CLASS_RE.match(line)
            if match:
                return match.group("value").strip('"').lower() == "sample"
    return False
