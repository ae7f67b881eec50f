"""Project Classifier — driver vs. non-driver, decided once at discovery.

Driver packaging is opt-in: only a package carrying a
``[package.metadata.wdk]`` table, even an empty one, is a driver. Ordinary
support crates in a workspace must never trigger packaging, so a missing
table is never an error. A present table with a missing or unrecognized
driver model is a ``ClassificationError`` for that package alone.

Recognized manifest shape::

    [package.metadata.wdk.driver-model]
    driver-type = "KMDF"
    kmdf-version-major = 1
    target-kmdf-version-minor = 33

    [package.metadata.wdk]
    sample-class = true        # optional per-project override
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from wdkforge.core.metadata import RawPackage, WorkspaceMetadata
from wdkforge.errors import ClassificationError
from wdkforge.models.project import (
    DriverKind,
    DriverModel,
    KmdfParams,
    NonDriverKind,
    UmdfParams,
)

logger = logging.getLogger(__name__)

WDK_METADATA_KEY = "wdk"

_PARAM_MODELS = {
    DriverModel.KMDF: KmdfParams,
    DriverModel.UMDF: UmdfParams,
}


def classify(
    package: RawPackage,
    workspace: WorkspaceMetadata | None = None,
) -> DriverKind | NonDriverKind:
    """Return the driver classification of *package*.

    When the package's ``wdk`` table has no ``driver-model``, the
    workspace-level ``[workspace.metadata.wdk]`` model is inherited.
    """
    section = wdk_section(package.metadata)
    if section is None:
        return NonDriverKind()

    driver_model_table = section.get("driver-model")
    workspace_model_table = None
    if workspace is not None:
        workspace_section = wdk_section(workspace.workspace_metadata) or {}
        workspace_model_table = workspace_section.get("driver-model")
    if driver_model_table is None and workspace_model_table is not None:
        logger.debug("Package %s inherits the workspace driver-model", package.name)
        driver_model_table = workspace_model_table
    elif workspace_model_table is not None and driver_model_table != workspace_model_table:
        logger.warning(
            "Package %s declares a driver-model that differs from the workspace "
            "driver-model; using the package's own",
            package.name,
        )
    if not isinstance(driver_model_table, dict):
        raise ClassificationError(package.name, "missing [package.metadata.wdk.driver-model] table")

    model = _parse_driver_type(package.name, driver_model_table.get("driver-type"))
    params = _parse_params(package.name, model, driver_model_table)
    override = _parse_sample_override(package.name, section.get("sample-class"))

    if not package.has_cdylib_target:
        logger.warning(
            "No cdylib target found. Skipping driver build workflow for package: %s",
            package.name,
        )
        return NonDriverKind()

    return DriverKind(model=model, params=params, sample_class_override=override)


def wdk_section(metadata: dict[str, Any] | None) -> dict[str, Any] | None:
    """Return the ``wdk`` metadata table, or None when absent.

    An empty table is present: it marks the package as a driver whose
    driver model comes from the workspace.
    """
    if not metadata:
        return None
    section = metadata.get(WDK_METADATA_KEY)
    if section is None:
        return None
    if not isinstance(section, dict):
        return {}  # present but malformed; reported as a missing driver-model
    return section


def _parse_driver_type(package_name: str, value: Any) -> DriverModel:
    if not isinstance(value, str):
        raise ClassificationError(package_name, "driver-type is missing")
    try:
        return DriverModel(value.upper())
    except ValueError:
        allowed = ", ".join(m.value for m in DriverModel)
        raise ClassificationError(
            package_name, f"unrecognized driver-type {value!r} (expected one of {allowed})"
        ) from None


def _parse_params(
    package_name: str, model: DriverModel, table: dict[str, Any]
) -> KmdfParams | UmdfParams | None:
    fields = {k.replace("-", "_"): v for k, v in table.items() if k != "driver-type"}
    param_model = _PARAM_MODELS.get(model)
    if param_model is None:
        if fields:
            raise ClassificationError(
                package_name, f"WDM drivers take no version parameters, got {sorted(fields)}"
            )
        return None
    try:
        return param_model.model_validate(fields, strict=True)
    except ValidationError as exc:
        raise ClassificationError(package_name, f"invalid {model.value} parameters: {exc}") from exc


def _parse_sample_override(package_name: str, value: Any) -> bool | None:
    if value is None or isinstance(value, bool):
        return value
    raise ClassificationError(package_name, f"sample-class must be a boolean, got {value!r}")
