"""Driver packaging state machine models — deterministic transitions."""

from __future__ import annotations

from enum import Enum


class PackageState(str, Enum):
    """States of the per-driver packaging pipeline."""

    NOT_STARTED = "not_started"
    STAMPED = "stamped"
    CATALOG_GENERATED = "catalog_generated"
    VERIFIED = "verified"
    SIGNED = "signed"
    SIGNATURE_VERIFIED = "signature_verified"
    PACKAGED = "packaged"
    FAILED = "failed"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").capitalize()


# Valid state transitions — enforced structurally by PackageStateMachine.
# The only branch is SIGNED, which may skip SIGNATURE_VERIFIED.
# Terminal states (PACKAGED, FAILED) have no outgoing transitions.
VALID_PACKAGE_TRANSITIONS: dict[PackageState, set[PackageState]] = {
    PackageState.NOT_STARTED: {PackageState.STAMPED, PackageState.FAILED},
    PackageState.STAMPED: {PackageState.CATALOG_GENERATED, PackageState.FAILED},
    PackageState.CATALOG_GENERATED: {PackageState.VERIFIED, PackageState.FAILED},
    PackageState.VERIFIED: {PackageState.SIGNED, PackageState.FAILED},
    PackageState.SIGNED: {
        PackageState.SIGNATURE_VERIFIED,
        PackageState.PACKAGED,
        PackageState.FAILED,
    },
    PackageState.SIGNATURE_VERIFIED: {PackageState.PACKAGED, PackageState.FAILED},
    PackageState.PACKAGED: set(),  # terminal
    PackageState.FAILED: set(),  # terminal
}

TERMINAL_PACKAGE_STATES: frozenset[PackageState] = frozenset(
    {PackageState.PACKAGED, PackageState.FAILED}
)
