"""Deterministic driver packaging state machine.

Enforces:
- Valid state transitions only (VALID_PACKAGE_TRANSITIONS table)
- Terminal states (PACKAGED, FAILED) accept no further transitions
- Every visited state is recorded in order, including the failure edge
"""

from __future__ import annotations

import logging

from wdkforge.models.package import (
    TERMINAL_PACKAGE_STATES,
    VALID_PACKAGE_TRANSITIONS,
    PackageState,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class PackageStateMachine:
    """Tracks the packaging state of one driver project.

    Parameters
    ----------
    package_name:
        Used in log lines only.
    """

    def __init__(self, package_name: str) -> None:
        self.package_name = package_name
        self._state = PackageState.NOT_STARTED
        self._history: list[PackageState] = []
        self.failed_stage: PackageState | None = None
        self.failure_cause: str = ""

    @property
    def state(self) -> PackageState:
        return self._state

    @property
    def history(self) -> list[PackageState]:
        """States entered so far, in order (NOT_STARTED excluded)."""
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_PACKAGE_STATES

    def can_transition(self, target: PackageState) -> bool:
        return target in VALID_PACKAGE_TRANSITIONS.get(self._state, set())

    def transition(self, target: PackageState) -> None:
        """Move to *target*; raise ``InvalidTransitionError`` if not allowed."""
        if target is PackageState.FAILED:
            raise InvalidTransitionError("Use fail() to enter the FAILED state")
        self._enter(target)

    def fail(self, stage: PackageState, cause: str) -> None:
        """Enter FAILED while attempting *stage*, preserving the cause."""
        self._enter(PackageState.FAILED)
        self.failed_stage = stage
        self.failure_cause = cause

    def _enter(self, target: PackageState) -> None:
        if not self.can_transition(target):
            allowed = sorted(s.value for s in VALID_PACKAGE_TRANSITIONS.get(self._state, set()))
            raise InvalidTransitionError(
                f"Cannot transition {self.package_name} from {self._state.value} "
                f"to {target.value}. Allowed: {allowed}"
            )
        logger.debug(
            "Package %s: %s -> %s", self.package_name, self._state.value, target.value
        )
        self._state = target
        self._history.append(target)
