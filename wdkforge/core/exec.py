"""External command execution — the single seam to every external tool.

Every tool the pipeline drives (cargo, stampinf, inf2cat, infverif,
signtool, certmgr, makecert) is invoked through an object satisfying the
``RunCommand`` protocol. Production code uses ``CommandExec``; tests inject
a scripted fake.

Every invocation is blocking and attempted exactly once.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from wdkforge.errors import WdkForgeError

logger = logging.getLogger(__name__)


class CommandError(WdkForgeError):
    """Raised when an external command cannot start, times out, or exits non-zero."""

    def __init__(
        self,
        command: str,
        args: Sequence[str],
        *,
        returncode: int | None = None,
        stdout: str = "",
        stderr: str = "",
        reason: str = "",
    ) -> None:
        self.command = command
        self.command_args = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        self.reason = reason
        detail = reason or f"exit code {returncode}"
        super().__init__(f"Command '{command}' with args {self.command_args} failed ({detail})")

    @property
    def diagnostic(self) -> str:
        """Best available human-readable output of the failed command."""
        parts = [p.strip() for p in (self.stderr, self.stdout, self.reason) if p and p.strip()]
        return "\n".join(parts) or str(self)


@runtime_checkable
class RunCommand(Protocol):
    """Protocol for command execution backends."""

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Run *command* with *args*; raise ``CommandError`` on failure."""
        ...


class CommandExec:
    """Runs external commands with ``subprocess.run``.

    Parameters
    ----------
    timeout:
        Optional timeout in seconds applied to every command.
    base_env:
        Extra environment variables merged over ``os.environ`` for every
        command (the WDK tool PATH, for instance).
    """

    def __init__(
        self,
        *,
        timeout: float | None = None,
        base_env: Mapping[str, str] | None = None,
    ) -> None:
        self.timeout = timeout
        self.base_env = dict(base_env or {})

    def run(
        self,
        command: str,
        args: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> subprocess.CompletedProcess[str]:
        logger.debug("Running: %s %s (cwd=%s)", command, list(args), cwd)

        full_env = None
        if self.base_env or env:
            full_env = {**os.environ, **self.base_env, **(env or {})}

        try:
            result = subprocess.run(
                [command, *args],
                cwd=cwd,
                env=full_env,
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandError(
                command, args, reason=f"timed out after {exc.timeout}s"
            ) from exc
        except OSError as exc:
            raise CommandError(command, args, reason=str(exc)) from exc

        if result.returncode != 0:
            raise CommandError(
                command,
                args,
                returncode=result.returncode,
                stdout=result.stdout,
                stderr=result.stderr,
            )

        logger.debug("COMMAND: %s ARGS: %s OUTPUT: %s", command, list(args), result.stdout)
        return result
