"""Build Task — compiles one project with ``cargo build``.

The task is identical for driver and non-driver projects; it never looks at
driver metadata. Artifacts land in ``BuildConfig.output_dir(target_dir)``,
which is the path contract the Package Task relies on.
"""

from __future__ import annotations

import json
import logging

from wdkforge.core.exec import CommandError, RunCommand
from wdkforge.errors import BuildFailure
from wdkforge.models.config import BuildConfig
from wdkforge.models.project import Project
from wdkforge.models.results import BuildOutcome, BuildStatus

logger = logging.getLogger(__name__)


class BuildTask:
    """Builds a single package.

    Parameters
    ----------
    project:
        The project to compile.
    config:
        Run-wide build configuration.
    command_exec:
        Command backend used to invoke cargo.
    cargo_command:
        Name or path of the cargo executable.
    """

    def __init__(
        self,
        project: Project,
        config: BuildConfig,
        command_exec: RunCommand,
        cargo_command: str = "cargo",
    ) -> None:
        if not project.root.is_absolute():
            raise ValueError(f"Project root must be absolute. Input path: {project.root}")
        self.project = project
        self.config = config
        self._exec = command_exec
        self._cargo = cargo_command

    def args(self) -> list[str]:
        """Return the cargo arguments for this build."""
        args = [
            "build",
            "--message-format=json",
            "-p",
            self.project.name,
            "--manifest-path",
            str(self.project.root / "Cargo.toml"),
            "--profile",
            self.config.profile.value,
        ]
        if self.config.target_arch.selected:
            args += ["--target", self.config.target_arch.arch.target_triple]
        if self.config.features:
            args += ["--features", ",".join(self.config.features)]
        if self.config.verbose:
            args.append("-v")
        return args

    def run(self) -> BuildOutcome:
        """Run the build; raise ``BuildFailure`` if cargo reports an error."""
        logger.info("Building package: %s", self.project.name)
        try:
            # .cargo/config.toml is resolved relative to the working directory
            self._exec.run(self._cargo, self.args(), cwd=self.project.root)
        except CommandError as exc:
            diagnostic = compiler_errors(exc.stdout) or exc.diagnostic
            raise BuildFailure(self.project.name, diagnostic) from exc
        logger.debug("cargo build done for package: %s", self.project.name)
        return BuildOutcome(status=BuildStatus.SUCCESS)


def compiler_errors(message_stream: str) -> str:
    """Extract rendered error diagnostics from cargo's JSON message stream."""
    rendered: list[str] = []
    for line in message_stream.splitlines():
        line = line.strip()
        if not line.startswith("{"):
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if message.get("reason") != "compiler-message":
            continue
        diagnostic = message.get("message") or {}
        if diagnostic.get("level") in ("error", "error: internal compiler error"):
            text = diagnostic.get("rendered") or diagnostic.get("message") or ""
            if text:
                rendered.append(text.rstrip())
    return "\n".join(rendered)
