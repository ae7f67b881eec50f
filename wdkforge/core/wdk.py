"""WDK toolchain discovery — build number detection and tool PATH setup."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from wdkforge.errors import WdkForgeError
from wdkforge.models.config import CpuArchitecture

logger = logging.getLogger(__name__)

DEFAULT_WDK_CONTENT_ROOT = Path(r"C:\Program Files (x86)\Windows Kits\10")
WDK_CONTENT_ROOT_ENV_VAR = "WDKContentRoot"

_VERSION_DIR_RE = re.compile(r"^10\.0\.(\d+)\.\d+$")

_HOST_BIN_DIRS: dict[CpuArchitecture, str] = {
    CpuArchitecture.AMD64: "x64",
    CpuArchitecture.ARM64: "arm64",
}


class WdkConfigError(WdkForgeError):
    """Raised when the WDK installation cannot be located or parsed."""


class WdkToolchain:
    """Locates the installed WDK.

    Parameters
    ----------
    content_root:
        Explicit WDK root. Falls back to the ``WDKContentRoot`` environment
        variable, then to the default Windows Kits directory.
    build_number:
        Explicit WDK build number; skips detection when set.
    """

    def __init__(
        self,
        content_root: Path | None = None,
        build_number: int | None = None,
    ) -> None:
        env_root = os.environ.get(WDK_CONTENT_ROOT_ENV_VAR)
        self.content_root = content_root or (Path(env_root) if env_root else DEFAULT_WDK_CONTENT_ROOT)
        self._build_number = build_number
        self._version: str | None = None

    def detect_version(self) -> str:
        """Return the newest installed SDK/WDK version, e.g. ``10.0.22621.0``."""
        if self._version is not None:
            return self._version
        lib_dir = self.content_root / "Lib"
        if not lib_dir.is_dir():
            raise WdkConfigError(f"WDK content root not found: {self.content_root}")
        versions = [
            (int(match.group(1)), child.name)
            for child in lib_dir.iterdir()
            if child.is_dir() and (match := _VERSION_DIR_RE.match(child.name))
        ]
        if not versions:
            raise WdkConfigError(f"No WDK versions found under {lib_dir}")
        self._version = max(versions)[1]
        return self._version

    def detect_build_number(self) -> int:
        """Return the WDK build number (the third version component)."""
        if self._build_number is not None:
            return self._build_number
        version = self.detect_version()
        match = _VERSION_DIR_RE.match(version)
        if match is None:
            raise WdkConfigError(f"Unexpected WDK version string: {version}")
        self._build_number = int(match.group(1))
        logger.debug("WDK build number: %d", self._build_number)
        return self._build_number

    def tool_env(self) -> dict[str, str]:
        """Environment overrides that put the WDK tools on PATH.

        Returns an empty mapping when no WDK installation is found, leaving
        tool lookup to the inherited PATH.
        """
        try:
            version = self.detect_version()
        except WdkConfigError as exc:
            logger.debug("WDK tool paths not added to PATH: %s", exc)
            return {}
        host = _HOST_BIN_DIRS[CpuArchitecture.host()]
        tool_dirs = [
            self.content_root / "bin" / version / host,
            self.content_root / "bin" / version / "x86",
            self.content_root / "Tools" / version / host,
        ]
        existing = [str(d) for d in tool_dirs if d.is_dir()]
        if not existing:
            return {}
        path = os.pathsep.join([*existing, os.environ.get("PATH", "")])
        logger.debug("PATH env variable is set with WDK bin and tools paths")
        return {"PATH": path}
