"""Machine-level tool configuration — env-driven.

Centralized settings using pydantic-settings. Reads from a .env file and
WDKFORGE_* environment variables. These settings describe the machine the
tool runs on (where the WDK lives, which certificate store to use); the
per-invocation build options live in ``wdkforge.models.config.BuildConfig``.
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ToolSettings(BaseSettings):
    """Tool configuration with environment variable overrides.

    Examples
    --------
    Override via environment::

        export WDKFORGE_LOG_LEVEL=DEBUG
        export WDKFORGE_CERT_NAME=ContosoTestCert
        export WDKFORGE_WDK_BUILD_NUMBER=22621

    Or via .env file::

        WDKFORGE_STRICT_TOPOLOGY=true
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="WDKFORGE_",
        env_file_encoding="utf-8",
    )

    log_level: str = "INFO"

    # External executables
    cargo_command: str = "cargo"
    command_timeout_seconds: float | None = None

    # Test signing
    cert_store: str = "WDRTestCertStore"
    cert_name: str = "WDRLocalTestCert"
    timestamp_url: str = "http://timestamp.digicert.com"

    # WDK discovery
    wdk_content_root: Path | None = None
    wdk_build_number: int | None = None

    # Topology resolution
    strict_topology: bool = False

    @property
    def cert_file_name(self) -> str:
        """File name of the exported test certificate."""
        return f"{self.cert_name}.cer"


# Module-level singleton — import as `from wdkforge.config import settings`
settings = ToolSettings()
