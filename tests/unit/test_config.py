"""Tests for ToolSettings — defaults and WDKFORGE_* environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from wdkforge.config import ToolSettings


class TestToolSettings:
    def test_defaults(self, monkeypatch: pytest.MonkeyPatch):
        for var in ("WDKFORGE_CERT_NAME", "WDKFORGE_CERT_STORE", "WDKFORGE_STRICT_TOPOLOGY"):
            monkeypatch.delenv(var, raising=False)
        settings = ToolSettings(_env_file=None)
        assert settings.cert_store == "WDRTestCertStore"
        assert settings.cert_name == "WDRLocalTestCert"
        assert settings.cert_file_name == "WDRLocalTestCert.cer"
        assert settings.timestamp_url == "http://timestamp.digicert.com"
        assert settings.strict_topology is False

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("WDKFORGE_CERT_NAME", "ContosoTestCert")
        monkeypatch.setenv("WDKFORGE_WDK_BUILD_NUMBER", "26100")
        monkeypatch.setenv("WDKFORGE_STRICT_TOPOLOGY", "true")
        settings = ToolSettings(_env_file=None)
        assert settings.cert_file_name == "ContosoTestCert.cer"
        assert settings.wdk_build_number == 26100
        assert settings.strict_topology is True

    def test_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("WDKFORGE_LOG_LEVEL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("WDKFORGE_LOG_LEVEL=DEBUG\n", encoding="utf-8")
        assert ToolSettings(_env_file=env_file).log_level == "DEBUG"
