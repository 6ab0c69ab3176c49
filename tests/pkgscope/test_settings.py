"""Tests for pkgscope.settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from pkgscope.errors import ErrorCode, SettingsError
from pkgscope.settings import DEFAULT_PLATFORMS, ReflectSettings, load_settings


class TestReflectSettings:
    def test_defaults(self, tmp_path: Path) -> None:
        settings = load_settings(root_dir=tmp_path)
        assert settings.platforms == DEFAULT_PLATFORMS
        assert settings.auto_update_db is True
        assert settings.allow_update_db_locally is True
        assert settings.default_license == "PD"
        assert settings.runtime_package == "python"
        assert settings.servers == {}
        assert "sys" in settings.builtin_modules
        assert "json" in settings.runtime_modules
        assert settings.mgit_path == tmp_path / ".mgit"
        assert settings.snapshot_path == tmp_path / "pkgscope_db.json"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        """Settings load from PKGSCOPE_* variables."""
        monkeypatch.setenv("PKGSCOPE_ROOT_DIR", str(tmp_path))
        monkeypatch.setenv("PKGSCOPE_AUTO_UPDATE_DB", "false")
        monkeypatch.setenv("PKGSCOPE_PLATFORMS", '["linux64", "osx64"]')
        monkeypatch.setenv("PKGSCOPE_SERVERS", '{"osx64": ["mac.local", 8087]}')
        settings = ReflectSettings()
        assert settings.root_dir == tmp_path
        assert settings.auto_update_db is False
        assert settings.platforms == ("linux64", "osx64")
        assert settings.servers == {"osx64": ("mac.local", 8087)}

    def test_overrides_beat_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PKGSCOPE_DEFAULT_LICENSE", "MIT")
        assert load_settings(default_license="BSD").default_license == "BSD"

    def test_empty_platforms_rejected(self) -> None:
        with pytest.raises(SettingsError) as excinfo:
            load_settings(platforms=())
        assert excinfo.value.code == ErrorCode.CONFIGURATION_ERROR

    def test_server_for_unknown_platform_rejected(self) -> None:
        with pytest.raises(SettingsError, match="unknown platforms"):
            load_settings(platforms=("linux64",), servers={"osx64": ("mac", 1)})

    def test_extra_fields_forbidden(self) -> None:
        with pytest.raises(SettingsError):
            load_settings(no_such_field=1)

    def test_timeouts_must_be_positive(self) -> None:
        with pytest.raises(SettingsError):
            load_settings(tracer_timeout_s=0)
