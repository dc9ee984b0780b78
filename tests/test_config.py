"""Tests for YAML-backed settings."""

import pytest
from pydantic import ValidationError

from xtask.core import config as config_module
from xtask.core.config import Settings, get_settings, load_settings


def test_defaults():
    settings = Settings.create_default()
    assert settings.project.app_name == "arceos-loadapp"
    assert settings.project.axconfig == ".axconfig.toml"
    assert settings.toolchain.cargo == "cargo"
    assert settings.toolchain.objcopy == "rust-objcopy"
    assert settings.qemu.memory == "128M"
    assert settings.qemu.smp == 1
    assert settings.disk.size_mb == 64
    assert settings.disk.capacity_bytes == 64 * 1024 * 1024


def test_load_from_yaml(tmp_path):
    path = tmp_path / "xtask.yaml"
    path.write_text(
        "project:\n"
        "  app_name: loadapp\n"
        "disk:\n"
        "  size_mb: 128\n"
        "logging:\n"
        "  level: DEBUG\n",
        encoding="utf-8",
    )
    settings = Settings.load_from_yaml(str(path))
    assert settings.project.app_name == "loadapp"
    assert settings.disk.size_mb == 128
    assert settings.logging.level == "DEBUG"
    # Untouched sections keep their defaults
    assert settings.qemu.drive_id == "disk0"


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "xtask.yaml"
    path.write_text("", encoding="utf-8")
    assert Settings.load_from_yaml(str(path)) == Settings()


def test_no_file_in_cwd_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert Settings.load_from_yaml() == Settings()


def test_explicit_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        Settings.load_from_yaml(str(tmp_path / "missing.yaml"))


def test_volume_label_is_validated():
    with pytest.raises(ValidationError):
        Settings(disk={"volume_label": "MUCH-TOO-LONG-LABEL"})


def test_global_settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(config_module, "settings", None)
    first = get_settings()
    assert get_settings() is first

    path = tmp_path / "custom.yaml"
    path.write_text("qemu:\n  smp: 2\n", encoding="utf-8")
    reloaded = load_settings(str(path))
    assert reloaded.qemu.smp == 2
    assert get_settings() is reloaded
