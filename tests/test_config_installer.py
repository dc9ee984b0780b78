"""Tests for installing the per-architecture axconfig."""

import pytest

from xtask.core.errors import ConfigNotFoundError, CopyFailedError
from xtask.services.config_installer import install
from xtask.services.multi_arch import resolve


def test_install_copies_arch_config(project_root):
    installed = install(project_root, resolve("aarch64"))
    assert installed == project_root / ".axconfig.toml"
    assert installed.read_text(encoding="utf-8") == 'arch = "aarch64"\n'


def test_install_overwrites_previous_config(project_root):
    install(project_root, resolve("riscv64"))
    install(project_root, resolve("loongarch64"))
    assert (project_root / ".axconfig.toml").read_text(encoding="utf-8") == 'arch = "loongarch64"\n'


def test_install_to_explicit_destination(project_root, tmp_path):
    destination = tmp_path / "build" / "axconfig.toml"
    destination.parent.mkdir()
    installed = install(project_root, resolve("x86_64"), destination=destination)
    assert installed == destination
    assert destination.read_text(encoding="utf-8") == 'arch = "x86_64"\n'
    assert not (project_root / ".axconfig.toml").exists()


def test_missing_config_leaves_destination_untouched(project_root):
    axconfig = project_root / ".axconfig.toml"
    axconfig.write_text("previous = true\n", encoding="utf-8")
    (project_root / "configs" / "x86_64.toml").unlink()

    with pytest.raises(ConfigNotFoundError) as excinfo:
        install(project_root, resolve("x86_64"))

    assert str(project_root / "configs" / "x86_64.toml") in str(excinfo.value)
    assert axconfig.read_text(encoding="utf-8") == "previous = true\n"


def test_missing_config_does_not_create_destination(project_root):
    (project_root / "configs" / "riscv64.toml").unlink()
    with pytest.raises(ConfigNotFoundError):
        install(project_root, resolve("riscv64"))
    assert not (project_root / ".axconfig.toml").exists()


def test_copy_failure_is_reported(project_root):
    # A directory in place of the destination makes the copy itself fail
    (project_root / ".axconfig.toml").mkdir()
    with pytest.raises(CopyFailedError) as excinfo:
        install(project_root, resolve("riscv64"))
    assert excinfo.value.context["architecture"] == "riscv64"
