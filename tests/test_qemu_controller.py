"""Tests for the QEMU run launcher."""

from pathlib import Path

import pytest

from xtask.core.errors import LaunchFailedError
from xtask.services.multi_arch import QEMUController, resolve

ELF = Path("/work/target/t/release/arceos-loadapp")
BIN = Path("/work/target/t/release/arceos-loadapp.bin")
DISK = Path("/work/target/disk.img")

DRIVE_ARGS = [
    "-drive", f"file={DISK},format=raw,if=none,id=disk0",
    "-device", "virtio-blk-pci,drive=disk0",
]


def test_riscv64_command(settings):
    cmd = QEMUController(settings).build_qemu_command(resolve("riscv64"), ELF, BIN, DISK)
    assert cmd == [
        "qemu-system-riscv64", "-m", "128M", "-smp", "1", "-nographic",
        "-machine", "virt", "-bios", "default",
        "-kernel", str(BIN),
    ] + DRIVE_ARGS


def test_aarch64_command(settings):
    cmd = QEMUController(settings).build_qemu_command(resolve("aarch64"), ELF, BIN, DISK)
    assert cmd == [
        "qemu-system-aarch64", "-m", "128M", "-smp", "1", "-nographic",
        "-cpu", "cortex-a72", "-machine", "virt",
        "-kernel", str(BIN),
    ] + DRIVE_ARGS


def test_x86_64_boots_the_elf(settings):
    cmd = QEMUController(settings).build_qemu_command(resolve("x86_64"), ELF, BIN, DISK)
    assert cmd[0] == "qemu-system-x86_64"
    assert cmd[cmd.index("-kernel") + 1] == str(ELF)
    assert str(BIN) not in cmd
    assert cmd[cmd.index("-machine") + 1] == "q35"


def test_loongarch64_boots_the_raw_binary(settings):
    cmd = QEMUController(settings).build_qemu_command(resolve("loongarch64"), ELF, BIN, DISK)
    assert cmd[cmd.index("-kernel") + 1] == str(BIN)
    assert cmd[-4:] == DRIVE_ARGS


def test_run_returns_exit_status_verbatim(fake_run, settings):
    fake_run.returncodes["qemu-system-riscv64"] = 3
    status = QEMUController(settings).run(resolve("riscv64"), ELF, BIN, DISK)
    assert status == 3
    assert fake_run.tools() == ["qemu-system-riscv64"]


def test_run_success(fake_run, settings):
    assert QEMUController(settings).run(resolve("x86_64"), ELF, BIN, DISK) == 0


def test_missing_emulator_is_a_launch_failure(fake_run, settings):
    fake_run.missing.add("qemu-system-aarch64")
    with pytest.raises(LaunchFailedError) as excinfo:
        QEMUController(settings).run(resolve("aarch64"), ELF, BIN, DISK)
    assert excinfo.value.exit_code == 127
    assert "qemu-system-aarch64" in str(excinfo.value)
