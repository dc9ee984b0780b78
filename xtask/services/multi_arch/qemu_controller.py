"""
QEMU Multi-Architecture Launcher

Assembles the emulator command line from an ArchitectureProfile and runs the
kernel in the foreground with the FAT32 disk image attached as a virtio-blk
PCI device.
"""
import subprocess
from pathlib import Path
from typing import List, Optional

from loguru import logger

from xtask.core.config import Settings, get_settings
from xtask.core.errors import LaunchFailedError
from xtask.models.profile import ArchitectureProfile, BootArtifactKind
from xtask.utils.helpers import format_command


class QEMUController:
    """QEMU launcher for multi-architecture support"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def boot_image(self, profile: ArchitectureProfile, elf_path: Path, bin_path: Path) -> Path:
        # x86_64 boots the unconverted ELF, everything else the raw binary
        if profile.boot_artifact_kind == BootArtifactKind.ELF_EXECUTABLE:
            return Path(elf_path)
        return Path(bin_path)

    def build_qemu_command(self, profile: ArchitectureProfile, elf_path: Path,
                           bin_path: Path, disk_path: Path) -> List[str]:
        """Build QEMU command line for specific architecture"""
        qemu = self.settings.qemu
        cmd = [profile.emulator_binary(qemu.binary_prefix)]

        # Common parameters
        cmd.extend([
            '-m', qemu.memory,
            '-smp', str(qemu.smp),
            '-nographic',
        ])

        # Architecture-specific machine/CPU/firmware flags
        cmd.extend(profile.machine_args)
        cmd.extend(['-kernel', str(self.boot_image(profile, elf_path, bin_path))])

        # Storage: attach the disk image as a VirtIO PCI block device
        cmd.extend([
            '-drive', f"file={disk_path},format=raw,if=none,id={qemu.drive_id}",
            '-device', f"{qemu.block_device},drive={qemu.drive_id}",
        ])
        return cmd

    def run(self, profile: ArchitectureProfile, elf_path: Path, bin_path: Path, disk_path: Path) -> int:
        """
        Run the kernel in QEMU and wait for it to exit.

        Returns:
            int: QEMU's exit status, unchanged

        Raises:
            LaunchFailedError: the QEMU binary could not be started
        """
        cmd = self.build_qemu_command(profile, elf_path, bin_path, disk_path)
        logger.info(f"Running: {format_command(cmd)}")

        try:
            result = subprocess.run(cmd)
        except OSError as e:
            raise LaunchFailedError(
                f"failed to launch {cmd[0]}: {e}",
                hint=f"install QEMU with {profile.id} system emulation",
                context={"architecture": profile.id, "command": cmd[0]}) from e

        logger.debug(f"{cmd[0]} exited with status {result.returncode}")
        return result.returncode

