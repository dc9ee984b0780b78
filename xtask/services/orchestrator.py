"""
Pipeline orchestration: config install -> build -> disk image -> QEMU
"""
from pathlib import Path
from typing import Optional

from xtask.core.config import Settings, get_settings
from xtask.core.errors import GuestExitNonZeroError
from xtask.models.profile import ArchitectureProfile, BuildArtifacts, DiskImageSpec
from xtask.services import config_installer
from xtask.services.build_pipeline import BuildPipeline
from xtask.services.disk_image import create_fat_disk_image
from xtask.services.multi_arch.arch_manager import ArchManager
from xtask.services.multi_arch.qemu_controller import QEMUController


class Orchestrator:
    """Runs the pipeline stages strictly in order; any stage error aborts the rest"""

    def __init__(self, settings: Optional[Settings] = None, root: Optional[Path] = None):
        self.settings = settings or get_settings()
        self.root = Path(root).resolve() if root is not None else self.settings.project.root_path
        self.arch_manager = ArchManager(self.settings)
        self.pipeline = BuildPipeline(self.settings)
        self.qemu = QEMUController(self.settings)

    @property
    def axconfig_path(self) -> Path:
        return self.root / self.settings.project.axconfig

    @property
    def disk_path(self) -> Path:
        path = Path(self.settings.disk.path)
        return path if path.is_absolute() else self.root / path

    def disk_spec(self, capacity_bytes: Optional[int] = None) -> DiskImageSpec:
        """Image parameters; capacity_bytes overrides disk.size_mb from the config"""
        disk = self.settings.disk
        capacity = capacity_bytes if capacity_bytes is not None else disk.capacity_bytes
        return DiskImageSpec(capacity_bytes=capacity, volume_label=disk.volume_label)

    def install_config(self, profile: ArchitectureProfile) -> Path:
        return config_installer.install(
            self.root, profile,
            destination=self.axconfig_path,
            configs_dir=self.settings.project.configs_dir,
        )

    def build(self, architecture: str) -> BuildArtifacts:
        profile = self.arch_manager.resolve(architecture)
        config_path = self.install_config(profile)
        return self.pipeline.build(self.root, profile, config_path)

    def make_disk(self, path: Optional[Path] = None, capacity_bytes: Optional[int] = None) -> Path:
        return create_fat_disk_image(path or self.disk_path, self.disk_spec(capacity_bytes))

    def run(self, architecture: str) -> int:
        """
        Build, synthesize the disk image and boot it.

        Returns:
            int: 0 when QEMU exits cleanly

        Raises:
            GuestExitNonZeroError: QEMU started but exited non-zero (exit_code is its status)
        """
        profile = self.arch_manager.resolve(architecture)
        config_path = self.install_config(profile)
        artifacts = self.pipeline.build(self.root, profile, config_path)
        disk = self.make_disk()

        # Only warns; a missing binary surfaces as LaunchFailedError below
        self.arch_manager.check_emulator(profile)
        status = self.qemu.run(profile, artifacts.elf_path, artifacts.bin_path, disk)
        if status != 0:
            raise GuestExitNonZeroError(
                f"{self.arch_manager.emulator_binary(profile)} exited with status {status}",
                exit_code=status if status > 0 else 1,
                context={"architecture": profile.id, "disk": str(disk)})
        return status
