"""
Multi-Architecture Manager

Resolves a logical architecture name into its ArchitectureProfile and reports
which emulators are installed on this host.
"""
import shutil
from typing import Dict, Optional

from loguru import logger

from xtask.core.config import Settings, get_settings
from xtask.models.profile import ArchitectureProfile

from .arch_configs import get_arch_config


def resolve(architecture: str) -> ArchitectureProfile:
    """Look up the profile for ``architecture``; unknown names raise UnsupportedArchitectureError"""
    return get_arch_config(architecture)


class ArchManager:
    """Multi-architecture management system"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.available_architectures: Dict[str, bool] = {}

    def resolve(self, architecture: str) -> ArchitectureProfile:
        profile = resolve(architecture)
        logger.debug(f"Resolved {architecture}: target={profile.compile_target}, "
                     f"platform={profile.machine_platform}, boot={profile.boot_artifact_kind.value}")
        return profile

    def emulator_binary(self, profile: ArchitectureProfile) -> str:
        return profile.emulator_binary(self.settings.qemu.binary_prefix)

    def check_emulator(self, profile: ArchitectureProfile) -> bool:
        """Check whether the QEMU binary for this architecture is on PATH"""
        qemu_binary = self.emulator_binary(profile)
        found = shutil.which(qemu_binary) is not None
        self.available_architectures[profile.id] = found
        if found:
            logger.debug(f"{profile.id} support available ({qemu_binary})")
        else:
            logger.warning(f"{profile.id} support missing ({qemu_binary} not found)")
        return found

