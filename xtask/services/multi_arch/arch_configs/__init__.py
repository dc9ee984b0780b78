"""
Architecture-specific configurations for multi-architecture support

Each supported target has exactly one profile here. Adding an architecture
means adding a module and one ARCH_CONFIGS entry; nothing downstream branches
on the architecture name.
"""
from typing import Dict, List

from xtask.core.errors import UnsupportedArchitectureError
from xtask.models.profile import ArchitectureProfile

from .riscv64_config import RISCV64_PROFILE
from .aarch64_config import AARCH64_PROFILE
from .x86_64_config import X86_64_PROFILE
from .loongarch64_config import LOONGARCH64_PROFILE

__all__ = [
    'ARCH_CONFIGS',
    'RISCV64_PROFILE',
    'AARCH64_PROFILE',
    'X86_64_PROFILE',
    'LOONGARCH64_PROFILE',
    'get_arch_config',
    'supported_architectures',
]

# Architecture configuration registry (insertion order is the display order)
ARCH_CONFIGS: Dict[str, ArchitectureProfile] = {
    profile.id: profile
    for profile in (RISCV64_PROFILE, AARCH64_PROFILE, X86_64_PROFILE, LOONGARCH64_PROFILE)
}


def supported_architectures() -> List[str]:
    """Architecture ids in canonical order"""
    return list(ARCH_CONFIGS)


def get_arch_config(architecture: str) -> ArchitectureProfile:
    """Get the profile for a specific architecture"""
    profile = ARCH_CONFIGS.get(architecture)
    if profile is None:
        supported = ", ".join(ARCH_CONFIGS)
        raise UnsupportedArchitectureError(
            f"unsupported architecture '{architecture}'. Supported: {supported}",
            context={"architecture": architecture},
        )
    return profile
