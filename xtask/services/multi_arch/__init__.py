"""
Multi-Architecture Support

Key Components:
- arch_configs: one ArchitectureProfile per supported target
- ArchManager: profile resolution and emulator availability checks
- QEMUController: architecture-aware QEMU command line and launch
"""

from .arch_configs import ARCH_CONFIGS, get_arch_config, supported_architectures
from .arch_manager import ArchManager, resolve
from .qemu_controller import QEMUController

__all__ = [
    'ARCH_CONFIGS',
    'ArchManager',
    'QEMUController',
    'get_arch_config',
    'resolve',
    'supported_architectures',
]
