"""
loadapp xtask

Multi-architecture build & run tool for arceos-loadapp: installs the platform
config, cross-compiles the kernel, synthesizes a FAT32 disk image and boots it
in QEMU.
"""

__version__ = "0.1.0"
__author__ = "loadapp developers"
__description__ = "Multi-architecture build & run tool for arceos-loadapp"
