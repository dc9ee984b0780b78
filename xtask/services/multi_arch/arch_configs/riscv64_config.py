"""
RISC-V 64-bit Architecture Configuration

Boots the objcopy'd raw image through OpenSBI (-bios default) on the virt board.
"""
from xtask.models.profile import ArchitectureProfile, BootArtifactKind


RISCV64_PROFILE = ArchitectureProfile(
    id="riscv64",
    description="RISC-V 64-bit (RV64GC)",
    compile_target="riscv64gc-unknown-none-elf",
    machine_platform="riscv64-qemu-virt",
    binary_converter_arch="riscv64",
    boot_artifact_kind=BootArtifactKind.RAW_BINARY,
    machine_args=("-machine", "virt", "-bios", "default"),
)
