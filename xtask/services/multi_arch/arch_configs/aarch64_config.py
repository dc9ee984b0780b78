"""
ARM64 Architecture Configuration
"""
from xtask.models.profile import ArchitectureProfile, BootArtifactKind


AARCH64_PROFILE = ArchitectureProfile(
    id="aarch64",
    description="ARM 64-bit (AArch64)",
    compile_target="aarch64-unknown-none-softfloat",
    machine_platform="aarch64-qemu-virt",
    binary_converter_arch="aarch64",
    boot_artifact_kind=BootArtifactKind.RAW_BINARY,
    machine_args=("-cpu", "cortex-a72", "-machine", "virt"),
)
