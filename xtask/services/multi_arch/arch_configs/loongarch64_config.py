"""
LoongArch 64-bit Architecture Configuration
"""
from xtask.models.profile import ArchitectureProfile, BootArtifactKind


LOONGARCH64_PROFILE = ArchitectureProfile(
    id="loongarch64",
    description="LoongArch 64-bit",
    compile_target="loongarch64-unknown-none",
    machine_platform="loongarch64-qemu-virt",
    binary_converter_arch="loongarch64",
    boot_artifact_kind=BootArtifactKind.RAW_BINARY,
    machine_args=("-machine", "virt"),
)
