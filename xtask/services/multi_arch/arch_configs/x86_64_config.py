"""
x86_64 Architecture Configuration

QEMU loads the multiboot ELF directly on q35, so no raw image is produced.
"""
from xtask.models.profile import ArchitectureProfile, BootArtifactKind


X86_64_PROFILE = ArchitectureProfile(
    id="x86_64",
    description="Intel/AMD 64-bit",
    compile_target="x86_64-unknown-none",
    machine_platform="x86-pc",
    binary_converter_arch="x86_64",
    boot_artifact_kind=BootArtifactKind.ELF_EXECUTABLE,
    machine_args=("-machine", "q35"),
)
