"""
Architecture profile and pipeline artifact models
"""
from enum import Enum
from pathlib import Path
from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


ArchitectureId = Literal["riscv64", "aarch64", "x86_64", "loongarch64"]


class BootArtifactKind(str, Enum):
    """Which build output the emulator boots from"""
    RAW_BINARY = "raw-binary"        # objcopy'd image, loaded with -kernel
    ELF_EXECUTABLE = "elf"           # linked ELF loaded directly (x86_64)


class ArchitectureProfile(BaseModel):
    """Build and run parameters for one target architecture"""
    model_config = ConfigDict(frozen=True)

    id: ArchitectureId
    description: str = ""
    compile_target: str = Field(min_length=1)
    machine_platform: str = Field(min_length=1)
    binary_converter_arch: str = Field(min_length=1)
    boot_artifact_kind: BootArtifactKind
    machine_args: Tuple[str, ...] = Field(min_length=1)

    @property
    def needs_conversion(self) -> bool:
        return self.boot_artifact_kind == BootArtifactKind.RAW_BINARY

    def emulator_binary(self, prefix: str = "qemu-system-") -> str:
        return f"{prefix}{self.id}"


class BuildArtifacts(BaseModel):
    """Outputs of the build pipeline; bin_path is only produced for raw-binary targets"""
    model_config = ConfigDict(frozen=True)

    elf_path: Path
    bin_path: Path
    converted: bool = False

    @classmethod
    def for_target(cls, root: Path, compile_target: str, app_name: str) -> "BuildArtifacts":
        elf = root / "target" / compile_target / "release" / app_name
        return cls(elf_path=elf, bin_path=elf.with_suffix(".bin"))


class DiskImageSpec(BaseModel):
    """Parameters for the FAT32 disk image handed to the guest"""
    model_config = ConfigDict(frozen=True)

    capacity_bytes: int = 64 * 1024 * 1024
    directory_path: str = "/sbin"
    payload_path: str = "/sbin/origin.bin"
    payload_bytes: bytes = Field(default_factory=lambda: origin_payload())
    volume_label: Optional[str] = None


def origin_payload(length: int = 64) -> bytes:
    """Sample binary content the guest checks: byte i is (i * 0x11 + 0x10) mod 256"""
    return bytes((i * 0x11 + 0x10) % 256 for i in range(length))
