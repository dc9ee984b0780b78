from .profile import (
    ArchitectureId,
    ArchitectureProfile,
    BootArtifactKind,
    BuildArtifacts,
    DiskImageSpec,
    origin_payload,
)

__all__ = [
    'ArchitectureId',
    'ArchitectureProfile',
    'BootArtifactKind',
    'BuildArtifacts',
    'DiskImageSpec',
    'origin_payload',
]
