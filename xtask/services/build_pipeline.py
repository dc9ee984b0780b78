"""
Build pipeline: cargo cross-compilation followed by ELF -> raw binary conversion
"""
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from loguru import logger

from xtask.core.config import Settings, get_settings
from xtask.core.errors import CompileFailedError, ConvertFailedError
from xtask.models.profile import ArchitectureProfile, BuildArtifacts
from xtask.utils.helpers import calculate_file_hash, format_command


# Environment variable the ArceOS build reads its platform config from
AXCONFIG_ENV = "AX_CONFIG_PATH"

# Exit status reported when a tool cannot be executed at all
COMMAND_NOT_FOUND = 127


class BuildPipeline:
    """Runs cargo and rust-objcopy for one architecture profile"""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    def cargo_command(self, root_dir: Path, profile: ArchitectureProfile) -> List[str]:
        project = self.settings.project
        cmd = [
            self.settings.toolchain.cargo,
            "build",
            "--release",
            "--target", profile.compile_target,
        ]
        if project.features:
            cmd.extend(["--features", ",".join(project.features)])
        cmd.extend(["--manifest-path", str(Path(root_dir) / project.manifest)])
        return cmd

    def objcopy_command(self, profile: ArchitectureProfile, elf: Path, binary: Path) -> List[str]:
        return [
            self.settings.toolchain.objcopy,
            f"--binary-architecture={profile.binary_converter_arch}",
            str(elf),
            "--strip-all",
            "-O", "binary",
            str(binary),
        ]

    def _run(self, cmd: Sequence[str], env: Optional[Dict[str, str]] = None) -> int:
        logger.debug(f"Executing command: {format_command(cmd)}")
        result = subprocess.run(list(cmd), env=env)
        return result.returncode

    def compile(self, root_dir: Path, profile: ArchitectureProfile,
                config_path: Optional[Path] = None) -> BuildArtifacts:
        """
        Run cargo build for the target architecture.

        Args:
            root_dir: Kernel project root (holds Cargo.toml and target/)
            profile: Resolved architecture profile
            config_path: Installed axconfig, passed to the build through AX_CONFIG_PATH

        Raises:
            CompileFailedError: cargo is missing or exited non-zero; exit_code carries its status
        """
        root_dir = Path(root_dir)
        cmd = self.cargo_command(root_dir, profile)
        env = dict(os.environ)
        if config_path is not None:
            env[AXCONFIG_ENV] = str(Path(config_path).resolve())

        context = {"architecture": profile.id, "target": profile.compile_target, "command": cmd[0]}
        try:
            returncode = self._run(cmd, env=env)
        except OSError as e:
            raise CompileFailedError(
                f"failed to execute {cmd[0]}: {e}",
                exit_code=COMMAND_NOT_FOUND,
                hint="install the Rust toolchain and the target with `rustup target add`",
                context=context) from e

        if returncode != 0:
            # Negative codes mean cargo was killed by a signal
            raise CompileFailedError(
                f"{cmd[0]} build failed for {profile.id} ({profile.compile_target})",
                exit_code=returncode if returncode > 0 else 1,
                context=context)

        return BuildArtifacts.for_target(root_dir, profile.compile_target, self.settings.project.app_name)

    def convert(self, profile: ArchitectureProfile, artifacts: BuildArtifacts) -> BuildArtifacts:
        """
        Convert ELF to raw binary using rust-objcopy.

        Raises:
            ConvertFailedError: the converter is missing or exited non-zero
        """
        cmd = self.objcopy_command(profile, artifacts.elf_path, artifacts.bin_path)
        context = {"architecture": profile.id, "elf": str(artifacts.elf_path), "command": cmd[0]}
        try:
            returncode = self._run(cmd)
        except OSError as e:
            raise ConvertFailedError(
                f"failed to execute {cmd[0]}: {e}",
                exit_code=COMMAND_NOT_FOUND,
                hint="install with: cargo install cargo-binutils",
                context=context) from e

        if returncode != 0:
            raise ConvertFailedError(
                f"{cmd[0]} failed for {profile.id}",
                exit_code=returncode if returncode > 0 else 1,
                context=context)

        if artifacts.bin_path.exists():
            logger.debug(f"{artifacts.bin_path.name} sha256={calculate_file_hash(artifacts.bin_path)}")
        return artifacts.model_copy(update={"converted": True})

    def build(self, root_dir: Path, profile: ArchitectureProfile,
              config_path: Optional[Path] = None) -> BuildArtifacts:
        """Compile, then convert when the profile boots from a raw binary"""
        artifacts = self.compile(root_dir, profile, config_path)
        if profile.needs_conversion:
            artifacts = self.convert(profile, artifacts)
        logger.info(f"Build complete for {profile.id} ({profile.compile_target})")
        return artifacts


def build(root_dir: Path, profile: ArchitectureProfile, config_path: Optional[Path] = None,
          settings: Optional[Settings] = None) -> BuildArtifacts:
    return BuildPipeline(settings).build(root_dir, profile, config_path)
