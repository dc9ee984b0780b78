"""
Installs the per-architecture axconfig consumed by the kernel build
"""
import shutil
from pathlib import Path
from typing import Optional

from loguru import logger

from xtask.core.errors import ConfigNotFoundError, CopyFailedError
from xtask.models.profile import ArchitectureProfile
from xtask.services.multi_arch.arch_configs import get_arch_config


DEFAULT_CONFIGS_DIR = "configs"
DEFAULT_AXCONFIG = ".axconfig.toml"


def config_source(root_dir: Path, profile: ArchitectureProfile,
                  configs_dir: str = DEFAULT_CONFIGS_DIR) -> Path:
    return Path(root_dir) / configs_dir / f"{profile.id}.toml"


def install(root_dir: Path, profile: ArchitectureProfile,
            destination: Optional[Path] = None,
            configs_dir: str = DEFAULT_CONFIGS_DIR) -> Path:
    """
    Copy ``<root>/configs/<arch>.toml`` over the installed axconfig.

    Args:
        root_dir: Kernel project root
        profile: Resolved architecture profile
        destination: Where to install; defaults to ``<root>/.axconfig.toml``
        configs_dir: Directory under root holding the per-arch configs

    Returns:
        Path: The installed config, to be passed on to the build step

    Raises:
        ConfigNotFoundError: The source config does not exist (destination is left alone)
        CopyFailedError: The copy itself failed
    """
    root_dir = Path(root_dir)
    # Registry is the only authority on which ids are valid
    get_arch_config(profile.id)

    src = config_source(root_dir, profile, configs_dir)
    dst = Path(destination) if destination is not None else root_dir / DEFAULT_AXCONFIG

    if not src.is_file():
        raise ConfigNotFoundError(
            f"config file not found: {src}",
            hint=f"add {configs_dir}/{profile.id}.toml for platform {profile.machine_platform}",
            context={"architecture": profile.id, "path": str(src)},
        )

    try:
        shutil.copyfile(src, dst)
    except OSError as e:
        raise CopyFailedError(
            f"failed to copy {src} -> {dst}: {e}",
            context={"architecture": profile.id, "source": str(src), "destination": str(dst)},
        ) from e

    logger.info(f"Installed config: {src} -> {dst.name}")
    return dst
