"""
Configuration management module
"""
import os
from pathlib import Path
from typing import List, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator


DEFAULT_CONFIG_FILE = "xtask.yaml"


class ProjectConfig(BaseModel):
    """Kernel project layout"""
    root: str = "."
    app_name: str = "arceos-loadapp"
    manifest: str = "Cargo.toml"
    configs_dir: str = "configs"
    axconfig: str = ".axconfig.toml"
    features: List[str] = ["axstd"]

    @property
    def root_path(self) -> Path:
        return Path(self.root).resolve()


class ToolchainConfig(BaseModel):
    """Cross-compilation tools"""
    cargo: str = "cargo"
    objcopy: str = "rust-objcopy"


class QEMUConfig(BaseModel):
    """QEMU配置"""
    binary_prefix: str = "qemu-system-"
    memory: str = "128M"
    smp: int = 1
    drive_id: str = "disk0"
    block_device: str = "virtio-blk-pci"


class DiskConfig(BaseModel):
    """Disk image configuration"""
    path: str = "target/disk.img"
    size_mb: int = 64
    volume_label: str = "LOADAPP"

    @field_validator("volume_label")
    @classmethod
    def _label_fits(cls, value: str) -> str:
        if len(value.encode("ascii", errors="replace")) > 11:
            raise ValueError("volume_label must be at most 11 ASCII characters")
        return value

    @property
    def capacity_bytes(self) -> int:
        return self.size_mb * 1024 * 1024


class LoggingConfig(BaseModel):
    """日志配置"""
    level: str = "INFO"
    file: Optional[str] = None
    max_size: str = "10MB"
    backup_count: int = 5


class Settings(BaseModel):
    """应用配置"""
    project: ProjectConfig = Field(default_factory=ProjectConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    qemu: QEMUConfig = Field(default_factory=QEMUConfig)
    disk: DiskConfig = Field(default_factory=DiskConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def load_from_yaml(cls, config_path: Optional[str] = None) -> "Settings":
        """Load configuration from YAML file"""
        possible_paths = []
        if config_path:
            # An explicit path must exist
            if not os.path.exists(config_path):
                raise FileNotFoundError(f"Configuration file not found: {config_path}")
            possible_paths.append(config_path)
        else:
            possible_paths.append(DEFAULT_CONFIG_FILE)

        config_file = None
        for path in possible_paths:
            if os.path.exists(path):
                config_file = path
                break

        if config_file is None:
            logger.debug("No configuration file found, using default settings")
            return cls.create_default()

        logger.debug(f"Loading configuration from: {config_file}")
        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def create_default(cls) -> "Settings":
        """Create default configuration"""
        return cls()


# 全局配置实例
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """获取配置实例"""
    global settings
    if settings is None:
        settings = Settings.load_from_yaml()
    return settings


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Replace the global settings, reading from ``config_path`` when given"""
    global settings
    settings = Settings.load_from_yaml(config_path)
    return settings
