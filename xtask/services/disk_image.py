"""
Disk image synthesizer

Builds the FAT32 image handed to QEMU as the guest's root filesystem. The
image is recreated from scratch on every call and always contains one
directory and one payload file (``/sbin/origin.bin`` by default).
"""
import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from loguru import logger

from xtask.core.errors import (
    FileSystemWriteFailedError,
    FormatFailedError,
    ImageCreateFailedError,
)
from xtask.models.profile import DiskImageSpec
from xtask.services.fat32 import (
    FatError,
    FatFormatError,
    FileSystem,
    FormatVolumeOptions,
    format_volume,
)
from xtask.utils.helpers import format_file_size


def create_fat_disk_image(path: Path, spec: Optional[DiskImageSpec] = None,
                          timestamp: Optional[datetime] = None) -> Path:
    """
    Create a FAT32 disk image containing the payload file.

    Args:
        path: Image file to create or truncate
        spec: Capacity, directory and payload; defaults to 64 MiB with /sbin/origin.bin
        timestamp: Time recorded on directory entries (defaults to now)

    Returns:
        Path: The image path

    Raises:
        ImageCreateFailedError: the file could not be created or sized
        FormatFailedError: the capacity cannot hold a FAT32 volume
        FileSystemWriteFailedError: populating or verifying the volume failed
    """
    spec = spec or DiskImageSpec()
    path = Path(path)
    context = {"path": str(path)}

    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        image = open(path, "w+b")
    except OSError as e:
        raise ImageCreateFailedError(f"failed to create disk image {path}: {e}", context=context) from e

    with image:
        try:
            image.truncate(spec.capacity_bytes)
        except OSError as e:
            raise ImageCreateFailedError(
                f"failed to size disk image {path} to {spec.capacity_bytes} bytes: {e}",
                context=context) from e

        options = FormatVolumeOptions()
        if spec.volume_label:
            options.volume_label = spec.volume_label
        try:
            geometry = format_volume(image, options)
        except (FatFormatError, OSError) as e:
            raise FormatFailedError(
                f"failed to format FAT32: {e}",
                hint="increase the disk size; FAT32 needs at least 65525 clusters",
                context={**context, "capacity_bytes": str(spec.capacity_bytes)}) from e
        logger.debug(f"Formatted {path}: {geometry.cluster_count} clusters of {geometry.cluster_size} bytes, "
                     f"FAT {geometry.fat_sectors} sectors x{geometry.fat_count}")

        # The filesystem handle is closed (FAT + FSInfo flushed) before the file
        try:
            with FileSystem(image, timestamp=timestamp) as fs:
                fs.create_dir(spec.directory_path)
                with fs.create_file(spec.payload_path) as payload:
                    payload.write(spec.payload_bytes)
                    payload.flush()
        except (FatError, OSError) as e:
            raise FileSystemWriteFailedError(
                f"failed to populate disk image {path}: {e}",
                context={**context, "file": spec.payload_path}) from e

        try:
            image.flush()
            os.fsync(image.fileno())
        except OSError as e:
            raise FileSystemWriteFailedError(f"failed to flush disk image {path}: {e}", context=context) from e

    verify_disk_image(path, spec)
    logger.info(f"Created FAT32 disk image: {path} ({format_file_size(spec.capacity_bytes)}) "
                f"with {spec.payload_path}")
    return path


def read_payload(path: Path, payload_path: str = "/sbin/origin.bin") -> bytes:
    """Read a file back out of a FAT32 image"""
    with open(path, "rb") as image:
        with FileSystem(image) as fs:
            return fs.read_file(payload_path)


def list_directory(path: Path, directory: str = "/") -> List[str]:
    with open(path, "rb") as image:
        with FileSystem(image) as fs:
            return [entry.name for entry in fs.list_dir(directory)]


def verify_disk_image(path: Path, spec: DiskImageSpec) -> None:
    """Re-open the image and check the payload round-trips"""
    try:
        content = read_payload(path, spec.payload_path)
    except (FatError, OSError) as e:
        raise FileSystemWriteFailedError(
            f"disk image {path} failed verification: {e}",
            context={"path": str(path), "file": spec.payload_path}) from e

    if content != spec.payload_bytes:
        raise FileSystemWriteFailedError(
            f"disk image {path} failed verification: {spec.payload_path} holds "
            f"{len(content)} bytes that differ from the expected payload",
            context={"path": str(path), "file": spec.payload_path})
