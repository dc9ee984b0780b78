#!/usr/bin/env python3
"""
xtask CLI
Build and run arceos-loadapp on different architectures.
"""
import argparse
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError
from yaml import YAMLError

from xtask.core.config import load_settings
from xtask.core.errors import GuestExitNonZeroError, LaunchFailedError, XtaskError
from xtask.core.logging import setup_logging
from xtask.services.multi_arch.arch_configs import supported_architectures
from xtask.services.orchestrator import Orchestrator
from xtask.utils.helpers import parse_size


DEFAULT_ARCH = "riscv64"


def build_command(orchestrator: Orchestrator, args) -> int:
    """Handle build command"""
    artifacts = orchestrator.build(args.arch)
    print(f"✅ Build complete for {args.arch}: {artifacts.elf_path}")
    return 0


def run_command(orchestrator: Orchestrator, args) -> int:
    """Handle run command"""
    return orchestrator.run(args.arch)


def disk_command(orchestrator: Orchestrator, args) -> int:
    """Handle disk command"""
    capacity_bytes = None
    if args.size:
        capacity_bytes = parse_size(args.size)
        if capacity_bytes <= 0:
            print(f"❌ Error: invalid size: {args.size}")
            return 1
    path = orchestrator.make_disk(Path(args.output) if args.output else None, capacity_bytes)
    print(f"✅ Disk image ready: {path}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    arch_help = f"Target architecture: {', '.join(supported_architectures())} (default: {DEFAULT_ARCH})"
    parser = argparse.ArgumentParser(
        prog="xtask",
        description="Build and run arceos-loadapp on different architectures",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Build the kernel for RISC-V
  xtask build

  # Build and boot the kernel in QEMU on AArch64
  xtask run --arch aarch64

  # Only create the FAT32 disk image
  xtask disk --output target/disk.img
        """
    )

    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    parser.add_argument("-c", "--config", help="Path to xtask.yaml (default: ./xtask.yaml if present)")
    parser.add_argument("--root", help="Kernel project root (default: project.root from config)")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Build command
    build_parser = subparsers.add_parser("build", help="Build the kernel for a given architecture")
    build_parser.add_argument("--arch", default=DEFAULT_ARCH, help=arch_help)

    # Run command
    run_parser = subparsers.add_parser("run", help="Build and run the kernel in QEMU")
    run_parser.add_argument("--arch", default=DEFAULT_ARCH, help=arch_help)

    # Disk command
    disk_parser = subparsers.add_parser("disk", help="Create the FAT32 disk image with /sbin/origin.bin")
    disk_parser.add_argument("-o", "--output", help="Image path (default: disk.path from config)")
    disk_parser.add_argument("-s", "--size", help="Image size, e.g. 64M (default: disk.size_mb from config)")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        settings = load_settings(args.config)
    except (OSError, YAMLError, ValidationError) as e:
        print(f"❌ Error: invalid configuration: {e}", file=sys.stderr)
        return 1

    setup_logging(args.verbose, settings)
    orchestrator = Orchestrator(settings, root=Path(args.root) if args.root else None)

    commands = {
        "build": build_command,
        "run": run_command,
        "disk": disk_command,
    }

    try:
        return commands[args.command](orchestrator, args)
    except GuestExitNonZeroError as e:
        logger.error(f"Guest exited non-zero: {e}")
        return e.exit_code
    except LaunchFailedError as e:
        logger.error(f"Emulator launch failed: {e}")
        return e.exit_code
    except XtaskError as e:
        logger.error(f"Error: {e}")
        return e.exit_code
    except KeyboardInterrupt:
        print("\n⚠️  Operation cancelled by user")
        return 130


if __name__ == "__main__":
    sys.exit(main())
