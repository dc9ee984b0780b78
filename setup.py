#!/usr/bin/env python3
"""
Setup script for the arceos-loadapp xtask tool
"""

from setuptools import setup, find_packages
from pathlib import Path
import re

# Read version from xtask/__init__.py
def get_version():
    init_file = Path("xtask/__init__.py")
    if init_file.exists():
        content = init_file.read_text()
        match = re.search(r'__version__ = ["\']([^"\']+)["\']', content)
        if match:
            return match.group(1)
    return "0.1.0"

# Read long description from README
def get_long_description():
    readme_file = Path("README.md")
    if readme_file.exists():
        return readme_file.read_text(encoding='utf-8')
    return ""

# Read requirements
def get_requirements():
    req_file = Path("requirements.txt")
    if req_file.exists():
        return [line.strip() for line in req_file.read_text().splitlines()
                if line.strip() and not line.startswith('#')]
    return []

setup(
    name="loadapp-xtask",
    version=get_version(),
    description="Multi-architecture build & run tool for arceos-loadapp",
    long_description=get_long_description(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Operating System :: POSIX :: Linux",
        "Operating System :: MacOS",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Build Tools",
        "Topic :: System :: Emulators",
    ],
    python_requires=">=3.11",
    install_requires=get_requirements(),
    extras_require={
        "dev": [
            "pytest>=7.0",
            "pytest-cov>=4.0",
            "pyfatfs>=1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "xtask=xtask.cli:main",
        ],
    },
    zip_safe=False,
    keywords="arceos qemu fat32 cross-compilation riscv aarch64 loongarch",
)
