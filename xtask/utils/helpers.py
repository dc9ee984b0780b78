"""
工具函数模块
"""
import hashlib
import shlex
from pathlib import Path
from typing import Sequence, Union


def calculate_file_hash(file_path: Union[str, Path], algorithm: str = "sha256") -> str:
    """
    计算文件哈希值

    Args:
        file_path: 文件路径
        algorithm: 哈希算法 (md5, sha1, sha256)

    Returns:
        str: 哈希值
    """
    hash_func = getattr(hashlib, algorithm)()

    with open(file_path, 'rb') as f:
        while chunk := f.read(8192):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def format_file_size(size_bytes: int) -> str:
    """
    格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化后的大小
    """
    if size_bytes == 0:
        return "0 B"

    size_names = ["B", "KB", "MB", "GB", "TB"]
    size = float(size_bytes)
    i = 0
    while size >= 1024 and i < len(size_names) - 1:
        size /= 1024.0
        i += 1

    return f"{size:.1f} {size_names[i]}"


def format_command(cmd: Sequence[str]) -> str:
    """Render an argv list the way a shell would accept it"""
    return " ".join(shlex.quote(str(part)) for part in cmd)


def parse_size(size_str: str, default: int = 0) -> int:
    """
    解析大小字符串

    Args:
        size_str: 大小字符串 (如: "64M", "512K", "1G", "4096")
        default: 默认值（字节）

    Returns:
        int: 字节数
    """
    if not size_str:
        return default

    try:
        text = size_str.strip().upper().removesuffix("B").removesuffix("I")
        if text.isdigit():
            return int(text)

        multipliers = {'K': 1024, 'M': 1024 ** 2, 'G': 1024 ** 3}
        if text[-1] in multipliers:
            return int(text[:-1]) * multipliers[text[-1]]
        return int(text)

    except (ValueError, IndexError):
        return default
