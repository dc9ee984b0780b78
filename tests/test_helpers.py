import pytest

from xtask.utils.helpers import calculate_file_hash, format_command, format_file_size, parse_size


@pytest.mark.parametrize("text,expected", [
    ("64M", 64 * 1024 * 1024),
    ("64MiB", 64 * 1024 * 1024),
    ("512K", 512 * 1024),
    ("1G", 1024 ** 3),
    ("4096", 4096),
    ("", 0),
    ("lots", 0),
])
def test_parse_size(text, expected):
    assert parse_size(text) == expected


def test_format_file_size():
    assert format_file_size(0) == "0 B"
    assert format_file_size(64 * 1024 * 1024) == "64.0 MB"


def test_format_command_quotes_spaces():
    assert format_command(["qemu-system-riscv64", "-kernel", "/tmp/my kernel.bin"]) == \
        "qemu-system-riscv64 -kernel '/tmp/my kernel.bin'"


def test_calculate_file_hash(tmp_path):
    path = tmp_path / "empty.bin"
    path.write_bytes(b"")
    assert calculate_file_hash(path) == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
